import logging
import os

from invoke import Program

from . import get_root_ns
from .__about__ import __version__


class HakeProgram(Program):
    def __init__(
        self,
    ) -> None:
        self.configure_logging()
        ns = get_root_ns()
        super().__init__(
            name="hake",
            binary="hake",
            binary_names=["hake"],
            version=__version__,
            namespace=ns,
        )

    def configure_logging(self):
        logging.basicConfig(level=os.environ.get("HAKE_LOGLEVEL", "INFO"))


def main():
    HakeProgram().run()
