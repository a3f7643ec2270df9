"""
Installs the binaries hake drives (kind, kubectl) in a writable folder of $PATH
"""
import logging
import os
import platform
import shutil
import sys
import urllib.error
import urllib.request
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import List, Optional, Union

from invoke import Context, task

from ._utils import create_request

HOME: Path = Path("~").expanduser()

KIND_VERSION = os.environ.get("HAKE_KIND_VERSION", "0.20.0")
KUBECTL_VERSION = os.environ.get("HAKE_KUBECTL_VERSION", "1.28.2")


def is_directory_writable(a_directory: Union[str, Path]) -> bool:
    return os.access(a_directory, os.W_OK) and Path(a_directory).is_dir()


def find_suitable_writable_directories_in_path() -> List[Path]:
    """Writable directories of $PATH, ~/.local/bin first and system ones last"""

    def weight(p: Path) -> int:
        if p == HOME / ".local/bin":
            return 100
        if str(p).startswith(str(HOME)):
            return 0
        return -10

    unique_path_parts = set(os.environ.get("PATH", "").split(os.pathsep))
    path_directories = [Path(p) for p in unique_path_parts if p and is_directory_writable(p)]
    return sorted(path_directories, key=weight, reverse=True)


def format_string(braced_string: str, **extra) -> str:
    """Format strings with {system_lower} and {machine_amd_or_arm}"""
    machine = platform.machine()
    machine_amd_or_arm = {"x86_64": "amd64", "aarch64": "arm64", "arm64": "arm64"}.get(
        machine, machine.lower()
    )
    return braced_string.format(
        system_lower=platform.system().lower(),
        machine_amd_or_arm=machine_amd_or_arm,
        **extra,
    )


def download_binary(
    url: str,
    name: str,
    copy_to: Optional[Path] = None,
    overwrite=False,
    permission=0o755,
) -> Optional[Path]:
    """Downloads a single binary file and copies it as `name`.

    Returns the path of the installed binary, None when it was already
    present and overwrite is False.
    """
    if shutil.which(name) and not overwrite:
        print(f"Skipping {name} installation, already in $PATH", file=sys.stderr)
        return None
    if not url.startswith(("http:", "https:")):
        raise ValueError("URL must start with 'http:' or 'https:'")
    if copy_to is None:
        try:
            copy_to = find_suitable_writable_directories_in_path()[0]
        except IndexError:
            sys.exit(
                "Couldn't find any writable directory in $PATH. "
                "Try creating $HOME/.local/bin and adding to your $PATH to fix this."
            )
    print(f"{name} will be installed to {copy_to}", file=sys.stderr)
    logging.debug(f"Downloading {url}")
    with TemporaryDirectory(suffix=f"{name}-download") as tmpdirname:
        downloaded = Path(tmpdirname) / name
        try:
            with urllib.request.urlopen(create_request(url)) as response:  # noqa: S310
                downloaded.write_bytes(response.read())
        except urllib.error.URLError as error:
            sys.exit(f"Error downloading {url}: {error}")
        target = Path(copy_to) / name
        shutil.copy(downloaded, target)
    os.chmod(target, permission)
    return target


@task(help={"overwrite": "Replace the binary if it exists"})
def install_kind(ctx: Context, version=KIND_VERSION, overwrite=False):
    """Downloads kind"""
    url = format_string(
        "https://github.com/kubernetes-sigs/kind/releases/download/v{version}/"
        "kind-{system_lower}-{machine_amd_or_arm}",
        version=version,
    )
    download_binary(url, "kind", overwrite=overwrite)


@task(help={"overwrite": "Replace the binary if it exists"})
def install_kubectl(ctx: Context, version=KUBECTL_VERSION, overwrite=False):
    """Downloads kubernetes CLI (kubectl)"""
    url = format_string(
        "https://dl.k8s.io/release/v{version}/bin/{system_lower}/"
        "{machine_amd_or_arm}/kubectl",
        version=version,
    )
    download_binary(url, "kubectl", overwrite=overwrite)
