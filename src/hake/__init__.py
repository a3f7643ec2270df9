import importlib
import logging
import pkgutil
import sys
from types import ModuleType
from typing import Dict, Iterator

from invoke.collection import Collection, Task

from .__about__ import __version__  # noqa: F401
from ._utils import env_flag

HAKE_KEEP_MODULE_NAME_PREFIX = env_flag("HAKE_KEEP_MODULE_NAME_PREFIX", False)


def import_submodules(package_name) -> Dict[str, ModuleType]:
    """
    Import the public submodules of a package (the ones holding tasks)

    :param package_name: Package name
    :type package_name: str
    :rtype: dict[types.ModuleType]
    """
    package = sys.modules[package_name]
    result = {}
    for _loader, name, _is_pkg in pkgutil.iter_modules(package.__path__):
        if name.startswith("_"):
            continue
        try:
            result[name] = importlib.import_module(package_name + "." + name)
        except (ImportError, SyntaxError) as error:
            logging.error(f"Error loading {name}: {error}")

    return result


def iter_tasks_module(
    module: ModuleType,
) -> Iterator[Task]:
    """Yields the tasks defined in a module"""
    for _, maybe_task in module.__dict__.items():
        if not isinstance(maybe_task, Task):
            continue
        yield maybe_task


def get_root_ns(split=HAKE_KEEP_MODULE_NAME_PREFIX) -> Collection:
    """
    Loads the built-in task modules in a single collection, or one
    sub-collection per module when split is set (core is always top level)
    """
    all_submodules = import_submodules("hake")
    ns = Collection()
    for name, submodule in sorted(all_submodules.items()):
        logging.debug(f"Loading built-in module {name}")
        if split and name != "core":
            ns.add_collection(Collection.from_module(submodule))
        else:
            for task in iter_tasks_module(submodule):
                ns.add_task(task)
    return ns
