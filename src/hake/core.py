from invoke import Context, task

from .__about__ import __version__
from ._state import get_config_dir


@task(autoprint=True)
def version(ctx: Context):
    """Shows the version of hake"""
    return __version__


@task(autoprint=True)
def config_dir(ctx: Context):
    """Shows the folder where the clusters state is kept ($HAKE_HOME)"""
    return str(get_config_dir())
