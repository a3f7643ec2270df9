"""
Local state kept for every cluster managed by hake.

Each cluster owns a directory under $HAKE_HOME (~/.hake by default):

    ~/.hake/<name>/kubeconfig      credentials to reach the API server
    ~/.hake/<name>/cluster_uuid    DigitalOcean cluster id
    ~/.hake/<name>/kind_config     kind Cluster configuration (YAML)
    ~/.hake/<name>/kind_args       arguments used to call kind, for recreate
    ~/.hake/<name>/docker_config   registry credentials mounted in the node
"""
import logging
import os
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

DEFAULT_HAKE_HOME = "~/.hake"

KUBECONFIG = "kubeconfig"
CLUSTER_UUID = "cluster_uuid"
KIND_CONFIG = "kind_config"
KIND_ARGS = "kind_args"
DOCKER_CONFIG = "docker_config"


def get_config_dir() -> Path:
    """The directory holding one sub directory per cluster"""
    return Path(os.environ.get("HAKE_HOME", DEFAULT_HAKE_HOME)).expanduser()


def validate_cluster_name(name: Optional[str]) -> str:
    if not name or not name.strip():
        raise ValueError("A cluster name is required, use --name")
    if "/" in name or name in {".", ".."}:
        raise ValueError(f"Invalid cluster name: {name!r}")
    return name


@dataclass
class ClusterDir:
    name: str
    path: Path

    @classmethod
    def for_name(cls, name: str) -> "ClusterDir":
        name = validate_cluster_name(name)
        return cls(name=name, path=get_config_dir() / name)

    @property
    def kubeconfig(self) -> Path:
        return self.path / KUBECONFIG

    @property
    def cluster_uuid(self) -> Path:
        return self.path / CLUSTER_UUID

    @property
    def kind_config(self) -> Path:
        return self.path / KIND_CONFIG

    @property
    def kind_args(self) -> Path:
        return self.path / KIND_ARGS

    @property
    def docker_config(self) -> Path:
        return self.path / DOCKER_CONFIG

    def exists(self) -> bool:
        return self.path.is_dir()

    @property
    def provider(self) -> Optional[str]:
        """Which provider created the cluster, None if it can't be told"""
        if self.cluster_uuid.exists():
            return "do"
        if self.kind_args.exists() or self.kind_config.exists():
            return "kind"
        return None

    def create(self) -> "ClusterDir":
        """Creates the directory, the cluster must not be managed already"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.path.mkdir()
        except FileExistsError:
            raise FileExistsError(
                f"Cluster {self.name} already exists in {self.path}"
            ) from None
        logging.debug(f"Created {self.path}")
        return self

    def remove(self) -> None:
        logging.debug(f"Removing {self.path}")
        shutil.rmtree(self.path)

    def require(self) -> "ClusterDir":
        if not self.exists():
            raise FileNotFoundError(f"No cluster named {self.name} in {self.path.parent}")
        return self

    def write_cluster_id(self, cluster_id: str) -> None:
        self.cluster_uuid.write_text(cluster_id)

    def read_cluster_id(self) -> str:
        if not self.cluster_uuid.exists():
            raise FileNotFoundError(f"{self.cluster_uuid} not found")
        return self.cluster_uuid.read_text().strip()

    def write_kind_args(self, args: Sequence[str]) -> None:
        self.kind_args.write_text(shlex.join(args))

    def read_kind_args(self) -> List[str]:
        if not self.kind_args.exists():
            raise FileNotFoundError(
                f"{self.kind_args} not found, was {self.name} created by kind?"
            )
        return shlex.split(self.kind_args.read_text())


def list_cluster_dirs() -> List[ClusterDir]:
    """Every cluster directory, sorted by name"""
    root = get_config_dir()
    if not root.is_dir():
        return []
    return [
        ClusterDir(name=p.name, path=p)
        for p in sorted(root.iterdir(), key=lambda p: p.name)
        if p.is_dir()
    ]
