"""
Local clusters with kind (https://kind.sigs.k8s.io/)
"""
import json
import logging
import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence

from invoke import Context

from ._kind_config import build_kind_config, parse_port_mapping
from ._registry import write_docker_config
from ._state import ClusterDir, list_cluster_dirs
from ._utils import dict_to_dataclass, run_tool

CONTROL_PLANE_SUFFIX = "-control-plane"
KIND_NODE_IMAGE_PREFIX = "kindest/node"
DOCKER_PS_ARGS = [
    "docker",
    "ps",
    "--filter",
    "status=running",
    "--format",
    "{{json .}}",
]


@dataclass
class DockerPsItem:
    """The fields we need from docker ps --format '{{json .}}'"""

    Image: str
    Names: str
    ID: Optional[str] = None
    State: Optional[str] = None

    @property
    def first_name(self) -> str:
        name, *_ = self.Names.split(",")
        return name


def get_cluster_name(container_name: str) -> Optional[str]:
    """Gets the kind cluster name from the Docker container name.

    >>> get_cluster_name("/dev-control-plane")
    'dev'
    """
    if not container_name.endswith(CONTROL_PLANE_SUFFIX):
        return None
    name = container_name[: -len(CONTROL_PLANE_SUFFIX)].lstrip("/")
    return name or None


def get_kind_containers(ctx: Context) -> List[str]:
    """Names of the kind clusters with a running control plane container"""
    result = run_tool(ctx, DOCKER_PS_ARGS)
    clusters = []
    for line in result.stdout.splitlines():
        if not line.strip():
            continue
        try:
            item = dict_to_dataclass(json.loads(line), DockerPsItem)
        except (ValueError, TypeError) as error:
            logging.debug(f"Ignoring docker ps line {line!r}: {error}")
            continue
        if not item.Image.startswith(KIND_NODE_IMAGE_PREFIX):
            continue
        name = get_cluster_name(item.first_name)
        if name is not None:
            clusters.append(name)
    return clusters


def find_local_registry(ctx: Context, container_name: str) -> str:
    """IP address of a registry container in the default bridge network"""
    result = run_tool(
        ctx,
        ["docker", "inspect", "-f", "{{.NetworkSettings.IPAddress}}", container_name],
    )
    ip = result.stdout.strip()
    if not ip:
        raise ValueError(f"Container {container_name} has no IP address")
    return ip


def kind_create_args(cluster: ClusterDir) -> List[str]:
    return [
        "kind",
        "create",
        "cluster",
        "--name",
        cluster.name,
        "--kubeconfig",
        str(cluster.kubeconfig),
        "--config",
        str(cluster.kind_config),
    ]


def create_cluster(
    ctx: Context,
    name: str,
    ecr: Optional[str] = None,
    local_registry: Optional[str] = None,
    port_mapping: Sequence[str] = (),
    ingress_ready=False,
    verbose=False,
) -> ClusterDir:
    """Creates a kind cluster keeping its kubeconfig and arguments in ~/.hake/name"""
    port_mappings = [parse_port_mapping(pm) for pm in port_mapping]
    cluster = ClusterDir.for_name(name).create()
    try:
        docker_config = None
        if ecr:
            docker_config = write_docker_config(ctx, ecr, cluster.docker_config)
        registry_ip = find_local_registry(ctx, local_registry) if local_registry else None
        kind_config = build_kind_config(
            docker_config=docker_config,
            local_registry_ip=registry_ip,
            port_mappings=port_mappings,
            ingress_ready=ingress_ready,
        )
        cluster.kind_config.write_text(kind_config.to_yaml())
        args = kind_create_args(cluster)
        print(f"Creating kind cluster {name}...", file=sys.stderr)
        run_tool(ctx, args, verbose=verbose)
    except Exception:
        logging.info(f"Cluster {name} could not be created, cleaning up {cluster.path}")
        cluster.remove()
        raise
    cluster.write_kind_args(args)
    return cluster


def delete_cluster(ctx: Context, name: str, verbose=False) -> None:
    run_tool(ctx, ["kind", "delete", "cluster", "--name", name], verbose=verbose)


def recreate_cluster(ctx: Context, name: str, verbose=False) -> ClusterDir:
    """Deletes the cluster and creates it again with the saved arguments"""
    cluster = ClusterDir.for_name(name).require()
    args = cluster.read_kind_args()
    delete_cluster(ctx, name, verbose=verbose)
    print(f"Recreating kind cluster {name}...", file=sys.stderr)
    run_tool(ctx, args, verbose=verbose)
    return cluster


def stale_cluster_dirs(ctx: Context) -> List[ClusterDir]:
    """kind clusters in ~/.hake without a running control plane container"""
    running = set(get_kind_containers(ctx))
    return [
        cluster
        for cluster in list_cluster_dirs()
        if cluster.provider == "kind" and cluster.name not in running
    ]
