"""
This module contains the cluster life cycle tasks:
- create/delete clusters with kind (local) or DigitalOcean
- recreate kind clusters with the arguments they were created with
- list the clusters managed by hake, or the EKS clusters in a region
- clean state and cloud resources left behind
"""
import logging
import sys
from typing import List

from botocore.exceptions import BotoCoreError, ClientError
from invoke import Context, task

from . import _digitalocean, _eks, _kind
from ._digitalocean import (
    HAKE_DO_NODE_COUNT,
    HAKE_DO_NODE_SIZE,
    HAKE_DO_REGION,
    HAKE_DO_VERSION,
    DigitalOceanError,
)
from ._registry import HAKE_ECR_REGISTRY, RegistryError
from ._state import ClusterDir, get_config_dir, list_cluster_dirs
from ._utils import ToolError, exit_with, format_table

PROVIDERS = {"kind", "do"}

HAKE_ERRORS = (ValueError, OSError, ToolError, RegistryError, DigitalOceanError)


def _check_provider(provider: str, supported=PROVIDERS) -> str:
    if provider not in supported:
        sys.exit(
            f"Unknown provider {provider}, use one of: {', '.join(sorted(supported))}"
        )
    return provider


@task(
    help={
        "name": "Name of the cluster, also the name of the folder in ~/.hake",
        "provider": "kind (default) or do (DigitalOcean)",
        "ecr": "(kind) ECR registry to pull private images from, "
        "defaults to $HAKE_ECR_REGISTRY",
        "local_registry": "(kind) Name of a registry container to mirror localhost:5000",
        "port_mapping_": "(kind) CONTAINER[:HOST[:PROTOCOL]] port to expose from the "
        "control plane, can be repeated",
        "ingress_ready": "(kind) Label the control plane with ingress-ready=true",
        "region": f"(do) Region, defaults to {HAKE_DO_REGION}",
        "k8s_version": f"(do) Kubernetes version slug, defaults to {HAKE_DO_VERSION}",
        "node_size": f"(do) Droplet size of the node pool, defaults to {HAKE_DO_NODE_SIZE}",
        "node_count": f"(do) Nodes in the pool, defaults to {HAKE_DO_NODE_COUNT}",
        "verbose": "Show the output of the commands being executed",
    }
)
def create(
    ctx: Context,
    name=None,
    provider="kind",
    ecr=HAKE_ECR_REGISTRY,
    local_registry=None,
    port_mapping_: List[str] = [],
    ingress_ready=False,
    region=HAKE_DO_REGION,
    k8s_version=HAKE_DO_VERSION,
    node_size=HAKE_DO_NODE_SIZE,
    node_count=HAKE_DO_NODE_COUNT,
    verbose=False,
):
    """Creates a cluster and keeps its kubeconfig in ~/.hake/<name>"""
    _check_provider(provider)
    try:
        if provider == "kind":
            cluster = _kind.create_cluster(
                ctx,
                name,
                ecr=ecr,
                local_registry=local_registry,
                port_mapping=port_mapping_,
                ingress_ready=ingress_ready,
                verbose=verbose,
            )
        else:
            cluster = _digitalocean.create(
                name,
                region=region,
                version=k8s_version,
                node_size=node_size,
                node_count=node_count,
            )
    except HAKE_ERRORS as error:
        exit_with(error)
    print(f"Cluster {name} ready, run: export KUBECONFIG={cluster.kubeconfig}")


@task(help={"name": "Name of the cluster", "verbose": "Show the commands output"})
def delete(ctx: Context, name=None, verbose=False):
    """Deletes a cluster and its folder in ~/.hake"""
    try:
        cluster = ClusterDir.for_name(name).require()
        if cluster.provider == "do":
            _digitalocean.delete(name)
        else:
            _kind.delete_cluster(ctx, name, verbose=verbose)
            cluster.remove()
    except HAKE_ERRORS as error:
        exit_with(error)
    print(f"Cluster {name} deleted", file=sys.stderr)


@task(help={"name": "Name of the cluster", "verbose": "Show the commands output"})
def recreate(ctx: Context, name=None, verbose=False):
    """Deletes a kind cluster and creates it again with the same arguments"""
    try:
        cluster = ClusterDir.for_name(name).require()
        if cluster.provider == "do":
            sys.exit("recreate is only supported for kind clusters")
        _kind.recreate_cluster(ctx, name, verbose=verbose)
    except HAKE_ERRORS as error:
        exit_with(error)


def _kind_status(ctx: Context):
    try:
        running = set(_kind.get_kind_containers(ctx))
    except ToolError as error:
        logging.warning(f"Can't read the kind containers: {error}")
        return lambda _name: "unknown"
    return lambda name: "running" if name in running else "stopped"


@task(
    name="list",
    help={
        "provider": "eks to list remote EKS clusters instead of local ones",
        "region": "(eks) AWS region, defaults to $HAKE_AWS_REGION or us-east-1",
    },
)
def list_clusters(ctx: Context, provider=None, region=None):
    """Lists the clusters managed by hake"""
    if provider == "eks":
        try:
            clusters = _eks.list_clusters(region)
        except (BotoCoreError, ClientError) as error:
            exit_with(error)
        print(f"{len(clusters)} clusters were found", file=sys.stderr)
        for eks_cluster in clusters:
            print(eks_cluster)
        return
    if provider is not None:
        _check_provider(provider, supported=PROVIDERS | {"eks"})

    cluster_dirs = [
        cluster
        for cluster in list_cluster_dirs()
        if provider is None or cluster.provider == provider
    ]
    if not cluster_dirs:
        print(f"No clusters found in {get_config_dir()}", file=sys.stderr)
        return
    status = _kind_status(ctx)
    rows = []
    for cluster in cluster_dirs:
        if cluster.provider == "kind":
            rows.append((cluster.name, "kind", status(cluster.name)))
        else:
            rows.append((cluster.name, cluster.provider or "unknown", "-"))
    print(format_table(rows, headers=("NAME", "PROVIDER", "STATUS")))


@task(
    help={
        "provider": "kind (default): remove folders of kind clusters that are not "
        "running. do: delete load balancers not attached to any droplet",
        "dry_run": "Only show what would be removed",
    }
)
def clean(ctx: Context, provider="kind", dry_run=False):
    """Removes state and resources of clusters that no longer exist"""
    _check_provider(provider)
    try:
        if provider == "do":
            orphans = _digitalocean.clean(dry_run=dry_run)
            if not orphans:
                print("No orphan load balancers found", file=sys.stderr)
            return
        stale = _kind.stale_cluster_dirs(ctx)
        for cluster in stale:
            if dry_run:
                print(f"Would remove {cluster.path}", file=sys.stderr)
            else:
                print(f"Removing {cluster.path}", file=sys.stderr)
                cluster.remove()
        if not stale:
            print("Nothing to clean", file=sys.stderr)
    except HAKE_ERRORS as error:
        exit_with(error)


@task(autoprint=True, help={"name": "Name of the cluster"})
def kubeconfig(ctx: Context, name=None) -> str:
    """Shows the kubeconfig path of a cluster, use it as
    export KUBECONFIG=$(hake kubeconfig -n <name>)
    """
    try:
        cluster = ClusterDir.for_name(name).require()
    except HAKE_ERRORS as error:
        exit_with(error)
    if not cluster.kubeconfig.exists():
        sys.exit(f"{cluster.kubeconfig} not found")
    return str(cluster.kubeconfig)
