"""
Adds a "capability" to a cluster. This is a naive implementation that
applies the upstream manifests with kubectl.
"""
import os
import sys
from typing import Dict, List, Optional

from invoke import Context, task

from ._state import ClusterDir
from ._utils import ToolError, exit_with, run_tool

HAKE_CERT_MANAGER_VERSION = os.environ.get("HAKE_CERT_MANAGER_VERSION", "v0.15.0")

CAPABILITIES: Dict[str, List[str]] = {
    "cert-manager": [
        "apply",
        "--validate=false",
        "-f",
        "https://github.com/jetstack/cert-manager/releases/download/"
        f"{HAKE_CERT_MANAGER_VERSION}/cert-manager.yaml",
    ],
    "ingress-nginx": [
        "apply",
        "-f",
        "https://raw.githubusercontent.com/kubernetes/ingress-nginx/master/"
        "deploy/static/provider/kind/deploy.yaml",
    ],
}


def kubectl_args(capability: str, kubeconfig: Optional[str] = None) -> List[str]:
    try:
        args = ["kubectl", *CAPABILITIES[capability]]
    except KeyError:
        raise ValueError(
            f"Unknown capability {capability!r}, use one of: "
            f"{', '.join(sorted(CAPABILITIES))}"
        ) from None
    if kubeconfig:
        args.extend(["--kubeconfig", str(kubeconfig)])
    return args


@task(
    positional=["capability"],
    help={
        "capability": f"One of: {', '.join(sorted(CAPABILITIES))}",
        "name": "Cluster managed by hake, uses the current kube context if missing",
        "verbose": "Show the kubectl output",
    },
)
def add(ctx: Context, capability=None, name=None, verbose=False):
    """Installs a capability (cert-manager, ingress-nginx) in a cluster"""
    if not capability:
        sys.exit(f"Please provide a capability: {', '.join(sorted(CAPABILITIES))}")
    try:
        kubeconfig = None
        if name:
            cluster = ClusterDir.for_name(name).require()
            if not cluster.kubeconfig.exists():
                raise FileNotFoundError(f"{cluster.kubeconfig} not found")
            kubeconfig = cluster.kubeconfig
        run_tool(ctx, kubectl_args(capability, kubeconfig), verbose=verbose)
    except (ValueError, OSError, ToolError) as error:
        exit_with(error)
    print(f"{capability} added", file=sys.stderr)
