import pytest

from hake import add
from hake._state import ClusterDir


def test_cert_manager_arguments():
    args = add.kubectl_args("cert-manager")
    assert args[:3] == ["kubectl", "apply", "--validate=false"]
    assert args[-1].endswith("/cert-manager.yaml")


def test_kubeconfig_is_appended():
    args = add.kubectl_args("ingress-nginx", "/home/me/.hake/dev/kubeconfig")
    assert args[-2:] == ["--kubeconfig", "/home/me/.hake/dev/kubeconfig"]


def test_unknown_capability():
    with pytest.raises(ValueError, match="cert-manager, ingress-nginx"):
        add.kubectl_args("istio")


def test_add_to_current_context(mock_ctx):
    ctx = mock_ctx({tuple(add.kubectl_args("ingress-nginx")): ""})
    add.add(ctx, "ingress-nginx")


def test_add_to_hake_cluster(hake_home, mock_ctx):
    cluster = ClusterDir.for_name("dev").create()
    cluster.kubeconfig.write_text("apiVersion: v1")
    ctx = mock_ctx({tuple(add.kubectl_args("cert-manager", cluster.kubeconfig)): ""})
    add.add(ctx, "cert-manager", name="dev")


def test_add_to_cluster_without_kubeconfig(hake_home, mock_ctx):
    ClusterDir.for_name("dev").create()
    with pytest.raises(SystemExit, match="kubeconfig not found"):
        add.add(mock_ctx({}), "cert-manager", name="dev")


def test_add_without_capability(mock_ctx):
    with pytest.raises(SystemExit, match="Please provide a capability"):
        add.add(mock_ctx({}))
