"""The hake command line, parsed by invoke"""
import pytest

from hake._program import HakeProgram
from hake._state import ClusterDir


def hake(*args: str) -> None:
    HakeProgram().run(["hake", *args], exit=False)


@pytest.fixture()
def calls(monkeypatch):
    """Replaces the cluster back ends, records how they are called"""
    recorded = []

    def create_kind(ctx, name, **kwargs):
        recorded.append(("kind", name, kwargs))
        return ClusterDir.for_name(name)

    def create_do(name, **kwargs):
        recorded.append(("do", name, kwargs))
        return ClusterDir.for_name(name)

    def run_tool(ctx, args, verbose=False, in_stream=None):
        recorded.append(("run", list(args), verbose))

    monkeypatch.setattr("hake._kind.create_cluster", create_kind)
    monkeypatch.setattr("hake._digitalocean.create", create_do)
    monkeypatch.setattr("hake.add.run_tool", run_tool)
    return recorded


def test_create_kind_with_repeated_port_mappings(hake_home, calls):
    hake(
        "create",
        "--name",
        "dev",
        "--port-mapping",
        "80",
        "--port-mapping",
        "443:8443",
        "--ingress-ready",
    )
    ((provider, name, kwargs),) = calls
    assert (provider, name) == ("kind", "dev")
    assert kwargs["port_mapping"] == ["80", "443:8443"]
    assert kwargs["ingress_ready"] is True
    assert kwargs["verbose"] is False


def test_create_digitalocean_node_count_is_an_int(hake_home, calls):
    hake("create", "--name", "dev", "--provider", "do", "--node-count", "3")
    ((provider, name, kwargs),) = calls
    assert (provider, name) == ("do", "dev")
    assert kwargs["node_count"] == 3


def test_add_takes_the_capability_as_positional(calls):
    hake("add", "ingress-nginx", "--verbose")
    ((_, args, verbose),) = calls
    assert args[:3] == ["kubectl", "apply", "-f"]
    assert args[-1].endswith("/provider/kind/deploy.yaml")
    assert verbose is True


def test_list_is_the_task_name(hake_home, capsys):
    hake("list")
    assert "No clusters found" in capsys.readouterr().err


def test_version(capsys):
    from hake.__about__ import __version__

    hake("version")
    assert capsys.readouterr().out.strip() == __version__
