"""
Creates real kind clusters, only runs with HAKE_TEST_EXTERNAL=1
"""
import uuid

import pytest

from hake import _kind, cluster
from hake._state import ClusterDir


@pytest.fixture()
def cluster_name(kind, hake_home, ctx):
    name = f"hake-test-{uuid.uuid4().hex[:8]}"
    yield name
    if ClusterDir.for_name(name).exists():
        _kind.delete_cluster(ctx, name)


@pytest.mark.external
def test_create_list_and_delete(ctx, cluster_name, capsys):
    cluster.create(ctx, name=cluster_name, port_mapping_=["80:18080"])
    state = ClusterDir.for_name(cluster_name)
    assert state.kubeconfig.exists()
    assert cluster_name in _kind.get_kind_containers(ctx)

    cluster.list_clusters(ctx)
    rows = [line.split() for line in capsys.readouterr().out.splitlines()]
    assert [cluster_name, "kind", "running"] in rows

    cluster.delete(ctx, name=cluster_name)
    assert not state.exists()
    assert cluster_name not in _kind.get_kind_containers(ctx)
