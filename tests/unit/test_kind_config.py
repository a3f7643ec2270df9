import pytest
import yaml

from hake._kind_config import (
    INIT_CONFIG_INGRESS_READY,
    KIND_API_VERSION,
    KUBELET_DOCKER_CONFIG,
    PortMapping,
    build_kind_config,
    parse_port_mapping,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("80", PortMapping(80, 80, "TCP")),
        ("80:8080", PortMapping(80, 8080, "TCP")),
        ("443:8443:TCP", PortMapping(443, 8443, "TCP")),
        ("53:5353:udp", PortMapping(53, 5353, "UDP")),
    ],
)
def test_parse_port_mapping(text, expected):
    assert parse_port_mapping(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "80:80:HTTP", "0", "80:70000", "80:"])
def test_parse_port_mapping_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_port_mapping(text)


def test_default_config_has_no_nodes():
    config = build_kind_config()
    assert config.to_dict() == {"kind": "Cluster", "apiVersion": KIND_API_VERSION}


def test_docker_config_is_mounted_in_control_plane():
    config = build_kind_config(docker_config="/home/me/.hake/dev/docker_config")
    assert config.to_dict()["nodes"] == [
        {
            "role": "control-plane",
            "extraMounts": [
                {
                    "containerPath": KUBELET_DOCKER_CONFIG,
                    "hostPath": "/home/me/.hake/dev/docker_config",
                }
            ],
        }
    ]


def test_local_registry_patch_uses_trimmed_ip():
    config = build_kind_config(local_registry_ip=" 172.17.0.2\n")
    (patch,) = config.containerdConfigPatches
    assert 'mirrors."localhost:5000"]' in patch
    assert 'endpoint = ["http://172.17.0.2:5000"]' in patch
    assert config.nodes == []


def test_port_mappings_and_ingress_share_a_single_control_plane():
    config = build_kind_config(
        docker_config="/tmp/docker_config",
        port_mappings=[PortMapping(80, 80), PortMapping(443, 443)],
        ingress_ready=True,
    )
    (node,) = config.nodes
    assert node.role == "control-plane"
    assert [pm.hostPort for pm in node.extraPortMappings] == [80, 443]
    assert node.kubeadmConfigPatches == [INIT_CONFIG_INGRESS_READY]
    assert len(node.extraMounts) == 1


def test_yaml_document_is_loadable():
    config = build_kind_config(
        local_registry_ip="10.0.0.5", port_mappings=[PortMapping(80, 8080, "TCP")]
    )
    loaded = yaml.safe_load(config.to_yaml())
    assert loaded == config.to_dict()
    assert loaded["nodes"][0]["extraPortMappings"] == [
        {"containerPort": 80, "hostPort": 8080, "protocol": "TCP"}
    ]
