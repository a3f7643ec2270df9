"""
This module builds kind Cluster configurations:

https://kind.sigs.k8s.io/docs/user/configuration/
https://pkg.go.dev/sigs.k8s.io/kind/pkg/apis/config/v1alpha4#Cluster
"""
import re
from dataclasses import asdict, dataclass, field
from typing import Iterable, List, Optional

import yaml

from ._utils import drop_empty

KIND_API_VERSION = "kind.x-k8s.io/v1alpha4"
KUBELET_DOCKER_CONFIG = "/var/lib/kubelet/config.json"
PROTOCOLS = {"TCP", "UDP", "SCTP"}

# Labels the node so ingress-nginx's kind provider schedules on it
INIT_CONFIG_INGRESS_READY = """kind: InitConfiguration
nodeRegistration:
  kubeletExtraArgs:
    node-labels: "ingress-ready=true"
"""

CONTAINERD_LOCAL_REGISTRY_PATCH = """
[plugins."io.containerd.grpc.v1.cri".registry.mirrors."localhost:5000"]
  endpoint = ["http://{ip}:5000"]"""

PORT_MAPPING_RE = re.compile(
    r"^(?P<container>\d+)(:(?P<host>\d+))?(:(?P<protocol>[a-zA-Z]+))?$"
)


@dataclass
class ExtraMount:
    containerPath: str
    hostPath: str


@dataclass
class PortMapping:
    containerPort: int
    hostPort: int
    protocol: str = "TCP"


@dataclass
class KindNode:
    role: str = "control-plane"
    extraMounts: List[ExtraMount] = field(default_factory=list)
    extraPortMappings: List[PortMapping] = field(default_factory=list)
    kubeadmConfigPatches: List[str] = field(default_factory=list)


@dataclass
class KindConfig:
    kind: str = "Cluster"
    apiVersion: str = KIND_API_VERSION
    nodes: List[KindNode] = field(default_factory=list)
    containerdConfigPatches: List[str] = field(default_factory=list)

    def control_plane(self) -> KindNode:
        """Returns the first control plane node, adding one if necessary"""
        for node in self.nodes:
            if node.role == "control-plane":
                return node
        node = KindNode()
        self.nodes.insert(0, node)
        return node

    def to_dict(self):
        return drop_empty(asdict(self))

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)


def parse_port_mapping(text: str) -> PortMapping:
    """Parses container_port[:host_port[:protocol]], e.g.: 80:8080:TCP, 80:80, 80"""
    match = PORT_MAPPING_RE.match(text.strip())
    if not match:
        raise ValueError(
            f"Invalid port mapping {text!r}, expected CONTAINER[:HOST[:PROTOCOL]]"
        )
    container_port = int(match["container"])
    host_port = int(match["host"] or container_port)
    protocol = (match["protocol"] or "TCP").upper()
    for port in (container_port, host_port):
        if not 0 < port < 65536:
            raise ValueError(f"Port {port} out of range in {text!r}")
    if protocol not in PROTOCOLS:
        raise ValueError(
            f"Invalid protocol {protocol} in {text!r}, use one of "
            f"{', '.join(sorted(PROTOCOLS))}"
        )
    return PortMapping(
        containerPort=container_port, hostPort=host_port, protocol=protocol
    )


def containerd_local_registry_patch(ip: str) -> str:
    return CONTAINERD_LOCAL_REGISTRY_PATCH.format(ip=ip.strip())


def build_kind_config(
    docker_config: Optional[str] = None,
    local_registry_ip: Optional[str] = None,
    port_mappings: Iterable[PortMapping] = (),
    ingress_ready: bool = False,
) -> KindConfig:
    """Creates the kind configuration for a cluster.

    Without any customization there are no nodes and kind creates its default
    single control plane.
    """
    config = KindConfig()
    if docker_config:
        config.control_plane().extraMounts.append(
            ExtraMount(containerPath=KUBELET_DOCKER_CONFIG, hostPath=str(docker_config))
        )
    if local_registry_ip:
        config.containerdConfigPatches.append(
            containerd_local_registry_patch(local_registry_ip)
        )
    port_mappings = list(port_mappings)
    if port_mappings:
        config.control_plane().extraPortMappings = port_mappings
    if ingress_ready:
        config.control_plane().kubeadmConfigPatches.append(INIT_CONFIG_INGRESS_READY)
    return config
