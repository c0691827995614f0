# START OF FILE clusterseed/installers/base_installer.py
"""
Component profiles for ClusterSeed.

A ComponentProfile describes everything that differs between the components
the pipeline deploys: templates, folders, remote paths, node constraints,
published endpoints, pre-activation hooks and activation mode. The deployer
itself is shared.
"""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from clusterseed.models import (
    SYSTEMD_SERVER_PATH,
    ActivationMode,
    ArtifactKind,
    EndpointSet,
    Node,
)
from clusterseed.remote import RemoteExecutor
from clusterseed.templates import ArtifactRenderer

logger = logging.getLogger(__name__)


@dataclass
class ActivationContext:
    """What a pre-activation hook gets to work with."""
    profile: "ComponentProfile"
    nodes: List[Node]
    version: str
    renderer: ArtifactRenderer
    executor: RemoteExecutor
    endpoints: EndpointSet
    upstream_endpoints: Optional[str] = None
    default_key: Optional[str] = None
    ssh_port: int = 22


PreActivationHook = Callable[[ActivationContext], None]


@dataclass(frozen=True)
class ComponentProfile:
    """
    Static description of a deployable component.

    Attributes:
        name: Component name; also the unit name and file prefix (e.g. "etcd")
        output_prefix: Prefix of published outputs (e.g. "Etcd" -> "EtcdEndpoints")
        node_name_prefix: Logical node names are "<prefix>-<index>"
        csr_template: Template name of the CSR document
        systemd_template: Template name of the service unit
        ca_folder: Workspace folder for CA artifacts
        service_folder: Workspace folder for service units
        remote_config_dir: Config directory on the node (certs go to <dir>/ssl)
        min_nodes: Minimum number of nodes
        limit_to_pool: Whether the requested node count may not exceed the pool
        client_port: Client port of published endpoints (None = publish nothing)
        peer_port: Peer port of published endpoints
        scheme: URL scheme of published endpoints
        upstream_output: Output of another component this one consumes
        pre_activation_hooks: Hooks run after distribution, before activation
        activation_mode: Parallel for quorum services, serial otherwise
    """
    name: str
    output_prefix: str
    node_name_prefix: str
    csr_template: str
    systemd_template: str
    ca_folder: str
    service_folder: str
    remote_config_dir: str
    min_nodes: int = 1
    limit_to_pool: bool = True
    client_port: Optional[int] = None
    peer_port: Optional[int] = None
    scheme: str = "https"
    upstream_output: Optional[str] = None
    pre_activation_hooks: Tuple[PreActivationHook, ...] = field(default_factory=tuple)
    activation_mode: ActivationMode = ActivationMode.PARALLEL

    @property
    def unit(self) -> str:
        return self.name

    @property
    def remote_ssl_dir(self) -> str:
        return posixpath.join(self.remote_config_dir, "ssl")

    @property
    def endpoints_output(self) -> str:
        return f"{self.output_prefix}Endpoints"

    @property
    def peer_endpoints_output(self) -> str:
        return f"{self.output_prefix}PeerEndpoints"

    @property
    def publishes_endpoints(self) -> bool:
        return self.client_port is not None

    def file_name(self, kind: ArtifactKind) -> str:
        return kind.file_name(self.name)

    def remote_path(self, kind: ArtifactKind) -> str:
        """Destination of an artifact on the node."""
        if kind is ArtifactKind.SERVICE_UNIT:
            return posixpath.join(SYSTEMD_SERVER_PATH, self.file_name(kind))
        return posixpath.join(self.remote_ssl_dir, self.file_name(kind))

    def node_name(self, index: int) -> str:
        return f"{self.node_name_prefix}-{index}"


def build_endpoint_set(profile: ComponentProfile, nodes: List[Node], master: int) -> EndpointSet:
    """
    Endpoints of the first `master` nodes, in node order.

    The selection is plain index truncation of the node list.
    """
    endpoints = EndpointSet()
    if not profile.publishes_endpoints:
        return endpoints

    for index, node in enumerate(nodes[:max(master, 0)]):
        endpoints.client.append(f"{profile.scheme}://{node.ip}:{profile.client_port}")
        if profile.peer_port is not None:
            endpoints.peer.append(
                f"{profile.node_name(index)}={profile.scheme}://{node.ip}:{profile.peer_port}"
            )
    return endpoints
