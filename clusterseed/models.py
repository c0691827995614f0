# START OF FILE clusterseed/models.py
"""
Data models for ClusterSeed.

Represents nodes, the root CA, generated artifacts and the endpoint outputs
shared between components of one deployment.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any


# Conventional root CA layout under the workspace
CA_FILES_FOLDER = "ca"
SERVICE_FILES_FOLDER = "service"
CA_ROOT_FOLDER = "root"
CA_ROOT_PEM_FILE = "ca.pem"
CA_ROOT_KEY_FILE = "ca-key.pem"
CA_ROOT_CONFIG_FILE = "ca-config.json"

SYSTEMD_SERVER_PATH = "/etc/systemd/system"
DEFAULT_SSH_PORT = 22


class ArtifactKind(Enum):
    """Files generated for one node of a component."""
    CSR_CONFIG = "csr-config"
    KEY = "key"
    CSR = "csr"
    CERTIFICATE = "certificate"
    SERVICE_UNIT = "service-unit"

    @property
    def is_ssl(self) -> bool:
        """True for everything that lands in the component's ssl directory."""
        return self is not ArtifactKind.SERVICE_UNIT

    def file_name(self, prefix: str) -> str:
        """File name of this artifact for a component file prefix (e.g. "etcd")."""
        return {
            ArtifactKind.CSR_CONFIG: f"{prefix}-csr.json",
            ArtifactKind.KEY: f"{prefix}-key.pem",
            ArtifactKind.CSR: f"{prefix}.csr",
            ArtifactKind.CERTIFICATE: f"{prefix}.pem",
            ArtifactKind.SERVICE_UNIT: f"{prefix}.service",
        }[self]


class ActivationMode(Enum):
    """How a component's service is started across its nodes."""
    PARALLEL = "parallel"  # Quorum-forming services
    SERIAL = "serial"


@dataclass(frozen=True)
class RootCA:
    """File paths of the root certificate authority. Never written by ClusterSeed."""
    cert_path: str
    key_path: str
    config_path: str

    @classmethod
    def from_workspace(cls, workspace_root: str) -> "RootCA":
        """Resolve the conventional <root>/ca/root layout."""
        base = Path(workspace_root) / CA_FILES_FOLDER / CA_ROOT_FOLDER
        return cls(
            cert_path=str(base / CA_ROOT_PEM_FILE),
            key_path=str(base / CA_ROOT_KEY_FILE),
            config_path=str(base / CA_ROOT_CONFIG_FILE),
        )


@dataclass(frozen=True)
class Node:
    """A provisioning target."""
    ip: str
    ssh_user: str = "root"
    ssh_key: Optional[str] = None  # Path to a private key file


@dataclass
class Infra:
    """
    The part of a deployment descriptor one component deploy consumes.

    Attributes:
        name: Component name, e.g. "etcd"
        version: Template version key, e.g. "etcd-3.3.8"
        master: Number of nodes (from the head of the node list) to deploy on
    """
    name: str
    version: str
    master: int


@dataclass
class ComponentEndpoint:
    """Per-node template input."""
    ip: str
    name: str
    nodes: str  # Peer list (store) or upstream client endpoints (agent)

    def template_data(self) -> Dict[str, str]:
        """Placeholder values used when rendering templates."""
        return {
            "IP": self.ip,
            "NAME": self.name,
            "NODES": self.nodes,
        }


@dataclass(frozen=True)
class Artifact:
    """A generated file and where it goes on the node."""
    kind: ArtifactKind
    local_path: str
    remote_path: str


@dataclass
class NodeArtifacts:
    """All artifacts generated for one node."""
    node: Node
    artifacts: Dict[ArtifactKind, Artifact] = field(default_factory=dict)

    def add(self, artifact: Artifact):
        """Register an artifact for this node."""
        self.artifacts[artifact.kind] = artifact

    def get(self, kind: ArtifactKind) -> Optional[Artifact]:
        return self.artifacts.get(kind)

    def mappings(self) -> List[Dict[str, str]]:
        """src/dest mappings in a stable artifact order."""
        return [
            {"src": self.artifacts[kind].local_path, "dest": self.artifacts[kind].remote_path}
            for kind in ArtifactKind
            if kind in self.artifacts
        ]

    def to_dict(self) -> Dict:
        """Convert to dictionary for logging."""
        return {
            "node": self.node.ip,
            "artifacts": {kind.value: a.local_path for kind, a in self.artifacts.items()}
        }


@dataclass
class EndpointSet:
    """Aggregated endpoints published by a component."""
    client: List[str] = field(default_factory=list)
    peer: List[str] = field(default_factory=list)

    @property
    def client_string(self) -> str:
        return ",".join(self.client)

    @property
    def peer_string(self) -> str:
        return ",".join(self.peer)

    def __len__(self) -> int:
        return len(self.client)


class DeploymentOutputs:
    """
    Output sink shared by the components of one deployment.

    Values are stored per component and can also be looked up by key alone,
    which is how a later component reads an earlier one's endpoints.
    """

    def __init__(self):
        self._outputs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def output(self, component: str, key: str, value: Any):
        """Record an output value for a component."""
        with self._lock:
            self._outputs.setdefault(component, {})[key] = value

    def component(self, component: str) -> Dict[str, Any]:
        """All outputs published by one component."""
        with self._lock:
            return dict(self._outputs.get(component, {}))

    def get(self, key: str, default: Any = None) -> Any:
        """Look up an output by key across all components."""
        with self._lock:
            for values in self._outputs.values():
                if key in values:
                    return values[key]
        return default

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {name: dict(values) for name, values in self._outputs.items()}
