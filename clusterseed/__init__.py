# START OF FILE clusterseed/__init__.py
"""
ClusterSeed: bootstraps TLS-secured etcd and flanneld onto cluster nodes.

Issues per-node certificates from a private root CA, renders version-pinned
systemd units, pushes both over SSH and starts the services.
"""

from clusterseed.deployer import ComponentDeployer, DeployState
from clusterseed.errors import (
    ActivationError,
    ClusterSeedError,
    ConfigurationError,
    DeploymentError,
    DistributionError,
    RemoteCommandError,
    RequestError,
    SigningError,
    TemplateError,
    WorkspaceError,
)
from clusterseed.installers import ETCD_PROFILE, FLANNELD_PROFILE, get_profile
from clusterseed.logging_utils import setup_module_logging
from clusterseed.models import DeploymentOutputs, EndpointSet, Infra, Node, RootCA
from clusterseed.ssh_manager import SSHManager

__version__ = "0.1.0"

__all__ = [
    "ComponentDeployer",
    "DeployState",
    "ActivationError",
    "ClusterSeedError",
    "ConfigurationError",
    "DeploymentError",
    "DistributionError",
    "RemoteCommandError",
    "RequestError",
    "SigningError",
    "TemplateError",
    "WorkspaceError",
    "ETCD_PROFILE",
    "FLANNELD_PROFILE",
    "get_profile",
    "setup_module_logging",
    "DeploymentOutputs",
    "EndpointSet",
    "Infra",
    "Node",
    "RootCA",
    "SSHManager",
]
