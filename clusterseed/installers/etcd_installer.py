# START OF FILE clusterseed/installers/etcd_installer.py
"""
etcd profile for ClusterSeed.

etcd is the cluster's coordination store. Its members must start together to
form a quorum, so activation is parallel and at least two members are
required.
"""

from clusterseed.installers.base_installer import ComponentProfile
from clusterseed.models import ActivationMode

# Minimal etcd member count
ETCD_MINIMAL_NODES = 2
ETCD_CLIENT_PORT = 2379
ETCD_PEER_PORT = 2380

ETCD_PROFILE = ComponentProfile(
    name="etcd",
    output_prefix="Etcd",
    node_name_prefix="etcd-node",
    csr_template="etcd-csr",
    systemd_template="etcd-systemd",
    ca_folder="etcd",
    service_folder="etcd",
    remote_config_dir="/etc/etcd",
    min_nodes=ETCD_MINIMAL_NODES,
    limit_to_pool=True,
    client_port=ETCD_CLIENT_PORT,
    peer_port=ETCD_PEER_PORT,
    activation_mode=ActivationMode.PARALLEL,
)
