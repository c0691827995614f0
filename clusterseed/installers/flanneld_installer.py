# START OF FILE clusterseed/installers/flanneld_installer.py
"""
flanneld profile for ClusterSeed.

flanneld is the overlay-network agent. It reads its peers from etcd, so it
consumes the "EtcdEndpoints" output and, before it is started, writes the
overlay network config into etcd from the first node.
"""

import logging

from clusterseed.errors import ActivationError, RemoteCommandError
from clusterseed.installers.base_installer import ActivationContext, ComponentProfile
from clusterseed.models import ActivationMode

logger = logging.getLogger(__name__)

FLANNELD_BEFORE_TEMPLATE = "flanneld-before"


def write_network_config(context: ActivationContext):
    """
    Render the version's "before" script and run it on the first node.

    Raises:
        ActivationError: If the script fails
    """
    if not context.nodes:
        return

    node = context.nodes[0]
    script = context.renderer.render(
        context.version,
        FLANNELD_BEFORE_TEMPLATE,
        {"NODES": context.upstream_endpoints or ""}
    ).decode("utf-8").strip()

    if not script:
        logger.warning(f"No network config script for version {context.version}; skipping")
        return

    logger.info(f"Writing overlay network config into etcd from {node.ip}")
    try:
        context.executor.run_commands(
            node.ssh_user,
            node.ssh_key or context.default_key,
            node.ip,
            context.ssh_port,
            [script]
        )
    except RemoteCommandError as e:
        raise ActivationError(f"flanneld network config failed on {node.ip}: {e}") from e


FLANNELD_PROFILE = ComponentProfile(
    name="flanneld",
    output_prefix="Flanneld",
    node_name_prefix="flanneld-node",
    csr_template="flanneld-csr",
    systemd_template="flanneld-systemd",
    ca_folder="flanneld",
    service_folder="flanneld",
    remote_config_dir="/etc/flanneld",
    min_nodes=1,
    limit_to_pool=False,
    upstream_output="EtcdEndpoints",
    pre_activation_hooks=(write_network_config,),
    activation_mode=ActivationMode.SERIAL,
)
