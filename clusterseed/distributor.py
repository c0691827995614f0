# START OF FILE clusterseed/distributor.py
"""
Pushes generated artifacts to nodes.

The remote directories of a node's artifacts are always created before the
upload, for every component.
"""

import logging
import posixpath
import shlex
from typing import List, Optional

from clusterseed.errors import DistributionError, RemoteCommandError
from clusterseed.fanout import FanOutExecutor, FanOutResult
from clusterseed.models import DEFAULT_SSH_PORT, NodeArtifacts
from clusterseed.remote import FilePusher, RemoteExecutor

logger = logging.getLogger(__name__)


class RemoteDistributor:
    """Copies one node's artifact set to its remote destinations."""

    def __init__(
        self,
        executor: RemoteExecutor,
        pusher: FilePusher,
        default_key: Optional[str] = None,
        ssh_port: int = DEFAULT_SSH_PORT
    ):
        self.executor = executor
        self.pusher = pusher
        self.default_key = default_key
        self.ssh_port = ssh_port

    @staticmethod
    def remote_directories(node_artifacts: NodeArtifacts) -> List[str]:
        """Distinct parent directories of the node's remote paths, sorted."""
        return sorted({
            posixpath.dirname(artifact.remote_path)
            for artifact in node_artifacts.artifacts.values()
        })

    def distribute(self, node_artifacts: NodeArtifacts) -> NodeArtifacts:
        """
        Ensure remote directories exist and upload all artifacts of a node.

        Raises:
            DistributionError: If directory creation or any upload fails
        """
        node = node_artifacts.node
        key = node.ssh_key or self.default_key
        mappings = node_artifacts.mappings()

        if not mappings:
            logger.warning(f"No artifacts to distribute to {node.ip}")
            return node_artifacts

        directories = self.remote_directories(node_artifacts)
        mkdir = "mkdir -p " + " ".join(shlex.quote(d) for d in directories)

        try:
            self.executor.run_commands(node.ssh_user, key, node.ip, self.ssh_port, [mkdir])
        except RemoteCommandError as e:
            raise DistributionError(f"failed to create remote directories on {node.ip}: {e}") from e

        try:
            self.pusher.push_files(mappings, node.ip, key, node.ssh_user)
        except RemoteCommandError as e:
            raise DistributionError(f"failed to push artifacts to {node.ip}: {e}") from e

        logger.info(
            f"Distributed {len(mappings)} artifact(s) to {node.ip}",
            extra={"context": {"node": node.ip, "stage": "distribute"}}
        )
        return node_artifacts

    def distribute_all(
        self,
        node_artifacts: List[NodeArtifacts],
        fanout: Optional[FanOutExecutor] = None
    ) -> FanOutResult:
        """Distribute to every node concurrently; results keyed by node IP."""
        fanout = fanout or FanOutExecutor(name="distribute")
        return fanout.run(node_artifacts, self.distribute, key=lambda na: na.node.ip)
