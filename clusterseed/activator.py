# START OF FILE clusterseed/activator.py
"""
Remote service activation.

Quorum-forming services are started on all nodes at once so members come up
together; independent agents are started one node at a time.
"""

import logging
from typing import List, Optional

from clusterseed.errors import ActivationError, RemoteCommandError
from clusterseed.fanout import FanOutExecutor, FanOutResult
from clusterseed.models import DEFAULT_SSH_PORT, ActivationMode, Node
from clusterseed.remote import RemoteExecutor

logger = logging.getLogger(__name__)


def activation_commands(unit: str) -> List[str]:
    """
    Commands that enable and start a systemd unit.

    --no-block keeps a quorum service from holding the session while it
    waits for its peers.
    """
    return [
        "systemctl daemon-reload",
        f"systemctl enable {unit}",
        f"systemctl start --no-block {unit}",
    ]


class ServiceActivator:
    """Runs the activation command sequence for one service unit."""

    def __init__(
        self,
        executor: RemoteExecutor,
        unit: str,
        mode: ActivationMode = ActivationMode.PARALLEL,
        default_key: Optional[str] = None,
        ssh_port: int = DEFAULT_SSH_PORT
    ):
        """
        Args:
            executor: Remote command collaborator
            unit: systemd unit name, e.g. "etcd"
            mode: Parallel (quorum) or serial activation
            default_key: Key used for nodes without their own
            ssh_port: SSH port
        """
        self.executor = executor
        self.unit = unit
        self.mode = mode
        self.default_key = default_key
        self.ssh_port = ssh_port

    @property
    def commands(self) -> List[str]:
        return activation_commands(self.unit)

    def activate_node(self, node: Node) -> Node:
        """
        Enable and start the unit on one node.

        Raises:
            ActivationError: If any command fails
        """
        logger.info(
            f"Starting {self.unit} on {node.ip}",
            extra={"context": {"component": self.unit, "node": node.ip}}
        )
        try:
            self.executor.run_commands(
                node.ssh_user,
                node.ssh_key or self.default_key,
                node.ip,
                self.ssh_port,
                self.commands
            )
        except RemoteCommandError as e:
            raise ActivationError(f"failed to start {self.unit} on {node.ip}: {e}") from e
        return node

    def activate(self, nodes: List[Node], fanout: Optional[FanOutExecutor] = None) -> FanOutResult:
        """
        Activate the unit on every node according to the activation mode.

        Both modes visit every node; the result keeps all errors and the
        first one observed.
        """
        if self.mode is ActivationMode.PARALLEL:
            fanout = fanout or FanOutExecutor(name=f"activate-{self.unit}")
            return fanout.run(nodes, self.activate_node, key=lambda n: n.ip)

        result = FanOutResult()
        for node in nodes:
            try:
                result.results[node.ip] = self.activate_node(node)
            except ActivationError as e:
                logger.warning(str(e))
                result.errors[node.ip] = e
                if result.first_error is None:
                    result.first_error = e
                    result.first_error_key = node.ip
        return result
