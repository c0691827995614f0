# START OF FILE clusterseed/errors.py
"""
Error types for ClusterSeed.

Every failure raised by the bootstrap pipeline derives from ClusterSeedError
so callers can decide whether to retry a component or abort the cluster.
"""

from typing import Dict, Optional


class ClusterSeedError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(ClusterSeedError):
    """Node pool or deployment inputs do not satisfy the component's constraints."""


class WorkspaceError(ClusterSeedError):
    """The local artifact workspace could not be purged or recreated."""


class TemplateError(ClusterSeedError):
    """A template could not be found or rendered."""


class RequestError(ClusterSeedError):
    """A rendered certificate signing request is not a well-formed request."""


class SigningError(ClusterSeedError):
    """The root CA could not be loaded or refused to sign."""


class RemoteCommandError(ClusterSeedError):
    """A command or file transfer on a remote host failed."""

    def __init__(self, host: str, message: str, exit_code: Optional[int] = None):
        self.host = host
        self.exit_code = exit_code
        super().__init__(f"{host}: {message}")


class DistributionError(ClusterSeedError):
    """Artifacts could not be pushed to a node."""


class ActivationError(ClusterSeedError):
    """The service could not be enabled or started on a node."""


class DeploymentError(ClusterSeedError):
    """
    A pipeline stage failed on one or more nodes.

    Only the first error observed is reported in the message; the full set is
    kept in ``errors`` keyed by node IP.
    """

    def __init__(
        self,
        component: str,
        stage: str,
        errors: Dict[str, Exception],
        first_error: Exception
    ):
        self.component = component
        self.stage = stage
        self.errors = dict(errors)
        self.first_error = first_error

        message = f"{component} {stage} failed: {first_error}"
        if len(self.errors) > 1:
            message += f" (and {len(self.errors) - 1} more node error(s))"
        super().__init__(message)
