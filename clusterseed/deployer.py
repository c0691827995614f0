# START OF FILE clusterseed/deployer.py
"""
Component Deployment Orchestrator for ClusterSeed.

Deploys one component across its nodes in fixed stages:

    VALIDATE -> CLEAN -> GENERATE -> DISTRIBUTE -> ACTIVATE -> DONE

Any stage may end in FAILED. Each stage fully drains before the next one
starts; GENERATE, DISTRIBUTE and (for quorum services) ACTIVATE run their
per-node work concurrently. Nothing is rolled back on failure.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from clusterseed.activator import ServiceActivator
from clusterseed.config import Settings, settings as default_settings
from clusterseed.distributor import RemoteDistributor
from clusterseed.errors import ConfigurationError, DeploymentError
from clusterseed.fanout import FailurePolicy, FanOutExecutor, FanOutResult
from clusterseed.installers.base_installer import (
    ActivationContext,
    ComponentProfile,
    PreActivationHook,
    build_endpoint_set,
)
from clusterseed.manage_certs import CertificateAuthorityIssuer
from clusterseed.models import (
    Artifact,
    ArtifactKind,
    ComponentEndpoint,
    DeploymentOutputs,
    EndpointSet,
    Infra,
    Node,
    NodeArtifacts,
    RootCA,
)
from clusterseed.remote import FilePusher, RemoteExecutor
from clusterseed.ssh_manager import SSHManager
from clusterseed.templates import ArtifactRenderer, TemplateRegistry
from clusterseed.workspace import Workspace

logger = logging.getLogger(__name__)


class DeployState(Enum):
    """Stages of a component deployment."""
    VALIDATE = "validate"
    CLEAN = "clean"
    GENERATE = "generate"
    DISTRIBUTE = "distribute"
    ACTIVATE = "activate"
    DONE = "done"
    FAILED = "failed"


class ComponentDeployer:
    """
    Deploys one component type onto a set of nodes.

    The component is described by a ComponentProfile; the remote side is
    reached through a RemoteExecutor and a FilePusher. Both default to one
    SSHManager built from the deployer's settings, so commands and uploads
    share its SSH port and timeouts.
    """

    def __init__(
        self,
        profile: ComponentProfile,
        executor: Optional[RemoteExecutor] = None,
        pusher: Optional[FilePusher] = None,
        root_ca: Optional[RootCA] = None,
        workspace_root: Optional[str] = None,
        registry: Optional[TemplateRegistry] = None,
        config: Optional[Settings] = None,
        default_key: Optional[str] = None,
        pre_activation_hooks: Sequence[PreActivationHook] = ()
    ):
        """
        Initialize deployer.

        Args:
            profile: Component to deploy
            executor: Remote command collaborator (default: SSHManager)
            pusher: Remote file collaborator (default: the same SSHManager)
            root_ca: Root CA files (default: <workspace>/ca/root)
            workspace_root: Local workspace (default from settings)
            registry: Template registry (default: built-in templates)
            config: Settings (default: global settings)
            default_key: SSH key for nodes without their own
            pre_activation_hooks: Extra hooks run after the profile's own,
                e.g. downloading the component binary onto the nodes
        """
        self.profile = profile
        self.config = config or default_settings
        if executor is None or pusher is None:
            ssh = SSHManager(self.config)
            executor = executor or ssh
            pusher = pusher or ssh
        self.executor = executor
        self.pusher = pusher
        self.workspace_root = workspace_root or self.config.workspace_root
        self.root_ca = root_ca or RootCA.from_workspace(self.workspace_root)
        self.registry = registry or TemplateRegistry(strict=self.config.strict_templates)
        self.renderer = ArtifactRenderer(self.registry)
        self.default_key = default_key or self.config.ssh_private_key
        self.hooks: List[PreActivationHook] = list(profile.pre_activation_hooks) + list(pre_activation_hooks)

        self.workspace = Workspace(self.workspace_root, profile.ca_folder, profile.service_folder)

        self.state = DeployState.VALIDATE
        self.history: List[DeployState] = []
        self.error: Optional[Exception] = None
        self.artifacts: Dict[str, NodeArtifacts] = {}
        self.endpoints = EndpointSet()

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    def _enter(self, state: DeployState):
        self.state = state
        self.history.append(state)
        logger.debug(
            f"{self.profile.name}: entering {state.value}",
            extra={"context": {"component": self.profile.name, "stage": state.value}}
        )

    def _fail(self, error: Exception):
        failed_stage = self.state
        self.error = error
        self._enter(DeployState.FAILED)
        logger.error(
            f"{self.profile.name} deployment failed during {failed_stage.value}: {error}",
            extra={"context": {"component": self.profile.name, "stage": failed_stage.value}}
        )

    def _fanout(self, stage: DeployState) -> FanOutExecutor:
        policy = FailurePolicy.CANCEL_PENDING if self.config.fanout_cancel_pending else FailurePolicy.WAIT_ALL
        return FanOutExecutor(
            max_workers=self.config.fanout_max_workers,
            policy=policy,
            name=f"{self.profile.name}-{stage.value}"
        )

    def _check(self, stage: DeployState, result: FanOutResult):
        """Turn a fan-out result with failures into a DeploymentError."""
        if result.ok:
            return

        first = result.first_error
        raise DeploymentError(self.profile.name, stage.value, result.errors, first) from first

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def select_nodes(self, nodes: List[Node], infra: Infra) -> List[Node]:
        """
        Check node-count constraints and pick the component's nodes.

        Raises:
            ConfigurationError: Constraints not met
        """
        profile = self.profile

        if profile.limit_to_pool and infra.master > len(nodes):
            raise ConfigurationError(
                f"deploy {infra.name} nodes more than {len(nodes)}"
            )
        if infra.master < profile.min_nodes:
            raise ConfigurationError(
                f"{profile.name} needs no less than {profile.min_nodes} node(s), got {infra.master}"
            )

        selected = nodes[:infra.master]
        if len(selected) < profile.min_nodes:
            raise ConfigurationError(
                f"{profile.name} needs no less than {profile.min_nodes} node(s), "
                f"only {len(selected)} available"
            )

        ips = [node.ip for node in selected]
        if len(set(ips)) != len(ips):
            raise ConfigurationError(f"duplicate node IPs in {profile.name} node list: {ips}")

        return selected

    def upstream_endpoints(self, outputs: DeploymentOutputs) -> Optional[str]:
        """
        Endpoints published by the component this one depends on.

        Raises:
            ConfigurationError: The upstream output is missing
        """
        if not self.profile.upstream_output:
            return None

        value = outputs.get(self.profile.upstream_output)
        if not value:
            raise ConfigurationError(
                f"{self.profile.name} requires output {self.profile.upstream_output}; "
                f"deploy its upstream component first"
            )
        return value

    def generate_node(
        self,
        issuer: CertificateAuthorityIssuer,
        version: str,
        index: int,
        node: Node,
        template_nodes: str
    ) -> NodeArtifacts:
        """Issue the node's certificate and render its service unit."""
        profile = self.profile
        self.workspace.prepare_node(node.ip)

        endpoint = ComponentEndpoint(ip=node.ip, name=profile.node_name(index), nodes=template_nodes)
        data = endpoint.template_data()

        csr_document = self.renderer.render(version, profile.csr_template, data)
        issued = issuer.issue(csr_document)

        result = NodeArtifacts(node=node)
        for kind, content in (
            (ArtifactKind.CSR_CONFIG, csr_document),
            (ArtifactKind.KEY, issued.key),
            (ArtifactKind.CSR, issued.csr),
            (ArtifactKind.CERTIFICATE, issued.certificate),
        ):
            path = self.workspace.write_ca_file(node.ip, profile.file_name(kind), content)
            result.add(Artifact(kind=kind, local_path=str(path), remote_path=profile.remote_path(kind)))

        unit = self.renderer.render(version, profile.systemd_template, data)
        kind = ArtifactKind.SERVICE_UNIT
        path = self.workspace.write_service_file(node.ip, profile.file_name(kind), unit)
        result.add(Artifact(kind=kind, local_path=str(path), remote_path=profile.remote_path(kind)))

        logger.debug(f"Generated {profile.name} artifacts for {node.ip}: {result.to_dict()}")
        return result

    def generate(self, nodes: List[Node], version: str, template_nodes: str) -> List[NodeArtifacts]:
        """Generate artifacts for all nodes concurrently."""
        issuer = CertificateAuthorityIssuer(self.root_ca, profile=self.config.signing_profile)

        def work(item: Tuple[int, Node]) -> NodeArtifacts:
            index, node = item
            return self.generate_node(issuer, version, index, node, template_nodes)

        result = self._fanout(DeployState.GENERATE).run(
            list(enumerate(nodes)), work, key=lambda item: item[1].ip
        )
        self._check(DeployState.GENERATE, result)

        self.artifacts = {ip: result.results[ip] for ip in (node.ip for node in nodes)}
        return [self.artifacts[node.ip] for node in nodes]

    def distribute(self, node_artifacts: List[NodeArtifacts]):
        """Push every node's artifacts concurrently."""
        distributor = RemoteDistributor(
            self.executor, self.pusher, default_key=self.default_key, ssh_port=self.config.ssh_port
        )
        result = distributor.distribute_all(node_artifacts, self._fanout(DeployState.DISTRIBUTE))
        self._check(DeployState.DISTRIBUTE, result)

    def activate(self, nodes: List[Node], version: str, upstream: Optional[str]):
        """Run pre-activation hooks, then start the service."""
        context = ActivationContext(
            profile=self.profile,
            nodes=nodes,
            version=version,
            renderer=self.renderer,
            executor=self.executor,
            endpoints=self.endpoints,
            upstream_endpoints=upstream,
            default_key=self.default_key,
            ssh_port=self.config.ssh_port,
        )
        for hook in self.hooks:
            name = getattr(hook, "__name__", repr(hook))
            logger.info(f"Running {self.profile.name} pre-activation hook {name}")
            try:
                hook(context)
            except Exception as e:
                raise DeploymentError(self.profile.name, DeployState.ACTIVATE.value, {name: e}, e) from e

        activator = ServiceActivator(
            self.executor,
            self.profile.unit,
            mode=self.profile.activation_mode,
            default_key=self.default_key,
            ssh_port=self.config.ssh_port,
        )
        result = activator.activate(nodes, self._fanout(DeployState.ACTIVATE))
        self._check(DeployState.ACTIVATE, result)

    def publish(self, outputs: DeploymentOutputs):
        """Write the component's endpoint outputs."""
        if not self.profile.publishes_endpoints:
            return

        outputs.output(self.profile.name, self.profile.endpoints_output, self.endpoints.client_string)
        outputs.output(self.profile.name, self.profile.peer_endpoints_output, self.endpoints.peer_string)
        logger.info(f"{self.profile.endpoints_output}: {self.endpoints.client_string}")
        logger.info(f"{self.profile.peer_endpoints_output}: {self.endpoints.peer_string}")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def deploy(self, nodes: List[Node], infra: Infra, outputs: DeploymentOutputs) -> EndpointSet:
        """
        Run the whole pipeline for the component.

        Args:
            nodes: Node pool of the deployment, in index order
            infra: Component name, template version and master count
            outputs: Shared deployment outputs (read for upstream endpoints,
                written with this component's endpoints)

        Returns:
            The EndpointSet published by the component (empty if it publishes none)

        Raises:
            ConfigurationError: Node constraints or upstream outputs not satisfied
            WorkspaceError: The local workspace could not be reset
            DeploymentError: A per-node stage or pre-activation hook failed;
                carries every node error
        """
        profile = self.profile
        self.history = []
        self.error = None
        self.artifacts = {}

        try:
            self._enter(DeployState.VALIDATE)
            selected = self.select_nodes(nodes, infra)
            upstream = self.upstream_endpoints(outputs)
            self.endpoints = build_endpoint_set(profile, selected, infra.master)
            template_nodes = upstream if upstream is not None else self.endpoints.peer_string

            logger.info(
                f"Deploying {profile.name} ({infra.version}) on {len(selected)} node(s): "
                f"{', '.join(n.ip for n in selected)}"
            )

            self._enter(DeployState.CLEAN)
            self.workspace.reset()

            self._enter(DeployState.GENERATE)
            node_artifacts = self.generate(selected, infra.version, template_nodes)
            logger.info(f"{profile.name} CA/systemd files generated for {len(node_artifacts)} node(s)")

            self._enter(DeployState.DISTRIBUTE)
            self.distribute(node_artifacts)

            self._enter(DeployState.ACTIVATE)
            self.activate(selected, infra.version, upstream)

            self._enter(DeployState.DONE)
            self.publish(outputs)
        except Exception as e:
            self._fail(e)
            raise

        logger.info(f"✓ {profile.name} deployed on {len(selected)} node(s)")
        return self.endpoints
