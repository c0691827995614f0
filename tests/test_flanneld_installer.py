import shutil
import tempfile
import unittest

from helpers import FakeRemote, create_root_ca

from clusterseed.config import Settings
from clusterseed.deployer import ComponentDeployer, DeployState
from clusterseed.errors import ActivationError, ConfigurationError, DeploymentError
from clusterseed.installers import ETCD_PROFILE, FLANNELD_PROFILE, get_profile
from clusterseed.models import ActivationMode, DeploymentOutputs, Infra, Node

NODES = [Node("10.0.0.1"), Node("10.0.0.2"), Node("10.0.0.3")]
ETCD_ENDPOINTS = "https://10.0.0.1:2379,https://10.0.0.2:2379,https://10.0.0.3:2379"

ACTIVATE = [
    "systemctl daemon-reload",
    "systemctl enable flanneld",
    "systemctl start --no-block flanneld",
]
MKDIR = "mkdir -p /etc/flanneld/ssl /etc/systemd/system"


class TestFlanneldDeployer(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp(prefix="clusterseed_flannel_")
        create_root_ca(self.test_dir)
        self.config = Settings(workspace_root=self.test_dir)
        self.remote = FakeRemote()
        self.outputs = DeploymentOutputs()
        self.outputs.output("etcd", "EtcdEndpoints", ETCD_ENDPOINTS)

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def deploy(self, master=3, remote=None, outputs=None):
        remote = remote or self.remote
        deployer = ComponentDeployer(FLANNELD_PROFILE, remote, remote, config=self.config)
        deployer.deploy(NODES, Infra("flanneld", "flannel-0.9.1", master), outputs or self.outputs)
        return deployer

    def test_profile(self):
        self.assertIs(get_profile("flanneld"), FLANNELD_PROFILE)
        self.assertIs(get_profile("etcd"), ETCD_PROFILE)
        self.assertEqual(FLANNELD_PROFILE.activation_mode, ActivationMode.SERIAL)
        self.assertFalse(FLANNELD_PROFILE.publishes_endpoints)
        with self.assertRaises(KeyError):
            get_profile("kube-apiserver")

    def test_network_config_written_from_first_node(self):
        self.deploy()

        first = self.remote.commands["10.0.0.1"]
        self.assertEqual(first[0], MKDIR)
        self.assertTrue(first[1].startswith(f"etcdctl --endpoints={ETCD_ENDPOINTS} "))
        self.assertIn("set /kubernetes/network/config", first[1])
        self.assertEqual(first[2:], ACTIVATE)

        for ip in ("10.0.0.2", "10.0.0.3"):
            self.assertEqual(self.remote.commands[ip], [MKDIR] + ACTIVATE)

    def test_activation_is_serial_in_node_order(self):
        self.deploy()

        enables = [call[1] for call in self.remote.calls if call[2] == "systemctl enable flanneld"]
        self.assertEqual(enables, ["10.0.0.1", "10.0.0.2", "10.0.0.3"])

    def test_unit_points_at_etcd(self):
        self.deploy()

        unit = self.remote.pushed_files("10.0.0.2")["/etc/systemd/system/flanneld.service"].decode()
        self.assertIn(f"-etcd-endpoints={ETCD_ENDPOINTS}", unit)
        self.assertIn("-public-ip=10.0.0.2", unit)

    def test_publishes_no_outputs(self):
        deployer = self.deploy()

        self.assertEqual(deployer.state, DeployState.DONE)
        self.assertEqual(self.outputs.component("flanneld"), {})
        self.assertEqual(set(self.outputs.to_dict()), {"etcd"})

    def test_master_beyond_pool_uses_whole_pool(self):
        deployer = self.deploy(master=5)
        self.assertEqual(sorted(deployer.artifacts), ["10.0.0.1", "10.0.0.2", "10.0.0.3"])

    def test_single_node(self):
        deployer = self.deploy(master=1)
        self.assertEqual(list(deployer.artifacts), ["10.0.0.1"])
        self.assertEqual(self.remote.hosts(), ["10.0.0.1"])

    def test_requires_etcd_endpoints(self):
        with self.assertRaises(ConfigurationError):
            self.deploy(outputs=DeploymentOutputs())
        self.assertEqual(self.remote.calls, [])

    def test_network_config_failure_blocks_activation(self):
        remote = FakeRemote(fail_hosts={"10.0.0.1"}, fail_pattern="etcdctl")

        with self.assertRaises(DeploymentError) as ctx:
            self.deploy(remote=remote)

        self.assertEqual(ctx.exception.stage, "activate")
        self.assertIsInstance(ctx.exception.first_error, ActivationError)
        self.assertFalse(any("systemctl" in call[2] for call in remote.calls if call[0] == "run"))

    def test_serial_activation_visits_every_node(self):
        remote = FakeRemote(fail_hosts={"10.0.0.1"}, fail_pattern="systemctl start")

        with self.assertRaises(DeploymentError) as ctx:
            self.deploy(remote=remote)

        self.assertEqual(list(ctx.exception.errors), ["10.0.0.1"])
        self.assertEqual(remote.commands["10.0.0.2"][-3:], ACTIVATE)
        self.assertEqual(remote.commands["10.0.0.3"][-3:], ACTIVATE)


if __name__ == '__main__':
    unittest.main()
