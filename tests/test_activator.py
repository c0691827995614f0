import unittest

from helpers import FakeRemote

from clusterseed.activator import ServiceActivator, activation_commands
from clusterseed.errors import ActivationError
from clusterseed.models import ActivationMode, Node

NODES = [Node("10.0.0.1"), Node("10.0.0.2"), Node("10.0.0.3")]


class TestServiceActivator(unittest.TestCase):
    def test_command_sequence(self):
        self.assertEqual(activation_commands("etcd"), [
            "systemctl daemon-reload",
            "systemctl enable etcd",
            "systemctl start --no-block etcd",
        ])

    def test_parallel_activates_every_node(self):
        remote = FakeRemote()
        result = ServiceActivator(remote, "etcd").activate(NODES)

        self.assertTrue(result.ok)
        self.assertEqual(sorted(result.results), ["10.0.0.1", "10.0.0.2", "10.0.0.3"])
        for node in NODES:
            self.assertEqual(remote.commands[node.ip], activation_commands("etcd"))

    def test_serial_keeps_node_order(self):
        remote = FakeRemote()
        ServiceActivator(remote, "flanneld", mode=ActivationMode.SERIAL).activate(NODES)

        hosts = [call[1] for call in remote.calls]
        self.assertEqual(hosts, ["10.0.0.1"] * 3 + ["10.0.0.2"] * 3 + ["10.0.0.3"] * 3)

    def test_serial_continues_after_failure(self):
        remote = FakeRemote(fail_hosts={"10.0.0.1", "10.0.0.3"}, fail_pattern="daemon-reload")
        result = ServiceActivator(remote, "flanneld", mode=ActivationMode.SERIAL).activate(NODES)

        self.assertEqual(sorted(result.errors), ["10.0.0.1", "10.0.0.3"])
        self.assertEqual(result.first_error_key, "10.0.0.1")
        self.assertIsInstance(result.first_error, ActivationError)
        self.assertEqual(list(result.results), ["10.0.0.2"])
        self.assertEqual(remote.commands["10.0.0.2"], activation_commands("flanneld"))

    def test_parallel_failure_reported(self):
        remote = FakeRemote(fail_hosts={"10.0.0.2"})
        result = ServiceActivator(remote, "etcd").activate(NODES)

        self.assertEqual(result.first_error_key, "10.0.0.2")
        self.assertEqual(remote.commands["10.0.0.1"], activation_commands("etcd"))
        self.assertEqual(remote.commands["10.0.0.3"], activation_commands("etcd"))

    def test_activate_node_wraps_remote_error(self):
        remote = FakeRemote(fail_hosts={"10.0.0.1"}, fail_pattern="enable")

        with self.assertRaises(ActivationError) as ctx:
            ServiceActivator(remote, "etcd").activate_node(NODES[0])

        self.assertIn("etcd", str(ctx.exception))
        self.assertEqual(remote.commands["10.0.0.1"], ["systemctl daemon-reload", "systemctl enable etcd"])

    def test_default_key(self):
        remote = FakeRemote()
        ServiceActivator(remote, "etcd", default_key="/keys/id_rsa").activate_node(NODES[0])
        self.assertEqual(remote.keys["10.0.0.1"], {"/keys/id_rsa"})


if __name__ == '__main__':
    unittest.main()
