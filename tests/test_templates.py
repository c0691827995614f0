import json
import unittest

from clusterseed.errors import TemplateError
from clusterseed.models import ComponentEndpoint
from clusterseed.templates import BUILTIN_TEMPLATES, ArtifactRenderer, TemplateRegistry

DATA = ComponentEndpoint(
    ip="10.0.0.1",
    name="etcd-node-0",
    nodes="etcd-node-0=https://10.0.0.1:2380,etcd-node-1=https://10.0.0.2:2380",
).template_data()


class TestTemplateRegistry(unittest.TestCase):
    def test_builtin_versions(self):
        registry = TemplateRegistry()
        self.assertEqual(registry.versions("etcd-systemd"), ["etcd-3.2.8", "etcd-3.3.8"])
        self.assertEqual(registry.versions("flanneld-before"), ["flannel-0.9.1"])

    def test_unknown_version_permissive(self):
        registry = TemplateRegistry()
        with self.assertLogs("clusterseed.templates", level="WARNING"):
            self.assertEqual(registry.lookup("etcd-9.9.9", "etcd-csr"), "")

    def test_unknown_version_strict(self):
        with self.assertRaises(TemplateError):
            TemplateRegistry(strict=True).lookup("etcd-9.9.9", "etcd-csr")

    def test_unknown_name_always_fails(self):
        for strict in (True, False):
            with self.assertRaises(TemplateError):
                TemplateRegistry(strict=strict).lookup("etcd-3.3.8", "kube-apiserver-csr")

    def test_register(self):
        registry = TemplateRegistry()
        registry.register("etcd-systemd", "etcd-3.4.0", "[Unit]\nDescription=${NAME}\n")
        self.assertIn("etcd-3.4.0", registry.versions("etcd-systemd"))
        self.assertNotIn("etcd-3.4.0", BUILTIN_TEMPLATES["etcd-systemd"])


class TestArtifactRenderer(unittest.TestCase):
    def setUp(self):
        self.renderer = ArtifactRenderer(TemplateRegistry())

    def test_csr_renders_to_request(self):
        document = json.loads(self.renderer.render("etcd-3.3.8", "etcd-csr", DATA))
        self.assertEqual(document["CN"], "etcd")
        self.assertEqual(document["hosts"], ["127.0.0.1", "10.0.0.1"])
        self.assertEqual(document["key"], {"algo": "rsa", "size": 2048})

    def test_systemd_versions_differ(self):
        old = self.renderer.render("etcd-3.2.8", "etcd-systemd", DATA).decode()
        new = self.renderer.render("etcd-3.3.8", "etcd-systemd", DATA).decode()

        self.assertNotIn("--auto-compaction-retention", old)
        self.assertIn("--auto-compaction-retention=1", new)
        for unit in (old, new):
            self.assertIn("--name=etcd-node-0", unit)
            self.assertIn(f"--initial-cluster={DATA['NODES']}", unit)
            self.assertNotIn("$", unit)

    def test_render_is_deterministic(self):
        first = self.renderer.render("etcd-3.3.8", "etcd-systemd", DATA)
        second = self.renderer.render("etcd-3.3.8", "etcd-systemd", DATA)
        self.assertEqual(first, second)

    def test_missing_placeholder_value(self):
        with self.assertRaises(TemplateError):
            ArtifactRenderer.render_text("--name=${NAME} --ip=${IP}", {"NAME": "etcd-node-0"})

    def test_bare_and_braced_markers(self):
        self.assertEqual(ArtifactRenderer.render_text("ip=$IP name=${NAME}", DATA), "ip=10.0.0.1 name=etcd-node-0")

    def test_malformed_marker(self):
        with self.assertRaises(TemplateError):
            ArtifactRenderer.render_text("cost=$5", DATA)

    def test_unknown_version_renders_empty(self):
        self.assertEqual(self.renderer.render("flannel-9.9.9", "flanneld-csr", DATA), b"")


if __name__ == '__main__':
    unittest.main()
