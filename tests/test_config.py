import os
import unittest
from unittest.mock import patch

from clusterseed.config import Settings


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Settings(_env_file=None)

        self.assertEqual(config.ssh_port, 22)
        self.assertFalse(config.strict_templates)
        self.assertFalse(config.fanout_cancel_pending)
        self.assertIsNone(config.fanout_max_workers)
        self.assertEqual(config.signing_profile, "kubernetes")
        self.assertTrue(config.workspace_root.endswith(os.path.join(".clusterseed", "workspace")))

    def test_environment_overrides(self):
        env = {
            "CLUSTERSEED_WORKSPACE_ROOT": "/srv/seed",
            "CLUSTERSEED_STRICT_TEMPLATES": "true",
            "CLUSTERSEED_FANOUT_MAX_WORKERS": "4",
            "CLUSTERSEED_SSH_PRIVATE_KEY": "/keys/id_ed25519",
        }
        with patch.dict(os.environ, env, clear=True):
            config = Settings(_env_file=None)

        self.assertEqual(config.workspace_root, "/srv/seed")
        self.assertTrue(config.strict_templates)
        self.assertEqual(config.fanout_max_workers, 4)
        self.assertEqual(config.ssh_private_key, "/keys/id_ed25519")


if __name__ == '__main__':
    unittest.main()
