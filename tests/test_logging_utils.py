import json
import logging
import shutil
import tempfile
import unittest
from pathlib import Path

from clusterseed.logging_utils import ColoredConsoleFormatter, StructuredFormatter, setup_module_logging


def make_record(message, **extra):
    record = logging.LogRecord("clusterseed.deployer", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters(unittest.TestCase):
    def test_structured_includes_context(self):
        record = make_record("Deploying etcd", context={"component": "etcd", "stage": "generate"})
        data = json.loads(StructuredFormatter().format(record))

        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["logger"], "clusterseed.deployer")
        self.assertEqual(data["message"], "Deploying etcd")
        self.assertEqual(data["context"], {"component": "etcd", "stage": "generate"})

    def test_structured_skips_unserializable_extra(self):
        record = make_record("x", node_ip="10.0.0.1", handle=object())
        data = json.loads(StructuredFormatter().format(record))

        self.assertEqual(data["node_ip"], "10.0.0.1")
        self.assertNotIn("handle", data)

    def test_console_appends_context(self):
        record = make_record("entering generate", context={"component": "etcd"})
        output = ColoredConsoleFormatter().format(record)

        self.assertIn("entering generate [component=etcd]", output)
        self.assertIn("INFO", output)


class TestSetupModuleLogging(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp(prefix="clusterseed_logs_")
        self.root_logger = logging.getLogger()
        self.saved_handlers = list(self.root_logger.handlers)
        self.saved_level = self.root_logger.level

    def tearDown(self):
        for handler in self.root_logger.handlers:
            handler.close()
        self.root_logger.handlers = self.saved_handlers
        self.root_logger.setLevel(self.saved_level)
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_file_logging(self):
        log_file = setup_module_logging(
            "clusterseed",
            log_dir=self.test_dir,
            enable_console=False,
            enable_file=True,
            enable_json=True,
        )

        self.assertIsNotNone(log_file)
        self.assertTrue(log_file.name.startswith("clusterseed_"))
        logging.getLogger("clusterseed.test").error("node down", extra={"context": {"ip": "10.0.0.1"}})
        for handler in self.root_logger.handlers:
            handler.flush()

        lines = Path(log_file).read_text().splitlines()
        last = json.loads(lines[-1])
        self.assertEqual(last["message"], "node down")
        self.assertEqual(last["context"], {"ip": "10.0.0.1"})

        errors = list(Path(self.test_dir).glob("clusterseed_errors_*.log"))
        self.assertEqual(len(errors), 1)
        self.assertIn("node down", errors[0].read_text())

    def test_console_only(self):
        log_file = setup_module_logging("clusterseed", enable_console=True, enable_file=False)

        self.assertIsNone(log_file)
        self.assertEqual(len(self.root_logger.handlers), 1)
        self.assertEqual(logging.getLogger("paramiko").level, logging.WARNING)

    def test_exported_from_package(self):
        import clusterseed

        self.assertIs(clusterseed.setup_module_logging, setup_module_logging)


if __name__ == '__main__':
    unittest.main()
