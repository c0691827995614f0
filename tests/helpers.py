"""
Shared test helpers: a throwaway root CA and an in-memory remote.
"""

import json
import threading
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from clusterseed.errors import RemoteCommandError
from clusterseed.models import RootCA

CA_CONFIG = {
    "signing": {
        "default": {
            "expiry": "87600h"
        },
        "profiles": {
            "kubernetes": {
                "usages": ["signing", "key encipherment", "server auth", "client auth"],
                "expiry": "87600h"
            }
        }
    }
}


def create_root_ca(workspace_root, valid_days=3650, config=None) -> RootCA:
    """Write ca.pem, ca-key.pem and ca-config.json under <workspace_root>/ca/root."""
    root_ca = RootCA.from_workspace(str(workspace_root))
    Path(root_ca.cert_path).parent.mkdir(parents=True, exist_ok=True)

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "k8s"),
        x509.NameAttribute(NameOID.COMMON_NAME, "Test Root CA"),
    ])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=valid_days))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )

    with open(root_ca.cert_path, "wb") as f:
        f.write(cert.public_bytes(serialization.Encoding.PEM))
    with open(root_ca.key_path, "wb") as f:
        f.write(key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        ))
    with open(root_ca.config_path, "w") as f:
        json.dump(config if config is not None else CA_CONFIG, f)

    return root_ca


class FakeRemote:
    """
    In-memory stand-in for SSHManager, safe to call from worker threads.

    Records every command and upload per host, plus a global call log.
    Failures are injected per host, optionally only for commands containing
    a given substring.
    """

    def __init__(self, fail_hosts=(), fail_pattern=None, push_fail_hosts=()):
        self.fail_hosts = set(fail_hosts)
        self.fail_pattern = fail_pattern
        self.push_fail_hosts = set(push_fail_hosts)
        self.commands = defaultdict(list)
        self.pushed = defaultdict(list)
        self.keys = defaultdict(set)
        self.calls = []
        self._lock = threading.Lock()

    def run_commands(self, user, key, host, port, commands):
        for command in commands:
            with self._lock:
                self.commands[host].append(command)
                self.keys[host].add(key)
                self.calls.append(("run", host, command))

            if host in self.fail_hosts and (self.fail_pattern is None or self.fail_pattern in command):
                raise RemoteCommandError(host, f"'{command}' exited with 1: boom", exit_code=1)

    def push_files(self, mappings, host, key, user):
        with self._lock:
            self.calls.append(("push", host, len(mappings)))
            self.keys[host].add(key)

        if host in self.push_fail_hosts:
            raise RemoteCommandError(host, "upload failed: connection reset")

        for mapping in mappings:
            with open(mapping["src"], "rb") as f:
                content = f.read()
            with self._lock:
                self.pushed[host].append((mapping["dest"], content))

    def pushed_files(self, host):
        """dest -> content for one host."""
        with self._lock:
            return dict(self.pushed[host])

    def hosts(self):
        with self._lock:
            return sorted({call[1] for call in self.calls})
