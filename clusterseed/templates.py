# START OF FILE clusterseed/templates.py
"""
Version-pinned templates for ClusterSeed components.

Templates are string.Template texts with ${IP}, ${NAME} and ${NODES}
markers filled from per-node data. Each template
is registered under a template name (e.g. "etcd-csr") and an exact version
string (e.g. "etcd-3.3.8").
"""

import logging
from string import Template
from typing import Dict, Mapping, Optional

from clusterseed.errors import TemplateError

logger = logging.getLogger(__name__)

ETCD_CSR_TEMPLATE = """{
  "CN": "etcd",
  "hosts": [
    "127.0.0.1",
    "${IP}"
  ],
  "key": {
    "algo": "rsa",
    "size": 2048
  },
  "names": [
    {
      "C": "CN",
      "ST": "BeiJing",
      "L": "BeiJing",
      "O": "k8s",
      "OU": "System"
    }
  ]
}
"""

ETCD_SYSTEMD_TEMPLATE_3_2 = """[Unit]
Description=Etcd Server
After=network.target
After=network-online.target
Wants=network-online.target
Documentation=https://github.com/coreos

[Service]
Type=notify
ExecStartPre=/bin/mkdir -p /var/lib/etcd
ExecStart=/usr/local/bin/etcd \\
  --name=${NAME} \\
  --cert-file=/etc/etcd/ssl/etcd.pem \\
  --key-file=/etc/etcd/ssl/etcd-key.pem \\
  --peer-cert-file=/etc/etcd/ssl/etcd.pem \\
  --peer-key-file=/etc/etcd/ssl/etcd-key.pem \\
  --trusted-ca-file=/etc/kubernetes/ssl/ca.pem \\
  --peer-trusted-ca-file=/etc/kubernetes/ssl/ca.pem \\
  --initial-advertise-peer-urls=https://${IP}:2380 \\
  --listen-peer-urls=https://${IP}:2380 \\
  --listen-client-urls=https://${IP}:2379,http://127.0.0.1:2379 \\
  --advertise-client-urls=https://${IP}:2379 \\
  --initial-cluster-token=etcd-cluster-0 \\
  --initial-cluster=${NODES} \\
  --initial-cluster-state=new \\
  --data-dir=/var/lib/etcd
Restart=on-failure
RestartSec=5
LimitNOFILE=65536

[Install]
WantedBy=multi-user.target
"""

ETCD_SYSTEMD_TEMPLATE_3_3 = ETCD_SYSTEMD_TEMPLATE_3_2.replace(
    "  --data-dir=/var/lib/etcd\n",
    "  --data-dir=/var/lib/etcd \\\n  --auto-compaction-retention=1\n",
)

FLANNELD_CSR_TEMPLATE = """{
  "CN": "flanneld",
  "hosts": [
    "127.0.0.1",
    "${IP}"
  ],
  "key": {
    "algo": "rsa",
    "size": 2048
  },
  "names": [
    {
      "C": "CN",
      "ST": "BeiJing",
      "L": "BeiJing",
      "O": "k8s",
      "OU": "System"
    }
  ]
}
"""

FLANNELD_SYSTEMD_TEMPLATE = """[Unit]
Description=Flanneld overlay address etcd agent
After=network.target
After=network-online.target
Wants=network-online.target
After=etcd.service
Before=docker.service

[Service]
Type=notify
ExecStart=/usr/local/bin/flanneld \\
  -etcd-cafile=/etc/kubernetes/ssl/ca.pem \\
  -etcd-certfile=/etc/flanneld/ssl/flanneld.pem \\
  -etcd-keyfile=/etc/flanneld/ssl/flanneld-key.pem \\
  -etcd-endpoints=${NODES} \\
  -etcd-prefix=/kubernetes/network \\
  -public-ip=${IP}
ExecStartPost=/usr/local/bin/mk-docker-opts.sh -k DOCKER_NETWORK_OPTIONS -d /run/flannel/docker
Restart=on-failure

[Install]
WantedBy=multi-user.target
RequiredBy=docker.service
"""

FLANNELD_BEFORE_TEMPLATE = (
    "etcdctl --endpoints=${NODES} "
    "--ca-file=/etc/kubernetes/ssl/ca.pem "
    "--cert-file=/etc/flanneld/ssl/flanneld.pem "
    "--key-file=/etc/flanneld/ssl/flanneld-key.pem "
    "set /kubernetes/network/config "
    "'{\"Network\":\"172.30.0.0/16\", \"SubnetLen\": 24, \"Backend\": {\"Type\": \"vxlan\"}}'"
)


# template name -> version -> template text
BUILTIN_TEMPLATES: Dict[str, Dict[str, str]] = {
    "etcd-csr": {
        "etcd-3.2.8": ETCD_CSR_TEMPLATE,
        "etcd-3.3.8": ETCD_CSR_TEMPLATE,
    },
    "etcd-systemd": {
        "etcd-3.2.8": ETCD_SYSTEMD_TEMPLATE_3_2,
        "etcd-3.3.8": ETCD_SYSTEMD_TEMPLATE_3_3,
    },
    "flanneld-csr": {
        "flannel-0.9.1": FLANNELD_CSR_TEMPLATE,
    },
    "flanneld-systemd": {
        "flannel-0.9.1": FLANNELD_SYSTEMD_TEMPLATE,
    },
    "flanneld-before": {
        "flannel-0.9.1": FLANNELD_BEFORE_TEMPLATE,
    },
}


class TemplateRegistry:
    """
    Lookup of template text by template name and exact version.

    An unknown template name is always an error. An unknown version is an
    error in strict mode; in permissive mode it yields an empty template.
    """

    def __init__(
        self,
        templates: Optional[Mapping[str, Mapping[str, str]]] = None,
        strict: bool = False
    ):
        self.templates = {
            name: dict(versions)
            for name, versions in (templates if templates is not None else BUILTIN_TEMPLATES).items()
        }
        self.strict = strict

    def register(self, name: str, version: str, text: str):
        """Add or replace a template for a version."""
        self.templates.setdefault(name, {})[version] = text

    def versions(self, name: str) -> list:
        return sorted(self.templates.get(name, {}))

    def lookup(self, version: str, name: str) -> str:
        """
        Get template text for a version.

        Args:
            version: Exact version string
            name: Template name

        Returns:
            Template text, or "" for an unknown version in permissive mode

        Raises:
            TemplateError: Unknown template name, or unknown version in strict mode
        """
        if name not in self.templates:
            raise TemplateError(f"unknown template: {name}")

        versions = self.templates[name]
        if version not in versions:
            if self.strict:
                raise TemplateError(
                    f"unknown version {version!r} for template {name} "
                    f"(known: {', '.join(sorted(versions)) or 'none'})"
                )
            logger.warning(f"No {name} template for version {version!r}; using empty template")
            return ""

        return versions[version]


class ArtifactRenderer:
    """Renders registry templates against per-node data."""

    def __init__(self, registry: TemplateRegistry):
        self.registry = registry

    @staticmethod
    def render_text(template: str, data: Mapping[str, str]) -> str:
        """
        Substitute $KEY / ${KEY} markers with values from data.

        Raises:
            TemplateError: A marker has no value in data, or is malformed
        """
        try:
            return Template(template).substitute(data)
        except KeyError as e:
            raise TemplateError(f"no value for template placeholder {e.args[0]}") from e
        except ValueError as e:
            raise TemplateError(f"malformed template: {e}") from e

    def render(self, version: str, name: str, data: Mapping[str, str]) -> bytes:
        """Look up and render a template, returning UTF-8 bytes."""
        template = self.registry.lookup(version, name)
        return self.render_text(template, data).encode("utf-8")
