# START OF FILE clusterseed/workspace.py
"""
Local workspace for generated artifacts.

Each component owns two roots under the workspace:
    <workspace>/ca/<ca_folder>/<nodeIP>/<file>
    <workspace>/service/<service_folder>/<nodeIP>/<file>

Both roots are purged and recreated at the start of every run.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import List

from clusterseed.errors import WorkspaceError
from clusterseed.models import CA_FILES_FOLDER, SERVICE_FILES_FOLDER

logger = logging.getLogger(__name__)

CA_FILE_MODE = 0o600
SERVICE_FILE_MODE = 0o700


class Workspace:
    """Directory layout of one component's generated files."""

    def __init__(self, root: str, ca_folder: str, service_folder: str):
        """
        Args:
            root: Workspace root shared by all components of a deployment
            ca_folder: Folder name for this component's CA artifacts
            service_folder: Folder name for this component's service units
        """
        self.root = Path(root)
        self.ca_root = self.root / CA_FILES_FOLDER / ca_folder
        self.service_root = self.root / SERVICE_FILES_FOLDER / service_folder

    def reset(self):
        """
        Remove both roots (if present) and recreate them empty.

        Raises:
            WorkspaceError: A root could not be removed or created
        """
        for base in (self.ca_root, self.service_root):
            try:
                if base.exists():
                    logger.debug(f"Removing stale artifacts in {base}")
                    shutil.rmtree(base)
                base.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise WorkspaceError(f"failed to reset workspace {base}: {e}") from e

        logger.info(f"Workspace reset: {self.ca_root}, {self.service_root}")

    def prepare_node(self, ip: str):
        """Create the per-node directories under both roots."""
        self.ca_dir(ip).mkdir(parents=True, exist_ok=True)
        self.service_dir(ip).mkdir(parents=True, exist_ok=True)

    def ca_dir(self, ip: str) -> Path:
        return self.ca_root / ip

    def service_dir(self, ip: str) -> Path:
        return self.service_root / ip

    def write_ca_file(self, ip: str, name: str, content: bytes) -> Path:
        """Write a CA artifact for a node with owner-only permissions."""
        return self._write(self.ca_dir(ip) / name, content, CA_FILE_MODE)

    def write_service_file(self, ip: str, name: str, content: bytes) -> Path:
        """Write a service unit for a node."""
        return self._write(self.service_dir(ip) / name, content, SERVICE_FILE_MODE)

    def node_ips(self) -> List[str]:
        """IPs that currently have a CA directory, sorted."""
        if not self.ca_root.exists():
            return []
        return sorted(p.name for p in self.ca_root.iterdir() if p.is_dir())

    @staticmethod
    def _write(path: Path, content: bytes, mode: int) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        os.chmod(path, mode)
        return path
