# START OF FILE clusterseed/ssh_manager.py
"""
SSH Management Module for ClusterSeed.

Default remote collaborator: runs command sequences on nodes and pushes
generated files over SFTP. Every call opens its own connection, so one
SSHManager can be shared by all fan-out worker threads.
"""

import logging
import os
from typing import Dict, List, Optional, Sequence, Tuple

import paramiko

from clusterseed.config import Settings, settings as default_settings
from clusterseed.errors import RemoteCommandError

logger = logging.getLogger(__name__)


class SSHManager:
    """
    Executes commands and transfers files on cluster nodes.

    Implements both remote collaborator interfaces used by the pipeline:
    run_commands() and push_files().
    """

    def __init__(self, config: Optional[Settings] = None):
        """
        Initialize SSH manager.

        Args:
            config: Settings providing timeouts and defaults
        """
        self.config = config or default_settings
        self.connect_timeout = self.config.ssh_connect_timeout
        self.command_timeout = self.config.command_timeout

    def create_ssh_client(
        self,
        ip_address: str,
        username: str = "root",
        key_path: Optional[str] = None,
        port: int = 22
    ) -> paramiko.SSHClient:
        """
        Create an authenticated SSH client for a node.

        Args:
            ip_address: IP address of the node
            username: SSH username
            key_path: Private key file (falls back to the configured key, then the SSH agent)
            port: SSH port

        Returns:
            Connected SSHClient

        Raises:
            RemoteCommandError: If the connection or authentication fails
        """
        key_path = key_path or self.config.ssh_private_key
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(
                hostname=ip_address,
                port=port,
                username=username,
                key_filename=os.path.expanduser(key_path) if key_path else None,
                timeout=self.connect_timeout
            )
        except paramiko.AuthenticationException as e:
            client.close()
            raise RemoteCommandError(ip_address, f"authentication failed for {username}: {e}") from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise RemoteCommandError(ip_address, f"SSH connection failed: {e}") from e

        logger.debug(f"Created SSH client for {username}@{ip_address}:{port}")
        return client

    def execute_command(
        self,
        client: paramiko.SSHClient,
        command: str,
        timeout: Optional[int] = None
    ) -> Tuple[int, str, str]:
        """
        Execute a command on a connected node.

        Args:
            client: Connected SSH client
            command: Command to execute
            timeout: Command timeout in seconds

        Returns:
            Tuple of (exit_code, stdout, stderr)
        """
        logger.debug(f"Executing: {command}")

        stdin, stdout, stderr = client.exec_command(command, timeout=timeout or self.command_timeout)
        exit_code = stdout.channel.recv_exit_status()

        stdout_str = stdout.read().decode(errors="replace").strip()
        stderr_str = stderr.read().decode(errors="replace").strip()

        if exit_code == 0:
            logger.debug(f"Command succeeded: {command}")
        else:
            logger.warning(f"Command failed (exit {exit_code}): {command}")

        return exit_code, stdout_str, stderr_str

    def run_commands(
        self,
        user: str,
        key: Optional[str],
        host: str,
        port: int,
        commands: Sequence[str]
    ) -> None:
        """
        Run an ordered list of commands on a node, stopping at the first failure.

        Raises:
            RemoteCommandError: Connection failure or non-zero exit status
        """
        client = self.create_ssh_client(host, username=user, key_path=key, port=port)
        try:
            for command in commands:
                try:
                    exit_code, stdout, stderr = self.execute_command(client, command)
                except (paramiko.SSHException, OSError) as e:
                    raise RemoteCommandError(host, f"'{command}' failed: {e}") from e

                if stdout:
                    logger.debug(f"[{host}] {stdout}")
                if exit_code != 0:
                    raise RemoteCommandError(
                        host,
                        f"'{command}' exited with {exit_code}: {stderr or stdout}",
                        exit_code=exit_code
                    )
        finally:
            client.close()

    def transfer_file(
        self,
        sftp: paramiko.SFTPClient,
        local_path: str,
        remote_path: str
    ):
        """
        Transfer one file and mirror its local permission bits.

        Args:
            sftp: Open SFTP session
            local_path: Local file path
            remote_path: Remote file path
        """
        logger.debug(f"Transferring {local_path} to {remote_path}")
        sftp.put(local_path, remote_path)
        sftp.chmod(remote_path, os.stat(local_path).st_mode & 0o777)

    def push_files(
        self,
        mappings: List[Dict[str, str]],
        host: str,
        key: Optional[str],
        user: str,
        port: Optional[int] = None
    ) -> None:
        """
        Upload files to a node over SFTP.

        Args:
            mappings: [{"src": local_path, "dest": remote_path}, ...]
            host: Node IP
            key: Private key file
            user: SSH username
            port: SSH port (default from settings)

        Raises:
            RemoteCommandError: If any transfer fails
        """
        client = self.create_ssh_client(host, username=user, key_path=key, port=port or self.config.ssh_port)
        try:
            sftp = client.open_sftp()
            try:
                for mapping in mappings:
                    try:
                        self.transfer_file(sftp, mapping["src"], mapping["dest"])
                    except (OSError, paramiko.SSHException) as e:
                        raise RemoteCommandError(
                            host, f"upload of {mapping['src']} to {mapping['dest']} failed: {e}"
                        ) from e
            finally:
                sftp.close()
        except paramiko.SSHException as e:
            raise RemoteCommandError(host, f"SFTP session failed: {e}") from e
        finally:
            client.close()

        logger.info(f"✓ {len(mappings)} file(s) transferred to {host}")

