# START OF FILE clusterseed/remote.py
"""
Contracts for the remote collaborators the pipeline drives.

SSHManager implements both; tests substitute in-memory fakes.
"""

from typing import Dict, List, Optional, Protocol, Sequence


class RemoteExecutor(Protocol):
    """Runs an ordered list of shell commands on a remote host."""

    def run_commands(
        self,
        user: str,
        key: Optional[str],
        host: str,
        port: int,
        commands: Sequence[str]
    ) -> None:
        """
        Block until every command has completed.
        Must raise RemoteCommandError on the first failing command.
        """
        ...


class FilePusher(Protocol):
    """Copies local files to a remote host."""

    def push_files(
        self,
        mappings: List[Dict[str, str]],
        host: str,
        key: Optional[str],
        user: str
    ) -> None:
        """
        Upload every {"src", "dest"} mapping.
        Must raise RemoteCommandError if any file fails.
        """
        ...
