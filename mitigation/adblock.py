"""System-wide ad/tracker blocking through the hosts file.

Swaps the OS hosts file for a downloaded blocklist and back again. The
original hosts file is copied once, before the first swap, and that copy
is never overwritten - restoring it is the only way back to any custom
entries, since the blocklist replaces the file wholesale.

The live file is only ever written by one privileged copy, behind the
OS's interactive authorization prompt. Everything before that copy
(backup, download, staging) happens in user space, so a failed download
or a cancelled prompt leaves the live file as it was.

Usage:
    shield = AdblockManager()
    shield.enable()
    shield.search('doubleclick').matches
    shield.disable()
"""

import os
import platform
import shlex
import subprocess
import tempfile
import threading
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import requests

logger = logging.getLogger(__name__)

BLOCKLIST_URL = 'https://raw.githubusercontent.com/StevenBlack/hosts/master/hosts'
SEARCH_LIMIT = 50

if platform.system() == 'Windows':
    DEFAULT_HOSTS_PATH = r'C:\Windows\System32\drivers\etc\hosts'
else:
    DEFAULT_HOSTS_PATH = '/etc/hosts'

DEFAULT_BACKUP_PATH = os.path.join(os.path.expanduser('~'), '.lanshield', 'hosts.backup')


class AdblockError(Exception):
    """Base error for hosts-file operations."""


class BlocklistError(AdblockError):
    """Blocklist could not be downloaded."""


class PrivilegeError(AdblockError):
    """Elevated copy was refused, cancelled or failed."""


@dataclass
class ShieldResult:
    success: bool
    message: str = ""
    error: str = ""
    matches: List[str] = field(default_factory=list)


def _run_elevated(cmd: List[str], timeout: int):
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise PrivilegeError(f"Elevated copy failed: {e}") from e
    if result.returncode != 0:
        detail = result.stderr.strip() or f"exit status {result.returncode}"
        raise PrivilegeError(f"Elevated copy failed: {detail}")


def elevated_copy(source: str, destination: str, timeout: int = 300):
    """Copy source over destination with administrator rights.

    The user is prompted by the OS (AppleScript on macOS, pkexec on Linux,
    UAC on Windows). Cancelling the prompt raises PrivilegeError.
    """
    system = platform.system()

    if system == 'Darwin':
        shell_cmd = f"cp {shlex.quote(source)} {shlex.quote(destination)}"
        shell_cmd = shell_cmd.replace('\\', '\\\\').replace('"', '\\"')
        apple_script = f'do shell script "{shell_cmd}" with administrator privileges'

        # Script goes through a file so the command is not re-quoted by a shell
        fd, script_path = tempfile.mkstemp(prefix='lanshield_', suffix='.scpt')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(apple_script)
            _run_elevated(['osascript', script_path], timeout)
        finally:
            os.remove(script_path)

    elif system == 'Linux':
        _run_elevated(['pkexec', 'cp', source, destination], timeout)

    elif system == 'Windows':
        copy_args = f'/c copy /Y "{source}" "{destination}"'.replace("'", "''")
        ps_cmd = (f"$p = Start-Process cmd -ArgumentList '{copy_args}' -Verb RunAs "
                  f"-Wait -PassThru -WindowStyle Hidden; exit $p.ExitCode")
        _run_elevated(['powershell', '-NoProfile', '-Command', ps_cmd], timeout)

    else:
        raise PrivilegeError(f"Elevated copy not supported on {system}")

    logger.info(f"Copied {source} -> {destination} with elevated privileges")


class AdblockManager:
    """Enable, disable and inspect hosts-file blocking."""

    def __init__(self, hosts_path: Optional[str] = None,
                 backup_path: Optional[str] = None,
                 blocklist_url: Optional[str] = None,
                 privileged_copy: Optional[Callable[[str, str], None]] = None,
                 timeout: int = 30):
        """Initialize manager.

        Args:
            hosts_path: Live hosts file (default: platform hosts file)
            backup_path: Where the original is kept (default: ~/.lanshield/hosts.backup)
            blocklist_url: Hosts-format blocklist to download
            privileged_copy: Elevated copy function, called as (source, destination)
            timeout: Blocklist download timeout in seconds
        """
        self.hosts_path = hosts_path or DEFAULT_HOSTS_PATH
        self.backup_path = backup_path or DEFAULT_BACKUP_PATH
        self.blocklist_url = blocklist_url or BLOCKLIST_URL
        self.privileged_copy = privileged_copy or elevated_copy
        self.timeout = timeout
        self._lock = threading.RLock()

    def has_backup(self) -> bool:
        return os.path.exists(self.backup_path)

    def is_enabled(self) -> bool:
        """True when a backup exists and the live file no longer matches it."""
        if not self.has_backup():
            return False
        try:
            with open(self.backup_path, 'rb') as b, open(self.hosts_path, 'rb') as h:
                return b.read() != h.read()
        except OSError as e:
            logger.debug(f"Could not compare hosts with backup: {e}")
            return False

    def ensure_backup(self) -> bool:
        """Copy the live hosts file to the backup slot unless one exists.

        Returns:
            True if a backup was written, False if one was already there
        """
        with self._lock:
            if self.has_backup():
                return False

            with open(self.hosts_path, 'rb') as f:
                original = f.read()

            backup_dir = os.path.dirname(self.backup_path) or '.'
            os.makedirs(backup_dir, exist_ok=True)

            # Write fully to a private file first; the backup name only ever
            # points at complete content
            fd, partial = tempfile.mkstemp(prefix='.hosts_backup_', dir=backup_dir)
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(original)
                    f.flush()
                    os.fsync(f.fileno())
                # link fails if another process published a backup meanwhile
                os.link(partial, self.backup_path)
            except FileExistsError:
                return False
            finally:
                os.remove(partial)

            logger.info(f"Backed up {self.hosts_path} to {self.backup_path}")
            return True

    def download_blocklist(self) -> str:
        """Fetch the blocklist text. Never cached.

        Raises:
            BlocklistError: Request failed or returned an empty body
        """
        try:
            response = requests.get(self.blocklist_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise BlocklistError(f"Failed to download blocklist: {e}") from e

        if not response.text.strip():
            raise BlocklistError('Failed to download blocklist: empty response')

        logger.info(f"Downloaded blocklist ({len(response.text)} bytes) from {self.blocklist_url}")
        return response.text

    def _stage(self, content: str) -> str:
        fd, path = tempfile.mkstemp(prefix='hosts_new_')
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        return path

    def enable(self) -> ShieldResult:
        """Back up the hosts file and replace it with the blocklist."""
        with self._lock:
            try:
                self.ensure_backup()
                blocklist = self.download_blocklist()
                staged = self._stage(blocklist)
                try:
                    self.privileged_copy(staged, self.hosts_path)
                finally:
                    os.remove(staged)
            except (AdblockError, OSError) as e:
                logger.error(f"Enabling adblock failed: {e}")
                return ShieldResult(success=False, error=str(e))

        logger.info("AdBlock enabled")
        return ShieldResult(success=True, message='AdBlock Enabled (System-wide)')

    def disable(self) -> ShieldResult:
        """Restore the original hosts file from the backup."""
        with self._lock:
            if not self.has_backup():
                return ShieldResult(success=False, error='No backup found')
            try:
                self.privileged_copy(self.backup_path, self.hosts_path)
            except (AdblockError, OSError) as e:
                logger.error(f"Disabling adblock failed: {e}")
                return ShieldResult(success=False, error=str(e))

        logger.info("AdBlock disabled")
        return ShieldResult(success=True, message='AdBlock Disabled')

    def search(self, query: str, limit: int = SEARCH_LIMIT) -> ShieldResult:
        """Find live hosts-file entries containing query (case-sensitive).

        Comment and blank lines are never returned.
        """
        try:
            with open(self.hosts_path, 'r', encoding='utf-8', errors='replace') as f:
                lines = f.read().split('\n')
        except OSError as e:
            return ShieldResult(success=False, error=str(e))

        matches = []
        for line in lines:
            entry = line.strip()
            if not entry or entry.startswith('#'):
                continue
            if query in line:
                matches.append(entry)
                if len(matches) >= limit:
                    break

        return ShieldResult(success=True, matches=matches)
