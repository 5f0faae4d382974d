"""Outbound connection monitoring.

Snapshots this machine's established TCP connections from `lsof`, diffs
them against the previous poll and flags new ones that look risky.

Only the most recent snapshot is kept. It is swapped for a new frozenset
on every poll, and polls on one monitor are serialized by a lock, so two
overlapping polls cannot lose each other's updates.

Usage:
    monitor = ConnectionMonitor(notify=send_notification)
    events = monitor.poll()     # call on a fixed cadence
"""

import subprocess
import threading
import time
import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional

from monitoring.risk_rules import RiskRules

logger = logging.getLogger(__name__)

LSOF_CMD = ['lsof', '-i', '-P', '-n']

LEVEL_IGNORED = 'ignored'
LEVEL_HIGH = 'high'
LEVEL_WARNING = 'warning'
LEVEL_INFO = 'info'


@dataclass
class Connection:
    """One row of the established-connection table."""
    command: str
    pid: int
    remote_endpoint: str  # local->remote, as lsof prints it

    @property
    def key(self) -> str:
        return f"{self.command}:{self.remote_endpoint}"

    @property
    def remote(self) -> Optional[str]:
        if '->' not in self.remote_endpoint:
            return None
        return self.remote_endpoint.split('->', 1)[1]

    @property
    def remote_port(self) -> Optional[int]:
        remote = self.remote
        if not remote or ':' not in remote:
            return None
        try:
            return int(remote.rsplit(':', 1)[1])
        except ValueError:
            return None


@dataclass
class RiskEvent:
    """A connection not seen on the previous poll."""
    type: str
    command: str
    pid: int
    connection: str
    timestamp: float
    level: str = LEVEL_INFO
    alert: Optional[str] = None


def get_established_connections(timeout: int = 10) -> List[str]:
    """Get lsof lines for established internet connections.

    Returns:
        Raw lines; empty when lsof finds nothing or cannot run
    """
    try:
        result = subprocess.run(
            LSOF_CMD,
            capture_output=True,
            text=True,
            timeout=timeout
        )
    except FileNotFoundError:
        logger.warning("lsof not found - connection table unavailable")
        return []
    except subprocess.TimeoutExpired:
        logger.warning(f"lsof timed out after {timeout}s")
        return []
    except OSError as e:
        logger.warning(f"Error running lsof: {e}")
        return []

    # lsof exits 1 when nothing matches
    if result.returncode != 0 and not result.stdout:
        return []

    return [line for line in result.stdout.splitlines() if 'ESTABLISHED' in line]


def parse_connection_line(line: str) -> Optional[Connection]:
    """Parse one lsof row.

    COMMAND PID USER FD TYPE DEVICE SIZE/OFF NODE NAME
    Code Hel 9879 rene 34u IPv4 0x... 0t0 TCP 192.168.1.5:54321->142.250.4.1:443 (ESTABLISHED)

    The NAME column can sit one position later, so both columns are tried.
    """
    parts = line.split()
    if len(parts) < 9:
        return None

    try:
        pid = int(parts[1])
    except ValueError:
        logger.debug(f"Skipping lsof line without PID: {line}")
        return None

    endpoint = None
    for candidate in parts[8:10]:
        if '->' in candidate:
            endpoint = candidate
            break
    if endpoint is None:
        endpoint = parts[8]

    return Connection(command=parts[0], pid=pid, remote_endpoint=endpoint)


class ConnectionMonitor:
    """Detects and classifies new outbound connections between polls."""

    def __init__(self, rules: Optional[RiskRules] = None,
                 notify: Optional[Callable[[str, str], object]] = None,
                 source: Optional[Callable[[], List[str]]] = None,
                 clock: Callable[[], float] = time.time):
        """Initialize monitor.

        Args:
            rules: Classification lists (default: RiskRules())
            notify: Alert sink called as notify(title, message)
            source: Returns raw connection lines (default: lsof)
            clock: Timestamp source for events
        """
        self.rules = rules or RiskRules()
        self.notify = notify
        self.source = source or get_established_connections
        self.clock = clock
        self._snapshot: FrozenSet[str] = frozenset()
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> FrozenSet[str]:
        return self._snapshot

    def reset(self):
        with self._lock:
            self._snapshot = frozenset()

    def poll(self) -> List[RiskEvent]:
        """Read the connection table and report connections not seen last time.

        Returns:
            NEW_CONN events from this poll, classified
        """
        with self._lock:
            previous = self._snapshot
            current = set()
            events = []

            for line in self.source():
                conn = parse_connection_line(line)
                if conn is None:
                    continue
                key = conn.key
                if key in previous or key in current:
                    current.add(key)
                    continue
                current.add(key)

                event = RiskEvent(
                    type='NEW_CONN',
                    command=conn.command,
                    pid=conn.pid,
                    connection=conn.remote_endpoint,
                    timestamp=self.clock()
                )
                self.classify(event)
                events.append(event)

            self._snapshot = frozenset(current)

        for event in events:
            if event.alert:
                self._raise_alert(event.alert)

        if events:
            logger.debug(f"{len(events)} new connection(s), {len(self._snapshot)} tracked")
        return events

    def classify(self, event: RiskEvent) -> RiskEvent:
        """Assign a risk level and alert text; first matching rule wins."""
        if event.command in self.rules.known_apps:
            event.level = LEVEL_IGNORED
            return event

        conn = Connection(event.command, event.pid, event.connection)
        port = conn.remote_port
        if port is not None and port in self.rules.suspicious_ports:
            event.level = LEVEL_HIGH
            event.alert = f"HIGH RISK: {event.command} connected to suspicious port {port}!"
            return event

        if event.command in self.rules.shell_tools:
            event.level = LEVEL_WARNING
            event.alert = (f"WARNING: Shell Tool '{event.command}' opened a network "
                           f"connection to {conn.remote}")
            return event

        event.level = LEVEL_INFO
        return event

    def _raise_alert(self, message: str):
        logger.warning(f"[SECURITY] {message}")
        if not self.notify:
            return
        try:
            self.notify('Security Alert', message)
        except Exception as e:
            logger.error(f"Notification failed: {e}")


def alerts(events: List[RiskEvent]) -> List[str]:
    """Alert strings raised by a poll."""
    return [e.alert for e in events if e.alert]
