"""TCP port scanning with opportunistic banner grabbing.

Probes a fixed list of commonly exposed service ports. Each probe is a
full TCP connect bounded by its own timeout; web ports get a HEAD request
so they answer with something identifiable.

Fan-out is bounded at two levels so a subnet scan cannot exhaust file
descriptors: at most PORT_BATCH_SIZE probes per host and HOST_BATCH_SIZE
hosts at once (15 sockets in flight with the defaults).

Usage:
    scanner = PortScanner()
    report = scanner.scan_host('192.168.1.10')
    reports = scanner.scan_hosts(discover_hosts())
"""

import socket
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

COMMON_PORTS = [
    21, 22, 23, 25, 53, 80, 110, 135, 139, 143, 443, 445,
    993, 995, 1433, 3306, 3389, 5900, 8080, 8443
]
WEB_PORTS = {80, 443, 8080, 8443}
HTTP_PROBE = b"HEAD / HTTP/1.0\r\n\r\n"

BANNER_LIMIT = 50
DEFAULT_TIMEOUT = 1.0  # seconds
PORT_BATCH_SIZE = 5
HOST_BATCH_SIZE = 3


@dataclass
class PortResult:
    """Outcome of a single port probe."""
    port: int
    status: str = "closed"  # open, closed
    banner: str = ""

    @property
    def is_open(self) -> bool:
        return self.status == "open"


@dataclass
class ScanReport:
    """Open ports found on one host."""
    host: str
    open_ports: List[PortResult] = field(default_factory=list)


def truncate_banner(text: str) -> str:
    banner = text.strip()
    if len(banner) > BANNER_LIMIT:
        banner = banner[:BANNER_LIMIT] + "..."
    return banner


def probe(host: str, port: int, timeout: float = DEFAULT_TIMEOUT) -> PortResult:
    """Connect to host:port and grab whatever the service sends first.

    Args:
        host: Target IP or hostname. Name lookup counts against the
            budget but cannot be interrupted, so pass an IP for a hard bound.
        port: TCP port
        timeout: Budget in seconds for the whole probe (connect + read)

    Returns:
        PortResult - 'closed' with an empty banner on timeout or error
    """
    deadline = time.monotonic() + timeout
    try:
        family, socktype, proto, _, address = socket.getaddrinfo(
            host, port, type=socket.SOCK_STREAM)[0]
    except OSError as e:
        logger.debug(f"Cannot resolve {host}: {e}")
        return PortResult(port=port)

    remaining = deadline - time.monotonic()
    if remaining <= 0:
        return PortResult(port=port)

    # Only the first address is tried so the probe stays inside one timeout
    sock = socket.socket(family, socktype, proto)
    try:
        sock.settimeout(remaining)
        sock.connect(address)
    except socket.timeout:
        sock.close()
        return PortResult(port=port)
    except OSError as e:
        sock.close()
        logger.debug(f"Connect to {host}:{port} failed: {e}")
        return PortResult(port=port)

    result = PortResult(port=port, status="open")
    try:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return result
        sock.settimeout(remaining)
        if port in WEB_PORTS:
            sock.sendall(HTTP_PROBE)
        data = sock.recv(1024)
        if data:
            result.banner = truncate_banner(data.decode('utf-8', errors='ignore'))
    except socket.timeout:
        pass
    except OSError as e:
        logger.debug(f"Banner read from {host}:{port} failed: {e}")
    finally:
        sock.close()

    return result


class PortScanner:
    """Batched port scanner for one host or a set of hosts."""

    def __init__(self, ports: Optional[Iterable[int]] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 port_batch_size: int = PORT_BATCH_SIZE,
                 host_batch_size: int = HOST_BATCH_SIZE):
        """Initialize scanner.

        Args:
            ports: Ports to probe (default: COMMON_PORTS)
            timeout: Per-probe timeout in seconds
            port_batch_size: Concurrent probes per host
            host_batch_size: Concurrent hosts during scan_hosts()
        """
        self.ports = list(ports) if ports is not None else list(COMMON_PORTS)
        self.timeout = timeout
        self.port_batch_size = max(1, port_batch_size)
        self.host_batch_size = max(1, host_batch_size)

    def scan_host(self, host: str) -> ScanReport:
        """Probe every configured port on host.

        Returns:
            ScanReport holding only the open ports, in port order
        """
        with ThreadPoolExecutor(max_workers=self.port_batch_size) as pool:
            results = list(pool.map(lambda port: probe(host, port, self.timeout), self.ports))

        open_ports = sorted((r for r in results if r.is_open), key=lambda r: r.port)
        if open_ports:
            logger.info(f"  {host}: {len(open_ports)} ports open - {[r.port for r in open_ports]}")
        else:
            logger.debug(f"  {host}: no open ports")
        return ScanReport(host=host, open_ports=open_ports)

    def scan_hosts(self, hosts: Iterable[Union[str, object]]) -> List[ScanReport]:
        """Scan several hosts, keeping only those with open ports.

        Args:
            hosts: IP strings or objects with an `ip` attribute (Host)

        Returns:
            ScanReports with at least one open port, in input order
        """
        targets = []
        for h in hosts:
            ip = h if isinstance(h, str) else getattr(h, 'ip', None)
            if ip and ip != 'undefined':
                targets.append(ip)

        logger.info(f"Scanning {len(targets)} host(s) on {len(self.ports)} ports")
        with ThreadPoolExecutor(max_workers=self.host_batch_size) as pool:
            reports = list(pool.map(self.scan_host, targets))

        return [r for r in reports if r.open_ports]


def scan_host(host: str) -> ScanReport:
    return PortScanner().scan_host(host)


def scan_hosts(hosts) -> List[ScanReport]:
    return PortScanner().scan_hosts(hosts)
