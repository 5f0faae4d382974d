"""LAN host discovery from the local neighbor cache.

Reads the ARP table the OS already maintains (`arp -a`) and turns it into
(IP, MAC) pairs. No packets are sent, so only peers this machine has
recently talked to show up - not the full subnet.

Functions:
    - get_neighbor_cache: Raw `arp -a` listing
    - parse_neighbor_cache: Listing -> Host records
    - discover_hosts: Hosts currently in the neighbor cache
    - display_devices: Tabulated view of hosts and scan results
"""

import re
import subprocess
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from tabulate import tabulate

logger = logging.getLogger(__name__)

# e.g. "router.lan (192.168.1.1) at a4:2b:b0:11:22:33 on en0 ifscope [ethernet]"
NEIGHBOR_RE = re.compile(r"\((.*?)\) at (.*?) on")


@dataclass
class Host:
    """A neighbor-cache entry."""
    ip: str
    mac: str


def get_neighbor_cache(timeout: int = 10) -> str:
    """Run `arp -a` and return its output.

    Returns:
        Raw listing, or an empty string if the command is unavailable
    """
    try:
        result = subprocess.run(
            ['arp', '-a'],
            capture_output=True,
            text=True,
            timeout=timeout
        )
    except FileNotFoundError:
        logger.warning("arp command not found - neighbor cache unavailable")
        return ""
    except subprocess.TimeoutExpired:
        logger.warning(f"arp -a timed out after {timeout}s")
        return ""
    except OSError as e:
        logger.warning(f"Error running arp: {e}")
        return ""

    if result.returncode != 0:
        logger.debug(f"arp -a exited with {result.returncode}: {result.stderr.strip()}")
    return result.stdout or ""


def parse_neighbor_cache(output: str) -> List[Host]:
    """Parse `arp -a` output into hosts.

    Args:
        output: Raw neighbor-cache listing

    Returns:
        One Host per matching line, in input order
    """
    hosts = []
    for line in output.splitlines():
        match = NEIGHBOR_RE.search(line)
        if match:
            hosts.append(Host(ip=match.group(1), mac=match.group(2)))
    return hosts


def discover_hosts() -> List[Host]:
    """Get hosts currently present in the neighbor cache."""
    hosts = parse_neighbor_cache(get_neighbor_cache())
    logger.info(f"Neighbor cache lists {len(hosts)} host(s)")
    return hosts


def scan_local_network() -> Dict[str, Any]:
    """Discover hosts and keep the raw listing alongside them.

    Returns:
        {'success': True, 'scan': raw_output, 'hosts': [Host]} or
        {'success': False, 'error': message} when arp produced nothing
    """
    output = get_neighbor_cache()
    if not output:
        return {'success': False, 'error': 'Neighbor cache unavailable'}
    return {'success': True, 'scan': output, 'hosts': parse_neighbor_cache(output)}


# -------------------------------
def display_devices(hosts: List[Host], reports: Optional[list] = None):
    """Display discovered hosts in a formatted table.

    Args:
        hosts: Hosts from discover_hosts()
        reports: Optional ScanReports from the port scanner
    """
    open_ports = {}
    for report in reports or []:
        open_ports[report.host] = ", ".join(
            f"{p.port}" + (f" ({p.banner})" if p.banner else "")
            for p in report.open_ports
        )

    table = [
        [i + 1, h.ip, h.mac, open_ports.get(h.ip, "-")]
        for i, h in enumerate(hosts)
    ]
    print(tabulate(
        table,
        headers=["#", "IP Address", "MAC Address", "Open Ports"],
        tablefmt="grid"
    ))

# -------------------------------

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    display_devices(discover_hosts())
