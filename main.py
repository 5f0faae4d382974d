from discovery.network_scan import discover_hosts, display_devices
from discovery.port_scanner import PortScanner
from monitoring.connection_monitor import ConnectionMonitor, LEVEL_HIGH, LEVEL_WARNING, LEVEL_IGNORED
from monitoring.risk_rules import load_rules, RulesError
from monitoring.notifier import send_notification
from mitigation.adblock import AdblockManager
from tabulate import tabulate
from colorama import Fore, Back, Style, init
from datetime import datetime
import logging
import sys
import time

# Initialize colorama for Windows color support
init(autoreset=True)

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30  # seconds between connection polls


def colorize_level(level):
    """Return colored risk level string."""
    if level == LEVEL_HIGH:
        return f"{Fore.RED}{Back.WHITE}HIGH{Style.RESET_ALL}"
    elif level == LEVEL_WARNING:
        return f"{Fore.YELLOW}{Back.WHITE}WARNING{Style.RESET_ALL}"
    elif level == LEVEL_IGNORED:
        return f"{Fore.GREEN}known{Style.RESET_ALL}"
    return level


def run_scan(host=None):
    """Discover LAN hosts (or take one host) and port-scan them."""
    scanner = PortScanner()

    if host:
        print(f"\nScanning {host} on {len(scanner.ports)} common ports...\n")
        report = scanner.scan_host(host)
        if not report.open_ports:
            print("No open ports found.")
            return
        print(tabulate(
            [[p.port, p.banner or "-"] for p in report.open_ports],
            headers=["Port", "Banner"],
            tablefmt="grid"
        ))
        return

    print("\n[Step 1/2] Reading neighbor cache...\n")
    hosts = discover_hosts()
    if not hosts:
        print("No hosts in neighbor cache. Exiting.")
        return
    print(f"Found {len(hosts)} host(s)\n")

    print("[Step 2/2] Scanning common ports (this can take a while)...\n")
    reports = scanner.scan_hosts(hosts)
    display_devices(hosts, reports)
    print(f"\n{len(reports)} host(s) with open ports")


def run_monitor(rules_path=None, interval=DEFAULT_INTERVAL, iterations=None, notify=False):
    """Poll outbound connections on a fixed cadence until interrupted."""
    try:
        rules = load_rules(rules_path)
    except RulesError as e:
        logger.error(str(e))
        return 1

    monitor = ConnectionMonitor(rules=rules, notify=send_notification if notify else None)
    print(f"\nWatching outbound connections every {interval}s (Ctrl+C to stop)\n")

    count = 0
    try:
        while iterations is None or count < iterations:
            events = monitor.poll()
            # First poll only builds the baseline
            if count > 0 and events:
                print(tabulate(
                    [
                        [datetime.fromtimestamp(e.timestamp).strftime('%H:%M:%S'),
                         e.command, e.pid, e.connection, colorize_level(e.level)]
                        for e in events
                    ],
                    headers=["Time", "Command", "PID", "Connection", "Risk"],
                    tablefmt="grid"
                ))
            elif count == 0:
                print(f"Baseline: {len(monitor.snapshot)} established connection(s)")
            count += 1
            if iterations is None or count < iterations:
                time.sleep(interval)
    except KeyboardInterrupt:
        print("\nStopped.")
    return 0


def run_adblock(action, query=None):
    """Enable, disable or search hosts-file blocking."""
    shield = AdblockManager()

    if action == 'on':
        result = shield.enable()
    elif action == 'off':
        result = shield.disable()
    else:
        result = shield.search(query)
        if result.success:
            for line in result.matches:
                print(f"  {line}")
            print(f"\n{len(result.matches)} match(es) for '{query}'")
            return 0

    if result.success:
        print(f"{Fore.GREEN}✓ {result.message}{Style.RESET_ALL}")
        return 0
    print(f"{Fore.RED}✗ {result.error}{Style.RESET_ALL}")
    return 1


def _arg_value(flag, default=None):
    for i, arg in enumerate(sys.argv):
        if arg == flag and i + 1 < len(sys.argv):
            return sys.argv[i + 1]
    return default


USAGE = """
╔════════════════════════════════════════════════════════════════════════════╗
║                            LANSHIELD                                       ║
║                                                                            ║
║ Usage:  python main.py [options]                                           ║
║                                                                            ║
║ Options:                                                                   ║
║   --scan              Discover LAN hosts and scan common ports             ║
║   --host IP           Scan a single host                                   ║
║   --monitor           Watch outbound connections for risky new ones        ║
║   --interval SECONDS  Poll interval for --monitor (default: 30)            ║
║   --iterations N      Stop --monitor after N polls                         ║
║   --rules PATH        YAML/JSON allow/deny lists for --monitor             ║
║   --notify            Send desktop notifications for alerts                ║
║   --adblock-on        Replace hosts file with ad/tracker blocklist         ║
║   --adblock-off       Restore the original hosts file                      ║
║   --search QUERY      Search blocked entries in the live hosts file        ║
║   --verbose           Debug logging                                        ║
║                                                                            ║
╚════════════════════════════════════════════════════════════════════════════╝
"""


def main():
    logging.basicConfig(
        level=logging.DEBUG if "--verbose" in sys.argv else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s'
    )

    host = _arg_value("--host")
    if "--scan" in sys.argv or host:
        run_scan(host)
        return 0

    if "--monitor" in sys.argv:
        iterations = _arg_value("--iterations")
        return run_monitor(
            rules_path=_arg_value("--rules"),
            interval=float(_arg_value("--interval", DEFAULT_INTERVAL)),
            iterations=int(iterations) if iterations else None,
            notify="--notify" in sys.argv
        )

    if "--adblock-on" in sys.argv:
        return run_adblock('on')
    if "--adblock-off" in sys.argv:
        return run_adblock('off')

    query = _arg_value("--search")
    if query:
        return run_adblock('search', query)

    print(USAGE)
    return 0


if __name__ == "__main__":
    sys.exit(main())
