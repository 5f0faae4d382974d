"""Allow/deny heuristics for outbound connection classification.

The lists ship with sensible defaults and can be overridden from a YAML or
JSON file:

    known_apps: [Google Chrome, Safari, Firefox]
    suspicious_ports: [22, 23, 4444, 1337, 6667]
    shell_tools: [bash, zsh, sh, python, nc, curl]

Keys that are absent keep their defaults.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Set

import yaml

logger = logging.getLogger(__name__)

DEFAULT_KNOWN_APPS = {'Google Chrome', 'Safari', 'Firefox', 'System Monitor', 'Code Helper'}
# SSH, Telnet, Metasploit default, leet, IRC
DEFAULT_SUSPICIOUS_PORTS = {22, 23, 4444, 1337, 6667}
DEFAULT_SHELL_TOOLS = {'bash', 'zsh', 'sh', 'python', 'nc', 'curl'}


class RulesError(Exception):
    """Rules file exists but cannot be parsed."""


@dataclass
class RiskRules:
    known_apps: Set[str] = field(default_factory=lambda: set(DEFAULT_KNOWN_APPS))
    suspicious_ports: Set[int] = field(default_factory=lambda: set(DEFAULT_SUSPICIOUS_PORTS))
    shell_tools: Set[str] = field(default_factory=lambda: set(DEFAULT_SHELL_TOOLS))


def load_rules(path: Optional[str] = None) -> RiskRules:
    """Load classification rules from a YAML or JSON file.

    Args:
        path: Rules file; None returns the defaults

    Returns:
        RiskRules with file values overriding defaults

    Raises:
        RulesError: File is not valid YAML/JSON or has the wrong shape
    """
    rules = RiskRules()
    if not path:
        return rules

    p = Path(path).expanduser()
    if not p.exists():
        logger.warning(f"Rules file not found: {p} - using defaults")
        return rules

    text = p.read_text(encoding="utf-8")
    try:
        if p.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise RulesError(f"Cannot parse rules file {p}: {e}") from e

    data = data or {}
    if not isinstance(data, dict):
        raise RulesError(f"Rules file {p} must contain a mapping")

    try:
        if 'known_apps' in data:
            rules.known_apps = {str(a) for a in data['known_apps'] or []}
        if 'suspicious_ports' in data:
            rules.suspicious_ports = {int(port) for port in data['suspicious_ports'] or []}
        if 'shell_tools' in data:
            rules.shell_tools = {str(t) for t in data['shell_tools'] or []}
    except (TypeError, ValueError) as e:
        raise RulesError(f"Invalid value in rules file {p}: {e}") from e

    logger.info(f"Loaded rules from {p}: {len(rules.known_apps)} known apps, "
                f"{len(rules.suspicious_ports)} suspicious ports")
    return rules
