"""LanShield Monitoring Module

Outbound connection monitoring for this machine.

Submodules:
    - connection_monitor: Diff established connections (lsof) between polls
    - risk_rules: Loadable allow/deny lists for classification
    - notifier: Desktop notifications for alerts
"""

__version__ = "1.0.0"
__all__ = [
    'connection_monitor',
    'risk_rules',
    'notifier'
]
