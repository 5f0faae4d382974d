"""LanShield Discovery Module

Submodules:
    - network_scan: LAN hosts from the neighbor cache (arp -a)
    - port_scanner: Batched TCP port scanning with banner grabbing
"""

__all__ = [
    'network_scan',
    'port_scanner'
]
