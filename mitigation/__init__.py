"""LanShield Mitigation Module

Submodules:
    - adblock: Hosts-file ad/tracker blocking with backup and restore
"""

__all__ = ['adblock']
