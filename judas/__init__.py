"""
Judas - LAN host discovery and TCP port scanner
"""

__version__ = "1.0.0"
