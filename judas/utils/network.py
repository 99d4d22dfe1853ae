"""
Local interface lookup
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional

import netifaces

logger = logging.getLogger(__name__)


@dataclass
class LocalInterface:
    """Address and /24 prefix of the default IPv4 interface"""
    ip: Optional[str]
    prefix: Optional[str]
    connected: bool
    interface: Optional[str] = None


def _default_interface() -> Optional[str]:
    gws = netifaces.gateways()
    default = gws.get('default', {}).get(netifaces.AF_INET)
    if default:
        return default[1]
    return None


def local_interface_info(interface: Optional[str] = None) -> LocalInterface:
    """Get the default interface's IPv4 address and subnet prefix

    ``connected`` is False when there is no default route or the interface
    has no usable (non-loopback, non-link-local) IPv4 address.
    """
    try:
        iface = interface or _default_interface()
        if not iface:
            logger.warning("No default IPv4 route")
            return LocalInterface(ip=None, prefix=None, connected=False)

        addrs = netifaces.ifaddresses(iface).get(netifaces.AF_INET, [])
    except (ValueError, KeyError, OSError) as e:
        logger.warning(f"Interface lookup failed: {e}")
        return LocalInterface(ip=None, prefix=None, connected=False, interface=interface)

    for entry in addrs:
        addr = entry.get('addr')
        if not addr:
            continue
        ip = ipaddress.IPv4Address(addr)
        if ip.is_loopback or ip.is_link_local:
            continue
        prefix = addr.rsplit('.', 1)[0] + '.'
        logger.debug(f"Using {iface} {addr} netmask {entry.get('netmask')}")
        return LocalInterface(ip=addr, prefix=prefix, connected=True, interface=iface)

    logger.warning(f"Interface {iface} has no usable IPv4 address")
    return LocalInterface(ip=None, prefix=None, connected=False, interface=iface)
