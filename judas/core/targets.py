"""
Target generation
Parses subnet text and expands it into the ordered list of hosts to probe
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from judas.core.errors import ValidationError

logger = logging.getLogger(__name__)

_OCTET = re.compile(r"[0-9]+")

FIRST_HOST = 1
LAST_HOST = 254


@dataclass(frozen=True)
class SingleHost:
    """One address, e.g. ``192.168.1.20``"""
    ip: str


@dataclass(frozen=True)
class Prefix:
    """First three octets with the trailing dot, e.g. ``192.168.1.``"""
    value: str

    @classmethod
    def from_address(cls, ip: str) -> "Prefix":
        return cls(ip.rsplit(".", 1)[0] + ".")

    def __str__(self):
        return f"{self.value}0/24"


TargetSpec = Union[SingleHost, Prefix]


def _parse_octet(text: str, position: int) -> int:
    if not text:
        raise ValidationError(f"Octet {position} is empty", ValidationError.MALFORMED)
    if not _OCTET.fullmatch(text):
        raise ValidationError(f"Octet {position} ('{text}') is not a number", ValidationError.NON_NUMERIC)
    value = int(text)
    if value > 255:
        raise ValidationError(f"Octet {position} ({value}) is out of range 0-255", ValidationError.OUT_OF_RANGE)
    return value


def parse_target_spec(text: Optional[str]) -> TargetSpec:
    """Parse user input into a target spec

    Accepts a full address (``192.168.1.20``) or a three-octet prefix with a
    trailing dot (``192.168.1.``).
    """
    text = (text or "").strip()
    if not text:
        raise ValidationError("Enter an IP address or a subnet prefix", ValidationError.MISSING)

    parts = text.split(".")
    if len(parts) != 4:
        raise ValidationError(
            f"'{text}' is not an address (a.b.c.d) or a subnet prefix (a.b.c.)",
            ValidationError.MALFORMED,
        )

    if parts[3] == "":
        octets = [_parse_octet(part, i) for i, part in enumerate(parts[:3], 1)]
        return Prefix(".".join(str(o) for o in octets) + ".")

    octets = [_parse_octet(part, i) for i, part in enumerate(parts, 1)]
    if octets[3] in (0, 255):
        raise ValidationError(
            f"{'.'.join(parts)} is a network or broadcast address",
            ValidationError.RESERVED,
        )
    return SingleHost(".".join(str(o) for o in octets))


def spec_for_interface(info) -> Prefix:
    """Local subnet spec from a LocalInterface"""
    return Prefix(info.prefix)


def _same_network(a: str, b: str) -> bool:
    return a.split(".")[:2] == b.split(".")[:2]


class TargetSetBuilder:
    """Expands a TargetSpec into ordered, unique IPv4 addresses"""

    def build(self, spec: Union[TargetSpec, str], local_ip: Optional[str] = None) -> List[str]:
        if isinstance(spec, str):
            spec = parse_target_spec(spec)

        if isinstance(spec, SingleHost):
            targets = [spec.ip]
        elif isinstance(spec, Prefix):
            targets = [f"{spec.value}{i}" for i in range(FIRST_HOST, LAST_HOST + 1)]
        else:
            raise TypeError(f"Unsupported target spec: {spec!r}")

        # Local host goes first when the prefix does not already cover it
        if local_ip and local_ip not in targets and _same_network(local_ip, targets[0]):
            targets.insert(0, local_ip)

        unique = list(dict.fromkeys(targets))
        logger.debug(f"Built {len(unique)} targets for {spec}")
        return unique
