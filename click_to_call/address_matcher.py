"""
Client address allow-list matching.

Patterns come in three kinds:

- exact:    ``127.0.0.1``, ``::1``
- wildcard: ``172.31.*`` (``*`` matches any run of characters, anchored)
- CIDR:     ``172.31.0.0/16``, ``2001:db8::/32``

CIDR matching works on the packed address bytes so that IPv4 and IPv6 share one
code path. Anything that cannot be parsed fails closed.
"""

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


def _packed(address: str) -> Optional[bytes]:
    try:
        return ipaddress.ip_address(address.strip()).packed
    except ValueError:
        return None


def _normalize(address: str) -> str:
    address = address.strip()
    try:
        return str(ipaddress.ip_address(address))
    except ValueError:
        return address


def build_mask(prefix_length: int, length: int) -> bytes:
    """Mask of `length` bytes with the first `prefix_length` bits set"""
    full_bytes, remaining_bits = divmod(prefix_length, 8)
    mask = b"\xff" * full_bytes
    if remaining_bits > 0:
        mask += bytes([(0xFF << (8 - remaining_bits)) & 0xFF])
    return mask + b"\x00" * (length - len(mask))


@dataclass(frozen=True)
class ExactPattern:
    address: str

    def matches(self, address: str) -> bool:
        return _normalize(address) == _normalize(self.address)


@dataclass(frozen=True)
class WildcardPattern:
    glob: str
    regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        expression = re.escape(self.glob).replace(r"\*", ".*")
        object.__setattr__(self, "regex", re.compile(expression))

    def matches(self, address: str) -> bool:
        return self.regex.fullmatch(address.strip()) is not None


@dataclass(frozen=True)
class CidrPattern:
    network: str
    prefix_length: Optional[int]
    network_bytes: Optional[bytes] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "network_bytes", _packed(self.network))

    def matches(self, address: str) -> bool:
        address_bytes = _packed(address)
        if address_bytes is None or self.network_bytes is None or self.prefix_length is None:
            return False

        # IPv4 vs IPv6
        length = len(self.network_bytes)
        if len(address_bytes) != length:
            return False

        if self.prefix_length < 0 or self.prefix_length > length * 8:
            return False

        mask = build_mask(self.prefix_length, length)
        return all(
            (a & m) == (n & m)
            for a, n, m in zip(address_bytes, self.network_bytes, mask)
        )


AllowListPattern = Union[ExactPattern, WildcardPattern, CidrPattern]


def parse_pattern(text: str) -> AllowListPattern:
    """Classify a configured allow-list entry"""
    text = text.strip()
    if "*" in text:
        return WildcardPattern(text)
    if "/" in text:
        network, bits = text.split("/", 1)
        bits = bits.strip()
        prefix_length = int(bits) if bits.isascii() and bits.isdigit() else None
        if prefix_length is None:
            logger.warning(f"Allow-list entry {text!r} has an invalid prefix length and never matches")
        return CidrPattern(network.strip(), prefix_length)
    return ExactPattern(text)


def matches(address: str, patterns: Iterable[AllowListPattern]) -> bool:
    """True if address satisfies at least one pattern"""
    return any(pattern.matches(address) for pattern in patterns)


class AddressMatcher:
    def __init__(self, patterns: Sequence[AllowListPattern]):
        self.patterns: Tuple[AllowListPattern, ...] = tuple(patterns)

    @classmethod
    def from_strings(cls, entries: Iterable[str]) -> "AddressMatcher":
        return cls([parse_pattern(entry) for entry in entries if entry.strip()])

    def allows(self, address: Optional[str]) -> bool:
        if not address:
            return False
        return matches(address, self.patterns)
