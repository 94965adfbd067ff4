"""Subject Alternative Name sets with stable per-kind indices.

A SANSet is an immutable, ordered, duplicate-free sequence of DNS and IP
entries. Each entry carries an index within its kind (``DNS.1``, ``DNS.2``,
``IP.1`` ...). Merging only ever appends, continuing each kind's numbering
from its current maximum.

Duplicate detection compares (kind, value) literally; no case folding or
address normalization is applied.
"""

import ipaddress
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from cryptography import x509

from cert_provisioning.lib.logging_config import LOGGER

DOTTED_QUAD_PATTERN = re.compile(r"(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})")
DNS_NAME_PATTERN = re.compile(r"[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*")
MAX_DNS_LENGTH = 253


class SANKind(Enum):
    DNS = "DNS"
    IP = "IP"


class SANEntry(NamedTuple):
    """Tagged DNS name or IP address."""

    kind: SANKind
    value: str

    @classmethod
    def dns(cls, name: str) -> "SANEntry":
        return cls(SANKind.DNS, name)

    @classmethod
    def ip(cls, address: str) -> "SANEntry":
        return cls(SANKind.IP, address)

    def to_general_name(self) -> x509.GeneralName:
        if self.kind is SANKind.IP:
            octets = (str(int(part)) for part in self.value.split("."))
            return x509.IPAddress(ipaddress.IPv4Address(".".join(octets)))
        return x509.DNSName(self.value)


class IndexedSAN(NamedTuple):
    index: int
    entry: SANEntry

    @property
    def label(self) -> str:
        return f"{self.entry.kind.value}.{self.index}"


@dataclass(frozen=True)
class RejectedSAN:
    """Extra SAN value that was not appended, with the reason."""

    value: str
    reason: str


@dataclass(frozen=True)
class SANSet:
    """Ordered, duplicate-free SAN entries with per-kind indices."""

    entries: tuple[IndexedSAN, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[IndexedSAN]:
        return iter(self.entries)

    def __contains__(self, item: object) -> bool:
        return any(indexed.entry == item for indexed in self.entries)

    def values(self, kind: SANKind) -> list[str]:
        return [indexed.entry.value for indexed in self.entries if indexed.entry.kind is kind]

    @property
    def dns_names(self) -> list[str]:
        return self.values(SANKind.DNS)

    @property
    def ip_addresses(self) -> list[str]:
        return self.values(SANKind.IP)

    def indices(self, kind: SANKind) -> list[int]:
        return [indexed.index for indexed in self.entries if indexed.entry.kind is kind]

    def next_index(self, kind: SANKind) -> int:
        return max(self.indices(kind), default=0) + 1

    def append(self, entries: Iterable[SANEntry]) -> "SANSet":
        """Return a new set with entries appended; entries already present are skipped."""
        result = list(self.entries)
        seen = {indexed.entry for indexed in result}
        next_indices = {kind: self.next_index(kind) for kind in SANKind}
        for entry in entries:
            if entry in seen:
                continue
            result.append(IndexedSAN(next_indices[entry.kind], entry))
            next_indices[entry.kind] += 1
            seen.add(entry)
        return SANSet(tuple(result))

    def to_config_lines(self) -> list[str]:
        """Render as OpenSSL ``[alt_names]`` lines, e.g. ``DNS.1 = host.example``."""
        return [f"{indexed.label} = {indexed.entry.value}" for indexed in self.entries]

    def to_x509(self) -> x509.SubjectAlternativeName:
        return x509.SubjectAlternativeName(
            [indexed.entry.to_general_name() for indexed in self.entries]
        )


def build(entries: Iterable[SANEntry]) -> SANSet:
    """Seed a SANSet from topology-derived entries, in order."""
    return SANSet().append(entries)


def is_ipv4_literal(value: str) -> bool:
    """Return True for a dotted quad whose octets are all 0-255."""
    match = DOTTED_QUAD_PATTERN.fullmatch(value)
    return match is not None and all(int(octet) <= 255 for octet in match.groups())


def is_dns_name(value: str) -> bool:
    return len(value) <= MAX_DNS_LENGTH and DNS_NAME_PATTERN.fullmatch(value) is not None


def classify(value: str) -> SANEntry | None:
    """Classify a raw string as an IP or DNS entry, or None if it is neither.

    Anything shaped like a dotted quad is treated as an IP attempt, so
    ``300.1.1.1`` is rejected rather than accepted as a DNS name.
    """
    if DOTTED_QUAD_PATTERN.fullmatch(value):
        return SANEntry.ip(value) if is_ipv4_literal(value) else None
    if is_dns_name(value):
        return SANEntry.dns(value)
    return None


def partition_extra(
    base: SANSet, extra: Iterable[str]
) -> tuple[list[SANEntry], list[RejectedSAN]]:
    """Split raw extra SAN strings into appendable entries and rejections."""
    accepted: list[SANEntry] = []
    rejected: list[RejectedSAN] = []
    for raw in extra:
        entry = classify(raw)
        if entry is None:
            rejected.append(RejectedSAN(raw, "not a valid IPv4 address or DNS name"))
        elif entry in base or entry in accepted:
            rejected.append(RejectedSAN(raw, "duplicate entry"))
        else:
            accepted.append(entry)
    return accepted, rejected


def merge(base: SANSet, extra: Iterable[str]) -> SANSet:
    """Append user-supplied SAN strings to base without renumbering it.

    Invalid and duplicate values are logged and skipped.
    """
    accepted, rejected = partition_extra(base, extra)
    for item in rejected:
        LOGGER.warning("Skipping additional SAN %r: %s", item.value, item.reason)
    return base.append(accepted)
