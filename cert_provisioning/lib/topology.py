"""Topology planning: turn a profile and its nodes into certificate units."""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from cert_provisioning.lib import san
from cert_provisioning.lib.errors import InvalidField, TopologyOutOfRange
from cert_provisioning.lib.identity import SubjectIdentity
from cert_provisioning.lib.logging_config import LOGGER
from cert_provisioning.lib.models import CertificateUnit
from cert_provisioning.lib.profiles import Profile
from cert_provisioning.lib.san import SANEntry

FQDN_PATTERN = re.compile(r"[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
HOSTNAME_PATTERN = re.compile(r"[A-Za-z0-9-]+")
MAX_NODE_IPS = 3


class Strategy(Enum):
    """How multiple nodes of one profile are covered."""

    SINGLE_WITH_SAN = "single-with-SAN"
    UNIQUE_PER_NODE = "unique-per-node"


@dataclass(frozen=True)
class NodeSpec:
    """One server or node: FQDN, plus hostname and IPs where the profile needs them."""

    fqdn: str
    hostname: str | None = None
    ips: tuple[str, ...] = ()


def validate_fqdn(value: str, field: str = "fqdn") -> str:
    if not FQDN_PATTERN.fullmatch(value) or not san.is_dns_name(value):
        raise InvalidField(field, value, "expected a domain name such as server.company.com")
    return value


def validate_hostname(value: str, field: str = "hostname") -> str:
    if not HOSTNAME_PATTERN.fullmatch(value):
        raise InvalidField(field, value, "use letters, digits and hyphens only")
    return value


def validate_ip(value: str, field: str = "ip") -> str:
    if not san.is_ipv4_literal(value):
        raise InvalidField(field, value, "expected an IPv4 address")
    return value


def _validate_vault_node(node: NodeSpec, number: int) -> None:
    if not node.hostname:
        raise InvalidField(f"node {number} hostname", node.hostname, "required for Vault")
    validate_hostname(node.hostname, f"node {number} hostname")
    if not 1 <= len(node.ips) <= MAX_NODE_IPS:
        raise InvalidField(
            f"node {number} ips", node.ips, f"Vault nodes need 1-{MAX_NODE_IPS} IP addresses"
        )
    for ip in node.ips:
        validate_ip(ip, f"node {number} ip")


def _node_entries(profile: Profile, node: NodeSpec) -> list[SANEntry]:
    entries = [SANEntry.dns(node.fqdn)]
    if profile is Profile.VAULT:
        entries.append(SANEntry.dns(node.hostname))
        entries.extend(SANEntry.ip(ip) for ip in node.ips)
    return entries


def plan_units(
    profile: Profile,
    nodes: Sequence[NodeSpec],
    identity: SubjectIdentity,
    key_size: int,
    strategy: Strategy | None = None,
    load_balancer_fqdn: str | None = None,
    extra_sans: Iterable[str] = (),
) -> list[CertificateUnit]:
    """Plan the certificate units for one profile run.

    Vault always yields one unit per node. Other profiles yield one unit when
    there is a single node or the single-with-SAN strategy is chosen (the
    default), otherwise one unit per node. Extra SANs are merged into every
    unit after the topology-derived entries.

    Args:
        profile: Component profile
        nodes: Servers/nodes in input order
        identity: Subject fields shared by all units
        key_size: RSA key size for every unit
        strategy: Single-with-SAN or unique-per-node, used when count > 1
        load_balancer_fqdn: Shared FQDN, used as CN for single-with-SAN
        extra_sans: Raw user-supplied DNS names or IPs

    Returns:
        Ordered list of CertificateUnit

    Raises:
        TopologyOutOfRange: If the node count is outside the profile's bound
        InvalidField: If a node FQDN, hostname or IP is malformed
    """
    spec = profile.spec
    count = len(nodes)
    if not 1 <= count <= spec.max_nodes:
        raise TopologyOutOfRange(profile.value, count, spec.max_nodes)

    for number, node in enumerate(nodes, start=1):
        validate_fqdn(node.fqdn, f"node {number} fqdn")
        if profile is Profile.VAULT:
            _validate_vault_node(node, number)
    if load_balancer_fqdn:
        validate_fqdn(load_balancer_fqdn, "load balancer fqdn")

    extra = list(extra_sans)

    def _unit(common_name: str, entries: list[SANEntry], ordinal: int | None) -> CertificateUnit:
        return CertificateUnit(
            profile=profile,
            common_name=common_name,
            identity=identity,
            san_set=san.merge(san.build(entries), extra),
            key_size=key_size,
            ordinal=ordinal,
        )

    if profile is Profile.VAULT:
        if strategy is Strategy.SINGLE_WITH_SAN and count > 1:
            LOGGER.info("Vault nodes always get unique certificates; ignoring single-with-SAN")
        return [
            _unit(node.fqdn, _node_entries(profile, node), number)
            for number, node in enumerate(nodes, start=1)
        ]

    if count == 1:
        if load_balancer_fqdn:
            LOGGER.warning("Load balancer FQDN ignored for a single %s server", profile.value)
        node = nodes[0]
        return [_unit(node.fqdn, _node_entries(profile, node), None)]

    chosen = strategy or Strategy.SINGLE_WITH_SAN
    if chosen is Strategy.UNIQUE_PER_NODE:
        if load_balancer_fqdn:
            LOGGER.warning("Load balancer FQDN ignored for unique-per-node %s certificates", profile.value)
        return [
            _unit(node.fqdn, _node_entries(profile, node), number)
            for number, node in enumerate(nodes, start=1)
        ]

    entries: list[SANEntry] = []
    if load_balancer_fqdn:
        entries.append(SANEntry.dns(load_balancer_fqdn))
    for node in nodes:
        entries.extend(_node_entries(profile, node))
    common_name = load_balancer_fqdn or nodes[0].fqdn
    return [_unit(common_name, entries, None)]
