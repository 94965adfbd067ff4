"""Interactive collection of identity, topology and conversion choices.

Values are validated here and re-prompted on failure, so only well-formed
input reaches the planner and lifecycle manager.
"""

from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from cert_provisioning.lib import san
from cert_provisioning.lib.conversion_policy import ChainOverride, ConversionPolicy
from cert_provisioning.lib.errors import InvalidField
from cert_provisioning.lib.identity import SubjectIdentity, assemble_identity, validate_country, validate_email, validate_text
from cert_provisioning.lib.models import CertificateUnit
from cert_provisioning.lib.profiles import ChainPolicy, PasswordPolicy, Profile
from cert_provisioning.lib.topology import MAX_NODE_IPS, NodeSpec, Strategy, validate_fqdn, validate_hostname, validate_ip

T = TypeVar("T")


def _is_number(answer: str) -> bool:
    # str.isdigit alone accepts superscripts that int() rejects
    return answer.isascii() and answer.isdigit()


class Prompter:
    """Line-oriented prompts over injectable input/output functions."""

    def __init__(
        self,
        input_func: Callable[[str], str] | None = None,
        output_func: Callable[[str], None] | None = None,
    ) -> None:
        self._input = input_func or input
        self._output = output_func or print

    def say(self, message: str = "") -> None:
        self._output(message)

    def ask(self, prompt: str, default: str | None = None) -> str:
        if default:
            answer = self._input(f"{prompt} [{default}]: ").strip()
            return answer or default
        return self._input(f"{prompt}: ").strip()

    def ask_validated(self, prompt: str, validate: Callable[[str], T], default: str | None = None) -> T:
        while True:
            try:
                return validate(self.ask(prompt, default))
            except InvalidField as e:
                self.say(f"[ERROR] {e}")

    def ask_optional(self, prompt: str, validate: Callable[[str], str]) -> str | None:
        """Ask for a value that may be skipped with an empty answer."""
        while True:
            answer = self.ask(f"{prompt} (optional, Enter to skip)")
            if not answer:
                return None
            try:
                return validate(answer)
            except InvalidField as e:
                self.say(f"[ERROR] {e}")

    def ask_yes_no(self, prompt: str, default: bool | None = None) -> bool:
        suffix = {True: "Y/n", False: "y/N", None: "y/n"}[default]
        while True:
            answer = self._input(f"{prompt} ({suffix}): ").strip().lower()
            if not answer and default is not None:
                return default
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            self.say("[ERROR] Please answer y or n")

    def ask_int(self, prompt: str, low: int, high: int | None = None) -> int:
        bounds = f"{low}-{high}" if high is not None else f">= {low}"
        while True:
            answer = self._input(f"{prompt} ({bounds}): ").strip()
            if _is_number(answer) and int(answer) >= low and (high is None or int(answer) <= high):
                return int(answer)
            self.say(f"[ERROR] Please enter a number {bounds}")

    def collect_identity(self) -> SubjectIdentity:
        """Collect DN fields, show them back and confirm."""
        while True:
            self.say("=== Company Information ===")
            self.say("This information is used in the Distinguished Name of every certificate.")
            country = self.ask_validated("Country code (C), e.g. US, GB, DE", validate_country, "US")
            state = self.ask_optional("State/Province (ST)", lambda v: validate_text("state", v))
            locality = self.ask_optional("City/Locality (L)", lambda v: validate_text("locality", v))
            organization = self.ask_optional("Organization (O)", lambda v: validate_text("organization", v))
            org_unit = self.ask_optional(
                "Organizational Unit (OU)", lambda v: validate_text("organizational_unit", v)
            )
            email = self.ask_optional("Email address", validate_email)
            identity = assemble_identity(country, state, locality, organization, org_unit, email)

            self.say("=== Collected Company Information ===")
            for line in identity.describe():
                self.say(f"  {line}")
            if self.ask_yes_no("Is this information correct?"):
                return identity

    def collect_key_size(self, minimum: int, default: int) -> int:
        while True:
            answer = self.ask("Key length in bits", str(default))
            if _is_number(answer) and int(answer) >= minimum:
                return int(answer)
            self.say(f"[ERROR] Invalid key length. Must be {minimum} or higher.")

    def collect_output_root(self, default: Path) -> Path:
        return Path(self.ask("Output directory", str(default))).expanduser()

    def collect_ips(self, number: int) -> tuple[str, ...]:
        ips = [self.ask_validated(f"IP address 1 for node {number} (required)", validate_ip)]
        for position in range(2, MAX_NODE_IPS + 1):
            ip = self.ask_optional(f"IP address {position} for node {number}", validate_ip)
            if ip is None:
                break
            ips.append(ip)
        return tuple(ips)

    def collect_nodes(self, profile: Profile, count: int) -> list[NodeSpec]:
        noun = profile.spec.unit_prefix
        nodes = []
        for number in range(1, count + 1):
            fqdn = self.ask_validated(f"FQDN for {profile.value} {noun} {number}", validate_fqdn)
            if profile is Profile.VAULT:
                hostname = self.ask_validated(f"Hostname for {noun} {number} (no domain)", validate_hostname)
                nodes.append(NodeSpec(fqdn=fqdn, hostname=hostname, ips=self.collect_ips(number)))
            else:
                nodes.append(NodeSpec(fqdn=fqdn))
        return nodes

    def collect_topology(self, profile: Profile) -> tuple[list[NodeSpec], Strategy | None, str | None]:
        """Collect nodes, load balancer and strategy for one profile."""
        spec = profile.spec
        count = self.ask_int(f"How many {profile.value} {spec.unit_prefix}s do you have?", 1, spec.max_nodes)
        nodes = self.collect_nodes(profile, count)

        if not spec.strategy_offered(count):
            return nodes, None, None

        load_balancer = None
        if self.ask_yes_no(f"Do you have a load balancer for {profile.value}?"):
            load_balancer = self.ask_validated("Load balancer FQDN", validate_fqdn)

        self.say("Certificate strategy:")
        self.say(f"  1. Single certificate for all {profile.value} servers (with SAN entries)")
        self.say(f"  2. Unique certificate for each {profile.value} server")
        choice = self.ask_int("Select strategy", 1, 2)
        strategy = Strategy.SINGLE_WITH_SAN if choice == 1 else Strategy.UNIQUE_PER_NODE
        return nodes, strategy, load_balancer

    def collect_extra_sans(self, profile: Profile) -> list[str]:
        """Collect additional DNS names or IPs, one per line, reporting bad values."""
        if not self.ask_yes_no(f"Add additional SAN entries for {profile.value}?", default=False):
            return []
        extra: list[str] = []
        while True:
            value = self.ask("Additional DNS name or IP (Enter to finish)")
            if not value:
                return extra
            if san.classify(value) is None:
                self.say(f"[ERROR] {value!r} is neither an IPv4 address nor a DNS name")
                continue
            extra.append(value)

    def collect_conversion_policy(self, unit: CertificateUnit) -> ConversionPolicy:
        """Ask the choices a unit's profile leaves to the operator."""
        spec = unit.profile.spec
        choice = None
        if spec.password_policy is PasswordPolicy.OPTIONAL:
            choice = self.ask_yes_no(
                f"Password-protect the PFX for {unit.profile.value} {unit.label}?",
                default=spec.password_default,
            )

        override = None
        if spec.chain_policy is ChainPolicy.EXPLICIT_OVERRIDE and self.ask_yes_no(
            "Supply intermediate/root CA certificates for the chain?", default=False
        ):
            intermediate = self.ask("Intermediate CA certificate path (Enter to skip)")
            root = self.ask("Root CA certificate path (Enter to skip)")
            override = ChainOverride(
                intermediate=Path(intermediate).expanduser() if intermediate else None,
                root=Path(root).expanduser() if root else None,
            )
        return ConversionPolicy(password_choice=choice, chain_override=override)
