"""Static profile table for the supported infrastructure components."""

from dataclasses import dataclass
from enum import Enum


class Profile(Enum):
    """Infrastructure component a certificate is provisioned for."""

    PVWA = "PVWA"
    PSM = "PSM"
    HTML5GW = "HTML5GW"
    PTA = "PTA"
    VAULT = "Vault"

    @classmethod
    def from_string(cls, value: str) -> "Profile":
        """Look up a profile by display name or short name (case-insensitive)."""
        needle = value.strip().lower()
        for profile in cls:
            if needle in (profile.value.lower(), profile.spec.short_name):
                return profile
        raise ValueError(f"unknown profile: {value}")

    @property
    def spec(self) -> "ProfileSpec":
        return PROFILE_SPECS[self]


class PasswordPolicy(Enum):
    """Whether a PKCS#12 bundle must, may, or cannot be password-protected."""

    MANDATORY = "mandatory"
    OPTIONAL = "optional"
    UNSUPPORTED = "unsupported"


class ChainPolicy(Enum):
    """Where the certificate chain embedded in the PKCS#12 comes from."""

    DISCOVERED_ONLY = "discovered"
    EXPLICIT_OVERRIDE = "explicit_override"


@dataclass(frozen=True)
class ProfileSpec:
    """Fixed constraints for one profile."""

    short_name: str
    description: str
    max_nodes: int
    load_balancer_offered: bool
    unit_prefix: str
    password_policy: PasswordPolicy
    password_default: bool
    chain_policy: ChainPolicy
    pem_sidecars: bool

    def strategy_offered(self, count: int) -> bool:
        """Return True if a single-vs-per-node choice applies for this count."""
        return self.load_balancer_offered and count > 1


PROFILE_SPECS: dict[Profile, ProfileSpec] = {
    Profile.PVWA: ProfileSpec(
        short_name="pvwa",
        description="Password Vault Web Access",
        max_nodes=10,
        load_balancer_offered=True,
        unit_prefix="server",
        password_policy=PasswordPolicy.OPTIONAL,
        password_default=False,
        chain_policy=ChainPolicy.DISCOVERED_ONLY,
        pem_sidecars=False,
    ),
    Profile.PSM: ProfileSpec(
        short_name="psm",
        description="Privileged Session Manager",
        max_nodes=10,
        load_balancer_offered=True,
        unit_prefix="server",
        password_policy=PasswordPolicy.OPTIONAL,
        password_default=False,
        chain_policy=ChainPolicy.DISCOVERED_ONLY,
        pem_sidecars=False,
    ),
    Profile.HTML5GW: ProfileSpec(
        short_name="htmlgw",
        description="HTML5 Gateway",
        max_nodes=10,
        load_balancer_offered=True,
        unit_prefix="server",
        password_policy=PasswordPolicy.OPTIONAL,
        password_default=True,
        chain_policy=ChainPolicy.DISCOVERED_ONLY,
        pem_sidecars=True,
    ),
    Profile.PTA: ProfileSpec(
        short_name="pta",
        description="Privileged Threat Analytics",
        max_nodes=2,
        load_balancer_offered=True,
        unit_prefix="server",
        password_policy=PasswordPolicy.OPTIONAL,
        password_default=False,
        chain_policy=ChainPolicy.EXPLICIT_OVERRIDE,
        pem_sidecars=True,
    ),
    Profile.VAULT: ProfileSpec(
        short_name="vault",
        description="Digital Vault",
        max_nodes=5,
        load_balancer_offered=False,
        unit_prefix="node",
        password_policy=PasswordPolicy.MANDATORY,
        password_default=True,
        chain_policy=ChainPolicy.DISCOVERED_ONLY,
        pem_sidecars=False,
    ),
}
