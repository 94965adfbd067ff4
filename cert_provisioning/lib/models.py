"""Units of work and lifecycle records for certificate provisioning."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from cert_provisioning.lib.identity import SubjectIdentity
from cert_provisioning.lib.profiles import Profile
from cert_provisioning.lib.san import SANSet


@dataclass(frozen=True)
class CertificateUnit:
    """One certificate to be produced.

    ``ordinal`` is None for a single certificate covering the whole profile,
    otherwise the 1-based server/node number.
    """

    profile: Profile
    common_name: str
    identity: SubjectIdentity
    san_set: SANSet
    key_size: int
    ordinal: int | None = None

    @property
    def label(self) -> str:
        """Human-readable unit label: ``single``, ``server 2`` or ``node 3``."""
        if self.ordinal is None:
            return "single"
        return f"{self.profile.spec.unit_prefix} {self.ordinal}"

    @property
    def base_name(self) -> str:
        """File base name: ``psm``, ``psm-server2`` or ``vault-node3``."""
        spec = self.profile.spec
        if self.ordinal is None:
            return spec.short_name
        return f"{spec.short_name}-{spec.unit_prefix}{self.ordinal}"

    @property
    def relative_dir(self) -> Path:
        """Directory relative to the output root holding this unit's files."""
        spec = self.profile.spec
        if self.ordinal is None:
            return Path(spec.short_name)
        return Path(spec.short_name) / f"{spec.unit_prefix}{self.ordinal}"


class ArtifactState(Enum):
    """Per-unit lifecycle state, in forward order."""

    EMPTY = 0
    KEY_READY = 1
    REQUEST_READY = 2
    AWAITING_SIGNATURE = 3
    SIGNED = 4
    CONVERTED = 5
    VERIFIED = 6
    FAILED = 99

    @property
    def is_terminal(self) -> bool:
        return self in (ArtifactState.VERIFIED, ArtifactState.FAILED)


class FailureReason(Enum):
    CRYPTO_BACKEND = "CryptoBackendFailure"
    KEY_CERT_MISMATCH = "KeyCertMismatch"
    CONVERSION_ERROR = "ConversionError"
    STORAGE = "StorageError"


class ChainSource(Enum):
    EXPLICIT = "explicit"
    DISCOVERED = "discovered"
    NONE = "none"


class OutputEncoding(Enum):
    PKCS12 = "pkcs12"
    PEM = "pem"


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of converting one signed unit."""

    pfx_path: Path
    password: str | None = field(default=None, repr=False)
    password_path: Path | None = None
    chain_pem: bytes | None = field(default=None, repr=False)
    chain_source: ChainSource = ChainSource.NONE
    encodings: frozenset[OutputEncoding] = frozenset({OutputEncoding.PKCS12})
    pem_files: tuple[Path, ...] = ()

    @property
    def password_protected(self) -> bool:
        return self.password is not None

    def files(self) -> list[Path]:
        """All files produced or normalized by the conversion."""
        produced = [self.pfx_path]
        if self.password_path is not None:
            produced.append(self.password_path)
        produced.extend(self.pem_files)
        return produced


@dataclass
class UnitRecord:
    """Mutable lifecycle state for one unit, owned by the LifecycleManager."""

    unit: CertificateUnit
    state: ArtifactState = ArtifactState.EMPTY
    key: RSAPrivateKey | None = field(default=None, repr=False)
    request_pem: bytes | None = field(default=None, repr=False)
    failure: FailureReason | None = None
    error: str | None = None
    conversion: ConversionResult | None = None

    @property
    def label(self) -> str:
        return f"{self.unit.profile.value} {self.unit.label}"
