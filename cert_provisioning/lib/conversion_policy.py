"""Per-profile conversion policy: passwords, chain assembly, output encodings."""

import math
import secrets
from dataclasses import dataclass
from pathlib import Path

from cert_provisioning.lib.artifacts import ArtifactPaths
from cert_provisioning.lib.cert_utils import create_chain_bundle, is_pem
from cert_provisioning.lib.crypto_backend import CryptoBackend, EncodingFormat
from cert_provisioning.lib.errors import MissingArtifact
from cert_provisioning.lib.logging_config import LOGGER
from cert_provisioning.lib.models import ChainSource, OutputEncoding
from cert_provisioning.lib.profiles import ChainPolicy, PasswordPolicy, Profile

DEFAULT_PASSWORD_LENGTH = 24


@dataclass(frozen=True)
class ChainOverride:
    """Separately supplied CA certificates, embedded intermediate first."""

    intermediate: Path | None = None
    root: Path | None = None

    def paths(self) -> list[Path]:
        return [path for path in (self.intermediate, self.root) if path is not None]


@dataclass(frozen=True)
class ConversionPolicy:
    """Operator choices for converting one unit.

    ``password_choice`` is None when the operator expressed no preference, in
    which case the profile default applies.
    """

    password_choice: bool | None = None
    chain_override: ChainOverride | None = None


def password_required(profile: Profile, choice: bool | None = None) -> bool:
    """Decide whether the PKCS#12 bundle for this profile gets a password."""
    spec = profile.spec
    if spec.password_policy is PasswordPolicy.MANDATORY:
        return True
    if spec.password_policy is PasswordPolicy.UNSUPPORTED:
        if choice:
            LOGGER.warning("%s does not support PFX passwords; ignoring opt-in", profile.value)
        return False
    return spec.password_default if choice is None else choice


def generate_password(length: int = DEFAULT_PASSWORD_LENGTH) -> str:
    """Random password from the URL-safe Base64 alphabet, padding stripped."""
    return secrets.token_urlsafe(math.ceil(length * 3 / 4))[:length]


def output_encodings(profile: Profile) -> frozenset[OutputEncoding]:
    if profile.spec.pem_sidecars:
        return frozenset({OutputEncoding.PKCS12, OutputEncoding.PEM})
    return frozenset({OutputEncoding.PKCS12})


def to_pem(data: bytes, backend: CryptoBackend) -> bytes:
    """Return PEM certificate bytes, converting from DER if needed."""
    if is_pem(data):
        return data
    return backend.reencode(data, EncodingFormat.DER, EncodingFormat.PEM)


def assemble_chain(
    profile: Profile,
    paths: ArtifactPaths,
    backend: CryptoBackend,
    override: ChainOverride | None = None,
) -> tuple[bytes | None, ChainSource]:
    """Select the certificate chain to embed for a unit.

    An explicit intermediate/root override wins for profiles that accept one;
    otherwise the discovered ``ca-chain.crt`` next to the certificate is used.

    Returns:
        Tuple of (PEM chain bytes or None, where it came from)

    Raises:
        MissingArtifact: If an override path does not exist
    """
    if override is not None and override.paths():
        if profile.spec.chain_policy is ChainPolicy.EXPLICIT_OVERRIDE:
            blobs = []
            for path in override.paths():
                if not path.exists():
                    raise MissingArtifact(path, "supplied CA certificate")
                blobs.append(to_pem(path.read_bytes(), backend))
            return create_chain_bundle(*blobs), ChainSource.EXPLICIT
        LOGGER.warning("%s uses the discovered chain only; ignoring override", profile.value)

    if paths.chain.exists():
        return to_pem(paths.chain.read_bytes(), backend), ChainSource.DISCOVERED
    return None, ChainSource.NONE
