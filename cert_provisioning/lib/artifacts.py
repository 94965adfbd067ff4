"""Filesystem layout for provisioning artifacts.

Layout per profile under the output root::

    <root>/<profile>/<profile>.{key,csr,crt,pfx}          single certificate
    <root>/<profile>/serverN/<profile>-serverN.*          one per server
    <root>/vault/nodeN/vault-nodeN.*                      one per Vault node
    .../ca-chain.crt                                      placed with the signed cert
    .../<base>-password.txt                               generated PFX password

Private keys and password files are always mode 0600.
"""

import os
import re
import stat
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.x509 import oid

from cert_provisioning.lib import san
from cert_provisioning.lib.cert_utils import deserialize_csr
from cert_provisioning.lib.identity import SubjectIdentity
from cert_provisioning.lib.logging_config import LOGGER
from cert_provisioning.lib.models import CertificateUnit
from cert_provisioning.lib.profiles import Profile
from cert_provisioning.lib.san import SANEntry

CHAIN_FILENAME = "ca-chain.crt"
PRIVATE_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR  # 0o600


@dataclass(frozen=True)
class ArtifactPaths:
    """Expected file locations for one certificate unit."""

    directory: Path
    base_name: str

    @classmethod
    def for_unit(cls, output_root: Path, unit: CertificateUnit) -> "ArtifactPaths":
        return cls(directory=output_root / unit.relative_dir, base_name=unit.base_name)

    @property
    def key(self) -> Path:
        return self.directory / f"{self.base_name}.key"

    @property
    def csr(self) -> Path:
        return self.directory / f"{self.base_name}.csr"

    @property
    def cert(self) -> Path:
        return self.directory / f"{self.base_name}.crt"

    @property
    def chain(self) -> Path:
        return self.directory / CHAIN_FILENAME

    @property
    def pfx(self) -> Path:
        return self.directory / f"{self.base_name}.pfx"

    @property
    def password(self) -> Path:
        return self.directory / f"{self.base_name}-password.txt"

    @property
    def key_bound(self) -> tuple[Path, ...]:
        """Files only valid for the current private key. The CA chain is not one of them."""
        return (self.csr, self.cert, self.pfx, self.password)


def profile_dir(output_root: Path, profile: Profile) -> Path:
    return output_root / profile.spec.short_name


def write_private(path: Path, data: bytes) -> None:
    """Write data to path, readable and writable by the owner only."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PRIVATE_FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    # O_CREAT mode is ignored for a pre-existing file
    os.chmod(path, PRIVATE_FILE_MODE)


def write_public(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def remove_files(*paths: Path) -> list[Path]:
    """Delete whichever of paths exist and return the ones removed."""
    removed = []
    for path in paths:
        if path.exists():
            path.unlink()
            removed.append(path)
    return removed


def _name_value(name: x509.Name, name_oid: x509.ObjectIdentifier) -> str | None:
    attributes = name.get_attributes_for_oid(name_oid)
    if not attributes:
        return None
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8")


def unit_from_request(
    profile: Profile, ordinal: int | None, csr: x509.CertificateSigningRequest
) -> CertificateUnit:
    """Rebuild a CertificateUnit from a previously generated CSR."""
    subject = csr.subject
    identity = SubjectIdentity(
        country=_name_value(subject, oid.NameOID.COUNTRY_NAME) or "",
        state=_name_value(subject, oid.NameOID.STATE_OR_PROVINCE_NAME),
        locality=_name_value(subject, oid.NameOID.LOCALITY_NAME),
        organization=_name_value(subject, oid.NameOID.ORGANIZATION_NAME),
        organizational_unit=_name_value(subject, oid.NameOID.ORGANIZATIONAL_UNIT_NAME),
        email=_name_value(subject, oid.NameOID.EMAIL_ADDRESS),
    )

    entries: list[SANEntry] = []
    try:
        ext = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        ext = None
    if ext is not None:
        for general_name in ext:
            if isinstance(general_name, x509.DNSName):
                entries.append(SANEntry.dns(general_name.value))
            elif isinstance(general_name, x509.IPAddress):
                entries.append(SANEntry.ip(str(general_name.value)))

    return CertificateUnit(
        profile=profile,
        common_name=_name_value(subject, oid.NameOID.COMMON_NAME) or "",
        identity=identity,
        san_set=san.build(entries),
        key_size=csr.public_key().key_size,
        ordinal=ordinal,
    )


def discover_units(output_root: Path, profile: Profile) -> list[CertificateUnit]:
    """Find units previously generated for a profile by reading their CSRs.

    A single-certificate layout (``<profile>/<profile>.csr``) takes precedence
    over per-server/per-node subdirectories, mirroring how they are written.
    """
    spec = profile.spec
    base_dir = profile_dir(output_root, profile)
    if not base_dir.is_dir():
        return []

    candidates: list[tuple[int | None, Path]] = []
    single_csr = base_dir / f"{spec.short_name}.csr"
    if single_csr.exists():
        candidates.append((None, single_csr))
    else:
        pattern = re.compile(rf"{re.escape(spec.unit_prefix)}(\d+)")
        numbered = []
        for child in base_dir.iterdir():
            match = pattern.fullmatch(child.name)
            if child.is_dir() and match:
                numbered.append(int(match.group(1)))
        for ordinal in sorted(numbered):
            csr_path = (
                base_dir
                / f"{spec.unit_prefix}{ordinal}"
                / f"{spec.short_name}-{spec.unit_prefix}{ordinal}.csr"
            )
            candidates.append((ordinal, csr_path))

    units = []
    for ordinal, csr_path in candidates:
        if not csr_path.exists():
            LOGGER.warning("No CSR found at %s, skipping", csr_path)
            continue
        try:
            csr = deserialize_csr(csr_path.read_bytes())
        except ValueError as e:
            LOGGER.warning("Unreadable CSR %s: %s", csr_path, e)
            continue
        units.append(unit_from_request(profile, ordinal, csr))
    return units
