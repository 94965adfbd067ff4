"""Artifact lifecycle manager: drives units from no material to a verified PKCS#12.

States only move forward:

    EMPTY -> KEY_READY -> REQUEST_READY -> AWAITING_SIGNATURE
          -> SIGNED -> CONVERTED -> VERIFIED

with FAILED reachable from any non-terminal state. ``generate`` is the only
way back: it discards the unit's key and request and starts over.

Backend, mismatch and storage failures are recorded on the unit's record
rather than raised, so one unit's failure never stops its siblings. Nothing
is retried automatically.
"""

from collections.abc import Callable, Iterable
from pathlib import Path

from cert_provisioning.lib.artifacts import ArtifactPaths, remove_files, write_private, write_public
from cert_provisioning.lib.cert_utils import (
    deserialize_private_key,
    is_pem,
    load_certificate,
    load_certificates,
    serialize_certificate,
    serialize_private_key,
)
from cert_provisioning.lib.config import ProvisioningConfig
from cert_provisioning.lib.conversion_policy import (
    ConversionPolicy,
    assemble_chain,
    generate_password,
    output_encodings,
    password_required,
    to_pem,
)
from cert_provisioning.lib.crypto_backend import CryptoBackend
from cert_provisioning.lib.errors import CryptoBackendFailure, InvalidTransition, KeyCertMismatch, MissingArtifact
from cert_provisioning.lib.logging_config import LOGGER
from cert_provisioning.lib.models import (
    ArtifactState,
    CertificateUnit,
    ConversionResult,
    FailureReason,
    UnitRecord,
)

PolicySource = ConversionPolicy | Callable[[CertificateUnit], ConversionPolicy]


class LifecycleManager:
    """Owns the lifecycle records of the units in one provisioning run."""

    def __init__(
        self,
        output_root: Path,
        backend: CryptoBackend | None = None,
        password_length: int = 24,
    ) -> None:
        """Initialize lifecycle manager.

        Args:
            output_root: Root directory for all profile directories
            backend: Crypto backend; defaults to the cryptography-based one
            password_length: Length of generated PFX passwords
        """
        self.output_root = output_root
        self.backend = backend or CryptoBackend()
        self.password_length = password_length

    @classmethod
    def from_config(cls, config: ProvisioningConfig, backend: CryptoBackend | None = None) -> "LifecycleManager":
        return cls(config.output_root, backend=backend, password_length=config.password_length)

    def paths(self, unit: CertificateUnit) -> ArtifactPaths:
        return ArtifactPaths.for_unit(self.output_root, unit)

    def _advance(self, record: UnitRecord, state: ArtifactState) -> None:
        if record.state.is_terminal or state.value <= record.state.value:
            raise InvalidTransition(record.state.name, state.name)
        LOGGER.info("%s: %s -> %s", record.label, record.state.name, state.name, extra={"unit": record.label})
        record.state = state

    def _fail(self, record: UnitRecord, reason: FailureReason, message: str) -> None:
        LOGGER.error("%s failed (%s): %s", record.label, reason.value, message, extra={"unit": record.label})
        record.state = ArtifactState.FAILED
        record.failure = reason
        record.error = message

    def _require(self, record: UnitRecord, state: ArtifactState, operation: str) -> None:
        if record.state is not state:
            raise InvalidTransition(record.state.name, operation)

    def track(self, unit: CertificateUnit) -> UnitRecord:
        """Rebuild a unit's record from the artifacts already on disk.

        Key and request present resumes at AWAITING_SIGNATURE; key only at
        KEY_READY; nothing at EMPTY. An unreadable key fails the record.
        """
        record = UnitRecord(unit=unit)
        paths = self.paths(unit)
        if not paths.key.exists():
            return record

        try:
            record.key = deserialize_private_key(paths.key.read_bytes())
        except ValueError as e:
            self._fail(record, FailureReason.CRYPTO_BACKEND, f"unreadable private key {paths.key}: {e}")
            return record
        record.state = ArtifactState.KEY_READY

        if paths.csr.exists():
            record.request_pem = paths.csr.read_bytes()
            record.state = ArtifactState.AWAITING_SIGNATURE
        LOGGER.info("%s: resumed at %s", record.label, record.state.name)
        return record

    def generate(self, record: UnitRecord) -> UnitRecord:
        """Create the unit's key and CSR, leaving it AWAITING_SIGNATURE.

        Calling this on a record past EMPTY discards its previous key and
        request and starts again. Files tied to the previous key (request,
        certificate, PFX, password) are removed from disk before the new key
        is written.
        """
        unit = record.unit
        paths = self.paths(unit)
        if record.state is not ArtifactState.EMPTY:
            LOGGER.info("%s: regenerating key and request", record.label)
        record.state = ArtifactState.EMPTY
        record.key = None
        record.request_pem = None
        record.failure = None
        record.error = None
        record.conversion = None

        try:
            key = self.backend.generate_key(unit.key_size)
        except CryptoBackendFailure as e:
            self._fail(record, FailureReason.CRYPTO_BACKEND, str(e))
            return record

        try:
            stale = remove_files(*paths.key_bound)
            if stale:
                LOGGER.info("%s: removed %s from the previous key", record.label, ", ".join(p.name for p in stale))
            write_private(paths.key, serialize_private_key(key))
        except OSError as e:
            self._fail(record, FailureReason.STORAGE, f"cannot write {paths.key}: {e}")
            return record
        record.key = key
        self._advance(record, ArtifactState.KEY_READY)

        try:
            request_pem = self.backend.generate_request(key, unit.identity, unit.san_set, unit.common_name)
        except CryptoBackendFailure as e:
            self._fail(record, FailureReason.CRYPTO_BACKEND, str(e))
            return record

        try:
            write_public(paths.csr, request_pem)
        except OSError as e:
            self._fail(record, FailureReason.STORAGE, f"cannot write {paths.csr}: {e}")
            return record
        record.request_pem = request_pem
        self._advance(record, ArtifactState.REQUEST_READY)
        self._advance(record, ArtifactState.AWAITING_SIGNATURE)
        return record

    def detect_signed(self, record: UnitRecord) -> bool:
        """Check for the externally placed certificate and match it to the key.

        Returns:
            True once the unit is SIGNED. False while the certificate is still
            absent, or when the placed certificate was rejected (the record is
            then FAILED and the file is left in place).

        Raises:
            InvalidTransition: If the unit is not AWAITING_SIGNATURE
        """
        self._require(record, ArtifactState.AWAITING_SIGNATURE, "detect_signed")
        cert_path = self.paths(record.unit).cert
        if not cert_path.exists():
            LOGGER.info("%s: waiting for signed certificate at %s", record.label, cert_path)
            return False

        try:
            matches = self.backend.keys_match(record.key, cert_path.read_bytes())
        except CryptoBackendFailure as e:
            self._fail(record, FailureReason.CRYPTO_BACKEND, str(e))
            return False

        if not matches:
            self._fail(record, FailureReason.KEY_CERT_MISMATCH, str(KeyCertMismatch(cert_path)))
            return False

        self._advance(record, ArtifactState.SIGNED)
        return True

    def convert(
        self, record: UnitRecord, policy: ConversionPolicy | None = None
    ) -> ConversionResult | None:
        """Package a SIGNED unit as PKCS#12 and verify it opens.

        Returns:
            ConversionResult on success, None if the record was FAILED

        Raises:
            InvalidTransition: If the unit is not SIGNED
            MissingArtifact: If the key, certificate or an override CA file is
                missing; the record is left SIGNED so conversion can be re-run
        """
        self._require(record, ArtifactState.SIGNED, "convert")
        policy = policy or ConversionPolicy()
        unit = record.unit
        paths = self.paths(unit)

        for required, hint in ((paths.key, "private key"), (paths.cert, "place the signed certificate here")):
            if not required.exists():
                raise MissingArtifact(required, hint)

        use_password = password_required(unit.profile, policy.password_choice)
        password = generate_password(self.password_length) if use_password else None

        try:
            chain_pem, chain_source = assemble_chain(unit.profile, paths, self.backend, policy.chain_override)
            cert = load_certificate(paths.cert.read_bytes())
            chain = load_certificates(chain_pem) if chain_pem else []
            pfx = self.backend.package(cert, record.key, chain, password, name=unit.common_name)
        except (CryptoBackendFailure, ValueError) as e:
            self._fail(record, FailureReason.CONVERSION_ERROR, str(e))
            return None

        try:
            write_private(paths.pfx, pfx)
            if password is not None:
                write_private(paths.password, f"{password}\n".encode("utf-8"))
            pem_files = self._write_pem_sidecars(record, paths) if unit.profile.spec.pem_sidecars else ()
        except (OSError, ValueError, CryptoBackendFailure) as e:
            remove_files(paths.pfx, paths.password)
            self._fail(record, FailureReason.CONVERSION_ERROR, str(e))
            return None
        self._advance(record, ArtifactState.CONVERTED)

        if not self.backend.verify_container(paths.pfx.read_bytes(), password):
            remove_files(paths.pfx, paths.password)
            self._fail(record, FailureReason.CONVERSION_ERROR, f"{paths.pfx} failed verification")
            return None
        self._advance(record, ArtifactState.VERIFIED)

        result = ConversionResult(
            pfx_path=paths.pfx,
            password=password,
            password_path=paths.password if password is not None else None,
            chain_pem=chain_pem,
            chain_source=chain_source,
            encodings=output_encodings(unit.profile),
            pem_files=pem_files,
        )
        record.conversion = result
        return result

    def _write_pem_sidecars(self, record: UnitRecord, paths: ArtifactPaths) -> tuple[Path, ...]:
        """Ensure the certificate, key and placed chain are PEM, rewriting DER in place."""
        cert_bytes = paths.cert.read_bytes()
        if not is_pem(cert_bytes):
            write_public(paths.cert, serialize_certificate(load_certificate(cert_bytes)))
            LOGGER.info("%s: converted %s to PEM", record.label, paths.cert)
        files = [paths.cert, paths.key]

        if paths.chain.exists():
            chain_bytes = paths.chain.read_bytes()
            if not is_pem(chain_bytes):
                write_public(paths.chain, to_pem(chain_bytes, self.backend))
                LOGGER.info("%s: converted %s to PEM", record.label, paths.chain)
            files.append(paths.chain)
        return tuple(files)

    def generate_all(self, units: Iterable[CertificateUnit]) -> list[UnitRecord]:
        """Generate every unit; a failed unit does not stop the rest."""
        records = [self.generate(UnitRecord(unit=unit)) for unit in units]
        failed = [r.label for r in records if r.state is ArtifactState.FAILED]
        if failed:
            LOGGER.warning("Generation failed for: %s", ", ".join(failed))
        return records

    def convert_all(self, records: Iterable[UnitRecord], policy: PolicySource | None = None) -> list[UnitRecord]:
        """Detect signed certificates and convert every unit that is ready.

        Args:
            records: Tracked records, typically AWAITING_SIGNATURE
            policy: One policy for all units, or a callable choosing per unit

        Returns:
            The same records, advanced as far as possible
        """
        processed = []
        for record in records:
            processed.append(record)
            if record.state is ArtifactState.AWAITING_SIGNATURE and not self.detect_signed(record):
                continue
            if record.state is not ArtifactState.SIGNED:
                continue
            unit_policy = policy(record.unit) if callable(policy) else policy
            try:
                self.convert(record, unit_policy)
            except MissingArtifact as e:
                record.error = str(e)
                LOGGER.error("%s: %s", record.label, e)
        return processed
