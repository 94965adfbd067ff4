"""Crypto backend: key, request, PKCS#12 and encoding operations.

Every operation raises CryptoBackendFailure when the underlying library
call fails, so the lifecycle manager can attach the failure to one unit.
"""

from collections.abc import Sequence
from enum import Enum

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import pkcs12

from cert_provisioning.lib.cert_utils import (
    build_csr,
    generate_private_key,
    load_certificate,
    public_modulus,
    serialize_csr,
)
from cert_provisioning.lib.errors import CryptoBackendFailure
from cert_provisioning.lib.identity import SubjectIdentity
from cert_provisioning.lib.san import SANSet


class EncodingFormat(Enum):
    PEM = "PEM"
    DER = "DER"


_ENCODINGS = {
    EncodingFormat.PEM: serialization.Encoding.PEM,
    EncodingFormat.DER: serialization.Encoding.DER,
}


class CryptoBackend:
    """Crypto operations backed by the ``cryptography`` package."""

    def generate_key(self, bits: int) -> RSAPrivateKey:
        try:
            return generate_private_key(bits)
        except (ValueError, TypeError) as e:
            raise CryptoBackendFailure("generate_key", str(e)) from e

    def generate_request(
        self,
        key: RSAPrivateKey,
        identity: SubjectIdentity,
        san_set: SANSet,
        common_name: str,
    ) -> bytes:
        """Return a PEM-encoded PKCS#10 request for the given subject and SANs."""
        try:
            return serialize_csr(build_csr(key, identity, common_name, san_set))
        except (ValueError, TypeError) as e:
            raise CryptoBackendFailure("generate_request", str(e)) from e

    def package(
        self,
        cert: x509.Certificate,
        key: RSAPrivateKey,
        chain: Sequence[x509.Certificate] | None = None,
        password: str | None = None,
        name: str | None = None,
    ) -> bytes:
        """Bundle key, certificate and optional chain into a PKCS#12 container.

        Args:
            cert: Signed end-entity certificate
            key: Matching private key
            chain: CA certificates to embed after the leaf
            password: Container password; None for an unprotected container
            name: Friendly name stored in the container

        Returns:
            DER-encoded PKCS#12 bytes
        """
        if password:
            encryption: serialization.KeySerializationEncryption = (
                serialization.BestAvailableEncryption(password.encode("utf-8"))
            )
        else:
            encryption = serialization.NoEncryption()
        try:
            return pkcs12.serialize_key_and_certificates(
                name=name.encode("utf-8") if name else None,
                key=key,
                cert=cert,
                cas=list(chain) if chain else None,
                encryption_algorithm=encryption,
            )
        except (ValueError, TypeError) as e:
            raise CryptoBackendFailure("package", str(e)) from e

    def verify_container(self, data: bytes, password: str | None = None) -> bool:
        """Return True if the container opens with password and holds a key and certificate."""
        try:
            key, cert, _ = pkcs12.load_key_and_certificates(
                data, password.encode("utf-8") if password else None
            )
        except (ValueError, TypeError):
            return False
        return key is not None and cert is not None

    def keys_match(self, key: RSAPrivateKey, cert_bytes: bytes) -> bool:
        """Return True if the certificate's public modulus equals the key's.

        Raises:
            CryptoBackendFailure: If cert_bytes is not a parseable certificate
        """
        try:
            cert = load_certificate(cert_bytes)
        except ValueError as e:
            raise CryptoBackendFailure("keys_match", f"unreadable certificate: {e}") from e
        cert_modulus = public_modulus(cert)
        return cert_modulus is not None and cert_modulus == public_modulus(key)

    def reencode(self, data: bytes, from_format: EncodingFormat, to_format: EncodingFormat) -> bytes:
        """Convert a certificate between PEM and DER."""
        try:
            if from_format is EncodingFormat.PEM:
                cert = x509.load_pem_x509_certificate(data)
            else:
                cert = x509.load_der_x509_certificate(data)
        except ValueError as e:
            raise CryptoBackendFailure("reencode", str(e)) from e
        return cert.public_bytes(_ENCODINGS[to_format])
