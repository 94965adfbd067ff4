"""Certificate utility functions for key generation, serialization, and inspection."""

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from cert_provisioning.lib.identity import SubjectIdentity
from cert_provisioning.lib.san import SANSet

PEM_MARKER = b"-----BEGIN"


def generate_private_key(key_size: int = 4096) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def serialize_private_key(key: RSAPrivateKey) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def deserialize_private_key(pem_data: bytes) -> RSAPrivateKey:
    """Deserialize private key from PEM bytes."""
    key = serialization.load_pem_private_key(pem_data, password=None)
    if not isinstance(key, RSAPrivateKey):
        raise ValueError("expected RSA private key")
    return key


def is_pem(data: bytes) -> bool:
    """Return True if data starts with a PEM armour line."""
    return data.lstrip().startswith(PEM_MARKER)


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def load_certificate(data: bytes) -> x509.Certificate:
    """Load a single certificate from PEM or DER bytes."""
    if is_pem(data):
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def load_certificates(data: bytes) -> list[x509.Certificate]:
    """Load every certificate from a PEM bundle, or the single one in a DER blob."""
    if is_pem(data):
        return x509.load_pem_x509_certificates(data)
    return [x509.load_der_x509_certificate(data)]


def build_csr(
    key: RSAPrivateKey,
    identity: SubjectIdentity,
    common_name: str,
    san_set: SANSet,
) -> x509.CertificateSigningRequest:
    """Build a SHA-256 signed CSR carrying the subject DN and SAN extension."""
    builder = x509.CertificateSigningRequestBuilder().subject_name(
        identity.to_x509_name(common_name)
    )
    if len(san_set):
        builder = builder.add_extension(san_set.to_x509(), critical=False)
    return builder.sign(key, hashes.SHA256())


def serialize_csr(csr: x509.CertificateSigningRequest) -> bytes:
    """Serialize CSR to PEM format."""
    return csr.public_bytes(serialization.Encoding.PEM)


def deserialize_csr(pem_data: bytes) -> x509.CertificateSigningRequest:
    """Deserialize CSR from PEM bytes."""
    return x509.load_pem_x509_csr(pem_data)


def create_chain_bundle(*pem_blobs: bytes) -> bytes:
    """Concatenate PEM certificates in the given order (e.g. intermediate then root)."""
    return b"".join(blob if blob.endswith(b"\n") else blob + b"\n" for blob in pem_blobs)


def public_modulus(key_or_cert: RSAPrivateKey | x509.Certificate) -> int | None:
    """Return the RSA modulus of a private key or certificate, None if not RSA."""
    public_key = key_or_cert.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        return None
    return public_key.public_numbers().n


def _subject_alt_names(extensions: x509.Extensions) -> tuple[list[str], list[str]]:
    try:
        ext = extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return [], []
    dns_names = ext.get_values_for_type(x509.DNSName)
    ip_addresses = [str(ip) for ip in ext.get_values_for_type(x509.IPAddress)]
    return dns_names, ip_addresses


def describe_request(csr: x509.CertificateSigningRequest) -> dict[str, object]:
    """Extract subject and SAN values from a CSR for display."""
    dns_names, ip_addresses = _subject_alt_names(csr.extensions)
    return {
        "subject": csr.subject.rfc4514_string(),
        "dns_names": dns_names,
        "ip_addresses": ip_addresses,
        "key_size": csr.public_key().key_size,
    }


def describe_certificate(cert: x509.Certificate) -> dict[str, object]:
    """Extract subject, issuer, validity and SAN values from a certificate for display."""
    dns_names, ip_addresses = _subject_alt_names(cert.extensions)
    return {
        "subject": cert.subject.rfc4514_string(),
        "issuer": cert.issuer.rfc4514_string(),
        "not_before": cert.not_valid_before_utc.isoformat(),
        "not_after": cert.not_valid_after_utc.isoformat(),
        "dns_names": dns_names,
        "ip_addresses": ip_addresses,
    }
