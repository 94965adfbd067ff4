"""Test fixtures for cert_provisioning tests."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import NameOID

from cert_provisioning.lib.cert_utils import deserialize_csr, generate_private_key
from cert_provisioning.lib.config import ProvisioningConfig
from cert_provisioning.lib.identity import SubjectIdentity
from cert_provisioning.lib.lifecycle import LifecycleManager
from cert_provisioning.lib.models import CertificateUnit
from cert_provisioning.lib.profiles import Profile
from cert_provisioning.lib.topology import NodeSpec, plan_units

TEST_KEY_SIZE = 2048  # Faster for tests

SignRequest = Callable[[bytes], x509.Certificate]


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Return temporary directory for test output artifacts."""
    return tmp_path


@pytest.fixture
def provisioning_config(temp_output_dir: Path) -> ProvisioningConfig:
    """Return test configuration writing under the temporary directory."""
    return ProvisioningConfig(
        output_root=temp_output_dir,
        key_size=TEST_KEY_SIZE,
        min_key_size=TEST_KEY_SIZE,
    )


@pytest.fixture
def identity() -> SubjectIdentity:
    """Return test subject identity with every optional field present."""
    return SubjectIdentity(
        country="GB",
        state="London",
        locality="London",
        organization="Test Org",
        organizational_unit="Test Unit",
        email="pki@example.com",
    )


@pytest.fixture
def manager(provisioning_config: ProvisioningConfig) -> LifecycleManager:
    """Return lifecycle manager backed by the real crypto backend."""
    return LifecycleManager.from_config(provisioning_config)


@pytest.fixture(scope="session")
def ca_key() -> RSAPrivateKey:
    """Generate RSA private key for the test CA."""
    return generate_private_key(key_size=TEST_KEY_SIZE)


@pytest.fixture(scope="session")
def ca_cert(ca_key: RSAPrivateKey) -> x509.Certificate:
    """Generate self-signed test CA certificate."""
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Test Issuing CA")])
    not_before = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_before + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(ca_key, hashes.SHA256())
    )


@pytest.fixture
def sign_request(ca_key: RSAPrivateKey, ca_cert: x509.Certificate) -> SignRequest:
    """Return a function that issues a certificate for a PEM CSR, like the corporate CA would."""

    def _sign(csr_pem: bytes) -> x509.Certificate:
        csr = deserialize_csr(csr_pem)
        not_before = datetime.now(timezone.utc)
        builder = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(ca_cert.subject)
            .public_key(csr.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_before + timedelta(days=30))
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        )
        for extension in csr.extensions:
            builder = builder.add_extension(extension.value, critical=extension.critical)
        return builder.sign(ca_key, hashes.SHA256())

    return _sign


@pytest.fixture
def single_unit(identity: SubjectIdentity) -> Callable[[Profile], CertificateUnit]:
    """Return a factory planning a single-server unit for a profile."""

    def _unit(profile: Profile) -> CertificateUnit:
        nodes = [NodeSpec(fqdn="app01.example.com", hostname="app01", ips=("10.0.0.1",))]
        return plan_units(profile, nodes, identity, TEST_KEY_SIZE)[0]

    return _unit
