"""Tests for artifact layout, private writes and unit discovery."""

import stat
from pathlib import Path

from cert_provisioning.lib import artifacts
from cert_provisioning.lib.artifacts import ArtifactPaths, discover_units, write_private
from cert_provisioning.lib.crypto_backend import CryptoBackend
from cert_provisioning.lib.identity import SubjectIdentity
from cert_provisioning.lib.profiles import Profile
from cert_provisioning.lib.topology import NodeSpec, Strategy, plan_units


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def _write_csr(output_root: Path, unit, backend: CryptoBackend) -> None:
    paths = ArtifactPaths.for_unit(output_root, unit)
    key = backend.generate_key(unit.key_size)
    artifacts.write_public(paths.csr, backend.generate_request(key, unit.identity, unit.san_set, unit.common_name))


class TestArtifactPaths:
    """Tests for the file naming contract."""

    def test_single_layout(self, temp_output_dir: Path, identity: SubjectIdentity) -> None:
        """A single unit lives directly in the profile directory."""
        unit = plan_units(Profile.HTML5GW, [NodeSpec(fqdn="gw.example.com")], identity, 2048)[0]

        paths = ArtifactPaths.for_unit(temp_output_dir, unit)

        assert paths.key == temp_output_dir / "htmlgw" / "htmlgw.key"
        assert paths.csr.name == "htmlgw.csr"
        assert paths.cert.name == "htmlgw.crt"
        assert paths.pfx.name == "htmlgw.pfx"
        assert paths.password.name == "htmlgw-password.txt"
        assert paths.chain == temp_output_dir / "htmlgw" / "ca-chain.crt"

    def test_per_node_layout(self, temp_output_dir: Path, identity: SubjectIdentity) -> None:
        """Per-node units live in numbered subdirectories."""
        nodes = [
            NodeSpec(fqdn="vault1.example.com", hostname="vault1", ips=("10.0.0.1",)),
            NodeSpec(fqdn="vault2.example.com", hostname="vault2", ips=("10.0.0.2",)),
        ]
        unit = plan_units(Profile.VAULT, nodes, identity, 2048)[1]

        paths = ArtifactPaths.for_unit(temp_output_dir, unit)

        assert paths.key == temp_output_dir / "vault" / "node2" / "vault-node2.key"
        assert paths.password == temp_output_dir / "vault" / "node2" / "vault-node2-password.txt"
        assert paths.chain == temp_output_dir / "vault" / "node2" / "ca-chain.crt"


class TestWritePrivate:
    """Tests for owner-only writes."""

    def test_new_file_mode(self, temp_output_dir: Path) -> None:
        """New files are created 0600 with parents."""
        path = temp_output_dir / "nested" / "secret.key"

        write_private(path, b"secret")

        assert path.read_bytes() == b"secret"
        assert _mode(path) == 0o600

    def test_existing_file_tightened(self, temp_output_dir: Path) -> None:
        """An existing world-readable file is rewritten and restricted."""
        path = temp_output_dir / "secret.key"
        path.write_bytes(b"old contents")
        path.chmod(0o644)

        write_private(path, b"new")

        assert path.read_bytes() == b"new"
        assert _mode(path) == 0o600


class TestDiscoverUnits:
    """Tests for rebuilding units from CSRs on disk."""

    def test_no_profile_directory(self, temp_output_dir: Path) -> None:
        """Nothing generated yields no units."""
        assert discover_units(temp_output_dir, Profile.PSM) == []

    def test_single_unit(self, temp_output_dir: Path, identity: SubjectIdentity) -> None:
        """A single CSR is rebuilt with its subject and SANs."""
        nodes = [NodeSpec(fqdn="psm1.example.com"), NodeSpec(fqdn="psm2.example.com")]
        unit = plan_units(Profile.PSM, nodes, identity, 2048, load_balancer_fqdn="psm.example.com")[0]
        _write_csr(temp_output_dir, unit, CryptoBackend())

        (found,) = discover_units(temp_output_dir, Profile.PSM)

        assert found == unit

    def test_numbered_units_in_order(self, temp_output_dir: Path, identity: SubjectIdentity) -> None:
        """Numbered directories are discovered in numeric order."""
        nodes = [NodeSpec(fqdn=f"pvwa{i}.example.com") for i in range(1, 4)]
        units = plan_units(Profile.PVWA, nodes, identity, 2048, strategy=Strategy.UNIQUE_PER_NODE)
        backend = CryptoBackend()
        for unit in units:
            _write_csr(temp_output_dir, unit, backend)
        (temp_output_dir / "pvwa" / "notes").mkdir()

        found = discover_units(temp_output_dir, Profile.PVWA)

        assert [u.ordinal for u in found] == [1, 2, 3]
        assert [u.common_name for u in found] == [u.common_name for u in units]

    def test_skips_missing_and_unreadable(self, temp_output_dir: Path, identity: SubjectIdentity) -> None:
        """Directories without a readable CSR are skipped."""
        nodes = [NodeSpec(fqdn=f"pvwa{i}.example.com") for i in range(1, 3)]
        units = plan_units(Profile.PVWA, nodes, identity, 2048, strategy=Strategy.UNIQUE_PER_NODE)
        _write_csr(temp_output_dir, units[0], CryptoBackend())
        broken = ArtifactPaths.for_unit(temp_output_dir, units[1])
        artifacts.write_public(broken.csr, b"-----BEGIN CERTIFICATE REQUEST-----\njunk\n")
        (temp_output_dir / "pvwa" / "server3").mkdir()

        found = discover_units(temp_output_dir, Profile.PVWA)

        assert [u.ordinal for u in found] == [1]
