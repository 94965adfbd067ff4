"""Operator instructions written next to the generated requests."""

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from cert_provisioning.lib.artifacts import ArtifactPaths, profile_dir
from cert_provisioning.lib.models import CertificateUnit
from cert_provisioning.lib.profiles import PasswordPolicy, Profile


def instructions_path(output_root: Path, profile: Profile) -> Path:
    return profile_dir(output_root, profile) / f"{profile.value.upper()}-INSTRUCTIONS.txt"


def _conversion_lines(profile: Profile, paths: ArtifactPaths) -> list[str]:
    spec = profile.spec
    if spec.password_policy is PasswordPolicy.MANDATORY:
        pfx_note = "password-protected PFX file"
    elif spec.password_default:
        pfx_note = "PFX file; password-protected unless you opt out"
    else:
        pfx_note = "PFX file; password protection optional"

    lines = [f"   - {paths.pfx} ({pfx_note})"]
    if spec.password_policy is PasswordPolicy.MANDATORY:
        lines.append(f"   - {paths.password} (randomly generated PFX password; mode 0600)")
    else:
        lines.append(f"   - {paths.password} (if password protection is enabled; mode 0600)")
    if spec.pem_sidecars:
        lines.append(f"   - {paths.key} (private key in Base64 format)")
        lines.append(f"   - {paths.cert} (certificate in Base64 format)")
        lines.append(f"   - {paths.chain} (CA chain in Base64 format, if placed)")
    return lines


def render_instructions(
    output_root: Path,
    profile: Profile,
    units: Sequence[CertificateUnit],
    generated_at: datetime | None = None,
) -> str:
    """Render the submit/place/convert instructions for one profile's units."""
    spec = profile.spec
    generated_at = generated_at or datetime.now(UTC)
    all_paths = [ArtifactPaths.for_unit(output_root, unit) for unit in units]
    title = f"{profile.value} Certificate Instructions"

    lines = [
        title,
        "=" * len(title),
        "",
        f"Generated on: {generated_at.isoformat()}",
        f"Certificates: {len(units)}",
        "",
        "1. SUBMIT CSR(s) TO YOUR CORPORATE CA",
        "",
    ]
    for unit, paths in zip(units, all_paths):
        lines.append(f"   - {paths.csr} (CN={unit.common_name})")
        for config_line in unit.san_set.to_config_lines():
            lines.append(f"       {config_line}")

    lines += [
        "",
        "2. PLACE THE SIGNED CERTIFICATE(S)",
        "",
        "   Save each signed certificate (PEM or DER) and your CA chain as:",
    ]
    for paths in all_paths:
        lines.append(f"   - {paths.cert}")
        lines.append(f"   - {paths.chain}")

    lines += [
        "",
        "3. CONVERT",
        "",
        f"   Run cert-tool, choose 'Convert Signed Certificates' and select {profile.value}.",
        "   This produces:",
    ]
    for paths in all_paths:
        lines.extend(_conversion_lines(profile, paths))

    lines += [
        "",
        "IMPORTANT NOTES:",
        "- Keep private key (.key) and password files secure and never share them",
        f"- {spec.description} certificate files must match the naming above exactly",
        "- Test the certificates in a non-production environment first",
        "",
    ]
    return "\n".join(lines)


def write_instructions(output_root: Path, profile: Profile, units: Sequence[CertificateUnit]) -> Path:
    path = instructions_path(output_root, profile)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_instructions(output_root, profile, units))
    return path
