#!/usr/bin/env python3
"""Interactive certificate request and conversion tool for infrastructure components."""

import argparse
import sys
from pathlib import Path

from cert_provisioning.lib import artifacts
from cert_provisioning.lib.cert_utils import describe_certificate, describe_request, deserialize_csr, load_certificate
from cert_provisioning.lib.config import ProvisioningConfig
from cert_provisioning.lib.errors import ProvisioningError
from cert_provisioning.lib.identity import SubjectIdentity
from cert_provisioning.lib.instructions import write_instructions
from cert_provisioning.lib.lifecycle import LifecycleManager
from cert_provisioning.lib.logging_config import LOGGER
from cert_provisioning.lib.models import ArtifactState, UnitRecord
from cert_provisioning.lib.profiles import Profile
from cert_provisioning.lib.prompts import Prompter
from cert_provisioning.lib.topology import plan_units

MAIN_MENU = [
    "Configure Global Settings",
    "Generate Certificate Requests",
    "Convert Signed Certificates",
    "View Configuration",
    "Help & Instructions",
    "Exit",
]

HELP_TEXT = """\
1. Configure global settings: key length (4096+ bits) and output directory.
2. Generate certificate requests: pick a component, enter company information,
   server FQDNs, load balancer and certificate strategy. Keys and CSRs are
   written under <output>/<component>/ with an instructions file.
3. Submit the CSRs to your corporate CA and place the signed certificates and
   ca-chain.crt exactly where the instructions file says.
4. Convert signed certificates:
   - PVWA, PSM: PFX, password optional (default: none)
   - HTML5GW: PFX, password optional (default: protected) + Base64 key/cert
   - PTA: PFX, password optional (default: none) + Base64 key/cert;
     intermediate/root CA files may be supplied for the chain
   - Vault: password-protected PFX, password generated automatically
Private keys and password files are written with mode 0600."""


def check_prerequisites(config: ProvisioningConfig) -> bool:
    """Check the crypto library backend and that the output root can be created."""
    try:
        from cryptography.hazmat.backends.openssl import backend
    except ImportError as e:
        LOGGER.error("cryptography OpenSSL backend unavailable: %s", e)
        return False
    LOGGER.info("OpenSSL version: %s", backend.openssl_version_text())

    try:
        config.output_root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        LOGGER.error("Cannot create output directory %s: %s", config.output_root, e)
        return False
    return True


class CertTool:
    """Menu-driven session around one LifecycleManager."""

    def __init__(self, config: ProvisioningConfig, prompter: Prompter) -> None:
        self.config = config
        self.prompter = prompter
        self.identity: SubjectIdentity | None = None

    @property
    def manager(self) -> LifecycleManager:
        return LifecycleManager.from_config(self.config)

    def generated_profiles(self) -> list[Profile]:
        return [p for p in Profile if artifacts.profile_dir(self.config.output_root, p).is_dir()]

    def choose_profiles(self, verb: str, profiles: list[Profile], include_all: bool = False) -> list[Profile]:
        """Show a component menu and return the chosen profiles; empty means Back."""
        self.prompter.say(f"Select component to {verb}:")
        for number, profile in enumerate(profiles, start=1):
            self.prompter.say(f"  {number}. {profile.value} ({profile.spec.description})")
        options = len(profiles)
        if include_all:
            options += 1
            self.prompter.say(f"  {options}. {verb.capitalize()} All Components")
        self.prompter.say(f"  {options + 1}. Back to Main Menu")
        choice = self.prompter.ask_int("Select an option", 1, options + 1)
        if choice == options + 1:
            return []
        if choice > len(profiles):
            return profiles
        return [profiles[choice - 1]]

    def configure(self) -> None:
        self.prompter.say("=== Global Settings ===")
        self.config.key_size = self.prompter.collect_key_size(self.config.min_key_size, self.config.key_size)
        self.config.output_root = self.prompter.collect_output_root(self.config.output_root)
        self.config.output_root.mkdir(parents=True, exist_ok=True)
        LOGGER.info("Output directory: %s, key length: %d", self.config.output_root, self.config.key_size)

    def generate(self, profile: Profile) -> list[UnitRecord]:
        """Collect input for one profile, then generate keys, CSRs and instructions."""
        if self.identity is None or not self.prompter.ask_yes_no(
            "Reuse the company information entered earlier?", default=True
        ):
            self.identity = self.prompter.collect_identity()

        nodes, strategy, load_balancer = self.prompter.collect_topology(profile)
        extra_sans = self.prompter.collect_extra_sans(profile)
        units = plan_units(
            profile,
            nodes,
            self.identity,
            self.config.key_size,
            strategy=strategy,
            load_balancer_fqdn=load_balancer,
            extra_sans=extra_sans,
        )

        records = self.manager.generate_all(units)
        for record in records:
            self.report_generation(record)
        generated = [r.unit for r in records if r.state is ArtifactState.AWAITING_SIGNATURE]
        if generated:
            path = write_instructions(self.config.output_root, profile, generated)
            self.prompter.say(f"Instructions written to {path}")
        return records

    def report_generation(self, record: UnitRecord) -> None:
        if record.state is not ArtifactState.AWAITING_SIGNATURE:
            self.prompter.say(f"[ERROR] {record.label}: {record.error}")
            return
        paths = self.manager.paths(record.unit)
        info = describe_request(deserialize_csr(record.request_pem))
        self.prompter.say(f"=== {record.label} ===")
        self.prompter.say(f"  Private Key: {paths.key}")
        self.prompter.say(f"  CSR: {paths.csr}")
        self.prompter.say(f"  Subject: {info['subject']}")
        for name in info["dns_names"]:
            self.prompter.say(f"  DNS: {name}")
        for address in info["ip_addresses"]:
            self.prompter.say(f"  IP Address: {address}")

    def convert(self, profile: Profile) -> list[UnitRecord]:
        """Convert every previously generated unit of a profile that has its signed certificate."""
        units = artifacts.discover_units(self.config.output_root, profile)
        if not units:
            self.prompter.say(f"[ERROR] No generated {profile.value} requests found. Generate them first.")
            return []

        manager = self.manager
        records = [manager.track(unit) for unit in units]
        records = manager.convert_all(records, self.prompter.collect_conversion_policy)

        self.prompter.say(f"=== {profile.value} Conversion Summary ===")
        for record in records:
            if record.state is ArtifactState.VERIFIED and record.conversion is not None:
                self.report_certificate(record)
                for path in record.conversion.files():
                    self.prompter.say(f"  {record.label}: {path}")
            elif record.state is ArtifactState.FAILED:
                self.prompter.say(f"  {record.label}: FAILED ({record.failure.value}) {record.error}")
            else:
                detail = record.error or "waiting for signed certificate"
                self.prompter.say(f"  {record.label}: {record.state.name} - {detail}")
        return records

    def convert_menu(self) -> None:
        """Offer the components that have generated requests, or all of them at once."""
        available = self.generated_profiles()
        if not available:
            self.prompter.say("[ERROR] No generated certificate requests found. Generate them first.")
            return
        for profile in self.choose_profiles("convert", available, include_all=True):
            self.convert(profile)

    def report_certificate(self, record: UnitRecord) -> None:
        info = describe_certificate(load_certificate(self.manager.paths(record.unit).cert.read_bytes()))
        self.prompter.say(f"  {record.label}: Subject: {info['subject']}")
        for name in info["dns_names"]:
            self.prompter.say(f"  {record.label}: DNS: {name}")
        for address in info["ip_addresses"]:
            self.prompter.say(f"  {record.label}: IP Address: {address}")
        self.prompter.say(f"  {record.label}: Valid: {info['not_before']} to {info['not_after']}")

    def show_configuration(self) -> None:
        self.prompter.say("=== Current Configuration ===")
        self.prompter.say(f"Key Length: {self.config.key_size} bits")
        self.prompter.say(f"Output Directory: {self.config.output_root}")
        if self.identity is None:
            self.prompter.say("Company Information: Not configured")
        else:
            self.prompter.say("Company Information:")
            for line in self.identity.describe():
                self.prompter.say(f"  {line}")
        for profile in Profile:
            directory = artifacts.profile_dir(self.config.output_root, profile)
            if directory.is_dir():
                self.prompter.say(f"  {profile.value}: {directory}")

    def run(self) -> int:
        while True:
            self.prompter.say("=== Main Menu ===")
            for number, label in enumerate(MAIN_MENU, start=1):
                self.prompter.say(f"{number}. {label}")
            choice = self.prompter.ask_int("Select an option", 1, len(MAIN_MENU))

            try:
                if choice == 1:
                    self.configure()
                elif choice == 2:
                    for profile in self.choose_profiles("generate", list(Profile)):
                        self.generate(profile)
                elif choice == 3:
                    self.convert_menu()
                elif choice == 4:
                    self.show_configuration()
                elif choice == 5:
                    self.prompter.say(HELP_TEXT)
                else:
                    LOGGER.info("Goodbye!")
                    return 0
            except ProvisioningError as e:
                LOGGER.error("%s", e)
                self.prompter.say(f"[ERROR] {e}")


def main() -> int:
    """Run the interactive certificate tool.

    Returns:
        Exit code (0 on graceful exit, 1 on prerequisite failure)
    """
    parser = argparse.ArgumentParser(description="Generate and convert component certificates")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Output directory for certificate artifacts (default: ~/cyberark-certificates)",
    )
    parser.add_argument(
        "--key-size",
        type=int,
        default=None,
        help="RSA key length in bits (default: 4096)",
    )
    args = parser.parse_args()

    try:
        config = ProvisioningConfig.from_env()
    except ValueError as e:
        LOGGER.error("Invalid environment configuration: %s", e)
        return 1
    if args.output_dir is not None:
        config.output_root = args.output_dir.expanduser()
    if args.key_size is not None:
        if args.key_size < config.min_key_size:
            LOGGER.error("Key length must be %d or higher", config.min_key_size)
            return 1
        config.key_size = args.key_size

    if not check_prerequisites(config):
        return 1

    try:
        return CertTool(config, Prompter()).run()
    except (EOFError, KeyboardInterrupt):
        LOGGER.info("Input closed, exiting")
        return 0
    except Exception as e:
        LOGGER.error("Certificate tool failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
