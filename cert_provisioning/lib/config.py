"""Provisioning configuration dataclasses."""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _default_output_root() -> Path:
    return Path.home() / "cyberark-certificates"


@dataclass
class ProvisioningConfig:
    """Global settings for a provisioning session."""

    output_root: Path = field(default_factory=_default_output_root)
    key_size: int = 4096
    password_length: int = 24
    min_key_size: int = 4096

    @classmethod
    def from_env(cls) -> "ProvisioningConfig":
        """Build config from defaults overlaid with CERT_TOOL_* environment variables.

        Raises:
            ValueError: If CERT_TOOL_KEY_SIZE is not an integer
        """
        config = cls()
        output_dir = os.environ.get("CERT_TOOL_OUTPUT_DIR")
        if output_dir:
            config.output_root = Path(output_dir).expanduser()
        key_size = os.environ.get("CERT_TOOL_KEY_SIZE")
        if key_size:
            config.key_size = int(key_size)
        return config
