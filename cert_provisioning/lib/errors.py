"""Exception hierarchy for certificate provisioning."""

from pathlib import Path


class ProvisioningError(Exception):
    """Base class for all provisioning errors."""


class InvalidField(ProvisioningError, ValueError):
    """User-supplied identity or SAN value failed validation.

    Raised at the input boundary; callers re-prompt for the named field.
    """

    def __init__(self, field: str, value: object = None, reason: str = "") -> None:
        self.field = field
        self.value = value
        self.reason = reason
        message = f"invalid value for {field}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class TopologyOutOfRange(ProvisioningError, ValueError):
    """Requested node/server count is outside the profile's bound."""

    def __init__(self, profile: str, count: int, max_nodes: int) -> None:
        self.profile = profile
        self.count = count
        self.max_nodes = max_nodes
        super().__init__(f"{profile} supports 1-{max_nodes} nodes, got {count}")


class CryptoBackendFailure(ProvisioningError):
    """A key, request, packaging or verification call failed."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        message = f"crypto backend {operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class KeyCertMismatch(ProvisioningError):
    """Placed certificate does not correspond to the generated key."""

    def __init__(self, cert_path: Path) -> None:
        self.cert_path = cert_path
        super().__init__(f"{cert_path} does not match the generated private key")


class MissingArtifact(ProvisioningError, FileNotFoundError):
    """Expected key, request or signed certificate not found on disk."""

    def __init__(self, path: Path, hint: str = "") -> None:
        self.path = path
        message = f"artifact not found: {path}"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)


class InvalidTransition(ProvisioningError, RuntimeError):
    """Lifecycle operation invoked from a state that does not allow it."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"cannot {requested} from state {current}")
