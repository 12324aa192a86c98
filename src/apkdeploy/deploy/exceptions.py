"""
Deployment exceptions.

Custom exceptions for device deployment failures with actionable error messages.
Everything raised by the deploy and cache layers derives from DeploymentError,
so the CLI can report any failure with a single except clause.
"""

from typing import Optional


class DeploymentError(Exception):
    """
    Raised when deployment fails at any step.

    Examples:
        - adb binary missing
        - Device rejected the package
        - Bundle could not be unpacked
    """
    pass


class TransportError(DeploymentError):
    """
    The command channel itself failed: adb missing, device unreachable
    or offline, or the call exceeded its timeout.

    Never retried by the caches or the decision engine.
    """
    pass


class CommandError(DeploymentError):
    """
    A device command ran but reported failure.

    Attributes:
        output: Combined stdout/stderr text of the failed command
    """

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class RemotePathNotFoundError(CommandError):
    """The remote path a command operated on does not exist."""
    pass


class CacheMissError(DeploymentError, KeyError):
    """
    Lookup found no entry for a key.

    Not a failure condition: callers catch it and take the miss branch.
    """

    def __str__(self) -> str:
        return Exception.__str__(self)


class CacheCorruptionError(DeploymentError):
    """
    A recorded cache entry's backing file or directory vanished.

    Callers repair the index by dropping the entry and treating the
    lookup as a miss.
    """

    def __init__(self, key: str, location: str):
        super().__init__(f"Cached location '{location}' for '{key}' no longer exists")
        self.key = key
        self.location = location


class InstallFailure(DeploymentError):
    """
    The device rejected an install operation.

    Attributes:
        signature: Recognized failure signature, if any (see signatures.py)
        output: Installer output the failure was detected in
    """

    def __init__(self, message: str, signature: Optional[str] = None, output: str = ""):
        super().__init__(message)
        self.signature = signature
        self.output = output


class UninstallError(InstallFailure):
    """Raised when a package cannot be uninstalled during a recovery path."""
    pass


class ExtractionFailure(DeploymentError):
    """
    A bundle could not be unpacked, or the requested part is not inside it.
    """
    pass
