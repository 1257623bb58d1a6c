"""Install engine exceptions.

Every failure that aborts an install is a BowerError carrying a machine-checkable
``code`` plus a context dict with the names, targets and versions involved.
"""


class BowerError(Exception):
    """Base exception for install operations."""

    code = "EBOWER"

    def __init__(self, message: str, context: dict | None = None, code: str | None = None):
        """Initialize with message, optional context and optional code override.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (package names, targets, paths)
            code: Machine-checkable error code (defaults to the class code)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}
        if code is not None:
            self.code = code


class ConflictError(BowerError):
    """Requesters of one package name want versions no single release satisfies."""

    code = "ECONFLICT"


class TamperError(BowerError):
    """A lock entry no longer satisfies the target declared for it."""

    code = "ETAMPER"


class MissingLockError(BowerError):
    """Production install without a usable lock file."""

    code = "ENOLOCK"


class FetchError(BowerError):
    """Transport or status failure while fetching an endpoint."""

    code = "EFETCH"

    def __init__(self, message: str, context: dict | None = None, status: int | None = None):
        super().__init__(message, context, code=str(status) if status is not None else None)
        self.status = status

    @classmethod
    def from_status(cls, status: int, context: dict | None = None) -> "FetchError":
        """Build the error raised for a non-success HTTP response."""
        return cls(f"Status code of {status}", context=context, status=status)


class FilesystemError(BowerError):
    """Target path not usable (e.g. exists as a non-directory)."""

    code = "EFS"


class CycleError(BowerError):
    """Dependency graph refers back to a package on its own requester path."""

    code = "ECYCLE"

    def __init__(self, path: list[str], context: dict | None = None):
        super().__init__(
            f"Dependency cycle detected: {' -> '.join(path)}",
            context={"path": list(path), **(context or {})},
        )
        self.path = list(path)


class HookError(BowerError):
    """Lifecycle script exited with a nonzero status."""

    code = "EHOOK"

    def __init__(self, message: str, returncode: int, stderr: str = "", context: dict | None = None):
        super().__init__(message, context={"returncode": returncode, **(context or {})})
        self.returncode = returncode
        self.stderr = stderr
