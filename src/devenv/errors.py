"""Domain errors for dev-env."""


class DevEnvError(RuntimeError):
    """Raised when the launcher cannot continue safely."""


class ConfigError(DevEnvError):
    """Raised for a malformed settings document or launcher file."""


class ResolutionError(DevEnvError):
    """Raised when no upstream version can be discovered."""


class FetchError(DevEnvError):
    """Raised when a launcher snapshot cannot be retrieved."""


class BuildError(DevEnvError):
    """Raised when a build context is missing or the image build fails."""


class ReconcileError(DevEnvError):
    """Raised when the merge tool itself fails."""


class MergeConflict(DevEnvError):
    """Raised when the merge tool leaves conflicts unresolved."""

    def __init__(self, message: str, returncode: int, conflict_path: str):
        super().__init__(message)
        self.returncode = returncode
        self.conflict_path = conflict_path


class ContainerError(DevEnvError):
    """Raised when starting or preparing the container fails."""


class CommandFailed(DevEnvError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, message: str, returncode: int = 1):
        super().__init__(message)
        self.returncode = returncode
