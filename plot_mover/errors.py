class ConfigurationError(ValueError):
    """Missing or invalid configuration. The process does not start."""


class WalkError(OSError):
    """A staging location could not be traversed. Fatal for the run."""

    def __init__(self, path, cause=None):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to walk staging location {path}: {cause}")


class CopyError(OSError):
    """I/O failure while copying a plot to its destination."""


class VerificationMismatchError(Exception):
    """The copied file does not match its source byte for byte."""

    def __init__(self, src, dest, reason="content differs"):
        self.src = src
        self.dest = dest
        super().__init__(f"Verification failed between {src} and {dest}: {reason}")


class CopyCancelled(Exception):
    """Copy aborted because shutdown was requested."""
