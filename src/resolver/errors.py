"""Exceptions raised by the resolver."""

from typing import Optional


class ResolutionError(Exception):
    """Base class for every resolution failure."""


class ManifestError(ResolutionError):
    """A manifest record could not be parsed; resolution never started."""

    def __init__(self, name: str, requirement: str, reason: str):
        self.name = name
        self.requirement = requirement
        self.reason = reason
        super().__init__(f"Invalid requirement {requirement!r} for {name}: {reason}")


class PackageFetchError(ResolutionError):
    """Metadata for a gem required by the manifest could not be obtained."""

    def __init__(self, name: str, cause: Optional[Exception] = None):
        self.name = name
        self.cause = cause
        message = f"Could not fetch metadata for {name}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ResolutionCancelled(ResolutionError):
    """Resolution was cancelled before it finished."""

    def __init__(self, message: str = "Resolution cancelled"):
        super().__init__(message)
