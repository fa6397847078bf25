"""Version numbers, requirements and shared data models."""

from .requirement import InvalidRequirement, VersionRequirement
from .version import InvalidVersion, Version
from .version_set import Interval, VersionSet

__all__ = [
    "InvalidRequirement",
    "InvalidVersion",
    "Interval",
    "Version",
    "VersionRequirement",
    "VersionSet",
]
