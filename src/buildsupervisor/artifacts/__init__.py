"""
Artifact lookup for completed builds.
"""

from .locator import ArtifactLocator

__all__ = [
    "ArtifactLocator",
]
