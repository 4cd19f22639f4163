"""
Build image provisioning.
"""

from .image import ImageProvisioner

__all__ = [
    "ImageProvisioner",
]
