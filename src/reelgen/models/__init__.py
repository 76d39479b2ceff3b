"""Data models for the reel generator."""

from .scene import Scene, ImageAsset, ImageVisual, VideoVisual, MediaRef
from .project import Credentials, ProjectSnapshot

__all__ = [
    "Scene",
    "ImageAsset",
    "ImageVisual",
    "VideoVisual",
    "MediaRef",
    "Credentials",
    "ProjectSnapshot",
]
