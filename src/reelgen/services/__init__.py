"""External service integrations."""

from .imagen import ImagenClient
from .drive import DriveClient, UploadItem, build_upload_plan
from .speech import SpeechClient

__all__ = [
    "ImagenClient",
    "DriveClient",
    "UploadItem",
    "build_upload_plan",
    "SpeechClient",
]
