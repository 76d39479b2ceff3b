"""Scene data model."""

import base64
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class ImageAsset(BaseModel):
    """A generated image held in memory."""

    mime_type: str = Field(default="image/jpeg", description="Image MIME type")
    data: str = Field(..., description="Base64-encoded image bytes")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    @property
    def extension(self) -> str:
        return self.mime_type.split("/")[-1]

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)

    @classmethod
    def from_data_url(cls, data_url: str) -> "ImageAsset":
        """Build an asset from a ``data:<mime>;base64,<payload>`` URL."""
        header, _, payload = data_url.partition(",")
        if not header.startswith("data:") or not header.endswith(";base64") or not payload:
            raise ValueError(f"Not a base64 data URL: {data_url[:40]}...")
        return cls(mime_type=header[5:-7], data=payload)


class MediaRef(BaseModel):
    """Reference to a user-supplied or synthesized media file.

    A ref with a ``path`` points at a durable file on disk. A ref that only
    carries ``data`` is blob-backed and does not survive a reload.
    """

    name: str = Field(..., description="Display and upload file name")
    path: Optional[Path] = Field(None, description="Local file path")
    data: Optional[bytes] = Field(None, description="In-memory file contents", exclude=True)

    @property
    def is_blob(self) -> bool:
        return self.path is None

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise ValueError(f"Media '{self.name}' has no contents")
        return self.path.read_bytes()


class ImageVisual(BaseModel):
    """Scene visual backed by a generated image."""

    kind: Literal["image"] = "image"
    image: ImageAsset


class VideoVisual(BaseModel):
    """Scene visual backed by a user-supplied video clip."""

    kind: Literal["video"] = "video"
    video: MediaRef


Visual = Annotated[Union[ImageVisual, VideoVisual], Field(discriminator="kind")]


class Scene(BaseModel):
    """One narrated unit of the reel."""

    scene_number: int = Field(..., description="Merge key, unique within a run", gt=0)
    voiceover: str = Field(..., description="Narration text")
    visual_prompt: str = Field(default="", description="Image generation prompt")
    visual: Optional[Visual] = Field(None, description="Generated image or uploaded video")
    audio: Optional[MediaRef] = Field(None, description="Narration audio")
    is_generating_image: bool = Field(default=False, description="Generation in flight")

    class Config:
        """Pydantic config."""
        frozen = False

    @property
    def image_url(self) -> Optional[str]:
        if isinstance(self.visual, ImageVisual):
            return self.visual.image.data_url
        return None

    @property
    def video_ref(self) -> Optional[MediaRef]:
        if isinstance(self.visual, VideoVisual):
            return self.visual.video
        return None

    @property
    def is_generation_candidate(self) -> bool:
        """True when the scene may have its image generated automatically."""
        return bool(self.visual_prompt) and self.video_ref is None

    def restored(self) -> "Scene":
        """Return a copy fit for loading from persisted state.

        Clears the transient generation flag and any blob-backed media.
        """
        update: dict = {"is_generating_image": False}
        if self.audio is not None and self.audio.is_blob:
            update["audio"] = None
        if self.video_ref is not None and self.video_ref.is_blob:
            update["visual"] = None
        return self.model_copy(update=update)
