"""Local media validation and probing."""

import mimetypes
from pathlib import Path

from moviepy import AudioFileClip, VideoFileClip

from .models import MediaRef

VIDEO_TYPES = {"video/mp4"}
AUDIO_TYPES = {"audio/mpeg", "audio/mp3", "audio/wav", "audio/x-wav", "audio/mp4", "audio/ogg"}


def _media_ref(path: Path, allowed: set, label: str) -> MediaRef:
    if not path.exists():
        raise FileNotFoundError(f"{label.capitalize()} file not found: {path}")

    mime_type = mimetypes.guess_type(path.name)[0]
    if mime_type not in allowed:
        raise ValueError(f"Please upload a valid {label} file. Got: {path.name}")

    return MediaRef(name=path.name, path=path.resolve())


def video_ref(path: Path) -> MediaRef:
    """Validate a user-supplied clip and return a reference to it.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file is not an .mp4 video.
    """
    return _media_ref(path, VIDEO_TYPES, "video")


def audio_ref(path: Path) -> MediaRef:
    """Validate a user-supplied narration file and return a reference to it."""
    return _media_ref(path, AUDIO_TYPES, "audio")


def get_audio_duration(audio_path: Path) -> float:
    """Get the duration of an audio file.

    Args:
        audio_path: Path to audio file.

    Returns:
        Duration in seconds.
    """
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    audio = AudioFileClip(str(audio_path))
    duration = audio.duration
    audio.close()
    return duration


def get_video_duration(video_path: Path) -> float:
    """Get the duration of a video file in seconds."""
    if not video_path.exists():
        raise FileNotFoundError(f"Video file not found: {video_path}")

    video = VideoFileClip(str(video_path))
    duration = video.duration
    video.close()
    return duration
