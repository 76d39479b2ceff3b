"""Reel preview: a timeline of scenes played back one after another."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .media import get_audio_duration, get_video_duration
from .models import Scene
from .playback import Narration, PlaybackController, PlaybackSource, TimedNarration

logger = logging.getLogger(__name__)

IMAGE_DURATION = 5.0  # seconds a still image stays up when nothing else sets the pace
WORDS_PER_SECOND = 2.5


@dataclass
class PreviewSegment:
    """One scene's slot in the preview timeline."""

    scene_number: int
    visual: str  # "image" or "video"
    source: PlaybackSource
    duration: float
    voiceover: str


def estimate_speech_duration(text: str) -> float:
    """Rough spoken length of ``text`` in seconds, never below IMAGE_DURATION."""
    return max(IMAGE_DURATION, len(text.split()) / WORDS_PER_SECOND)


def build_timeline(
    scenes: Sequence[Scene],
    audio_duration: Callable = get_audio_duration,
    video_duration: Callable = get_video_duration,
) -> List[PreviewSegment]:
    """Lay out the preview in scene order.

    Video scenes last as long as their clip. Image scenes last as long as
    their narration: the attached audio when there is one, otherwise the
    estimated length of the synthesized voiceover. Scenes with neither an
    image nor a video are left out.
    """
    timeline: List[PreviewSegment] = []
    for scene in scenes:
        video = scene.video_ref
        if video is not None:
            duration = video_duration(video.path) if video.path else IMAGE_DURATION
            timeline.append(PreviewSegment(
                scene_number=scene.scene_number,
                visual="video",
                source=PlaybackSource.VIDEO,
                duration=duration,
                voiceover=scene.voiceover,
            ))
        elif scene.image_url:
            if scene.audio is not None and scene.audio.path is not None:
                source = PlaybackSource.AUDIO
                duration = audio_duration(scene.audio.path)
            else:
                source = PlaybackSource.SPEECH
                duration = estimate_speech_duration(scene.voiceover)
            timeline.append(PreviewSegment(
                scene_number=scene.scene_number,
                visual="image",
                source=source,
                duration=duration,
                voiceover=scene.voiceover,
            ))
        else:
            logger.debug(f"Scene {scene.scene_number} has no visual; left out of preview")
    return timeline


class PreviewPlayer:
    """Steps through a timeline, advancing when each segment's playback ends."""

    def __init__(
        self,
        timeline: Sequence[PreviewSegment],
        playback: Optional[PlaybackController] = None,
        narration_factory: Callable[[PreviewSegment], Narration] = lambda s: TimedNarration(s.duration),
    ) -> None:
        self._timeline = list(timeline)
        self._playback = playback or PlaybackController()
        self._narration_factory = narration_factory
        self.index = 0
        self.is_playing = False
        self._pending: Optional[asyncio.Future] = None

    @property
    def current(self) -> Optional[PreviewSegment]:
        if 0 <= self.index < len(self._timeline):
            return self._timeline[self.index]
        return None

    async def play(self, on_segment: Optional[Callable[[PreviewSegment], None]] = None) -> None:
        """Play from the current position to the end of the reel.

        Resets to the first scene once the last one has ended.
        """
        self.is_playing = True
        try:
            while self.is_playing and self.current is not None:
                segment = self.current
                if on_segment is not None:
                    on_segment(segment)

                ended = asyncio.get_running_loop().create_future()
                self._pending = ended
                self._playback.play(
                    segment.scene_number,
                    self._narration_factory(segment),
                    source=segment.source,
                    on_ended=lambda f=ended: f.done() or f.set_result(None),
                )
                await ended
                if self.is_playing:
                    self.index += 1
        finally:
            self._pending = None
            if self.current is None:
                self.index = 0
            self.is_playing = False
            self._playback.stop()

    def close(self) -> None:
        """Stop playback and rewind, as when the preview is dismissed."""
        self.is_playing = False
        self._playback.stop()
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(None)
        self.index = 0
