"""Narration playback state.

Only one narration plays at a time. Starting a new one, or tearing down a
preview, cancels whatever is currently playing.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PlaybackSource(str, Enum):
    """What drives a scene's playback and its ended signal."""
    SPEECH = "speech"
    AUDIO = "audio"
    VIDEO = "video"


class Narration(ABC):
    """Something that plays and signals when it has ended."""

    @abstractmethod
    def start(self, on_ended: Callable[[], None]) -> None:
        """Begin playing; call ``on_ended`` once playback finishes on its own."""
        ...

    @abstractmethod
    def cancel(self) -> None:
        """Stop playing without firing the ended signal."""
        ...


class TimedNarration(Narration):
    """Narration that lasts a fixed duration on the running event loop."""

    def __init__(self, duration: float) -> None:
        self.duration = duration
        self._handle: Optional[asyncio.TimerHandle] = None

    def start(self, on_ended: Callable[[], None]) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.duration, on_ended)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


@dataclass(frozen=True)
class NowPlaying:
    """What the controller is currently playing."""

    scene_number: int
    source: PlaybackSource


class PlaybackController:
    """Owns the single "currently playing" narration."""

    def __init__(self) -> None:
        self._current: Optional[NowPlaying] = None
        self._narration: Optional[Narration] = None

    @property
    def current(self) -> Optional[NowPlaying]:
        return self._current

    @property
    def is_playing(self) -> bool:
        return self._current is not None

    def play(
        self,
        scene_number: int,
        narration: Narration,
        source: PlaybackSource = PlaybackSource.SPEECH,
        on_ended: Optional[Callable[[], None]] = None,
    ) -> None:
        """Stop any current narration and start ``narration`` for a scene."""
        self.stop()
        self._current = NowPlaying(scene_number=scene_number, source=source)
        self._narration = narration

        def ended() -> None:
            if self._narration is not narration:
                return
            self._current = None
            self._narration = None
            if on_ended is not None:
                on_ended()

        logger.debug(f"Playing {source.value} narration for scene {scene_number}")
        narration.start(ended)

    def stop(self) -> None:
        """Cancel the current narration, if any."""
        if self._narration is not None:
            logger.debug(f"Stopping narration for scene {self._current.scene_number}")
            self._narration.cancel()
        self._current = None
        self._narration = None

    def stop_scene(self, scene_number: int) -> None:
        """Cancel the current narration only if it belongs to ``scene_number``."""
        if self._current is not None and self._current.scene_number == scene_number:
            self.stop()
