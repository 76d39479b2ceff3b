"""In-memory scene collection with merge-by-key updates."""

import logging
from typing import Callable, Iterable, Iterator, List, Optional

from .models import MediaRef, Scene

logger = logging.getLogger(__name__)

Listener = Callable[[List[Scene]], None]


class SceneStore:
    """Ordered scene collection keyed by scene number.

    Every mutation notifies subscribers with a snapshot of the scenes.
    Mutations are expected to happen on a single thread of control; async
    completions reach the store one at a time through the orchestrator.
    """

    def __init__(self, scenes: Optional[Iterable[Scene]] = None) -> None:
        self._scenes: List[Scene] = list(scenes or [])
        self._listeners: List[Listener] = []

    def __iter__(self) -> Iterator[Scene]:
        return iter(list(self._scenes))

    def __len__(self) -> int:
        return len(self._scenes)

    @property
    def scenes(self) -> List[Scene]:
        """Copy of the scenes in display order."""
        return list(self._scenes)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.scenes
        for listener in list(self._listeners):
            listener(snapshot)

    def get(self, scene_number: int) -> Optional[Scene]:
        """Return the first scene with the given number, if any."""
        for scene in self._scenes:
            if scene.scene_number == scene_number:
                return scene
        return None

    def replace_all(self, scenes: Iterable[Scene]) -> None:
        """Discard the collection and replace it with ``scenes``."""
        self._scenes = list(scenes)
        logger.debug(f"Replaced store contents with {len(self._scenes)} scenes")
        self._notify()

    def patch_by_key(self, scene_number: int, **fields) -> bool:
        """Update fields of the scene(s) carrying ``scene_number``.

        Unknown keys are ignored: the scene may have been removed by a reset
        while its generation was in flight.

        Returns:
            True if at least one scene was patched.
        """
        patched = False
        for i, scene in enumerate(self._scenes):
            if scene.scene_number == scene_number:
                self._scenes[i] = scene.model_copy(update=fields)
                patched = True

        if not patched:
            logger.debug(f"Ignoring patch for missing scene {scene_number}")
            return False

        self._notify()
        return True

    def append_one(self, scene: Scene) -> Scene:
        """Append a scene numbered one past the current maximum.

        Any number already set on ``scene`` is replaced.
        """
        next_number = max((s.scene_number for s in self._scenes), default=0) + 1
        appended = scene.model_copy(update={"scene_number": next_number})
        self._scenes.append(appended)
        self._notify()
        return appended

    def reorder(self, new_sequence: Iterable[Scene]) -> None:
        """Adopt a new scene order and renumber scenes 1..n in that order.

        Raises:
            ValueError: If ``new_sequence`` is not a permutation of the
                current scenes.
        """
        ordered = list(new_sequence)
        current = [s.scene_number for s in self._scenes]
        if sorted(s.scene_number for s in ordered) != sorted(current):
            raise ValueError("Reorder must contain exactly the current scenes")

        self._scenes = [
            scene.model_copy(update={"scene_number": position})
            for position, scene in enumerate(ordered, start=1)
        ]
        self._notify()

    def move(self, from_index: int, to_index: int) -> None:
        """Move the scene at ``from_index`` to ``to_index`` (0-based) and renumber."""
        if not (0 <= from_index < len(self._scenes)) or not (0 <= to_index < len(self._scenes)):
            raise IndexError(
                f"Scene positions must be between 1 and {len(self._scenes)}"
            )
        ordered = list(self._scenes)
        ordered.insert(to_index, ordered.pop(from_index))
        self.reorder(ordered)

    def update_text(self, scene_number: int, voiceover: str, visual_prompt: str) -> bool:
        """Apply a user edit to a scene's narration and prompt."""
        return self.patch_by_key(
            scene_number, voiceover=voiceover, visual_prompt=visual_prompt
        )

    def attach_audio(self, scene_number: int, audio: MediaRef) -> bool:
        """Set the narration audio for a scene."""
        return self.patch_by_key(scene_number, audio=audio)
