"""Image generation across the scenes of a reel.

Every generation request runs as its own task. Tasks never touch the store
directly: each sends exactly one patch over a queue, and a single writer task
applies patches to the store in arrival order. A batch waits for all of its
tasks to settle, but each patch is visible as soon as it is applied.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence

from .errors import ConfigError, ParseEmptyError
from .gate import BusyGate, Operation
from .models import ImageAsset, ImageVisual, MediaRef, Scene, VideoVisual
from .playback import PlaybackController
from .script import parse_script
from .store import SceneStore

logger = logging.getLogger(__name__)

BATCH_FAILURE = "Image generation failed for scene {scene_number}. Error: {error}"
REGENERATE_FAILURE = "Failed to regenerate image for scene {scene_number}. Error: {error}"
ADD_FAILURE = "Failed to generate image for new scene {scene_number}. Error: {error}"


class ImageGenerator(Protocol):
    def generate_image(self, prompt: str) -> ImageAsset: ...


@dataclass(frozen=True)
class ScenePatch:
    """Field updates for one scene, sent from a generation task to the writer."""

    scene_number: int
    fields: dict


@dataclass
class FailureSummary:
    """Human-readable failures accumulated over one operation."""

    messages: List[str] = field(default_factory=list)
    scene_numbers: List[int] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.messages)

    def __str__(self) -> str:
        return "\n".join(self.messages)

    def record(self, scene_number: int, message: str) -> None:
        self.scene_numbers.append(scene_number)
        self.messages.append(message)

    def clear(self) -> None:
        self.messages.clear()
        self.scene_numbers.clear()


@dataclass
class BatchReport:
    """Outcome of a settled set of generation tasks."""

    total: int = 0
    succeeded: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


class GenerationOrchestrator:
    """Runs image generation for scenes and merges results into a store."""

    def __init__(
        self,
        store: SceneStore,
        image_client: Optional[ImageGenerator] = None,
        gate: Optional[BusyGate] = None,
        playback: Optional[PlaybackController] = None,
        client_factory: Optional[Callable[[], ImageGenerator]] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Scene store that receives every result.
            image_client: Image generator. When omitted, ``client_factory``
                builds one the first time an image is needed.
            gate: Busy gate shared with export.
            playback: Narration playback to stop when scenes change.
            client_factory: Deferred image generator constructor.
        """
        self._store = store
        self._client = image_client
        self._client_factory = client_factory
        self._gate = gate or BusyGate()
        self._playback = playback
        self._failures = FailureSummary()

    def _image_client(self) -> ImageGenerator:
        if self._client is None:
            if self._client_factory is None:
                raise ConfigError("No image generation client configured")
            self._client = self._client_factory()
        return self._client

    @property
    def gate(self) -> BusyGate:
        return self._gate

    @property
    def is_busy(self) -> bool:
        return self._gate.is_busy

    @property
    def failures(self) -> FailureSummary:
        """Failures from the most recent generation operation."""
        return self._failures

    async def run_batch(self, script_text: str) -> BatchReport:
        """Parse a script, replace all scenes and generate every image.

        Args:
            script_text: Script in the scene marker format.

        Returns:
            Which scenes succeeded and which failed.

        Raises:
            BusyError: If another operation holds the gate.
            ConfigError: If no image generator can be built.
            ParseEmptyError: If the script contains no usable scenes. No
                request is issued and the store is left untouched.
        """
        with self._gate.hold(Operation.BATCH_GENERATION):
            self._image_client()
            self._failures.clear()
            if self._playback is not None:
                self._playback.stop()

            scenes = parse_script(script_text)
            if not scenes:
                raise ParseEmptyError(
                    "Couldn't find any scenes in your script. Check the format."
                )

            marked = [
                scene.model_copy(update={"is_generating_image": scene.is_generation_candidate})
                for scene in scenes
            ]
            self._store.replace_all(marked)

            targets = [scene for scene in marked if scene.is_generating_image]
            logger.info(f"Generating images for {len(targets)} of {len(marked)} scenes")
            report = await self._settle_all(targets, BATCH_FAILURE)

        logger.info(
            f"Batch finished: {len(report.succeeded)} generated, {len(report.failed)} failed"
        )
        return report

    async def run_single(self, scene_number: int) -> bool:
        """Regenerate the image of one scene.

        The request is refused, with no state change, while any other
        generation or export is running, or when the scene is missing, has a
        video or has no prompt.

        Returns:
            True if a generation request was issued.
        """
        if self._gate.is_busy:
            logger.info(f"Not regenerating scene {scene_number}: {self._gate.operation.value} in progress")
            return False

        scene = self._store.get(scene_number)
        if scene is None or not scene.is_generation_candidate:
            logger.info(f"Scene {scene_number} cannot be regenerated")
            return False

        self._image_client()
        with self._gate.hold(Operation.SINGLE_GENERATION):
            self._failures.clear()
            if self._playback is not None:
                self._playback.stop_scene(scene_number)

            self._store.patch_by_key(scene_number, visual=None, is_generating_image=True)
            await self._settle_all([self._store.get(scene_number)], REGENERATE_FAILURE)
        return True

    async def add_scene(
        self,
        voiceover: str,
        visual_prompt: str = "",
        video: Optional[MediaRef] = None,
    ) -> Optional[Scene]:
        """Append a new scene, generating its image unless a video is supplied.

        Returns:
            The appended scene as it stands once generation settles, or None
            if another operation is running.

        Raises:
            ValueError: If the voiceover is empty, or both prompt and video
                are missing.
        """
        voiceover = voiceover.strip()
        visual_prompt = visual_prompt.strip()
        if not voiceover:
            raise ValueError("A voiceover is required.")
        if not visual_prompt and video is None:
            raise ValueError("Either a visual prompt or a video file is required.")

        if self._gate.is_busy:
            logger.info(f"Not adding scene: {self._gate.operation.value} in progress")
            return None

        if video is not None:
            return self._store.append_one(Scene(
                scene_number=1,
                voiceover=voiceover,
                visual_prompt=visual_prompt,
                visual=VideoVisual(video=video),
            ))

        self._image_client()
        with self._gate.hold(Operation.SINGLE_GENERATION):
            self._failures.clear()
            scene = self._store.append_one(Scene(
                scene_number=1,
                voiceover=voiceover,
                visual_prompt=visual_prompt,
                is_generating_image=True,
            ))
            await self._settle_all([scene], ADD_FAILURE)
        return self._store.get(scene.scene_number)

    async def _settle_all(self, scenes: Sequence[Scene], failure_template: str) -> BatchReport:
        report = BatchReport(total=len(scenes))
        channel: asyncio.Queue = asyncio.Queue()
        writer = asyncio.create_task(self._apply_patches(channel))
        try:
            results = await asyncio.gather(
                *(self._generate(scene, channel, report, failure_template) for scene in scenes),
                return_exceptions=True,
            )
            for scene, result in zip(scenes, results):
                if isinstance(result, BaseException):
                    logger.error(f"Generation task for scene {scene.scene_number} crashed: {result!r}")
        finally:
            await channel.put(None)
            await writer
        return report

    async def _generate(
        self,
        scene: Scene,
        channel: asyncio.Queue,
        report: BatchReport,
        failure_template: str,
    ) -> None:
        number = scene.scene_number
        try:
            image = await asyncio.to_thread(self._client.generate_image, scene.visual_prompt)
        except Exception as e:
            logger.error(f"Failed to generate image for scene {number}: {e}")
            report.failed.append(number)
            self._failures.record(
                number, failure_template.format(scene_number=number, error=e)
            )
            await channel.put(ScenePatch(number, {"is_generating_image": False}))
            return

        report.succeeded.append(number)
        await channel.put(ScenePatch(
            number, {"visual": ImageVisual(image=image), "is_generating_image": False}
        ))

    async def _apply_patches(self, channel: asyncio.Queue) -> None:
        while True:
            patch = await channel.get()
            if patch is None:
                return
            self._store.patch_by_key(patch.scene_number, **patch.fields)
