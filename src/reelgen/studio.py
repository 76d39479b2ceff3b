"""Project session tying scenes, generation, playback, export and saved state."""

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .config import config
from .errors import BusyError, ExportError
from .gate import BusyGate, Operation
from .models import MediaRef, ProjectSnapshot, Scene
from .orchestrator import BatchReport, GenerationOrchestrator, ImageGenerator
from .persistence import StateFile, new_snapshot
from .playback import PlaybackController
from .store import SceneStore

logger = logging.getLogger(__name__)


class ReelStudio:
    """One reel project and everything that acts on it.

    Scene changes are saved to the state file as they happen.
    """

    def __init__(
        self,
        state_file: StateFile,
        image_client: Optional[ImageGenerator] = None,
        drive_client_factory: Optional[Callable[[], object]] = None,
    ) -> None:
        self._state_file = state_file
        snapshot = state_file.load()

        self.script_text = snapshot.script_text
        self.title = snapshot.title
        self.credentials = snapshot.credentials

        self.gate = BusyGate()
        self.playback = PlaybackController()
        self.store = SceneStore(snapshot.scenes)
        self.export_progress = ""

        self._image_client = image_client
        self._drive_client_factory = drive_client_factory
        self._orchestrator: Optional[GenerationOrchestrator] = None

        self.store.subscribe(lambda _scenes: self.save())

    @classmethod
    def open(cls, path: Optional[Path] = None, **kwargs) -> "ReelStudio":
        """Open the project saved at ``path`` (the configured state file by default)."""
        return cls(StateFile(path or config.state_path), **kwargs)

    @property
    def scenes(self) -> List[Scene]:
        return self.store.scenes

    @property
    def narration_dir(self) -> Path:
        return self._state_file.path.parent / "narration"

    @property
    def orchestrator(self) -> GenerationOrchestrator:
        """Generation orchestrator, created on first use.

        The image client itself is only built when an image is requested.
        """
        if self._orchestrator is None:
            self._orchestrator = GenerationOrchestrator(
                self.store,
                self._image_client,
                gate=self.gate,
                playback=self.playback,
                client_factory=self._make_image_client,
            )
        return self._orchestrator

    def _make_image_client(self) -> ImageGenerator:
        from .services.imagen import ImagenClient

        return ImagenClient(api_key=self.credentials.gemini_api_key or None)

    def snapshot(self) -> ProjectSnapshot:
        return ProjectSnapshot(
            script_text=self.script_text,
            title=self.title,
            scenes=self.store.scenes,
            credentials=self.credentials,
        )

    def save(self) -> bool:
        return self._state_file.save(self.snapshot())

    def update_credentials(self, **values: str) -> None:
        self.credentials = self.credentials.model_copy(update=values)
        self._orchestrator = None
        self.save()

    def set_title(self, title: str) -> None:
        self.title = title
        self.save()

    async def generate(self, script_text: Optional[str] = None) -> BatchReport:
        """Generate the whole reel from ``script_text`` (the saved script by default)."""
        if script_text is not None:
            self.script_text = script_text
            self.save()
        return await self.orchestrator.run_batch(self.script_text)

    async def regenerate(self, scene_number: int) -> bool:
        return await self.orchestrator.run_single(scene_number)

    async def add_scene(
        self,
        voiceover: str,
        visual_prompt: str = "",
        video: Optional[MediaRef] = None,
    ) -> Optional[Scene]:
        return await self.orchestrator.add_scene(voiceover, visual_prompt, video)

    def edit_scene(self, scene_number: int, voiceover: str, visual_prompt: str) -> bool:
        """Replace a scene's narration and prompt.

        Returns:
            False if there is no such scene.

        Raises:
            BusyError: If generation or export is in progress.
            ValueError: If the voiceover is empty, or the prompt is empty on a
                scene without a video.
        """
        if self.gate.is_busy:
            raise BusyError(
                f"Cannot edit scenes while {self.gate.operation.value} is in progress"
            )
        scene = self.store.get(scene_number)
        if scene is None:
            return False

        voiceover = voiceover.strip()
        visual_prompt = visual_prompt.strip()
        if not voiceover:
            raise ValueError("A voiceover is required.")
        if not visual_prompt and scene.video_ref is None:
            raise ValueError("A visual prompt is required for scenes without a video.")
        return self.store.update_text(scene_number, voiceover, visual_prompt)

    def move_scene(self, from_position: int, to_position: int) -> None:
        """Move a scene between 1-based positions, renumbering all scenes."""
        self.store.move(from_position - 1, to_position - 1)

    def reorder(self, positions: Iterable[int]) -> None:
        """Put scenes in a new order given as their current 1-based positions.

        ``[3, 1, 2]`` moves the third scene first. Scenes are renumbered 1..n.

        Raises:
            ValueError: If ``positions`` is not each position exactly once.
        """
        order = list(positions)
        current = self.store.scenes
        if sorted(order) != list(range(1, len(current) + 1)):
            raise ValueError(
                f"Give every position from 1 to {len(current)} exactly once. Got: {order}"
            )
        self.store.reorder(current[p - 1] for p in order)

    def attach_audio(self, scene_number: int, audio: MediaRef) -> bool:
        self.playback.stop_scene(scene_number)
        return self.store.attach_audio(scene_number, audio)

    def narrate(self, scene_number: int, speech_client=None) -> MediaRef:
        """Synthesize a scene's voiceover and attach it as the scene's audio.

        Raises:
            KeyError: If the scene does not exist.
            ConfigError: If no Text-to-Speech key is configured.
            ProviderError: If synthesis fails.
        """
        scene = self.store.get(scene_number)
        if scene is None:
            raise KeyError(f"No scene {scene_number}")

        if speech_client is None:
            from .services.speech import SpeechClient

            speech_client = SpeechClient(api_key=self.credentials.google_api_key or None)

        output_path = self.narration_dir / f"scene_{scene_number}_voiceover.mp3"
        audio = speech_client.synthesize(scene.voiceover, output_path)
        self.attach_audio(scene_number, audio)
        return audio

    def export(self, drive_client=None, on_progress: Optional[Callable[[str], None]] = None) -> int:
        """Upload the reel to Drive under the current title.

        Raises:
            ExportError: If the title is empty, there are no scenes or an
                upload fails.
            BusyError: If generation is in progress.
            ConfigError: If no Drive credentials are available.
        """
        if not self.title.strip():
            raise ExportError("Gotta give your reel a title first.")
        if len(self.store) == 0:
            raise ExportError("No scenes to save. Create something first!")

        def report(step: str) -> None:
            self.export_progress = step
            if on_progress is not None:
                on_progress(step)

        with self.gate.hold(Operation.EXPORT):
            report("Connecting...")
            try:
                client = drive_client or self._make_drive_client()
                uploaded = client.upload_reel(self.title, self.store.scenes, report)
            except Exception:
                self.export_progress = ""
                raise
        report("All saved! Go check your Drive.")
        return uploaded

    def _make_drive_client(self):
        if self._drive_client_factory is not None:
            return self._drive_client_factory()
        from .services.drive import DriveClient

        return DriveClient(access_token=self.credentials.drive_access_token or None)

    def start_new(self) -> None:
        """Discard the current project, keeping only the saved credentials.

        Raises:
            BusyError: If generation or export is in progress.
        """
        if self.gate.is_busy:
            raise BusyError(
                f"Cannot start a new project while {self.gate.operation.value} is in progress"
            )
        self.playback.stop()
        fresh = new_snapshot()
        self.script_text = fresh.script_text
        self.title = fresh.title
        self.store.replace_all([])
        logger.info("Started a new project")

