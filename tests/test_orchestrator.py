"""Tests for batch and single-scene image generation."""

import threading

import pytest

from reelgen.errors import BusyError, ConfigError, ParseEmptyError
from reelgen.gate import BusyGate, Operation
from reelgen.models import MediaRef, Scene, VideoVisual
from reelgen.orchestrator import GenerationOrchestrator
from reelgen.playback import PlaybackController, PlaybackSource, TimedNarration
from reelgen.store import SceneStore

from conftest import TWO_SCENE_SCRIPT, FakeImageClient


def script_of(count: int) -> str:
    blocks = [
        f"**SCENE {n}**\n**Voiceover:**\nLine {n}\n**Visual Prompt:**\nprompt {n}"
        for n in range(1, count + 1)
    ]
    return "\n---\n".join(blocks)


def video_scene(number: int = 1) -> Scene:
    return Scene(
        scene_number=number,
        voiceover="Clip narration",
        visual=VideoVisual(video=MediaRef(name="clip.mp4", data=b"mp4")),
    )


class TestRunBatch:
    """Tests for GenerationOrchestrator.run_batch."""

    @pytest.mark.asyncio
    async def test_all_scenes_get_images(self, image_client):
        store = SceneStore()
        orchestrator = GenerationOrchestrator(store, image_client)

        report = await orchestrator.run_batch(TWO_SCENE_SCRIPT)

        assert report.total == 2
        assert sorted(report.succeeded) == [1, 2]
        assert report.all_succeeded
        assert all(s.image_url for s in store)
        assert not any(s.is_generating_image for s in store)
        assert sorted(image_client.prompts) == ["A cat", "A dog"]
        assert not orchestrator.failures

    @pytest.mark.asyncio
    async def test_failures_are_isolated_and_accumulated(self):
        client = FakeImageClient(failing={
            "prompt 2": "quota exceeded",
            "prompt 4": "safety filter",
        })
        store = SceneStore()
        orchestrator = GenerationOrchestrator(store, client)

        report = await orchestrator.run_batch(script_of(5))

        assert sorted(report.failed) == [2, 4]
        assert sorted(report.succeeded) == [1, 3, 5]
        with_images = [s.scene_number for s in store if s.image_url]
        assert with_images == [1, 3, 5]
        for number in (2, 4):
            scene = store.get(number)
            assert scene.image_url is None
            assert scene.is_generating_image is False

        summary = str(orchestrator.failures)
        assert "scene 2" in summary and "quota exceeded" in summary
        assert "scene 4" in summary and "safety filter" in summary
        assert sorted(orchestrator.failures.scene_numbers) == [2, 4]

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_do_not_stop_siblings(self):
        class Flaky(FakeImageClient):
            def generate_image(self, prompt):
                if prompt == "prompt 1":
                    raise RuntimeError("socket closed")
                return super().generate_image(prompt)

        store = SceneStore()
        orchestrator = GenerationOrchestrator(store, Flaky())

        report = await orchestrator.run_batch(script_of(3))

        assert report.failed == [1]
        assert store.get(1).is_generating_image is False
        assert store.get(2).image_url and store.get(3).image_url

    @pytest.mark.asyncio
    async def test_all_scenes_marked_generating_before_requests(self, image_client):
        store = SceneStore()
        first_snapshot = []
        store.subscribe(lambda snapshot: first_snapshot or first_snapshot.append(snapshot))
        orchestrator = GenerationOrchestrator(store, image_client)

        await orchestrator.run_batch(TWO_SCENE_SCRIPT)

        assert [s.is_generating_image for s in first_snapshot[0]] == [True, True]
        assert not any(s.image_url for s in first_snapshot[0])

    @pytest.mark.asyncio
    async def test_partial_results_visible_before_batch_settles(self, image_client):
        store = SceneStore()
        release_dog = threading.Event()
        image_client.waits["A dog"] = release_dog
        seen_cat_first = []

        def on_change(snapshot):
            cat = next(s for s in snapshot if s.visual_prompt == "A cat")
            dog = next(s for s in snapshot if s.visual_prompt == "A dog")
            if cat.image_url and not release_dog.is_set():
                seen_cat_first.append(dog.is_generating_image)
                release_dog.set()

        store.subscribe(on_change)
        orchestrator = GenerationOrchestrator(store, image_client)

        await orchestrator.run_batch(TWO_SCENE_SCRIPT)

        assert seen_cat_first == [True]
        assert store.get(2).image_url

    @pytest.mark.asyncio
    async def test_empty_script_raises_before_any_request(self, image_client, scenes):
        store = SceneStore(scenes)
        orchestrator = GenerationOrchestrator(store, image_client)

        with pytest.raises(ParseEmptyError):
            await orchestrator.run_batch("no markers here")

        assert image_client.prompts == []
        assert store.scenes == scenes
        assert not orchestrator.is_busy

    @pytest.mark.asyncio
    async def test_batch_refused_while_busy(self, image_client):
        gate = BusyGate()
        orchestrator = GenerationOrchestrator(SceneStore(), image_client, gate=gate)

        with gate.hold(Operation.EXPORT):
            with pytest.raises(BusyError):
                await orchestrator.run_batch(TWO_SCENE_SCRIPT)

        assert image_client.prompts == []

    @pytest.mark.asyncio
    async def test_gate_held_during_batch_and_released_after(self, image_client):
        gate = BusyGate()
        store = SceneStore()
        operations = []
        store.subscribe(lambda _snapshot: operations.append(gate.operation))
        orchestrator = GenerationOrchestrator(store, image_client, gate=gate)

        await orchestrator.run_batch(TWO_SCENE_SCRIPT)

        assert set(operations) == {Operation.BATCH_GENERATION}
        assert gate.operation is None

    @pytest.mark.asyncio
    async def test_batch_stops_playback(self, image_client):
        playback = PlaybackController()
        playback.play(1, TimedNarration(60), PlaybackSource.SPEECH)
        orchestrator = GenerationOrchestrator(SceneStore(), image_client, playback=playback)

        await orchestrator.run_batch(TWO_SCENE_SCRIPT)

        assert playback.current is None

    @pytest.mark.asyncio
    async def test_missing_client_blocks_at_trigger(self, scenes):
        def no_key():
            raise ConfigError("GEMINI_API_KEY not set")

        store = SceneStore(scenes)
        orchestrator = GenerationOrchestrator(store, client_factory=no_key)

        with pytest.raises(ConfigError):
            await orchestrator.run_batch(TWO_SCENE_SCRIPT)

        assert store.scenes == scenes
        assert not orchestrator.is_busy


class TestRunSingle:
    """Tests for GenerationOrchestrator.run_single."""

    @pytest.mark.asyncio
    async def test_regenerates_one_scene(self, image_client, scenes):
        store = SceneStore(scenes)
        orchestrator = GenerationOrchestrator(store, image_client)

        assert await orchestrator.run_single(2) is True

        assert image_client.prompts == ["second"]
        assert store.get(2).image_url
        assert store.get(1).image_url is None

    @pytest.mark.asyncio
    async def test_clears_old_image_before_request(self, image_client, scenes):
        store = SceneStore(scenes)
        orchestrator = GenerationOrchestrator(store, image_client)
        await orchestrator.run_single(1)
        snapshots = []
        store.subscribe(lambda snapshot: snapshots.append(snapshot[0]))

        await orchestrator.run_single(1)

        assert snapshots[0].image_url is None
        assert snapshots[0].is_generating_image is True
        assert snapshots[-1].image_url is not None

    @pytest.mark.asyncio
    async def test_refused_while_busy(self, image_client, scenes):
        gate = BusyGate()
        store = SceneStore(scenes)
        orchestrator = GenerationOrchestrator(store, image_client, gate=gate)

        with gate.hold(Operation.EXPORT):
            assert await orchestrator.run_single(1) is False

        assert image_client.prompts == []
        assert store.scenes == scenes

    @pytest.mark.asyncio
    async def test_refused_for_video_scene(self, image_client):
        store = SceneStore([video_scene()])
        before = store.scenes
        orchestrator = GenerationOrchestrator(store, image_client)

        assert await orchestrator.run_single(1) is False

        assert image_client.prompts == []
        assert store.scenes == before

    @pytest.mark.asyncio
    async def test_refused_for_unknown_scene(self, image_client, scenes):
        orchestrator = GenerationOrchestrator(SceneStore(scenes), image_client)

        assert await orchestrator.run_single(99) is False

    @pytest.mark.asyncio
    async def test_failure_is_reported_and_flag_reset(self, scenes):
        client = FakeImageClient(failing={"third": "Failed to generate image. API Error: boom"})
        store = SceneStore(scenes)
        orchestrator = GenerationOrchestrator(store, client)

        assert await orchestrator.run_single(3) is True

        assert store.get(3).is_generating_image is False
        assert store.get(3).image_url is None
        assert "scene 3" in str(orchestrator.failures)
        assert "API Error: boom" in str(orchestrator.failures)
        assert not orchestrator.is_busy

    @pytest.mark.asyncio
    async def test_stops_playback_of_that_scene_only(self, image_client, scenes):
        playback = PlaybackController()
        orchestrator = GenerationOrchestrator(SceneStore(scenes), image_client, playback=playback)

        playback.play(1, TimedNarration(60))
        await orchestrator.run_single(2)
        assert playback.current.scene_number == 1

        await orchestrator.run_single(1)
        assert playback.current is None


class TestAddScene:
    """Tests for GenerationOrchestrator.add_scene."""

    @pytest.mark.asyncio
    async def test_adds_and_generates(self, image_client, scenes):
        store = SceneStore(scenes)
        orchestrator = GenerationOrchestrator(store, image_client)

        scene = await orchestrator.add_scene("Four", "fourth")

        assert scene.scene_number == 4
        assert scene.image_url
        assert image_client.prompts == ["fourth"]

    @pytest.mark.asyncio
    async def test_video_scene_skips_generation(self, image_client):
        store = SceneStore()
        orchestrator = GenerationOrchestrator(store, image_client)
        clip = MediaRef(name="clip.mp4", data=b"mp4")

        scene = await orchestrator.add_scene("Narration", "", video=clip)

        assert scene.scene_number == 1
        assert scene.video_ref == clip
        assert scene.is_generating_image is False
        assert image_client.prompts == []

    @pytest.mark.asyncio
    async def test_video_scene_needs_no_image_client(self):
        orchestrator = GenerationOrchestrator(SceneStore())
        clip = MediaRef(name="clip.mp4", data=b"mp4")

        scene = await orchestrator.add_scene("Narration", "ignored prompt", video=clip)

        assert scene.video_ref == clip

    @pytest.mark.asyncio
    async def test_validation(self, image_client):
        orchestrator = GenerationOrchestrator(SceneStore(), image_client)

        with pytest.raises(ValueError, match="voiceover"):
            await orchestrator.add_scene("  ", "prompt")
        with pytest.raises(ValueError, match="visual prompt or a video"):
            await orchestrator.add_scene("Narration", "")

    @pytest.mark.asyncio
    async def test_refused_while_busy(self, image_client):
        gate = BusyGate()
        store = SceneStore()
        orchestrator = GenerationOrchestrator(store, image_client, gate=gate)

        with gate.hold(Operation.BATCH_GENERATION):
            assert await orchestrator.add_scene("Narration", "prompt") is None

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_failed_generation_keeps_scene(self):
        client = FakeImageClient(failing={"prompt": "nope"})
        store = SceneStore()
        orchestrator = GenerationOrchestrator(store, client)

        scene = await orchestrator.add_scene("Narration", "prompt")

        assert scene.scene_number == 1
        assert scene.image_url is None
        assert scene.is_generating_image is False
        assert "new scene 1" in str(orchestrator.failures)


class TestResetDuringGeneration:
    """A reset while requests are in flight must not resurrect scenes."""

    @pytest.mark.asyncio
    async def test_late_completion_after_reset_is_ignored(self, image_client):
        store = SceneStore()
        release = threading.Event()
        image_client.waits["A dog"] = release

        def on_change(snapshot):
            cat = next((s for s in snapshot if s.visual_prompt == "A cat"), None)
            if cat is not None and cat.image_url and not release.is_set():
                store.replace_all([])
                release.set()

        store.subscribe(on_change)
        orchestrator = GenerationOrchestrator(store, image_client)

        report = await orchestrator.run_batch(TWO_SCENE_SCRIPT)

        assert sorted(report.succeeded) == [1, 2]
        assert len(store) == 0
