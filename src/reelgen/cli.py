"""CLI entry point for the reel generator."""

import asyncio
import logging
import typer
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import config
from .errors import BusyError, ConfigError, ExportError, ParseEmptyError, ProviderError, ReelError
from .models import Scene
from .studio import ReelStudio

app = typer.Typer(
    name="reel-maker",
    help="AI-powered short-form reel generator",
    no_args_is_help=True
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"reel-maker version {__version__}")
        raise typer.Exit()


def open_studio(ctx: typer.Context) -> ReelStudio:
    return ReelStudio.open(ctx.obj["project"])


def preview_text(text: str, width: int = 60) -> str:
    return text[:width] + "..." if len(text) > width else text


def describe_scene(scene: Scene) -> str:
    if scene.is_generating_image:
        return "⏳"
    if scene.video_ref:
        return "🎞️"
    if scene.image_url:
        return "🖼️"
    return "❌"


def show_failures(studio: ReelStudio) -> None:
    failures = studio.orchestrator.failures
    if failures:
        for line in str(failures).splitlines():
            typer.echo(f"   ❌ {line}")


@app.callback()
def main(
    ctx: typer.Context,
    project: Path = typer.Option(
        None,
        "--project",
        "-p",
        help="Project state file (defaults to REEL_STATE_FILE in the workspace)",
        dir_okay=False
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """Reel Generator - Turn scripts into illustrated, narrated reels."""
    setup_logging(verbose)
    ctx.obj = {"project": project or config.state_path}


@app.command()
def status(ctx: typer.Context) -> None:
    """Show project status."""
    studio = open_studio(ctx)
    typer.echo(f"📁 Project: {studio.title}")
    typer.echo(f"   State file: {ctx.obj['project']}")
    typer.echo(f"   Scenes: {len(studio.store)}")

    if not len(studio.store):
        typer.echo("   Run 'reel-maker generate' to create scenes from your script")
        return

    typer.echo("\n📽️  Scenes:")
    for scene in studio.scenes:
        audio = " 🔊" if scene.audio else ""
        typer.echo(f"   {describe_scene(scene)} Scene {scene.scene_number}{audio}")
        typer.echo(f"      🗣  {preview_text(scene.voiceover)}")
        if scene.visual_prompt:
            typer.echo(f"      → {preview_text(scene.visual_prompt)}")


@app.command()
def generate(
    ctx: typer.Context,
    script: Optional[Path] = typer.Option(
        None,
        "--script",
        "-s",
        help="Script file to generate from (defaults to the saved script)",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    title: Optional[str] = typer.Option(
        None,
        "--title",
        "-t",
        help="Reel title"
    )
) -> None:
    """Split the script into scenes and generate an image for each one."""
    studio = open_studio(ctx)
    if title:
        studio.set_title(title)

    script_text = script.read_text() if script else None
    typer.echo(f"🎬 Generating reel: {studio.title}")

    def on_change(scenes: List[Scene]) -> None:
        pending = sum(1 for s in scenes if s.is_generating_image)
        if scenes and pending:
            typer.echo(f"   ⏳ {pending} image(s) still generating...")

    studio.store.subscribe(on_change)

    try:
        report = asyncio.run(studio.generate(script_text))
    except ParseEmptyError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    except ConfigError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    typer.echo(f"\n📊 Summary:")
    typer.echo(f"   Scenes: {len(studio.store)}")
    typer.echo(f"   Generated: {len(report.succeeded)}")
    typer.echo(f"   Failed: {len(report.failed)}")

    if report.failed:
        show_failures(studio)
        typer.echo("\n⚠️  Use 'reel-maker regenerate <scene>' to retry failed scenes")
        raise typer.Exit(1)

    typer.echo(f"\n✅ All images generated!")


@app.command()
def regenerate(
    ctx: typer.Context,
    scene_number: int = typer.Argument(..., help="Scene to regenerate")
) -> None:
    """Generate a fresh image for one scene."""
    studio = open_studio(ctx)
    scene = studio.store.get(scene_number)
    if scene is None:
        typer.echo(f"❌ No scene {scene_number}")
        raise typer.Exit(1)
    if scene.video_ref:
        typer.echo(f"❌ Scene {scene_number} uses a video clip; nothing to regenerate")
        raise typer.Exit(1)

    typer.echo(f"🎨 Regenerating scene {scene_number}")
    try:
        started = asyncio.run(studio.regenerate(scene_number))
    except ConfigError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    if not started:
        typer.echo("❌ Scene could not be regenerated")
        raise typer.Exit(1)
    if studio.orchestrator.failures:
        show_failures(studio)
        raise typer.Exit(1)

    typer.echo(f"✅ Scene {scene_number} regenerated")


@app.command()
def add(
    ctx: typer.Context,
    voiceover: str = typer.Option(..., "--voiceover", "-o", help="Narration for the scene"),
    prompt: str = typer.Option("", "--prompt", "-P", help="Visual prompt for image generation"),
    video: Optional[Path] = typer.Option(
        None,
        "--video",
        help="MP4 clip to use instead of a generated image"
    )
) -> None:
    """Append a scene, generating its image unless a video is given."""
    from .media import video_ref

    studio = open_studio(ctx)
    try:
        clip = video_ref(video) if video else None
        scene = asyncio.run(studio.add_scene(voiceover, prompt, clip))
    except (ValueError, FileNotFoundError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    if scene is None:
        typer.echo("❌ Another operation is in progress")
        raise typer.Exit(1)

    if studio.orchestrator.failures:
        show_failures(studio)
        raise typer.Exit(1)

    typer.echo(f"✅ Added scene {scene.scene_number} {describe_scene(scene)}")


@app.command()
def edit(
    ctx: typer.Context,
    scene_number: int = typer.Argument(..., help="Scene to edit"),
    voiceover: Optional[str] = typer.Option(None, "--voiceover", "-o", help="New narration"),
    prompt: Optional[str] = typer.Option(None, "--prompt", "-P", help="New visual prompt")
) -> None:
    """Change a scene's narration or visual prompt."""
    studio = open_studio(ctx)
    scene = studio.store.get(scene_number)
    if scene is None:
        typer.echo(f"❌ No scene {scene_number}")
        raise typer.Exit(1)

    try:
        studio.edit_scene(
            scene_number,
            voiceover if voiceover is not None else scene.voiceover,
            prompt if prompt is not None else scene.visual_prompt,
        )
    except (ValueError, BusyError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    typer.echo(f"✅ Updated scene {scene_number}")


@app.command()
def move(
    ctx: typer.Context,
    from_position: int = typer.Argument(..., help="Current position (1-based)"),
    to_position: int = typer.Argument(..., help="New position (1-based)")
) -> None:
    """Move a scene to a new position; scenes are renumbered in order."""
    studio = open_studio(ctx)
    try:
        studio.move_scene(from_position, to_position)
    except IndexError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    typer.echo(f"✅ Moved scene from position {from_position} to {to_position}")


@app.command()
def reorder(
    ctx: typer.Context,
    order: List[int] = typer.Argument(..., help="Every current position (1-based), in the new order")
) -> None:
    """Reorder all scenes at once; scenes are renumbered in order."""
    studio = open_studio(ctx)
    try:
        studio.reorder(order)
    except ValueError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    typer.echo(f"✅ Reordered {len(order)} scenes")


@app.command("attach-audio")
def attach_audio(
    ctx: typer.Context,
    scene_number: int = typer.Argument(..., help="Scene to attach narration to"),
    audio: Path = typer.Argument(..., help="Audio file (mp3, wav, m4a, ogg)")
) -> None:
    """Use a recorded narration file for a scene."""
    from .media import audio_ref

    studio = open_studio(ctx)
    try:
        ref = audio_ref(audio)
    except (ValueError, FileNotFoundError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    if not studio.attach_audio(scene_number, ref):
        typer.echo(f"❌ No scene {scene_number}")
        raise typer.Exit(1)
    typer.echo(f"✅ Attached {ref.name} to scene {scene_number}")


@app.command()
def narrate(
    ctx: typer.Context,
    scene_number: int = typer.Argument(..., help="Scene to narrate")
) -> None:
    """Synthesize a scene's voiceover with Text-to-Speech and attach it."""
    studio = open_studio(ctx)
    try:
        audio = studio.narrate(scene_number)
    except KeyError:
        typer.echo(f"❌ No scene {scene_number}")
        raise typer.Exit(1)
    except ConfigError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)
    except ProviderError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    typer.echo(f"🔊 Narration saved: {audio.path}")


@app.command()
def preview(
    ctx: typer.Context,
    play: bool = typer.Option(
        False,
        "--play",
        help="Step through the reel in real time"
    )
) -> None:
    """Show the reel timeline, optionally playing it through."""
    from .preview import PreviewPlayer, build_timeline

    studio = open_studio(ctx)
    try:
        timeline = build_timeline(studio.scenes)
    except (OSError, ValueError) as e:
        typer.echo(f"❌ Could not read scene media: {e}")
        raise typer.Exit(1)

    if not timeline:
        typer.echo("❌ Nothing to preview yet. Generate some scenes first!")
        raise typer.Exit(1)

    total = sum(segment.duration for segment in timeline)
    typer.echo(f"🎞️  {studio.title} ({total:.1f}s)")
    for segment in timeline:
        typer.echo(
            f"   Scene {segment.scene_number}: {segment.visual} "
            f"+ {segment.source.value} ({segment.duration:.1f}s)"
        )

    if not play:
        return

    def on_segment(segment) -> None:
        typer.echo(f"\n▶️  Scene {segment.scene_number}")
        typer.echo(f"   {segment.voiceover}")

    player = PreviewPlayer(timeline, playback=studio.playback)
    try:
        asyncio.run(player.play(on_segment))
    except KeyboardInterrupt:
        player.close()
        typer.echo("\n⏹️  Preview stopped")
        return
    typer.echo("\n✅ End of reel")


@app.command()
def export(
    ctx: typer.Context,
    title: Optional[str] = typer.Option(
        None,
        "--title",
        "-t",
        help="Reel title (used as the Drive folder name)"
    )
) -> None:
    """Upload every scene's assets to Google Drive."""
    studio = open_studio(ctx)
    if title:
        studio.set_title(title)

    typer.echo(f"☁️  Saving '{studio.title}' to Google Drive")
    try:
        config.validate_export_required()
        uploaded = studio.export(on_progress=lambda step: typer.echo(f"   {step}"))
    except ConfigError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)
    except (ExportError, BusyError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    typer.echo(f"✅ Uploaded {uploaded} files")


@app.command()
def credentials(
    ctx: typer.Context,
    gemini_key: Optional[str] = typer.Option(None, "--gemini-key", help="Gemini API key"),
    google_key: Optional[str] = typer.Option(None, "--google-key", help="Google Cloud API key"),
    drive_token: Optional[str] = typer.Option(None, "--drive-token", help="Drive OAuth access token")
) -> None:
    """Save API credentials with the project."""
    values = {
        "gemini_api_key": gemini_key,
        "google_api_key": google_key,
        "drive_access_token": drive_token,
    }
    values = {key: value for key, value in values.items() if value is not None}
    if not values:
        typer.echo("❌ Nothing to update")
        raise typer.Exit(1)

    studio = open_studio(ctx)
    studio.update_credentials(**values)
    typer.echo(f"✅ Saved {', '.join(sorted(values))}")


@app.command()
def new(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")
) -> None:
    """Start a fresh project, clearing scenes, script and title."""
    if not yes:
        typer.confirm("Start fresh? Your current reel will be cleared.", abort=True)

    studio = open_studio(ctx)
    try:
        studio.start_new()
    except ReelError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    typer.echo("✅ New project started")


if __name__ == "__main__":
    app()
