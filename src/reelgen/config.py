"""Configuration management."""

import os
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from .errors import ConfigError

# Load environment variables
load_dotenv()


class Config(BaseModel):
    """Application configuration."""

    # API Keys
    gemini_api_key: str = Field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY", ""),
        description="Gemini API key (for Imagen)"
    )
    google_api_key: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_API_KEY", ""),
        description="Google Cloud API key (for Text-to-Speech)"
    )
    drive_access_token: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_DRIVE_ACCESS_TOKEN", ""),
        description="OAuth access token with the drive.file scope"
    )

    # Paths
    workspace: Path = Field(
        default_factory=lambda: Path(os.getenv("REEL_WORKSPACE", ".")),
        description="Workspace directory"
    )
    state_file: str = Field(
        default_factory=lambda: os.getenv("REEL_STATE_FILE", "reel.yaml"),
        description="Project state file, relative to the workspace"
    )

    # Model settings
    imagen_model: str = Field(
        default_factory=lambda: os.getenv("IMAGEN_MODEL", "imagen-3.0-generate-002"),
        description="Imagen model used for scene images"
    )
    aspect_ratio: str = Field(default="9:16", description="Scene image aspect ratio")
    drive_folder: str = Field(
        default="AI Reel Generator",
        description="Top-level Drive folder that holds every exported reel"
    )

    class Config:
        """Pydantic config."""
        frozen = False

    @property
    def state_path(self) -> Path:
        return self.workspace / self.state_file

    def validate_export_required(self) -> None:
        """Validate that the Drive export folder is usable.

        Raises:
            ConfigError: If the folder name is empty or contains a quote.
        """
        if not self.drive_folder.strip():
            raise ConfigError("Drive folder name must not be empty")
        if "'" in self.drive_folder:
            raise ConfigError(
                f"Drive folder name must not contain quotes. Got: {self.drive_folder}"
            )


# Global config instance
config = Config()
