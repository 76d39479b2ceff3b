"""Project state model."""

from typing import List
from pathlib import Path
from pydantic import BaseModel, Field
import yaml

from .scene import Scene


class Credentials(BaseModel):
    """Credentials entered for the project."""

    gemini_api_key: str = Field(default="", description="Gemini API key")
    google_api_key: str = Field(default="", description="Google Cloud API key")
    drive_access_token: str = Field(default="", description="Drive OAuth access token")


class ProjectSnapshot(BaseModel):
    """Persisted snapshot of a reel project."""

    script_text: str = Field(default="", description="Raw script as last entered")
    title: str = Field(default="My First AI Side Hustle", description="Reel title")
    scenes: List[Scene] = Field(default_factory=list, description="Scenes in display order")
    credentials: Credentials = Field(default_factory=Credentials)

    class Config:
        """Pydantic config."""
        frozen = False

    @classmethod
    def from_yaml(cls, path: Path) -> "ProjectSnapshot":
        """Load a snapshot from YAML, clearing transient scene fields."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        snapshot = cls(**data)
        snapshot.scenes = [scene.restored() for scene in snapshot.scenes]
        return snapshot

    def to_yaml(self, path: Path) -> None:
        """Save snapshot to YAML file."""
        data = self.model_dump(mode="json")
        data["scenes"] = [
            scene.restored().model_dump(mode="json", exclude={"is_generating_image"})
            for scene in self.scenes
        ]
        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
