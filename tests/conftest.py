"""
Pytest Configuration and Fixtures

Shared fakes for the image provider and HTTP sessions.
"""

import base64
import threading
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from reelgen.errors import ProviderError
from reelgen.models import ImageAsset, Scene
from reelgen.persistence import StateFile

TWO_SCENE_SCRIPT = (
    "**SCENE 1**\n**Voiceover:**\nHello there\n\n**Visual Prompt:**\nA cat\n"
    "---\n"
    "**SCENE 2**\n**Voiceover:**\nGoodbye\n\n**Visual Prompt:**\nA dog"
)


def make_asset(label: str = "img") -> ImageAsset:
    return ImageAsset(data=base64.b64encode(label.encode()).decode())


class FakeImageClient:
    """Image generator that fails for chosen prompts and records every call."""

    def __init__(self, failing: Optional[Dict[str, str]] = None) -> None:
        self.failing = failing or {}
        self.prompts: List[str] = []
        self.waits: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def generate_image(self, prompt: str) -> ImageAsset:
        with self._lock:
            self.prompts.append(prompt)
        event = self.waits.get(prompt)
        if event is not None:
            event.wait(timeout=5)
        if prompt in self.failing:
            raise ProviderError(self.failing[prompt])
        return make_asset(prompt)


class FakeResponse:
    def __init__(self, status_code: int = 200, json_data=None, text: str = "") -> None:
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeSession:
    """Records requests and replays queued responses in order."""

    def __init__(self, responses: Optional[List[FakeResponse]] = None) -> None:
        self.responses = list(responses or [])
        self.calls: List[dict] = []

    def _next(self, method: str, url: str, **kwargs) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)


@pytest.fixture
def image_client() -> FakeImageClient:
    return FakeImageClient()


@pytest.fixture
def state_file(tmp_path: Path) -> StateFile:
    return StateFile(tmp_path / "reel.yaml")


@pytest.fixture
def scenes() -> List[Scene]:
    return [
        Scene(scene_number=1, voiceover="One", visual_prompt="first"),
        Scene(scene_number=2, voiceover="Two", visual_prompt="second"),
        Scene(scene_number=3, voiceover="Three", visual_prompt="third"),
    ]
