"""Google Cloud Text-to-Speech client wrapper."""

import base64
import logging
from pathlib import Path
from typing import Optional

import requests

from ..config import config
from ..errors import ConfigError, ProviderError
from ..models import MediaRef

logger = logging.getLogger(__name__)


class SpeechClient:
    """Synthesizes scene narration to MP3 files."""

    URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
    DEFAULT_LANGUAGE = "en-US"
    DEFAULT_VOICE = "en-US-Neural2-D"

    def __init__(
        self,
        api_key: Optional[str] = None,
        language_code: str = DEFAULT_LANGUAGE,
        voice: str = DEFAULT_VOICE,
        speaking_rate: float = 1.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key or config.google_api_key
        self._language_code = language_code
        self._voice = voice
        self._speaking_rate = speaking_rate
        self._session = session or requests.Session()

        if not self._api_key:
            raise ConfigError("GOOGLE_API_KEY not set")

    def synthesize(self, text: str, output_path: Path) -> MediaRef:
        """Synthesize ``text`` and write the MP3 to ``output_path``.

        Args:
            text: Narration text.
            output_path: Where to save the audio.

        Returns:
            A durable reference to the written file.

        Raises:
            ValueError: If text is empty.
            ProviderError: If the synthesis request fails.
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        request_body = {
            "input": {"text": text},
            "voice": {"languageCode": self._language_code, "name": self._voice},
            "audioConfig": {
                "audioEncoding": "MP3",
                "speakingRate": self._speaking_rate,
            },
        }

        logger.info(f"Synthesizing narration: {text[:50]}...")
        try:
            response = self._session.post(
                self.URL, params={"key": self._api_key}, json=request_body
            )
        except requests.RequestException as e:
            raise ProviderError(f"Text-to-speech request failed: {e}") from e

        if response.status_code != 200:
            error_msg = f"{response.status_code}: {response.text[:500]}"
            logger.error(f"Text-to-Speech API error: {error_msg}")
            raise ProviderError(f"Text-to-speech failed. API Error: {error_msg}")

        audio_content = response.json().get("audioContent")
        if not audio_content:
            raise ProviderError("Text-to-speech failed: No audio returned from API.")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(base64.b64decode(audio_content))

        logger.info(f"Saved narration to {output_path}")
        return MediaRef(name=output_path.name, path=output_path)
