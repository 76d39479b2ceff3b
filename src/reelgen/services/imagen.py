"""Google Imagen API client wrapper via the Gemini API."""

import logging
from typing import Optional

import requests

from ..config import config
from ..errors import ConfigError, ProviderError
from ..models import ImageAsset

logger = logging.getLogger(__name__)


class ImagenClient:
    """Client wrapper for Imagen image generation through the Gemini API."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_STYLE = (
        "High-quality, vibrant, professional photo conveying success "
        "and financial empowerment."
    )

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
        style: Optional[str] = DEFAULT_STYLE,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the Imagen client.

        Args:
            api_key: Gemini API key. Defaults to GEMINI_API_KEY env var.
            model: Imagen model name.
            aspect_ratio: Image aspect ratio ('1:1', '16:9', '9:16', '4:3', '3:4').
            style: Preamble prepended to every prompt. None disables it.
            session: Optional requests session, mainly for tests.

        Raises:
            ConfigError: If no API key is available.
        """
        self._api_key = api_key or config.gemini_api_key
        self._model = model or config.imagen_model
        self._aspect_ratio = aspect_ratio or config.aspect_ratio
        self._style = style
        self._session = session or requests.Session()

        if not self._api_key:
            raise ConfigError(
                "Gemini API key not provided or invalid. Set GEMINI_API_KEY."
            )

    def _full_prompt(self, prompt: str) -> str:
        if self._style:
            return f"{self._style} {prompt}"
        return prompt

    def generate_image(self, prompt: str) -> ImageAsset:
        """Generate an image from a text prompt.

        Args:
            prompt: Text description of the image to generate.

        Returns:
            The generated JPEG image.

        Raises:
            ProviderError: If the request fails or returns no image. The
                message is suitable for showing to the user.
        """
        url = f"{self.BASE_URL}/models/{self._model}:predict"
        request_body = {
            "instances": [
                {"prompt": self._full_prompt(prompt)}
            ],
            "parameters": {
                "sampleCount": 1,
                "aspectRatio": self._aspect_ratio,
                "outputOptions": {"mimeType": "image/jpeg"},
            },
        }
        headers = {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
        }

        logger.info(f"Generating image with Imagen: {prompt[:50]}...")
        try:
            response = self._session.post(url, json=request_body, headers=headers)
        except requests.RequestException as e:
            logger.error(f"Imagen request failed: {e}")
            raise ProviderError(f"Failed to generate image. API Error: {e}") from e

        if response.status_code != 200:
            message = self._error_message(response)
            logger.error(f"Imagen API error {response.status_code}: {message}")
            if "API key not valid" in message:
                raise ProviderError(
                    "Your Gemini API Key is not valid. Please check and try again."
                )
            raise ProviderError(f"Failed to generate image. API Error: {message}")

        predictions = response.json().get("predictions") or []
        image_data = predictions[0].get("bytesBase64Encoded") if predictions else None
        if not image_data:
            raise ProviderError("Image generation failed: No images returned from API.")

        mime_type = predictions[0].get("mimeType") or "image/jpeg"
        logger.debug(f"Received {mime_type} image for prompt: {prompt[:50]}")
        return ImageAsset(mime_type=mime_type, data=image_data)

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return f"{response.status_code}: {response.text[:500]}"
