"""Google Drive export client using the Drive v3 REST API."""

import json
import logging
import mimetypes
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import google.auth
import google.auth.transport.requests
from google.auth.exceptions import DefaultCredentialsError, RefreshError
import requests

from ..config import config
from ..errors import ConfigError, ExportError
from ..models import Scene

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


@dataclass
class UploadItem:
    """A single file queued for upload."""

    name: str
    data: bytes
    mime_type: str


def build_upload_plan(scenes: Sequence[Scene]) -> List[UploadItem]:
    """List the files exported for each scene, in scene order.

    Every scene contributes its voiceover text, then its image, video and
    audio when present.
    """
    items: List[UploadItem] = []
    for scene in scenes:
        prefix = f"scene_{scene.scene_number}"
        items.append(UploadItem(
            name=f"{prefix}_voiceover.txt",
            data=scene.voiceover.encode("utf-8"),
            mime_type="text/plain",
        ))
        if scene.image_url:
            image = scene.visual.image
            items.append(UploadItem(
                name=f"{prefix}_image.{image.extension}",
                data=image.to_bytes(),
                mime_type=image.mime_type,
            ))
        for media in (scene.video_ref, scene.audio):
            if media is None:
                continue
            items.append(UploadItem(
                name=f"{prefix}_{media.name}",
                data=media.read_bytes(),
                mime_type=mimetypes.guess_type(media.name)[0] or "application/octet-stream",
            ))
    return items


class DriveClient:
    """Uploads finished reels into a folder tree on Google Drive."""

    API_URL = "https://www.googleapis.com/drive/v3/files"
    UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
    SCOPES = ["https://www.googleapis.com/auth/drive.file"]

    def __init__(
        self,
        access_token: Optional[str] = None,
        app_folder: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the Drive client.

        Args:
            access_token: OAuth access token. Defaults to
                GOOGLE_DRIVE_ACCESS_TOKEN, then application default credentials.
            app_folder: Name of the top-level folder holding all reels.
            session: Optional requests session, mainly for tests.

        Raises:
            ConfigError: If no usable credentials are found.
        """
        self._app_folder = app_folder or config.drive_folder
        self._session = session or requests.Session()
        self._token = access_token or config.drive_access_token or self._default_token()

    def _default_token(self) -> str:
        try:
            credentials, _ = google.auth.default(scopes=self.SCOPES)
            credentials.refresh(google.auth.transport.requests.Request())
        except (DefaultCredentialsError, RefreshError) as e:
            raise ConfigError(
                "You are not signed in. Set GOOGLE_DRIVE_ACCESS_TOKEN or configure "
                f"application default credentials. ({e})"
            ) from e
        return credentials.token

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self._token}"}

    def find_or_create_folder(self, name: str, parent_id: str = "root") -> str:
        """Return the ID of folder ``name`` under ``parent_id``, creating it if needed."""
        escaped = name.replace("\\", "\\\\").replace("'", "\\'")
        query = (
            f"mimeType='{FOLDER_MIME_TYPE}' and name='{escaped}' "
            f"and '{parent_id}' in parents and trashed=false"
        )
        response = self._session.get(
            self.API_URL,
            params={"q": query, "fields": "files(id)"},
            headers=self._headers,
        )
        self._raise_for_status(response, f"Failed to look up folder {name}.")

        files = self._json(response, f"Failed to look up folder {name}.").get("files") or []
        if files and files[0].get("id"):
            return files[0]["id"]

        metadata = {"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]}
        response = self._session.post(
            self.API_URL,
            params={"fields": "id"},
            json=metadata,
            headers=self._headers,
        )
        self._raise_for_status(response, f"Failed to create folder {name}.")
        folder_id = self._json(response, f"Failed to create folder {name}.").get("id")
        if not folder_id:
            raise ExportError(f"Failed to create folder {name}. Drive returned no folder ID.")
        logger.info(f"Created Drive folder '{name}' ({folder_id})")
        return folder_id

    def upload_file(self, item: UploadItem, parent_id: str) -> None:
        """Upload one file into ``parent_id``."""
        metadata = {"name": item.name, "parents": [parent_id]}
        files = {
            "metadata": (None, json.dumps(metadata), "application/json"),
            "file": (item.name, item.data, item.mime_type),
        }
        response = self._session.post(
            self.UPLOAD_URL,
            params={"uploadType": "multipart"},
            files=files,
            headers=self._headers,
        )
        self._raise_for_status(response, f"Failed to upload {item.name}.")
        logger.debug(f"Uploaded {item.name}")

    def upload_reel(
        self,
        title: str,
        scenes: Sequence[Scene],
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Upload every scene's assets into ``<app folder>/<title>``.

        Uploads run one at a time and stop at the first failure. Files
        already uploaded are left in place.

        Args:
            title: Reel title, used as the subfolder name.
            scenes: Scenes to export, in display order.
            on_progress: Receives a human-readable label before each step.

        Returns:
            Number of files uploaded.

        Raises:
            ExportError: If any Drive request fails.
        """
        report = on_progress or (lambda _step: None)

        report("Creating folders...")
        try:
            items = build_upload_plan(scenes)
        except (OSError, ValueError) as e:
            raise ExportError(f"Could not read media for export: {e}") from e

        try:
            app_folder_id = self.find_or_create_folder(self._app_folder)
            reel_folder_id = self.find_or_create_folder(title, app_folder_id)

            for i, item in enumerate(items, start=1):
                report(f"Uploading {i} of {len(items)}: {item.name}")
                self.upload_file(item, reel_folder_id)
        except requests.RequestException as e:
            logger.error(f"Drive request failed: {e}")
            raise ExportError(f"Drive request failed: {e}") from e

        logger.info(f"Uploaded {len(items)} files for reel '{title}'")
        return len(items)

    @staticmethod
    def _raise_for_status(response: requests.Response, message: str) -> None:
        if response.status_code >= 400:
            logger.error(f"{message} {response.status_code}: {response.text[:500]}")
            raise ExportError(message)

    @staticmethod
    def _json(response: requests.Response, message: str) -> dict:
        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"{message} Unreadable response: {response.text[:500]}")
            raise ExportError(f"{message} Drive returned an unreadable response.") from e
        if not isinstance(body, dict):
            raise ExportError(f"{message} Drive returned an unexpected response.")
        return body
