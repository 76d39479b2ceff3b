"""Best-effort persistence of the project snapshot."""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import ProjectSnapshot
from .script import SCRIPT_TEMPLATE

logger = logging.getLogger(__name__)


def new_snapshot() -> ProjectSnapshot:
    """Snapshot for a fresh project, pre-filled with the starter script."""
    return ProjectSnapshot(script_text=SCRIPT_TEMPLATE)


class StateFile:
    """YAML file holding the project snapshot between runs."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> ProjectSnapshot:
        """Restore the saved snapshot, or a fresh one if none can be read."""
        if not self.path.exists():
            return new_snapshot()

        try:
            return ProjectSnapshot.from_yaml(self.path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            logger.error(f"Could not load state from {self.path}: {e}")
            return new_snapshot()

    def save(self, snapshot: ProjectSnapshot) -> bool:
        """Write the snapshot. Failures are logged, not raised."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            snapshot.to_yaml(self.path)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not save state to {self.path}: {e}")
            return False
        return True
