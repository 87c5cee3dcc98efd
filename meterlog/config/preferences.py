"""
User Preferences

Initial meter readings used to live in browser-local storage and were
written implicitly on every change. Here they are an explicit value:
load once at startup, pass it around, and call save() when the user
confirms an edit.
"""

import json
from pathlib import Path
from typing import Union

import structlog
from pydantic import ValidationError

from meterlog.models.reading import StartNumbers


logger = structlog.get_logger(__name__)


class PreferencesError(Exception):
    """Preferences could not be written."""
    pass


class PreferencesStore:
    """JSON file holding a user's StartNumbers."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StartNumbers:
        """
        Load saved start numbers.

        A missing file gives defaults. A corrupt file also gives
        defaults, but is logged so it is not silently lost.
        """
        if not self._path.exists():
            return StartNumbers()

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return StartNumbers(**data)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError, TypeError, ValidationError) as e:
            logger.warning(
                "preferences_unreadable",
                path=str(self._path),
                error=str(e),
            )
            return StartNumbers()

    def save(self, numbers: StartNumbers) -> None:
        """Persist start numbers, creating the parent directory if needed."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(numbers.model_dump(), indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            raise PreferencesError(f"Failed to save preferences to {self._path}: {e}")

        logger.info("preferences_saved", path=str(self._path))
