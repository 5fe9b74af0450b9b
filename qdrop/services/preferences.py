"""
PreferenceStore - Local JSON store for form prefill values.

Keeps the last organization id, label and submitter name between runs.
Never authoritative: the organization id is re-validated on every submit.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from ..protocols import IPreferenceStore

logger = logging.getLogger(__name__)

# Default store location
DEFAULT_PREFERENCES_DIR = Path.home() / ".cache" / "qdrop"
DEFAULT_PREFERENCES_FILE = "preferences.json"

ORG_ID_KEY = "org_id"
LABEL_KEY = "label"
SUBMITTER_KEY = "user"


class PreferenceStore(IPreferenceStore):
    """
    Key-value preferences persisted as a JSON file.

    Values are only written back by save() when something changed.
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize preference store.

        Args:
            path: JSON file (default: ~/.cache/qdrop/preferences.json)
        """
        self._path = Path(path) if path else DEFAULT_PREFERENCES_DIR / DEFAULT_PREFERENCES_FILE
        self._values: Dict[str, str] = {}
        self._dirty = False

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> "PreferenceStore":
        """Load preferences from disk."""
        try:
            if self._path.exists():
                with open(self._path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                self._values = {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}
                logger.debug("Preferences: loaded %d entries from %s", len(self._values), self._path)
            else:
                logger.debug("Preferences: no file at %s, starting fresh", self._path)
                self._values = {}
        except json.JSONDecodeError as e:
            logger.warning("Preferences: failed to parse %s: %s - starting fresh", self._path, e)
            self._values = {}
        except OSError as e:
            logger.warning("Preferences: failed to read %s: %s - starting fresh", self._path, e)
            self._values = {}
        return self

    async def save(self) -> None:
        """Save preferences to disk if dirty."""
        if not self._dirty:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(self._values, f, indent=2)
        self._dirty = False
        logger.debug("Preferences: saved %d entries to %s", len(self._values), self._path)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def set(self, key: str, value: str) -> None:
        if self._values.get(key) == value:
            return
        self._values[key] = value
        self._dirty = True
