import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ValidationError

from ridecrew.config import settings

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "ride-preferences"


class RidePreferences(BaseModel):
    preset: Optional[str] = None
    distance: Optional[int] = None
    bike_type: Optional[str] = None
    starting_point: Optional[str] = None


class RidePreferencesStore:
    """Last-used ride form values, kept under one key in a local JSON file"""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or settings.ride_preferences_path)

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Optional[RidePreferences]:
        raw = self._read_all().get(PREFERENCES_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            return RidePreferences(**raw)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid ride preferences: {e}")
            return None

    def save(self, preferences: RidePreferences) -> None:
        data = self._read_all()
        data[PREFERENCES_KEY] = preferences.model_dump()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
