import os
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from battleship.schemas import Zone
from battleship.utils.audit import dbg


class StoreData(BaseModel):
    zones: List[Zone] = []
    uuids: List[str] = []


class JsonStore:
    """Zones and every identifier ever handed out, saved to one JSON file on each change.

    With `path=None` nothing touches the disk.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._data = self._load()

    def _load(self) -> StoreData:
        if not self.path or not os.path.exists(self.path):
            return StoreData()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return StoreData.model_validate_json(f.read())
        except (OSError, ValidationError) as e:
            dbg(None, f"[store] could not read {self.path}: {e}; starting empty")
            return StoreData()

    def _save(self) -> None:
        if not self.path:
            return
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(self._data.model_dump_json(indent=2))
        os.replace(tmp, self.path)

    def get_zones(self) -> List[Zone]:
        return [z.model_copy() for z in self._data.zones]

    def set_zones(self, zones: List[Zone]) -> None:
        self._data.zones = list(zones)
        self._save()

    def get_uuids(self) -> List[str]:
        return list(self._data.uuids)

    def set_uuids(self, uuids: List[str]) -> None:
        self._data.uuids = list(uuids)
        self._save()
