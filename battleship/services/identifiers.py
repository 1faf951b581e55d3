import uuid
from typing import Callable, Dict, Iterable, Iterator, Optional

from battleship.errors import IdentifierError
from battleship.schemas import SHIPS


class IdentifierPool:
    """Freelist of scene-ownership identifiers shared by every session.

    New identifiers are minted only when the freelist is empty; `on_new` is
    told about each one so the full list can be persisted.
    """

    def __init__(self, known: Iterable[str] = (), on_new: Optional[Callable[[list[str]], None]] = None):
        self.all_ids: list[str] = list(dict.fromkeys(known))
        self._free: list[str] = list(self.all_ids)
        self._held: set[str] = set()
        self._on_new = on_new

    @property
    def free_count(self) -> int:
        return len(self._free)

    def is_held(self, ident: str) -> bool:
        return ident in self._held

    def take(self) -> str:
        if self._free:
            ident = self._free.pop()
        else:
            ident = str(uuid.uuid4())
            self.all_ids.append(ident)
            if self._on_new:
                self._on_new(list(self.all_ids))
        self._held.add(ident)
        return ident

    def release(self, ident: str) -> None:
        if ident not in self._held:
            raise IdentifierError(f"identifier {ident} is not held")
        self._held.remove(ident)
        self._free.append(ident)


def slot_keys() -> list[str]:
    """root, per-player selection (p{i}s) and control (p{i}c) owners, per-player-per-ship owners."""
    keys = ["root", "p0s", "p1s", "p0c", "p1c"]
    for j in range(len(SHIPS)):
        keys += [f"p0s{j}", f"p1s{j}"]
    return keys


class IdentifierSet:
    """The identifiers one session owns exclusively until it is cleaned up."""

    def __init__(self, ids: Dict[str, str]):
        self._ids = dict(ids)
        self.released = False

    @classmethod
    def allocate(cls, pool: IdentifierPool) -> "IdentifierSet":
        return cls({key: pool.take() for key in slot_keys()})

    def __getitem__(self, key: str) -> str:
        return self._ids[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids.values())

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def root(self) -> str:
        return self._ids["root"]

    def selection(self, slot: int) -> str:
        return self._ids[f"p{slot}s"]

    def control(self, slot: int) -> str:
        return self._ids[f"p{slot}c"]

    def ship(self, slot: int, ship: int) -> str:
        return self._ids[f"p{slot}s{ship}"]

    def release(self, pool: IdentifierPool) -> None:
        if self.released:
            raise IdentifierError("identifier set already released")
        self.released = True
        for ident in self._ids.values():
            pool.release(ident)
