"""Resource pools and the merge that joins two scene fragments into one batch.

A pool holds five deduplicated palettes plus primitives that point into them
by index. Merging `b` into `a` unions each palette and rewrites the indices
of every primitive that moves over from `b`.

The union is a linear scan per palette, O(|a|*|b|). Fragments carry between
one and a few hundred entries, so nothing smarter is needed.
"""
from collections.abc import Mapping
from typing import Any, Callable, Iterable, NamedTuple, Union

from pydantic import BaseModel, Field

from battleship.schemas import Vec3


class Primitive(BaseModel):
    asset_name_index: int = 0
    size: Vec3 = (0, 0, 0)
    position: Vec3 = (0, 0, 0)
    # an int indexes `colors`; an inline rgba list is left alone by merges
    color: Union[int, list[int]] = 0
    material_index: int = 0
    owner_index: int = 0
    physical_index: int = 0
    direction: int = 4
    rotation: int = 0
    collision: dict[str, Any] = Field(default_factory=dict)
    components: dict[str, Any] = Field(default_factory=dict)


class ResourcePool(BaseModel):
    shapes: list[Any] = Field(default_factory=list)
    colors: list[Any] = Field(default_factory=list)
    materials: list[Any] = Field(default_factory=list)
    owners: list[Any] = Field(default_factory=list)
    physical_materials: list[Any] = Field(default_factory=list)
    primitives: list[Primitive] = Field(default_factory=list)

    def clone(self) -> "ResourcePool":
        return self.model_copy(deep=True)

    def owner_id_of(self, prim: Primitive) -> str | None:
        if prim.owner_index == 0 or prim.owner_index > len(self.owners):
            return None
        return self.owners[prim.owner_index - 1].get("id")

    def dangling_references(self) -> list[str]:
        """Describe every primitive index that points outside its palette."""
        problems = []
        for n, prim in enumerate(self.primitives):
            for kind in POOL_KINDS:
                idx = getattr(prim, kind.index_field)
                if not isinstance(idx, int) or isinstance(idx, bool):
                    continue
                if kind.owner:
                    if idx != 0 and not 1 <= idx <= len(self.owners):
                        problems.append(f"primitive {n}: owner_index {idx}")
                elif not 0 <= idx < len(getattr(self, kind.field)):
                    problems.append(f"primitive {n}: {kind.index_field} {idx}")
        return problems


class PoolKind(NamedTuple):
    field: str
    index_field: str
    owner: bool = False
    default: tuple = ()


POOL_KINDS: tuple[PoolKind, ...] = (
    PoolKind("shapes", "asset_name_index", default=("PB_DefaultBrick",)),
    PoolKind("colors", "color", default=((0, 0, 0, 0),)),
    PoolKind("materials", "material_index", default=("BMC_Plastic",)),
    PoolKind("owners", "owner_index", owner=True),
    PoolKind("physical_materials", "physical_index", default=("BPMC_Default",)),
)

Fixup = Callable[[Primitive], None]


def deep_equals(a: Any, b: Any) -> bool:
    """Structural equality: mappings and sequences compare by content."""
    if isinstance(a, BaseModel):
        a = a.model_dump()
    if isinstance(b, BaseModel):
        b = b.model_dump()

    if isinstance(a, (list, tuple)):
        if not isinstance(b, (list, tuple)):
            return False
        return len(a) == len(b) and all(deep_equals(x, y) for x, y in zip(a, b))
    if isinstance(a, Mapping):
        if not isinstance(b, Mapping):
            return False
        if len(a) != len(b):
            return False
        return all(k in b and deep_equals(v, b[k]) for k, v in a.items())
    if isinstance(b, (list, tuple, Mapping)):
        return False
    return a == b


def deep_clone(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    if isinstance(value, list):
        return [deep_clone(v) for v in value]
    if isinstance(value, tuple):
        return tuple(deep_clone(v) for v in value)
    if isinstance(value, dict):
        return {k: deep_clone(v) for k, v in value.items()}
    return value


def _identity(prim: Primitive) -> None:
    return None


def merge_kind(kind: PoolKind, a: ResourcePool, b: ResourcePool) -> tuple[list[Any], Fixup]:
    """Union b's palette of this kind into a's and return the index fixup for b's primitives."""
    entries: list[Any] = getattr(a, kind.field)
    incoming: list[Any] = getattr(b, kind.field)

    # identical palettes keep their indices
    if deep_equals(entries, incoming):
        return entries, _identity

    remap: dict[int, int] = {}
    for b_idx, entry in enumerate(incoming):
        for a_idx, existing in enumerate(entries):
            if deep_equals(existing, entry):
                remap[b_idx] = a_idx
                break
        else:
            remap[b_idx] = len(entries)
            entries.append(entry)

    def fixup(prim: Primitive) -> None:
        idx = getattr(prim, kind.index_field)
        if not isinstance(idx, int) or isinstance(idx, bool):
            return
        if kind.owner:
            # 0 means unowned, everything else is 1-based
            if idx == 0:
                return
            if idx - 1 not in remap:
                raise ValueError(f"primitive references missing {kind.field} entry {idx}")
            setattr(prim, kind.index_field, remap[idx - 1] + 1)
        else:
            if idx not in remap:
                raise ValueError(f"primitive references missing {kind.field} entry {idx}")
            setattr(prim, kind.index_field, remap[idx])

    return entries, fixup


def fill_defaults(pool: ResourcePool) -> None:
    for kind in POOL_KINDS:
        if kind.default and not getattr(pool, kind.field):
            setattr(pool, kind.field, [deep_clone(list(v) if isinstance(v, tuple) else v) for v in kind.default])


def merge_pools(a: ResourcePool, b: ResourcePool) -> ResourcePool:
    """Merge `b` into `a` and return the result.

    After the call `a` holds the merged batch and `b` must not be reused.
    """
    fill_defaults(a)
    fill_defaults(b)

    fixups: list[Fixup] = []
    for kind in POOL_KINDS:
        entries, fixup = merge_kind(kind, a, b)
        setattr(a, kind.field, entries)
        fixups.append(fixup)

    for prim in b.primitives:
        for fixup in fixups:
            fixup(prim)
        a.primitives.append(prim)
    return a


def merge_all(pools: Iterable[ResourcePool]) -> ResourcePool:
    merged: ResourcePool | None = None
    for pool in pools:
        merged = pool if merged is None else merge_pools(merged, pool)
    return merged if merged is not None else ResourcePool()
