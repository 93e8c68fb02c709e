"""Pydantic schema for a single mapdb room.

Mirrors the shape Lich writes into ``map.json``.  Only ``id``, ``wayto``
and ``timeto`` are required; every descriptive field is optional and, when
absent, stays absent on the way out (``model_dump(exclude_unset=True)``) so
room bodies round-trip without gaining ``null`` keys.

The model is strict: ``"123"`` is not an id and ``"0.2"`` stays a string.
Ids are positive integers.  Destination keys of ``wayto`` and ``timeto`` name
files in the room tree, so they may not contain path separators or ``..``.
Unknown keys are dropped.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

Climate = Literal[
    "arid",
    "arid, temperate",
    "cold, damp",
    "cold, dry",
    "",
    "freshwater",
    "glacial",
    "hot, damp",
    "humid",
    "moist",
    "none",
    "saltwater",
    "snowy, arctic",
    "temperate",
]

Terrain = Literal[
    "barren scrub",
    "coniferous",
    "coniferous forest",
    "cultivated",
    "deciduous",
    "deciduous forest",
    "",
    "grassland",
    "hard, flat",
    "hilly",
    "mountainous",
    "muddy wetlands",
    "none",
    "plain dirt",
    "riparian",
    "rough",
    "sandy",
    "subterranean",
    "tropical",
]

# wayto values are movement commands, StringProcs, or script references;
# timeto values are travel costs, null, StringProcs, or script references.
TimetoValue = int | float | str | None


def is_safe_destination(key: str) -> bool:
    """True when *key* can be used as a file name component."""
    return bool(key) and "/" not in key and "\\" not in key and ".." not in key


class RoomSchema(BaseModel):
    """One room record as stored in the monolithic mapdb."""

    id: int = Field(gt=0)
    title: list[str] | None = None
    description: list[str] | None = None
    paths: list[str] | None = None
    location: bool | str | None = None
    climate: Climate | None = None
    terrain: Terrain | None = None
    wayto: dict[str, str]
    timeto: dict[str, TimetoValue]
    tags: list[str] | None = None
    uid: list[int] | None = None
    image: str | None = None
    image_coords: list[int | float] | None = None
    check_location: bool | None = None
    unique_loot: list[str] | None = None

    model_config = {"strict": True, "extra": "ignore"}

    @field_validator("wayto", "timeto")
    @classmethod
    def _check_destinations(cls, value: dict) -> dict:
        for key in value:
            if not is_safe_destination(key):
                raise ValueError(f"unsafe destination key {key!r}")
        return value

    def to_room(self) -> dict:
        """Return a fresh plain-dict copy of the room, omitting unset fields."""
        return self.model_dump(exclude_unset=True)
