"""Shared data held by the relay server."""

from __future__ import annotations

from dataclasses import dataclass, field

FactKey = tuple[int, int, int]
"""(room, creator_id, index) identifying a stored fact."""


@dataclass
class Model:
    """Facts shared between all connected clients."""

    facts: dict[FactKey, bytes] = field(default_factory=dict)


@dataclass
class SharedData:
    """The shared model together with who owns each fact."""

    model: Model = field(default_factory=Model)
    data_owners: dict[FactKey, int] = field(default_factory=dict)