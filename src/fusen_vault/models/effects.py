"""Planned filesystem effects.

The planner returns these as plain values; the storage gateway interprets
them. A ``Batch`` runs its members in order and stops at the first failure.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Tuple, Union


@dataclass(frozen=True)
class WriteNote:
    """Replace the full content of the file at ``path``."""

    path: str
    content: str


@dataclass(frozen=True)
class RenameNote:
    """Move the file at ``old_path`` to ``new_path``."""

    old_path: str
    new_path: str


@dataclass(frozen=True)
class Batch:
    """Ordered group of effects; empty means nothing to do."""

    effects: Tuple["Effect", ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.effects)

    def __iter__(self) -> Iterator["Effect"]:
        return iter(self.effects)


Effect = Union[WriteNote, RenameNote, Batch]


def batch(*effects: Effect) -> Batch:
    return Batch(tuple(effects))


def flatten(effect: Effect) -> List[Union[WriteNote, RenameNote]]:
    """Expand nested batches into the primitive effects, in execution order."""
    if isinstance(effect, Batch):
        out: List[Union[WriteNote, RenameNote]] = []
        for inner in effect.effects:
            out.extend(flatten(inner))
        return out
    return [effect]


def is_noop(effect: Effect) -> bool:
    return not flatten(effect)
