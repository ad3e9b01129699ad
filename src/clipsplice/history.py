"""Undo history — a LIFO stack of whole-timeline snapshots.

A snapshot is taken before every mutating command and restored wholesale
on undo. There is no redo; popping past the bottom is a no-op.
"""

from dataclasses import dataclass

from .overlays import Overlay
from .segments import Segment


@dataclass(frozen=True)
class Snapshot:
    video: tuple[Segment, ...]
    audio: tuple[Segment, ...]
    overlays: tuple[Overlay, ...]


class History:
    def __init__(self):
        self._stack: list[Snapshot] = []

    def push(self, snapshot: Snapshot) -> None:
        self._stack.append(snapshot)

    def pop(self) -> Snapshot | None:
        if not self._stack:
            return None
        return self._stack.pop()

    def clear(self) -> None:
        self._stack.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self._stack)

    def __len__(self) -> int:
        return len(self._stack)
