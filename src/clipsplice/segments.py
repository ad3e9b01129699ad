"""Segment store — ordered time ranges per track.

A track holds its segments in display order, which is independent of
numeric time order: reordering moves a segment without touching its
bounds. Segments may overlap or leave gaps after trimming; adjacency is
never enforced.

The store trusts its caller. Clamping and range checks happen in the
command layer before any call lands here, and every operation is a
silent no-op on unknown ids.
"""

from dataclasses import dataclass, replace
from enum import Enum


class Track(str, Enum):
    """An independent timeline lane."""

    VIDEO = "video"
    AUDIO = "audio"


@dataclass
class Segment:
    """A contiguous [start, end) slice of a track's source, in seconds."""

    id: str
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    def contains(self, t: float) -> bool:
        return self.start <= t < self.end


# Immutable view of both tracks, used by history and export snapshots.
TrackSnapshot = tuple[tuple[Segment, ...], tuple[Segment, ...]]


class SegmentStore:
    """Owns every Segment of a session, one ordered list per track."""

    def __init__(self):
        self._tracks: dict[Track, list[Segment]] = {t: [] for t in Track}
        self._durations: dict[Track, float] = {t: 0.0 for t in Track}
        self._next_id = 1

    # ── Readers ────────────────────────────────────────────────────

    def segments(self, track: Track) -> list[Segment]:
        """Copies of the track's segments in display order."""
        return [replace(s) for s in self._tracks[track]]

    def get(self, track: Track, segment_id: str) -> Segment | None:
        seg = self._find(track, segment_id)
        return replace(seg) if seg is not None else None

    def duration(self, track: Track) -> float:
        return self._durations[track]

    def __len__(self) -> int:
        return sum(len(segs) for segs in self._tracks.values())

    # ── Mutations ──────────────────────────────────────────────────

    def add_initial_segment(self, track: Track, duration: float) -> Segment | None:
        """Reset `track` to one segment spanning [0, duration).

        A non-positive duration leaves the track empty; nothing on it is
        renderable until a real source arrives.
        """
        self._tracks[track] = []
        self._durations[track] = max(0.0, float(duration))
        if duration <= 0:
            return None
        seg = Segment(self._new_id(), 0.0, float(duration))
        self._tracks[track].append(seg)
        return replace(seg)

    def split_at(self, track: Track, time: float | None) -> Segment | None:
        """Cut every segment straddling `time` and append a tail segment.

        The split is global: all segments with start < time < end get their
        end clamped to `time`, not only the one under the cursor, and the
        new [time, track_duration) segment always goes to the end of display
        order. Segments wholly at or after `time` keep their bounds.

        Returns the appended segment, or None when nothing changed.
        """
        if time is None:
            return None
        duration = self._durations[track]
        if time < 0 or time >= duration:
            return None
        for seg in self._tracks[track]:
            if seg.start < time < seg.end:
                seg.end = time
        tail = Segment(self._new_id(), float(time), duration)
        self._tracks[track].append(tail)
        return replace(tail)

    def trim(self, track: Track, segment_id: str, new_start: float, new_end: float) -> bool:
        """Overwrite a segment's bounds. Returns False for unknown ids."""
        seg = self._find(track, segment_id)
        if seg is None:
            return False
        seg.start = float(new_start)
        seg.end = float(new_end)
        return True

    def remove(self, track: Track, segment_id: str) -> bool:
        """Delete a segment; siblings keep their order and bounds."""
        seg = self._find(track, segment_id)
        if seg is None:
            return False
        self._tracks[track].remove(seg)
        return True

    def reorder(self, track: Track, from_id: str, to_id: str) -> bool:
        """Move `from_id` to the display position currently held by `to_id`.

        Array-move semantics: dragging right lands the segment after its
        target, dragging left lands it before.
        """
        segs = self._tracks[track]
        old = self._index(track, from_id)
        new = self._index(track, to_id)
        if old is None or new is None or old == new:
            return False
        segs.insert(new, segs.pop(old))
        return True

    # ── Snapshots ──────────────────────────────────────────────────

    def snapshot(self) -> TrackSnapshot:
        return (
            tuple(replace(s) for s in self._tracks[Track.VIDEO]),
            tuple(replace(s) for s in self._tracks[Track.AUDIO]),
        )

    def restore(self, snapshot: TrackSnapshot) -> None:
        video, audio = snapshot
        self._tracks[Track.VIDEO] = [replace(s) for s in video]
        self._tracks[Track.AUDIO] = [replace(s) for s in audio]

    # ── Internal ───────────────────────────────────────────────────

    def _new_id(self) -> str:
        # Ids are never reused, even after removal or undo.
        sid = f"segment-{self._next_id}"
        self._next_id += 1
        return sid

    def _index(self, track: Track, segment_id: str) -> int | None:
        for i, seg in enumerate(self._tracks[track]):
            if seg.id == segment_id:
                return i
        return None

    def _find(self, track: Track, segment_id: str) -> Segment | None:
        i = self._index(track, segment_id)
        return self._tracks[track][i] if i is not None else None


def active_segment(segments, t: float) -> Segment | None:
    """First segment in display order whose [start, end) contains t."""
    for seg in segments:
        if seg.contains(t):
            return seg
    return None
