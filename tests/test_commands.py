"""Tests for the command layer: gestures, clamping, history and atomicity."""

import pytest

from clipsplice.commands import EditCommands
from clipsplice.errors import InvalidRange, SourceUnavailable
from clipsplice.segments import Track


def _bounds(edit, track=Track.VIDEO):
    return [(s.start, s.end) for s in edit.session.segments.segments(track)]


def _ids(edit, track=Track.VIDEO):
    return [s.id for s in edit.session.segments.segments(track)]


class TestUpload:
    def test_initial_segment(self, edit):
        assert _bounds(edit) == [(0.0, 10.0)]

    def test_upload_clears_history(self, edit, counter_source):
        edit.split(Track.VIDEO, 4)
        assert edit.session.history.can_undo
        edit.upload(Track.VIDEO, counter_source)
        assert not edit.session.history.can_undo

    def test_track_accepts_plain_string(self, edit):
        edit.split("video", 4)
        assert len(_bounds(edit)) == 2


class TestSplit:
    def test_split_scenario(self, edit):
        tail = edit.split(Track.VIDEO, 4)
        assert _bounds(edit) == [(0.0, 4.0), (4.0, 10.0)]
        assert tail.id == "segment-2"

    def test_outside_range_rejected(self, edit):
        for t in (0, 10, -1, 12):
            with pytest.raises(InvalidRange, match="outside"):
                edit.split(Track.VIDEO, t)
        assert _bounds(edit) == [(0.0, 10.0)]
        assert len(edit.session.history) == 0

    def test_non_finite_rejected(self, edit):
        with pytest.raises(InvalidRange):
            edit.split(Track.VIDEO, float("nan"))

    def test_none_is_noop(self, edit):
        assert edit.split(Track.VIDEO, None) is None
        assert len(edit.session.history) == 0

    def test_without_source(self, session):
        edit = EditCommands(session)
        with pytest.raises(SourceUnavailable, match="No video source"):
            edit.split(Track.VIDEO, 4)
        assert len(session.history) == 0
        assert session.segments.segments(Track.VIDEO) == []


class TestTrim:
    def test_plain_trim(self, edit):
        seg = edit.trim(Track.VIDEO, "segment-1", 2.0, 8.0)
        assert (seg.start, seg.end) == (2.0, 8.0)

    def test_clamped_to_source(self, edit):
        seg = edit.trim(Track.VIDEO, "segment-1", -5.0, 20.0)
        assert (seg.start, seg.end) == (0.0, 10.0)

    def test_collapsed_range_keeps_min_gap(self, edit):
        seg = edit.trim(Track.VIDEO, "segment-1", 5.0, 5.0)
        assert seg.start == pytest.approx(4.9)
        assert seg.end == pytest.approx(5.0)

    def test_start_past_end_of_source(self, edit):
        seg = edit.trim(Track.VIDEO, "segment-1", 9.99, 12.0)
        assert seg.end == 10.0
        assert seg.start == pytest.approx(9.9)

    def test_inverted_bounds(self, edit):
        seg = edit.trim(Track.VIDEO, "segment-1", 6.0, 3.0)
        assert seg.end - seg.start == pytest.approx(0.1)
        assert 0.0 <= seg.start and seg.end <= 10.0

    @pytest.mark.parametrize("start,end", [
        (-3, -1), (0, 0), (10, 10), (9.95, 9.97), (3, 3.05), (11, 15), (4, 2),
    ])
    def test_clamp_keeps_bounds(self, edit, start, end):
        seg = edit.trim(Track.VIDEO, "segment-1", start, end)
        assert 0.0 <= seg.start
        assert seg.end <= 10.0
        assert seg.end - seg.start >= 0.1 - 1e-9

    def test_unknown_id_is_noop(self, edit):
        assert edit.trim(Track.VIDEO, "segment-99", 1.0, 2.0) is None
        assert len(edit.session.history) == 0

    def test_non_finite_rejected_atomically(self, edit):
        with pytest.raises(InvalidRange, match="finite"):
            edit.trim(Track.VIDEO, "segment-1", float("inf"), 4.0)
        assert _bounds(edit) == [(0.0, 10.0)]
        assert len(edit.session.history) == 0


class TestDragTrim:
    def test_drag_start_handle(self, edit):
        seg = edit.drag_trim(Track.VIDEO, "segment-1", "start", 0.25)
        assert (seg.start, seg.end) == (2.5, 10.0)

    def test_drag_end_past_timeline(self, edit):
        seg = edit.drag_trim(Track.VIDEO, "segment-1", "end", 1.7)
        assert seg.end == 10.0

    def test_drag_end_before_start(self, edit):
        edit.trim(Track.VIDEO, "segment-1", 5.0, 10.0)
        seg = edit.drag_trim(Track.VIDEO, "segment-1", "end", 0.1)
        assert seg.start == 5.0
        assert seg.end == pytest.approx(5.1)

    def test_bad_edge(self, edit):
        with pytest.raises(ValueError, match="Unknown trim edge"):
            edit.drag_trim(Track.VIDEO, "segment-1", "middle", 0.5)


class TestRemoveAndReorder:
    @pytest.fixture
    def three(self, edit):
        edit.split(Track.VIDEO, 3)
        edit.split(Track.VIDEO, 6)
        return edit

    def test_remove(self, three):
        assert three.remove(Track.VIDEO, "segment-2")
        assert _bounds(three) == [(0.0, 3.0), (6.0, 10.0)]

    def test_remove_unknown(self, three):
        before = len(three.session.history)
        assert not three.remove(Track.VIDEO, "segment-99")
        assert len(three.session.history) == before

    def test_reorder(self, three):
        assert three.reorder(Track.VIDEO, "segment-3", "segment-1")
        assert _ids(three) == ["segment-3", "segment-1", "segment-2"]

    def test_reorder_same_id_pushes_nothing(self, three):
        before = len(three.session.history)
        assert not three.reorder(Track.VIDEO, "segment-1", "segment-1")
        assert len(three.session.history) == before


class TestOverlays:
    def test_added_at_playhead(self, edit):
        edit.seek(1.0)
        o = edit.add_overlay("Hello", {"color": "#FF0000"}, 10, 20)
        assert (o.start_time, o.end_time) == (1.0, 6.0)
        assert o.color == (255, 0, 0)

    def test_default_style_from_settings(self, edit):
        o = edit.add_overlay("Hello", None, 0, 0)
        assert o.font_size == 16
        assert o.color == (255, 255, 255)

    def test_bad_color_is_atomic(self, edit):
        with pytest.raises(ValueError, match="Unknown color"):
            edit.add_overlay("Hello", {"color": "nope-nope"}, 0, 0)
        assert len(edit.session.overlays) == 0
        assert len(edit.session.history) == 0

    def test_non_finite_position(self, edit):
        with pytest.raises(InvalidRange):
            edit.add_overlay("Hello", None, float("nan"), 0)

    def test_move(self, edit):
        o = edit.add_overlay("Hello", None, 10, 10)
        moved = edit.update_overlay_position(o.id, 5, -15)
        assert (moved.x, moved.y) == (15.0, -5.0)

    def test_overlays_do_not_need_a_source(self, session):
        edit = EditCommands(session)
        o = edit.add_overlay("Title", None, 0, 0)
        assert edit.remove_overlay(o.id)

    def test_overlay_survives_segment_edits(self, edit):
        edit.seek(1.0)
        o = edit.add_overlay("Hello", None, 0, 0)
        edit.split(Track.VIDEO, 4)
        edit.reorder(Track.VIDEO, "segment-2", "segment-1")
        edit.trim(Track.VIDEO, "segment-1", 2.0, 3.0)
        kept = edit.session.overlays.get(o.id)
        assert (kept.start_time, kept.end_time) == (1.0, 6.0)


class TestUndo:
    def test_nothing_to_undo(self, edit):
        assert not edit.undo()

    def test_each_command_undoes_exactly(self, edit):
        # Re-applying a step after its undo mints fresh ids, so address
        # segments and overlays by position.
        def nth(i):
            return _ids(edit)[i]

        def first_overlay():
            return edit.session.overlays.overlays()[0].id

        steps = [
            lambda: edit.split(Track.VIDEO, 4),
            lambda: edit.split(Track.VIDEO, 7),
            lambda: edit.trim(Track.VIDEO, nth(0), 1.0, 3.0),
            lambda: edit.drag_trim(Track.VIDEO, nth(1), "end", 0.65),
            lambda: edit.reorder(Track.VIDEO, nth(2), nth(0)),
            lambda: edit.remove(Track.VIDEO, nth(1)),
            lambda: edit.add_overlay("Hi", None, 5, 5),
            lambda: edit.update_overlay_position(first_overlay(), 3, 3),
            lambda: edit.remove_overlay(first_overlay()),
        ]
        for step in steps:
            before = edit.session.snapshot()
            step()
            assert edit.session.snapshot() != before
            assert edit.undo()
            assert edit.session.snapshot() == before
            step()

    def test_undo_to_initial_state(self, edit):
        initial = edit.session.snapshot()
        edit.split(Track.VIDEO, 4)
        edit.add_overlay("Hi", None, 0, 0)
        edit.remove(Track.VIDEO, "segment-1")
        while edit.undo():
            pass
        assert edit.session.snapshot() == initial

    def test_undo_does_not_reuse_ids(self, edit):
        edit.split(Track.VIDEO, 4)
        edit.undo()
        tail = edit.split(Track.VIDEO, 4)
        assert tail.id == "segment-3"


class TestViewState:
    def test_zoom(self, edit):
        edit.set_zoom(1.5)
        assert edit.session.zoom == 1.5

    @pytest.mark.parametrize("factor", [0, -1, float("inf")])
    def test_bad_zoom(self, edit, factor):
        with pytest.raises(InvalidRange, match="Zoom"):
            edit.set_zoom(factor)
        assert edit.session.zoom == 1.0

    def test_seek_clamps(self, edit):
        assert edit.seek(42) == 10.0
        assert edit.seek(-3) == 0.0

    def test_zoom_not_in_history(self, edit):
        edit.set_zoom(2.0)
        assert len(edit.session.history) == 0
