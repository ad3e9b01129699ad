"""clipsplice — session-scoped timeline editing and frame-accurate export.

Split, trim, reorder and remove segments of an uploaded clip, place
timed text overlays, and render the result frame by frame through an
ffmpeg encoder. All state lives in an EditSession; nothing is persisted.
"""

from .commands import EditCommands
from .errors import (
    DecodeStall,
    EditorError,
    EncoderError,
    EncoderInitFailure,
    ExportCancelled,
    InvalidRange,
    SourceUnavailable,
)
from .media import MediaSource
from .segments import Segment, Track
from .session import EditSession

__all__ = [
    "DecodeStall",
    "EditCommands",
    "EditSession",
    "EditorError",
    "EncoderError",
    "EncoderInitFailure",
    "ExportCancelled",
    "InvalidRange",
    "MediaSource",
    "Segment",
    "SourceUnavailable",
    "Track",
]
