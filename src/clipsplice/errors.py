"""Caller-visible failures raised at the command and export boundaries.

Stores and the compositor never raise these; they are total over valid
input. Everything here leaves the session exactly as it was before the
failing call.
"""


class EditorError(Exception):
    """Base class for all clipsplice failures."""


class SourceUnavailable(EditorError):
    """No decodable source is loaded for the requested track."""


class InvalidRange(EditorError):
    """Degenerate time bounds or zoom factor rejected before mutation."""


class EncoderError(EditorError):
    """The encoder failed while consuming frames or flushing."""


class EncoderInitFailure(EncoderError):
    """The encoder could not be started; the export never began rendering."""


class DecodeStall(EditorError):
    """A seek or frame decode did not complete within the timeout."""


class ExportCancelled(EditorError):
    """The caller cancelled an export; no artifact was produced."""
