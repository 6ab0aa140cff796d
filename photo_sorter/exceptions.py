"""
Custom exception hierarchy for the photo sorter.

Only InputInvalidError is fatal to a run; everything else is recovered
per file (or per album) by the orchestrator.
"""


class PhotoSorterError(Exception):
    """Base exception for all photo sorter errors."""
    pass


class InputInvalidError(PhotoSorterError):
    """Raised when an input root is missing or its archive cannot be opened."""
    pass


class FileUnreadableError(PhotoSorterError):
    """Raised when a single entry cannot be opened or read."""
    pass


class ParseFailureError(PhotoSorterError):
    """Raised when an EXIF, MP4 or JSON field cannot be parsed."""
    pass


class UnsupportedTypeError(PhotoSorterError):
    """Raised when content sniffing resolves a media entry to Unsupported."""
    pass


class WriteFailureError(PhotoSorterError):
    """Raised when an output write fails."""
    pass


class AlbumRejectedError(PhotoSorterError):
    """Raised when an album file fails structural checks."""
    pass
