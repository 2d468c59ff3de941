"""Exception hierarchy for songprint.

A recognition that finds nothing is not an error: it returns ``None``.
"""

from __future__ import annotations


class SongprintError(Exception):
    """Base class for all songprint errors."""


class AudioDecodeError(SongprintError):
    """An audio file could not be read or decoded."""


class UnsupportedFormatError(AudioDecodeError):
    """The audio file uses a sample encoding we do not decode."""

    def __init__(self, encoding: str, bits_per_sample: int | None, path: str | None = None):
        self.encoding = encoding
        self.bits_per_sample = bits_per_sample
        self.path = path
        depth = f"{bits_per_sample}-bit" if bits_per_sample else "unknown bit depth"
        where = f" in {path}" if path else ""
        super().__init__(f"Unsupported sample format{where}: {encoding} ({depth})")


class SampleRateMismatchError(AudioDecodeError):
    """The file's sample rate differs from the configured analysis rate."""

    def __init__(self, actual: float, expected: float, path: str | None = None):
        self.actual = actual
        self.expected = expected
        where = f"{path}: " if path else ""
        super().__init__(
            f"{where}sample rate {actual:g} Hz does not match configured {expected:g} Hz"
        )


class InsufficientSamplesError(SongprintError, ValueError):
    """The sample stream is shorter than one transform window."""

    def __init__(self, num_samples: int, window_size: int):
        self.num_samples = num_samples
        self.window_size = window_size
        super().__init__(
            f"Need at least {window_size} samples for one window, got {num_samples}"
        )


class DatabaseError(SongprintError):
    """Base class for fingerprint database errors."""


class DatabaseNotFoundError(DatabaseError, FileNotFoundError):
    """No database file exists at the given path."""


class CorruptDatabaseError(DatabaseError, ValueError):
    """A database file exists but cannot be decoded."""


class DuplicateSongError(DatabaseError):
    """A song id is already present in the catalog."""


class ConfigMismatchError(DatabaseError):
    """A spectrogram config differs from the one the database was built with."""
