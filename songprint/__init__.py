"""songprint - landmark-based audio fingerprinting and song recognition.

Pipeline:
- Magnitude spectrogram from fixed-size, overlapping frames
- The strongest local maxima of each frame become peaks
- Peak pairs within a bounded time window become landmark fingerprints
- An inverted index maps fingerprints to (song, offset) postings
- Recognition votes for the (song, alignment offset) the query agrees on

References:
- "An Industrial-Strength Audio Search Algorithm" (Wang, 2003)
"""

__version__ = "0.1.0"

from .config import FingerprintConfig, SpectrogramConfig
from .database import FingerprintDB, MatchResult, SongMetaData
from .fingerprint import Fingerprint, generate_fingerprints
from .peaks import Peak, extract_peaks
from .spectrogram import Spectrogram, compute_spectrogram

__all__ = [
    "FingerprintConfig",
    "SpectrogramConfig",
    "FingerprintDB",
    "MatchResult",
    "SongMetaData",
    "Fingerprint",
    "generate_fingerprints",
    "Peak",
    "extract_peaks",
    "Spectrogram",
    "compute_spectrogram",
]
