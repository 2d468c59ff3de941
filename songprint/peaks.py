"""Per-frame spectral peak picking.

A peak is a bin whose magnitude is strictly greater than both neighbours.
Endpoint bins (0 and last) count when they are strictly greater than their
single neighbour. Plateaus never produce a peak. Only the strongest few peaks
of each frame are kept, which bounds fingerprint fan-out per frame.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .config import SpectrogramConfig
from .spectrogram import Spectrogram

logger = logging.getLogger(__name__)

MAX_PEAKS_PER_FRAME = 5


@dataclass(frozen=True, slots=True)
class Peak:
    """A prominent point in the time-frequency grid."""

    time_bin: int
    freq_bin: int
    magnitude: float

    def frequency_hz(self, config: SpectrogramConfig) -> float:
        """Centre frequency of this peak's bin."""
        return self.freq_bin * config.sample_rate / config.window_size

    def time_seconds(self, config: SpectrogramConfig) -> float:
        """Start time of this peak's frame."""
        return self.time_bin * config.stride / config.sample_rate


def find_frequency_peaks(
    magnitudes: np.ndarray,
    time_bin: int,
    max_peaks: int = MAX_PEAKS_PER_FRAME,
) -> list[Peak]:
    """Find the strongest local maxima of one frequency-magnitude vector.

    Args:
        magnitudes: 1-D magnitude vector of a single frame
        time_bin: Index of the frame, copied onto each peak
        max_peaks: Maximum number of peaks to keep

    Returns:
        Peaks sorted by magnitude descending, ties in bin order
    """
    m = np.asarray(magnitudes)
    if len(m) < 3:
        return []

    is_peak = np.zeros(len(m), dtype=bool)
    is_peak[1:-1] = (m[1:-1] > m[:-2]) & (m[1:-1] > m[2:])
    is_peak[0] = m[0] > m[1]
    is_peak[-1] = m[-1] > m[-2]

    candidates = np.flatnonzero(is_peak)
    # Stable sort keeps ascending bin order among equal magnitudes
    order = np.argsort(-m[candidates], kind="stable")[:max_peaks]

    return [
        Peak(time_bin=time_bin, freq_bin=int(k), magnitude=float(m[k]))
        for k in candidates[order]
    ]


def extract_peaks(
    spectrogram: Spectrogram,
    max_peaks_per_frame: int = MAX_PEAKS_PER_FRAME,
) -> list[Peak]:
    """Extract peaks from every frame of a spectrogram.

    Args:
        spectrogram: Spectrogram to scan
        max_peaks_per_frame: Maximum peaks kept per frame

    Returns:
        Peaks of all frames concatenated in frame order
    """
    peaks: list[Peak] = []
    for time_bin, frame in enumerate(spectrogram.data):
        peaks.extend(find_frequency_peaks(frame, time_bin, max_peaks_per_frame))

    logger.debug("Extracted %d peaks from %d frames", len(peaks), spectrogram.num_windows)
    return peaks
