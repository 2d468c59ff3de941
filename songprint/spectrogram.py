"""Short-time magnitude spectrogram.

Each frame is a raw slice of ``window_size`` samples (no window function),
transformed with a forward DFT of exactly that size. For real input the output
is conjugate symmetric, so only the first ``window_size // 2`` bins are kept:
bin ``k`` covers ``k * sample_rate / window_size`` Hz, up to just below the
Nyquist frequency. Magnitudes are not normalised; they are only compared
within one clip.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import scipy.fft

from .config import SpectrogramConfig
from .exceptions import InsufficientSamplesError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Spectrogram:
    """Frequency-magnitude vectors, one row per time frame.

    Attributes:
        data: Array of shape (num_windows, window_size // 2)
        config: Configuration the frames were computed with
    """

    data: np.ndarray
    config: SpectrogramConfig

    @property
    def num_windows(self) -> int:
        return int(self.data.shape[0])

    @property
    def num_bins(self) -> int:
        return int(self.data.shape[1])


def num_windows(num_samples: int, config: SpectrogramConfig) -> int:
    """Number of full frames that fit in ``num_samples`` samples.

    Raises:
        InsufficientSamplesError: If not even one window fits
    """
    if num_samples < config.window_size:
        raise InsufficientSamplesError(num_samples, config.window_size)
    return (num_samples - config.window_size) // config.stride + 1


def compute_spectrogram(
    samples: np.ndarray,
    config: SpectrogramConfig,
    workers: int | None = None,
) -> Spectrogram:
    """Compute the magnitude spectrogram of a mono sample stream.

    Frames are independent, so they are transformed as one batch; ``workers``
    is handed to ``scipy.fft`` to spread that batch over threads. Rows come
    back in frame order either way.

    Args:
        samples: 1-D array of floating point samples
        config: Window size, stride and sample rate
        workers: Worker threads for the transform (None = scipy default)

    Returns:
        Spectrogram with ``num_windows`` rows of ``window_size // 2`` bins

    Raises:
        InsufficientSamplesError: If the stream is shorter than one window
        ValueError: If samples is not one-dimensional
    """
    samples = np.asarray(samples, dtype=np.float32)
    if samples.ndim != 1:
        raise ValueError(f"Expected mono samples (1-D), got shape {samples.shape}")

    n_windows = num_windows(len(samples), config)
    logger.debug(
        "Computing spectrogram: window_size=%d stride=%d sample_rate=%g windows=%d",
        config.window_size,
        config.stride,
        config.sample_rate,
        n_windows,
    )

    # (n_windows, window_size) view; step by stride to drop the in-between offsets
    frames = np.lib.stride_tricks.sliding_window_view(samples, config.window_size)
    frames = frames[:: config.stride][:n_windows]

    spectrum = scipy.fft.fft(frames, n=config.window_size, axis=1, workers=workers)
    magnitudes = np.abs(spectrum[:, : config.window_size // 2]).astype(np.float32)
    magnitudes.flags.writeable = False

    return Spectrogram(data=magnitudes, config=config)
