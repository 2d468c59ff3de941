"""Audio decoding at the edge of the pipeline.

Turns an audio file into a mono float32 stream in roughly [-1, 1]. Stereo is
downmixed by averaging the channels. No resampling is done: a file whose rate
differs from the configured analysis rate is rejected.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import numpy as np
import soundfile as sf

from .exceptions import AudioDecodeError, SampleRateMismatchError, UnsupportedFormatError

logger = logging.getLogger(__name__)

# soundfile subtype -> bits per sample
SUPPORTED_SUBTYPES = {
    "PCM_16": 16,
    "PCM_24": 24,
    "PCM_32": 32,
    "FLOAT": 32,
}


def _bits_per_sample(subtype: str) -> int | None:
    if subtype in SUPPORTED_SUBTYPES:
        return SUPPORTED_SUBTYPES[subtype]
    if subtype == "DOUBLE":
        return 64
    digits = re.search(r"(\d+)$", subtype)
    return int(digits.group(1)) if digits else None


def load_audio(
    path: Path | str,
    expected_sample_rate: float | None = None,
) -> tuple[np.ndarray, int]:
    """Load an audio file as mono float32 samples.

    Args:
        path: Path to audio file
        expected_sample_rate: Reject files at any other rate (None = accept all)

    Returns:
        Tuple of (samples, sample_rate)

    Raises:
        AudioDecodeError: If the file is missing or unreadable
        UnsupportedFormatError: If the sample encoding is not 16/24/32-bit
            integer PCM or 32-bit float
        SampleRateMismatchError: If the rate differs from expected_sample_rate
    """
    import librosa

    path = Path(path)
    logger.debug("Loading audio from %s", path)
    if not path.is_file():
        raise AudioDecodeError(f"File not found: {path}")

    try:
        info = sf.info(str(path))
    except (RuntimeError, OSError) as e:
        raise AudioDecodeError(f"Unable to read {path}: {e}") from e

    logger.debug(
        "%s: format=%s subtype=%s channels=%d samplerate=%d frames=%d",
        path.name,
        info.format,
        info.subtype,
        info.channels,
        info.samplerate,
        info.frames,
    )

    if info.subtype not in SUPPORTED_SUBTYPES:
        raise UnsupportedFormatError(info.subtype, _bits_per_sample(info.subtype), str(path))

    if expected_sample_rate is not None and info.samplerate != expected_sample_rate:
        raise SampleRateMismatchError(info.samplerate, expected_sample_rate, str(path))

    try:
        y, sr = librosa.load(str(path), sr=None, mono=True)
    except Exception as e:
        raise AudioDecodeError(f"Unable to decode {path}: {e}") from e

    return y.astype(np.float32, copy=False), int(sr)
