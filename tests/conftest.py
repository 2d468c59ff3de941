"""Pytest configuration and fixtures."""

from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from songprint.config import FingerprintConfig, SpectrogramConfig

SMALL_RATE = 8000


def synth_song(seed: int, duration_sec: float = 10.0, sr: int = SMALL_RATE) -> np.ndarray:
    """Low-level noise with two strong tones at known, distinct times.

    440 Hz plays from 1s to 3s, 1200 Hz from 5s to 7s.
    """
    rng = np.random.default_rng(seed)
    n = int(duration_sec * sr)
    t = np.arange(n) / sr
    y = rng.normal(0.0, 0.05, n)
    y += np.where((t >= 1.0) & (t < 3.0), 0.5 * np.sin(2 * np.pi * 440 * t), 0.0)
    y += np.where((t >= 5.0) & (t < 7.0), 0.5 * np.sin(2 * np.pi * 1200 * t), 0.0)
    return y.astype(np.float32)


@pytest.fixture
def small_config() -> SpectrogramConfig:
    """8 kHz config where one frame is exactly 16 ms."""
    return SpectrogramConfig(window_size=256, stride=128, sample_rate=SMALL_RATE)


@pytest.fixture
def default_config() -> SpectrogramConfig:
    return SpectrogramConfig()


@pytest.fixture
def settings() -> FingerprintConfig:
    return FingerprintConfig()


@pytest.fixture
def song_a() -> np.ndarray:
    return synth_song(seed=1)


@pytest.fixture
def song_b() -> np.ndarray:
    return synth_song(seed=2)


@pytest.fixture
def write_wav(tmp_path: Path):
    """Write samples to a WAV file under tmp_path and return its path."""

    def _write(name: str, samples: np.ndarray, sr: int = SMALL_RATE, subtype: str = "PCM_16") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        sf.write(str(path), samples, sr, subtype=subtype)
        return path

    return _write
