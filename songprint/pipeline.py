"""Analysis and recognition over audio files.

Connects decoding, spectrogram, peak picking and the fingerprint database.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from .audio import load_audio
from .config import FingerprintConfig, SpectrogramConfig
from .database import FingerprintDB, MatchResult, SongMetaData
from .exceptions import SongprintError
from .peaks import Peak, extract_peaks
from .spectrogram import compute_spectrogram

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".wav", ".flac", ".aiff", ".aif")


@dataclass
class BatchReport:
    """Outcome of analysing a directory."""

    added: list[SongMetaData] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def peaks_from_samples(
    samples: np.ndarray,
    config: SpectrogramConfig,
    settings: FingerprintConfig | None = None,
) -> list[Peak]:
    """Run the spectrogram and peak picking stages on raw samples."""
    settings = settings or FingerprintConfig()
    spectrogram = compute_spectrogram(samples, config)
    return extract_peaks(spectrogram, settings.peaks_per_frame)


def analyze_song(
    path: Path | str,
    db: FingerprintDB,
    config: SpectrogramConfig,
    title: str | None = None,
    rng: random.Random | None = None,
) -> SongMetaData:
    """Fingerprint one audio file and add it to the database.

    Args:
        path: Audio file to analyse
        db: Database to add the song to
        config: Spectrogram configuration
        title: Catalog title (defaults to the file path)
        rng: Random source for target sampling

    Returns:
        Catalog entry of the added song
    """
    path = Path(path)
    samples, _ = load_audio(path, expected_sample_rate=config.sample_rate)
    peaks = peaks_from_samples(samples, config, db.settings)

    metadata = SongMetaData(song_id=db.next_song_id(), title=title or str(path))
    count = db.add_song(metadata, peaks, config, rng)

    stats = db.get_stats()
    logger.debug("Generated %d fingerprints for %s", count, path.name)
    logger.debug(
        "Index: %d total fingerprints, %d unique, %.2f average collisions",
        stats["total_fingerprints"],
        stats["unique_fingerprints"],
        stats["avg_collisions"],
    )
    return metadata


def find_audio_files(directory: Path) -> list[Path]:
    """List supported audio files directly inside ``directory``.

    Subdirectories are not descended into.
    """
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
    )


def analyze_directory(
    directory: Path | str,
    db: FingerprintDB,
    config: SpectrogramConfig,
    rng: random.Random | None = None,
) -> BatchReport:
    """Analyse every supported file in a directory.

    A file that fails is logged and recorded; the batch carries on.

    Raises:
        ValueError: If directory doesn't exist
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise ValueError(f"Directory does not exist: {directory}")

    files = find_audio_files(directory)
    report = BatchReport()
    start_time = time.time()

    for idx, filepath in enumerate(files, 1):
        logger.info("[%d/%d] Analysing %s", idx, len(files), filepath.name)
        try:
            report.added.append(analyze_song(filepath, db, config, rng=rng))
        except SongprintError as e:
            logger.error("Error analysing %s: %s", filepath, e)
            report.failed.append((filepath, str(e)))
        except Exception as e:
            logger.exception("Unexpected error analysing %s", filepath)
            report.failed.append((filepath, f"{type(e).__name__}: {e}"))

    logger.info(
        "Analysed %d/%d files in %.1fs (%d failed)",
        len(report.added),
        len(files),
        time.time() - start_time,
        len(report.failed),
    )
    return report


def recognize_file(
    path: Path | str,
    db: FingerprintDB,
    config: SpectrogramConfig,
    rng: random.Random | None = None,
) -> MatchResult | None:
    """Identify an audio clip against the database.

    Returns:
        Best match, or None if nothing matched
    """
    path = Path(path)
    samples, _ = load_audio(path, expected_sample_rate=config.sample_rate)
    peaks = peaks_from_samples(samples, config, db.settings)
    return db.recognize_song(peaks, config, rng)
