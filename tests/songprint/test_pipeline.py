"""Tests for songprint.pipeline: file-level analyze and recognize."""

from __future__ import annotations

import random
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest

from songprint.config import SpectrogramConfig
from songprint.database import FingerprintDB
from songprint.exceptions import InsufficientSamplesError, SampleRateMismatchError
from songprint.pipeline import (
    analyze_directory,
    analyze_song,
    find_audio_files,
    peaks_from_samples,
    recognize_file,
)


class TestPeaksFromSamples:
    def test_respects_peaks_per_frame(self, small_config: SpectrogramConfig, song_a: np.ndarray) -> None:
        from songprint.config import FingerprintConfig

        peaks = peaks_from_samples(song_a, small_config, FingerprintConfig(peaks_per_frame=2))
        counts = np.bincount([p.time_bin for p in peaks])
        assert counts.max() <= 2

    def test_undersized_clip_raises(self, small_config: SpectrogramConfig) -> None:
        with pytest.raises(InsufficientSamplesError):
            peaks_from_samples(np.zeros(100, dtype=np.float32), small_config)


class TestAnalyzeSong:
    def test_adds_song_with_path_title(self, write_wav, small_config: SpectrogramConfig, song_a: np.ndarray) -> None:
        path = write_wav("a.wav", song_a)
        db = FingerprintDB()

        metadata = analyze_song(path, db, small_config, rng=random.Random(0))

        assert metadata.song_id == 0
        assert metadata.title == str(path)
        assert db.get_song(0) == metadata
        assert db.total_fingerprints > 0

    def test_explicit_title(self, write_wav, small_config: SpectrogramConfig, song_a: np.ndarray) -> None:
        path = write_wav("a.wav", song_a)
        db = FingerprintDB()
        assert analyze_song(path, db, small_config, title="Song A").title == "Song A"

    def test_wrong_sample_rate_rejected(self, write_wav, default_config: SpectrogramConfig, song_a: np.ndarray) -> None:
        path = write_wav("a.wav", song_a, sr=8000)
        db = FingerprintDB()
        with pytest.raises(SampleRateMismatchError):
            analyze_song(path, db, default_config)
        assert len(db) == 0


class TestAnalyzeDirectory:
    """Batch analysis tolerates per-file failures."""

    def test_partial_failure(self, tmp_path: Path, write_wav, small_config: SpectrogramConfig,
                             song_a: np.ndarray, song_b: np.ndarray) -> None:
        write_wav("library/a.wav", song_a)
        write_wav("library/b.flac", song_b)
        write_wav("library/short.wav", song_a[:100])
        (tmp_path / "library" / "broken.wav").write_text("not audio")
        (tmp_path / "library" / "cover.txt").write_text("ignored")
        write_wav("library/nested/c.wav", song_a)

        db = FingerprintDB()
        report = analyze_directory(tmp_path / "library", db, small_config)

        assert [Path(m.title).name for m in report.added] == ["a.wav", "b.flac"]
        assert sorted(p.name for p, _ in report.failed) == ["broken.wav", "short.wav"]
        assert not report.ok
        assert sorted(db.songs) == [0, 1]

    def test_unexpected_error_does_not_stop_batch(
        self, tmp_path: Path, write_wav, small_config: SpectrogramConfig,
        song_a: np.ndarray, song_b: np.ndarray,
    ) -> None:
        write_wav("lib/a.wav", song_a)
        write_wav("lib/b.wav", song_b)
        calls = iter([MemoryError("out of memory"), None])

        def _failing_once(samples, config, settings=None):
            error = next(calls)
            if error is not None:
                raise error
            return peaks_from_samples(samples, config, settings)

        db = FingerprintDB()
        with patch("songprint.pipeline.peaks_from_samples", side_effect=_failing_once):
            report = analyze_directory(tmp_path / "lib", db, small_config)

        assert [Path(m.title).name for m in report.added] == ["b.wav"]
        assert [(p.name, msg) for p, msg in report.failed] == [
            ("a.wav", "MemoryError: out of memory")
        ]
        assert len(db) == 1

    def test_all_succeed(self, tmp_path: Path, write_wav, small_config: SpectrogramConfig, song_a: np.ndarray) -> None:
        write_wav("lib/a.wav", song_a)
        report = analyze_directory(tmp_path / "lib", FingerprintDB(), small_config)
        assert report.ok
        assert len(report.added) == 1

    def test_subdirectories_are_skipped(self, tmp_path: Path, write_wav, song_a: np.ndarray) -> None:
        write_wav("lib/top.wav", song_a[:1000])
        write_wav("lib/sub/deep.wav", song_a[:1000])
        assert [p.name for p in find_audio_files(tmp_path / "lib")] == ["top.wav"]

    def test_missing_directory(self, tmp_path: Path, small_config: SpectrogramConfig) -> None:
        with pytest.raises(ValueError):
            analyze_directory(tmp_path / "absent", FingerprintDB(), small_config)


class TestRecognizeFile:
    def test_end_to_end(self, write_wav, small_config: SpectrogramConfig,
                        song_a: np.ndarray, song_b: np.ndarray) -> None:
        db = FingerprintDB()
        analyze_song(write_wav("a.wav", song_a), db, small_config, rng=random.Random(1))
        analyze_song(write_wav("b.wav", song_b), db, small_config, rng=random.Random(2))

        shift = 250 * small_config.stride  # 4 s
        query = write_wav("query.wav", song_b[shift : shift + 4 * 8000])
        result = recognize_file(query, db, small_config, rng=random.Random(3))

        assert result is not None
        assert result.song_id == 1
        assert abs(result.time_offset - 4000) <= small_config.ms_per_frame

    def test_empty_database_gives_no_match(self, write_wav, small_config: SpectrogramConfig, song_a: np.ndarray) -> None:
        query = write_wav("query.wav", song_a[: 3 * 8000])
        assert recognize_file(query, FingerprintDB(), small_config) is None
