"""In-memory fingerprint index with voting-based recognition.

The index maps each fingerprint to its posting list of ``(song_id,
time_offset_ms)`` occurrences. Recognition votes by ``(song_id,
alignment_offset)`` rather than by song alone: postings from the true song
agree on one alignment between query and original, while spurious hits
scatter across many offsets.

Persistence lives in :mod:`songprint.codec`; ``save``/``load`` here delegate
to it.
"""

from __future__ import annotations

import logging
import random
import threading
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

from .config import FingerprintConfig, SpectrogramConfig
from .exceptions import ConfigMismatchError, DuplicateSongError
from .fingerprint import Fingerprint, generate_fingerprints
from .peaks import Peak

logger = logging.getLogger(__name__)

Posting = tuple[int, int]  # (song_id, time_offset_ms)


@dataclass(frozen=True)
class SongMetaData:
    """Catalog entry for an indexed song."""

    song_id: int
    title: str


@dataclass(frozen=True)
class MatchResult:
    """Outcome of a successful recognition."""

    song_id: int
    confidence: float  # 0.0 to 1.0
    time_offset: int  # Original position minus query position, in ms (signed)
    votes: int  # Fingerprints agreeing on this alignment


class FingerprintDB:
    """Inverted index from fingerprint to postings, plus the song catalog.

    The spectrogram configuration is bound on first insert (or given up
    front) and stored with the database. Songs and queries with any other
    configuration are rejected.

    Writers are serialised by an internal lock. ``recognize_song`` copies the
    posting lists it needs under the same lock and votes on that snapshot, so
    it never observes a half-applied ``add_song``.
    """

    def __init__(
        self,
        config: SpectrogramConfig | None = None,
        settings: FingerprintConfig | None = None,
    ):
        """Initialize an empty database.

        Args:
            config: Spectrogram configuration to bind (None = bind on first insert)
            settings: Fingerprint pairing settings used for insert and query
        """
        self.database: dict[Fingerprint, list[Posting]] = {}
        self.songs: dict[int, SongMetaData] = {}
        self.config = config
        self.settings = settings or FingerprintConfig()
        self.lock = threading.RLock()

    def __len__(self) -> int:
        return len(self.songs)

    @property
    def total_fingerprints(self) -> int:
        """Number of postings across all fingerprints."""
        with self.lock:
            return sum(len(postings) for postings in self.database.values())

    @property
    def unique_fingerprints(self) -> int:
        """Number of distinct fingerprint keys."""
        return len(self.database)

    def next_song_id(self) -> int:
        """Id for the next song: ids are dense and follow insertion order."""
        return len(self.songs)

    def get_song(self, song_id: int) -> SongMetaData | None:
        return self.songs.get(song_id)

    def _check_config(self, config: SpectrogramConfig) -> None:
        if self.config is not None and config != self.config:
            raise ConfigMismatchError(
                f"Database was built with {self.config!r}, got {config!r}"
            )

    def add_song(
        self,
        metadata: SongMetaData,
        peaks: list[Peak],
        config: SpectrogramConfig,
        rng: random.Random | None = None,
    ) -> int:
        """Fingerprint a song's peaks and add them to the index.

        Args:
            metadata: Catalog entry; its song_id must be new
            peaks: Peaks extracted from the song
            config: Spectrogram configuration the peaks come from
            rng: Random source for target sampling

        Returns:
            Number of fingerprints added

        Raises:
            DuplicateSongError: If metadata.song_id is already in the catalog
            ConfigMismatchError: If config differs from the database's
        """
        logger.info("Adding song: %d with title: %s", metadata.song_id, metadata.title)
        fingerprints = generate_fingerprints(peaks, config, self.settings, rng)

        with self.lock:
            if metadata.song_id in self.songs:
                raise DuplicateSongError(f"Song id {metadata.song_id} is already indexed")
            self._check_config(config)
            if self.config is None:
                self.config = config

            for fingerprint, time_offset in fingerprints:
                self.database.setdefault(fingerprint, []).append(
                    (metadata.song_id, time_offset)
                )
            self.songs[metadata.song_id] = metadata

        logger.debug(
            "Song %d: %d fingerprints, index now %d keys",
            metadata.song_id,
            len(fingerprints),
            len(self.database),
        )
        return len(fingerprints)

    def recognize_song(
        self,
        peaks: list[Peak],
        config: SpectrogramConfig,
        rng: random.Random | None = None,
    ) -> MatchResult | None:
        """Find the song and alignment that best explain the query peaks.

        When several (song, alignment) pairs share the top vote count, the
        one whose first vote came earliest wins. That choice is arbitrary and
        can change with the random target sampling.

        Args:
            peaks: Peaks extracted from the query clip
            config: Spectrogram configuration the peaks come from
            rng: Random source for target sampling

        Returns:
            Best match, or None if the query produced no fingerprints or
            nothing in the index matched

        Raises:
            ConfigMismatchError: If config differs from the database's
        """
        logger.info("Recognizing song")
        with self.lock:
            self._check_config(config)

        query_fingerprints = generate_fingerprints(peaks, config, self.settings, rng)
        total_query_fingerprints = len(query_fingerprints)
        if total_query_fingerprints == 0:
            logger.debug("Query produced no fingerprints")
            return None

        with self.lock:
            hits = [
                (query_offset, list(self.database[fingerprint]))
                for fingerprint, query_offset in query_fingerprints
                if fingerprint in self.database
            ]

        votes: Counter[tuple[int, int]] = Counter()
        for query_offset, postings in hits:
            for song_id, db_offset in postings:
                votes[(song_id, db_offset - query_offset)] += 1

        if not votes:
            logger.debug("No fingerprint of %d matched", total_query_fingerprints)
            return None

        (song_id, alignment_offset), count = votes.most_common(1)[0]
        confidence = min(1.0, count / total_query_fingerprints)
        logger.debug(
            "Best of %d candidates: song %d offset %dms with %d/%d votes",
            len(votes),
            song_id,
            alignment_offset,
            count,
            total_query_fingerprints,
        )
        return MatchResult(
            song_id=song_id,
            confidence=confidence,
            time_offset=alignment_offset,
            votes=count,
        )

    def get_stats(self) -> dict:
        """Get fingerprint database statistics.

        Returns:
            Dict with stats
        """
        with self.lock:
            total = self.total_fingerprints
            unique = self.unique_fingerprints
            return {
                "songs": len(self.songs),
                "unique_fingerprints": unique,
                "total_fingerprints": total,
                "avg_collisions": total / unique if unique > 0 else 0.0,
            }

    def save(self, path: Path | str) -> None:
        """Write the whole database to a single binary file."""
        from .codec import save_database

        save_database(self, path)

    @classmethod
    def load(
        cls,
        path: Path | str,
        settings: FingerprintConfig | None = None,
    ) -> FingerprintDB:
        """Read a database written by :meth:`save`."""
        from .codec import load_database

        db = load_database(path)
        if settings is not None:
            db.settings = settings
        return db

    @classmethod
    def load_or_create(
        cls,
        path: Path | str,
        config: SpectrogramConfig | None = None,
        settings: FingerprintConfig | None = None,
    ) -> FingerprintDB:
        """Load the database at ``path``, or start an empty one if there is none.

        Only a missing file yields a fresh database. A file that exists but
        cannot be decoded raises CorruptDatabaseError instead of being
        silently replaced.
        """
        from .exceptions import DatabaseNotFoundError

        try:
            return cls.load(path, settings)
        except DatabaseNotFoundError:
            logger.info("Database not found at %s, creating new one", path)
            return cls(config, settings)
