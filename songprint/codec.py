"""Binary persistence for the fingerprint database.

Uses numpy's ``.npz`` container, compressed and read with
``allow_pickle=False``. The posting lists are flattened into a CSR-style
layout:

``keys``            (N, 3) uint32, one ``(freq1, freq2, time_delta)`` row per fingerprint
``indptr``          (N + 1,) int64, postings of key ``i`` are rows ``indptr[i]:indptr[i + 1]``
``postings``        (M, 2) int64, ``(song_id, time_offset_ms)`` rows
``song_ids``        (S,) int64
``song_titles``     (S,) unicode
``config``          ``[window_size, stride, sample_rate]``, empty when unbound
``total_fingerprints`` scalar, must equal M

Files are written to a temporary sibling and renamed into place, so a crash
mid-write leaves the previous file intact.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import numpy as np

from .config import SpectrogramConfig
from .database import FingerprintDB, SongMetaData
from .exceptions import CorruptDatabaseError, DatabaseError, DatabaseNotFoundError
from .fingerprint import Fingerprint

logger = logging.getLogger(__name__)

FORMAT_MARKER = "songprint-fpdb-1"

_ARRAYS = (
    "format",
    "config",
    "keys",
    "indptr",
    "postings",
    "song_ids",
    "song_titles",
    "total_fingerprints",
)

# Arrays that must hold integers, with their required number of dimensions
_INTEGER_ARRAYS = {
    "keys": 2,
    "indptr": 1,
    "postings": 2,
    "song_ids": 1,
    "total_fingerprints": 0,
}


def _check_dtypes(arrays: dict[str, np.ndarray]) -> None:
    for name, ndim in _INTEGER_ARRAYS.items():
        array = arrays[name]
        if not np.issubdtype(array.dtype, np.integer):
            raise CorruptDatabaseError(f"Array {name!r} has non-integer dtype {array.dtype}")
        if array.ndim != ndim:
            raise CorruptDatabaseError(
                f"Array {name!r} has {array.ndim} dimensions, expected {ndim}"
            )

    titles = arrays["song_titles"]
    if not np.issubdtype(titles.dtype, np.str_) or titles.ndim != 1:
        raise CorruptDatabaseError(f"Bad song_titles array ({titles.dtype}, {titles.ndim}-D)")

    config = arrays["config"]
    if not np.issubdtype(config.dtype, np.number) or config.ndim != 1:
        raise CorruptDatabaseError(f"Bad config array ({config.dtype}, {config.ndim}-D)")


def encode_database(db: FingerprintDB) -> dict[str, np.ndarray]:
    """Flatten a database into the named arrays stored on disk."""
    with db.lock:
        n_keys = len(db.database)
        keys = np.array(
            [(fp.freq1, fp.freq2, fp.time_delta) for fp in db.database],
            dtype=np.uint32,
        ).reshape(n_keys, 3)

        lengths = np.fromiter(
            (len(postings) for postings in db.database.values()),
            dtype=np.int64,
            count=n_keys,
        )
        indptr = np.zeros(n_keys + 1, dtype=np.int64)
        np.cumsum(lengths, out=indptr[1:])

        postings = np.array(
            [posting for plist in db.database.values() for posting in plist],
            dtype=np.int64,
        ).reshape(-1, 2)

        song_ids = np.array(sorted(db.songs), dtype=np.int64)
        titles = np.array([db.songs[int(i)].title for i in song_ids], dtype=np.str_)

        if db.config is None:
            config = np.array([], dtype=np.float64)
        else:
            config = np.array(
                [db.config.window_size, db.config.stride, db.config.sample_rate],
                dtype=np.float64,
            )

    return {
        "format": np.array(FORMAT_MARKER),
        "config": config,
        "keys": keys,
        "indptr": indptr,
        "postings": postings,
        "song_ids": song_ids,
        "song_titles": titles,
        "total_fingerprints": np.array(len(postings), dtype=np.int64),
    }


def decode_database(arrays: dict[str, np.ndarray]) -> FingerprintDB:
    """Rebuild a database from its stored arrays.

    Raises:
        CorruptDatabaseError: If the arrays are inconsistent
    """
    if str(arrays["format"]) != FORMAT_MARKER:
        raise CorruptDatabaseError(f"Unknown database format: {arrays['format']!s}")
    _check_dtypes(arrays)

    keys = arrays["keys"]
    indptr = arrays["indptr"]
    postings = arrays["postings"]
    song_ids = arrays["song_ids"]
    titles = arrays["song_titles"]
    raw_config = arrays["config"]

    if keys.ndim != 2 or keys.shape[1] != 3:
        raise CorruptDatabaseError(f"Bad keys shape {keys.shape}")
    if postings.ndim != 2 or postings.shape[1] != 2:
        raise CorruptDatabaseError(f"Bad postings shape {postings.shape}")
    if indptr.shape != (len(keys) + 1,) or indptr[0] != 0 or indptr[-1] != len(postings):
        raise CorruptDatabaseError("Posting index does not match posting table")
    if np.any(np.diff(indptr) < 0):
        raise CorruptDatabaseError("Posting index is not monotonic")
    if song_ids.shape != titles.shape:
        raise CorruptDatabaseError("Song ids and titles differ in length")
    if int(arrays["total_fingerprints"]) != len(postings):
        raise CorruptDatabaseError(
            f"Stored fingerprint count {int(arrays['total_fingerprints'])} "
            f"does not match {len(postings)} decoded postings"
        )

    config = None
    if raw_config.size == 3:
        try:
            config = SpectrogramConfig(
                window_size=int(raw_config[0]),
                stride=int(raw_config[1]),
                sample_rate=float(raw_config[2]),
            )
        except ValueError as e:
            raise CorruptDatabaseError(f"Invalid stored configuration: {e}") from e
    elif raw_config.size != 0:
        raise CorruptDatabaseError(f"Bad config shape {raw_config.shape}")

    db = FingerprintDB(config)
    posting_rows = [tuple(row) for row in postings.tolist()]
    bounds = indptr.tolist()
    for i, (freq1, freq2, time_delta) in enumerate(keys.tolist()):
        db.database[Fingerprint(freq1, freq2, time_delta)] = posting_rows[bounds[i]:bounds[i + 1]]
    if len(db.database) != len(keys):
        raise CorruptDatabaseError("Duplicate fingerprint keys")

    for song_id, title in zip(song_ids.tolist(), titles.tolist()):
        db.songs[song_id] = SongMetaData(song_id=song_id, title=title)
    if len(db.songs) != len(song_ids):
        raise CorruptDatabaseError("Duplicate song ids")

    return db


def save_database(db: FingerprintDB, path: Path | str) -> None:
    """Serialize the database to ``path``, replacing any existing file.

    Raises:
        DatabaseError: If the file cannot be written
    """
    path = Path(path)
    arrays = encode_database(db)
    logger.info(
        "Saving fingerprint database with %d songs and %d fingerprints",
        len(arrays["song_ids"]),
        len(arrays["postings"]),
    )

    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as f:
            tmp_path = Path(f.name)
            np.savez_compressed(f, **arrays)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise DatabaseError(f"Unable to write database {path}: {e}") from e


def load_database(path: Path | str) -> FingerprintDB:
    """Deserialize a database written by :func:`save_database`.

    Raises:
        DatabaseNotFoundError: If no file exists at ``path``
        CorruptDatabaseError: If the file exists but cannot be decoded
    """
    path = Path(path)
    logger.info("Loading fingerprint database from %s", path)

    try:
        f = open(path, "rb")
    except FileNotFoundError as e:
        raise DatabaseNotFoundError(f"No database at {path}") from e
    except OSError as e:
        raise DatabaseError(f"Unable to read database {path}: {e}") from e

    with f:
        try:
            with np.load(f, allow_pickle=False) as npz:
                arrays = {name: npz[name] for name in _ARRAYS}
        except Exception as e:
            raise CorruptDatabaseError(f"Invalid database file {path}: {e}") from e

    db = decode_database(arrays)
    logger.info(
        "Loaded %d songs and %d fingerprints", len(db.songs), db.total_fingerprints
    )
    return db
