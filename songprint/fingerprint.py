"""Landmark fingerprints from pairs of spectral peaks.

For each anchor peak, every later peak between ``min_time_delta_ms`` and
``max_time_delta_ms`` ahead is a candidate target. A random subset of at most
``fan_out`` candidates is paired with the anchor.

Each pair hashes to ``(low_hz, high_hz, time_delta_ms)`` and is stored with
the anchor's own offset in the clip, in milliseconds.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from .config import FingerprintConfig, SpectrogramConfig
from .peaks import Peak

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """Hash key of the fingerprint index.

    Attributes:
        freq1: Lower of the two peak frequencies, whole Hz
        freq2: Higher of the two peak frequencies, whole Hz
        time_delta: Time between the two peaks in milliseconds
    """

    freq1: int
    freq2: int
    time_delta: int


def bins_to_ms(time_bins: int, config: SpectrogramConfig) -> int:
    """Convert a number of time bins to whole milliseconds (truncated).

    The result depends only on the bin count, not on where in the clip the
    gap occurs.
    """
    return int(time_bins * config.stride * 1000 / config.sample_rate)


def create_fingerprint(anchor: Peak, target: Peak, config: SpectrogramConfig) -> Fingerprint:
    """Build the fingerprint of a peak pair.

    The result is the same whichever peak is passed first.
    """
    freq_a = int(anchor.frequency_hz(config))
    freq_b = int(target.frequency_hz(config))

    return Fingerprint(
        freq1=min(freq_a, freq_b),
        freq2=max(freq_a, freq_b),
        time_delta=bins_to_ms(abs(target.time_bin - anchor.time_bin), config),
    )


def generate_fingerprints(
    peaks: list[Peak],
    config: SpectrogramConfig,
    settings: FingerprintConfig | None = None,
    rng: random.Random | None = None,
) -> list[tuple[Fingerprint, int]]:
    """Pair peaks into landmark fingerprints.

    Args:
        peaks: Peaks in any order
        config: Spectrogram configuration the peaks were extracted with
        settings: Pairing window and fan-out (defaults if None)
        rng: Random source for target sampling. If None, one is seeded from
            ``settings.seed``.

    Returns:
        List of (fingerprint, anchor_offset_ms) tuples
    """
    settings = settings or FingerprintConfig()
    if rng is None:
        rng = random.Random(settings.seed)

    # sorted() is stable: peaks of the same frame keep their relative order
    order = sorted(range(len(peaks)), key=lambda i: peaks[i].time_bin)
    fingerprints: list[tuple[Fingerprint, int]] = []

    for pos, anchor_i in enumerate(order):
        anchor = peaks[anchor_i]
        targets: list[int] = []

        for next_pos in range(pos + 1, len(order)):
            target_i = order[next_pos]
            time_diff_ms = bins_to_ms(peaks[target_i].time_bin - anchor.time_bin, config)
            if time_diff_ms > settings.max_time_delta_ms:
                break  # sorted by time, nothing further can be in range
            if time_diff_ms >= settings.min_time_delta_ms:
                targets.append(target_i)

        if not targets:
            continue

        # Partial Fisher-Yates: the first num_to_take slots become a uniform sample
        num_to_take = min(settings.fan_out, len(targets))
        for j in range(num_to_take):
            k = rng.randrange(j, len(targets))
            targets[j], targets[k] = targets[k], targets[j]

        time_offset_ms = bins_to_ms(anchor.time_bin, config)
        for target_i in targets[:num_to_take]:
            fingerprints.append(
                (create_fingerprint(anchor, peaks[target_i], config), time_offset_ms)
            )

    logger.debug("Generated %d fingerprints from %d peaks", len(fingerprints), len(peaks))
    return fingerprints
