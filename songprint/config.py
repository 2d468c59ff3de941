"""Configuration management using Pydantic and YAML."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


class SpectrogramConfig(BaseModel):
    """Transform parameters shared by analysis and recognition.

    Frequency and time bins only mean something relative to these values, so a
    database must be queried with the configuration it was built with.
    """

    model_config = ConfigDict(frozen=True)

    window_size: int = Field(ge=4, default=1024)
    stride: int = Field(ge=1, default=512)
    sample_rate: float = Field(gt=0, default=48000.0)

    @model_validator(mode="after")
    def _check_framing(self) -> SpectrogramConfig:
        if self.window_size % 2:
            raise ValueError(f"window_size must be even, got {self.window_size}")
        if self.stride > self.window_size:
            raise ValueError(
                f"stride ({self.stride}) must not exceed window_size ({self.window_size})"
            )
        return self

    @property
    def hz_per_bin(self) -> float:
        """Width of one frequency bin in Hz."""
        return self.sample_rate / self.window_size

    @property
    def ms_per_frame(self) -> float:
        """Duration of one time bin in milliseconds."""
        return self.stride * 1000 / self.sample_rate


class FingerprintConfig(BaseModel):
    """Peak selection and landmark pairing parameters."""

    model_config = ConfigDict(frozen=True)

    peaks_per_frame: int = Field(ge=1, default=5)
    fan_out: int = Field(ge=1, default=5)  # Max targets per anchor
    min_time_delta_ms: int = Field(ge=0, default=50)
    max_time_delta_ms: int = Field(ge=1, default=2000)
    seed: int | None = None  # None = fresh entropy on every run

    @model_validator(mode="after")
    def _check_window(self) -> FingerprintConfig:
        if self.min_time_delta_ms > self.max_time_delta_ms:
            raise ValueError("min_time_delta_ms must not exceed max_time_delta_ms")
        return self


class DatabaseConfig(BaseModel):
    """Database storage configuration."""

    path: Path = Path("audio_fingerprint.db")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str | None = None


class SongprintConfig(BaseModel):
    """Main application configuration."""

    spectrogram: SpectrogramConfig = Field(default_factory=SpectrogramConfig)
    fingerprint: FingerprintConfig = Field(default_factory=FingerprintConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def default_config_paths() -> list[Path]:
    """Locations searched, in order, when no config path is given."""
    return [
        Path.cwd() / "config" / "config.yaml",
        Path.home() / ".config" / "songprint" / "config.yaml",
        Path.home() / ".songprint" / "config.yaml",
    ]


def load_config(config_path: Path | None = None) -> SongprintConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, the default locations are
            searched and built-in defaults are used when none exists.

    Returns:
        SongprintConfig instance

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ValueError: If config file is invalid
    """
    if config_path is None:
        for path in default_config_paths():
            if path.exists():
                config_path = path
                break
        else:
            return SongprintConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f)

    return SongprintConfig(**(data or {}))
