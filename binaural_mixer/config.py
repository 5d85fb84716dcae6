"""
Render configuration.

One RenderConfig is shared by a Mixture and its Sources. It controls how
signals are normalised and encoded when written, how sources are resampled
when their asset rate differs, and how many HRTF datasets stay in memory.
"""

from __future__ import annotations

from dataclasses import dataclass

from binaural_mixer.formats.sample_rate import ResamplingQuality


@dataclass
class RenderConfig:
    """Configuration for rendering and writing audio."""

    # Normalisation
    headroom_db: float = -1.0  # Peak level below 0 dBFS after write()

    # Encoding (soundfile subtype)
    subtype: str = "PCM_16"

    # Conversion
    resampling_quality: ResamplingQuality = ResamplingQuality.HIGH

    # HRTF datasets kept in memory
    hrtf_cache_size: int = 8

    def __post_init__(self):
        if self.headroom_db > 0:
            raise ValueError(f"headroom_db must be <= 0, got {self.headroom_db}")
        if self.hrtf_cache_size < 1:
            raise ValueError(f"hrtf_cache_size must be >= 1, got {self.hrtf_cache_size}")
        if isinstance(self.resampling_quality, str):
            self.resampling_quality = ResamplingQuality(self.resampling_quality)

    @property
    def peak_level(self) -> float:
        """Linear peak level targeted by normalisation."""
        return 10 ** (self.headroom_db / 20)


DEFAULT_CONFIG = RenderConfig()
