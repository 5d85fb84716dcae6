"""
Sample rate conversion utilities.

Resamples multichannel audio laid out as (frames, channels).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fractions import Fraction

import numpy as np
from scipy.signal import resample_poly


class ResamplingQuality(Enum):
    """Quality level for resampling."""
    FAST = "fast"           # Linear interpolation
    HIGH = "high"           # Polyphase filter


@dataclass
class SampleRateConverter:
    """
    Sample rate converter with configurable quality.

    Attributes:
        quality: Resampling quality level
        max_denominator: Limit on the up/down factors of the polyphase filter
    """
    quality: ResamplingQuality = ResamplingQuality.HIGH
    max_denominator: int = 1000

    def convert(
        self,
        audio: np.ndarray,
        from_rate: float,
        to_rate: float,
    ) -> np.ndarray:
        """
        Convert sample rate of audio.

        Args:
            audio: Input samples, shape (frames,) or (frames, channels)
            from_rate: Source sample rate
            to_rate: Target sample rate

        Returns:
            Resampled audio with the same number of channels
        """
        audio = np.asarray(audio, dtype=np.float64)

        if from_rate == to_rate:
            return audio.copy()

        if len(audio) == 0:
            return np.zeros((0,) + audio.shape[1:], dtype=np.float64)

        if self.quality == ResamplingQuality.FAST:
            new_length = int(round(len(audio) * to_rate / from_rate))
            if new_length == 0:
                return np.zeros((0,) + audio.shape[1:], dtype=np.float64)
            return self._linear_resample(audio, new_length)
        return self._polyphase_resample(audio, from_rate, to_rate)

    def _linear_resample(
        self,
        audio: np.ndarray,
        new_length: int,
    ) -> np.ndarray:
        """Linear interpolation resampling."""
        x_original = np.arange(len(audio))
        x_target = np.linspace(0, len(audio) - 1, new_length)

        if audio.ndim == 1:
            return np.interp(x_target, x_original, audio)

        resampled = np.zeros((new_length, audio.shape[1]), dtype=np.float64)
        for ch in range(audio.shape[1]):
            resampled[:, ch] = np.interp(x_target, x_original, audio[:, ch])
        return resampled

    def _polyphase_resample(
        self,
        audio: np.ndarray,
        from_rate: float,
        to_rate: float,
    ) -> np.ndarray:
        """Polyphase filter resampling (anti-aliased)."""
        ratio = Fraction(to_rate / from_rate).limit_denominator(self.max_denominator)
        return resample_poly(audio, ratio.numerator, ratio.denominator, axis=0)


def convert_sample_rate(
    audio: np.ndarray,
    from_rate: float,
    to_rate: float,
    quality: ResamplingQuality = ResamplingQuality.HIGH,
) -> np.ndarray:
    """
    Convert sample rate of audio.

    Convenience function that creates a converter with specified quality.

    Example:
        # Downsample a stereo file from 48 kHz to 44.1 kHz
        audio_44k = convert_sample_rate(audio_48k, 48000, 44100)
    """
    converter = SampleRateConverter(quality=quality)
    return converter.convert(audio, from_rate, to_rate)
