"""
Level and length utilities shared by sources and mixtures.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


def rms(audio: np.ndarray) -> float:
    """Root-mean-square over all samples of all channels."""
    audio = np.asarray(audio, dtype=np.float64)
    if audio.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(audio))))


def peak(audio: np.ndarray) -> float:
    """Absolute peak over all samples of all channels."""
    audio = np.asarray(audio)
    if audio.size == 0:
        return 0.0
    return float(np.max(np.abs(audio)))


def normalization_gain(
    signals: Sequence[np.ndarray],
    peak_level: float = 1.0,
) -> float:
    """
    Gain that brings the loudest sample across all signals to peak_level.

    One gain is derived for the whole group so that applying it to every
    signal keeps their relative levels. Silent groups get a gain of 1.
    """
    loudest = max((peak(s) for s in signals), default=0.0)
    if loudest == 0:
        return 1.0
    return peak_level / loudest


def normalize(audio: np.ndarray, peak_level: float = 1.0) -> tuple[np.ndarray, float]:
    """
    Peak-normalise audio.

    Returns:
        Tuple of (normalised audio, gain applied)
    """
    gain = normalization_gain([audio], peak_level)
    return np.asarray(audio, dtype=np.float64) * gain, gain


def setlength(audio: np.ndarray, length: int) -> np.ndarray:
    """
    Crop or zero-pad audio to exactly `length` frames.

    Args:
        audio: Samples, shape (frames, channels)
        length: Number of output frames

    Returns:
        The first `length` frames, padded with trailing zeros if needed
    """
    audio = np.asarray(audio, dtype=np.float64)
    frames = audio.shape[0]

    if frames > length:
        return audio[:length]
    if frames < length:
        padding = np.zeros((length - frames,) + audio.shape[1:], dtype=np.float64)
        return np.concatenate([audio, padding], axis=0)
    return audio
