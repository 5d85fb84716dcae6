"""
Channel count conversion (up-/down-mixing).
"""

from __future__ import annotations

import numpy as np


def up_down_mix(audio: np.ndarray, numchans: int) -> np.ndarray:
    """
    Convert audio to a different number of channels.

    Down-mixing folds channel n onto output channel n % numchans and averages
    the channels that land on each output, so a down-mix to mono is the mean
    across channels. Up-mixing repeats the input channels cyclically, so a
    mono signal is copied to every output channel.

    Args:
        audio: Samples, shape (frames,) or (frames, channels)
        numchans: Number of output channels

    Returns:
        Samples with shape (frames, numchans)
    """
    if numchans < 1:
        raise ValueError(f"numchans must be >= 1, got {numchans}")

    audio = np.asarray(audio, dtype=np.float64)
    if audio.ndim == 1:
        audio = audio[:, np.newaxis]

    in_chans = audio.shape[1]
    if in_chans == numchans:
        return audio.copy()

    if in_chans > numchans:
        mixed = np.zeros((audio.shape[0], numchans), dtype=np.float64)
        for ch in range(numchans):
            mixed[:, ch] = audio[:, ch::numchans].mean(axis=1)
        return mixed

    return audio[:, np.arange(numchans) % in_chans]
