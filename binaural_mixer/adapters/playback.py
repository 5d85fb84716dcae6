"""
Playback Adapter - Replay signals on the default output device.

Requires the optional `sounddevice` dependency (extra: playback).
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


def replay(samples: np.ndarray, sample_rate: float, blocking: bool = True) -> None:
    """Play samples (frames, channels) and optionally wait until done."""
    import sounddevice as sd

    samples = np.asarray(samples, dtype=np.float32)
    logger.debug(f"Replaying {len(samples)} frames @ {sample_rate}Hz")
    sd.play(samples, int(round(sample_rate)))
    if blocking:
        sd.wait()
