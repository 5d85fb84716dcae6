"""
Audio Asset - Read and write PCM audio files.

Features:
    - Always-2D float64 reads, shape (frames, channels)
    - Metadata probing without decoding samples
    - Atomic writes (temp file in the destination directory, then rename)

A failed write never leaves a partial file at the destination, so callers can
flip their cache flags only after write() returns.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import soundfile as sf

from binaural_mixer.errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class AssetInfo:
    """Metadata of an audio file."""
    path: Path
    sample_rate: int
    channels: int
    frames: int
    subtype: str = ""

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0


def _require(path: str | os.PathLike) -> Path:
    path = Path(path)
    if not path.is_file():
        raise NotFoundError(path)
    return path


def info(path: str | os.PathLike) -> AssetInfo:
    """Read sample rate, channel count and length of an audio file."""
    path = _require(path)
    meta = sf.info(str(path))
    return AssetInfo(
        path=path,
        sample_rate=int(meta.samplerate),
        channels=int(meta.channels),
        frames=int(meta.frames),
        subtype=meta.subtype,
    )


def read(path: str | os.PathLike) -> tuple[np.ndarray, int]:
    """
    Read an audio file.

    Returns:
        Tuple of (samples, sample_rate); samples have shape (frames, channels)
    """
    path = _require(path)
    data, sample_rate = sf.read(str(path), dtype="float64", always_2d=True)
    return data, int(sample_rate)


def ensure_path(path: str | os.PathLike) -> None:
    """Create the parent directory of path if it does not exist."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def write(
    path: str | os.PathLike,
    samples: np.ndarray,
    sample_rate: float,
    subtype: str | None = None,
) -> Path:
    """
    Write audio to disk atomically.

    Args:
        path: Destination file; the format follows its extension
        samples: Samples, shape (frames,) or (frames, channels)
        sample_rate: Sample rate in Hz
        subtype: soundfile subtype (e.g. "PCM_16", "FLOAT")

    Returns:
        The destination path
    """
    path = Path(path)
    ensure_path(path)

    with tempfile.NamedTemporaryFile(
        delete=False,
        dir=str(path.parent),
        prefix=path.stem + ".",
        suffix=path.suffix,
    ) as tmp:
        tmp_path = Path(tmp.name)

    try:
        sf.write(str(tmp_path), samples, int(round(sample_rate)), subtype=subtype)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info(f"Wrote {path} ({len(samples)} frames @ {sample_rate}Hz)")
    return path


def copy(src: str | os.PathLike, dst: str | os.PathLike) -> Path:
    """Copy an audio file atomically."""
    src = _require(src)
    dst = Path(dst)
    if src.resolve() == dst.resolve():
        return dst
    ensure_path(dst)

    with tempfile.NamedTemporaryFile(
        delete=False,
        dir=str(dst.parent),
        prefix=dst.stem + ".",
        suffix=dst.suffix,
    ) as tmp:
        tmp_path = Path(tmp.name)

    try:
        shutil.copyfile(src, tmp_path)
        os.replace(tmp_path, dst)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info(f"Copied {src} -> {dst}")
    return dst
