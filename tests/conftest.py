"""
Shared fixtures for binaural mixer tests.

Provides:
    - Synthetic WAV assets (mono/stereo, 44.1 kHz and 48 kHz)
    - A minimal SOFA HRTF dataset with known impulse responses
"""

from __future__ import annotations

from pathlib import Path

import netCDF4 as nc
import numpy as np
import pytest
import soundfile as sf

FS = 44100

# az (deg), el (deg) of the synthetic SOFA measurements
SOFA_POSITIONS = [(0.0, 0.0), (30.0, 0.0), (90.0, 0.0), (270.0, 0.0)]
SOFA_TAPS = 8


def tone(
    freq: float = 440.0,
    fs: int = FS,
    seconds: float = 1.0,
    amplitude: float = 0.5,
) -> np.ndarray:
    """Mono sine, shape (frames,)."""
    t = np.arange(int(round(fs * seconds))) / fs
    return amplitude * np.sin(2 * np.pi * freq * t)


def noise(
    fs: int = FS,
    seconds: float = 1.0,
    channels: int = 2,
    amplitude: float = 0.3,
    seed: int = 0,
) -> np.ndarray:
    """Uniform noise, shape (frames, channels)."""
    rng = np.random.default_rng(seed)
    frames = int(round(fs * seconds))
    return amplitude * rng.uniform(-1.0, 1.0, size=(frames, channels))


def sofa_hrirs() -> np.ndarray:
    """Known HRIRs, shape (M, 2, N).

    30 deg: left = unit impulse at 0, right = 0.5 impulse at 2.
    Other positions get different, easily told apart responses.
    """
    hrirs = np.zeros((len(SOFA_POSITIONS), 2, SOFA_TAPS))
    hrirs[0, 0, 0] = hrirs[0, 1, 0] = 1.0
    hrirs[1, 0, 0] = 1.0
    hrirs[1, 1, 2] = 0.5
    hrirs[2, 0, 4] = 0.25
    hrirs[2, 1, 0] = 1.0
    hrirs[3, 0, 0] = 1.0
    hrirs[3, 1, 4] = 0.25
    return hrirs


@pytest.fixture
def write_wav(tmp_path: Path):
    """Factory writing float WAV files into tmp_path."""
    def _write(name: str, data: np.ndarray, fs: int = FS) -> Path:
        path = tmp_path / name
        sf.write(str(path), data, fs, subtype="FLOAT")
        return path
    return _write


@pytest.fixture
def mono_wav(write_wav) -> Path:
    """1 s mono 44.1 kHz tone."""
    return write_wav("target.wav", tone())


@pytest.fixture
def stereo_wav(write_wav) -> Path:
    """1 s stereo 44.1 kHz noise."""
    return write_wav("interferer.wav", noise())


@pytest.fixture
def stereo_48k_wav(write_wav) -> Path:
    """1 s stereo 48 kHz noise."""
    return write_wav("interferer_48k.wav", noise(fs=48000, seed=1), fs=48000)


@pytest.fixture
def silent_wav(write_wav) -> Path:
    """1 s stereo silence."""
    return write_wav("silence.wav", np.zeros((FS, 2)))


def write_sofa(
    path: Path,
    positions: np.ndarray,
    position_type: str | None = None,
) -> Path:
    """Write sofa_hrirs() at 44.1 kHz with the given SourcePosition rows."""
    hrirs = sofa_hrirs()

    with nc.Dataset(str(path), "w", format="NETCDF4") as ds:
        ds.createDimension("M", hrirs.shape[0])
        ds.createDimension("R", hrirs.shape[1])
        ds.createDimension("N", hrirs.shape[2])
        ds.createDimension("C", 3)
        ds.createDimension("I", 1)

        ir = ds.createVariable("Data.IR", "f8", ("M", "R", "N"))
        ir[:] = hrirs
        pos = ds.createVariable("SourcePosition", "f8", ("M", "C"))
        pos[:] = positions
        if position_type is not None:
            pos.Type = position_type
        sr = ds.createVariable("Data.SamplingRate", "f8", ("I",))
        sr[:] = [FS]

    return path


@pytest.fixture
def sofa_file(tmp_path: Path) -> Path:
    """Minimal SOFA file at 44.1 kHz with the HRIRs of sofa_hrirs()."""
    positions = np.array([[az, el, 1.0] for az, el in SOFA_POSITIONS])
    return write_sofa(tmp_path / "hrtfs.sofa", positions)
