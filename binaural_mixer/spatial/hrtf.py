"""
HRTF Spatialisation - Convolve mono sources with measured HRIRs.

Features:
    - SOFA (netCDF4) dataset loading
    - Nearest-measurement HRIR selection on the sphere
    - HRIR resampling to the output rate
    - FFT convolution to a 2-channel binaural signal

SPATIALIZER CONTRACT:
    Spatializers MUST:
        - Accept mono samples and return (frames, 2) float64 samples
        - Return the full convolution (input length + HRIR length - 1)
        - Report the native sampling rate of a dataset
    Spatializers MUST NOT:
        - Normalise or otherwise change the level of the result
        - Mutate the input samples

Azimuth and elevation are in degrees and follow the dataset's own
SourcePosition convention (SOFA: azimuth counter-clockwise, 0 = front).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

import netCDF4 as nc
import numpy as np
from scipy.signal import fftconvolve

from binaural_mixer.errors import MixerError, NotFoundError
from binaural_mixer.formats.sample_rate import ResamplingQuality, convert_sample_rate
from binaural_mixer.runtime.cache import CacheStats, LRUCache

logger = logging.getLogger(__name__)


@runtime_checkable
class Spatializer(Protocol):
    """Protocol for spatialisers used by a Mixture."""

    def sampling_rate(self, hrtf_path: str | os.PathLike) -> int:
        """Native sampling rate of the HRTF dataset."""
        ...

    def __call__(
        self,
        hrtf_path: str | os.PathLike,
        samples: np.ndarray,
        azimuth: float,
        elevation: float,
        sample_rate: float,
    ) -> np.ndarray:
        """Spatialise mono samples to a (frames, 2) binaural signal."""
        ...


def angular_distance(
    azimuth: float,
    elevation: float,
    azimuths: np.ndarray,
    elevations: np.ndarray,
) -> np.ndarray:
    """
    Great-circle distance (radians) between one direction and many.

    All angles are in degrees.
    """
    az1 = np.deg2rad(azimuth)
    el1 = np.deg2rad(elevation)
    az2 = np.deg2rad(azimuths)
    el2 = np.deg2rad(elevations)

    v1 = np.array([np.cos(el1) * np.cos(az1),
                   np.cos(el1) * np.sin(az1),
                   np.sin(el1)])
    v2 = np.stack([np.cos(el2) * np.cos(az2),
                   np.cos(el2) * np.sin(az2),
                   np.sin(el2)], axis=-1)

    dot = np.clip(v2 @ v1, -1.0, 1.0)
    return np.arccos(dot)


def cartesian_to_spherical(xyz: np.ndarray) -> np.ndarray:
    """
    Convert (x, y, z) rows to (azimuth, elevation, distance) rows.

    Angles are in degrees, azimuth in [0, 360).
    """
    x, y, z = xyz[:, 0], xyz[:, 1], xyz[:, 2]
    azimuth = np.rad2deg(np.arctan2(y, x)) % 360
    elevation = np.rad2deg(np.arctan2(z, np.hypot(x, y)))
    distance = np.sqrt(x ** 2 + y ** 2 + z ** 2)
    return np.stack([azimuth, elevation, distance], axis=-1)


@dataclass
class HRTFDataset:
    """
    HRIRs loaded from a SOFA file.

    Attributes:
        path: Source file
        hrirs: Impulse responses, shape (measurements, receivers, samples)
        positions: Source positions, shape (measurements, >=2); azimuth and
            elevation in degrees in the first two columns (cartesian
            SourcePosition files are converted on load)
        sample_rate: Native sampling rate of the HRIRs
    """
    path: Path
    hrirs: np.ndarray
    positions: np.ndarray
    sample_rate: int

    @classmethod
    def load(cls, path: str | os.PathLike) -> "HRTFDataset":
        """Read Data.IR, SourcePosition and Data.SamplingRate from a SOFA file."""
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(path, kind="HRTF")

        with nc.Dataset(str(path), "r") as ds:
            for name in ("Data.IR", "SourcePosition", "Data.SamplingRate"):
                if name not in ds.variables:
                    raise MixerError(f"SOFA file {path} is missing variable '{name}'")

            hrirs = np.array(ds.variables["Data.IR"][:], dtype=np.float64)
            source_position = ds.variables["SourcePosition"]
            position_type = (
                str(source_position.getncattr("Type")).lower()
                if "Type" in source_position.ncattrs() else "spherical"
            )
            positions = np.array(source_position[:], dtype=np.float64)
            sample_rate = int(np.asarray(ds.variables["Data.SamplingRate"][:]).ravel()[0])

        if hrirs.ndim != 3 or hrirs.shape[1] < 2:
            raise MixerError(f"Unexpected Data.IR shape {hrirs.shape} in {path}; expected (M, 2, N)")
        if positions.ndim != 2 or positions.shape[1] < 2:
            raise MixerError(f"Unexpected SourcePosition shape {positions.shape} in {path}")
        if position_type == "cartesian":
            if positions.shape[1] < 3:
                raise MixerError(f"Cartesian SourcePosition in {path} needs x, y and z columns")
            positions = cartesian_to_spherical(positions)
        elif position_type != "spherical":
            raise MixerError(f"Unsupported SourcePosition type '{position_type}' in {path}")

        logger.debug(
            f"Loaded SOFA {path}: {hrirs.shape[0]} measurements, "
            f"{hrirs.shape[2]} taps @ {sample_rate}Hz"
        )
        return cls(path=path, hrirs=hrirs, positions=positions, sample_rate=sample_rate)

    def nearest(self, azimuth: float, elevation: float) -> np.ndarray:
        """
        HRIR pair of the measurement closest to (azimuth, elevation).

        Returns:
            Array of shape (samples, 2): left and right impulse responses
        """
        distances = angular_distance(
            azimuth, elevation, self.positions[:, 0], self.positions[:, 1]
        )
        idx = int(np.argmin(distances))
        logger.debug(
            f"HRIR {idx} chosen for az={azimuth}, el={elevation} "
            f"({np.rad2deg(distances[idx]):.2f} deg away)"
        )
        return self.hrirs[idx, :2, :].T


class HRTFSpatializer:
    """
    Spatialise mono signals by convolution with SOFA HRIRs.

    Loaded datasets are kept in an LRU cache keyed by path and
    modification time, so editing a file on disk reloads it.

    Example:
        spat = HRTFSpatializer()
        binaural = spat("kemar.sofa", mono, azimuth=30, elevation=0, sample_rate=44100)
    """

    def __init__(
        self,
        cache_size: int = 8,
        quality: ResamplingQuality = ResamplingQuality.HIGH,
    ):
        self.quality = quality
        self._datasets = LRUCache[HRTFDataset](max_size=cache_size)

    def dataset(self, hrtf_path: str | os.PathLike) -> HRTFDataset:
        """Load (or fetch from cache) the dataset at hrtf_path."""
        path = Path(hrtf_path)
        if not path.is_file():
            raise NotFoundError(path, kind="HRTF")

        key = f"{path.resolve()}:{path.stat().st_mtime_ns}"
        dataset = self._datasets.get(key)
        if dataset is None:
            dataset = HRTFDataset.load(path)
            self._datasets.put(key, dataset)
            stats = self._datasets.stats
            logger.debug(
                f"HRTF cache: {stats.size}/{stats.max_size} datasets, "
                f"{stats.hit_rate:.0%} hit rate, {stats.evictions} evictions"
            )
        return dataset

    @property
    def cache_stats(self) -> CacheStats:
        """Hit/miss statistics of the dataset cache."""
        return self._datasets.stats

    def sampling_rate(self, hrtf_path: str | os.PathLike) -> int:
        return self.dataset(hrtf_path).sample_rate

    def __call__(
        self,
        hrtf_path: str | os.PathLike,
        samples: np.ndarray,
        azimuth: float,
        elevation: float,
        sample_rate: float,
    ) -> np.ndarray:
        dataset = self.dataset(hrtf_path)

        mono = np.asarray(samples, dtype=np.float64)
        if mono.ndim > 1:
            mono = mono[:, 0]

        hrir = dataset.nearest(azimuth, elevation)
        if dataset.sample_rate != sample_rate:
            hrir = convert_sample_rate(hrir, dataset.sample_rate, sample_rate, quality=self.quality)

        if len(mono) == 0:
            return np.zeros((0, 2), dtype=np.float64)

        left = fftconvolve(mono, hrir[:, 0], mode="full")
        right = fftconvolve(mono, hrir[:, 1], mode="full")
        return np.stack([left, right], axis=-1)


_default_spatializer: HRTFSpatializer | None = None


def get_spatializer() -> HRTFSpatializer:
    """Get the shared default spatializer."""
    global _default_spatializer
    if _default_spatializer is None:
        _default_spatializer = HRTFSpatializer()
    return _default_spatializer


def spatialize(
    hrtf_path: str | os.PathLike,
    samples: np.ndarray,
    azimuth: float,
    elevation: float,
    sample_rate: float,
) -> np.ndarray:
    """
    Spatialise a mono signal with the shared default spatializer.

    Args:
        hrtf_path: SOFA file
        samples: Mono samples, shape (frames,) or (frames, 1)
        azimuth: Azimuth in degrees
        elevation: Elevation in degrees
        sample_rate: Sample rate of samples and of the output

    Returns:
        Binaural samples, shape (frames + taps - 1, 2)
    """
    return get_spatializer()(hrtf_path, samples, azimuth, elevation, sample_rate)
