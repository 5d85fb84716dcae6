"""
Spatial Module

HRTF-based spatialisation of point sources.

Components:
    HRTFDataset      - HRIRs and measurement positions loaded from a SOFA file
    HRTFSpatializer  - Convolve mono audio with the nearest HRIR pair
    Spatializer      - Protocol accepted by Mixture
    spatialize       - Function form using a shared spatializer

Usage:
    from binaural_mixer.spatial import spatialize

    binaural = spatialize("kemar.sofa", mono, azimuth=30, elevation=0, sample_rate=44100)
"""

from binaural_mixer.spatial.hrtf import (
    HRTFDataset,
    HRTFSpatializer,
    Spatializer,
    angular_distance,
    cartesian_to_spherical,
    get_spatializer,
    spatialize,
)

__all__ = [
    "HRTFDataset",
    "HRTFSpatializer",
    "Spatializer",
    "angular_distance",
    "cartesian_to_spherical",
    "get_spatializer",
    "spatialize",
]
