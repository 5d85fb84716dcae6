"""
Audio Formats Module.

Provides the numeric and file collaborators of sources and mixtures:
- Audio file reading/writing (soundfile)
- Sample rate conversion
- Channel up-/down-mixing
- Level measurement, normalisation and length reconciliation

Example:
    from binaural_mixer.formats import convert_sample_rate, up_down_mix

    audio_48k = convert_sample_rate(audio, 44100, 48000)
    mono = up_down_mix(audio_48k, 1)
"""

from binaural_mixer.formats import asset
from binaural_mixer.formats.asset import AssetInfo
from binaural_mixer.formats.sample_rate import (
    convert_sample_rate,
    SampleRateConverter,
    ResamplingQuality,
)
from binaural_mixer.formats.channels import up_down_mix
from binaural_mixer.formats.levels import (
    rms,
    peak,
    normalize,
    normalization_gain,
    setlength,
)

__all__ = [
    # Files
    "asset",
    "AssetInfo",
    # Sample Rate
    "convert_sample_rate",
    "SampleRateConverter",
    "ResamplingQuality",
    # Channels
    "up_down_mix",
    # Levels
    "rms",
    "peak",
    "normalize",
    "normalization_gain",
    "setlength",
]
