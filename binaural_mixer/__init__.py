"""
Binaural Mixer - Binaural stimuli for sound source separation research.

Architecture:
    Source(s) → [resample → up/down-mix → HRTF] → Mixture → TIR → files

Public API (stable):
    Source          - A sound source: audio file + location, lazy conversion
    Mixture         - Target + interferers at a target-to-interferer ratio
    RenderConfig    - Normalisation, codec and resampling settings

Modules:
    formats         - Audio file I/O, resampling, channel mixing, levels
    spatial         - SOFA HRTF loading and binaural convolution
    runtime         - Render-state cache and derived file naming
    adapters        - CLI and playback

Example:
    from binaural_mixer import Source, Mixture

    target = Source("speech.wav", azimuth=0)
    noise = Source("babble.wav", azimuth=60)
    mix = Mixture(target, [noise], tir=-5, hrtfs="kemar.sofa")

    mix.write("out/mix.wav")       # also out/mix_target.wav, out/mix_interferer.wav
    mix.signal_t                   # served from disk until something changes

    noise.azimuth = 90             # invalidates the mixture
    mix.write()                    # re-rendered
"""

__version__ = "1.0.0"

from binaural_mixer.errors import (
    MixerError,
    ValidationError,
    NotFoundError,
    StateError,
)
from binaural_mixer.config import RenderConfig
from binaural_mixer.bss import Source, Mixture

__all__ = [
    "__version__",
    # Core
    "Source",
    "Mixture",
    "RenderConfig",
    # Errors
    "MixerError",
    "ValidationError",
    "NotFoundError",
    "StateError",
]
