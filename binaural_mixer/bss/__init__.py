"""
Blind Source Separation stimuli: sources and binaural mixtures.

Components:
    Source   - A sound source with location and lazy format conversion
    Mixture  - Target + interferers mixed at a target-to-interferer ratio

Usage:
    from binaural_mixer.bss import Source, Mixture

    mix = Mixture(Source("speech.wav"), [Source("noise.wav", azimuth=90)], tir=-3)
    mix.write("out/mix.wav")
"""

from binaural_mixer.bss.source import Source
from binaural_mixer.bss.mixture import Mixture

__all__ = [
    "Source",
    "Mixture",
]
