"""
Mixture - Binaural sound source separation mixture.

A Mixture sums one target Source and any number of interferer Sources into
three signals: the target, the interferer sum, and the mixture. The target
and interferers are balanced to a target-to-interferer ratio (TIR) in dB.
Point sources are spatialised with HRTFs when a SOFA file is set; otherwise
(or for precomposed sources) they are mixed to stereo and summed directly.

Signals are computed lazily and cached on disk by write(). The sample rate of
the mixture is authoritative: it is forced onto every source at construction
and whenever either side changes it.

TIR balancing:
    Only one side is ever attenuated, chosen by the sign of the TIR.
    tir <  0: the target is scaled against the unattenuated interferer.
    tir >= 0: the interferer is scaled against the unattenuated target.
    Each branch therefore depends on the other branch's raw form only, and
    computing one never recurses back into itself.

Files:
    For filename "mix.wav" write() produces "mix.wav", "mix_target.wav" and
    "mix_interferer.wav", all scaled by one shared gain so the TIR holds in
    the written files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

import numpy as np

from binaural_mixer.adapters.playback import replay
from binaural_mixer.bss.source import Source
from binaural_mixer.bss.validation import check_scalar
from binaural_mixer.config import DEFAULT_CONFIG, RenderConfig
from binaural_mixer.errors import StateError, ValidationError
from binaural_mixer.formats import asset
from binaural_mixer.formats.levels import normalization_gain, rms, setlength
from binaural_mixer.runtime.cache import (
    RenderCache,
    copy_filename,
    interferer_filename,
    target_filename,
)
from binaural_mixer.spatial.hrtf import HRTFSpatializer, Spatializer, get_spatializer

logger = logging.getLogger(__name__)


class Mixture:
    """
    A target and interferers mixed at a given TIR.

    Example:
        target = Source("speech.wav", azimuth=0)
        noise = Source("babble.wav", azimuth=60)
        mix = Mixture(target, [noise], tir=-5, hrtfs="kemar.sofa", filename="out/mix.wav")
        mix.write()

        mix.rendered       # True
        mix.signal_t       # read back from out/mix_target.wav

    Note that target and interferers are held by reference. Their properties
    may be modified through mix.target and mix.interferers, except fs, which
    always follows the mixture.
    """

    def __init__(
        self,
        target: Source,
        interferers: Source | Iterable[Source] | None = None,
        *,
        filename: str | os.PathLike | None = None,
        fs: float | None = None,
        hrtfs: str | os.PathLike | None = None,
        tir: float = 0,
        config: RenderConfig | None = None,
        spatializer: Spatializer | None = None,
    ):
        """Create a mixture.

        Args:
            target: The target source
            interferers: Interferer source(s); pass [] for none
            filename: Mixture file used by write(). Target and interferer
                files are derived by appending '_target' and '_interferer'.
            fs: Sample rate of the mixture (default: target.fs, or the HRTF
                sampling rate when hrtfs is set)
            hrtfs: SOFA file of HRTFs convolved with point sources
            tir: Target-to-interferer RMS ratio in dB
            config: Render configuration
            spatializer: Spatialiser to use (default: HRTFSpatializer)

        Raises:
            ValidationError: If an argument is missing or invalid
        """
        if interferers is None:
            raise ValidationError(
                "interferers",
                "must be supplied together with TARGET (use [] for no interferers)",
            )

        self.config = config or DEFAULT_CONFIG
        if spatializer is None:
            spatializer = (
                get_spatializer() if config is None
                else HRTFSpatializer(
                    cache_size=config.hrtf_cache_size,
                    quality=config.resampling_quality,
                )
            )
        self._spatializer = spatializer
        self._cache = RenderCache()

        # sources
        self._target = self._check_target(target)
        self._interferers = self._check_interferers(interferers)

        # defaults
        self._fs = target.fs
        self._hrtfs: Path | None = None
        self._tir = 0

        # options
        self.filename = filename
        self.hrtfs = hrtfs
        self.tir = tir
        if fs is not None:
            self._fs = check_scalar("fs", fs, positive=True)
        elif self._hrtfs is not None:
            self._fs = self._spatializer.sampling_rate(self._hrtfs)

        for src in self.sources:
            self._adopt(src)

    def __repr__(self) -> str:
        return (
            f"Mixture(target={self._target!r}, interferers={len(self._interferers)}, "
            f"fs={self._fs}, tir={self._tir}, hrtfs={self._hrtfs}, filename={self.filename})"
        )

    # settable properties

    @property
    def target(self) -> Source:
        return self._target

    @target.setter
    def target(self, value: Source):
        value = self._check_target(value)
        if value is self._target:
            return
        self._release((self._target,), (value,) + self._interferers)
        self._target = value
        self._adopt(value)
        self._cache.invalidate("target")

    @property
    def interferers(self) -> tuple[Source, ...]:
        return self._interferers

    @interferers.setter
    def interferers(self, value: Source | Iterable[Source]):
        value = self._check_interferers(value)
        self._release(self._interferers, (self._target,) + value)
        self._interferers = value
        for src in value:
            self._adopt(src)
        self._cache.invalidate("interferers")

    @property
    def hrtfs(self) -> Path | None:
        return self._hrtfs

    @hrtfs.setter
    def hrtfs(self, value: str | os.PathLike | None):
        if value is None or str(value) == "":
            path = None
        elif isinstance(value, (str, os.PathLike)):
            path = Path(value)
            if not path.is_file():
                raise ValidationError("hrtfs", "file does not exist", value)
        else:
            raise ValidationError("hrtfs", "must be a path or empty", value)

        if path == self._hrtfs:
            return
        self._hrtfs = path
        self._cache.invalidate("hrtfs")

    @property
    def tir(self) -> float:
        return self._tir

    @tir.setter
    def tir(self, value: float):
        value = check_scalar("tir", value)
        if value == self._tir:
            return
        self._tir = value
        self._cache.invalidate("tir")

    @property
    def fs(self) -> float | None:
        return self._fs

    @fs.setter
    def fs(self, value: float):
        value = check_scalar("fs", value, positive=True)
        if value == self._fs:
            return
        self._fs = value
        self._cache.invalidate("fs")
        for src in self.sources:
            src.fs = value

    @property
    def filename(self) -> Path | None:
        return self._cache.filename

    @filename.setter
    def filename(self, value: str | os.PathLike | None):
        path = None if value is None or str(value) == "" else Path(value)
        if path == self._cache.filename:
            return
        self._cache.filename = path
        self._cache.invalidate("filename")

    # read-only properties

    @property
    def rendered(self) -> bool:
        return self._cache.rendered

    @property
    def sources(self) -> tuple[Source, ...]:
        """Target followed by interferers."""
        return (self._target,) + self._interferers

    @property
    def filename_t(self) -> Path | None:
        """Name of the target audio file."""
        return target_filename(self.filename)

    @property
    def filename_i(self) -> Path | None:
        """Name of the interferer audio file."""
        return interferer_filename(self.filename)

    @property
    def int_fns(self) -> str:
        """Filenames of all of the interfering sources."""
        return ", ".join(
            str(src.filename) for src in self._interferers if src.filename is not None
        )

    @property
    def azi_sep(self) -> float:
        """The azimuthal separation of the widest sources."""
        azimuths = np.array([src.azimuth for src in self.sources], dtype=np.float64)
        if np.any(azimuths < 0):  # assume angles are -179..180
            span = abs(azimuths.max() - azimuths.min())
        else:  # assume angles are 0..359
            span = (360 - azimuths.max()) + azimuths.min()
        return float(span % 180)

    @property
    def elevation(self) -> float:
        """The median elevation of the mixture."""
        return float(np.median([src.elevation for src in self.sources]))

    @property
    def signal_t(self) -> np.ndarray:
        """The target signal, shape (frames, 2)."""
        if self._cache.hit(self.filename_t):
            logger.debug(f"Reading rendered target {self.filename_t}")
            return asset.read(self.filename_t)[0]

        signal_t = self.return_source(self._target)
        if self._tir < 0:
            signal_t = self._match_level(
                signal_t, self.signal_i, 10 ** (self._tir / 20), "target"
            )
        return signal_t

    @property
    def signal_i(self) -> np.ndarray:
        """The summed interferer signal, shape (frames, 2)."""
        if self._cache.hit(self.filename_i):
            logger.debug(f"Reading rendered interferer {self.filename_i}")
            return asset.read(self.filename_i)[0]

        signal_i = self._sum_interferers()
        if self._tir >= 0:
            signal_i = self._match_level(
                signal_i, self.signal_t, 10 ** (-self._tir / 20), "interferer"
            )
        return signal_i

    @property
    def signal(self) -> np.ndarray:
        """The mixture signal, shape (frames, 2)."""
        if self._cache.hit(self.filename):
            logger.debug(f"Reading rendered mixture {self.filename}")
            return asset.read(self.filename)[0]
        return self._combine(self.signal_t, self.signal_i)

    # methods

    def return_source(self, src: Source) -> np.ndarray:
        """Binaural signal of one source.

        Point sources are read as mono and spatialised when HRTFs are set.
        Everything else is read as stereo and returned directly. The chosen
        channel count is stored in src.numchans.
        """
        spatialise = not src.precomposed and self._hrtfs is not None
        src.numchans = 1 if spatialise else 2

        x = src.signal
        if spatialise:
            return self._spatializer(self._hrtfs, x, src.azimuth, src.elevation, self._fs)
        return x

    def write(self, filename: str | os.PathLike | None = None) -> Path:
        """Save the mixture, target and interferer to audio files.

        Writes to Mixture.filename and the derived target/interferer names.
        With filename, uses it and updates Mixture.filename; if the mixture
        is already rendered the existing files are copied instead of
        re-rendered.

        Raises:
            StateError: If no filename is known
        """
        if filename is not None and self._files_rendered():
            filename = Path(filename)
            if filename.resolve() != self.filename.resolve():
                asset.copy(self.filename, filename)
                asset.copy(self.filename_t, target_filename(filename))
                asset.copy(self.filename_i, interferer_filename(filename))
                self._cache.filename = filename
            return filename

        if filename is not None:
            self.filename = filename
        if self.filename is None:
            raise StateError(
                "FILENAME must be a non-empty path. Set filename as "
                "Mixture.filename or Mixture.write(filename)."
            )
        if self._files_rendered():
            logger.debug(f"{self.filename} already rendered")
            return self.filename

        mixture, target, interferer = self._render()
        gain = normalization_gain([mixture, target, interferer], self.config.peak_level)

        for path, samples in (
            (self.filename, mixture),
            (self.filename_t, target),
            (self.filename_i, interferer),
        ):
            asset.write(path, samples * gain, self._fs, subtype=self.config.subtype)

        self._cache.validate()
        logger.info(
            f"Rendered {self.filename} (tir={self._tir}dB, "
            f"{len(self._interferers)} interferers, gain={gain:.3f})"
        )
        return self.filename

    def copy(self) -> Mixture:
        """Independent copy of the mixture, its sources, and rendered files.

        The copy's filename gets a '_copy' suffix. Rendered files that exist
        are duplicated under the new names; the originals are untouched.
        """
        clone = Mixture(
            self._target.copy(),
            [src.copy() for src in self._interferers],
            filename=copy_filename(self.filename),
            fs=self._fs,
            hrtfs=self._hrtfs,
            tir=self._tir,
            config=self.config,
            spatializer=self._spatializer,
        )

        if self._cache.rendered:
            for src, dst in (
                (self.filename, clone.filename),
                (self.filename_t, clone.filename_t),
                (self.filename_i, clone.filename_i),
            ):
                if src.is_file():
                    asset.copy(src, dst)
            clone._cache.rendered = True

        return clone

    def sound(self) -> None:
        """Replay the mixture."""
        replay(self.signal, self._fs)

    def sound_t(self) -> None:
        """Replay the target."""
        replay(self.signal_t, self._fs)

    def sound_i(self) -> None:
        """Replay the interferer."""
        replay(self.signal_i, self._fs)

    # internals

    @staticmethod
    def _check_target(value) -> Source:
        if not isinstance(value, Source):
            raise ValidationError("target", "must be a single Source", value)
        return value

    @staticmethod
    def _check_interferers(value) -> tuple[Source, ...]:
        if isinstance(value, Source):
            return (value,)
        try:
            sources = tuple(value)
        except TypeError:
            raise ValidationError("interferers", "must be of type Source", value) from None
        if not all(isinstance(src, Source) for src in sources):
            raise ValidationError("interferers", "must be of type Source", value)
        return sources

    def _adopt(self, src: Source) -> None:
        # parent first, so forcing fs does not bounce back to a previous mixture
        src.parent = self
        if self._fs is not None and src.fs != self._fs:
            src.fs = self._fs

    def _release(self, outgoing: Iterable[Source], remaining: tuple[Source, ...]) -> None:
        for src in outgoing:
            if src.parent is self and not any(src is kept for kept in remaining):
                src.parent = None

    def _source_changed(self, src: Source, name: str) -> None:
        self._cache.invalidate(f"{name} of {src.filename}")

    def _files_rendered(self) -> bool:
        return (
            self._cache.hit(self.filename)
            and self._cache.hit(self.filename_t)
            and self._cache.hit(self.filename_i)
        )

    def _sum_interferers(self) -> np.ndarray:
        signal_i = np.zeros((0, 2), dtype=np.float64)
        for src in self._interferers:
            s = self.return_source(src)
            # zero-pad to the longest so far, never crop
            length = max(len(s), len(signal_i))
            signal_i = setlength(signal_i, length) + setlength(s, length)
        return signal_i

    @staticmethod
    def _combine(target: np.ndarray, interferer: np.ndarray) -> np.ndarray:
        length = max(len(target), len(interferer))
        return setlength(target, length) + setlength(interferer, length)

    @staticmethod
    def _match_level(
        signal: np.ndarray,
        reference: np.ndarray,
        ratio: float,
        label: str,
    ) -> np.ndarray:
        """Scale signal so that rms(signal) / rms(reference) == ratio."""
        signal_rms = rms(signal)
        reference_rms = rms(reference)
        if signal_rms == 0 or reference_rms == 0:
            logger.warning(
                f"Skipping TIR scaling of the {label}: "
                f"{'it' if signal_rms == 0 else 'the other side'} is silent"
            )
            return signal
        return signal * (reference_rms / signal_rms) * ratio

    def _render(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Compute (mixture, target, interferer) without touching the disk cache."""
        target = self.return_source(self._target)
        interferer = self._sum_interferers()
        if self._tir < 0:
            target = self._match_level(target, interferer, 10 ** (self._tir / 20), "target")
        else:
            interferer = self._match_level(interferer, target, 10 ** (-self._tir / 20), "interferer")
        return self._combine(target, interferer), target, interferer
