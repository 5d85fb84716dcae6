"""
Source - A single sound source of a separation mixture.

A Source wraps an audio file plus the attributes needed to render it:
spatial location (azimuth, elevation), whether it is already spatial
(precomposed), and the sample rate and channel count it should be seen at.

The fs and numchans properties do not touch the underlying file. They are
applied on the fly each time the signal is requested, until write() renders
them into a file. After that the file already reflects them and the signal
is returned as read.

Sources are passed to mixtures by reference. Use copy() for an independent
Source.
"""

from __future__ import annotations

import logging
import os
import weakref
from copy import copy as shallow_copy
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from binaural_mixer.adapters.playback import replay
from binaural_mixer.bss.validation import check_bool, check_scalar
from binaural_mixer.config import DEFAULT_CONFIG, RenderConfig
from binaural_mixer.errors import StateError
from binaural_mixer.formats import asset
from binaural_mixer.formats.channels import up_down_mix
from binaural_mixer.formats.levels import normalize
from binaural_mixer.formats.sample_rate import convert_sample_rate
from binaural_mixer.runtime.cache import RenderCache

if TYPE_CHECKING:
    from binaural_mixer.bss.mixture import Mixture

logger = logging.getLogger(__name__)


class Source:
    """
    A sound source with lazy, converted access to its audio file.

    Example:
        src = Source("speech.wav", azimuth=30, fs=44100, numchans=1)
        x = src.signal           # resampled/down-mixed on the fly
        src.write("speech_44k.wav")
        src.rendered             # True
    """

    def __init__(
        self,
        filename: str | os.PathLike | None = None,
        *,
        azimuth: float = 0,
        elevation: float = 0,
        fs: float | None = None,
        numchans: int | None = None,
        precomposed: bool = False,
        config: RenderConfig | None = None,
    ):
        """Create a source.

        Args:
            filename: Audio file holding the signal. Its sample rate and
                channel count seed fs and numchans. None creates an empty
                source.
            azimuth: Azimuth in degrees for spatialisation
            elevation: Elevation in degrees for spatialisation
            fs: Sample rate the signal is seen at (default: file rate)
            numchans: Channel count the signal is seen at (default: file)
            precomposed: True if the signal is already spatial and should be
                summed directly instead of being spatialised
            config: Render configuration

        Raises:
            ValidationError: If an option has the wrong type or shape
            NotFoundError: If filename does not exist
        """
        self.config = config or DEFAULT_CONFIG
        self._cache = RenderCache()
        self._parent: weakref.ReferenceType[Mixture] | None = None

        default_fs = default_chans = None
        if filename is not None and str(filename) != "":
            meta = asset.info(filename)
            self._cache.filename = Path(filename)
            default_fs, default_chans = meta.sample_rate, meta.channels

        self._azimuth = check_scalar("azimuth", azimuth)
        self._elevation = check_scalar("elevation", elevation)
        self._precomposed = check_bool("precomposed", precomposed)
        fs = default_fs if fs is None else fs
        self._fs = None if fs is None else check_scalar("fs", fs, positive=True)
        numchans = default_chans if numchans is None else numchans
        self._numchans = (
            None if numchans is None
            else check_scalar("numchans", numchans, positive=True, integer=True)
        )

    def __repr__(self) -> str:
        return (
            f"Source({str(self.filename)!r}, azimuth={self._azimuth}, "
            f"elevation={self._elevation}, fs={self._fs}, numchans={self._numchans}, "
            f"precomposed={self._precomposed})"
        )

    # properties

    @property
    def filename(self) -> Path | None:
        return self._cache.filename

    @filename.setter
    def filename(self, value: str | os.PathLike | None):
        path = None if value is None or str(value) == "" else Path(value)
        if path == self._cache.filename:
            return
        self._cache.filename = path
        self._changed("filename")

    @property
    def azimuth(self) -> float:
        return self._azimuth

    @azimuth.setter
    def azimuth(self, value: float):
        value = check_scalar("azimuth", value)
        if value == self._azimuth:
            return
        self._azimuth = value
        self._changed("azimuth")

    @property
    def elevation(self) -> float:
        return self._elevation

    @elevation.setter
    def elevation(self, value: float):
        value = check_scalar("elevation", value)
        if value == self._elevation:
            return
        self._elevation = value
        self._changed("elevation")

    @property
    def numchans(self) -> int | None:
        return self._numchans

    @numchans.setter
    def numchans(self, value: int):
        value = check_scalar("numchans", value, positive=True, integer=True)
        if value == self._numchans:
            return
        self._numchans = value
        self._changed("numchans")

    @property
    def precomposed(self) -> bool:
        return self._precomposed

    @precomposed.setter
    def precomposed(self, value: bool):
        value = check_bool("precomposed", value)
        if value == self._precomposed:
            return
        self._precomposed = value
        self._changed("precomposed")

    @property
    def fs(self) -> float | None:
        return self._fs

    @fs.setter
    def fs(self, value: float):
        value = check_scalar("fs", value, positive=True)
        if value == self._fs:
            return
        self._fs = value
        self._changed("fs")

        # the mixture's fs is authoritative: push the change up so that it
        # comes back down to every sibling
        parent = self.parent
        if parent is not None and parent.fs != value:
            logger.debug(f"Propagating fs={value} from {self.filename} to its mixture")
            parent.fs = value

    @property
    def rendered(self) -> bool:
        return self._cache.rendered

    @property
    def parent(self) -> Mixture | None:
        """The mixture this source was last adopted by (weak reference)."""
        return self._parent() if self._parent is not None else None

    @parent.setter
    def parent(self, mixture: Mixture | None):
        self._parent = weakref.ref(mixture) if mixture is not None else None

    @property
    def signal(self) -> np.ndarray:
        """The sampled data, shape (frames, numchans) (read-only)."""
        return self._read(self._require_filename())

    # methods

    def write(self, filename: str | os.PathLike | None = None) -> Path:
        """Write the source audio file (and resample/up-down-mix).

        Overwrites the source's audio file, or writes to filename and
        updates Source.filename. The signal is peak normalised.

        Raises:
            StateError: If no filename is known
        """
        dest = Path(filename) if filename is not None else self.filename
        if dest is None:
            raise StateError(
                "SOURCE.FILENAME is empty. Set Source.filename or call Source.write(filename)."
            )

        if self._cache.hit():
            if dest.resolve() != self.filename.resolve():
                asset.copy(self.filename, dest)
                self._cache.filename = dest
            else:
                logger.debug(f"{dest} already rendered")
            return dest

        # an empty source takes its signal from the file it is written to
        src = self.filename if self.filename is not None else dest
        samples, file_fs = self._read(src, with_rate=True)
        samples, _ = normalize(samples, self.config.peak_level)

        fs = self._fs if self._fs is not None else file_fs
        asset.write(dest, samples, fs, subtype=self.config.subtype)

        self._cache.filename = dest
        self._fs = fs
        self._numchans = samples.shape[1]
        self._cache.validate()
        return dest

    def copy(self) -> Source:
        """Independent copy of the source (but not of its audio file)."""
        clone = shallow_copy(self)
        clone._cache = RenderCache(
            filename=self._cache.filename,
            rendered=self._cache.rendered,
        )
        clone._parent = None
        return clone

    def sound(self) -> None:
        """Replay the source signal."""
        replay(self.signal, self._fs)

    # internals

    def _require_filename(self) -> Path:
        if self.filename is None:
            raise StateError("SOURCE.FILENAME is empty; the source has no signal.")
        return self.filename

    def _read(self, path: Path, with_rate: bool = False):
        samples, file_fs = asset.read(path)

        # conversions are already baked into a rendered file
        if not self._cache.rendered:
            if self._fs is not None and file_fs != self._fs:
                logger.debug(f"Resampling {path} {file_fs}Hz -> {self._fs}Hz")
                samples = convert_sample_rate(
                    samples, file_fs, self._fs,
                    quality=self.config.resampling_quality,
                )
            if self._numchans is not None and samples.shape[1] != self._numchans:
                logger.debug(f"Mixing {path} {samples.shape[1]} -> {self._numchans} channels")
                samples = up_down_mix(samples, self._numchans)

        if with_rate:
            return samples, file_fs
        return samples

    def _changed(self, name: str) -> None:
        self._cache.invalidate(name)
        parent = self.parent
        if parent is not None:
            parent._source_changed(self, name)
