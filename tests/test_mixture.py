"""
Tests for Mixture: construction, TIR balancing, spatialisation and caching.
"""

import logging

import pytest
import numpy as np
import soundfile as sf

from binaural_mixer import Source, Mixture, RenderConfig
from binaural_mixer.errors import NotFoundError, StateError, ValidationError
from binaural_mixer.formats import asset, rms

from conftest import FS, SOFA_TAPS, noise, tone


def _no_render(*args, **kwargs):
    raise AssertionError("unexpected render")


class SpySpatializer:
    """Records calls and returns the mono input on both ears."""

    def __init__(self, sample_rate=FS):
        self.sample_rate = sample_rate
        self.calls = []

    def sampling_rate(self, hrtf_path):
        return self.sample_rate

    def __call__(self, hrtf_path, samples, azimuth, elevation, sample_rate):
        self.calls.append((samples.shape, azimuth, elevation, sample_rate))
        return np.stack([samples[:, 0], samples[:, 0]], axis=-1)


@pytest.fixture
def pair(mono_wav, stereo_wav):
    """Mono tone target and stereo noise interferer."""
    return Source(mono_wav), Source(stereo_wav)


class TestMixtureConstruction:
    """Tests for argument validation and defaults."""

    def test_defaults(self, pair):
        target, interferer = pair
        mix = Mixture(target, [interferer])

        assert mix.target is target
        assert mix.interferers == (interferer,)
        assert mix.sources == (target, interferer)
        assert mix.fs == FS
        assert mix.tir == 0
        assert mix.hrtfs is None
        assert mix.filename is None
        assert not mix.rendered

    def test_single_interferer(self, pair):
        target, interferer = pair
        assert Mixture(target, interferer).interferers == (interferer,)

    def test_no_interferers(self, pair):
        assert Mixture(pair[0], []).interferers == ()

    def test_interferers_required(self, pair):
        with pytest.raises(ValidationError, match="INTERFERERS"):
            Mixture(pair[0])

    @pytest.mark.parametrize("target", ["target.wav", None, []])
    def test_bad_target(self, pair, target):
        with pytest.raises(ValidationError, match="TARGET"):
            Mixture(target, [pair[1]])

    @pytest.mark.parametrize("interferers", [5, ["noise.wav"]])
    def test_bad_interferers(self, pair, interferers):
        with pytest.raises(ValidationError):
            Mixture(pair[0], interferers)

    def test_missing_hrtfs(self, pair, tmp_path):
        with pytest.raises(ValidationError, match="HRTFS"):
            Mixture(pair[0], [pair[1]], hrtfs=tmp_path / "missing.sofa")

    def test_bad_tir(self, pair):
        with pytest.raises(ValidationError):
            Mixture(pair[0], [pair[1]], tir="loud")

    def test_fs_option(self, pair):
        target, interferer = pair
        mix = Mixture(target, [interferer], fs=22050)

        assert mix.fs == 22050
        assert target.fs == 22050
        assert interferer.fs == 22050

    def test_fs_from_hrtfs(self, stereo_48k_wav, sofa_file):
        target = Source(stereo_48k_wav)
        mix = Mixture(target, [], hrtfs=sofa_file)

        assert mix.fs == FS
        assert target.fs == FS

    def test_fs_option_beats_hrtfs(self, pair, sofa_file):
        mix = Mixture(pair[0], [pair[1]], hrtfs=sofa_file, fs=16000)
        assert mix.fs == 16000

    def test_sources_adopted(self, pair):
        mix = Mixture(pair[0], [pair[1]])
        assert all(src.parent is mix for src in mix.sources)


class TestSampleRatePropagation:
    """Tests for keeping one fs across the mixture and its sources."""

    def test_interferer_forced_to_target_rate(self, mono_wav, stereo_48k_wav):
        interferer = Source(stereo_48k_wav)
        mix = Mixture(Source(mono_wav), [interferer])

        assert mix.fs == FS
        assert interferer.fs == FS
        assert mix.signal.shape == (FS, 2)

    def test_source_change_reaches_siblings(self, pair):
        target, interferer = pair
        mix = Mixture(target, [interferer])

        interferer.fs = 22050
        assert (mix.fs, target.fs, interferer.fs) == (22050, 22050, 22050)

        mix.fs = 16000
        assert (mix.fs, target.fs, interferer.fs) == (16000, 16000, 16000)

    def test_new_interferers_adopted(self, pair, stereo_48k_wav):
        mix = Mixture(pair[0], [pair[1]])
        extra = Source(stereo_48k_wav)

        mix.interferers = [pair[1], extra]

        assert extra.fs == FS
        assert extra.parent is mix

    def test_reparenting(self, pair, mono_wav):
        target, interferer = pair
        first = Mixture(target, [interferer])
        second = Mixture(Source(mono_wav), [interferer], fs=22050)

        assert interferer.parent is second
        assert interferer.fs == 22050
        assert first.fs == FS

    def test_replaced_target_released(self, pair, mono_wav):
        old, interferer = pair
        mix = Mixture(old, [interferer])

        mix.target = Source(mono_wav, azimuth=10)
        old.fs = 8000

        assert old.parent is None
        assert mix.fs == FS
        assert mix.target.fs == FS
        assert interferer.fs == FS

    def test_removed_interferer_released(self, pair, stereo_48k_wav):
        target, gone = pair
        kept = Source(stereo_48k_wav)
        mix = Mixture(target, [gone, kept])

        mix.interferers = [kept]
        gone.fs = 8000

        assert gone.parent is None
        assert kept.parent is mix
        assert (mix.fs, target.fs, kept.fs) == (FS, FS, FS)

    def test_target_moved_to_interferers_stays_adopted(self, pair, mono_wav):
        target, interferer = pair
        mix = Mixture(target, [interferer])

        mix.interferers = [interferer, target]
        mix.target = Source(mono_wav)

        assert target.parent is mix


class TestTIR:
    """Tests for target-to-interferer balancing."""

    def test_negative_tir_scales_target(self, pair):
        mix = Mixture(pair[0], [pair[1]], tir=-6)

        assert rms(mix.signal_t) / rms(mix.signal_i) == pytest.approx(10 ** (-6 / 20))
        assert rms(mix.signal_i) == pytest.approx(rms(noise()), rel=1e-5)

    def test_positive_tir_scales_interferer(self, pair):
        mix = Mixture(pair[0], [pair[1]], tir=6)

        assert rms(mix.signal_t) / rms(mix.signal_i) == pytest.approx(10 ** (6 / 20))
        np.testing.assert_allclose(mix.signal_t[:, 0], tone(), atol=1e-6)

    def test_zero_tir(self, pair):
        mix = Mixture(pair[0], [pair[1]], tir=0)

        assert rms(mix.signal_t) == pytest.approx(rms(mix.signal_i))
        np.testing.assert_allclose(mix.signal_t[:, 1], tone(), atol=1e-6)

    def test_mixture_is_sum(self, pair):
        mix = Mixture(pair[0], [pair[1]], tir=3)
        np.testing.assert_allclose(mix.signal, mix.signal_t + mix.signal_i)

    def test_shorter_interferer_padded(self, mono_wav, write_wav):
        short = write_wav("short.wav", noise(seconds=0.5))
        mix = Mixture(Source(mono_wav), [Source(short)])

        assert mix.signal_i.shape == (FS // 2, 2)
        assert mix.signal.shape == (FS, 2)

    def test_interferers_summed(self, mono_wav, write_wav):
        a = write_wav("a.wav", noise(seed=1))
        b = write_wav("b.wav", noise(seconds=0.5, seed=2))
        mix = Mixture(Source(mono_wav), [Source(a), Source(b)], tir=-3)

        expected = noise(seed=1)
        expected[:FS // 2] += noise(seconds=0.5, seed=2)
        np.testing.assert_allclose(mix.signal_i, expected, atol=1e-6)

    def test_silent_interferer_warns(self, mono_wav, silent_wav, caplog):
        mix = Mixture(Source(mono_wav), [Source(silent_wav)])

        with caplog.at_level(logging.WARNING, logger="binaural_mixer.bss.mixture"):
            signal_i = mix.signal_i

        assert not signal_i.any()
        assert "silent" in caplog.text

    def test_no_interferers(self, mono_wav):
        mix = Mixture(Source(mono_wav), [], tir=-6)

        assert mix.signal_i.shape == (0, 2)
        np.testing.assert_allclose(mix.signal[:, 0], tone(), atol=1e-6)


class TestSpatialisation:
    """Tests for HRTF convolution of point sources."""

    def test_sofa_target(self, mono_wav, stereo_wav, sofa_file):
        target = Source(mono_wav, azimuth=30)
        mix = Mixture(target, [Source(stereo_wav, azimuth=90)], hrtfs=sofa_file, tir=6)

        signal_t = mix.signal_t
        assert signal_t.shape == (FS + SOFA_TAPS - 1, 2)
        np.testing.assert_allclose(signal_t[:FS, 0], tone(), atol=1e-6)
        np.testing.assert_allclose(signal_t[2:FS + 2, 1], 0.5 * tone(), atol=1e-6)

    def test_point_sources_read_mono(self, pair, sofa_file):
        target, interferer = pair
        spy = SpySpatializer()
        mix = Mixture(target, [interferer], hrtfs=sofa_file, spatializer=spy)

        mix.signal

        assert target.numchans == 1
        assert interferer.numchans == 1
        assert all(shape == (FS, 1) for shape, *_ in spy.calls)

    def test_spatialiser_gets_location(self, mono_wav, stereo_wav, sofa_file):
        spy = SpySpatializer()
        target = Source(mono_wav, azimuth=-30, elevation=10)
        mix = Mixture(target, [Source(stereo_wav, azimuth=60)], hrtfs=sofa_file, spatializer=spy)

        mix.signal_t

        assert spy.calls[0][1:] == (-30, 10, FS)

    def test_precomposed_not_spatialised(self, mono_wav, stereo_wav, sofa_file):
        spy = SpySpatializer()
        interferer = Source(stereo_wav, precomposed=True)
        mix = Mixture(Source(mono_wav), [interferer], hrtfs=sofa_file, tir=-6, spatializer=spy)

        mix.signal_i

        assert spy.calls == []
        assert interferer.numchans == 2

    def test_no_hrtfs_reads_stereo(self, pair):
        target, interferer = pair
        Mixture(target, [interferer]).signal

        assert target.numchans == 2
        assert interferer.numchans == 2

    def test_spatialiser_rate_sets_fs(self, pair, sofa_file):
        spy = SpySpatializer(sample_rate=22050)
        mix = Mixture(pair[0], [pair[1]], hrtfs=sofa_file, spatializer=spy)

        assert mix.fs == 22050
        assert pair[0].fs == 22050

    def test_hrtf_removed_before_render(self, pair, tmp_path, sofa_file):
        hrtfs = tmp_path / "gone.sofa"
        hrtfs.write_bytes(sofa_file.read_bytes())
        mix = Mixture(pair[0], [pair[1]], hrtfs=hrtfs, fs=FS)
        hrtfs.unlink()

        with pytest.raises(NotFoundError):
            mix.signal


class TestDerivedProperties:
    """Tests for filename_t/_i, int_fns, azi_sep and elevation."""

    def test_filenames(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")

        assert mix.filename_t == tmp_path / "mix_target.wav"
        assert mix.filename_i == tmp_path / "mix_interferer.wav"

    def test_filenames_empty(self, pair):
        mix = Mixture(pair[0], [pair[1]])

        assert mix.filename_t is None
        assert mix.filename_i is None

    def test_int_fns(self, mono_wav, stereo_wav, silent_wav):
        mix = Mixture(Source(mono_wav), [Source(stereo_wav), Source(silent_wav)])
        assert mix.int_fns == f"{stereo_wav}, {silent_wav}"

    def test_int_fns_skips_empty_source(self, mono_wav, stereo_wav):
        mix = Mixture(Source(mono_wav), [Source(), Source(stereo_wav)])
        assert mix.int_fns == str(stereo_wav)

    @pytest.mark.parametrize("azimuths, expected", [
        ((0, 30, -60), 90),
        ((0, 90), 90),
        ((10, 350), 20),
        ((0, 0), 0),
    ])
    def test_azi_sep(self, mono_wav, azimuths, expected):
        target = Source(mono_wav, azimuth=azimuths[0])
        interferers = [Source(mono_wav, azimuth=a) for a in azimuths[1:]]

        assert Mixture(target, interferers).azi_sep == pytest.approx(expected)

    def test_elevation_median(self, mono_wav):
        target = Source(mono_wav, elevation=0)
        interferers = [Source(mono_wav, elevation=e) for e in (20, 10)]

        assert Mixture(target, interferers).elevation == 10


class TestMixtureWrite:
    """Tests for writing and the on-disk cache."""

    def test_write_three_files(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], tir=-5)
        path = mix.write(tmp_path / "out" / "mix.wav")

        assert path == tmp_path / "out" / "mix.wav"
        assert mix.filename == path
        for p in (mix.filename, mix.filename_t, mix.filename_i):
            assert p.is_file()
            assert sf.info(str(p)).samplerate == FS
        assert mix.rendered

    def test_written_files_keep_tir(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], tir=-5)
        mix.write(tmp_path / "mix.wav")

        mixture, _ = sf.read(str(mix.filename))
        target, _ = sf.read(str(mix.filename_t))
        interferer, _ = sf.read(str(mix.filename_i))

        assert rms(target) / rms(interferer) == pytest.approx(10 ** (-5 / 20), rel=1e-3)
        np.testing.assert_allclose(mixture, target + interferer, atol=2e-4)
        peak = max(np.max(np.abs(x)) for x in (mixture, target, interferer))
        assert peak == pytest.approx(10 ** (-1 / 20), abs=1e-3)

    def test_write_with_config(self, pair, tmp_path):
        config = RenderConfig(headroom_db=0.0, subtype="FLOAT")
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav", config=config)
        mix.write()

        data, _ = sf.read(str(mix.filename))
        assert sf.info(str(mix.filename)).subtype == "FLOAT"
        assert np.max(np.abs(data)) == pytest.approx(1.0, abs=1e-6)

    def test_write_without_filename(self, pair):
        with pytest.raises(StateError):
            Mixture(pair[0], [pair[1]]).write()

    def test_signals_served_from_disk(self, pair, tmp_path, monkeypatch):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()
        monkeypatch.setattr(mix, "return_source", _no_render)

        np.testing.assert_array_equal(mix.signal_t, asset.read(mix.filename_t)[0])
        np.testing.assert_array_equal(mix.signal_i, asset.read(mix.filename_i)[0])
        np.testing.assert_array_equal(mix.signal, asset.read(mix.filename)[0])

    def test_second_write_is_noop(self, pair, tmp_path, monkeypatch):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()
        monkeypatch.setattr(asset, "write", _no_render)

        assert mix.write() == tmp_path / "mix.wav"
        assert mix.write(tmp_path / "mix.wav") == tmp_path / "mix.wav"

    def test_deleted_file_rerenders(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()
        mix.filename_t.unlink()

        mix.write()
        assert mix.filename_t.is_file()

    def test_rerender_is_reproducible(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()
        before = mix.filename.read_bytes()

        mix.tir = 6
        mix.write()
        assert mix.filename.read_bytes() != before

        mix.tir = 0
        mix.write()
        assert mix.filename.read_bytes() == before

    def test_rendered_write_elsewhere_copies(self, pair, tmp_path, monkeypatch):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "a" / "mix.wav")
        mix.write()
        old = (mix.filename, mix.filename_t, mix.filename_i)
        monkeypatch.setattr(asset, "write", _no_render)

        mix.write(tmp_path / "b" / "mix.wav")

        new = (mix.filename, mix.filename_t, mix.filename_i)
        assert mix.filename == tmp_path / "b" / "mix.wav"
        for o, n in zip(old, new):
            assert n.read_bytes() == o.read_bytes()
        assert mix.rendered


class TestInvalidation:
    """Tests for clearing the rendered flag."""

    @pytest.mark.parametrize("name, value", [("tir", 3), ("fs", 22050)])
    def test_own_property(self, pair, tmp_path, name, value):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()

        setattr(mix, name, value)
        assert not mix.rendered

    def test_hrtfs(self, pair, tmp_path, sofa_file):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()

        mix.hrtfs = sofa_file
        assert not mix.rendered

    def test_same_value(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav", tir=2)
        mix.write()

        mix.tir = 2
        mix.fs = FS
        mix.filename = tmp_path / "mix.wav"
        assert mix.rendered

    def test_new_filename(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()

        mix.filename = tmp_path / "other.wav"
        assert not mix.rendered

    @pytest.mark.parametrize("name, value", [
        ("azimuth", 45),
        ("elevation", 20),
        ("precomposed", True),
    ])
    def test_source_change(self, pair, tmp_path, name, value):
        target, interferer = pair
        mix = Mixture(target, [interferer], filename=tmp_path / "mix.wav")
        mix.write()

        setattr(interferer, name, value)
        assert not mix.rendered

    def test_replace_target(self, pair, mono_wav, tmp_path):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()

        mix.target = Source(mono_wav, azimuth=10)
        assert not mix.rendered
        assert mix.target.parent is mix

    def test_replace_interferers(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()

        mix.interferers = []
        assert not mix.rendered
        assert mix.interferers == ()

    def test_removed_interferer_change(self, pair, tmp_path):
        target, gone = pair
        mix = Mixture(target, [gone], filename=tmp_path / "mix.wav")
        mix.interferers = []
        mix.write()

        gone.azimuth = 45
        gone.fs = 8000

        assert mix.rendered
        assert mix.fs == FS

    def test_replaced_target_change(self, pair, mono_wav, tmp_path):
        old, interferer = pair
        mix = Mixture(old, [interferer], filename=tmp_path / "mix.wav")
        mix.target = Source(mono_wav, azimuth=10)
        mix.write()

        old.elevation = 30
        old.fs = 8000

        assert mix.rendered
        assert mix.fs == FS


class TestMixtureCopy:
    """Tests for Mixture.copy."""

    def test_copy_unrendered(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav", tir=4)
        clone = mix.copy()

        assert clone.filename == tmp_path / "mix_copy.wav"
        assert clone.tir == 4
        assert clone.fs == mix.fs
        assert not clone.rendered
        assert not clone.filename.exists()

    def test_copy_rendered(self, pair, tmp_path):
        mix = Mixture(pair[0], [pair[1]], filename=tmp_path / "mix.wav")
        mix.write()
        clone = mix.copy()

        assert clone.rendered
        for p in (clone.filename, clone.filename_t, clone.filename_i):
            assert p.is_file()
        assert clone.filename_t.read_bytes() == mix.filename_t.read_bytes()

    def test_copy_has_own_sources(self, pair, tmp_path):
        target, interferer = pair
        mix = Mixture(target, [interferer], filename=tmp_path / "mix.wav")
        mix.write()
        clone = mix.copy()

        assert clone.target is not target
        assert clone.interferers[0] is not interferer
        assert clone.target.parent is clone
        assert target.parent is mix

        clone.target.azimuth = 45
        assert not clone.rendered
        assert mix.rendered
        assert target.azimuth == 0


class TestMixtureSound:
    """Tests for playback of the three signals."""

    @pytest.mark.parametrize("method", ["sound", "sound_t", "sound_i"])
    def test_sound(self, pair, monkeypatch, method):
        played = []
        monkeypatch.setattr(
            "binaural_mixer.bss.mixture.replay",
            lambda samples, fs: played.append((samples.shape, fs)),
        )

        getattr(Mixture(pair[0], [pair[1]]), method)()

        assert played == [((FS, 2), FS)]
