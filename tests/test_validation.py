"""Tests for request validation."""

import pytest

from sublmnl.catalog import MusicCatalog, VoiceCatalog
from sublmnl.errors import ValidationError
from sublmnl.models import MusicTrack, PipelineConfig, SynthesisRequest
from sublmnl.validation import validate_config, validate_request


def _request(**kwargs):
    base = dict(
        affirmations=["I am calm", "I am confident"],
        voice_id="aria",
        music_track_id="ocean",
    )
    base.update(kwargs)
    return SynthesisRequest(**base)


class TestValidateRequest:
    def test_valid_request_resolves_voice_and_track(self, music_catalog):
        voice, track = validate_request(_request(), VoiceCatalog(), music_catalog)
        assert voice.provider_voice == "en-US-AriaNeural"
        assert track.name == "Ocean Waves"

    @pytest.mark.parametrize("kwargs, field", [
        ({"affirmations": []}, "affirmations"),
        ({"affirmations": ["ok", "   "]}, "affirmations"),
        ({"volume": -0.1}, "volume"),
        ({"volume": 1.01}, "volume"),
        ({"pitch": 11}, "pitch"),
        ({"speed": -0.9}, "speed"),
        ({"language": "english please"}, "language"),
        ({"voice_id": "nobody"}, "voice_id"),
        ({"music_track_id": "missing"}, "music_track_id"),
    ])
    def test_rejects_invalid_fields(self, music_catalog, kwargs, field):
        with pytest.raises(ValidationError) as exc_info:
            validate_request(_request(**kwargs), VoiceCatalog(), music_catalog)
        assert exc_info.value.field == field

    @pytest.mark.parametrize("volume", [0.0, 1.0])
    def test_volume_bounds_are_inclusive(self, music_catalog, volume):
        validate_request(_request(volume=volume), VoiceCatalog(), music_catalog)

    @pytest.mark.parametrize("duration", [0.0, -12.0, float("inf"), float("nan")])
    def test_rejects_unusable_track_duration(self, music_file, duration):
        music = MusicCatalog([MusicTrack(id="ocean", name="Ocean", path=music_file, duration=duration)])
        with pytest.raises(ValidationError) as exc_info:
            validate_request(_request(), VoiceCatalog(), music)
        assert exc_info.value.field == "music_track_id"

    def test_unknown_track_duration_is_accepted(self, music_catalog):
        _, track = validate_request(_request(), VoiceCatalog(), music_catalog)
        assert track.duration is None

    def test_validation_error_is_a_value_error(self, music_catalog):
        with pytest.raises(ValueError):
            validate_request(_request(volume=2), VoiceCatalog(), music_catalog)


class TestValidateConfig:
    def test_defaults_are_valid(self):
        validate_config(PipelineConfig())

    @pytest.mark.parametrize("kwargs", [
        {"tempo": 0},
        {"tempo": float("inf")},
        {"tempo": float("nan")},
        {"max_workers": 0},
        {"tts_retries": -1},
    ])
    def test_rejects_bad_config(self, kwargs):
        with pytest.raises(ValidationError):
            validate_config(PipelineConfig(**kwargs))
