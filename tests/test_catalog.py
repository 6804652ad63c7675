"""Tests for the voice and music catalogs."""

import json

import pytest

from sublmnl.catalog import MusicCatalog, Voice, VoiceCatalog
from sublmnl.models import MusicTrack


class TestVoiceCatalog:
    def test_builtin_voices_resolve(self):
        catalog = VoiceCatalog()
        assert catalog.get("aria").engine == "edge"
        assert catalog.get("rachel").engine == "elevenlabs"
        assert catalog.get("breeze").engine == "openai"
        assert catalog.get("unknown") is None

    @pytest.mark.parametrize("voice_id, api_voice", [
        ("breeze", "alloy"),
        ("cove", "echo"),
        ("ember", "fable"),
        ("juniper", "onyx"),
        ("arbor", "nova"),
        ("maple", "shimmer"),
        ("sol", "coral"),
        ("spruce", "verse"),
        ("vale", "ballad"),
    ])
    def test_openai_voices_map_to_api_names(self, voice_id, api_voice):
        assert VoiceCatalog().get(voice_id).provider_voice == api_voice

    def test_list_filters_by_language(self):
        voices = VoiceCatalog().list("it-IT")
        assert [v.id for v in voices] == ["isabella"]

    def test_register(self):
        catalog = VoiceCatalog([])
        catalog.register(Voice("calm", "edge", "en-US-GuyNeural", "en-US"))
        assert catalog.get("calm").provider_voice == "en-US-GuyNeural"
        assert catalog.get("calm").to_dict()["label"] == "Calm"


class TestMusicCatalog:
    def test_from_json_resolves_relative_paths(self, tmp_path):
        catalog_file = tmp_path / "music.json"
        catalog_file.write_text(json.dumps([
            {"id": "rain", "name": "Rain", "path": "tracks/rain.mp3", "duration": 180},
            {"id": "ocean", "path": "/srv/music/ocean.mp3"},
        ]))

        catalog = MusicCatalog.from_json(catalog_file)

        assert catalog.get("rain").path == tmp_path / "tracks" / "rain.mp3"
        assert catalog.get("rain").duration == 180
        assert catalog.get("ocean").name == "ocean"
        assert catalog.get("ocean").duration is None

    def test_duration_probed_once(self, tmp_path):
        catalog = MusicCatalog([MusicTrack(id="x", name="X", path=tmp_path / "x.mp3")])
        probes = []

        def probe(path):
            probes.append(path)
            return 95.5

        first = catalog.with_duration("x", probe)
        second = catalog.with_duration("x", probe)

        assert first.duration == 95.5
        assert second.duration == 95.5
        assert len(probes) == 1

    def test_known_duration_is_not_probed(self, tmp_path):
        catalog = MusicCatalog([MusicTrack(id="x", name="X", path=tmp_path / "x.mp3", duration=60.0)])
        track = catalog.with_duration("x", lambda p: pytest.fail("should not probe"))
        assert track.duration == 60.0

    def test_unknown_track(self):
        with pytest.raises(KeyError):
            MusicCatalog().with_duration("nope", lambda p: 1.0)
