"""Tests for the audio record handed to persistence."""

from pathlib import Path

from sublmnl.catalog import VoiceCatalog
from sublmnl.models import JobResult, MusicTrack, SynthesisRequest
from sublmnl.records import build_audio_record


def test_record_defaults_name_from_track():
    request = SynthesisRequest(
        affirmations=["I am calm"], voice_id="aria", music_track_id="ocean", volume=0.25,
    )
    track = MusicTrack(id="ocean", name="Ocean Waves", path=Path("/music/ocean.mp3"))
    result = JobResult(
        job_id="abcdef012345",
        final_path=Path("/data/abcdef012345/final_audio.mp3"),
        music_duration=200.0,
        fragment_count=1,
    )

    record = build_audio_record(request, track, VoiceCatalog().get("aria"), result)

    assert record["name"] == "Ocean Waves Affirmations"
    assert record["affirmations"] == ["I am calm"]
    assert record["musicTrack"]["durationLabel"] == "3:20"
    assert record["voiceType"] == "aria"
    assert record["volume"] == 0.25
    assert record["audioUrl"] == "/data/abcdef012345/final_audio.mp3"


def test_record_keeps_custom_name():
    request = SynthesisRequest(
        affirmations=["a"], voice_id="aria", music_track_id="ocean", name="Morning",
    )
    track = MusicTrack(id="ocean", name="Ocean Waves", path=Path("/m.mp3"))
    result = JobResult("abcdef012345", Path("/x.mp3"), 10.0, 1)

    record = build_audio_record(request, track, VoiceCatalog().get("aria"), result, audio_url="/dl/1")

    assert record["name"] == "Morning"
    assert record["audioUrl"] == "/dl/1"
