"""Shared fakes: a simulated ffmpeg/ffprobe executor and a scripted speech provider.

Fake audio files are small JSON documents {"duration": seconds, "gain": linear,
"texts": [...]} so tests can check what each stage did to its input.
"""

import json
import re
import threading
from pathlib import Path
from typing import Optional

import pytest

from sublmnl.catalog import MusicCatalog, VoiceCatalog
from sublmnl.audio.executor import CommandResult
from sublmnl.errors import ExecutionError
from sublmnl.models import MusicTrack, PipelineConfig, VoiceParams
from sublmnl.orchestrator import PipelineOrchestrator
from sublmnl.tts.base import SpeechProvider

FRAGMENT_SECONDS = 2.0


def write_audio(path: Path, duration: float, gain: float = 1.0, texts=()) -> None:
    path.write_text(json.dumps({"duration": duration, "gain": gain, "texts": list(texts)}))


def read_audio(path: Path) -> dict:
    return json.loads(Path(path).read_text())


class FakeExecutor:
    """Records invocations and simulates the ffmpeg filters the pipeline uses."""

    def __init__(self, fail_on: Optional[str] = None):
        self.calls: list[tuple[str, list[str]]] = []
        self.fail_on = fail_on

    def run(self, program, args, timeout=None):
        args = list(args)
        self.calls.append((program, args))

        if self.fail_on and any(self.fail_on in a for a in args):
            raise ExecutionError(program, args, 1, "Invalid data found when processing input")

        if program == "ffprobe":
            data = read_audio(Path(args[-1]))
            return CommandResult(json.dumps({"format": {"duration": str(data["duration"])}}), 0)

        self._simulate(args)
        return CommandResult("", 0)

    def ffmpeg_calls(self) -> list[list[str]]:
        return [args for program, args in self.calls if program == "ffmpeg"]

    def _simulate(self, args: list[str]) -> None:
        output = Path(args[-1])
        inputs = [Path(args[i + 1]) for i, a in enumerate(args) if a == "-i"]

        if "concat" in args:
            sources = _read_concat_list(inputs[0])
            parts = [read_audio(p) for p in sources]
            write_audio(
                output,
                sum(p["duration"] for p in parts),
                parts[0]["gain"],
                [t for p in parts for t in p["texts"]],
            )
        elif "-stream_loop" in args:
            src = read_audio(inputs[0])
            write_audio(output, float(args[args.index("-t") + 1]), src["gain"], src["texts"])
        elif "-filter_complex" in args:
            parts = [read_audio(p) for p in inputs]
            write_audio(output, max(p["duration"] for p in parts), 1.0)
        else:
            src = read_audio(inputs[0])
            graph = args[args.index("-filter:a") + 1]
            duration, gain = src["duration"], src["gain"]
            for f in graph.split(","):
                key, value = f.split("=")
                if key == "atempo":
                    duration /= float(value)
                elif key == "volume":
                    gain *= float(value)
            write_audio(output, duration, gain, src["texts"])


def _read_concat_list(path: Path) -> list[Path]:
    entries = []
    for line in path.read_text().splitlines():
        m = re.match(r"^file '(.*)'$", line)
        if m:
            entries.append(Path(m.group(1).replace("'\\''", "'")))
    return entries


class FakeProvider(SpeechProvider):
    """Writes a fake fragment per text; texts listed in `fail` raise instead."""

    def __init__(self, fail: tuple = (), empty: tuple = ()):
        self.fail = fail
        self.empty = empty
        self.calls: list[tuple[str, VoiceParams]] = []
        self._lock = threading.Lock()

    def initialize(self) -> None:
        pass

    def synthesize(self, text, output_path, voice, timeout=None):
        with self._lock:
            self.calls.append((text, voice))
        if text in self.fail:
            raise ConnectionError("HTTP 503 Service Unavailable")
        if text in self.empty:
            output_path.write_bytes(b"")
            return
        write_audio(output_path, FRAGMENT_SECONDS, 1.0, [text])

    def list_voices(self, language=None):
        return []

    @property
    def name(self) -> str:
        return "Fake"

    @property
    def output_format(self) -> str:
        return "mp3"


@pytest.fixture
def music_file(tmp_path):
    path = tmp_path / "music" / "ocean.mp3"
    path.parent.mkdir()
    write_audio(path, 200.0)
    return path


@pytest.fixture
def music_catalog(music_file):
    return MusicCatalog([MusicTrack(id="ocean", name="Ocean Waves", path=music_file)])


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(work_root=tmp_path / "work", max_workers=4)


@pytest.fixture
def make_orchestrator(music_catalog, config):
    def factory(provider=None, executor=None, **kwargs):
        provider = provider or FakeProvider()
        executor = executor or FakeExecutor()
        orch = PipelineOrchestrator(
            VoiceCatalog(),
            kwargs.pop("music", music_catalog),
            kwargs.pop("config", config),
            executor=executor,
            providers=lambda engine: provider,
            ffmpeg="ffmpeg",
            ffprobe="ffprobe",
        )
        return orch, provider, executor
    return factory
