"""FastAPI web interface for sublmnl.

Requests are validated inline and then queued on a bounded worker pool;
clients poll /api/jobs/{id} or stream /api/progress/{id} until the job is
done, then fetch /api/download/{id}.
"""

import asyncio
import json
import logging
import shutil
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from sublmnl import __version__
from sublmnl.catalog import MusicCatalog, VoiceCatalog
from sublmnl.errors import PipelineError, ValidationError
from sublmnl.models import (
    DEFAULT_LANGUAGE,
    DEFAULT_VOLUME,
    Job,
    PipelineConfig,
    SynthesisRequest,
)
from sublmnl.orchestrator import PipelineOrchestrator
from sublmnl.records import build_audio_record
from sublmnl.validation import validate_request
from sublmnl.web.jobs import JobManager

logger = logging.getLogger(__name__)

FINAL_NAME = "final_audio.mp3"


# --- Pydantic models ---

class AudioRequest(BaseModel):
    affirmations: list[str] = Field(default_factory=list)
    music_track_id: str
    voice: str = "aria"
    language: str = DEFAULT_LANGUAGE
    pitch: float = 0.0
    speed: float = 0.0
    volume: float = DEFAULT_VOLUME
    name: Optional[str] = None

    def to_synthesis_request(self) -> SynthesisRequest:
        return SynthesisRequest(
            affirmations=self.affirmations,
            voice_id=self.voice,
            music_track_id=self.music_track_id,
            language=self.language,
            pitch=self.pitch,
            speed=self.speed,
            volume=self.volume,
            name=self.name,
        )


# --- App factory ---

def _default_orchestrator(data_path: Path) -> PipelineOrchestrator:
    from sublmnl.tts import import_engines
    import_engines()

    catalog_path = data_path / "music.json"
    music = MusicCatalog.from_json(catalog_path) if catalog_path.exists() else MusicCatalog()
    config = PipelineConfig(work_root=data_path / "work")
    return PipelineOrchestrator(VoiceCatalog(), music, config)


def create_app(
    data_dir: str = "./data",
    orchestrator: Optional[PipelineOrchestrator] = None,
    workers: int = 2,
    max_finished_jobs: int = 100,
) -> FastAPI:
    data_path = Path(data_dir).resolve()
    data_path.mkdir(parents=True, exist_ok=True)

    if orchestrator is None:
        orchestrator = _default_orchestrator(data_path)

    jobs = JobManager(max_finished=max_finished_jobs)
    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="job")

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        logger.info("Arresto: attesa dei job in corso")
        pool.shutdown(wait=True, cancel_futures=True)

    app = FastAPI(title="sublmnl", version=__version__, lifespan=lifespan)
    app.state.jobs = jobs
    app.state.pool = pool

    def prune_finished() -> None:
        for old in jobs.prune():
            shutil.rmtree(data_path / old["job_id"], ignore_errors=True)
            logger.debug("Job %s rimosso", old["job_id"])

    def run_job(job: Job, output_path: Path) -> None:
        try:
            _run_job(job, output_path)
        finally:
            prune_finished()

    def _run_job(job: Job, output_path: Path) -> None:
        job_id = job.job_id
        jobs.update_status(job_id, "running")

        def on_progress(current, total, label):
            jobs.update_progress(job_id, current, total, label)

        try:
            result = orchestrator.execute(
                job,
                output_path,
                on_progress=on_progress,
                on_state=lambda j: jobs.update_state(job_id, j.state.value),
            )
        except PipelineError as e:
            logger.error("Generazione fallita per job %s: %s", job_id, e)
            jobs.set_error(job_id, str(e.cause), failed_stage=e.stage.value)
            jobs.update_status(job_id, "error")
            return
        except Exception as e:
            logger.exception("Generazione fallita per job %s", job_id)
            jobs.set_error(job_id, str(e))
            jobs.update_status(job_id, "error")
            return

        track = orchestrator.music.get(job.request.music_track_id)
        voice = orchestrator.voices.get(job.request.voice_id)
        record = build_audio_record(
            job.request, track, voice, result,
            audio_url=f"/api/download/{job_id}",
        )
        jobs.set_result(job_id, str(result.final_path), record)
        jobs.update_status(job_id, "done")

    # --- Routes ---

    @app.get("/api/engines")
    async def list_engines_route():
        from sublmnl.tts import list_engines
        return {"engines": list_engines()}

    @app.get("/api/voices")
    async def list_voices_route(language: Optional[str] = None):
        return {"voices": [v.to_dict() for v in orchestrator.voices.list(language)]}

    @app.get("/api/music")
    async def list_music_route():
        return {"tracks": [
            {"id": t.id, "name": t.name, "duration": t.duration}
            for t in orchestrator.music.list()
        ]}

    @app.post("/api/audio", status_code=202)
    async def create_audio(req: AudioRequest):
        request = req.to_synthesis_request()
        try:
            voice, track = validate_request(request, orchestrator.voices, orchestrator.music)
        except ValidationError as e:
            raise HTTPException(400, detail={"field": e.field, "message": e.message})

        job = orchestrator.create_job(request)
        jobs.create(
            job.job_id,
            name=request.name or f"{track.name} Affirmations",
            music_track_id=track.id,
            voice_id=voice.id,
            total_affirmations=len(request.affirmations),
        )
        output_path = data_path / job.job_id / FINAL_NAME
        pool.submit(run_job, job, output_path)

        return {"job_id": job.job_id, "status": "queued"}

    @app.get("/api/jobs/{job_id}")
    async def get_job_status(job_id: str):
        job = jobs.get(job_id)
        if not job:
            raise HTTPException(404, detail="Job non trovato")
        # Don't expose server paths
        return {k: v for k, v in job.items() if k != "output_path"}

    @app.get("/api/progress/{job_id}")
    async def progress_stream(job_id: str):
        job = jobs.get(job_id)
        if not job:
            raise HTTPException(404, detail="Job non trovato")

        async def event_generator():
            last = None
            while True:
                job = jobs.get(job_id)
                if not job:
                    break

                status = job["status"]
                snapshot = (job["state"], job["current_step"])

                if snapshot != last or status in ("done", "error"):
                    last = snapshot
                    yield {
                        "event": "progress",
                        "data": json.dumps({
                            "status": status,
                            "state": job["state"],
                            "current_step": job["current_step"],
                            "total_steps": job["total_steps"],
                            "step_label": job["step_label"],
                        }),
                    }

                if status == "done":
                    yield {
                        "event": "done",
                        "data": json.dumps({"status": "done"}),
                    }
                    break

                if status == "error":
                    yield {
                        "event": "error",
                        "data": json.dumps({
                            "status": "error",
                            "failed_stage": job.get("failed_stage"),
                            "error": job.get("error") or "Errore sconosciuto",
                        }),
                    }
                    break

                await asyncio.sleep(0.5)

        return EventSourceResponse(event_generator())

    @app.get("/api/download/{job_id}")
    async def download(job_id: str):
        job = jobs.get(job_id)
        if not job or job["status"] != "done":
            raise HTTPException(404, detail="File non pronto")

        output = Path(job["output_path"])
        if not output.exists():
            raise HTTPException(404, detail="File non trovato")

        filename = f"{job.get('name') or 'subliminal'}.mp3"
        return FileResponse(
            str(output),
            filename=filename,
            media_type="audio/mpeg",
        )

    return app


# --- CLI entry point ---

def main():
    """Run the sublmnl web server."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="sublmnl web interface")
    parser.add_argument("--host", default="127.0.0.1", help="Host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    parser.add_argument("--data-dir", default="./data", help="Directory per catalogo musica e output")
    parser.add_argument("--workers", type=int, default=2, help="Job eseguiti in parallelo (default: 2)")
    parser.add_argument("--keep-jobs", type=int, default=100, help="Job conclusi conservati (default: 100)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    app = create_app(data_dir=args.data_dir, workers=args.workers, max_finished_jobs=args.keep_jobs)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
