"""In-memory job tracking for web synthesis jobs."""

import threading
from typing import Optional

FINISHED = ("done", "error")


class JobManager:
    """Thread-safe in-memory job store.

    Status: queued → running → done | error. While running, `state` follows
    the pipeline state (synthesizing, concatenating, ...). Only the newest
    `max_finished` done/error jobs are retained.
    """

    def __init__(self, max_finished: int = 100):
        self.max_finished = max_finished
        self._jobs: dict[str, dict] = {}
        self._lock = threading.Lock()

    def create(
        self,
        job_id: str,
        *,
        name: str,
        music_track_id: str,
        voice_id: str,
        total_affirmations: int,
    ) -> dict:
        with self._lock:
            job = {
                "job_id": job_id,
                "status": "queued",
                "state": "validating",
                "name": name,
                "music_track_id": music_track_id,
                "voice_id": voice_id,
                "total_affirmations": total_affirmations,
                "current_step": 0,
                "total_steps": 0,
                "step_label": "",
                "output_path": None,
                "record": None,
                "failed_stage": None,
                "error": None,
            }
            self._jobs[job_id] = job
            return dict(job)

    def get(self, job_id: str) -> Optional[dict]:
        with self._lock:
            job = self._jobs.get(job_id)
            return dict(job) if job else None

    def update_status(self, job_id: str, status: str) -> None:
        with self._lock:
            if job_id in self._jobs:
                self._jobs[job_id]["status"] = status

    def update_state(self, job_id: str, state: str) -> None:
        with self._lock:
            if job_id in self._jobs:
                self._jobs[job_id]["state"] = state

    def update_progress(self, job_id: str, current: int, total: int, label: str) -> None:
        with self._lock:
            if job_id in self._jobs:
                self._jobs[job_id]["current_step"] = current
                self._jobs[job_id]["total_steps"] = total
                self._jobs[job_id]["step_label"] = label

    def set_result(self, job_id: str, path: str, record: dict) -> None:
        with self._lock:
            if job_id in self._jobs:
                self._jobs[job_id]["output_path"] = path
                self._jobs[job_id]["record"] = record

    def set_error(self, job_id: str, error: str, failed_stage: Optional[str] = None) -> None:
        with self._lock:
            if job_id in self._jobs:
                self._jobs[job_id]["error"] = error
                self._jobs[job_id]["failed_stage"] = failed_stage

    def prune(self) -> list[dict]:
        """Drop the oldest finished jobs beyond `max_finished`; return them."""
        with self._lock:
            finished = [j for j in self._jobs.values() if j["status"] in FINISHED]
            evicted = finished[:max(0, len(finished) - self.max_finished)]
            for job in evicted:
                del self._jobs[job["job_id"]]
            return evicted
