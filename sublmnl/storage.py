"""Per-job working directories for intermediate audio files."""

import logging
import re
import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sublmnl.errors import StorageError

logger = logging.getLogger(__name__)

JOB_DIR_PREFIX = "sublmnl-"
_JOB_ID_RE = re.compile(r"^[0-9a-f]{12,32}$")


def new_job_id() -> str:
    """Generate a fresh job identifier."""
    return uuid.uuid4().hex[:12]


class ArtifactStore:
    """Owns one job's working directory under `root`.

    The directory name is derived from a generated job id only, never from
    user input, so two jobs can never share a directory.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.job_id: Optional[str] = None
        self.work_dir: Optional[Path] = None

    def open(self, job_id: str) -> Path:
        if not _JOB_ID_RE.match(job_id):
            raise StorageError(job_id, "identificativo job non valido")
        if self.work_dir is not None:
            raise StorageError(self.work_dir, "directory di lavoro già aperta")

        work_dir = self.root / f"{JOB_DIR_PREFIX}{job_id}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            work_dir.mkdir()
        except OSError as e:
            raise StorageError(work_dir, f"impossibile creare la directory: {e}") from e

        self.job_id = job_id
        self.work_dir = work_dir
        logger.debug("Directory di lavoro creata: %s", work_dir)
        return work_dir

    def path_for(self, name: str) -> Path:
        """Absolute path of a stage output inside the working directory."""
        if self.work_dir is None:
            raise StorageError(self.root, "directory di lavoro non aperta")
        if Path(name).name != name:
            raise StorageError(name, "il nome deve essere un semplice nome di file")
        return self.work_dir / name

    def fragment_path(self, index: int, ext: str) -> Path:
        return self.path_for(f"fragment_{index:04d}.{ext}")

    def cleanup(self) -> None:
        if self.work_dir is None:
            return
        try:
            shutil.rmtree(self.work_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(self.work_dir, f"impossibile rimuovere la directory: {e}") from e
        logger.debug("Directory di lavoro rimossa: %s", self.work_dir)
        self.work_dir = None


@contextmanager
def job_workspace(root: Path, job_id: str, keep_on_failure: bool = False,
                  keep: bool = False) -> Iterator[ArtifactStore]:
    """Open a job directory and reclaim it when the block exits.

    With `keep_on_failure`, the directory survives an exception so the
    intermediate files can be inspected; `keep` disables cleanup entirely.
    """
    store = ArtifactStore(root)
    store.open(job_id)
    try:
        yield store
    except BaseException:
        if keep or keep_on_failure:
            logger.info("Directory di lavoro conservata per diagnosi: %s", store.work_dir)
        else:
            _cleanup_quietly(store)
        raise
    else:
        if not keep:
            _cleanup_quietly(store)


def _cleanup_quietly(store: ArtifactStore) -> None:
    # Either a failure is already propagating or the job output is already published.
    try:
        store.cleanup()
    except StorageError as e:
        logger.warning("Pulizia fallita: %s", e)
