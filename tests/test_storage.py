"""Tests for per-job working directories."""

from unittest.mock import patch

import pytest

from sublmnl.errors import StorageError
from sublmnl.storage import ArtifactStore, job_workspace, new_job_id


class TestArtifactStore:
    def test_open_creates_unique_directory(self, tmp_path):
        a = ArtifactStore(tmp_path)
        b = ArtifactStore(tmp_path)

        dir_a = a.open(new_job_id())
        dir_b = b.open(new_job_id())

        assert dir_a.is_dir()
        assert dir_b.is_dir()
        assert dir_a != dir_b
        assert dir_a.name.startswith("sublmnl-")

    def test_same_job_id_cannot_be_opened_twice(self, tmp_path):
        ArtifactStore(tmp_path).open("0123456789ab")
        with pytest.raises(StorageError):
            ArtifactStore(tmp_path).open("0123456789ab")

    @pytest.mark.parametrize("job_id", ["../escape", "My Track", "", "abc"])
    def test_rejects_non_generated_ids(self, tmp_path, job_id):
        with pytest.raises(StorageError):
            ArtifactStore(tmp_path).open(job_id)

    def test_path_for_stays_inside_work_dir(self, tmp_path):
        store = ArtifactStore(tmp_path)
        work_dir = store.open(new_job_id())

        assert store.path_for("looped_affirmations.mp3") == work_dir / "looped_affirmations.mp3"
        assert store.fragment_path(7, "mp3") == work_dir / "fragment_0007.mp3"
        with pytest.raises(StorageError):
            store.path_for("../outside.mp3")

    def test_path_for_requires_open(self, tmp_path):
        with pytest.raises(StorageError):
            ArtifactStore(tmp_path).path_for("x.mp3")

    def test_open_failure_is_storage_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(StorageError):
            ArtifactStore(blocker).open(new_job_id())

    def test_cleanup_removes_everything(self, tmp_path):
        store = ArtifactStore(tmp_path)
        work_dir = store.open(new_job_id())
        store.path_for("a.mp3").write_bytes(b"data")

        store.cleanup()

        assert not work_dir.exists()
        store.cleanup()  # idempotent


class TestJobWorkspace:
    def test_reclaimed_on_success(self, tmp_path):
        with job_workspace(tmp_path, new_job_id()) as store:
            work_dir = store.work_dir
            store.path_for("x.mp3").write_bytes(b"1")
        assert not work_dir.exists()

    def test_reclaimed_on_failure(self, tmp_path):
        with pytest.raises(RuntimeError):
            with job_workspace(tmp_path, new_job_id()) as store:
                work_dir = store.work_dir
                raise RuntimeError("boom")
        assert not work_dir.exists()

    def test_kept_on_failure_when_asked(self, tmp_path):
        with pytest.raises(RuntimeError):
            with job_workspace(tmp_path, new_job_id(), keep_on_failure=True) as store:
                work_dir = store.work_dir
                raise RuntimeError("boom")
        assert work_dir.exists()

    def test_keep_disables_cleanup(self, tmp_path):
        with job_workspace(tmp_path, new_job_id(), keep=True) as store:
            work_dir = store.work_dir
        assert work_dir.exists()

    def test_cleanup_error_after_success_is_not_raised(self, tmp_path):
        failing = StorageError(tmp_path, "permesso negato")
        with patch.object(ArtifactStore, "cleanup", side_effect=failing):
            with job_workspace(tmp_path, new_job_id()) as store:
                store.path_for("x.mp3").write_bytes(b"1")
