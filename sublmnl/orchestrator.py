"""Orchestrator - runs the full affirmations → speech → transcode chain → mix pipeline."""

import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

from sublmnl.audio import transcode
from sublmnl.audio.audio_utils import get_ffmpeg, get_ffprobe, probe_duration
from sublmnl.audio.executor import CommandExecutor
from sublmnl.audio.transcode import Transcoder
from sublmnl.catalog import MusicCatalog, VoiceCatalog
from sublmnl.errors import InvalidTransitionError, PipelineError, StorageError
from sublmnl.models import (
    CleanupPolicy,
    Job,
    JobResult,
    PipelineConfig,
    PipelineStage,
    PipelineState,
    SynthesisRequest,
    VoiceParams,
)
from sublmnl.storage import job_workspace, new_job_id
from sublmnl.synthesis import SpeechSynthesisStage
from sublmnl.tts import get_engine
from sublmnl.tts.base import SpeechProvider
from sublmnl.validation import validate_config, validate_request

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]
StateCallback = Callable[[Job], None]
ProviderFactory = Callable[[str], SpeechProvider]

SYNTHESIZE = "synthesize"

# Transcode sub-stage run while the job is in each state
STAGE_FOR_STATE = {
    PipelineState.CONCATENATING: transcode.CONCATENATE,
    PipelineState.TEMPO_SHIFTING: transcode.TEMPO_SHIFT,
    PipelineState.VOLUME_ADJUSTING: transcode.VOLUME,
    PipelineState.LOOPING: transcode.LOOP,
    PipelineState.MIXING: transcode.MIX,
}


class PipelineOrchestrator:
    """Runs one synthesis job at a time, synchronously, to completion or failure.

    Nothing is retried here: a failed stage fails the job, and the caller
    decides whether to resubmit.
    """

    def __init__(
        self,
        voices: VoiceCatalog,
        music: MusicCatalog,
        config: Optional[PipelineConfig] = None,
        executor: Optional[CommandExecutor] = None,
        providers: ProviderFactory = get_engine,
        ffmpeg: Optional[str] = None,
        ffprobe: Optional[str] = None,
    ):
        self.voices = voices
        self.music = music
        self.config = config or PipelineConfig()
        self.executor = executor or CommandExecutor()
        self.providers = providers
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self._provider_cache: dict[str, SpeechProvider] = {}

    def create_job(self, request: SynthesisRequest, job_id: Optional[str] = None) -> Job:
        return Job(job_id=job_id or new_job_id(), request=request)

    def run(
        self,
        request: SynthesisRequest,
        output_path: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> JobResult:
        """Validate and execute a request in one call."""
        return self.execute(self.create_job(request), output_path, on_progress=on_progress)

    def execute(
        self,
        job: Job,
        output_path: Path,
        on_progress: Optional[ProgressCallback] = None,
        on_state: Optional[StateCallback] = None,
    ) -> JobResult:
        """Drive a job through every state and publish the final file to `output_path`.

        Raises:
            ValidationError: The request was rejected; nothing external ran.
            PipelineError: A stage failed; `stage` names it, `cause` holds the error.
            InvalidTransitionError: The job has already been executed.
        """
        if job.state != PipelineState.VALIDATING:
            raise InvalidTransitionError(
                f"Job {job.job_id}: già eseguito (stato {job.state.value})"
            )

        notify = on_state or (lambda _job: None)
        notify(job)

        try:
            validate_config(self.config)
            voice, track = validate_request(job.request, self.voices, self.music)
        except Exception as e:
            job.fail(e)
            notify(job)
            raise

        steps = len(job.request.affirmations) + len(transcode.STAGE_ORDER)
        done = 0

        def step(label: str) -> None:
            nonlocal done
            done += 1
            if on_progress:
                on_progress(done, steps, label)

        policy = self.config.cleanup
        try:
            job.advance(PipelineState.SYNTHESIZING)
            notify(job)
            with job_workspace(
                self.config.work_root,
                job.job_id,
                keep_on_failure=policy == CleanupPolicy.ON_SUCCESS,
                keep=policy == CleanupPolicy.NEVER,
            ) as store:
                logger.info("Job %s: %d affermazioni, voce '%s', traccia '%s'",
                            job.job_id, len(job.request.affirmations), voice.id, track.name)

                # 1. Speech fragments
                stage = self._begin(job, SYNTHESIZE, [], None)
                provider = self._provider(voice.engine)
                synthesis = SpeechSynthesisStage(
                    provider,
                    max_workers=self.config.max_workers,
                    timeout=self.config.tts_timeout,
                    retries=self.config.tts_retries,
                )
                params = VoiceParams(
                    voice=voice.provider_voice,
                    language=job.request.language,
                    pitch=job.request.pitch,
                    speed=job.request.speed_multiplier,
                )
                job.fragments = self._guarded(stage, lambda: synthesis.synthesize_all(
                    job.request.affirmations, params, store,
                    on_fragment=lambda f: step(f"Affermazione {f.index + 1}"),
                ))

                # 2. Transcode chain, each stage consuming the previous output
                transcoder = Transcoder(
                    self.executor,
                    ffmpeg=self.ffmpeg or get_ffmpeg(),
                    timeout=self.config.command_timeout,
                )
                fmt = self.config.output_format

                def out(state: PipelineState) -> Path:
                    return store.path_for(f"{transcode.STAGE_OUTPUTS[STAGE_FOR_STATE[state]]}.{fmt}")

                fragment_paths = [f.path for f in job.fragments]
                self._require_fragments(job, fragment_paths)

                combined = self._transition(
                    job, notify, PipelineState.CONCATENATING, fragment_paths,
                    out(PipelineState.CONCATENATING),
                    lambda o: transcoder.concatenate(fragment_paths, o),
                )
                step("Concatenazione")

                sped_up = self._transition(
                    job, notify, PipelineState.TEMPO_SHIFTING, [combined],
                    out(PipelineState.TEMPO_SHIFTING),
                    lambda o: transcoder.tempo_shift(combined, o, self.config.tempo),
                )
                step("Tempo")

                quieter = self._transition(
                    job, notify, PipelineState.VOLUME_ADJUSTING, [sped_up],
                    out(PipelineState.VOLUME_ADJUSTING),
                    lambda o: transcoder.adjust_volume(sped_up, o, job.request.volume),
                )
                step("Volume")

                duration = None

                def loop(o: Path) -> Path:
                    nonlocal duration
                    duration = self.music.with_duration(track.id, self._probe).duration
                    return transcoder.loop_to_duration(quieter, o, duration)

                looped = self._transition(
                    job, notify, PipelineState.LOOPING, [quieter],
                    out(PipelineState.LOOPING), loop,
                )
                step("Loop")

                mixed = self._transition(
                    job, notify, PipelineState.MIXING, [track.path, looped],
                    out(PipelineState.MIXING),
                    lambda o: transcoder.mix(track.path, looped, o),
                )
                final_path = self._publish(mixed, Path(output_path))
                step("Mix")

            job.result = JobResult(
                job_id=job.job_id,
                final_path=final_path,
                music_duration=duration,
                fragment_count=len(job.fragments),
            )
            job.advance(PipelineState.COMPLETED)
            notify(job)
            logger.info("Job %s completato: %s", job.job_id, final_path)
            return job.result

        except Exception as e:
            if not job.state.is_terminal:
                job.fail(e)
            failed = job.failed_stage or job.state
            logger.error("Job %s fallito in %s: %s", job.job_id, failed.value, e)
            notify(job)
            if isinstance(e, InvalidTransitionError):
                raise
            raise PipelineError(job.job_id, failed, e) from e

    def _transition(self, job, notify, state, inputs, output, action) -> Path:
        job.advance(state)
        notify(job)
        stage = self._begin(job, STAGE_FOR_STATE[state], inputs, output)
        logger.info("Job %s: %s...", job.job_id, state.value)
        return self._guarded(stage, lambda: action(output))

    @staticmethod
    def _begin(job: Job, name: str, inputs, output) -> PipelineStage:
        stage = PipelineStage(name=name, inputs=list(inputs), output=output)
        job.stages.append(stage)
        stage.start()
        return stage

    @staticmethod
    def _guarded(stage: PipelineStage, action):
        try:
            result = action()
        except Exception as e:
            stage.fail(str(e))
            raise
        stage.succeed()
        return result

    @staticmethod
    def _require_fragments(job: Job, paths: list[Path]) -> None:
        expected = len(job.request.affirmations)
        if len(paths) != expected or not all(p is not None and p.exists() for p in paths):
            raise StorageError(paths, f"attesi {expected} frammenti prima della concatenazione")

    def _provider(self, engine: str) -> SpeechProvider:
        if engine not in self._provider_cache:
            provider = self.providers(engine)
            provider.initialize()
            self._provider_cache[engine] = provider
        return self._provider_cache[engine]

    def _probe(self, path: Path) -> float:
        return probe_duration(
            path,
            self.executor,
            ffprobe=self.ffprobe or get_ffprobe(),
            timeout=self.config.command_timeout,
        )

    @staticmethod
    def _publish(mixed: Path, output_path: Path) -> Path:
        """Move the final mix out of the job directory before it is reclaimed."""
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(mixed), str(output_path))
        except OSError as e:
            raise StorageError(output_path, f"impossibile pubblicare l'audio finale: {e}") from e
        return output_path
