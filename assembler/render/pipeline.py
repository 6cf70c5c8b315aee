"""
Render pipeline and job orchestration.

This module runs one render job end to end:
1. Validate the request
2. Admit the job (bounded number of concurrent renders)
3. Download scene clips, narration, music and captions
4. Normalize every scene clip to its exact duration
5. Build the audio mix and caption overlay, run the final encode
6. Upload the result to storage
7. Persist the render log, on success and on failure

Every stage error propagates to ``RenderOrchestrator.submit``, which is the
only place that catches it. The admission slot and the workspace are scoped
resources released on every exit path.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

from assembler.config import get_settings
from assembler.exceptions import AssemblerError, RenderValidationError, ServerBusyError, TranscodeError
from assembler.render.assembly import AssemblyEngine
from assembler.render.audio_mixer import AudioMixer
from assembler.render.captions import build_caption_filter
from assembler.render.ffmpeg_runner import FFmpegRunner
from assembler.render.normalizer import DurationNormalizer, NormalizedClip
from assembler.render.render_log import RenderLog, RenderLogStore
from assembler.render.workspace import Workspace, WorkspaceManager
from assembler.schemas.render import RenderRequest
from assembler.services.asset_downloader import AssetDownloader, DownloadRequest
from assembler.services.storage_service import StorageService, get_storage_service

logger = logging.getLogger(__name__)


# ============================================================================
# Job state
# ============================================================================


class RenderStage(Enum):
    """Render job state. Transitions are strictly sequential."""

    VALIDATING = "validating"
    DOWNLOADING = "downloading"
    PREPROCESSING = "preprocessing"
    ASSEMBLING = "assembling"
    UPLOADING = "uploading"
    COMPLETE = "complete"
    FAILED = "failed"


_STAGE_ORDER = [
    RenderStage.VALIDATING,
    RenderStage.DOWNLOADING,
    RenderStage.PREPROCESSING,
    RenderStage.ASSEMBLING,
    RenderStage.UPLOADING,
    RenderStage.COMPLETE,
]


@dataclass
class RenderJob:
    """One accepted request plus its identity and current stage."""

    generation_id: str
    request: RenderRequest
    stage: RenderStage = RenderStage.VALIDATING
    history: list[RenderStage] = field(default_factory=lambda: [RenderStage.VALIDATING])

    @property
    def is_terminal(self) -> bool:
        return self.stage in (RenderStage.COMPLETE, RenderStage.FAILED)

    def advance(self, stage: RenderStage) -> None:
        """Move to the next stage, or to FAILED from any non-terminal stage."""
        if self.is_terminal:
            raise RuntimeError(f"Job {self.generation_id} already {self.stage.value}")
        if stage != RenderStage.FAILED:
            expected = _STAGE_ORDER[_STAGE_ORDER.index(self.stage) + 1]
            if stage != expected:
                raise RuntimeError(
                    f"Invalid transition {self.stage.value} -> {stage.value} (expected {expected.value})"
                )
        self.stage = stage
        self.history.append(stage)


def validate_request(request: RenderRequest) -> None:
    """Reject requests missing scenes, narration or a destination key."""
    if not request.scenes:
        raise RenderValidationError("No scenes provided", field="scenes")
    if not request.narration_url:
        raise RenderValidationError("No narration_url provided", field="narration_url")
    if not request.b2_path:
        raise RenderValidationError("No b2_path provided", field="b2_path")


def derive_generation_id(request: RenderRequest, accepted_at: float) -> str:
    """Use the caller's generation id, else the acceptance time in milliseconds plus a random tag."""
    if request.generation_id:
        return request.generation_id
    return f"{int(accepted_at * 1000)}-{uuid.uuid4().hex[:6]}"


# ============================================================================
# Admission control
# ============================================================================


class AdmissionGate:
    """
    Non-blocking ceiling on concurrently running renders.

    ``slot()`` either admits immediately or raises ServerBusyError; it never
    queues. All callers share one event loop, so check-and-increment is atomic.
    """

    def __init__(self, max_active: int):
        self.max_active = max_active
        self.active = 0

    def try_acquire(self) -> bool:
        if self.active >= self.max_active:
            return False
        self.active += 1
        return True

    def release(self) -> None:
        self.active = max(0, self.active - 1)

    @contextmanager
    def slot(self) -> Iterator[None]:
        if not self.try_acquire():
            raise ServerBusyError(self.active, self.max_active)
        try:
            yield
        finally:
            self.release()


# ============================================================================
# Pipeline
# ============================================================================


@dataclass
class PipelineResult:
    b2_url: str
    duration: float
    file_size: int
    output_path: Path


def build_download_requests(request: RenderRequest, workspace: Workspace) -> list[DownloadRequest]:
    downloads = [
        DownloadRequest(scene.video_url, workspace.clip_path(i), "clip", i)
        for i, scene in enumerate(request.scenes)
    ]
    downloads.append(DownloadRequest(request.narration_url, workspace.narration_path, "narration"))
    for i, seg in enumerate(request.music_segments):
        downloads.append(DownloadRequest(seg.music_url, workspace.music_path(i), "music", i))
    if request.has_captions:
        downloads.append(DownloadRequest(request.caption_file_url, workspace.captions_path, "captions"))
    return downloads


class RenderPipeline:
    """Runs the stages of one admitted job inside its workspace."""

    def __init__(
        self,
        runner: FFmpegRunner,
        downloader: AssetDownloader,
        storage: StorageService,
        mixer: AudioMixer | None = None,
    ):
        self.downloader = downloader
        self.storage = storage
        self.normalizer = DurationNormalizer(runner)
        self.assembly = AssemblyEngine(runner)
        self.mixer = mixer or AudioMixer()
        self.default_music_volume = get_settings().render_default_music_volume

    async def execute(self, job: RenderJob, workspace: Workspace, render_log: RenderLog) -> PipelineResult:
        request = job.request

        # Download everything in parallel
        job.advance(RenderStage.DOWNLOADING)
        downloads = build_download_requests(request, workspace)
        logger.info(
            f"[RENDER] Downloading {len(request.scenes)} clips + narration + "
            f"{len(request.music_segments)} music + {'captions' if request.has_captions else 'no captions'}"
        )
        started = time.perf_counter()
        assets = await self.downloader.download_all(downloads)
        elapsed = time.perf_counter() - started
        logger.info(f"[RENDER] All downloads complete in {elapsed:.1f}s")
        render_log.add_step("download", duration_seconds=round(elapsed, 3), asset_count=len(assets))

        # Pre-process each clip to its exact duration
        job.advance(RenderStage.PREPROCESSING)
        started = time.perf_counter()

        def record_clip(clip: NormalizedClip) -> None:
            render_log.add_command(clip.step, clip.command)

        clips = await self.normalizer.normalize_all(workspace, request.scenes, on_clip=record_clip)
        elapsed = time.perf_counter() - started
        logger.info(f"[RENDER] All clips pre-processed in {elapsed:.1f}s")
        render_log.add_step(
            "preprocess",
            duration_seconds=round(elapsed, 3),
            clips=[c.plan.to_dict() for c in clips],
        )

        # Final assembly
        job.advance(RenderStage.ASSEMBLING)
        started = time.perf_counter()
        music_volume = (
            request.music_volume if request.music_volume is not None else self.default_music_volume
        )
        audio_mix = self.mixer.build(request.music_segments, music_volume)
        caption_filter = build_caption_filter(
            str(workspace.captions_path) if request.has_captions else None,
            request.caption_style,
        )
        result = await self.assembly.assemble(
            clip_paths=[c.output_path for c in clips],
            concat_list_path=workspace.concat_list_path,
            narration_path=workspace.narration_path,
            music_paths=[workspace.music_path(i) for i in range(len(request.music_segments))],
            audio_mix=audio_mix,
            caption_filter=caption_filter,
            output_path=workspace.output_path,
        )
        render_log.add_command("assembly", result.command)
        elapsed = time.perf_counter() - started
        render_log.add_step(
            "assembly",
            duration_seconds=round(elapsed, 3),
            output_duration=result.duration,
            output_size=result.file_size,
        )

        # Upload
        job.advance(RenderStage.UPLOADING)
        started = time.perf_counter()
        logger.info(f"[RENDER] Uploading to storage: {request.b2_path}")
        b2_url = await self.storage.upload(str(result.output_path), request.b2_path)
        elapsed = time.perf_counter() - started
        logger.info(f"[RENDER] Upload complete: {b2_url} in {elapsed:.1f}s")
        render_log.add_step("upload", duration_seconds=round(elapsed, 3), b2_url=b2_url)

        job.advance(RenderStage.COMPLETE)
        return PipelineResult(
            b2_url=b2_url,
            duration=result.duration,
            file_size=result.file_size,
            output_path=result.output_path,
        )


# ============================================================================
# Orchestrator
# ============================================================================


@dataclass
class RenderOutcome:
    """Terminal result of an admitted job."""

    generation_id: str
    success: bool
    body: dict[str, Any]
    log_path: Path | None = None

    @property
    def status_code(self) -> int:
        return 200 if self.success else 500


class RenderOrchestrator:
    """
    Admission-controlled entry point for render jobs.

    Owns the admission gate, the ffmpeg worker pool, the workspace manager
    and the render log store.
    """

    def __init__(
        self,
        max_concurrent: int | None = None,
        runner: FFmpegRunner | None = None,
        downloader: AssetDownloader | None = None,
        storage: StorageService | None = None,
        workspace_manager: WorkspaceManager | None = None,
        log_store: RenderLogStore | None = None,
    ):
        settings = get_settings()
        self.gate = AdmissionGate(max_concurrent or settings.render_max_concurrent)
        self.runner = runner or FFmpegRunner()
        self.workspace_manager = workspace_manager or WorkspaceManager()
        self.log_store = log_store or RenderLogStore()
        self.pipeline = RenderPipeline(
            runner=self.runner,
            downloader=downloader or AssetDownloader(),
            storage=storage or get_storage_service(),
        )

    @property
    def active_renders(self) -> int:
        return self.gate.active

    @property
    def max_concurrent_renders(self) -> int:
        return self.gate.max_active

    async def submit(self, request: RenderRequest) -> RenderOutcome:
        """
        Run a render job to completion.

        Raises:
            RenderValidationError: Required fields missing (nothing allocated)
            ServerBusyError: Admission ceiling reached (nothing allocated)

        Returns:
            RenderOutcome for both successful and failed jobs; failed jobs
            still have their render log written.
        """
        validate_request(request)

        with self.gate.slot():
            accepted_at = time.time()
            started = time.perf_counter()
            generation_id = derive_generation_id(request, accepted_at)
            job = RenderJob(generation_id=generation_id, request=request)
            render_log = RenderLog(
                generation_id=generation_id,
                request=request.model_dump(mode="json"),
            )
            render_log.add_step("validate", scene_count=len(request.scenes))
            logger.info(
                f"[RENDER] Starting job {generation_id} "
                f"({self.active_renders}/{self.max_concurrent_renders} active)"
            )

            try:
                with self.workspace_manager.allocate(generation_id) as workspace:
                    result = await self.pipeline.execute(job, workspace, render_log)
            except AssemblerError as e:
                return self._fail(job, render_log, started, e.message, e)
            except Exception as e:
                logger.exception(f"[RENDER] Job {generation_id} crashed: {e}")
                return self._fail(job, render_log, started, str(e) or e.__class__.__name__, e)

            processing_time = time.perf_counter() - started
            body = {
                "status": "complete",
                "success": True,
                "b2_url": result.b2_url,
                "duration": result.duration,
                "processing_time_seconds": round(processing_time, 3),
                "file_size": result.file_size,
            }
            render_log.finish(body)
            log_path = self.log_store.write(render_log)
            logger.info(f"[RENDER] Job {generation_id} complete in {processing_time:.1f}s")
            return RenderOutcome(generation_id=generation_id, success=True, body=body, log_path=log_path)

    def _fail(
        self,
        job: RenderJob,
        render_log: RenderLog,
        started: float,
        message: str,
        error: Exception,
    ) -> RenderOutcome:
        processing_time = time.perf_counter() - started
        failed_stage = job.stage
        logger.error(f"[RENDER] Job {job.generation_id} failed during {failed_stage.value}: {message}")

        error_step: dict[str, Any] = {"stage": failed_stage.value, "error": message}
        if isinstance(error, TranscodeError) and error.command:
            error_step["command"] = error.command
        render_log.add_step("error", status="failed", **error_step)
        if not job.is_terminal:
            job.advance(RenderStage.FAILED)

        body = {
            "status": "error",
            "success": False,
            "error": message,
            "processing_time_seconds": round(processing_time, 3),
        }
        render_log.finish(body)
        log_path = self.log_store.write(render_log)
        return RenderOutcome(generation_id=job.generation_id, success=False, body=body, log_path=log_path)

    def shutdown(self) -> None:
        self.runner.shutdown()
