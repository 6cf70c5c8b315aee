"""
Pytest fixtures for clip assembler tests.

Most tests replace ffmpeg and storage with in-process fakes and serve asset
downloads through ``httpx.MockTransport``, so they run without network
access or media tools.

CI/CD Note:
Tests that run the real ffmpeg binary are marked with @pytest.mark.requires_ffmpeg
and are skipped automatically when ffmpeg/ffprobe are not on PATH.
"""

import asyncio
import shlex
import shutil
import tempfile
from pathlib import Path

import httpx
import pytest

from assembler.exceptions import TranscodeError, UploadError
from assembler.render.pipeline import RenderOrchestrator
from assembler.render.render_log import RenderLogStore
from assembler.render.workspace import WorkspaceManager
from assembler.schemas.render import RenderRequest
from assembler.services.asset_downloader import AssetDownloader


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring ffmpeg/ffprobe on PATH (skipped otherwise)",
    )


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


requires_ffmpeg = pytest.mark.skipif(
    not _ffmpeg_available(),
    reason="ffmpeg/ffprobe not available on PATH",
)


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="assembler_test_") as tmpdir:
        yield Path(tmpdir)


# =============================================================================
# Fakes
# =============================================================================


class FakeFFmpegRunner:
    """
    Stands in for FFmpegRunner.

    ``run`` writes a file at the output path (the last argument) so output
    validation sees a real file. Source clip durations come from
    ``source_durations`` keyed by file name; the final output reports
    ``output_duration``.
    """

    def __init__(
        self,
        source_durations: dict[str, float] | None = None,
        default_duration: float = 10.0,
        output_duration: float = 15.0,
        output_bytes: int = 4096,
        fail_on: str | None = None,
    ):
        self.source_durations = source_durations or {}
        self.default_duration = default_duration
        self.output_duration = output_duration
        self.output_bytes = output_bytes
        self.fail_on = fail_on
        self.calls: list[tuple[list[str], str]] = []
        self.probed: list[str] = []
        self.release: asyncio.Event | None = None
        self.shut_down = False

    def build_command(self, args: list[str]) -> list[str]:
        return ["ffmpeg", *args]

    async def run(self, args: list[str], label: str) -> str:
        self.calls.append((args, label))
        if self.release is not None:
            await self.release.wait()
        cmd = self.build_command(args)
        if self.fail_on and self.fail_on in label:
            raise TranscodeError(label, "Invalid data found when processing input", command=shlex.join(cmd))
        Path(args[-1]).write_bytes(b"\0" * self.output_bytes)
        return shlex.join(cmd)

    async def probe_duration(self, file_path: str) -> float:
        self.probed.append(file_path)
        name = Path(file_path).name
        if name == "output.mp4":
            return self.output_duration
        return self.source_durations.get(name, self.default_duration)

    def shutdown(self) -> None:
        self.shut_down = True


class FakeStorage:
    """Records uploads and returns a CDN-style URL."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: list[tuple[str, str]] = []

    async def upload(self, local_path: str, storage_key: str) -> str:
        if self.fail:
            raise UploadError("Upload failed: connection reset by peer")
        self.uploads.append((local_path, storage_key))
        return f"https://cdn.example.com/{storage_key}"


def media_transport(missing: tuple[str, ...] = ()) -> httpx.MockTransport:
    """Serve a few bytes for every URL, 404 for URLs containing a ``missing`` marker."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if any(marker in url for marker in missing):
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=b"media:" + url.encode())

    return httpx.MockTransport(handler)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_runner() -> FakeFFmpegRunner:
    return FakeFFmpegRunner(
        source_durations={"001.mp4": 3.2, "002.mp4": 4.0, "003.mp4": 9.5},
        output_duration=15.02,
    )


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def workspace_root(temp_output_dir: Path) -> Path:
    return temp_output_dir / "tmp"


@pytest.fixture
def logs_dir(temp_output_dir: Path) -> Path:
    return temp_output_dir / "render_logs"


@pytest.fixture
def make_orchestrator(workspace_root: Path, logs_dir: Path, fake_storage: FakeStorage):
    """Build an orchestrator wired to fakes and temp directories."""

    def _make(
        runner: FakeFFmpegRunner,
        storage: FakeStorage | None = None,
        max_concurrent: int = 2,
        transport: httpx.MockTransport | None = None,
        keep_workspaces: bool = False,
    ) -> RenderOrchestrator:
        return RenderOrchestrator(
            max_concurrent=max_concurrent,
            runner=runner,
            downloader=AssetDownloader(transport=transport or media_transport()),
            storage=storage or fake_storage,
            workspace_manager=WorkspaceManager(base_dir=workspace_root, keep_workspaces=keep_workspaces),
            log_store=RenderLogStore(logs_dir=logs_dir),
        )

    return _make


@pytest.fixture
def three_scene_request() -> RenderRequest:
    """Three scenes of 5s/4s/6s, narration only, no captions."""
    return RenderRequest(
        generation_id="gen-001",
        scenes=[
            {"video_url": "https://media.example.com/scenes/1.mp4", "duration": 5},
            {"video_url": "https://media.example.com/scenes/2.mp4", "duration": 4},
            {"video_url": "https://media.example.com/scenes/3.mp4", "duration": 6},
        ],
        narration_url="https://media.example.com/narration.mp3",
        caption_style="none",
        b2_path="videos/gen-001/final.mp4",
        b2_bucket="renders",
    )
