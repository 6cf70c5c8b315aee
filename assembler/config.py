from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Clip Assembler API"
    app_version: str = "0.1.0"
    git_hash: str = "unknown"  # Set via GIT_HASH env var at build time
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3500

    # Backblaze B2 (S3-compatible API)
    b2_endpoint: str = ""
    b2_region: str = "us-west-000"
    b2_key_id: str = ""
    b2_app_key: str = ""
    b2_bucket: str = ""
    b2_public_url: str = ""

    # Local storage for development (when B2 is not configured)
    use_local_storage: bool = True  # Set to False in production
    local_storage_path: str = "/tmp/assembler-storage"
    # Empty means http://localhost:{port}/storage/files
    local_storage_public_url: str = ""

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    # Worker threads dedicated to ffmpeg/ffprobe (independent of the admission ceiling)
    render_ffmpeg_workers: int = 2
    # Per-invocation timeout for a single ffmpeg run
    ffmpeg_timeout_seconds: float = 1800.0
    ffprobe_timeout_seconds: float = 60.0
    # Characters of stderr kept in error messages
    ffmpeg_stderr_tail_chars: int = 500

    # Render settings
    render_output_width: int = 1920
    render_output_height: int = 1080
    render_fps: int = 30
    render_audio_sample_rate: int = 44100
    render_audio_bitrate: str = "192k"
    render_clip_preset: str = "fast"
    render_clip_crf: int = 18
    render_final_preset: str = "medium"
    render_final_crf: int = 20
    render_default_music_volume: float = 0.08
    render_min_output_bytes: int = 1000

    # Admission control
    render_max_concurrent: int = 2

    # Workspaces and logs
    render_tmp_dir: str = "/tmp"
    render_logs_dir: str = "render_logs"
    # Keep the per-job workspace after the job finishes (debugging/archival)
    render_keep_workspaces: bool = False

    # Asset downloads
    download_timeout_seconds: float = 300.0
    download_max_redirects: int = 10
    download_chunk_size: int = 1024 * 1024

    @model_validator(mode="after")
    def _default_local_storage_url(self) -> "Settings":
        if not self.local_storage_public_url:
            self.local_storage_public_url = f"http://localhost:{self.port}/storage/files"
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
