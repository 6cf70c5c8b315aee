"""Per-job temporary directory trees."""

import hashlib
import logging
import re
import shutil
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from assembler.config import get_settings

logger = logging.getLogger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def safe_generation_id(generation_id: str) -> str:
    """Make a generation id usable as a single path component."""
    cleaned = _UNSAFE_ID_CHARS.sub("_", generation_id).strip(".")
    return cleaned or "unnamed"


def path_key(generation_id: str) -> str:
    """
    Collision-free path component for a generation id.

    Ids that survive sanitizing unchanged are used as-is; any other id gets a
    short hash of the raw value appended, so `a/b` and `a_b` never share a key.
    """
    cleaned = safe_generation_id(generation_id)
    if cleaned == generation_id:
        return cleaned
    digest = hashlib.sha1(generation_id.encode("utf-8")).hexdigest()[:8]
    return f"{cleaned}-{digest}"


def unique_suffix() -> str:
    # "~" never appears in a path key
    return f"~{uuid.uuid4().hex[:8]}"


def scene_filename(index: int) -> str:
    """Zero-padded, 1-based clip filename so lexical order matches scene order."""
    return f"{index + 1:03d}.mp4"


@dataclass(frozen=True)
class Workspace:
    """Directory tree owned by exactly one render job."""

    root: Path

    @property
    def clips_dir(self) -> Path:
        return self.root / "clips"

    @property
    def processed_dir(self) -> Path:
        return self.root / "processed"

    @property
    def narration_path(self) -> Path:
        return self.root / "narration.mp3"

    @property
    def captions_path(self) -> Path:
        return self.root / "captions.srt"

    @property
    def concat_list_path(self) -> Path:
        return self.root / "concat.txt"

    @property
    def output_path(self) -> Path:
        return self.root / "output.mp4"

    def clip_path(self, index: int) -> Path:
        return self.clips_dir / scene_filename(index)

    def processed_path(self, index: int) -> Path:
        return self.processed_dir / scene_filename(index)

    def music_path(self, index: int) -> Path:
        return self.root / f"music_{index + 1}.mp3"

    def create(self) -> None:
        self.clips_dir.mkdir(parents=True, exist_ok=True)
        self.processed_dir.mkdir(parents=True, exist_ok=True)


class WorkspaceManager:
    """
    Allocates ``{base_dir}/render-{generation_id}`` and removes it when the job ends.

    Removal happens on every exit path. With ``keep_workspaces`` enabled the
    tree is left in place for inspection and the retention is logged.
    """

    def __init__(self, base_dir: str | Path | None = None, keep_workspaces: bool | None = None):
        settings = get_settings()
        self.base_dir = Path(base_dir or settings.render_tmp_dir)
        self.keep_workspaces = (
            settings.render_keep_workspaces if keep_workspaces is None else keep_workspaces
        )

    def path_for(self, generation_id: str) -> Path:
        return self.base_dir / f"render-{path_key(generation_id)}"

    def _create_root(self, generation_id: str) -> Path:
        """Create the job root exclusively; an existing tree is never reused."""
        root = self.path_for(generation_id)
        while True:
            try:
                root.mkdir(parents=True, exist_ok=False)
                return root
            except FileExistsError:
                logger.warning(f"[WORKSPACE] {root} already exists, allocating a fresh tree")
                root = self.base_dir / f"render-{path_key(generation_id)}{unique_suffix()}"

    @contextmanager
    def allocate(self, generation_id: str) -> Iterator[Workspace]:
        workspace = Workspace(root=self._create_root(generation_id))
        workspace.create()
        logger.info(f"[WORKSPACE] Allocated {workspace.root}")
        try:
            yield workspace
        finally:
            self.release(workspace)

    def release(self, workspace: Workspace) -> None:
        if self.keep_workspaces:
            logger.info(f"[WORKSPACE] Keeping {workspace.root} (render_keep_workspaces enabled)")
            return
        try:
            shutil.rmtree(workspace.root)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[WORKSPACE] Failed to remove {workspace.root}: {e}")
