"""Archive manager: copy-once mirror of transcripts plus their summaries."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator
from pathlib import Path

from recollect.core.errors import atomic_write
from recollect.core.models import SUMMARY_SUFFIX, summary_path_for

logger = logging.getLogger(__name__)


class ArchiveManager:
    """Owns ``<archive_root>/<project>/<session>.jsonl`` and the summaries beside them.

    An archive copy is made once and never overwritten while it exists, so
    it stays a stable snapshot even if the live transcript later disappears.
    """

    def __init__(self, archive_root: str | Path):
        self.archive_root = Path(archive_root)

    def archive_path_for(self, project: str, filename: str) -> Path:
        return self.archive_root / project / filename

    def archive(self, source_path: Path, project: str) -> tuple[Path, bool]:
        """Copy ``source_path`` into the archive if it isn't there yet.

        Returns ``(archive_path, copied)``.
        """
        dest = self.archive_path_for(project, source_path.name)
        if dest.exists():
            return dest, False
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(dest.name + ".partial")
        shutil.copy2(source_path, tmp)
        tmp.replace(dest)
        logger.debug("Archived %s -> %s", source_path, dest)
        return dest, True

    @staticmethod
    def summary_path_for(archive_path: Path) -> Path:
        return summary_path_for(archive_path)

    def has_summary(self, archive_path: Path) -> bool:
        return self.summary_path_for(archive_path).exists()

    def read_summary(self, archive_path: Path) -> str | None:
        path = self.summary_path_for(archive_path)
        if not path.exists():
            return None
        return path.read_text()

    def write_summary(self, archive_path: Path, text: str) -> Path:
        path = self.summary_path_for(archive_path)
        atomic_write(path, text)
        return path

    def projects(self) -> list[str]:
        if not self.archive_root.exists():
            return []
        return sorted(p.name for p in self.archive_root.iterdir() if p.is_dir())

    def iter_archived(self, project: str | None = None) -> Iterator[tuple[str, Path]]:
        """Yield ``(project, archive_path)`` for every archived transcript, sorted."""
        projects = [project] if project else self.projects()
        for name in projects:
            project_dir = self.archive_root / name
            if not project_dir.is_dir():
                continue
            for path in sorted(project_dir.glob("*.jsonl")):
                yield name, path

    def iter_summaries(self) -> Iterator[Path]:
        if not self.archive_root.exists():
            return
        yield from sorted(self.archive_root.glob(f"*/*{SUMMARY_SUFFIX}"))

    def delete_summaries(self) -> int:
        """Remove every summary file. Returns how many were deleted."""
        count = 0
        for path in list(self.iter_summaries()):
            path.unlink()
            count += 1
        return count
