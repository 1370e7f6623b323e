"""Index verification: detect drift between archive, summaries and the store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from recollect.build.archive import ArchiveManager
from recollect.search.store import IndexStore
from recollect.sources.transcript import parse_transcript

logger = logging.getLogger(__name__)

ISSUE_KINDS = ("missing", "orphaned", "outdated", "corrupted")


@dataclass
class Issue:
    """One detected inconsistency."""

    kind: str  # one of ISSUE_KINDS
    path: str
    project: str
    detail: str = ""


@dataclass
class VerifyReport:
    """Four independent issue lists.

    - missing: archived transcript with exchanges but no summary file
    - orphaned: index records pointing at an archive path that no longer exists
    - outdated: archived transcript whose exchanges are absent from the index
      or whose content no longer matches the stored hash
    - corrupted: sizeable archived transcript that yields no exchanges
    """

    missing: list[Issue] = field(default_factory=list)
    orphaned: list[Issue] = field(default_factory=list)
    outdated: list[Issue] = field(default_factory=list)
    corrupted: list[Issue] = field(default_factory=list)
    transcripts_checked: int = 0

    def add(self, issue: Issue) -> None:
        getattr(self, issue.kind).append(issue)

    @property
    def issues(self) -> list[Issue]:
        return [*self.missing, *self.orphaned, *self.outdated, *self.corrupted]

    @property
    def total(self) -> int:
        return len(self.issues)

    @property
    def repairable(self) -> int:
        return len(self.missing) + len(self.orphaned) + len(self.outdated)

    @property
    def passed(self) -> bool:
        return self.total == 0

    @property
    def summary(self) -> str:
        if self.passed:
            return f"All {self.transcripts_checked} archived transcripts are consistent"
        counts = ", ".join(
            f"{len(getattr(self, kind))} {kind}" for kind in ISSUE_KINDS
            if getattr(self, kind)
        )
        return f"{self.total} issue(s): {counts}"

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "summary": self.summary,
            "transcripts_checked": self.transcripts_checked,
            **{
                kind: [
                    {"path": i.path, "project": i.project, "detail": i.detail}
                    for i in getattr(self, kind)
                ]
                for kind in ISSUE_KINDS
            },
        }


def verify_index(
    archive: ArchiveManager,
    store: IndexStore,
    *,
    project: str | None = None,
    min_corrupt_bytes: int = 1024,
) -> VerifyReport:
    """Check every archived transcript and every indexed archive path.

    Read-only: nothing on disk or in the store is modified.
    """
    report = VerifyReport()

    for name, archive_path in archive.iter_archived(project):
        report.transcripts_checked += 1
        _check_transcript(report, archive, store, name, archive_path, min_corrupt_bytes)

    for path_str, count in sorted(store.archive_paths().items()):
        path = Path(path_str)
        if project and path.parent.name != project:
            continue
        if not path.exists():
            report.add(Issue(
                kind="orphaned",
                path=path_str,
                project=path.parent.name,
                detail=f"{count} record(s) reference a missing archive file",
            ))

    logger.debug("Verify: %s", report.summary)
    return report


def _check_transcript(
    report: VerifyReport,
    archive: ArchiveManager,
    store: IndexStore,
    project: str,
    archive_path: Path,
    min_corrupt_bytes: int,
) -> None:
    exchanges = parse_transcript(archive_path, project, archive_path=archive_path)

    if not exchanges:
        size = archive_path.stat().st_size
        if size >= min_corrupt_bytes:
            report.add(Issue(
                kind="corrupted",
                path=str(archive_path),
                project=project,
                detail=f"{size} bytes but no exchanges could be parsed",
            ))
        return

    if not archive.has_summary(archive_path):
        report.add(Issue(
            kind="missing",
            path=str(archive_path),
            project=project,
            detail=f"{len(exchanges)} exchange(s), no summary file",
        ))

    stored = store.hashes_for_archive(archive_path)
    absent = [ex for ex in exchanges if ex.id not in stored]
    changed = [
        ex for ex in exchanges
        if ex.id in stored and stored[ex.id] != ex.content_hash
    ]
    if absent or changed:
        report.add(Issue(
            kind="outdated",
            path=str(archive_path),
            project=project,
            detail=(
                f"{len(absent)} of {len(exchanges)} exchange(s) not in the index, "
                f"{len(changed)} changed since indexing"
            ),
        ))
