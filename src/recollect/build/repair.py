"""Repair: heal the issues found by ``verify_index``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from recollect.build.runner import Indexer
from recollect.build.verify import Issue, VerifyReport
from recollect.sources.transcript import parse_transcript

logger = logging.getLogger(__name__)


@dataclass
class RepairAction:
    """What was done for one issue."""

    kind: str
    path: str
    action: str  # "summarized", "deleted", "reindexed", "reported"
    description: str


@dataclass
class RepairResult:
    """Aggregated result of a repair pass."""

    actions: list[RepairAction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def fixed_count(self) -> int:
        return sum(1 for a in self.actions if a.action != "reported")

    @property
    def reported_count(self) -> int:
        return sum(1 for a in self.actions if a.action == "reported")


def repair_index(report: VerifyReport, indexer: Indexer) -> RepairResult:
    """Fix missing, orphaned and outdated issues; report corrupted ones.

    Only records belonging to a flagged archive path are touched. A failure
    on one issue is recorded and the remaining issues are still repaired.
    """
    result = RepairResult()
    handlers = {
        "missing": _repair_missing,
        "orphaned": _repair_orphaned,
        "outdated": _repair_outdated,
    }

    for issue in report.issues:
        if issue.kind == "corrupted":
            result.actions.append(RepairAction(
                kind=issue.kind,
                path=issue.path,
                action="reported",
                description=f"Left untouched: {issue.detail}",
            ))
            continue
        try:
            result.actions.extend(handlers[issue.kind](issue, indexer))
        except Exception as exc:
            logger.debug("Repair failed for %s", issue.path, exc_info=True)
            result.errors.append(f"{issue.kind} {issue.path}: {exc}")

    return result


def _repair_missing(issue: Issue, indexer: Indexer) -> list[RepairAction]:
    archive_path = Path(issue.path)
    exchanges = parse_transcript(archive_path, issue.project, archive_path=archive_path)
    if not indexer.write_summary(archive_path, exchanges):
        raise RuntimeError("summary could not be written")
    return [RepairAction(
        kind=issue.kind,
        path=issue.path,
        action="summarized",
        description=f"Wrote summary for {len(exchanges)} exchange(s)",
    )]


def _repair_orphaned(issue: Issue, indexer: Indexer) -> list[RepairAction]:
    deleted = indexer.store.delete_archive(issue.path)
    actions = [RepairAction(
        kind=issue.kind,
        path=issue.path,
        action="deleted",
        description=f"Deleted {deleted} orphaned record(s)",
    )]

    tf = indexer.transcript_for(issue.project, Path(issue.path).name)
    if tf.source_path.exists():
        reindexed = indexer.index_transcript(tf)
        actions.append(RepairAction(
            kind=issue.kind,
            path=issue.path,
            action="reindexed",
            description=(
                f"Re-archived from {tf.source_path} and indexed "
                f"{reindexed.exchanges_indexed} exchange(s)"
            ),
        ))
    return actions


def _repair_outdated(issue: Issue, indexer: Indexer) -> list[RepairAction]:
    deleted = indexer.store.delete_archive(issue.path)
    tf = indexer.transcript_for(issue.project, Path(issue.path).name)
    reindexed = indexer.index_transcript(tf, force=True)
    return [RepairAction(
        kind=issue.kind,
        path=issue.path,
        action="reindexed",
        description=(
            f"Replaced {deleted} record(s) with "
            f"{reindexed.exchanges_indexed} freshly indexed exchange(s)"
        ),
    )]
