from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .events import Console, log_event
from .outcome import FileOutcome, Reason


def matches_ignore(path: str, patterns: Iterable[str]) -> bool:
    return any(p and p in path for p in patterns)


@dataclass
class VerificationRun:
    """Mutable state of one invocation, handed from stage to stage."""

    ignored_patterns: Tuple[str, ...] = ()
    entries: Dict[tuple, FileOutcome] = field(default_factory=dict)
    suppressed: List[FileOutcome] = field(default_factory=list)
    skipped_plugins: List[str] = field(default_factory=list)

    def record(self, outcome: FileOutcome) -> None:
        if outcome.reason is Reason.CHECKSUM_MISMATCH:
            raise ValueError(f"checksum mismatch must be diffed before reporting: {outcome.relative_path}")
        if outcome.reason is Reason.NO_DIFF:
            self.entries.pop(outcome.key, None)
            self.suppressed.append(outcome)
            return
        # re-recording a key replaces the reason but keeps its position
        self.entries[outcome.key] = outcome

    def record_all(self, outcomes: Iterable[FileOutcome]) -> None:
        for outcome in outcomes:
            self.record(outcome)

    def skip_plugin(self, slug: str) -> None:
        if slug not in self.skipped_plugins:
            self.skipped_plugins.append(slug)
            log_event("plugin_skipped", result="skipped", scope=f"plugin:{slug}")

    def is_skipped(self, slug: str) -> bool:
        return slug in self.skipped_plugins

    def freeze(self) -> "Report":
        return Report(
            entries=tuple(self.entries.values()),
            skipped_plugins=tuple(self.skipped_plugins),
            ignored_patterns=tuple(self.ignored_patterns),
            suppressed=tuple(self.suppressed),
        )


@dataclass(frozen=True)
class Report:
    entries: Tuple[FileOutcome, ...]
    skipped_plugins: Tuple[str, ...]
    ignored_patterns: Tuple[str, ...]
    suppressed: Tuple[FileOutcome, ...] = ()

    def is_ignored(self, outcome: FileOutcome) -> bool:
        return matches_ignore(outcome.relative_path, self.ignored_patterns)

    @property
    def failures(self) -> List[FileOutcome]:
        return [e for e in self.entries if not self.is_ignored(e)]

    @property
    def ignored(self) -> List[FileOutcome]:
        return [e for e in self.entries if self.is_ignored(e)]

    @property
    def succeeded(self) -> bool:
        return not self.failures

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def summary_message(self) -> str:
        if self.succeeded:
            return "ok"
        return f"{len(self.failures)} file(s) failed verification"


def render_summary(report: Report, console: Console) -> None:
    if report.skipped_plugins:
        console.log("Checks were skipped for the following plugins:", "yellow")
        for slug in report.skipped_plugins:
            console.log(slug, "yellow")

    if report.entries:
        console.log("Checks failed for the following files:", "red")
        for entry in report.entries:
            if report.is_ignored(entry):
                console.log(f"{entry.relative_path} ({entry.message}, ignored)", "yellow")
            else:
                console.log(entry.describe(), "red")

    log_event(
        "verify_complete",
        result="ok" if report.succeeded else "failed",
        failed=len(report.failures),
        ignored=len(report.ignored),
        suppressed=len(report.suppressed),
        skipped=list(report.skipped_plugins),
    )
    if report.succeeded:
        console.success("All files passed verification.")
