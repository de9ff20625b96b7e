from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

WP_PLUGIN_DIR = "wp-content/plugins"


class Reason(str, Enum):
    CHECKSUM_MISMATCH = "Checksum does not match"
    MISSING = "File doesn't exist"
    ADDED = "File was added"
    DIFF_FOUND = "Differences found"
    NO_DIFF = "No differences found"
    OTHER = "other"


@dataclass(frozen=True)
class Scope:
    plugin: Optional[str] = None

    @property
    def is_core(self) -> bool:
        return self.plugin is None

    def relative_path(self, file: str) -> str:
        if self.plugin is None:
            return file
        return f"{WP_PLUGIN_DIR}/{self.plugin}/{file}"

    def __str__(self) -> str:
        return "core" if self.plugin is None else f"plugin:{self.plugin}"


CORE = Scope()


def plugin_scope(slug: str) -> Scope:
    return Scope(plugin=slug)


@dataclass(frozen=True)
class FileOutcome:
    scope: Scope
    path: str  # relative to the scope root (core root or plugin dir)
    reason: Reason
    detail: str = ""

    @property
    def key(self):
        return (self.scope, self.path)

    @property
    def relative_path(self) -> str:
        return self.scope.relative_path(self.path)

    @property
    def message(self) -> str:
        if self.reason is Reason.OTHER:
            return self.detail
        return self.reason.value

    def refine(self, reason: Reason) -> "FileOutcome":
        if self.reason is not Reason.CHECKSUM_MISMATCH:
            raise ValueError(f"cannot refine {self.reason.name} outcome for {self.relative_path}")
        if reason not in (Reason.DIFF_FOUND, Reason.NO_DIFF):
            raise ValueError(f"invalid refinement {reason.name} for {self.relative_path}")
        return replace(self, reason=reason)

    def describe(self) -> str:
        return f"{self.relative_path} ({self.message})"
