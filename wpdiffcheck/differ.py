import os
import re
from typing import Iterable, List

from .errors import ComparisonError
from .events import Console, log_event
from .outcome import FileOutcome, Reason

_WHITESPACE_RUN = re.compile(rb"[ \t\r\f\v]+")


def normalized_lines(data: bytes) -> List[bytes]:
    """Lines with whitespace runs collapsed, trailing whitespace and blank lines dropped.

    Same notion of equality as ``diff -b -B``: CRLF and LF endings compare
    equal, as do re-indented lines with the same amount of leading blanks.
    """
    lines: List[bytes] = []
    for line in data.split(b"\n"):
        line = _WHITESPACE_RUN.sub(b" ", line.rstrip(b" \t\r\f\v"))
        if line:
            lines.append(line)
    return lines


def files_differ(local_path: str, official_path: str) -> bool:
    try:
        with open(local_path, "rb") as f:
            local = f.read()
        with open(official_path, "rb") as f:
            official = f.read()
    except OSError as e:
        raise ComparisonError(f"Could not perform diff on {local_path}: {e.strerror or e}")
    if local == official:
        return False
    return normalized_lines(local) != normalized_lines(official)


def diff_files(
    outcomes: Iterable[FileOutcome],
    official_dir: str,
    local_dir: str,
    console: Console,
) -> List[FileOutcome]:
    """Refine checksum mismatches into DIFF_FOUND or NO_DIFF.

    ``local_dir`` is the directory the outcome paths are relative to; printed
    paths are relative to the WordPress root.
    """
    refined: List[FileOutcome] = []
    for outcome in outcomes:
        local_path = os.path.join(local_dir, *outcome.path.split("/"))
        official_path = os.path.join(official_dir, *outcome.path.split("/"))
        shown = outcome.relative_path

        if files_differ(local_path, official_path):
            console.log(f"Differences found in {shown}", "red")
            refined.append(outcome.refine(Reason.DIFF_FOUND))
            log_event("diff", result="diff_found", scope=str(outcome.scope), path=shown)
        else:
            console.log(f"No differences found in {shown}", "green")
            refined.append(outcome.refine(Reason.NO_DIFF))
            log_event("diff", result="no_diff", scope=str(outcome.scope), path=shown)
    return refined
