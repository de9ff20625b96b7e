import json
import re
from typing import Any, Dict, List, Optional, Tuple

from .errors import FatalError
from .outcome import CORE, FileOutcome, Reason, plugin_scope

CORE_CHECKSUM_RE = re.compile(r"Warning: File doesn't verify against checksum: (.+)")
CORE_WARNING_RE = re.compile(r"Warning: ([^:]+): (.+)")
MESSAGE_RE = re.compile(r"^(Success|Error|Warning):")
PLUGIN_SKIPPED_RE = re.compile(
    r"Warning: Could not retrieve the checksums for version [^ ]+ of plugin ([^,]+), skipping\."
)

CORE_LABELS = {
    "File should not exist": Reason.ADDED,
    "File doesn't exist": Reason.MISSING,
}

PLUGIN_MESSAGES = {
    "Checksum does not match": Reason.CHECKSUM_MISMATCH,
    "File was added": Reason.ADDED,
    "File is missing": Reason.MISSING,
}


def classify_core(stderr: str) -> List[FileOutcome]:
    outcomes: List[FileOutcome] = []
    for line in stderr.splitlines():
        m = CORE_CHECKSUM_RE.search(line)
        if m:
            outcomes.append(FileOutcome(CORE, m.group(1).strip(), Reason.CHECKSUM_MISMATCH))
            continue
        m = CORE_WARNING_RE.search(line)
        if m:
            label = m.group(1).strip()
            reason = CORE_LABELS.get(label, Reason.OTHER)
            detail = label if reason is Reason.OTHER else ""
            outcomes.append(FileOutcome(CORE, m.group(2).strip(), reason, detail))
    return outcomes


def core_messages(stdout: str, stderr: str) -> List[str]:
    """Verifier lines that aren't about one file.

    e.g. "Error: Couldn't get checksums from WordPress.org." or the success line.
    """
    lines = (stdout + "\n" + stderr).splitlines()
    return [line.strip() for line in lines if line.strip() and not CORE_WARNING_RE.search(line)]


def _split_plugin_stdout(stdout: str) -> Tuple[Optional[str], List[str]]:
    # WP-CLI prints the JSON records on one line; success/error messages land on stdout too
    payload = None
    messages: List[str] = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        if MESSAGE_RE.match(line):
            messages.append(line)
        elif payload is None:
            payload = line
        else:
            raise FatalError(f"plugin_checksums_unparseable:unexpected output: {line}")
    return payload, messages


def parse_plugin_records(stdout: str) -> List[Dict[str, Any]]:
    payload, _ = _split_plugin_stdout(stdout)
    if payload is None:
        return []
    try:
        records = json.loads(payload)
    except json.JSONDecodeError as e:
        raise FatalError(f"plugin_checksums_unparseable:{e}")
    if not isinstance(records, list):
        raise FatalError("plugin_checksums_unparseable:expected a list")
    return [r for r in records if isinstance(r, dict)]


def plugin_messages(stdout: str, stderr: str) -> List[str]:
    _, messages = _split_plugin_stdout(stdout)
    for line in stderr.splitlines():
        if line.strip() and not PLUGIN_SKIPPED_RE.search(line):
            messages.append(line.strip())
    return messages


def classify_plugins(stdout: str, stderr: str) -> Tuple[Dict[str, List[FileOutcome]], List[str]]:
    """Group plugin verifier records by plugin, in first-seen order.

    Also returns the plugins the verifier could not fetch checksums for.
    """
    skipped: List[str] = []
    for line in stderr.splitlines():
        m = PLUGIN_SKIPPED_RE.search(line)
        if m and m.group(1) not in skipped:
            skipped.append(m.group(1))

    grouped: Dict[str, List[FileOutcome]] = {}
    for record in parse_plugin_records(stdout):
        slug = str(record.get("plugin_name") or "")
        file = str(record.get("file") or "")
        message = str(record.get("message") or "")
        if not slug or not file:
            continue
        reason = PLUGIN_MESSAGES.get(message, Reason.OTHER)
        detail = message if reason is Reason.OTHER else ""
        grouped.setdefault(slug, []).append(FileOutcome(plugin_scope(slug), file, reason, detail))
    return grouped, skipped
