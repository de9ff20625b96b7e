import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, TextIO

from colorama import Fore, Style

_events_enabled = False


def enable_events(enabled: bool) -> None:
    global _events_enabled
    _events_enabled = enabled


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def log_event(action: str, result: str = "ok", scope: Optional[str] = None, **fields: Any) -> None:
    if not _events_enabled:
        return
    payload: Dict[str, Any] = {
        "ts": _now_iso(),
        "action": action,
        "result": result,
    }
    if scope is not None:
        payload["scope"] = scope
    payload.update(fields)
    print(json.dumps(payload, separators=(",", ":"), sort_keys=True), file=sys.stderr, flush=True)


COLORS = {
    "red": Fore.RED,
    "green": Fore.GREEN,
    "yellow": Fore.YELLOW,
    "blue": Fore.BLUE,
}


class Console:
    """Human-readable transcript on stdout.

    A buffered console collects lines instead of writing them, so work done on
    a worker thread can be flushed later in a fixed order.
    """

    def __init__(self, color: bool = True, stream: Optional[TextIO] = None, buffered: bool = False):
        self.color = color
        self._stream = stream
        self._buffered = buffered
        self._lines: List[str] = []

    def log(self, message: str, color: Optional[str] = None) -> None:
        if color and self.color:
            message = f"{COLORS[color]}{message}{Style.RESET_ALL}"
        if self._buffered:
            self._lines.append(message)
            return
        stream = self._stream or sys.stdout
        print(message, file=stream, flush=True)

    def warning(self, message: str) -> None:
        self.log(f"Warning: {message}", "yellow")

    def success(self, message: str) -> None:
        self.log(f"Success: {message}", "green")

    def error(self, message: str) -> None:
        self.log(f"Error: {message}", "red")

    def child(self) -> "Console":
        return Console(color=self.color, stream=self._stream, buffered=True)

    def flush_into(self, parent: "Console") -> None:
        for line in self._lines:
            # already colorized
            parent.log(line)
        self._lines = []
