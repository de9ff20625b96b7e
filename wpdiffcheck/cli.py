import argparse
import signal
import sys
from typing import List, Optional

import requests
from colorama import just_fix_windows_console

from . import __version__
from .config import Config, load_config, preflight
from .engine import Verifier
from .errors import FatalError
from .events import Console, enable_events, log_event
from .fetcher import Workspace
from .kuma import push_report
from .report import VerificationRun
from .wpcli import WPCLI


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wp-verify-checksum-diffs",
        description=(
            "Verify WordPress core and plugin checksums and diff any mismatched "
            "file against the official release, ignoring whitespace and line endings."
        ),
    )
    parser.add_argument("--ignore", default=None, help="Comma-separated substrings of file paths to ignore")
    parser.add_argument("--path", default=None, help="WordPress root (default: current directory)")
    parser.add_argument("--workers", type=int, default=None, help="Number of concurrent plugin downloads/diffs")
    parser.add_argument("--no-color", action="store_true", help="Disable colorized output")
    parser.add_argument("--events", action="store_true", help="Emit JSON events on stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _on_sigterm(signum, frame):
    # SystemExit unwinds through the workspace cleanup
    raise SystemExit(128 + signum)


def new_session() -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = f"wp-verify-checksum-diffs/{__version__}"
    return session


def verify(cfg: Config, console: Console) -> int:
    wp = WPCLI(cfg.wpcli, cfg.wp_path, cfg.wp_timeout, allow_root=cfg.allow_root)
    state = VerificationRun(ignored_patterns=cfg.ignored_patterns)
    with new_session() as session, Workspace(cfg.tmp_dir) as workspace:
        verifier = Verifier(
            wp,
            session,
            workspace,
            console,
            state,
            manifest_timeout=cfg.manifest_timeout,
            download_timeout=cfg.download_timeout,
            workers=cfg.workers,
            session_factory=new_session,
        )
        report = verifier.verify()
        if cfg.kuma_url and cfg.kuma_push_token:
            push_report(session, cfg.kuma_url, cfg.kuma_push_token, report)
    return report.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config(args)
    enable_events(cfg.events)
    log_event(
        "verify_start",
        wp_path=cfg.wp_path,
        ignored=list(cfg.ignored_patterns),
        workers=cfg.workers,
    )
    preflight(cfg)
    return verify(cfg, Console(color=cfg.color))


def run(argv: Optional[List[str]] = None) -> int:
    just_fix_windows_console()
    signal.signal(signal.SIGTERM, _on_sigterm)
    try:
        return main(argv)
    except FatalError as e:
        log_event("fatal", result="error", error=str(e), exit_code=e.exit_code)
        Console(stream=sys.stderr).error(str(e))
        return e.exit_code
    except KeyboardInterrupt:
        log_event("fatal", result="error", error="interrupted")
        return 130
    except Exception as e:
        log_event("fatal", result="error", error=str(e))
        Console(stream=sys.stderr).error(str(e))
        return 2
