import argparse
import os
import shutil
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import FatalError


# ---------------- ENV HELPERS ----------------
def _env_bool(name: str, default: bool) -> bool:
    v = os.environ.get(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    v = os.environ.get(name)
    if v is None or v.strip() == "":
        return default
    try:
        return int(v)
    except ValueError:
        raise FatalError(f"invalid_env:{name}={v}")


def _env_str(name: str) -> Optional[str]:
    v = os.environ.get(name)
    if v is None:
        return None
    v = v.strip()
    return v or None


@dataclass(frozen=True)
class Config:
    wpcli: str
    wp_path: str
    ignored_patterns: Tuple[str, ...]
    ignore_file: Optional[str]
    tmp_dir: Optional[str]
    allow_root: bool
    wp_timeout: int
    manifest_timeout: int
    download_timeout: int
    workers: int
    color: bool
    events: bool
    kuma_url: str
    kuma_push_token: str


def find_wpcli() -> str:
    wpcli_env = _env_str("WPDIFF_WPCLI")
    if wpcli_env is not None:
        return wpcli_env
    candidates: List[str] = []
    which_wp = shutil.which("wp")
    if which_wp:
        candidates.append(which_wp)
    candidates.extend(["/usr/local/bin/wp", "/usr/bin/wp", "/bin/wp"])
    for c in candidates:
        if os.path.isfile(c) and os.access(c, os.X_OK):
            return c
    return "wp"


def split_patterns(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def read_ignore_list(path: str) -> List[str]:
    if not os.path.exists(path):
        return []
    entries: List[str] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            v = line.strip()
            if v and not v.startswith("#"):
                entries.append(v)
    return entries


def load_config(args: argparse.Namespace) -> Config:
    wp_path = args.path or _env_str("WPDIFF_PATH") or os.getcwd()

    patterns = split_patterns(os.environ.get("WPDIFF_IGNORE"))
    patterns.extend(split_patterns(args.ignore))
    ignore_file = _env_str("WPDIFF_IGNORE_FILE")
    if ignore_file:
        patterns.extend(read_ignore_list(ignore_file))
    # keep first occurrence order
    ignored_patterns = tuple(dict.fromkeys(patterns))

    workers = args.workers if args.workers is not None else _env_int("WPDIFF_WORKERS", 1)
    if workers < 1:
        workers = 1

    color = _env_bool("WPDIFF_COLOR", True) and not args.no_color
    events = bool(args.events) or _env_bool("WPDIFF_EVENTS", False)

    return Config(
        wpcli=find_wpcli(),
        wp_path=os.path.abspath(wp_path),
        ignored_patterns=ignored_patterns,
        ignore_file=ignore_file,
        tmp_dir=_env_str("WPDIFF_TMP_DIR"),
        allow_root=_env_bool("WPDIFF_ALLOW_ROOT", False),
        wp_timeout=_env_int("WPDIFF_WP_TIMEOUT", 600),
        manifest_timeout=_env_int("WPDIFF_MANIFEST_TIMEOUT", 30),
        download_timeout=_env_int("WPDIFF_DOWNLOAD_TIMEOUT", 600),
        workers=workers,
        color=color,
        events=events,
        kuma_url=(_env_str("WPDIFF_KUMA_URL") or "").rstrip("/"),
        kuma_push_token=_env_str("WPDIFF_KUMA_PUSH_TOKEN") or "",
    )


def preflight(cfg: Config) -> None:
    if os.path.sep in cfg.wpcli:
        if not os.path.isfile(cfg.wpcli) or not os.access(cfg.wpcli, os.X_OK):
            raise FatalError(f"wpcli_not_executable:{cfg.wpcli}")
    else:
        if shutil.which(cfg.wpcli) is None:
            raise FatalError(f"wpcli_not_found_in_path:{cfg.wpcli}")
    if not os.path.isdir(cfg.wp_path):
        raise FatalError(f"wp_path_missing:{cfg.wp_path}")
    if cfg.tmp_dir and not os.path.isdir(cfg.tmp_dir):
        raise FatalError(f"tmp_dir_missing:{cfg.tmp_dir}")
