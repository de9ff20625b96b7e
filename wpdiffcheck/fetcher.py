import os
import shutil
import tempfile
import zipfile
from typing import Optional, Tuple

import requests

from .errors import FatalError
from .events import Console, log_event
from .wpcli import WPCLI

PLUGIN_ARCHIVE_URL = "https://downloads.wordpress.org/plugin/{slug}.{version}.zip"


class Workspace:
    """Private temp directory for official copies, removed however the run ends."""

    def __init__(self, parent: Optional[str] = None, prefix: str = "wp-verify-checksum-diffs-"):
        self._parent = parent
        self._prefix = prefix
        self.path: Optional[str] = None

    def __enter__(self) -> "Workspace":
        # mkdtemp creates the directory with mode 0700
        self.path = tempfile.mkdtemp(prefix=self._prefix, dir=self._parent)
        log_event("workspace_create", path=self.path)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.path and os.path.exists(self.path):
            shutil.rmtree(self.path, ignore_errors=True)
            log_event("workspace_cleanup", path=self.path)
        self.path = None

    def join(self, *parts: str) -> str:
        if self.path is None:
            raise RuntimeError("workspace_not_open")
        return os.path.join(self.path, *parts)


# ---------------- CORE ----------------
def fetch_core(wp: WPCLI, workspace: Workspace, console: Console) -> Tuple[str, str]:
    version = wp.run(["core", "version"]).stdout.strip()
    if not version:
        raise FatalError("core_version_unknown")
    console.log(f"Downloading WordPress core v{version} for diff comparison...")
    official_path = workspace.join("official_core")
    wp.run(["core", "download", f"--version={version}", f"--path={official_path}", "--force"])
    log_event("core_download", scope="core", version=version, path=official_path)
    return version, official_path


# ---------------- PLUGINS ----------------
def download_file(session: requests.Session, url: str, dest: str, timeout_s: int) -> Optional[int]:
    """Stream url to dest. Returns the HTTP status, or None on a network error."""
    try:
        with session.get(url, stream=True, timeout=timeout_s) as r:
            if r.status_code != 200:
                return r.status_code
            with open(dest, "wb") as f:
                for chunk in r.iter_content(chunk_size=65536):
                    if chunk:
                        f.write(chunk)
            return r.status_code
    except requests.RequestException as e:
        log_event("download", result="error", url=url, error=str(e))
        return None


def extract_archive(archive_path: str, dest: str) -> None:
    os.makedirs(dest, mode=0o700, exist_ok=True)
    dest_real = os.path.realpath(dest)
    with zipfile.ZipFile(archive_path) as z:
        for name in z.namelist():
            target = os.path.realpath(os.path.join(dest_real, name))
            if target != dest_real and not target.startswith(dest_real + os.sep):
                raise zipfile.BadZipFile(f"unsafe member path: {name}")
        z.extractall(dest_real)


def comparison_root(extract_dir: str) -> str:
    # Plugin zips usually wrap everything in a single <slug>/ directory.
    entries = os.listdir(extract_dir)
    if len(entries) == 1:
        only = os.path.join(extract_dir, entries[0])
        if os.path.isdir(only):
            return only
    return extract_dir


def fetch_plugin(
    session: requests.Session,
    slug: str,
    version: str,
    workspace: Workspace,
    timeout_s: int,
    console: Console,
) -> Optional[str]:
    """Download and unpack the official plugin release.

    Returns the directory to compare against, or None when the plugin has to
    be skipped.
    """
    console.log(f"Downloading plugin {slug} v{version} for diff comparison...")
    url = PLUGIN_ARCHIVE_URL.format(slug=slug, version=version)
    archive_path = workspace.join(f"{slug}.zip")
    status = download_file(session, url, archive_path, timeout_s)
    if status != 200:
        shown = status if status is not None else "request failed"
        console.warning(f"Failed to download plugin {slug} (HTTP status: {shown}), skipping.")
        log_event("plugin_download", result="error", scope=f"plugin:{slug}", url=url, status=status)
        return None

    extract_dir = workspace.join(f"official_plugin_{slug}")
    try:
        extract_archive(archive_path, extract_dir)
    except (zipfile.BadZipFile, OSError) as e:
        console.warning(f"Failed to extract plugin {slug} ({e}), skipping.")
        log_event("plugin_extract", result="error", scope=f"plugin:{slug}", error=str(e))
        return None
    log_event("plugin_download", scope=f"plugin:{slug}", url=url, path=extract_dir)
    return comparison_root(extract_dir)
