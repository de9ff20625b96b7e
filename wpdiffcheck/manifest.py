import os
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

import requests

from .events import log_event

MANIFEST_URL = "https://downloads.wordpress.org/plugin-checksums/{slug}/{version}.json"


@dataclass(frozen=True)
class PluginManifest:
    slug: str
    version: str
    files: Dict[str, object]


def fetch_manifest(
    session: requests.Session, slug: str, version: str, timeout_s: int
) -> Optional[PluginManifest]:
    """Fetch the official file manifest, or None when it can't be had.

    Timeouts and network errors are treated like a non-200 response.
    """
    url = MANIFEST_URL.format(slug=slug, version=version)
    try:
        r = session.get(url, timeout=timeout_s)
    except requests.RequestException as e:
        log_event("manifest_fetch", result="error", scope=f"plugin:{slug}", url=url, error=str(e))
        return None
    if r.status_code != 200:
        log_event("manifest_fetch", result="error", scope=f"plugin:{slug}", url=url, status=r.status_code)
        return None
    try:
        data = r.json()
    except ValueError:
        log_event("manifest_fetch", result="error", scope=f"plugin:{slug}", url=url, error="invalid_json")
        return None
    files = data.get("files") if isinstance(data, dict) else None
    if not isinstance(files, dict):
        files = {}
    log_event("manifest_fetch", scope=f"plugin:{slug}", url=url, files=len(files))
    return PluginManifest(slug=slug, version=version, files=files)


def file_exists_case_sensitive(file_path: str) -> bool:
    # Case-insensitive filesystems answer os.path.exists for the wrong case too.
    if not os.path.exists(file_path):
        return False
    directory, target = os.path.split(file_path)
    try:
        return target in os.listdir(directory or ".")
    except OSError:
        return False


class DirectoryListings:
    """os.listdir results keyed by directory, read at most once each."""

    def __init__(self):
        self._listings: Dict[str, FrozenSet[str]] = {}

    def names(self, directory: str) -> FrozenSet[str]:
        listing = self._listings.get(directory)
        if listing is None:
            try:
                listing = frozenset(os.listdir(directory))
            except OSError:
                listing = frozenset()
            self._listings[directory] = listing
        return listing


def relative_exists_case_sensitive(
    root: str, rel_path: str, listings: Optional[DirectoryListings] = None
) -> bool:
    if listings is None:
        listings = DirectoryListings()
    current = root
    for part in rel_path.strip("/").split("/"):
        if part not in listings.names(current):
            return False
        current = os.path.join(current, part)
    return True


def find_missing_files(plugin_dir: str, manifest: PluginManifest) -> List[str]:
    listings = DirectoryListings()
    return [f for f in manifest.files if not relative_exists_case_sensitive(plugin_dir, f, listings)]
