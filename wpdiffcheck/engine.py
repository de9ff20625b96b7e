import json
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from .classifier import classify_core, classify_plugins, core_messages, plugin_messages
from .differ import diff_files
from .errors import FatalError
from .events import Console, log_event
from .fetcher import Workspace, fetch_core, fetch_plugin
from .manifest import fetch_manifest, find_missing_files
from .outcome import WP_PLUGIN_DIR, FileOutcome, Reason, plugin_scope
from .report import Report, VerificationRun, render_summary
from .wpcli import WPCLI

CHECKED_PLUGIN_STATUSES = ("active", "inactive")

MESSAGE_COLORS = {"Error:": "red", "Warning:": "yellow", "Success:": "green"}


@dataclass
class PluginDiffResult:
    slug: str
    console: Console
    outcomes: List[FileOutcome] = field(default_factory=list)
    skipped: bool = False


def _outcome_color(outcome: FileOutcome) -> str:
    return "yellow" if outcome.reason is Reason.CHECKSUM_MISMATCH else "red"


class Verifier:
    """Runs the core and plugin stages against one WordPress root.

    ``session`` serves the main thread. With more than one worker each plugin
    download gets its own session from ``session_factory``, since
    ``requests.Session`` isn't safe to share between threads.
    """

    def __init__(
        self,
        wp: WPCLI,
        session: requests.Session,
        workspace: Workspace,
        console: Console,
        run: VerificationRun,
        *,
        manifest_timeout: int = 30,
        download_timeout: int = 600,
        workers: int = 1,
        session_factory: Optional[Callable[[], requests.Session]] = None,
    ):
        self.wp = wp
        self.session = session
        self.workspace = workspace
        self.console = console
        self.run = run
        self.manifest_timeout = manifest_timeout
        self.download_timeout = download_timeout
        self.workers = max(1, workers)
        self.session_factory = session_factory or requests.Session
        self._plugins: Optional[List[Dict[str, Any]]] = None

    @property
    def wp_path(self) -> str:
        return self.wp.path

    def verify(self) -> Report:
        self.verify_core()
        self.verify_plugins()
        report = self.run.freeze()
        render_summary(report, self.console)
        return report

    def echo_messages(self, lines: Iterable[str]) -> None:
        for line in lines:
            color = next((c for prefix, c in MESSAGE_COLORS.items() if line.startswith(prefix)), None)
            self.console.log(line, color)

    # ---------------- CORE ----------------
    def verify_core(self) -> None:
        self.console.log("Verifying WordPress core checksums...", "blue")
        result = self.wp.run(["core", "verify-checksums"], tolerate_failure=True)
        outcomes = classify_core(result.stderr)
        log_event("core_verify", scope="core", returncode=result.returncode, outcomes=len(outcomes))

        for outcome in outcomes:
            self.console.log(outcome.describe(), _outcome_color(outcome))
        self.echo_messages(core_messages(result.stdout, result.stderr))

        mismatches = [o for o in outcomes if o.reason is Reason.CHECKSUM_MISMATCH]
        if mismatches:
            _, official_path = fetch_core(self.wp, self.workspace, self.console)
            self.run.record_all(diff_files(mismatches, official_path, self.wp_path, self.console))
        self.run.record_all(o for o in outcomes if o.reason is not Reason.CHECKSUM_MISMATCH)

    # ---------------- PLUGINS ----------------
    def list_plugins(self) -> List[Dict[str, Any]]:
        if self._plugins is None:
            result = self.wp.run(["plugin", "list", "--format=json"])
            try:
                plugins = json.loads(result.stdout.strip() or "[]")
            except json.JSONDecodeError as e:
                raise FatalError(f"plugin_list_unparseable:{e}")
            self._plugins = [p for p in plugins if isinstance(p, dict)] if isinstance(plugins, list) else []
        return self._plugins

    def plugin_version(self, slug: str) -> str:
        for plugin in self.list_plugins():
            if plugin.get("name") == slug and plugin.get("version"):
                return str(plugin["version"])
        return self.wp.run(["plugin", "get", slug, "--field=version"]).stdout.strip()

    def verify_plugins(self) -> None:
        self.console.log("Verifying WordPress plugin checksums...", "blue")
        result = self.wp.run(["plugin", "verify-checksums", "--all", "--format=json"], tolerate_failure=True)
        grouped, skipped = classify_plugins(result.stdout, result.stderr)
        log_event("plugin_verify", returncode=result.returncode, plugins=len(grouped), skipped=len(skipped))

        for slug in skipped:
            self.console.warning(f"Could not retrieve the checksums for plugin {slug}, skipping.")
            self.run.skip_plugin(slug)
        for outcomes in grouped.values():
            for outcome in outcomes:
                self.console.log(outcome.describe(), _outcome_color(outcome))
        self.echo_messages(plugin_messages(result.stdout, result.stderr))

        self.check_missing_plugin_files(grouped)

        mismatched = {
            slug: [o for o in outcomes if o.reason is Reason.CHECKSUM_MISMATCH]
            for slug, outcomes in grouped.items()
        }
        diff_results = self.diff_plugins({s: m for s, m in mismatched.items() if m})

        for slug, outcomes in grouped.items():
            diffed = diff_results.get(slug)
            if diffed is not None:
                if diffed.console is not self.console:
                    diffed.console.flush_into(self.console)
                if diffed.skipped:
                    self.run.skip_plugin(slug)
                else:
                    self.run.record_all(diffed.outcomes)
            self.run.record_all(o for o in outcomes if o.reason is not Reason.CHECKSUM_MISMATCH)

    def check_missing_plugin_files(self, grouped: Dict[str, List[FileOutcome]]) -> None:
        """Catch files the plugin verifier doesn't report as missing.

        Adds MISSING outcomes to ``grouped``; plugins whose manifest can't be
        fetched are skipped for the rest of the run.
        """
        self.console.log("Checking for missing plugin files...")
        for plugin in self.list_plugins():
            slug = str(plugin.get("name") or "")
            status = plugin.get("status")
            if not slug or self.run.is_skipped(slug) or status not in CHECKED_PLUGIN_STATUSES:
                continue
            version = str(plugin.get("version") or "")

            manifest = fetch_manifest(self.session, slug, version, self.manifest_timeout)
            if manifest is None:
                self.console.warning(f"Could not fetch manifest for {slug} v{version}, skipping.")
                self.run.skip_plugin(slug)
                continue
            if not manifest.files:
                self.console.warning(f"No files found in manifest for {slug} v{version}, skipping.")
                self.run.skip_plugin(slug)
                continue

            plugin_dir = os.path.join(self.wp_path, WP_PLUGIN_DIR, slug)
            scope = plugin_scope(slug)
            for manifest_file in find_missing_files(plugin_dir, manifest):
                outcome = FileOutcome(scope, manifest_file, Reason.MISSING)
                grouped.setdefault(slug, []).append(outcome)
                self.console.log(f"File is missing {outcome.relative_path}", "red")

    def diff_plugins(self, mismatched: Dict[str, List[FileOutcome]]) -> Dict[str, PluginDiffResult]:
        # Resolve versions up front so worker threads never call WP-CLI.
        versions = {slug: self.plugin_version(slug) for slug in mismatched}
        if self.workers == 1 or len(mismatched) < 2:
            return {
                slug: self._diff_plugin(slug, versions[slug], outcomes, self.session, self.console)
                for slug, outcomes in mismatched.items()
            }

        consoles = {slug: self.console.child() for slug in mismatched}
        results: Dict[str, PluginDiffResult] = {}
        try:
            with ThreadPoolExecutor(max_workers=self.workers) as ex:
                futures = {
                    slug: ex.submit(self._diff_plugin_in_worker, slug, versions[slug], outcomes, consoles[slug])
                    for slug, outcomes in mismatched.items()
                }
                try:
                    # collect in enumeration order, not completion order
                    for slug, fut in futures.items():
                        results[slug] = fut.result()
                except BaseException:
                    for fut in futures.values():
                        fut.cancel()
                    raise
        except BaseException:
            # whatever the finished workers found is still shown
            for console in consoles.values():
                console.flush_into(self.console)
            raise
        return results

    def _diff_plugin_in_worker(
        self, slug: str, version: str, mismatches: List[FileOutcome], console: Console
    ) -> PluginDiffResult:
        with self.session_factory() as session:
            return self._diff_plugin(slug, version, mismatches, session, console)

    def _diff_plugin(
        self,
        slug: str,
        version: str,
        mismatches: List[FileOutcome],
        session: requests.Session,
        console: Console,
    ) -> PluginDiffResult:
        result = PluginDiffResult(slug=slug, console=console)
        official_dir = fetch_plugin(session, slug, version, self.workspace, self.download_timeout, console)
        if official_dir is None:
            result.skipped = True
            return result
        plugin_dir = os.path.join(self.wp_path, WP_PLUGIN_DIR, slug)
        result.outcomes = diff_files(mismatches, official_dir, plugin_dir, console)
        return result
