import pytest

from wpdiffcheck.events import Console
from wpdiffcheck.outcome import CORE, FileOutcome, Reason, plugin_scope
from wpdiffcheck.report import VerificationRun, matches_ignore, render_summary

AKISMET = plugin_scope("akismet")


def mismatch(scope, path):
    return FileOutcome(scope, path, Reason.CHECKSUM_MISMATCH)


def test_no_diff_never_reaches_failure_list():
    run = VerificationRun()
    run.record(mismatch(CORE, "wp-settings.php").refine(Reason.NO_DIFF))
    report = run.freeze()
    assert report.entries == ()
    assert len(report.suppressed) == 1
    assert report.succeeded
    assert report.exit_code == 0


def test_unrefined_checksum_mismatch_is_rejected():
    with pytest.raises(ValueError):
        VerificationRun().record(mismatch(CORE, "wp-settings.php"))


def test_same_key_reported_once_in_first_position():
    run = VerificationRun()
    run.record(FileOutcome(AKISMET, "readme.txt", Reason.OTHER, "File is weird"))
    run.record(FileOutcome(CORE, "wp-login.php", Reason.MISSING))
    run.record(FileOutcome(AKISMET, "readme.txt", Reason.MISSING))
    report = run.freeze()
    assert [(e.relative_path, e.message) for e in report.entries] == [
        ("wp-content/plugins/akismet/readme.txt", "File doesn't exist"),
        ("wp-login.php", "File doesn't exist"),
    ]


def test_ignore_is_substring_of_full_relative_path():
    assert matches_ignore("wp-content/plugins/akismet/akismet.php", ["plugins/akis"])
    assert not matches_ignore("wp-config.php", ["akismet"])
    assert not matches_ignore("wp-config.php", [""])


def test_ignored_failures_do_not_decide(console, capsys):
    run = VerificationRun(ignored_patterns=("akismet",))
    run.record(mismatch(AKISMET, "akismet.php").refine(Reason.DIFF_FOUND))
    report = run.freeze()
    assert report.succeeded
    render_summary(report, console)
    out = capsys.readouterr().out
    assert "Checks failed for the following files:" in out
    assert "wp-content/plugins/akismet/akismet.php (Differences found, ignored)" in out
    assert "Success: All files passed verification." in out


def test_run_fails_unless_every_failure_is_ignored(console, capsys):
    run = VerificationRun(ignored_patterns=("akismet",))
    run.record(mismatch(AKISMET, "akismet.php").refine(Reason.DIFF_FOUND))
    run.record(FileOutcome(CORE, "wp-admin/shell.php", Reason.ADDED))
    report = run.freeze()
    assert report.exit_code == 1
    assert [e.relative_path for e in report.failures] == ["wp-admin/shell.php"]
    render_summary(report, console)
    out = capsys.readouterr().out
    assert "wp-admin/shell.php (File was added)" in out
    assert "Success:" not in out


def test_skipped_plugins_listed_separately_and_never_fail(console, capsys):
    run = VerificationRun()
    run.skip_plugin("premium-thing")
    run.skip_plugin("premium-thing")
    report = run.freeze()
    assert report.skipped_plugins == ("premium-thing",)
    assert report.succeeded
    render_summary(report, console)
    out = capsys.readouterr().out
    assert "Checks were skipped for the following plugins:\npremium-thing\n" in out
    assert "Checks failed for the following files:" not in out


def test_colorized_summary(capsys):
    run = VerificationRun()
    run.record(FileOutcome(CORE, "wp-login.php", Reason.MISSING))
    render_summary(run.freeze(), Console(color=True))
    out = capsys.readouterr().out
    assert "\x1b[31mwp-login.php (File doesn't exist)\x1b[0m" in out


def test_run_entries_include_ignored_files_until_the_report_filters_them():
    run = VerificationRun(ignored_patterns=("shell.php",))
    run.record(FileOutcome(CORE, "wp-admin/shell.php", Reason.ADDED))
    run.record(FileOutcome(CORE, "wp-login.php", Reason.MISSING))
    assert [o.path for o in run.entries.values()] == ["wp-admin/shell.php", "wp-login.php"]
    report = run.freeze()
    assert [e.path for e in report.failures] == ["wp-login.php"]
    assert [e.path for e in report.ignored] == ["wp-admin/shell.php"]
