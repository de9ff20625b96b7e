import subprocess

import pytest

import wpdiffcheck.wpcli as wpcli
from wpdiffcheck.errors import FatalError
from wpdiffcheck.wpcli import WPCLI, CommandResult


@pytest.fixture
def fake_run(monkeypatch):
    calls = []
    results = []

    def run_wp(binary, path, args, timeout_s):
        calls.append((binary, path, args, timeout_s))
        result = results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(wpcli, "run_wp", run_wp)
    return calls, results


def test_success_and_allow_root(fake_run):
    calls, results = fake_run
    results.append(CommandResult("6.4.2\n", "", 0))
    wp = WPCLI("/usr/local/bin/wp", "/var/www", 60, allow_root=True)
    assert wp.run(["core", "version"]).stdout == "6.4.2\n"
    assert calls == [("/usr/local/bin/wp", "/var/www", ["core", "version", "--allow-root"], 60)]


def test_verification_failure_status_is_tolerated_when_asked(fake_run):
    _, results = fake_run
    results.append(CommandResult("", "Warning: File doesn't verify against checksum: x.php", 1))
    assert WPCLI("wp", "/var/www", 60).run(["core", "verify-checksums"], tolerate_failure=True).returncode == 1

    results.append(CommandResult("", "Error: nope", 1))
    with pytest.raises(FatalError) as exc:
        WPCLI("wp", "/var/www", 60).run(["core", "version"])
    assert exc.value.exit_code == 2


def test_process_failure_keeps_its_status(fake_run):
    _, results = fake_run
    results.append(CommandResult("", "PHP Fatal error: Allowed memory size exhausted\n", 255))
    with pytest.raises(FatalError) as exc:
        WPCLI("wp", "/var/www", 60).run(["core", "verify-checksums"], tolerate_failure=True)
    assert exc.value.exit_code == 255
    assert str(exc.value) == "PHP Fatal error: Allowed memory size exhausted (exit code: 255)"


def test_timeout_and_missing_binary_are_fatal(fake_run):
    _, results = fake_run
    results.append(subprocess.TimeoutExpired(["wp"], 60))
    with pytest.raises(FatalError, match="wp_timeout:core verify-checksums"):
        WPCLI("wp", "/var/www", 60).run(["core", "verify-checksums"])
    results.append(FileNotFoundError(2, "No such file or directory"))
    with pytest.raises(FatalError, match="wp_exec_failed"):
        WPCLI("wp", "/var/www", 60).run(["core", "version"])
