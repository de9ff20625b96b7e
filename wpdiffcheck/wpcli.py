import subprocess
from dataclasses import dataclass
from typing import List

from .errors import FatalError
from .events import log_event


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    returncode: int


def run_wp(wpcli: str, path: str, args: List[str], timeout_s: int) -> CommandResult:
    r = subprocess.run(
        [wpcli] + args,
        cwd=path,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        timeout=timeout_s,
    )
    return CommandResult(r.stdout, r.stderr, r.returncode)


class WPCLI:
    """Runs WP-CLI subcommands against one WordPress root.

    Commands like ``core verify-checksums`` exit with status 1 when files fail
    verification; pass ``tolerate_failure=True`` for those. Anything above 1
    (out of memory, fatal PHP error) is a process-level failure and aborts the
    run, since WP-CLI does not report those on its own.
    """

    def __init__(self, wpcli: str, path: str, timeout_s: int, allow_root: bool = False):
        self.wpcli = wpcli
        self.path = path
        self.timeout_s = timeout_s
        self.allow_root = allow_root

    def run(self, args: List[str], tolerate_failure: bool = False) -> CommandResult:
        full_args = list(args)
        if self.allow_root:
            full_args.append("--allow-root")
        command = " ".join(args)
        try:
            result = run_wp(self.wpcli, self.path, full_args, self.timeout_s)
        except subprocess.TimeoutExpired:
            log_event("wp_command", result="error", command=command, error="wp_timeout")
            raise FatalError(f"wp_timeout:{command}")
        except OSError as e:
            log_event("wp_command", result="error", command=command, error=str(e))
            raise FatalError(f"wp_exec_failed:{command}:{e}")

        log_event("wp_command", command=command, returncode=result.returncode)
        if result.returncode == 0:
            return result
        if result.returncode == 1 and tolerate_failure:
            return result
        message = result.stderr.strip()
        message += f" (exit code: {result.returncode})"
        raise FatalError(message.strip(), exit_code=result.returncode if result.returncode > 1 else 2)
