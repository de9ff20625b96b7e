import time
from typing import Optional

import requests

from .events import log_event
from .report import Report


def retry(
    func,
    *,
    retries: int,
    base_delay: float,
    max_delay: float,
    action: str,
    scope: Optional[str] = None,
    sleep=time.sleep,
):
    if retries < 1:
        raise ValueError(f"retries must be at least 1, got {retries}")
    delay = base_delay
    attempt = 0
    while True:
        attempt += 1
        try:
            return func()
        except Exception as e:
            log_event(action, result="error", scope=scope, attempt=attempt, error=str(e))
            if attempt >= retries:
                raise
        sleep(delay)
        delay = min(max_delay, delay * 2)


def send_push(
    session: requests.Session, kuma_url: str, token: str, *, status: str, msg: str, timeout_s: int
) -> None:
    url = f"{kuma_url}/api/push/{token}"
    params = {"status": status, "msg": msg}
    r = session.get(url, params=params, timeout=timeout_s)
    if r.status_code != 200:
        raise RuntimeError(f"push_http_{r.status_code}")
    data = r.json()
    if not isinstance(data, dict) or not data.get("ok"):
        raise RuntimeError(f"push_failed:{data}")


def push_report(
    session: requests.Session, kuma_url: str, token: str, report: Report, *, timeout_s: int = 15, sleep=time.sleep
) -> bool:
    """Push the run result to an Uptime Kuma push monitor. Never raises."""
    status = "up" if report.succeeded else "down"
    try:
        retry(
            lambda: send_push(session, kuma_url, token, status=status, msg=report.summary_message(), timeout_s=timeout_s),
            retries=3,
            base_delay=1,
            max_delay=10,
            action="kuma_push",
            sleep=sleep,
        )
    except Exception as e:
        log_event("kuma_push", result="error", error=str(e))
        return False
    log_event("kuma_push", status=status)
    return True
