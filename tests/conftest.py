import pytest

from fakes import FakeSession
from wpdiffcheck.events import Console, enable_events
from wpdiffcheck.fetcher import Workspace
from wpdiffcheck.report import VerificationRun


@pytest.fixture
def console():
    return Console(color=False)


@pytest.fixture
def run_state():
    return VerificationRun()


@pytest.fixture
def workspace(tmp_path):
    parent = tmp_path / "tmp"
    parent.mkdir()
    with Workspace(str(parent)) as ws:
        yield ws


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture(autouse=True)
def quiet_events():
    yield
    enable_events(False)
