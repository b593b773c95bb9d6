import logging
import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import memokit`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "perf: performance/benchmark tests (skipped unless MEMOKIT_RUN_PERF=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    run_perf = _env_flag('MEMOKIT_RUN_PERF')

    for item in items:
        if 'perf' in item.keywords and not run_perf:
            item.add_marker(pytest.mark.skip(reason='perf tests skipped; set MEMOKIT_RUN_PERF=1 to enable'))


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Fresh configuration with no MEMOKIT_* overrides for every test."""
    from memokit.config import get_config_manager

    for name in list(os.environ):
        if name.startswith("MEMOKIT_") and name != "MEMOKIT_RUN_PERF":
            monkeypatch.delenv(name, raising=False)

    mgr = get_config_manager()
    mgr.reset()
    yield mgr
    mgr.reset()


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1_000.0, step: float = 0.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ticking_clock() -> FakeClock:
    """Clock that moves forward 1ms on every read."""
    return FakeClock(step=1.0)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers installed by configure_logging during a test."""
    yield
    from memokit.observability import ROOT_LOGGER_NAME, StructuredHandler

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if isinstance(handler, StructuredHandler):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
