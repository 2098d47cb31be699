import logging
import os
import pathlib
import sys
from typing import Callable

import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import colourcanvas`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from colourcanvas.channel import LogEntry, MemoryChannel, MemoryChannelFactory  # noqa: E402
from colourcanvas.config import get_config_manager  # noqa: E402
from colourcanvas.model import Colour, Location, Mode  # noqa: E402
from colourcanvas.records import encode_canvas, encode_purchase, encode_vote  # noqa: E402


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: large-log tests (skipped unless COLOUR_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('COLOUR_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set COLOUR_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _reset_config():
    """The config manager is a process-wide singleton; start every test clean."""
    get_config_manager().reset()
    yield
    get_config_manager().reset()


@pytest.fixture(autouse=True)
def _detach_log_handlers():
    """Drop handlers installed by configure_logging so no test writes to a stale stream."""
    yield
    root = logging.getLogger("colourcanvas")
    for handler in list(root.handlers):
        if getattr(handler, "_colourcanvas", False):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


@pytest.fixture
def factory() -> MemoryChannelFactory:
    return MemoryChannelFactory()


@pytest.fixture
def add_vote() -> Callable[..., LogEntry]:
    def _add(channel: MemoryChannel, alias: str, location: Location, colour: Colour) -> LogEntry:
        return channel.append(alias, encode_vote(location, colour))
    return _add


@pytest.fixture
def add_purchase() -> Callable[..., LogEntry]:
    def _add(channel: MemoryChannel, alias: str, location: Location, colour: Colour, price: int) -> LogEntry:
        return channel.append(alias, encode_purchase(location, colour, price))
    return _add


@pytest.fixture
def add_canvas(factory: MemoryChannelFactory) -> Callable[..., LogEntry]:
    def _add(mode: Mode, name: str = "test", width: int = 8, height: int = 8, depth: int = 1) -> LogEntry:
        return factory.canvases().append("creator", encode_canvas(name, width, height, depth, mode))
    return _add
