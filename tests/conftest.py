import logging
import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import dauth`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from dauth.auth import AuthenticatedCaller  # noqa: E402
from dauth.config import DAuthConfig, get_config_manager  # noqa: E402
from dauth.contract import AuthenticationContract  # noqa: E402
from dauth.storage import InMemoryStore, SqliteStore  # noqa: E402


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    run_slow = _env_flag('DAUTH_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set DAUTH_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Fresh config singleton, no DAUTH_* overrides, no leftover log handlers."""
    for name in list(os.environ):
        if name.startswith('DAUTH_'):
            monkeypatch.delenv(name)
    get_config_manager().reset()
    yield
    get_config_manager().reset()
    root = logging.getLogger('dauth')
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True


@pytest.fixture
def store():
    s = InMemoryStore()
    yield s
    s.close()


@pytest.fixture(params=['memory', 'sqlite'])
def any_store(request, tmp_path):
    """Each storage adapter in turn."""
    if request.param == 'memory':
        s = InMemoryStore()
    else:
        s = SqliteStore(tmp_path / 'dauth.db')
    yield s
    s.close()


@pytest.fixture
def config():
    return DAuthConfig()


@pytest.fixture
def contract(any_store, config):
    return AuthenticationContract(store=any_store, config=config)


@pytest.fixture
def vendor():
    return AuthenticatedCaller('vendor')


@pytest.fixture
def ork():
    return AuthenticatedCaller('orknode1')


@pytest.fixture
def other_ork():
    return AuthenticatedCaller('orknode2')
