import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import purememo`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless PUREMEMO_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('PUREMEMO_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set PUREMEMO_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _fresh_state(monkeypatch):
    """Every test starts with an empty global registry and default config."""
    from purememo.config import get_config_manager
    from purememo.observability import configure_logging
    from purememo.registry import CacheRegistry

    for name in list(os.environ):
        if name.startswith('PUREMEMO_') and name != 'PUREMEMO_RUN_SLOW':
            monkeypatch.delenv(name)

    CacheRegistry.reset_instance()
    get_config_manager().reset()
    configure_logging()
    yield
    CacheRegistry.reset_instance()
    get_config_manager().reset()
    configure_logging()
