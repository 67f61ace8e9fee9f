import asyncio
import importlib
import inspect
import os
from pathlib import Path
import sys
from collections.abc import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

override_runtime_env = importlib.import_module("cadence.config").override_runtime_env
reset_engine_for_tests = importlib.import_module("cadence.db").reset_engine_for_tests


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    marker = pyfuncitem.get_closest_marker("asyncio")
    if marker is None:
        return None
    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None
    fixtureinfo = getattr(pyfuncitem, "_fixtureinfo", None)
    if fixtureinfo is None:
        return None
    kwargs = {name: pyfuncitem.funcargs[name] for name in fixtureinfo.argnames}
    asyncio.run(test_func(**kwargs))
    return True


@pytest.fixture(autouse=True)
def _test_environment(tmp_path: Path) -> Iterator[None]:
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "cadence.db"

    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    os.environ["LOCAL_PROVIDER_NAME"] = "Test device"
    os.environ.pop("DB_RESET", None)

    override_runtime_env(None)
    reset_engine_for_tests()
    try:
        yield
    finally:
        reset_engine_for_tests()
        override_runtime_env(None)
