import os
import typing as tp

import pytest

from courier import default_store, override, registry


def _courier_messages(caplog: pytest.LogCaptureFixture, *loggers: str) -> tp.List[str]:
    """Messages logged by the given courier loggers, in the order they were emitted."""
    names = loggers or ("courier.dispatch", "courier.cache")
    return [record.getMessage() for record in caplog.records if record.name in names]


@pytest.fixture()
def use_temp_dir(tmpdir):
    cur_dir = os.getcwd()
    os.chdir(tmpdir)
    yield
    os.chdir(cur_dir)


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_courier():
    with override(poll_interval=0.01):
        yield
    default_store().clear()
    registry.clear()


@pytest.fixture()
def courier_messages(caplog: pytest.LogCaptureFixture) -> tp.Callable[..., tp.List[str]]:
    return lambda *loggers: _courier_messages(caplog, *loggers)
