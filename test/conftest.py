from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from index_helpers import GitIndexRemote


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--runintegration",
        action="store_true",
        default=False,
        help="run integration tests",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: mark test as an integration test")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--runintegration"):
        # --runintegration given in cli: do not skip integration tests
        return
    skip_integration = pytest.mark.skip(reason="need --runintegration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def git_index_remote(tmp_path: Path) -> GitIndexRemote:
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    remote = tmp_path / "remote"
    remote.mkdir()
    return GitIndexRemote(remote)
