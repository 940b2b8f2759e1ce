"""
This module serves as our own internal pytest plugin for this project.

It is not installed as part of the package. pytest loads it automatically because it sits at the root of the
repository. It adds an `integration` marker for tests which talk to a real AdminService, and an
`--integration` command-line option to opt in to running them.
"""
import os

import pytest

if os.getenv("VSCODE_DEBUGGER"):
    # set up hooks for VSCode debugger to break on exceptions
    @pytest.hookimpl(tryfirst=True)
    def pytest_exception_interact(call):
        raise call.excinfo.value

    @pytest.hookimpl(tryfirst=True)
    def pytest_internalerror(excinfo):
        raise excinfo.value


def pytest_addoption(parser: pytest.Parser, pluginmanager):
    """
    Adds configuration options to enable integration tests
    """
    del pluginmanager  # not needed in this context

    group = parser.getgroup("uoft-adminservice", "uoft-adminservice options")

    group.addoption(
        "--integration",
        action="store_const",
        default=False,
        const=True,
        dest="run_integration",
        help="Run integration tests against a live AdminService (disabled by default)",
    )
    group.addoption(
        "--no-integration",
        action="store_const",
        const=False,
        dest="run_integration",
        help="Do not run integration tests (default)",
    )


def pytest_configure(config: pytest.Config):
    config.addinivalue_line("markers", "integration: mark test to run after unit tests are complete")
    config.addinivalue_line("markers", "app_name(name): settings app name to mock config folders for")


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(session, config, items: list[pytest.Item]):
    """
    Sorts the items; unit test first, then integration tests.
    """
    del session, config
    items.sort(key=lambda item: 1 if item.get_closest_marker("integration") else 0)


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_setup(item: pytest.Item):
    """
    Skips integration tests unless they were asked for on the command line or through
    the RUN_ALL_TESTS environment variable
    """
    if os.getenv("RUN_ALL_TESTS") or os.getenv("VSCODE_DEBUGGER"):
        return

    if item.get_closest_marker("integration"):
        if item.config.getoption("run_integration") in (None, True):
            return
        pytest.skip("Integration tests skipped")
