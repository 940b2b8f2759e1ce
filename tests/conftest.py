from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING
import logging

import pytest
from platformdirs import PlatformDirs

from . import MockFolders, ScriptedSession, make_api

if TYPE_CHECKING:
    from pytest_mock import MockerFixture
    from _pytest.monkeypatch import MonkeyPatch


@pytest.fixture
def api():
    "An AdminServiceAPI whose requests are answered by a CannedAdapter (api.adapter)"
    with make_api() as api:
        yield api


@pytest.fixture
def answers(monkeypatch: "MonkeyPatch", tmp_path: Path) -> deque:
    """
    Replace prompt_toolkit's PromptSession with a scripted one.

    Append the answers each prompt should receive, in order, to the returned deque.
    """
    script: deque = deque()
    monkeypatch.setattr(ScriptedSession, "answers", script)
    monkeypatch.setattr(ScriptedSession, "asked", [])
    monkeypatch.setattr("uoft_adminservice.prompt.PromptSession", ScriptedSession)
    monkeypatch.setattr("uoft_adminservice.prompt.output", lambda: None)
    return script


@pytest.fixture
def prompt(answers):
    from uoft_adminservice.prompt import Prompt

    return Prompt(None)


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: "MonkeyPatch"):
    "make sure no settings leak in from the environment running the tests, or between tests"
    import os
    from uoft_adminservice import Settings

    for k in list(os.environ):
        if k.startswith("UOFT_ADMINSERVICE_"):
            monkeypatch.delenv(k)
    monkeypatch.setattr(Settings, "prompt_on_missing_values", False)
    Settings._clear_cache()
    yield
    Settings._clear_cache()


@pytest.fixture
def mock_folders(tmp_path: Path, mocker: "MockerFixture", monkeypatch: "MonkeyPatch", request):
    marker = request.node.get_closest_marker("app_name")
    app_name = marker.args[0] if marker else "adminservice"

    # point every config and cache location at predictable, empty folders under tmp_path,
    # regardless of platform or of any real config files on the machine running the tests
    folders = MockFolders(tmp_path, app_name)
    mocker.patch.object(PlatformDirs, "site_config_path", folders.site_config)
    mocker.patch.object(PlatformDirs, "user_config_path", folders.os_user_config)
    mocker.patch.object(PlatformDirs, "user_cache_path", folders.user_cache)
    mocker.patch.object(Path, "home", return_value=folders.home)
    monkeypatch.chdir(tmp_path)  # keep any real .env file out of the picture
    yield folders


@pytest.fixture
def caplog(caplog: "pytest.LogCaptureFixture"):
    "capture everything, including TRACE"
    caplog.set_level(0)
    logging.addLevelName(5, "TRACE")
    yield caplog


