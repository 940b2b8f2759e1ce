import json
from collections import defaultdict, deque
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

from requests import PreparedRequest, Response
from requests.adapters import BaseAdapter

from uoft_adminservice.api import AdminServiceAPI

SERVER = "sccm.example.com"
BASE_URL = f"https://{SERVER}/AdminService/wmi"


class CannedAdapter(BaseAdapter):
    """
    A requests transport adapter which answers from canned responses instead of the network.

    Responses are queued per WMI class and handed out in order. Every request sent
    through the adapter is recorded, so tests can assert on URLs and call counts.
    """

    def __init__(self) -> None:
        super().__init__()
        self.queues: dict[str, deque] = defaultdict(deque)
        self.requests: list[PreparedRequest] = []

    def add(self, wmi_class: str, rows=None, *, status: int = 200, body: bytes | str | None = None, exc=None):
        "queue one response for `wmi_class`. `rows` becomes the `value` array of a JSON body"
        if body is None and exc is None:
            payload = {"@odata.context": f"{BASE_URL}/$metadata#{wmi_class}", "value": rows or []}
            body = json.dumps(payload)
        if isinstance(body, str):
            body = body.encode()
        self.queues[wmi_class].append((status, body, exc))

    def send(self, request: PreparedRequest, **kwargs) -> Response:
        self.requests.append(request)
        wmi_class = urlsplit(request.url).path.rstrip("/").rpartition("/")[2]
        if not self.queues[wmi_class]:
            raise AssertionError(f"Unexpected request, nothing queued for {wmi_class}: {request.url}")
        status, body, exc = self.queues[wmi_class].popleft()
        if exc is not None:
            raise exc
        response = Response()
        response.status_code = status
        response.reason = {200: "OK", 401: "Unauthorized", 403: "Forbidden", 404: "Not Found"}.get(
            status, "Error"
        )
        response._content = body
        response.headers["Content-Type"] = "application/json; odata.metadata=minimal"
        response.encoding = "utf-8"
        response.url = request.url  # type: ignore
        response.request = request
        return response

    def close(self):
        pass

    # helpers for inspecting what was sent
    def params(self, index: int = -1) -> dict[str, str]:
        query = urlsplit(self.requests[index].url).query
        return {k: v[0] for k, v in parse_qs(query).items()}

    def classes(self) -> list[str]:
        return [urlsplit(r.url).path.rpartition("/")[2] for r in self.requests]


class FakeAPI(AdminServiceAPI):
    adapter: CannedAdapter


def make_api(**kwargs) -> FakeAPI:
    api = AdminServiceAPI(SERVER, site_code="PS1", **kwargs)
    adapter = CannedAdapter()
    # longer prefixes win, so this takes precedence over the TLS adapter mounted on https://
    api.mount(f"https://{SERVER}/", adapter)
    api.adapter = adapter  # type: ignore
    return api  # type: ignore


class ScriptedSession:
    """
    Stands in for prompt_toolkit's PromptSession. Answers prompts from a shared script,
    and records every message it was asked.
    """

    answers: deque = deque()
    asked: list[str] = []

    def __init__(self, **kwargs) -> None:
        pass

    def prompt(self, message=None, **kwargs):
        text = "".join(fragment[1] for fragment in message) if message else ""
        type(self).asked.append(text)
        if not type(self).answers:
            raise AssertionError(f"Unexpected prompt: {text!r}")
        answer = type(self).answers.popleft()
        if isinstance(answer, BaseException) or (isinstance(answer, type) and issubclass(answer, BaseException)):
            raise answer
        return answer


class MockFolders:
    def __init__(self, tmp_path: Path, app_name: str) -> None:
        self.root = tmp_path
        self.site_config = tmp_path / "etc/xdg/uoft-tools"
        self.home = tmp_path / "home/user"
        self.user_config = self.home / ".config/uoft-tools"
        self.os_user_config = self.home / "Library/Preferences/uoft-tools"
        self.user_cache = self.home / ".cache/uoft-tools"
        for d in (self.site_config, self.user_config, self.os_user_config, self.user_cache):
            d.mkdir(parents=True)
        self.site_toml = self.site_config / f"{app_name}.toml"
        self.user_toml = self.user_config / f"{app_name}.toml"
        self.shared_user_toml = self.user_config / "shared.toml"
