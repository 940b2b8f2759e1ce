"""
REST API wrapper for the ConfigMgr AdminService, the OData facade over the SMS Provider's WMI classes
"""

from typing import Any, Sequence, TYPE_CHECKING
import ssl

import requests
import urllib3
from requests import Session, Response
from requests.adapters import HTTPAdapter
from urllib3.util.ssl_ import create_urllib3_context
from typing_extensions import Self
from yarl import URL

from . import logging
from .errors import AuthError, ServiceError, TransportError
from .odata import Row, build_query_string

if TYPE_CHECKING:
    from . import Settings

logger = logging.getLogger(__name__)

AUTH_FAILURE_CODES = {401, 403}


class TLS12Adapter(HTTPAdapter):
    """An HTTPAdapter which refuses to negotiate anything older than TLS 1.2.

    Mounted on a session at construction time, so the protocol floor is a property of that one
    HTTP client instance rather than process-wide state.
    """

    def _ssl_context(self) -> ssl.SSLContext:
        ctx = create_urllib3_context()
        ctx.minimum_version = ssl.TLSVersion.TLSv1_2
        return ctx

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context()
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context()
        return super().proxy_manager_for(*args, **kwargs)


class APIBase(Session):
    """A Requests session with a base URL.

    Provides cookie persistence, connection-pooling, and configuration.
    Every request made through this session is relative to the API root, and every
    non-2xx response is raised as an `AuthError` or `ServiceError`. Failures to get a response
    at all are raised as `TransportError`.

    Args:
        base_url (str): The base URL of the REST API server. May be a bare hostname.
        api_root (str, optional): The root path of the REST API, relative to the base URL. Defaults to ''.
        verify (bool | str, optional): TLS certificate verification, or a path to a CA bundle.

    Example:

        >>> with APIBase('https://<rest-api-server>/', 'api/v1') as s:
        ...     s.get('records')
        <Response [200]>
    """

    # Convenience feature: attach common error types to the class, so that operations which only have a handle to
    # an APIBase instance can still access these error types without having to import them
    AuthError = AuthError
    ServiceError = ServiceError
    TransportError = TransportError

    def __init__(self, base_url: str, api_root: str = "", verify: bool | str = True):
        super().__init__()
        # base_url may be a bare hostname, or a full URL (ie 'https://hostname')
        if "://" not in base_url:
            base_url = f"https://{base_url}"
        url = URL(base_url)
        self.url = url
        self.api_url = self.safe_append_path(url, api_root)
        self.hooks["response"].append(self.handle_errors)
        self.verify = verify
        if not self.verify:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def safe_append_path(self, url: URL, path: str) -> URL:
        # yarl.URL refuses to join an absolute path onto a URL, and most REST APIs document
        # their paths with a leading slash, so strip it before joining
        path = path.strip("/")
        if not path:
            return url
        return url / path

    def handle_errors(self, response: Response, *args, **kwargs):
        if response.ok:
            return response
        try:
            data = response.json()
        except ValueError:
            data = response.text
        msg = f"{response.status_code} {response.reason}: {response.request.method} {response.url}"
        if response.status_code in AUTH_FAILURE_CODES:
            raise AuthError(msg, status_code=response.status_code)
        raise ServiceError(f"{msg} - {data}" if data else msg, status_code=response.status_code, data=data)

    def login(self):
        # login is called in __enter__, so it must not require any parameters.
        # The AdminService authenticates every request with the caller's ambient credentials,
        # so there is no session to establish.
        pass

    def logout(self):
        pass

    def __enter__(self) -> Self:
        self.login()
        return super().__enter__()

    def __exit__(self, *args):
        self.logout()
        return super().__exit__(*args)

    def request(self, method: str | bytes, url: URL | str | bytes, *args, **kwargs) -> Any:
        # If the URL is a string, join it with the api URL
        if isinstance(url, str):
            url = self.safe_append_path(self.api_url, url)

        # convert URL to string before passing it on to the super class
        url = str(url)
        try:
            return super().request(method, url, *args, **kwargs)
        except requests.exceptions.SSLError as e:
            raise TransportError(f"TLS failure talking to {self.url.host}: {e}") from e
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Timed out talking to {self.url.host}: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Could not connect to {self.url.host}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e


class AdminServiceAPI(APIBase):
    """Query client for the AdminService WMI route.

    `query` issues one authenticated GET per call. There are no retries and no caching.
    """

    def __init__(
        self,
        server: str,
        site_code: str | None = None,
        api_root: str = "AdminService/wmi",
        verify: bool | str = True,
        timeout: float | None = None,
        auth=None,
    ):
        super().__init__(server, api_root, verify)
        self.site_code = site_code
        self.timeout = timeout
        # No credentials come from configuration. Unless an auth handler is injected,
        # requests falls back to the environment (ie ~/.netrc) via trust_env.
        if auth is not None:
            self.auth = auth
        self.mount("https://", TLS12Adapter())
        self.headers.update({"Accept": "application/json"})

    def class_url(self, wmi_class: str, filter: str | None = None, select: Sequence[str] | None = None) -> URL:
        url = self.safe_append_path(self.api_url, wmi_class)
        query_string = build_query_string(filter, select)
        if query_string:
            # build_query_string has already percent-encoded everything,
            # so tell yarl to leave it alone
            url = URL(f"{url}?{query_string}", encoded=True)
        return url

    def query(self, wmi_class: str, filter: str | None = None, select: Sequence[str] | None = None) -> list[Row]:
        """
        Fetch rows of `wmi_class`, optionally filtered by an OData boolean expression and
        projected onto the `select` fields.

        The filter is passed through as-is. Any string values interpolated into it must
        already be escaped with `odata.escape_literal`.
        """
        url = self.class_url(wmi_class, filter, select)
        logger.debug(f"GET {url}")
        response = self.get(url, timeout=self.timeout)
        rows = self.decode_rows(response)
        logger.trace(f"{wmi_class}: {len(rows)} row(s) returned")
        return rows

    @staticmethod
    def decode_rows(response: Response) -> list[Row]:
        try:
            body = response.json()
        except ValueError as e:
            raise ServiceError(
                f"Response from {response.url} is not valid JSON", status_code=response.status_code
            ) from e
        if not isinstance(body, dict):
            raise ServiceError(
                f"Expected a JSON object from {response.url}, got {type(body).__name__}",
                status_code=response.status_code,
                data=body,
            )
        rows = body.get("value")
        if rows is None:
            return []
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise ServiceError(
                f"Expected 'value' from {response.url} to be a list of objects",
                status_code=response.status_code,
                data=body,
            )
        return rows

    @classmethod
    def from_settings(cls, settings: "Settings") -> "AdminServiceAPI":
        return cls(
            settings.server,
            site_code=settings.site_code,
            api_root=settings.api_root,
            verify=settings.tls_verify,
            timeout=settings.timeout,
        )
