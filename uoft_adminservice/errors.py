class AdminServiceError(Exception):
    "Base class for every error this application raises and reports at the menu loop"

    def describe(self) -> str:
        "one-line, human-readable rendering used by the interaction loop"
        return f"{self.__class__.__name__}: {self}"


class ConfigError(AdminServiceError):
    pass


class ValidationError(AdminServiceError):
    "User-supplied search text was empty or whitespace-only"


class SelectionError(AdminServiceError):
    "Invalid answer at the mode menu or the disambiguation menu"


class TransportError(AdminServiceError):
    "The request never produced an HTTP response (DNS, connection, TLS, timeout)"


class AuthError(AdminServiceError):
    "The service rejected our credentials (HTTP 401 / 403)"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ServiceError(AdminServiceError):
    "Any other non-2xx response, or a response body we could not decode"

    def __init__(self, message: str, status_code: int | None = None, data=None):
        super().__init__(message)
        self.status_code = status_code
        self.data = data
