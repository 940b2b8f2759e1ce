from importlib.metadata import version, PackageNotFoundError
from pathlib import Path
import re
from typing import ClassVar

from pydantic import Field, field_validator

from .config import BaseSettings

# All of our projects are distributed as packages, so we can use the importlib.metadata
# module to get the version of the package.
assert __package__
try:
    __version__ = version(__package__)
except PackageNotFoundError:
    __version__ = "0.0.0"


class Settings(BaseSettings):
    """Settings for the adminservice application."""

    app_name: ClassVar[str] = "adminservice"

    server: str = Field(
        description="Hostname (or base URL) of the SMS Provider hosting the AdminService.",
    )
    site_code: str = Field(
        description="Three-character Configuration Manager site code.",
    )
    api_root: str = Field(
        "AdminService/wmi",
        description="Path of the AdminService WMI route, relative to the server.",
    )
    verify: bool = Field(
        True,
        description="Verify the server's TLS certificate.",
    )
    ca_bundle: Path | None = Field(
        None,
        description="CA bundle to verify the server's TLS certificate against, instead of the system store.",
    )
    timeout: float | None = Field(
        None,
        description="Seconds to wait for the AdminService to respond. Unset means wait indefinitely.",
    )

    @field_validator("site_code")
    @classmethod
    def _validate_site_code(cls, value: str) -> str:
        value = value.strip().upper()
        if not re.fullmatch(r"[A-Z0-9]{3}", value):
            raise ValueError(f"site code must be three letters or digits, got '{value}'")
        return value

    @property
    def tls_verify(self) -> bool | str:
        "value for requests' `verify` parameter"
        if self.verify and self.ca_bundle:
            return str(self.ca_bundle)
        return self.verify


def settings() -> Settings:
    return Settings.from_cache()
