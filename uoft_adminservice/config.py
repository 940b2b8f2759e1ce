"""
Configuration plumbing: where config files live, how they are merged,
and a pydantic-settings base class that pulls everything together.

Settings are sourced from (highest priority first):
- values passed in directly (ie. from command-line options)
- environment variables, prefixed with `UOFT_<APP_NAME>_`
- a `.env` file in the current working directory
- TOML config files named `shared.toml` or `<app_name>.toml`, found in the site config dir,
  then the cross-platform user config dir (`~/.config/uoft-tools`), then the OS-specific user config dir
"""

import inspect
import os
import sys
from functools import cached_property
from pathlib import Path
from types import GenericAlias, UnionType
from typing import Any, Callable, ClassVar, Optional, TypeVar, Union, get_args, get_origin

import pydantic
import tomli
from decorator import decorate
from platformdirs import PlatformDirs
from pydantic import model_validator
from pydantic_settings import (
    BaseSettings as PydanticBaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from . import logging
from .errors import ConfigError

logger = logging.getLogger(__name__)

S = TypeVar("S", bound="BaseSettings")
F = TypeVar("F", bound=Callable)


class Util:
    """
    Simplifies access to config files and cache directories for a given app
    """

    def __init__(self, app_name: str) -> None:
        self.app_name = app_name
        self.dirs = PlatformDirs("uoft-tools")
        # there should be one config path which is common to all OS platforms,
        # so that users who sync configs between multiple computers can sync
        # those configs to the same directory across machines and have it *just work*
        self.common_user_config_dir = Path.home() / ".config/uoft-tools"

    def get_env_var(self, property_: str) -> str | None:
        "fetches a namespaced environment variable, ex: `config_file` -> `UOFT_ADMINSERVICE_CONFIG_FILE`"
        property_ = property_.replace("-", "_").replace(".", "_")
        env_var_name = f"UOFT_{self.app_name}_{property_}".upper()
        res = os.environ.get(env_var_name)
        msg = f"Environment variable '{env_var_name}' for property '{property_}'"
        if res:
            logger.trace(f"{msg} is set to '{res}'")
        else:
            logger.trace(f"{msg} is not set")
        return res

    def config_dirs(self):
        """generate the folders in which to look for config files, from lowest to highest priority

        - the os-specific site config folder (/etc/xdg/uoft-tools on Linux),
          or the folder named by UOFT_<APP>_SITE_CONFIG
        - the cross-platform user config folder (~/.config/uoft-tools)
        - the os-specific user config folder, if different,
          or the folder named by UOFT_<APP>_USER_CONFIG
        """
        if custom_site_config := self.get_env_var("site_config"):
            yield Path(custom_site_config)
        else:
            yield self.dirs.site_config_path

        yield self.common_user_config_dir

        if custom_user_config := self.get_env_var("user_config"):
            yield Path(custom_user_config)
        elif (user_config := self.dirs.user_config_path) != self.common_user_config_dir:
            yield user_config

    def config_files(self):
        "generate candidate config files, which may or may not exist, from lowest to highest priority"
        for directory in self.config_dirs():
            for basename in ["shared", self.app_name]:
                yield directory / f"{basename}.toml"

    @cached_property
    def readable_config_files(self) -> list[Path]:
        files = [f for f in self.config_files() if f.is_file() and os.access(f, os.R_OK)]
        if custom_config_file := self.get_env_var("config_file"):
            path = Path(custom_config_file)
            if not path.is_file():
                raise ConfigError(f"Config file {path} does not exist")
            files.append(path)
        logger.trace(f"Readable config files: {files}")
        return files

    def merged_config(self) -> dict[str, Any]:
        "data from every readable config file, with higher-priority files overriding lower ones"
        data: dict[str, Any] = {}
        for file in self.readable_config_files:
            logger.debug(f"Loading config data from {file}")
            try:
                content = tomli.loads(file.read_text())
            except tomli.TOMLDecodeError as e:
                raise ConfigError(f"Failed to parse {file} as TOML: {e}") from e
            # shared.toml may hold settings for several apps, each in its own table
            if isinstance(content.get(self.app_name), dict):
                content = {**content, **content.pop(self.app_name)}
            data.update(content)
        return data

    @property
    def history_cache(self) -> Path:
        history = self.dirs.user_cache_path / self.app_name / "history"
        history.mkdir(parents=True, exist_ok=True)
        return history

    def _clear_caches(self):
        try:
            del self.readable_config_files
        except AttributeError:
            pass


class ConfigFileSettingsSource(PydanticBaseSettingsSource):
    "Lowest-priority settings source, backed by `Util.merged_config`"

    def __init__(self, settings_cls: type[PydanticBaseSettings], util: Util):
        super().__init__(settings_cls)
        self.util = util

    @cached_property
    def data(self) -> dict[str, Any]:
        return self.util.merged_config()

    def get_field_value(self, field, field_name: str) -> tuple[Any, str, bool]:
        return self.data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {k: v for k, v in self.data.items() if k in self.settings_cls.model_fields}


def _unwrap_optional(tp: Any) -> Any:
    # `X | None` -> `X`
    if get_origin(tp) in (Union, UnionType):
        args = [a for a in get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


class BaseSettings(PydanticBaseSettings):
    app_name: ClassVar[str | None] = None
    prompt_on_missing_values: ClassVar[bool] = True
    _instance: ClassVar[Any] = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs):
        super().__pydantic_init_subclass__(**kwargs)
        if not cls.app_name:
            raise TypeError("Subclasses of BaseSettings must set an app_name class variable")
        cls.model_config["env_prefix"] = f"UOFT_{cls.app_name.upper()}_"

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
            ConfigFileSettingsSource(settings_cls, cls._util()),
        )

    @classmethod
    def _load(cls: type[S], **kwargs) -> S:
        try:
            return cls(**kwargs)
        except pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ConfigError(f"Invalid {cls.app_name} settings: {problems}") from e

    @classmethod
    def _update_cache_instance(cls, **kwargs):
        cls._instance = cls._load(**kwargs)

    @classmethod
    def from_cache(cls: type[S]) -> S:
        # For each subclass of BaseSettings, this method should return an instance of that subclass
        with logging.Context(f"Settings(app_name={cls.app_name})"):
            if cls._instance is None:
                logger.debug("Loading settings")
                cls._instance = cls._load()
            else:
                logger.debug("Settings already loaded")
            return cls._instance

    @classmethod
    def _clear_cache(cls):
        cls._instance = None

    @classmethod
    def _util(cls) -> Util:
        return Util(cls.app_name)  # type: ignore

    @classmethod
    def _prompt(cls):
        # imported here to keep prompt_toolkit out of the import path of non-interactive callers
        from .prompt import Prompt

        return Prompt(cls._util().history_cache)

    @model_validator(mode="before")
    @classmethod
    def prompt_for_missing_values(cls, values: Any):
        if not isinstance(values, dict):
            return values
        missing_keys = [
            name for name, field in cls.model_fields.items() if field.is_required() and name not in values
        ]
        logger.debug(f"Missing keys: {missing_keys}")

        if not missing_keys:
            return values

        if not cls.prompt_on_missing_values:
            # Return values as is and let pydantic report validation errors on missing fields
            logger.debug("Prompting disabled for missing values")
            return values

        if not sys.stdin.isatty():
            logger.debug("Not in a terminal. Skipping interactive prompt for missing values")
            return values

        p = cls._prompt()
        for key in missing_keys:
            values[key] = p.get_string(key, cls.model_fields[key].description)
        return values

    @classmethod
    def wrap_typer_command(cls, func: F) -> F:
        """
        Expose every settings field as an option on a typer command.

        Options given on the command line replace the cached settings instance
        before the wrapped command runs.
        """
        # only makes sense in a typer app, so import it here
        import typer

        sig = inspect.signature(func)
        settings_parameters = []
        for field_name, field in cls.model_fields.items():
            type_ = _unwrap_optional(field.annotation)
            option = typer.Option(default=None, help=field.description)
            # keyword-only, so they can follow parameters without defaults (ie. `ctx: typer.Context`)
            param = inspect.Parameter(
                field_name,
                inspect.Parameter.KEYWORD_ONLY,
                default=option,
                annotation=Optional[type_],
            )
            settings_parameters.append(param)
        parameters = list(sig.parameters.values()) + settings_parameters
        func.__signature__ = sig.replace(parameters=parameters)  # type: ignore

        def _wrapper(f, *args, **kwargs):
            # pull the settings-related arguments out of the keyword arguments
            settings_kwargs = {}
            for param in settings_parameters:
                value = kwargs.pop(param.name, None)
                if value is None or isinstance(value, typer.models.ParameterInfo):
                    continue
                inner_type = get_args(param.annotation)[0]
                if type(inner_type) is GenericAlias:
                    inner_type = get_origin(inner_type)
                if inner_type is list and value == []:
                    continue
                settings_kwargs[param.name] = value

            if settings_kwargs:
                cls._update_cache_instance(**settings_kwargs)
            return f(*args, **kwargs)

        return decorate(func, _wrapper)  # type: ignore
