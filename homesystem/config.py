"""Loading of service configuration files from YAML and the environment."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

log = logging.getLogger(__name__)

LOCAL_CONFIG_PATH = "configs/config-local.yaml"

_KEYCLOAK_KEYS = ("realm", "clientId", "clientSecret", "host")


class ConfigError(Exception):
    """Raised when a configuration cannot be located, read or validated."""


def read_yaml(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Read a YAML file whose top level is a mapping; an empty file gives {}."""
    try:
        with open(path, encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigError(f"cannot read configs: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot read configs: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"cannot read configs: {path} does not hold a mapping")
    return data


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"section {key!r} must be a mapping")
    return value


def _text(section: Mapping[str, Any], key: str) -> str:
    value = section.get(key)
    if value is None:
        return ""
    if isinstance(value, (Mapping, list)):
        raise ConfigError(f"field {key!r} must be a scalar")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _integer(section: Mapping[str, Any], key: str) -> int:
    value = section.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"field {key!r} must be an integer, got {value!r}")
    return value


def _strings(section: Mapping[str, Any], key: str) -> list[str]:
    value = section.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"field {key!r} must be a list")
    if any(isinstance(item, (Mapping, list)) for item in value):
        raise ConfigError(f"field {key!r} must hold scalars only")
    return [str(item) for item in value]


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


@dataclass
class BotCoreConfig:
    """Settings of the bot core service."""

    server_port: int = 0
    server_name: str = ""
    bot_token: str = ""
    commands_to_init: list[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BotCoreConfig":
        server = _section(data, "server")
        telegram = _section(data, "telegram")
        return cls(
            server_port=_integer(server, "port"),
            server_name=_text(server, "name"),
            bot_token=_text(telegram, "botToken"),
            commands_to_init=_strings(telegram, "commandsToInit"),
        )


@dataclass
class NoteBackendConfig:
    """Settings of the note backend service."""

    server_port: str = ""
    server_name: str = ""
    db_host: str = ""
    db_username: str = ""
    db_password: str = ""
    db_name: str = ""
    db_dialect: str = ""
    db_port: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "NoteBackendConfig":
        server = _section(data, "server")
        database = _section(data, "database")
        return cls(
            server_port=_text(server, "port"),
            server_name=_text(server, "name"),
            db_host=_text(database, "host"),
            db_username=_text(database, "userName"),
            db_password=_text(database, "password"),
            db_name=_text(database, "dataBaseName"),
            db_dialect=_text(database, "dialect"),
            db_port=_text(database, "port"),
        )


@dataclass(frozen=True)
class _Database:
    name: str
    user: str
    password: str
    directory_name: str = ""


@dataclass
class MigratorConfig:
    """Settings of the schema migrator: a server URL and the databases to migrate."""

    db_url: str
    databases: list[_Database] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MigratorConfig":
        app = _section(data, "app")
        db_url = _text(app, "dbUrl")
        if not db_url:
            raise ConfigError("field 'dbUrl' (DB_URL) is required")
        entries = data.get("databases") or []
        if not isinstance(entries, list):
            raise ConfigError("field 'databases' must be a list")
        databases = []
        for entry in entries:
            if not isinstance(entry, Mapping):
                raise ConfigError("each database entry must be a mapping")
            values = {key: _text(entry, key) for key in ("name", "user", "password")}
            missing = [key for key, value in values.items() if not value]
            if missing:
                raise ConfigError(f"database entry misses required fields: {', '.join(missing)}")
            databases.append(_Database(directory_name=_text(entry, "directoryName"), **values))
        return cls(db_url=db_url, databases=databases)


@dataclass
class ServiceConfig:
    """Settings shared by the HTTP services: server, database and optional Keycloak."""

    server_port: int = 0
    server_name: str = ""
    db_host: str = ""
    db_username: str = ""
    db_password: str = ""
    db_name: str = ""
    db_dialect: str = ""
    db_port: str = ""
    keycloak_realm: str = ""
    keycloak_client_id: str = ""
    keycloak_client_secret: str = ""
    keycloak_host: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ServiceConfig":
        server = _section(data, "server")
        database = _section(data, "database")
        keycloak = _section(data, "keycloak")
        keycloak_values = {
            f"keycloak_{_snake_case(key)}": _text(keycloak, key) for key in _KEYCLOAK_KEYS
        }
        return cls(
            server_port=_integer(server, "port"),
            server_name=_text(server, "name"),
            db_host=_text(database, "host"),
            db_username=_text(database, "userName"),
            db_password=_text(database, "password"),
            db_name=_text(database, "dataBaseName"),
            db_dialect=_text(database, "dialect"),
            db_port=_text(database, "port"),
            **keycloak_values,
        )


@dataclass
class TelegramBackendConfig:
    """Settings of the telegram bot backend."""

    bot_token: str = ""
    commands_to_init: list[str] = field(default_factory=list)
    auth_server_url: str = ""
    note_backend_url: str = ""
    db_host: str = ""
    db_username: str = ""
    db_password: str = ""
    db_name: str = ""
    db_dialect: str = ""
    db_impl: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TelegramBackendConfig":
        server = _section(data, "server")
        database = _section(data, "database")
        return cls(
            bot_token=_text(server, "botToken"),
            commands_to_init=_strings(server, "commandsToInit"),
            auth_server_url=_text(server, "authServerUrl"),
            note_backend_url=_text(server, "noteBackendUrl"),
            db_host=_text(database, "host"),
            db_username=_text(database, "user"),
            db_password=_text(database, "password"),
            db_name=_text(database, "dataBaseName"),
            db_dialect=_text(database, "dialect"),
            db_impl=_text(database, "impl"),
        )


def _existing(path: str, variable: str) -> str:
    if not Path(path).exists():
        raise ConfigError(f"{variable} does not exist: {path}")
    return path


def load_bot_core_config(environ: Mapping[str, str] | None = None) -> BotCoreConfig:
    """Load the bot core config named by CONFIG_PATH, or the local one for APP_PROFILE=local."""
    env = os.environ if environ is None else environ
    config_path = env.get("CONFIG_PATH", "")
    profile = env.get("APP_PROFILE", "")
    if not config_path and profile == "local":
        config_path = LOCAL_CONFIG_PATH
    if not config_path:
        raise ConfigError("CONFIG_PATH environment variable not set")
    if not profile:
        raise ConfigError("APP_PROFILE environment variable not set")
    return BotCoreConfig.from_mapping(read_yaml(_existing(config_path, "CONFIG_PATH")))


def load_note_backend_config(environ: Mapping[str, str] | None = None) -> NoteBackendConfig:
    """Load the note backend config named by CONFIG_FILE; APP_PROFILE=local forces the local file."""
    env = os.environ if environ is None else environ
    config_path = env.get("CONFIG_FILE", "")
    if env.get("APP_PROFILE", "") == "local":
        config_path = LOCAL_CONFIG_PATH
    if not config_path:
        raise ConfigError("CONFIG_PATH environment variable not set")
    return NoteBackendConfig.from_mapping(read_yaml(_existing(config_path, "CONFIG_PATH")))


def load_migrator_config(environ: Mapping[str, str] | None = None) -> MigratorConfig:
    """Load the migrator config named by CONFIG_FILE; DB_URL in the environment wins over the file."""
    env = os.environ if environ is None else environ
    config_path = env.get("CONFIG_FILE", "")
    if env.get("APP_PROFILE", "") == "local":
        config_path = LOCAL_CONFIG_PATH
    if not config_path:
        raise ConfigError("CONFIG_FILE environment variable not set")
    data = dict(read_yaml(_existing(config_path, "CONFIG_FILE")))
    db_url = env.get("DB_URL")
    if db_url:
        data["app"] = {**_section(data, "app"), "dbUrl": db_url}
    return MigratorConfig.from_mapping(data)


def load_service_config(path: str | os.PathLike[str]) -> ServiceConfig:
    """Load an HTTP service config from the given YAML file."""
    return ServiceConfig.from_mapping(read_yaml(path))


def load_telegram_backend_config(environ: Mapping[str, str] | None = None) -> TelegramBackendConfig:
    """Load config/<MODE>.yaml; an unreadable file yields an empty configuration."""
    env = os.environ if environ is None else environ
    mode = env.get("MODE", "")
    name = mode if mode in ("dev", "test") else "%s"
    path = Path("config") / f"{name}.yaml"
    log.info("Run application in mode : %s", mode)
    try:
        return TelegramBackendConfig.from_mapping(read_yaml(path))
    except ConfigError as exc:
        log.warning("cannot load %s: %s", path, exc)
        return TelegramBackendConfig()