"""Config loading for ipgate.

Builds one immutable Config at startup. Values come from, lowest priority first:

  1. Coded defaults (ipgate.constants; paths resolve next to the package)
  2. An optional YAML file
  3. Environment variables

Config file search order:
  1. ``config_path`` argument (if provided, for tests or explicit override)
  2. IPGATE_CONFIG environment variable (if set)
  3. ``.ipgate/config.yaml`` (working directory)
  4. ``~/.ipgate/config.yaml`` (home directory)

A missing config file is not an error. An unreadable or invalid one prints a
message to stderr and raises SystemExit(1) before anything is started.

Environment variable overrides:
  HOST, PORT                       listener binding
  WHITELIST_PATH                   allow-list file
  HTTPS_CERT_PATH, HTTPS_KEY_PATH  TLS credentials
  LOG_LEVEL, JSON_LOGS             logging
"""

from __future__ import annotations

import dataclasses
import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from ipgate.constants import (
    DEFAULT_CERT_PATH,
    DEFAULT_HOST,
    DEFAULT_KEY_PATH,
    DEFAULT_PORT,
    DEFAULT_WHITELIST_PATH,
    MAX_PORT,
    MIN_PORT,
)
from ipgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

VALID_LOG_LEVELS: frozenset[str] = frozenset(
    {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
)

# IPGATE_CONFIG env var is prepended at runtime
DEFAULT_CONFIG_PATHS = [
    ".ipgate/config.yaml",
    os.path.expanduser("~/.ipgate/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ListenerConfig:
    """Address the TLS listener binds to."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass(frozen=True)
class TLSConfig:
    """Locations of the PEM certificate and private key."""

    cert_path: str = DEFAULT_CERT_PATH
    key_path: str = DEFAULT_KEY_PATH


@dataclass(frozen=True)
class AccessConfig:
    """Allow-list location. The file is re-read on every request."""

    whitelist_path: str = DEFAULT_WHITELIST_PATH


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    json_output: bool = True


@dataclass(frozen=True)
class Config:
    """Root configuration object.

    Frozen: built once by load_config() and passed by reference to the
    bootstrap sequencer and everything it constructs.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    listener: ListenerConfig = field(default_factory=ListenerConfig)
    tls: TLSConfig = field(default_factory=TLSConfig)
    access: AccessConfig = field(default_factory=AccessConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    path: Optional[str] = None  # config file this was loaded from, if any

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are ignored.

        Raises:
            SystemExit(1): On an invalid port or log level.
        """
        listener_raw = raw.get("listener") or {}
        listener = ListenerConfig(
            host=listener_raw.get("host", DEFAULT_HOST),
            port=_parse_port(listener_raw.get("port", DEFAULT_PORT), source="listener.port"),
        )

        tls_raw = raw.get("tls") or {}
        tls = TLSConfig(
            cert_path=os.path.expanduser(tls_raw.get("cert_path", DEFAULT_CERT_PATH)),
            key_path=os.path.expanduser(tls_raw.get("key_path", DEFAULT_KEY_PATH)),
        )

        access_raw = raw.get("access") or {}
        access = AccessConfig(
            whitelist_path=os.path.expanduser(
                access_raw.get("whitelist_path", DEFAULT_WHITELIST_PATH)
            ),
        )

        logging_raw = raw.get("logging") or {}
        logging_config = LoggingConfig(
            level=_parse_log_level(logging_raw.get("level", "INFO"), source="logging.level"),
            json_output=_parse_bool(logging_raw.get("json_output", True)),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            listener=listener,
            tls=tls,
            access=access,
            logging=logging_config,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate ipgate configuration.

    Returns:
        Config with file values merged onto defaults and env overrides applied.

    Raises:
        SystemExit(1): On YAML parse error, unreadable file, missing or
                       unsupported ``version``, or an invalid PORT / LOG_LEVEL.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("IPGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.debug("No config file found, using defaults", searched=search_paths)
        return _apply_env_overrides(Config.defaults())

    logger.debug("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "ipgate refuses to start with an invalid config."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = _apply_env_overrides(Config.from_dict(raw, path=found_path))

    logger.info("Config loaded", path=found_path, version=config.version)
    return config


def _apply_env_overrides(config: Config) -> Config:
    """Return a copy of ``config`` with environment variables applied.

    Called for both file-loaded and default configs so env vars always win.
    An empty variable counts as unset.
    """
    env = os.environ

    listener = config.listener
    if env.get("HOST"):
        listener = dataclasses.replace(listener, host=env["HOST"])
    if env.get("PORT"):
        listener = dataclasses.replace(listener, port=_parse_port(env["PORT"], source="PORT"))

    tls = config.tls
    if env.get("HTTPS_CERT_PATH"):
        tls = dataclasses.replace(tls, cert_path=env["HTTPS_CERT_PATH"])
    if env.get("HTTPS_KEY_PATH"):
        tls = dataclasses.replace(tls, key_path=env["HTTPS_KEY_PATH"])

    access = config.access
    if env.get("WHITELIST_PATH"):
        access = dataclasses.replace(access, whitelist_path=env["WHITELIST_PATH"])

    logging_config = config.logging
    if env.get("LOG_LEVEL"):
        logging_config = dataclasses.replace(
            logging_config, level=_parse_log_level(env["LOG_LEVEL"], source="LOG_LEVEL")
        )
    if env.get("JSON_LOGS"):
        logging_config = dataclasses.replace(
            logging_config, json_output=_parse_bool(env["JSON_LOGS"])
        )

    return dataclasses.replace(
        config, listener=listener, tls=tls, access=access, logging=logging_config
    )


def _parse_port(value: object, source: str) -> int:
    try:
        port = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        _fail(f"CONFIG ERROR: {source} is not a valid integer: '{value}'")
    if not MIN_PORT <= port <= MAX_PORT:
        _fail(f"CONFIG ERROR: {source} must be between {MIN_PORT} and {MAX_PORT}, got {port}")
    return port


def _parse_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _parse_log_level(value: object, source: str) -> str:
    level = str(value).upper()
    if level not in VALID_LOG_LEVELS:
        _fail(
            f"CONFIG ERROR: Invalid {source}: '{value}'. "
            f"Supported values: {sorted(VALID_LOG_LEVELS)}."
        )
    return level


def _fail(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)
