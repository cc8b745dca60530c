"""Credential resolution and persistence for the Valyu search API.

The API key is looked up in the ``VALYU_API_KEY`` environment variable first
and then in a small JSON file (``~/.valyu/config.json`` by default). Reading
that file never fails the caller: a missing, unreadable or corrupt file is
reported as a :class:`ConfigReadResult` carrying a :class:`ConfigParseError`
and collapsed to "no key" at the resolver boundary.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from pubmed_search.logging import mask_secret

API_KEY_ENV_VAR = "VALYU_API_KEY"
CONFIG_FILE_ENV_VAR = "VALYU_CONFIG_FILE"
API_KEY_FIELD = "apiKey"
CONFIG_RELATIVE_PATH = Path(".valyu") / "config.json"

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be written."""


@dataclass(frozen=True, slots=True)
class ConfigParseError:
    location: str
    reason: str


@dataclass(frozen=True, slots=True)
class ConfigReadResult:
    """Outcome of reading a config store: either ``data`` or an ``error``."""

    data: Mapping[str, Any] | None = None
    error: ConfigParseError | None = None
    exists: bool = True

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None

    def or_empty(self) -> dict[str, Any]:
        if not self.ok:
            return {}
        assert self.data is not None
        return dict(self.data)


class ConfigStore(Protocol):
    @property
    def location(self) -> str: ...

    def read(self) -> ConfigReadResult: ...

    def write(self, data: Mapping[str, Any]) -> None: ...


class JsonFileConfigStore:
    """Config store backed by a JSON object in a file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @property
    def location(self) -> str:
        return _display_path(self.path)

    def read(self) -> ConfigReadResult:
        try:
            contents = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ConfigReadResult(
                error=ConfigParseError(self.location, "file does not exist"), exists=False
            )
        except (OSError, UnicodeDecodeError) as exc:
            return ConfigReadResult(error=ConfigParseError(self.location, str(exc)))

        try:
            data = json.loads(contents)
        except ValueError as exc:
            return ConfigReadResult(error=ConfigParseError(self.location, f"invalid JSON: {exc}"))
        if not isinstance(data, dict):
            return ConfigReadResult(
                error=ConfigParseError(self.location, "top-level value is not a JSON object")
            )
        return ConfigReadResult(data=data)

    def write(self, data: Mapping[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            contents = json.dumps(dict(data), indent=2, ensure_ascii=False)
            self.path.write_text(contents, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Failed to write config file {self.path}: {exc}") from exc

    def __repr__(self) -> str:
        return f"JsonFileConfigStore({str(self.path)!r})"


@dataclass(slots=True)
class MemoryConfigStore:
    """In-memory config store; ``data=None`` behaves like a missing file."""

    data: MutableMapping[str, Any] | None = None
    location: str = "<memory>"
    writes: int = field(default=0, compare=False)

    def read(self) -> ConfigReadResult:
        if self.data is None:
            return ConfigReadResult(
                error=ConfigParseError(self.location, "no configuration stored"), exists=False
            )
        return ConfigReadResult(data=dict(self.data))

    def write(self, data: Mapping[str, Any]) -> None:
        self.data = dict(data)
        self.writes += 1


class CredentialSource(str, Enum):
    ENVIRONMENT = "environment"
    CONFIG_FILE = "config_file"


@dataclass(frozen=True, slots=True)
class ResolvedCredential:
    api_key: str
    source: CredentialSource

    def __repr__(self) -> str:
        masked = mask_secret(self.api_key)
        return f"ResolvedCredential(api_key={masked!r}, source={self.source.value!r})"


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    values = environ if environ is not None else os.environ
    override = values.get(CONFIG_FILE_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / CONFIG_RELATIVE_PATH


def default_store(environ: Mapping[str, str] | None = None) -> JsonFileConfigStore:
    return JsonFileConfigStore(default_config_path(environ))


def resolve_credential(
    store: ConfigStore,
    *,
    environ: Mapping[str, str] | None = None,
) -> ResolvedCredential | None:
    """Return the API key and where it came from, or ``None`` when unset."""
    values = environ if environ is not None else os.environ
    from_env = values.get(API_KEY_ENV_VAR)
    if from_env:
        return ResolvedCredential(from_env, CredentialSource.ENVIRONMENT)

    result = store.read()
    if result.error is not None and result.exists:
        logger.debug(
            "Ignoring unusable config file",
            extra={"location": result.error.location, "reason": result.error.reason},
        )
    stored = result.or_empty().get(API_KEY_FIELD)
    if isinstance(stored, str) and stored:
        return ResolvedCredential(stored, CredentialSource.CONFIG_FILE)
    return None


def resolve_api_key(
    store: ConfigStore,
    *,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    credential = resolve_credential(store, environ=environ)
    return credential.api_key if credential else None


def save_api_key(store: ConfigStore, api_key: str | None) -> None:
    """Store ``api_key`` while keeping every other field already present."""
    if not api_key:
        raise ValueError("API key required")

    result = store.read()
    if result.error is not None and result.exists:
        logger.warning(
            "Existing config could not be parsed; starting from an empty object",
            extra={"location": result.error.location, "reason": result.error.reason},
        )
    config = result.or_empty()
    config[API_KEY_FIELD] = api_key
    store.write(config)
    logger.info("Saved API key", extra={"location": store.location, "api_key": api_key})


def doctor(
    *,
    store: ConfigStore | None = None,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """Report which source supplies the API key."""
    store = store if store is not None else default_store(environ)
    credential = resolve_credential(store, environ=environ)
    if credential is None:
        print("No Valyu API key configured.", file=sys.stderr)
        print(f"  Set {API_KEY_ENV_VAR} or run: search setup <api-key>", file=sys.stderr)
        result = store.read()
        if result.error is not None and result.exists:
            print(f"  Config file unusable: {result.error.reason}", file=sys.stderr)
        return False

    print("Configuration looks good.", file=sys.stdout)
    print(f"  API key: {mask_secret(credential.api_key)}", file=sys.stdout)
    if credential.source is CredentialSource.ENVIRONMENT:
        print(f"  Source: environment variable {API_KEY_ENV_VAR}", file=sys.stdout)
    else:
        print(f"  Source: {store.location}", file=sys.stdout)
    return True


def _display_path(path: Path) -> str:
    try:
        return "~/" + path.relative_to(Path.home()).as_posix()
    except ValueError:
        return str(path)


__all__ = [
    "API_KEY_ENV_VAR",
    "CONFIG_FILE_ENV_VAR",
    "ConfigError",
    "ConfigParseError",
    "ConfigReadResult",
    "ConfigStore",
    "CredentialSource",
    "CONFIG_RELATIVE_PATH",
    "JsonFileConfigStore",
    "MemoryConfigStore",
    "ResolvedCredential",
    "default_config_path",
    "default_store",
    "doctor",
    "resolve_api_key",
    "resolve_credential",
    "save_api_key",
]
