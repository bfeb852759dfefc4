"""Policy layer — The permission policy document.

The document is the declarative description of what the assistant may
touch.  It is validated through Pydantic v2 and frozen: every change
produces a new full document that replaces the live configuration
wholesale.  Do not add business logic here — only data shapes, their
normalisation, and the mapping to and from the assistant's settings file.

Settings-file shape::

    {
      "<preference>": ...,
      "permissions": {"additionalDirectories": [...], "deny": [...]},
      "mcpServers": {"<name>": {"command": "...", "args": [...]}}
    }
"""

from __future__ import annotations

import json
import os.path
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from assistant_guard.exceptions import ConfigurationCorruptError, ConfigurationMissingError

_PERMISSIONS_KEY = "permissions"
_ALLOWED_KEY = "additionalDirectories"
_DENIED_KEY = "deny"
_SERVICES_KEY = "mcpServers"


def _dedupe(values: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


class AuxiliaryService(BaseModel):
    """Launch descriptor for a companion process the assistant may start."""

    model_config = ConfigDict(frozen=True)

    command: str = Field(min_length=1)
    args: tuple[str, ...] = ()

    def to_settings(self) -> dict[str, Any]:
        return {"command": self.command, "args": list(self.args)}


class PolicyDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed_directories: tuple[str, ...] = ()
    denied_paths: tuple[str, ...] = ()
    auxiliary_services: dict[str, AuxiliaryService] = Field(default_factory=dict)
    preferences: dict[str, Any] = Field(default_factory=dict)

    @field_validator("allowed_directories")
    @classmethod
    def _normalise_allowed(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        normalised = []
        for entry in v:
            if not os.path.isabs(entry):
                raise ValueError(f"allowed directory must be absolute: {entry!r}")
            normalised.append(os.path.normpath(entry))
        return _dedupe(tuple(normalised))

    @field_validator("denied_paths")
    @classmethod
    def _normalise_denied(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _dedupe(tuple(p.rstrip("/") or "/" for p in v))

    @field_validator("preferences")
    @classmethod
    def _no_reserved_keys(cls, v: dict[str, Any]) -> dict[str, Any]:
        clash = {_PERMISSIONS_KEY, _SERVICES_KEY} & set(v)
        if clash:
            raise ValueError(f"preferences may not override {sorted(clash)}")
        return v

    # ------------------------------------------------------------------
    # Settings-file mapping
    # ------------------------------------------------------------------

    def to_settings(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.preferences)
        data[_PERMISSIONS_KEY] = {
            _ALLOWED_KEY: list(self.allowed_directories),
            _DENIED_KEY: list(self.denied_paths),
        }
        data[_SERVICES_KEY] = {
            name: service.to_settings() for name, service in self.auxiliary_services.items()
        }
        return data

    def to_json(self) -> str:
        """Deterministic serialisation: same document, same bytes."""
        return json.dumps(self.to_settings(), indent=2, ensure_ascii=False) + "\n"

    @classmethod
    def from_settings(cls, data: Any, path: Path | None = None) -> "PolicyDocument":
        if not isinstance(data, dict):
            raise ConfigurationCorruptError(path, "top level is not a JSON object")

        permissions = data.get(_PERMISSIONS_KEY) or {}
        services = data.get(_SERVICES_KEY) or {}
        if not isinstance(permissions, dict) or not isinstance(services, dict):
            raise ConfigurationCorruptError(path, "'permissions' / 'mcpServers' must be objects")

        allowed = permissions.get(_ALLOWED_KEY) or []
        denied = permissions.get(_DENIED_KEY) or []
        if not isinstance(allowed, list) or not isinstance(denied, list):
            raise ConfigurationCorruptError(path, "permission entries must be lists")

        preferences = {
            k: v for k, v in data.items() if k not in (_PERMISSIONS_KEY, _SERVICES_KEY)
        }
        try:
            return cls(
                allowed_directories=tuple(allowed),
                denied_paths=tuple(denied),
                auxiliary_services=services,
                preferences=preferences,
            )
        except ValidationError as exc:
            raise ConfigurationCorruptError(path, str(exc)) from exc

    @classmethod
    def from_json(cls, text: str | bytes, path: Path | None = None) -> "PolicyDocument":
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ConfigurationCorruptError(path, str(exc)) from exc
        return cls.from_settings(data, path=path)

    @classmethod
    def read(cls, path: Path) -> "PolicyDocument":
        """Parse the document stored at *path*.

        Raises:
            ConfigurationMissingError: *path* does not exist.
            ConfigurationCorruptError: *path* exists but cannot be parsed or read.
        """
        try:
            raw = path.read_bytes()
        except FileNotFoundError as exc:
            raise ConfigurationMissingError(path) from exc
        except OSError as exc:
            raise ConfigurationCorruptError(path, exc.strerror or str(exc)) from exc
        return cls.from_json(raw, path=path)
