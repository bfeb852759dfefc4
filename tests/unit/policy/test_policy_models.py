"""Unit tests — PolicyDocument validation and settings-file mapping."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from assistant_guard.exceptions import ConfigurationCorruptError, ConfigurationMissingError
from assistant_guard.policy.models import AuxiliaryService, PolicyDocument


def _document() -> PolicyDocument:
    return PolicyDocument(
        allowed_directories=("/work/project",),
        denied_paths=("/home/u/.ssh", "/home/u/.aws", "/home/u/.kube"),
        auxiliary_services={"memory": AuxiliaryService(command="npx", args=("-y", "server-memory"))},
        preferences={"alwaysThinkingEnabled": True},
    )


@pytest.mark.unit
class TestValidation:
    def test_allowed_must_be_absolute(self) -> None:
        with pytest.raises(ValidationError):
            PolicyDocument(allowed_directories=("work/project",))

    def test_allowed_normalised_and_deduped(self) -> None:
        doc = PolicyDocument(allowed_directories=("/work/project/", "/work/./project", "/work/project"))
        assert doc.allowed_directories == ("/work/project",)

    def test_denied_trailing_slash_stripped(self) -> None:
        doc = PolicyDocument(denied_paths=("/home/u/.ssh/", "/home/u/.ssh"))
        assert doc.denied_paths == ("/home/u/.ssh",)

    def test_preferences_cannot_shadow_permissions(self) -> None:
        with pytest.raises(ValidationError):
            PolicyDocument(preferences={"permissions": {}})

    def test_document_is_frozen(self) -> None:
        doc = _document()
        with pytest.raises(ValidationError):
            doc.allowed_directories = ("/elsewhere",)  # type: ignore[misc]

    def test_changes_produce_new_document(self) -> None:
        doc = _document()
        changed = doc.model_copy(update={"allowed_directories": ("/other",)})
        assert doc.allowed_directories == ("/work/project",)
        assert changed.allowed_directories == ("/other",)


@pytest.mark.unit
class TestSettingsMapping:
    def test_settings_shape(self) -> None:
        data = _document().to_settings()
        assert data["alwaysThinkingEnabled"] is True
        assert data["permissions"]["additionalDirectories"] == ["/work/project"]
        assert "/home/u/.ssh" in data["permissions"]["deny"]
        assert data["mcpServers"]["memory"] == {"command": "npx", "args": ["-y", "server-memory"]}

    def test_to_json_is_deterministic(self) -> None:
        assert _document().to_json() == _document().to_json()
        assert _document().to_json().endswith("\n")

    def test_json_round_trip(self) -> None:
        doc = _document()
        assert PolicyDocument.from_json(doc.to_json()) == doc

    def test_unknown_keys_kept_as_preferences(self) -> None:
        text = json.dumps({"theme": "dark", "permissions": {"deny": ["/etc/shadow"]}})
        doc = PolicyDocument.from_json(text)
        assert doc.preferences == {"theme": "dark"}
        assert doc.denied_paths == ("/etc/shadow",)
        assert doc.allowed_directories == ()

    def test_not_json_is_corrupt(self) -> None:
        with pytest.raises(ConfigurationCorruptError):
            PolicyDocument.from_json("{not json")

    def test_top_level_list_is_corrupt(self) -> None:
        with pytest.raises(ConfigurationCorruptError):
            PolicyDocument.from_json("[]")

    def test_wrong_permission_types_are_corrupt(self) -> None:
        with pytest.raises(ConfigurationCorruptError):
            PolicyDocument.from_json('{"permissions": {"deny": "/etc/shadow"}}')

    def test_relative_allowed_in_file_is_corrupt(self) -> None:
        with pytest.raises(ConfigurationCorruptError):
            PolicyDocument.from_json('{"permissions": {"additionalDirectories": ["rel"]}}')

    def test_read_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationMissingError):
            PolicyDocument.read(tmp_path / "settings.json")

    def test_read_existing(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text(_document().to_json())
        assert PolicyDocument.read(path) == _document()
