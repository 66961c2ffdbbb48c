"""Tests for key name and control action resolution."""

import pytest

from playtest.utils.controls import resolve_action, resolve_key, resolve_key_name, validate_controls


class TestResolveKeyName:
    @pytest.mark.parametrize("key,expected", [
        ("w", "KeyW"),
        ("W", "KeyW"),
        ("5", "Digit5"),
        ("Left", "ArrowLeft"),
        ("space", "Space"),
        ("Esc", "Escape"),
        ("Enter", "Enter"),
        ("F5", "F5"),
    ])
    def test_canonical_names(self, key, expected):
        assert resolve_key_name(key) == expected

    def test_unknown_name_passes_through(self):
        assert resolve_key_name("NumpadAdd") == "NumpadAdd"


class TestResolveKey:
    def test_control_action_uses_primary_key(self):
        assert resolve_key("Jump", {"Jump": ["w", "Up"]}) == "KeyW"

    def test_unmapped_action_falls_back_to_key_name(self):
        assert resolve_key("a", {"Jump": ["w"]}) == "KeyA"

    def test_without_controls(self):
        assert resolve_key("Right") == "ArrowRight"

    def test_resolve_action(self):
        assert resolve_action("MoveLeft", {"MoveLeft": ["a", "Left"]}) == ["KeyA", "ArrowLeft"]
        assert resolve_action("MoveLeft", None) is None
        assert resolve_action("MoveLeft", {"MoveLeft": []}) is None


class TestValidateControls:
    def test_valid_mapping(self):
        assert validate_controls({"Jump": ["Space", "w"], "MoveLeft": ["Left"]}) == []

    def test_empty_and_unsupported(self):
        warnings = validate_controls({"Jump": [], "Fire": ["Trigger"]})

        assert warnings == [
            'Control "Jump" has no keys mapped',
            'Key "Trigger" for control "Fire" may not be supported',
        ]
