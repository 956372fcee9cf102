"""
Tests for the preset registry.
"""

import json

import pytest

from workbench.entities.errors import InvalidParameterValue
from workbench.entities.models import DEFAULT_API_ENDPOINT, PresetInput, RequestParameter
from workbench.entities.presets import (
    DEFAULT_PRESET_MODEL,
    DEFAULT_PRESET_NAME,
    PresetRegistry,
    parse_parameter_value,
)


def make_input(name="Custom", **overrides):
    data = {"name": name, "model": "openai/gpt-4o-mini", "api_key": "sk-test"}
    data.update(overrides)
    return PresetInput(**data)


class TestDefaults:
    def test_starts_with_default_preset_active(self, presets):
        assert len(presets.presets) == 1
        default = presets.presets[0]
        assert default.name == DEFAULT_PRESET_NAME
        assert default.model == DEFAULT_PRESET_MODEL
        assert default.api_key == ""
        assert default.api_endpoint == DEFAULT_API_ENDPOINT
        assert default.request_parameters == []
        assert presets.active_preset_id == default.id

    def test_selection_persists_across_instances(self, presets):
        preset = presets.create(make_input())
        assert PresetRegistry().active_preset_id == preset.id

    def test_dangling_active_id_heals(self, presets, storage):
        local, _ = storage
        presets.create(make_input())
        local.set_item("orw-active-preset", json.dumps("preset-gone0000"))

        reloaded = PresetRegistry()
        assert reloaded.active_preset_id == reloaded.presets[0].id

    def test_explicit_empty_selection_is_respected(self, presets):
        presets.select(None)
        assert PresetRegistry().active_preset_id is None


class TestMutations:
    def test_create_prepends_and_activates(self, presets):
        preset = presets.create(make_input())
        assert presets.presets[0] == preset
        assert presets.active_preset_id == preset.id
        assert preset.id.startswith("preset-")

    def test_update_merges_fields(self, presets):
        preset = presets.create(make_input(request_parameters=[{"name": "top_p", "value": 0.9}]))

        updated = presets.update(preset.id, name="Renamed", api_key="sk-new")

        assert updated.name == "Renamed"
        assert updated.api_key == "sk-new"
        assert updated.model == preset.model
        assert updated.request_parameters == preset.request_parameters
        assert presets.get(preset.id) == updated

    def test_update_replaces_parameter_list_wholesale(self, presets):
        preset = presets.create(make_input(request_parameters=[
            {"name": "top_p", "value": 0.9},
            {"name": "seed", "value": 7},
        ]))

        updated = presets.update(preset.id, request_parameters=[RequestParameter(name="stop", value=None)])

        assert updated.request_parameters == [RequestParameter(name="stop", value=None)]

    def test_update_ignores_unknown_fields_and_id(self, presets):
        preset = presets.create(make_input())
        updated = presets.update(preset.id, id="preset-hijacked", color="red")
        assert updated.id == preset.id

    def test_update_unknown_preset_is_a_noop(self, presets):
        before = presets.presets
        assert presets.update("preset-missing0", name="x") is None
        assert presets.presets is before

    def test_remove_active_falls_back_to_first(self, presets):
        default_id = presets.presets[0].id
        preset = presets.create(make_input())

        assert presets.remove(preset.id) == default_id
        assert presets.active_preset_id == default_id

    def test_remove_last_preset_clears_selection(self, presets):
        only = presets.presets[0]
        assert presets.remove(only.id) is None
        assert presets.presets == []
        assert presets.active_preset is None

    def test_remove_unknown_preset_keeps_collection(self, presets):
        before = presets.presets
        presets.remove("preset-missing0")
        assert presets.presets is before

    def test_duplicate_copies_under_new_id(self, presets):
        source = presets.create(make_input(request_parameters=[{"name": "seed", "value": 1}]))

        copy = presets.duplicate(source.id)

        assert copy.id != source.id
        assert copy.name == "Custom (copy)"
        assert copy.request_parameters == source.request_parameters
        assert presets.active_preset_id == copy.id

    def test_duplicate_of_unnamed_preset(self, presets):
        source = presets.create(make_input(name=""))
        assert presets.duplicate(source.id).name == "Preset copy"

    def test_clear_all_restores_defaults(self, presets):
        default_id = presets.presets[0].id
        presets.create(make_input())

        fresh, active = presets.clear_all()

        assert [p.id for p in fresh] == [default_id]
        assert active == default_id
        assert presets.presets is fresh

    def test_subscribers_are_notified(self, presets):
        calls = []
        presets.subscribe(lambda: calls.append(presets.active_preset_id))
        preset = presets.create(make_input())
        assert calls[-1] == preset.id


class TestParseParameterValue:
    @pytest.mark.parametrize("text,expected", [
        ("0.7", 0.7),
        ("null", None),
        ('"stop"', "stop"),
        ('["a", "b"]', ["a", "b"]),
        ('{"order": ["x"]}', {"order": ["x"]}),
    ])
    def test_parses_json_literals(self, text, expected):
        assert parse_parameter_value(text) == expected

    def test_blank_text_is_rejected(self):
        with pytest.raises(InvalidParameterValue, match="Enter a JSON value."):
            parse_parameter_value("   ")

    def test_invalid_json_is_rejected(self):
        with pytest.raises(InvalidParameterValue, match="Invalid JSON"):
            parse_parameter_value("{nope")
