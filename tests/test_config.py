import json
import os

import pytest

from modules.pyre_narrator import create_narrator, load_config
from modules.pyre_narrator.config import NarratorConfig, Verbosity
from modules.pyre_narrator.exceptions import ConfigurationError
from modules.pyre_narrator.output import LoggingSink, RecordingSink
from modules.pyre_narrator.runtime_backend import PythonRuntimeBackend
from tests.stubs import HOST_MODULE


@pytest.fixture()
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("PYRE_NARRATOR_"):
            monkeypatch.delenv(key)
    return monkeypatch


def test_defaults():
    config = NarratorConfig()

    assert config.verbosity is Verbosity.NORMAL
    assert config.announce_spawns is True
    assert config.interrupt_on_focus_change is True
    assert config.schema_version == "auto"
    assert config.module_prefixes == []


def test_from_env_reads_prefixed_variables():
    config = NarratorConfig.from_env(
        {
            "PYRE_NARRATOR_VERBOSITY": "Verbose",
            "PYRE_NARRATOR_ANNOUNCE_DAMAGE": "off",
            "PYRE_NARRATOR_SCHEMA_VERSION": "V1",
            "PYRE_NARRATOR_MODULE_PREFIXES": "monster_host, bridge",
            "ANNOUNCE_DEATHS": "no",
        }
    )

    assert config.verbosity is Verbosity.VERBOSE
    assert config.announce_damage is False
    assert config.announce_deaths is True
    assert config.schema_version == "v1"
    assert config.module_prefixes == ["monster_host", "bridge"]


@pytest.mark.parametrize(
    "data",
    [
        {"verbosity": "chatty"},
        {"announce_spawns": "maybe"},
        {"schema_version": "v3"},
    ],
)
def test_invalid_values_are_configuration_errors(data):
    with pytest.raises(ConfigurationError):
        NarratorConfig.from_mapping(data)


def test_mapping_round_trip():
    config = NarratorConfig(verbosity=Verbosity.MINIMAL, announce_damage=False, java_packages=["com.shinyshoe"])

    assert NarratorConfig.from_mapping(config.to_mapping()) == config


def test_load_reads_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"verbosity": "minimal", "announce_card_draws": False}), encoding="utf8")

    config = NarratorConfig.load(path)

    assert config.verbosity is Verbosity.MINIMAL
    assert config.announce_card_draws is False


def test_load_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        NarratorConfig.load(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf8")
    with pytest.raises(ConfigurationError):
        NarratorConfig.load(broken)

    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]", encoding="utf8")
    with pytest.raises(ConfigurationError):
        NarratorConfig.load(listing)


def test_verbosity_cycle_wraps():
    config = NarratorConfig()

    assert [config.cycle_verbosity() for _ in range(3)] == [Verbosity.VERBOSE, Verbosity.MINIMAL, Verbosity.NORMAL]
    assert Verbosity.VERBOSE.includes(Verbosity.NORMAL)
    assert not Verbosity.MINIMAL.includes(Verbosity.NORMAL)
    assert Verbosity.parse(" Normal ") is Verbosity.NORMAL


def test_load_config_layers_environment_over_file(tmp_path, clean_env):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"verbosity": "minimal", "announce_damage": False}), encoding="utf8")
    clean_env.setenv("PYRE_NARRATOR_ANNOUNCE_DEATHS", "false")

    config = load_config(path)

    assert config.verbosity is Verbosity.MINIMAL
    assert config.announce_damage is False
    assert config.announce_deaths is False


def test_environment_can_restore_defaults_over_file(tmp_path, clean_env):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"verbosity": "minimal", "announce_spawns": False}), encoding="utf8")
    clean_env.setenv("PYRE_NARRATOR_VERBOSITY", "normal")
    clean_env.setenv("PYRE_NARRATOR_ANNOUNCE_SPAWNS", "true")

    config = load_config(path)

    assert config.verbosity is Verbosity.NORMAL
    assert config.announce_spawns is True


def test_env_overrides_only_lists_set_variables():
    overrides = NarratorConfig.env_overrides({"PYRE_NARRATOR_VERBOSITY": "normal", "HOME": "/tmp"})

    assert overrides == {"verbosity": "normal"}


def test_load_config_without_file_uses_defaults(tmp_path, clean_env):
    assert load_config(tmp_path / "missing.json") == NarratorConfig()


def test_create_narrator_wires_the_pipeline(host):
    sink = RecordingSink()
    narrator = create_narrator(
        sink,
        NarratorConfig(schema_version="v1"),
        backends=[PythonRuntimeBackend(module_prefixes=(HOST_MODULE,))],
    )

    narrator.announce_hand()

    assert narrator.extractor.provider.schema.version == "v1"
    assert narrator.get_selected_floor() == 0
    assert sink.texts()[0].startswith("Hand contains 3 cards.")


def test_create_narrator_default_backends(host):
    narrator = create_narrator(config=NarratorConfig(module_prefixes=[HOST_MODULE]))

    assert isinstance(narrator.sink, LoggingSink)
    assert [backend.name for backend in narrator.extractor.provider.locator.backends] == ["python", "jpype"]
    assert narrator.get_floor_summary(1) == "Floor 2, 0 of 7 capacity. Empty"
