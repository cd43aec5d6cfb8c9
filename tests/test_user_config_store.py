from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest

from pls_shell.userconfig.store import (
    ConfigError,
    UserConfigStore,
    coerce_config_value,
    flatten_config,
    is_valid_config_value,
    unflatten_config,
)

pytestmark = [
    allure.epic("User Config"),
    allure.feature("Config Store"),
]


def test_load_returns_empty_tree_when_file_is_missing(tmp_path: Path) -> None:
    assert UserConfigStore(tmp_path / "absent.json").load() == {}


def test_save_merges_dotted_values_into_existing_tree(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "pls.json"
    path.parent.mkdir()
    path.write_text(json.dumps({"project": {"name": "old", "path": "/src"}}), "utf-8")
    store = UserConfigStore(path)

    store.save(
        {"project.name": "new", "limits.jobs": "4", "flags.fast": "true"},
        types={"limits.jobs": "number", "flags.fast": "boolean"},
    )

    assert store.load() == {
        "flags": {"fast": True},
        "limits": {"jobs": 4},
        "project": {"name": "new", "path": "/src"},
    }


def test_load_rejects_non_object_document(tmp_path: Path) -> None:
    path = tmp_path / "pls.json"
    path.write_text("[1, 2]", "utf-8")

    with pytest.raises(ConfigError, match="Cannot read config file"):
        UserConfigStore(path).load()


def test_save_reports_unwritable_location(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", "utf-8")

    with pytest.raises(ConfigError, match="Cannot write config file"):
        UserConfigStore(blocker / "pls.json").set_value("a", "b")


def test_set_value_overwrites_scalar_parent_with_object(tmp_path: Path) -> None:
    store = UserConfigStore(tmp_path / "pls.json")
    store.set_value("editor", "vim")

    store.set_value("editor.name", "nano")

    assert store.load() == {"editor": {"name": "nano"}}


def test_flatten_and_unflatten_are_inverse() -> None:
    tree = {"a": {"b": 1, "c": {"d": "x"}}, "e": True}

    assert flatten_config(tree) == {"a.b": 1, "a.c.d": "x", "e": True}
    assert unflatten_config(flatten_config(tree)) == tree


def test_value_validation_and_coercion_by_type() -> None:
    assert is_valid_config_value("TRUE", "boolean")
    assert not is_valid_config_value("yes", "boolean")
    assert is_valid_config_value("1.5", "number")
    assert not is_valid_config_value("many", "number")
    assert is_valid_config_value("anything", "string")

    assert coerce_config_value("3") == 3
    assert coerce_config_value("3.0") == 3.0
    assert coerce_config_value("false") is False
    assert coerce_config_value("hello") == "hello"
    assert coerce_config_value("42", "string") == "42"
    assert coerce_config_value("TRUE", "boolean") is True


def test_untyped_values_keep_text_that_would_not_round_trip(tmp_path: Path) -> None:
    store = UserConfigStore(tmp_path / "pls.json")

    store.set_value("user.pin", "0042")
    store.set_value("user.ratio", "1.50")
    store.set_value("user.big", "1e3")
    store.set_value("user.count", "-7")

    assert store.load() == {
        "user": {"big": "1e3", "count": -7, "pin": "0042", "ratio": "1.50"},
    }
    assert coerce_config_value("0042", "number") == 42
