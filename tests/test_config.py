"""Tests for process-wide configuration and error messages."""
import pytest

from statetree import (
    StateError,
    StateTreeError,
    ValidationError,
    get_config,
    reset_config,
    set_config,
)


def test_defaults():
    config = get_config()
    assert config.error_prefix == "[statetree]"
    assert config.freeze_snapshots is True


def test_set_config_returns_new_config():
    config = set_config(error_prefix="[app]")
    assert config.error_prefix == "[app]"
    assert get_config() is config
    assert config.freeze_snapshots is True


def test_unknown_setting_rejected():
    with pytest.raises(TypeError, match="Unknown statetree setting"):
        set_config(colour="blue")


def test_reset_config():
    set_config(freeze_snapshots=False)
    reset_config()
    assert get_config().freeze_snapshots is True


def test_error_prefix_applies_to_messages(todo_factory):
    set_config(error_prefix="[app]")
    with pytest.raises(ValidationError) as error:
        todo_factory({"title": []})
    assert str(error.value).startswith("[app] Snapshot")
    assert error.value.raw_message.startswith("Snapshot")


def test_empty_prefix():
    set_config(error_prefix="")
    assert str(StateError("plain")) == "plain"


def test_taxonomy():
    assert issubclass(ValidationError, StateTreeError)
    assert issubclass(StateError, StateTreeError)
