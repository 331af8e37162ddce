"""Tests for the directory state machine transitions."""
import pytest

from s3box.core.directory_state import (
    DirectoryState,
    assert_transition,
    next_state,
)
from s3box.shared.errors import InvalidStateError


class TestNextState:
    def test_actions(self):
        assert next_state(DirectoryState.NOT_LOADED, "load") == DirectoryState.LOADING
        assert next_state(DirectoryState.LOADING, "loaded") == DirectoryState.LOADED
        assert next_state(DirectoryState.LOADING, "load_failed") == DirectoryState.NOT_LOADED
        assert next_state(DirectoryState.LOADED, "open") == DirectoryState.OPENED
        assert next_state(DirectoryState.OPENED, "close") == DirectoryState.LOADED

    def test_unknown_action_returns_none(self):
        assert next_state(DirectoryState.LOADED, "load") is None

    def test_illegal_jumps(self):
        assert next_state(DirectoryState.NOT_LOADED, "loaded") is None
        assert next_state(DirectoryState.NOT_LOADED, "open") is None
        assert next_state(DirectoryState.OPENED, "open") is None
        assert next_state(DirectoryState.LOADED, "close") is None


class TestAssertTransition:
    def test_valid_returns_next_state(self):
        assert assert_transition(DirectoryState.NOT_LOADED, "load") == DirectoryState.LOADING

    def test_invalid_raises_invalid_state(self):
        with pytest.raises(InvalidStateError, match="Illegal 'load'"):
            assert_transition(DirectoryState.LOADED, "load")

    def test_message_names_subject_and_state(self):
        with pytest.raises(InvalidStateError) as exc_info:
            assert_transition(DirectoryState.LOADING, "open", "directory '/a/'")
        assert "directory '/a/'" in str(exc_info.value)
        assert "'loading'" in str(exc_info.value)
