"""Directory state machine: legal state transitions."""
from enum import Enum

from s3box.shared.errors import InvalidStateError


class DirectoryState(Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"
    OPENED = "opened"


# Legal transitions: current_state -> {action: next_state}
TRANSITIONS: dict[DirectoryState, dict[str, DirectoryState]] = {
    DirectoryState.NOT_LOADED: {"load": DirectoryState.LOADING},
    DirectoryState.LOADING: {
        "loaded": DirectoryState.LOADED,
        "load_failed": DirectoryState.NOT_LOADED,
    },
    DirectoryState.LOADED: {"open": DirectoryState.OPENED},
    DirectoryState.OPENED: {"close": DirectoryState.LOADED},
}

CONTENT_STATES = {DirectoryState.LOADED, DirectoryState.OPENED}


def next_state(current: DirectoryState, action: str) -> DirectoryState | None:
    """Return the state reached by *action*, or None if it is not allowed."""
    return TRANSITIONS.get(current, {}).get(action)


def assert_transition(current: DirectoryState, action: str, subject: str = "directory") -> DirectoryState:
    """
    Return the next state, raising InvalidStateError if *action* is illegal.

    Args:
        current: Current state
        action: One of "load", "loaded", "load_failed", "open", "close"
        subject: Description used in the error message
    """
    target = next_state(current, action)
    if target is None:
        allowed = sorted(TRANSITIONS.get(current, {}))
        raise InvalidStateError(
            f"Illegal {action!r} on {subject} in state {current.value!r}. "
            f"Allowed from {current.value!r}: {allowed}"
        )
    return target
