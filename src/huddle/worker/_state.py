"""Worker lifecycle state machine.

STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED, plus FAILED, which
is reachable from STARTING and from which a new start may be attempted.
"""

from typing import final

from huddle.control import WorkerStatus
from huddle.exceptions import InvalidTransitionError

# Valid transitions: from_state -> set of allowed to_states
_TRANSITIONS: dict[WorkerStatus, frozenset[WorkerStatus]] = {
    WorkerStatus.STOPPED: frozenset({WorkerStatus.STARTING}),
    WorkerStatus.STARTING: frozenset({WorkerStatus.RUNNING, WorkerStatus.FAILED}),
    WorkerStatus.RUNNING: frozenset({WorkerStatus.STOPPING}),
    WorkerStatus.STOPPING: frozenset({WorkerStatus.STOPPED}),
    WorkerStatus.FAILED: frozenset({WorkerStatus.STARTING, WorkerStatus.STOPPED}),
}


@final
class WorkerLifecycle:
    """Tracks the worker state and rejects illegal transitions."""

    __slots__ = ("_current",)

    def __init__(self) -> None:
        self._current = WorkerStatus.STOPPED

    @property
    def current(self) -> WorkerStatus:
        return self._current

    def can_transition_to(self, target: WorkerStatus) -> bool:
        return target in _TRANSITIONS[self._current]

    def transition(self, target: WorkerStatus) -> WorkerStatus:
        """Move to ``target`` and return the previous state.

        Raises:
            InvalidTransitionError: If the move is not allowed.
        """
        if not self.can_transition_to(target):
            msg = f"Illegal worker transition {self._current.value} -> {target.value}"
            raise InvalidTransitionError(
                msg, source=self._current.value, target=target.value
            )
        previous, self._current = self._current, target
        return previous
