"""Article operation lifecycle state machine."""

from enum import Enum, auto
from typing import ClassVar

import structlog


logger = structlog.get_logger()


class OperationState(Enum):
    """Article operation lifecycle states.

    State transitions:
        PENDING -> RUNNING: A worker picked the operation up
        PENDING -> CANCELLED: Cancelled before a worker started it
        PENDING -> FAILED: Rejected before any I/O (e.g. empty title)
        RUNNING -> SUCCEEDED: Article parsed and saved
        RUNNING -> FAILED: Transport, API, parse or store failure
        RUNNING -> CANCELLED: Cancelled while in flight
    """

    PENDING = auto()
    RUNNING = auto()
    SUCCEEDED = auto()
    FAILED = auto()
    CANCELLED = auto()


class OperationStateError(Exception):
    """Raised when an invalid operation state transition is attempted."""

    def __init__(self, from_state: OperationState, to_state: OperationState) -> None:
        """Initialize the error.

        Args:
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid operation state transition: {from_state.name} -> {to_state.name}"
        )


class OperationStateMachine:
    """State machine for a single article fetch operation.

    Not thread-safe on its own; ArticleOperation guards it with its lock.
    """

    VALID_TRANSITIONS: ClassVar[dict[OperationState, set[OperationState]]] = {
        OperationState.PENDING: {
            OperationState.RUNNING,
            OperationState.CANCELLED,
            OperationState.FAILED,
        },
        OperationState.RUNNING: {
            OperationState.SUCCEEDED,
            OperationState.FAILED,
            OperationState.CANCELLED,
        },
        OperationState.SUCCEEDED: set(),  # Terminal state
        OperationState.FAILED: set(),  # Terminal state
        OperationState.CANCELLED: set(),  # Terminal state
    }

    def __init__(self, title_key: str) -> None:
        """Initialize the state machine in PENDING state.

        Args:
            title_key: Storage key of the article, for logging.
        """
        self._title_key = title_key
        self._state = OperationState.PENDING
        self._log = logger.bind(title=title_key, component="article_fetcher")

    @property
    def state(self) -> OperationState:
        return self._state

    def can_transition(self, to_state: OperationState) -> bool:
        """Check if a transition to the given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: OperationState) -> None:
        """Transition to a new state.

        Raises:
            OperationStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.name,
                to_state=to_state.name,
            )
            raise OperationStateError(self._state, to_state)

        old_state = self._state
        self._state = to_state
        self._log.debug(
            "operation_state_transition",
            from_state=old_state.name,
            to_state=to_state.name,
        )

    def is_terminal(self) -> bool:
        """Check if the current state is terminal (no more transitions allowed)."""
        return self._state in (
            OperationState.SUCCEEDED,
            OperationState.FAILED,
            OperationState.CANCELLED,
        )

    def is_cancelled(self) -> bool:
        return self._state == OperationState.CANCELLED
