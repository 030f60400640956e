"""
Transition Types - FSM State Transition Definitions

Type definitions describing what a driver operation did to the session.
Returned by the engine so callers (service, API, tests) can react to the
transition without re-deriving it from the session state.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Optional


class StateMachineTransition(Enum):
    """
    What happened to the step pointer and phase after an operation.
    """

    HOLD = auto()  # Validation failed; the pointer remains on the current step.
    ADVANCE = auto()  # The pointer moved to the next step.
    BACK = auto()  # The pointer moved to the previous step (no network call).
    CONFIRM = auto()  # The processor asked a question; waiting for Yes/No.
    EXIT = auto()  # The flow reached an exit node.
    COMPLETE = auto()  # The processor returned a final result.
    RESET = auto()  # The session was re-initialised.
    DISCARD = auto()  # A response arrived for a torn-down generation and was dropped.


@dataclass
class TransitionMeta:
    """
    Metadata about a transition.
    """

    transition_type: StateMachineTransition
    from_step: int
    to_step: int
    reasoning: str = ""
    revisited: bool = False
    errors: Dict[str, str] = field(default_factory=dict)
    group_id: Optional[str] = None
