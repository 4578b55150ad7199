"""Timer synchronization services"""
from .phase_sequencer import DurationPolicy, advance, enter_phase, next_phase
from .session_manager import TimerSessionManager, get_session_manager
from .timer_session import TimerSession

__all__ = [
    "DurationPolicy",
    "advance",
    "enter_phase",
    "next_phase",
    "TimerSession",
    "TimerSessionManager",
    "get_session_manager",
]
