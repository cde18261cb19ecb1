"""
Monitor core: session state machine, retry executor, viewer metrics and message
composition, driven by the poll loop
"""

from .poller import StreamMonitor
from .retry import BackoffSchedule, RetryExecutor, RetryOutcome, RetryResult
from .session import MonitorState, SessionStateMachine, StreamSession, Transition, decide_transition
from .signals import StopSignal

__all__ = [
    "BackoffSchedule",
    "MonitorState",
    "RetryExecutor",
    "RetryOutcome",
    "RetryResult",
    "SessionStateMachine",
    "StopSignal",
    "StreamMonitor",
    "StreamSession",
    "Transition",
    "decide_transition",
]
