"""Domain models for the application"""
from .timer import CompletionRecord, RunState, TimerPhase, TimerSettings, TimerSnapshot, TimerView

__all__ = [
    'CompletionRecord', 'RunState', 'TimerPhase', 'TimerSettings', 'TimerSnapshot', 'TimerView',
]
