"""Timer synchronization models"""
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TimerPhase(str, Enum):
    """Timer phase"""
    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


class RunState(str, Enum):
    """Countdown run state"""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class TimerSnapshot(BaseModel):
    """Complete state of one user's timer, stored as a single timer_state row"""
    model_config = ConfigDict(extra="ignore")

    phase: TimerPhase = TimerPhase.WORK
    run_state: RunState = RunState.IDLE
    remaining_seconds: int = Field(ge=0)
    total_seconds: int = Field(gt=0)
    start_instant: Optional[datetime] = None
    end_instant: Optional[datetime] = None
    completed_work_count: int = Field(0, ge=0)
    active_interval_id: Optional[str] = None
    last_recorded_interval_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("start_instant", "end_instant", "updated_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps coming back from the store are UTC"""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_invariants(self) -> "TimerSnapshot":
        has_instants = (self.start_instant is not None, self.end_instant is not None)
        if self.run_state == RunState.RUNNING:
            if not all(has_instants):
                raise ValueError("running timer requires start_instant and end_instant")
        elif any(has_instants):
            raise ValueError(f"{self.run_state.value} timer must not carry start_instant/end_instant")
        if self.remaining_seconds > self.total_seconds:
            raise ValueError("remaining_seconds exceeds total_seconds")
        return self

    @classmethod
    def initial(cls, work_seconds: int) -> "TimerSnapshot":
        """Idle Work-phase snapshot for a user with no stored state"""
        return cls(remaining_seconds=work_seconds, total_seconds=work_seconds)

    @property
    def is_running(self) -> bool:
        return self.run_state == RunState.RUNNING

    def evolve(self, **changes: Any) -> "TimerSnapshot":
        """Return a validated copy with `changes` applied"""
        return TimerSnapshot.model_validate({**self.model_dump(), **changes})

    def remaining_at(self, now: datetime) -> int:
        """
        Seconds left at `now`.

        Derived from end_instant while running; frozen otherwise.
        """
        if not self.is_running:
            return self.remaining_seconds
        left = math.ceil((self.end_instant - now).total_seconds())
        return min(self.total_seconds, max(0, left))

    def is_expired_at(self, now: datetime) -> bool:
        return self.is_running and now >= self.end_instant


class TimerView(BaseModel):
    """Read-only view handed to observers"""
    snapshot: TimerSnapshot
    remaining_seconds: int
    progress: float  # 0.0 → 1.0 through the current phase


class CompletionRecord(BaseModel):
    """Finished work interval, written to the sessions table"""
    user_id: str
    type: TimerPhase = TimerPhase.WORK
    start_time: datetime
    end_time: datetime
    duration: int  # minutes
    completed: bool = True
    interrupted: bool = False
    interval_id: str


class TimerSettings(BaseModel):
    """Per-user timer preferences (user_settings row)"""
    model_config = ConfigDict(extra="ignore")

    pomodoro_minutes: int = Field(25, gt=0)
    short_break_minutes: int = Field(5, gt=0)
    long_break_minutes: int = Field(15, gt=0)
    pomodoros_before_long_break: int = Field(4, gt=0)
    auto_start_breaks: bool = False
    auto_start_pomodoros: bool = False
