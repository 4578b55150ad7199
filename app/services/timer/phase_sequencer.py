"""Phase durations and the work/break cadence.

Pure functions only; nothing here touches the clock or the store.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.config import (
    TIMER_LONG_BREAK_EVERY,
    TIMER_LONG_BREAK_SECONDS,
    TIMER_SHORT_BREAK_SECONDS,
    TIMER_WORK_SECONDS,
)
from app.models.timer import RunState, TimerPhase, TimerSettings, TimerSnapshot

# Namespace for interval ids derived from (user, start instant)
INTERVAL_NAMESPACE = uuid.UUID("6f1c2d4e-8a3b-5c7d-9e0f-a1b2c3d4e5f6")


@dataclass(frozen=True)
class DurationPolicy:
    """Canonical duration of each phase plus the long-break cadence"""
    work_seconds: int = TIMER_WORK_SECONDS
    short_break_seconds: int = TIMER_SHORT_BREAK_SECONDS
    long_break_seconds: int = TIMER_LONG_BREAK_SECONDS
    long_break_every: int = TIMER_LONG_BREAK_EVERY
    auto_start_breaks: bool = False
    auto_start_work: bool = False

    @classmethod
    def from_settings(cls, settings: TimerSettings) -> "DurationPolicy":
        return cls(
            work_seconds=settings.pomodoro_minutes * 60,
            short_break_seconds=settings.short_break_minutes * 60,
            long_break_seconds=settings.long_break_minutes * 60,
            long_break_every=settings.pomodoros_before_long_break,
            auto_start_breaks=settings.auto_start_breaks,
            auto_start_work=settings.auto_start_pomodoros,
        )

    def duration_for(self, phase: TimerPhase) -> int:
        if phase == TimerPhase.WORK:
            return self.work_seconds
        if phase == TimerPhase.SHORT_BREAK:
            return self.short_break_seconds
        return self.long_break_seconds

    def auto_starts(self, phase: TimerPhase) -> bool:
        """Whether `phase` should start running as soon as it is entered"""
        if phase == TimerPhase.WORK:
            return self.auto_start_work
        return self.auto_start_breaks


def next_phase(
    current: TimerPhase,
    completed_work_count: int,
    long_break_every: int = TIMER_LONG_BREAK_EVERY,
) -> TimerPhase:
    """
    Phase that follows `current`.

    Args:
        current: Phase that just ended
        completed_work_count: Work count including the interval that just ended
        long_break_every: Every n-th work interval is followed by a long break
    """
    if current != TimerPhase.WORK:
        return TimerPhase.WORK
    if completed_work_count % long_break_every == 0:
        return TimerPhase.LONG_BREAK
    return TimerPhase.SHORT_BREAK


def enter_phase(snapshot: TimerSnapshot, phase: TimerPhase, policy: DurationPolicy, **changes) -> TimerSnapshot:
    """Idle snapshot at the start of `phase` with a full countdown"""
    total = policy.duration_for(phase)
    return snapshot.evolve(
        phase=phase,
        run_state=RunState.IDLE,
        remaining_seconds=total,
        total_seconds=total,
        start_instant=None,
        end_instant=None,
        active_interval_id=None,
        **changes,
    )


def advance(
    snapshot: TimerSnapshot,
    policy: DurationPolicy,
    *,
    count_completion: bool,
    recorded_interval_id: Optional[str] = None,
) -> TimerSnapshot:
    """
    Snapshot after the current phase ends.

    A skipped work interval keeps its slot in the cadence (the break it
    leads to is the one a finished interval would have led to) but does
    not bump completed_work_count.
    """
    count = snapshot.completed_work_count
    cadence_position = count + 1 if snapshot.phase == TimerPhase.WORK else count
    upcoming = next_phase(snapshot.phase, cadence_position, policy.long_break_every)

    changes = {}
    if count_completion and snapshot.phase == TimerPhase.WORK:
        changes["completed_work_count"] = cadence_position
    if recorded_interval_id is not None:
        changes["last_recorded_interval_id"] = recorded_interval_id
    return enter_phase(snapshot, upcoming, policy, **changes)


def derive_interval_id(user_id: str, start_instant: datetime) -> str:
    """Deterministic interval id for a running work phase that has none"""
    return str(uuid.uuid5(INTERVAL_NAMESPACE, f"{user_id}:{start_instant.astimezone(timezone.utc).isoformat()}"))
