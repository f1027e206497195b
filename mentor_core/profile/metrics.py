"""
Cognitive profile metrics.

Pure functions that derive every profile field from a learner's history.
No database access and no wall clock: ``now`` is always passed in, and
history lists are expected newest first, so the same history always
yields the same profile.

Any non-PASS attempt status counts as a failure.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from mentor_core.core.clock import days_between, start_of_day
from mentor_core.core.scoring import clamp, round_half_up

PASS = "PASS"

# Window sizes (attempts / mistakes / days) feeding each metric
WINDOWS = {
    "momentum_attempts": 20,
    "burnout_attempts": 50,
    "burnout_recent_fails": 10,
    "confidence_attempts": 30,
    "confidence_mistakes": 20,
    "streak_attempts": 30,
    "engagement_days": 14,
    "mission_days": 7,
    "max_missions": 21,
    "session_outlier_minutes": 180,
}

DEFAULT_PEAK_HOUR = 14
DEFAULT_SESSION_MINUTES = 30


@dataclass(frozen=True)
class AttemptSnapshot:
    question_id: str
    topic_id: str | None
    difficulty: int
    status: str
    created_at: datetime
    execution_ms: int | None = None
    hints_used: int = 0

    @property
    def passed(self) -> bool:
        return self.status == PASS

    @classmethod
    def from_model(cls, attempt: Any) -> AttemptSnapshot:
        return cls(
            question_id=attempt.question_id,
            topic_id=attempt.topic_id,
            difficulty=attempt.difficulty or 1,
            status=attempt.status,
            created_at=attempt.created_at,
            execution_ms=attempt.execution_ms,
            hints_used=attempt.hints_used or 0,
        )


@dataclass(frozen=True)
class MistakeSnapshot:
    mistake_type: str
    severity: int


@dataclass(frozen=True)
class ActivitySnapshot:
    created_at: datetime
    activity_type: str = "activity"
    session_id: str | None = None


@dataclass(frozen=True)
class MissionSnapshot:
    created_at: datetime
    completed_at: datetime | None = None


@dataclass(frozen=True)
class ProgressSnapshot:
    current_streak: int = 0
    best_streak: int = 0
    xp: int = 0


@dataclass
class ProfileHistory:
    """Everything a full recompute reads. Lists are newest first."""

    attempts: list[AttemptSnapshot] = field(default_factory=list)
    mistakes: list[MistakeSnapshot] = field(default_factory=list)
    activities: list[ActivitySnapshot] = field(default_factory=list)
    missions: list[MissionSnapshot] = field(default_factory=list)
    progress: ProgressSnapshot | None = None


@dataclass
class ProfileMetrics:
    """Every derived profile field. Field names match the stored profile columns."""

    accuracy_rate: float
    retry_rate: float
    avg_solve_time: int
    avg_solve_time_by_difficulty: dict[str, int]
    topic_weakness_map: dict[str, int]
    topic_strength_map: dict[str, int]
    mistake_type_frequency: dict[str, int]
    streak_stability_score: int
    momentum_score: int
    burnout_risk_score: int
    confidence_index: int
    engagement_score: int
    preferred_session_length: int
    peak_performance_hour: int
    consistency_score: int
    learning_velocity: float
    total_questions_attempted: int
    total_questions_passed: int
    total_mistakes: int
    current_win_streak: int
    current_lose_streak: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _round2(value: float) -> float:
    return round_half_up(value * 100) / 100


def compute_profile(history: ProfileHistory, now: datetime) -> ProfileMetrics:
    """Derive a complete profile from ``history`` as of ``now``."""
    attempts = history.attempts
    passed = [a for a in attempts if a.passed]
    total = len(attempts)

    accuracy = len(passed) / total if total else 0.0
    unique_questions = {a.question_id for a in attempts}
    retry_rate = total / len(unique_questions) if unique_questions else 1.0

    avg_solve_time, by_difficulty = solve_times(passed)
    weakness, strength = topic_maps(attempts)

    frequency: dict[str, int] = defaultdict(int)
    for mistake in history.mistakes:
        frequency[mistake.mistake_type] += 1

    win_streak, lose_streak = current_streaks(attempts[: WINDOWS["streak_attempts"]])

    return ProfileMetrics(
        accuracy_rate=_round2(accuracy),
        retry_rate=_round2(retry_rate),
        avg_solve_time=avg_solve_time,
        avg_solve_time_by_difficulty=by_difficulty,
        topic_weakness_map=weakness,
        topic_strength_map=strength,
        mistake_type_frequency=dict(sorted(frequency.items())),
        streak_stability_score=streak_stability(history.progress),
        momentum_score=momentum(
            attempts[: WINDOWS["momentum_attempts"]], history.progress, history.missions, now
        ),
        burnout_risk_score=burnout_risk(
            history.activities, attempts[: WINDOWS["burnout_attempts"]], history.progress, now
        ),
        confidence_index=confidence(
            attempts[: WINDOWS["confidence_attempts"]],
            history.mistakes[: WINDOWS["confidence_mistakes"]],
        ),
        engagement_score=engagement(history.activities, history.missions, now),
        preferred_session_length=preferred_session_length(history.activities),
        peak_performance_hour=peak_performance_hour(passed),
        consistency_score=consistency(history.activities, now),
        learning_velocity=learning_velocity(history.progress, attempts, now),
        total_questions_attempted=total,
        total_questions_passed=len(passed),
        total_mistakes=len(history.mistakes),
        current_win_streak=win_streak,
        current_lose_streak=lose_streak,
    )


def solve_times(passed: list[AttemptSnapshot]) -> tuple[int, dict[str, int]]:
    """Average seconds over successful timed attempts, overall and per difficulty."""
    timed = [a for a in passed if a.execution_ms]
    if not timed:
        return 0, {}

    overall = round_half_up(sum(a.execution_ms or 0 for a in timed) / len(timed) / 1000)

    groups: dict[int, list[int]] = defaultdict(list)
    for attempt in timed:
        groups[attempt.difficulty].append(attempt.execution_ms or 0)

    by_difficulty = {
        f"LEVEL_{difficulty}": round_half_up(sum(times) / len(times) / 1000)
        for difficulty, times in sorted(groups.items())
    }
    return overall, by_difficulty


def topic_maps(attempts: list[AttemptSnapshot]) -> tuple[dict[str, int], dict[str, int]]:
    """
    Weakness and strength per topic, scaled by attempt volume.

    Both scores are multiplied by ``min(attempts / 10, 1)``, so sparse
    topics report low weakness *and* low strength.
    """
    stats: dict[str, list[int]] = {}
    for attempt in attempts:
        if attempt.topic_id is None:
            continue
        passed_total = stats.setdefault(attempt.topic_id, [0, 0])
        passed_total[1] += 1
        if attempt.passed:
            passed_total[0] += 1

    weakness: dict[str, int] = {}
    strength: dict[str, int] = {}
    for topic_id in sorted(stats):
        topic_passed, topic_total = stats[topic_id]
        success_rate = topic_passed / topic_total
        weight = min(topic_total / 10, 1)
        weakness[topic_id] = round_half_up((1 - success_rate) * 100 * weight)
        strength[topic_id] = round_half_up(success_rate * 100 * weight)
    return weakness, strength


def streak_stability(progress: ProgressSnapshot | None) -> int:
    if progress is None:
        return 50
    best = progress.best_streak or 1
    ratio = progress.current_streak / max(best, 1)
    return int(min(100, round_half_up(30 + ratio * 70)))


def momentum(
    recent: list[AttemptSnapshot],
    progress: ProgressSnapshot | None,
    missions: list[MissionSnapshot],
    now: datetime,
) -> int:
    """Recent success (50) + day streak bonus (20) + mission completion (30)."""
    if not recent:
        return 50

    success_rate = sum(1 for a in recent if a.passed) / len(recent)
    streak_bonus = min((progress.current_streak if progress else 0) * 2, 20)

    if missions:
        completed_recently = [
            m
            for m in missions
            if m.completed_at and days_between(now, m.completed_at) < WINDOWS["mission_days"]
        ]
        mission_rate = len(completed_recently) / min(len(missions), WINDOWS["max_missions"])
    else:
        mission_rate = 0.5

    score = success_rate * 50 + streak_bonus + mission_rate * 30
    return int(clamp(round_half_up(score)))


def burnout_risk(
    activities: list[ActivitySnapshot],
    recent: list[AttemptSnapshot],
    progress: ProgressSnapshot | None,
    now: datetime,
) -> int:
    risk = 0

    # Activity dropped by more than half week over week
    last_week = sum(1 for a in activities if days_between(now, a.created_at) < 7)
    prev_week = sum(1 for a in activities if 7 <= days_between(now, a.created_at) < 14)
    if prev_week > 0 and last_week < prev_week * 0.5:
        risk += 30

    recent_fails = sum(1 for a in recent[: WINDOWS["burnout_recent_fails"]] if not a.passed)
    if recent_fails >= 5:
        risk += 20
    if recent_fails >= 8:
        risk += 20

    # Lost a long day streak
    current = progress.current_streak if progress else 0
    best = progress.best_streak if progress else 0
    if best > 14 and current < 3:
        risk += 25

    return min(100, risk)


def confidence(recent: list[AttemptSnapshot], mistakes: list[MistakeSnapshot]) -> int:
    """Success (40) + low hint usage (30) + low mistake severity (30)."""
    if not recent:
        return 50

    success = sum(1 for a in recent if a.passed) / len(recent) * 40
    avg_hints = sum(a.hints_used for a in recent) / len(recent)
    hints = max(0.0, 30 - avg_hints * 10)
    avg_severity = sum(m.severity for m in mistakes) / len(mistakes) if mistakes else 2
    severity = max(0.0, 30 - avg_severity * 6)

    return int(clamp(round_half_up(success + hints + severity)))


def _active_days(activities: list[ActivitySnapshot], now: datetime) -> list[datetime]:
    days = {
        start_of_day(a.created_at)
        for a in activities
        if days_between(now, a.created_at) < WINDOWS["engagement_days"]
    }
    return sorted(days)


def engagement(
    activities: list[ActivitySnapshot], missions: list[MissionSnapshot], now: datetime
) -> int:
    """Days active in the last two weeks (50) + mission completion (50)."""
    days_component = len(_active_days(activities, now)) / WINDOWS["engagement_days"] * 50
    if missions:
        mission_component = sum(1 for m in missions if m.completed_at) / len(missions) * 50
    else:
        mission_component = 25
    return int(clamp(round_half_up(days_component + mission_component)))


def preferred_session_length(activities: list[ActivitySnapshot]) -> int:
    """Average session length in minutes; activities without a session group by day."""
    sessions: dict[str, list[datetime]] = defaultdict(list)
    for activity in activities:
        key = activity.session_id or activity.created_at.date().isoformat()
        sessions[key].append(activity.created_at)

    durations: list[float] = []
    for key in sorted(sessions):
        times = sorted(sessions[key])
        if len(times) < 2:
            continue
        minutes = (times[-1] - times[0]).total_seconds() / 60
        if 0 < minutes < WINDOWS["session_outlier_minutes"]:
            durations.append(minutes)

    if not durations:
        return DEFAULT_SESSION_MINUTES
    return round_half_up(sum(durations) / len(durations))


def peak_performance_hour(passed: list[AttemptSnapshot]) -> int:
    """Hour of day with the most passes; the first hour seen wins ties."""
    if not passed:
        return DEFAULT_PEAK_HOUR

    counts: dict[int, int] = {}
    for attempt in passed:
        hour = attempt.created_at.hour
        counts[hour] = counts.get(hour, 0) + 1

    peak_hour, max_count = DEFAULT_PEAK_HOUR, 0
    for hour, count in counts.items():
        if count > max_count:
            peak_hour, max_count = hour, count
    return peak_hour


def consistency(activities: list[ActivitySnapshot], now: datetime) -> int:
    """1-day average gap between active days scores 100, 7-day gap scores ~10."""
    days = _active_days(activities, now)
    if len(days) < 2:
        return 50

    total_gap = sum(days_between(later, earlier) for earlier, later in zip(days, days[1:]))
    avg_gap = total_gap / (len(days) - 1)
    return int(clamp(round_half_up(100 - (avg_gap - 1) * 15)))


def learning_velocity(
    progress: ProgressSnapshot | None, attempts: list[AttemptSnapshot], now: datetime
) -> float:
    """Estimated XP per day (100 XP per pass) since the oldest attempt read."""
    if progress is None or not progress.xp or not attempts:
        return 1.0

    oldest = attempts[-1]
    days = max(1, days_between(now, oldest.created_at))
    estimated_xp = sum(1 for a in attempts if a.passed) * 100
    return round_half_up(estimated_xp / days * 10) / 10


def current_streaks(recent: list[AttemptSnapshot]) -> tuple[int, int]:
    """Win and lose streak ending at the newest attempt."""
    win = lose = 0
    for attempt in recent:
        if attempt.passed:
            if lose:
                break
            win += 1
        else:
            if win:
                break
            lose += 1
    return win, lose
