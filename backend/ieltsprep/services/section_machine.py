"""
IELTS Prep - Section State Machine
Fixed LISTENING -> READING -> WRITING -> SPEAKING progression for a mock test.

Functions here only mutate the MockTest row passed in; persisting it is the
caller's job. The clock is always passed in.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ieltsprep.core.errors import InvalidState, ValidationFailed, WrongSection
from ieltsprep.models.content import Module
from ieltsprep.models.mock_test import MockTest, MockTestStatus

SECTION_ORDER = (
    Module.LISTENING.value,
    Module.READING.value,
    Module.WRITING.value,
    Module.SPEAKING.value,
)

SECTION_DURATIONS_MINUTES = {
    Module.LISTENING.value: 40,  # 30 min audio + 10 min transfer
    Module.READING.value: 60,
    Module.WRITING.value: 60,    # 20 min Task 1 + 40 min Task 2
    Module.SPEAKING.value: 14,
}


@dataclass
class TimingSnapshot:
    started_at: Optional[datetime]
    deadline: Optional[datetime]
    duration_minutes: Optional[int]
    time_remaining_seconds: Optional[int]
    is_overtime: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "deadline": self.deadline,
            "duration_minutes": self.duration_minutes,
            "time_remaining_seconds": self.time_remaining_seconds,
            "is_overtime": self.is_overtime,
        }


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything here is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_section(value: str) -> str:
    """Case-insensitive section name to its canonical form."""
    section = (value or "").strip().upper()
    if section not in SECTION_ORDER:
        raise ValidationFailed("Invalid section", section=value)
    return section


def next_section(section: str) -> Optional[str]:
    index = SECTION_ORDER.index(section)
    if index + 1 < len(SECTION_ORDER):
        return SECTION_ORDER[index + 1]
    return None


def section_deadline(section: str, started_at: datetime) -> datetime:
    return started_at + timedelta(minutes=SECTION_DURATIONS_MINUTES[section])


def ensure_active(test: MockTest, section: str, action: str = "submit") -> None:
    """
    Guard shared by start and submit.

    Raises:
        InvalidState: the test is not IN_PROGRESS
        WrongSection: `section` is not the current section
    """
    if test.status != MockTestStatus.IN_PROGRESS.value:
        raise InvalidState(status=test.status)
    if test.current_section != section:
        raise WrongSection(
            f"Cannot {action} {section}. Current section is {test.current_section}.",
            currentSection=test.current_section,
        )


def _merge_section_times(test: MockTest, key: str, **fields: Any) -> None:
    # Reassign so the JSON column is flagged dirty
    existing = dict(test.section_times or {})
    entry = dict(existing.get(key) or {})
    entry.update(fields)
    existing[key] = entry
    test.section_times = existing


def start(test: MockTest, section: str, now: datetime) -> TimingSnapshot:
    """Start (or restart) the current section and set its deadline."""
    ensure_active(test, section, action="start")

    deadline = section_deadline(section, now)
    test.current_section_started_at = now
    test.current_section_deadline = deadline
    _merge_section_times(
        test,
        section.lower(),
        startedAt=now.isoformat(),
        deadline=deadline.isoformat(),
    )
    return timing_snapshot(test, now)


def complete(
    test: MockTest,
    section: str,
    now: datetime,
    time_spent: Optional[int] = None,
) -> Optional[str]:
    """
    Close the current section and move on.

    Late submissions are accepted; the client's time_spent is recorded as
    given. Returns the next section, or None when the test just completed.
    """
    ensure_active(test, section)

    _merge_section_times(
        test,
        section.lower(),
        completedAt=now.isoformat(),
        timeSpent=time_spent,
    )

    following = next_section(section)
    test.current_section = following
    test.current_section_started_at = None
    test.current_section_deadline = None

    if following is None:
        test.status = MockTestStatus.COMPLETED.value
        test.completed_at = now
    return following


def abandon(test: MockTest, now: datetime) -> None:
    """Irreversibly abandon an in-progress test."""
    if test.status != MockTestStatus.IN_PROGRESS.value:
        raise InvalidState(
            "Only in-progress mock tests can be abandoned.",
            status=test.status,
        )

    section_times = dict(test.section_times or {})
    section_times["abandonedAt"] = now.isoformat()
    section_times["abandonedDuringSection"] = test.current_section
    test.section_times = section_times

    test.status = MockTestStatus.ABANDONED.value
    test.completed_at = now
    test.current_section_started_at = None
    test.current_section_deadline = None


def timing_snapshot(test: MockTest, now: datetime) -> TimingSnapshot:
    started_at = ensure_aware(test.current_section_started_at)
    deadline = ensure_aware(test.current_section_deadline)

    if test.status != MockTestStatus.IN_PROGRESS.value or deadline is None:
        return TimingSnapshot(
            started_at=started_at,
            deadline=deadline,
            duration_minutes=None,
            time_remaining_seconds=None,
            is_overtime=False,
        )

    remaining = (deadline - now).total_seconds()
    return TimingSnapshot(
        started_at=started_at,
        deadline=deadline,
        duration_minutes=SECTION_DURATIONS_MINUTES.get(test.current_section),
        time_remaining_seconds=max(0, math.floor(remaining)),
        is_overtime=now > deadline,
    )


def completed_sections(test: MockTest) -> list[str]:
    times = test.section_times or {}
    return [
        section for section in SECTION_ORDER
        if (times.get(section.lower()) or {}).get("completedAt")
    ]


def progress(test: MockTest) -> Dict[str, Any]:
    done = completed_sections(test)
    if test.current_section in SECTION_ORDER:
        current_index = SECTION_ORDER.index(test.current_section)
    else:
        current_index = None
    return {
        "completed_sections": done,
        "current_section_index": current_index,
        "total_sections": len(SECTION_ORDER),
        "percent_complete": round(len(done) / len(SECTION_ORDER) * 100),
    }
