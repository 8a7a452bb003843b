"""
Expansion of recurrence patterns into concrete occurrence intervals.

Expansion is lazy and always finite: on top of the pattern's own
``end_date`` / ``max_occurrences`` a mandatory cutoff and a global
occurrence ceiling stop the generation. When one of those, rather than the
pattern, ends the expansion the result is flagged as truncated.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from pendulum import DateTime

from .exceptions import ValidationError
from .models import (
    DailyRecurrence,
    Interval,
    MonthlyRecurrence,
    NoRecurrence,
    RecurrencePattern,
    WeeklyRecurrence,
    weekday_index,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_EXPANSION = 500


@dataclass(frozen=True)
class ExpansionResult:
    """Materialized occurrences plus whether the cutoff truncated them."""
    occurrences: Tuple[Interval, ...]
    truncated: bool = False

    def __len__(self) -> int:
        return len(self.occurrences)

    def __iter__(self):
        return iter(self.occurrences)


class RecurrenceExpansion:
    """
    Restartable lazy sequence of occurrences.

    Iterating twice yields the same intervals; nothing is generated until
    the sequence is consumed.
    """

    def __init__(
        self,
        anchor: Interval,
        pattern: RecurrencePattern,
        cutoff: DateTime,
        max_expansion: int = DEFAULT_MAX_EXPANSION,
    ):
        self.anchor = anchor
        self.pattern = pattern
        self.cutoff = cutoff
        self.max_expansion = max_expansion
        self._length_seconds = int((anchor.end - anchor.start).total_seconds())

    def __iter__(self) -> Iterator[Interval]:
        return self._generate(stops=None)

    def materialize(self) -> ExpansionResult:
        stops: List[str] = []
        occurrences = tuple(self._generate(stops=stops))
        truncated = bool(stops)
        if truncated:
            logger.warning(
                "Recurrence from %s truncated after %d occurrences (%s)",
                self.anchor.start,
                len(occurrences),
                stops[0],
            )
        return ExpansionResult(occurrences=occurrences, truncated=truncated)

    def _generate(self, stops: List[str] | None) -> Iterator[Interval]:
        if isinstance(self.pattern, NoRecurrence):
            yield self.anchor
            return

        pattern = self.pattern
        count = 0

        for start in self._candidate_starts():
            if pattern.max_occurrences is not None and count >= pattern.max_occurrences:
                return
            if pattern.end_date is not None and start > pattern.end_date:
                return
            if start >= self.cutoff:
                if stops is not None:
                    stops.append(f"cutoff {self.cutoff} reached")
                return
            if count >= self.max_expansion:
                if stops is not None:
                    stops.append(f"ceiling of {self.max_expansion} occurrences reached")
                return

            count += 1
            yield Interval(start=start, end=start.add(seconds=self._length_seconds))

    def _candidate_starts(self) -> Iterator[DateTime]:
        """Unbounded, ascending start times for the pattern."""
        pattern = self.pattern
        anchor_start = self.anchor.start
        step = 0

        if isinstance(pattern, DailyRecurrence):
            while True:
                yield anchor_start.add(days=step * pattern.interval)
                step += 1

        elif isinstance(pattern, WeeklyRecurrence):
            days = sorted(pattern.days_of_week) or [weekday_index(anchor_start)]
            # Sunday of the anchor week, anchor time-of-day kept.
            week_start = anchor_start.subtract(days=weekday_index(anchor_start))
            while True:
                base = week_start.add(weeks=step * pattern.interval)
                for day in days:
                    start = base.add(days=day)
                    if start >= anchor_start:
                        yield start
                step += 1

        elif isinstance(pattern, MonthlyRecurrence):
            while True:
                # Always offset from the anchor so Jan 31 -> Feb 28 -> Mar 31.
                yield anchor_start.add(months=step * pattern.interval)
                step += 1

        else:
            raise ValidationError(f"Unsupported recurrence pattern: {pattern!r}")


class RecurrenceExpander:
    """Turns an anchor interval and a pattern into concrete occurrences."""

    def __init__(self, max_expansion: int = DEFAULT_MAX_EXPANSION):
        if max_expansion < 1:
            raise ValidationError("max_expansion must be positive")
        self.max_expansion = max_expansion

    def expand(
        self,
        anchor: Interval,
        pattern: RecurrencePattern,
        cutoff: DateTime | None,
    ) -> RecurrenceExpansion:
        """
        Return the lazy occurrence sequence for a pattern.

        Args:
            anchor: First occurrence; its duration is reused for every occurrence
            pattern: Recurrence pattern variant
            cutoff: Hard stop, occurrences starting at or after it are never emitted

        Raises:
            ValidationError: If no cutoff is given
        """
        if cutoff is None:
            raise ValidationError("A recurrence cutoff is required to bound the expansion")
        return RecurrenceExpansion(anchor, pattern, cutoff, self.max_expansion)

    def expand_all(
        self,
        anchor: Interval,
        pattern: RecurrencePattern,
        cutoff: DateTime | None,
    ) -> ExpansionResult:
        """Expand eagerly and report truncation."""
        return self.expand(anchor, pattern, cutoff).materialize()
