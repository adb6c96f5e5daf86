from __future__ import annotations

import dataclasses
from collections import defaultdict
from enum import Enum, auto
from typing import Dict

from .logging import getLogger

logger = getLogger("rulegen")


class PassEvent(Enum):
    """Outcomes counted per generalization pass."""

    ORACLE_QUERY = auto()  # Any oracle call (validity, precondition, synthesis, enumeration)
    CANDIDATE_ACCEPTED = auto()  # A candidate rule was emitted
    CANDIDATE_DISCARDED = auto()  # An oracle rejected a candidate
    PASS_ABORTED = auto()  # The pass refused its input (invalid rule, unsupported shape)


@dataclasses.dataclass
class GeneralizationStatistics:
    """Counters for the generalization passes.

    One instance is threaded through a CLI run; tests create their own to
    assert on how many oracle queries a pass issued.
    """

    counts: Dict[str, Dict[PassEvent, int]] = dataclasses.field(
        default_factory=lambda: defaultdict(lambda: defaultdict(int))
    )

    def reset(self) -> None:
        self.counts.clear()

    def record(self, pass_name: str, event: PassEvent, amount: int = 1) -> None:
        self.counts[pass_name][event] += amount

    def get(self, pass_name: str, event: PassEvent) -> int:
        if pass_name not in self.counts:
            return 0
        return self.counts[pass_name].get(event, 0)

    def total(self, event: PassEvent) -> int:
        return sum(events.get(event, 0) for events in self.counts.values())

    def report(self) -> str:
        lines = []
        for pass_name in sorted(self.counts):
            events = self.counts[pass_name]
            parts = ", ".join(
                f"{event.name.lower()}={events[event]}"
                for event in PassEvent
                if events.get(event)
            )
            lines.append(f"{pass_name}: {parts}")
        return "\n".join(lines)

    def log_report(self) -> None:
        if not self.counts:
            return
        logger.debug("Generalization statistics:\n%s", self.report())
