from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TypeAlias

from msgspec.structs import replace

from .models import Phase, Step, utcnow
from .steps import merge_steps

IClock: TypeAlias = Callable[[], datetime]


class PhaseAggregator:
    """Groups steps into phases, one phase per open/close cycle."""

    def __init__(self, clock: IClock = utcnow) -> None:
        self._clock = clock
        self._phases: list[Phase] = []
        self._open_index: int | None = None

    @property
    def phases(self) -> list[Phase]:
        return list(self._phases)

    @property
    def open_phase_id(self) -> str | None:
        if self._open_index is None:
            return None
        return self._phases[self._open_index].phase_id

    def apply(self, steps: Sequence[Step]) -> tuple[list[Phase], str | None]:
        """Reflect the current cycle's steps into the open phase."""
        if not steps:
            return self.phases, self.open_phase_id

        if self._open_index is None:
            self._phases.append(
                Phase(
                    phase_id=f"phase-{len(self._phases)}",
                    started_at=self._clock(),
                )
            )
            self._open_index = len(self._phases) - 1

        phase = self._phases[self._open_index]
        merged = merge_steps(phase.steps, steps)
        self._phases[self._open_index] = replace(
            phase,
            steps=merged,
            is_active=any(step.is_running for step in merged),
        )
        return self.phases, self.open_phase_id

    def close(self) -> list[Phase]:
        """Close the open phase; an open phase without steps is dropped."""
        if self._open_index is None:
            return self.phases

        phase = self._phases[self._open_index]
        if phase.steps:
            self._phases[self._open_index] = replace(
                phase,
                is_active=False,
                completed_at=self._clock(),
            )
        else:
            del self._phases[self._open_index]
        self._open_index = None
        return self.phases
