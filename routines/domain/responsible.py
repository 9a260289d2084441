from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional

from .entities import Absence
from .enums import AbsencePolicy, SkipReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    actor_id: str | None
    skip_reason: Optional[SkipReason] = None

    @property
    def skipped(self) -> bool:
        return self.actor_id is None


class ResponsibleResolver:
    """Applies absence policies to the designated owner of each location.

    Built from point-in-time snapshots of the responsible directory and of the
    absences covering the target date; it never reads storage itself.
    """

    def __init__(self, responsibles: Mapping[int, str], absences: Iterable[Absence]) -> None:
        self._responsibles = dict(responsibles)
        self._absences: dict[str, list[Absence]] = {}
        for absence in absences:
            self._absences.setdefault(absence.actor_id, []).append(absence)

    def resolve(self, location_id: int, target: date) -> Resolution:
        actor_id = self._responsibles.get(location_id)
        if not actor_id:
            return Resolution(None, SkipReason.NO_RESPONSIBLE)

        absence = self._absence_for(actor_id, target)
        if absence is None:
            return Resolution(actor_id)

        if absence.policy == AbsencePolicy.OMIT:
            return Resolution(None, SkipReason.ABSENT_OMITTED)

        if not absence.receptor_id:
            logger.warning(
                "Absence %s for %s has reassign policy but no receptor; keeping original owner",
                absence.id,
                actor_id,
            )
            return Resolution(actor_id)
        return Resolution(absence.receptor_id)

    def _absence_for(self, actor_id: str, target: date) -> Absence | None:
        covering = [a for a in self._absences.get(actor_id, []) if a.covers(target)]
        if not covering:
            return None
        # Latest start wins when an operator stacked overlapping absences.
        return max(covering, key=lambda a: (a.date_from, a.id or 0))
