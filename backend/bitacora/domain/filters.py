"""Filtering, search, stats and ordering over in-memory collections.

Pure functions; the controllers call these on every filter change without
touching the gateway.
"""
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from bitacora.domain.stages import ALL_STAGES, Stage
from bitacora.schemas.initiatives import Initiative
from bitacora.schemas.log_entries import LogEntry


@dataclass(frozen=True)
class InitiativeStats:
    total: int
    in_progress: int
    finalized: int


def matches(initiative: Initiative, search: str = "", stage: str | Stage = ALL_STAGES) -> bool:
    """Stage matches (or "all") AND search is a case-insensitive substring of name or code."""
    stage_value = stage.value if isinstance(stage, Stage) else stage
    match_stage = stage_value == ALL_STAGES or initiative.etapa.value == stage_value

    q = (search or "").lower()
    nombre = (initiative.nombre or "").lower()
    codigo = (initiative.codigo or "").lower()
    match_search = not q or q in nombre or q in codigo

    return match_stage and match_search


def filter_initiatives(
    initiatives: Iterable[Initiative],
    search: str = "",
    stage: str | Stage = ALL_STAGES,
) -> list[Initiative]:
    return [i for i in initiatives if matches(i, search, stage)]


def compute_stats(initiatives: Iterable[Initiative]) -> InitiativeStats:
    items = list(initiatives)
    finalized = sum(1 for i in items if i.etapa == Stage.terminal())
    return InitiativeStats(total=len(items), in_progress=len(items) - finalized, finalized=finalized)


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def order_entries(entries: Iterable[LogEntry]) -> tuple[LogEntry, ...]:
    """Newest ``fecha`` first, then newest ``created_at`` among equal dates.

    Full ties keep their incoming order (``sorted`` is stable under reverse).
    """
    return tuple(
        sorted(
            entries,
            key=lambda e: (e.fecha or _EPOCH, e.created_at or _EPOCH),
            reverse=True,
        )
    )
