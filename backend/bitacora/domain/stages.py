"""Stage enum and transition policies for the initiative lifecycle.

Pure domain logic with no external dependencies.
"""
from dataclasses import dataclass
from enum import Enum


class Stage(str, Enum):
    """Four-stage initiative lifecycle, in order. Values are the stored strings."""

    IDENTIFICATION = "Identificación de oportunidad"
    DESIGN = "Diseño Integral"
    PILOT = "Implementación de piloto"
    SCALE = "Escalamiento y mejora continua"

    @classmethod
    def ordered(cls) -> list["Stage"]:
        return list(cls)

    @classmethod
    def default(cls) -> "Stage":
        return cls.IDENTIFICATION

    @classmethod
    def terminal(cls) -> "Stage":
        return cls.SCALE

    @classmethod
    def coerce(cls, value: "str | Stage | None") -> "Stage":
        """Map a stored value to a Stage; absence means the first stage.

        Raises ValueError for strings outside the fixed set.
        """
        if value is None or value == "":
            return cls.default()
        return cls(value)

    @property
    def position(self) -> int:
        """1-based ordinal of the stage."""
        return Stage.ordered().index(self) + 1


# "all" disables stage filtering in list views
ALL_STAGES = "all"


class TransitionPolicy(str, Enum):
    """How stage changes are validated.

    OPEN: any stage may move to any other stage.
    FORWARD_ONLY: a stage may only move to a later stage.
    """

    OPEN = "open"
    FORWARD_ONLY = "forward_only"


@dataclass
class TransitionResult:
    """Result of a transition attempt."""

    allowed: bool
    reason: str = ""
    new_stage: Stage | None = None


def validate_transition(
    current_stage: Stage,
    target_stage: Stage,
    policy: TransitionPolicy = TransitionPolicy.OPEN,
) -> TransitionResult:
    """Validate whether a stage change is allowed under ``policy``.

    Pure function -- no side effects, no gateway access.

    Rules:
        - Keeping the same stage is always allowed (metadata-only edits)
        - OPEN allows any other stage, forwards, backwards or skipping
        - FORWARD_ONLY rejects moving to an earlier stage; skipping ahead is allowed
    """
    if target_stage == current_stage:
        return TransitionResult(True, new_stage=target_stage)

    if policy == TransitionPolicy.FORWARD_ONLY and target_stage.position < current_stage.position:
        return TransitionResult(
            False,
            f"Cannot move back from '{current_stage.value}' to '{target_stage.value}'",
        )

    return TransitionResult(True, new_stage=target_stage)
