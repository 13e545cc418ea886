from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from docreview.llm.client import ChatMessage
from docreview.models.dimension import DimensionKey
from docreview.models.outline import Outline
from docreview.models.report import StageResult, Usage
from docreview.prompts import ANALYSIS_SYSTEM_PROMPT


class Stage(str, Enum):
    """States of one analysis run."""

    OUTLINE = "outline"
    DESIGN = "design"
    LOGIC = "logic"
    RISK = "risk"
    COMPLETE = "complete"
    FAILED = "failed"
    DEGRADED = "degraded"


_NEXT: dict[Stage, Stage] = {
    Stage.OUTLINE: Stage.DESIGN,
    Stage.DESIGN: Stage.LOGIC,
    Stage.LOGIC: Stage.RISK,
    Stage.RISK: Stage.COMPLETE,
}


class InvalidTransition(RuntimeError):
    pass


@dataclass
class RunState:
    """Mutable state owned by exactly one orchestration run."""

    run_id: str
    text: str
    stage: Stage = Stage.OUTLINE
    history: list[ChatMessage] = field(default_factory=list)
    outline: Outline | None = None
    results: dict[DimensionKey, StageResult] = field(default_factory=dict)
    usage: Usage | None = None

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(ChatMessage(role="system", content=ANALYSIS_SYSTEM_PROMPT))

    def append(self, role: str, content: str) -> None:
        """Append a turn; history only ever grows."""

        self.history.append(ChatMessage(role=role, content=content))  # type: ignore[arg-type]

    def record_usage(self, usage: Usage | None) -> None:
        self.usage = Usage.combine(self.usage, usage)

    def advance(self) -> Stage:
        nxt = _NEXT.get(self.stage)
        if nxt is None:
            raise InvalidTransition(f"cannot advance from {self.stage.value}")
        self.stage = nxt
        return nxt

    def fail(self) -> None:
        self.stage = Stage.FAILED

    def degrade(self) -> None:
        if self.stage is not Stage.FAILED:
            raise InvalidTransition(f"cannot degrade from {self.stage.value}")
        self.stage = Stage.DEGRADED

    def snapshot(self) -> dict[str, str | int | None]:
        return {
            "run_id": self.run_id,
            "stage": self.stage.value,
            "turns": len(self.history),
            "sections": len(self.outline.sections) if self.outline is not None else None,
            "results": len(self.results),
        }
