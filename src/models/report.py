"""Per-step results aggregated into a human-readable execution report."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class StepStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


_ICONS = {
    StepStatus.OK: "✅",
    StepStatus.SKIPPED: "⚠️",
    StepStatus.FAILED: "❌",
}


class StepOutcome(BaseModel):
    """Result of one sub-operation (an action, a deletion, a rename...)."""
    label: str
    status: StepStatus
    detail: Optional[str] = None

    @classmethod
    def ok(cls, label: str, detail: Optional[str] = None) -> "StepOutcome":
        return cls(label=label, status=StepStatus.OK, detail=detail)

    @classmethod
    def skipped(cls, label: str, reason: str) -> "StepOutcome":
        return cls(label=label, status=StepStatus.SKIPPED, detail=reason)

    @classmethod
    def failed(cls, label: str, reason: str) -> "StepOutcome":
        return cls(label=label, status=StepStatus.FAILED, detail=reason)

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.OK

    def render(self) -> str:
        line = f"{_ICONS[self.status]} {self.label}"
        if self.detail:
            line += f": {self.detail}"
        return line


class ExecutionReport(BaseModel):
    """Outcomes of a batch, in execution order."""
    title: str = "🚀 **Executing Build...**"
    outcomes: List[StepOutcome] = Field(default_factory=list)

    def add(self, outcome: StepOutcome) -> StepOutcome:
        self.outcomes.append(outcome)
        return outcome

    def with_status(self, status: StepStatus) -> List[StepOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> List[StepOutcome]:
        return self.with_status(StepStatus.OK)

    @property
    def skipped(self) -> List[StepOutcome]:
        return self.with_status(StepStatus.SKIPPED)

    @property
    def failed(self) -> List[StepOutcome]:
        return self.with_status(StepStatus.FAILED)

    @property
    def all_succeeded(self) -> bool:
        return all(o.succeeded for o in self.outcomes)

    def render(self) -> str:
        lines = [self.title] if self.title else []
        lines.extend(o.render() for o in self.outcomes)
        return "\n".join(lines)
