"""
Checkpoint Record

Small durable record that lets a long task cross phases: the phase that runs
out of budget writes it, the next phase reads it on startup. Stored on disk as
a JSON object with camelCase keys.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CheckpointRecord(BaseModel):
    """
    Progress of one logical task.

    Attributes:
        goal: What the task is trying to achieve
        acceptance_criteria: How completion is verified
        files_touched: Repository paths modified so far
        completed_steps: Descriptions of finished steps, in order
        next_step: The step the next phase should execute
        last_result: Optional summary of the most recent result
        saved_at: Set by the store on every save
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    goal: str
    acceptance_criteria: str = ""
    files_touched: list[str] = Field(default_factory=list)
    completed_steps: list[str] = Field(default_factory=list)
    next_step: str = ""
    last_result: str | None = None
    saved_at: datetime = Field(default_factory=utc_now)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def render_checkpoint(record: CheckpointRecord) -> str:
    """Readable summary for the model and for the CLI."""
    completed = " → ".join(record.completed_steps) if record.completed_steps else "none yet"
    files = ", ".join(record.files_touched) if record.files_touched else "none"
    lines = [
        f"📋 CHECKPOINT FOUND (saved {record.saved_at.isoformat()})",
        f"Goal: {record.goal}",
        f"Acceptance Criteria: {record.acceptance_criteria}",
        f"Completed Steps: {completed}",
        f"Files Touched So Far: {files}",
        f"▶ NEXT STEP TO EXECUTE: {record.next_step}",
    ]
    if record.last_result:
        lines.append(f"Last Result: {record.last_result[:300]}")
    return "\n".join(lines)
