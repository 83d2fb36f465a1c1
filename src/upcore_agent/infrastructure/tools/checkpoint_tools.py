"""Model-facing save/load/clear on top of the CheckpointStore."""

from typing import Any

from pydantic import ValidationError

from upcore_agent.core.domain.checkpoint import CheckpointRecord, render_checkpoint
from upcore_agent.infrastructure.persistence.checkpoint_store import CheckpointStore


class SaveCheckpointTool:
    def __init__(self, store: CheckpointStore):
        self.store = store

    @property
    def name(self) -> str:
        return "save_checkpoint"

    @property
    def description(self) -> str:
        return (
            "Save current task progress to the checkpoint. Call this after completing "
            "each major step and before any risky operation. The checkpoint lets the "
            "next phase resume exactly where this one stopped."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "goal": {"type": "string", "description": "What the task is trying to achieve"},
                "acceptanceCriteria": {"type": "string", "description": "How completion is verified"},
                "filesTouched": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Repository paths modified so far",
                },
                "completedSteps": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Steps finished so far, in order",
                },
                "nextStep": {"type": "string", "description": "The exact next step to execute"},
                "lastResult": {"type": "string", "description": "Optional summary of the latest result"},
            },
            "required": ["goal", "acceptanceCriteria", "filesTouched", "completedSteps", "nextStep"],
        }

    async def execute(self, **kwargs) -> str:
        kwargs.pop("savedAt", None)
        try:
            record = CheckpointRecord.model_validate(kwargs)
        except ValidationError as e:
            return f"❌ Checkpoint save failed: {e}"
        try:
            saved = await self.store.save(record)
        except OSError as e:
            return f"❌ Checkpoint save failed: {e}"
        return f'✅ Checkpoint saved at {self.store.location}\nNext step queued: "{saved.next_step}"'


class LoadCheckpointTool:
    def __init__(self, store: CheckpointStore):
        self.store = store

    @property
    def name(self) -> str:
        return "load_checkpoint"

    @property
    def description(self) -> str:
        return (
            "Load the saved task checkpoint. Call this at the start of every session to "
            "check for unfinished work, then resume from its next step."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    async def execute(self, **kwargs) -> str:
        record = await self.store.load()
        if record is None:
            return "No checkpoint found - this is a fresh start. Proceed with the user's request."
        return render_checkpoint(record)


class ClearCheckpointTool:
    def __init__(self, store: CheckpointStore):
        self.store = store

    @property
    def name(self) -> str:
        return "clear_checkpoint"

    @property
    def description(self) -> str:
        return (
            "Clear the checkpoint after a task is fully complete. Call this as the very "
            "last action, after git_push succeeds."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    async def execute(self, **kwargs) -> str:
        try:
            removed = await self.store.clear()
        except OSError as e:
            return f"Clear failed: {e}"
        if removed:
            return "✅ Checkpoint cleared - task fully complete."
        return "No checkpoint to clear (already clean)."
