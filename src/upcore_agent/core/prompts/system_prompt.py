"""
System and continuation prompts.

The system prompt is rebuilt on every model call so edits to the knowledge
base root file (CLAUDE.md) are picked up without a restart:

    builder = SystemPromptBuilder(Path("context"))
    loop = AgentLoop(provider, registry, system_prompt=builder.build)
"""

from pathlib import Path

from upcore_agent.core.domain.checkpoint import CheckpointRecord, render_checkpoint

AGENT_IDENTITY_PROMPT = """
You are UpcoreCodeTestDeploy Agent, an expert in the TurboIAM codebase.

You help developers write production-ready code that follows TurboIAM patterns
and conventions. You know the full stack: NestJS backend, React + Vite frontend,
Prisma + PostgreSQL, Tailwind CSS v4, Okta SSO integration, and multi-tenant
RBAC architecture.
""".strip()

CODE_GENERATION_RULES = """
## Code Generation Rules
- Always follow TurboIAM patterns exactly (multi-tenant, RBAC, encryption)
- Use UPPERCASE_UNDERSCORE role format: SUPER_ADMIN, GRC_ADMIN, APP_ADMIN, SSO_ADMIN, AUDITOR, DELEGATE
- Always include the enterpriseId filter in every database query; never return cross-tenant data
- Never return raw Okta secrets via API (they are AES-256-GCM encrypted)
- Follow the existing module structure: service, controller, module, app.module registration
- Use the exact color tokens and component APIs from the design system
""".strip()

TOOL_STRATEGY_PROMPT = """
## Tool Usage Strategy
1. Call load_checkpoint first: if a checkpoint exists, resume from its next step
2. Start with get_context('ROOT') for broad questions about patterns or architecture
3. Use get_context('API_REFERENCE') to check existing endpoints before adding new ones
4. Use get_context('DATA_MODEL') to understand models and relationships
5. Use get_context('DESIGN_SYSTEM') for UI component props and color tokens
6. Use search_code to find specific patterns, imports, or examples across files
7. Use read_repo_file before write_file; always write complete files
8. Verify with run_command("npx tsc --noEmit") before git_push
9. Call save_checkpoint after each major step; clear_checkpoint only once the task is verified and pushed

Generate complete, production-ready code. Follow the patterns you observe in the codebase exactly.
""".strip()

CONTINUATION_PROMPT = """
Continue the task from where the previous phase stopped. The previous phase ran
out of budget, so its conversation is gone; everything you need is in the
checkpoint below. Skip the completed steps and execute the next step.
""".strip()

NO_CHECKPOINT_CONTINUATION_PROMPT = """
Continue the previous task. No checkpoint was saved, so call load_checkpoint,
inspect the repository state, and pick up where the work stopped.
""".strip()


class SystemPromptBuilder:
    """Assembles the system prompt around the knowledge base root file."""

    ROOT_FILE = "CLAUDE.md"

    def __init__(self, context_dir: Path):
        self.context_dir = Path(context_dir)

    def load_root_context(self) -> str:
        path = self.context_dir / self.ROOT_FILE
        if not path.is_file():
            return ""
        return path.read_text(encoding="utf-8")

    def build(self) -> str:
        sections = [AGENT_IDENTITY_PROMPT]
        root_context = self.load_root_context()
        if root_context:
            sections.append("## TurboIAM Codebase Context\n" + root_context)
        sections.extend([CODE_GENERATION_RULES, TOOL_STRATEGY_PROMPT])
        return "\n\n".join(sections)


def build_continuation_prompt(record: CheckpointRecord | None) -> str:
    """User input that opens a continuation phase."""
    if record is None:
        return NO_CHECKPOINT_CONTINUATION_PROMPT
    return f"{CONTINUATION_PROMPT}\n\n{render_checkpoint(record)}"
