# ============================================
# SHELL TOOL
# ============================================

import asyncio
import shlex
from pathlib import Path
from typing import Any

import structlog

from upcore_agent.infrastructure.tools.paths import resolve_inside
from upcore_agent.infrastructure.tools.tool_converter import truncate_output

logger = structlog.get_logger()

ALLOWED_PREFIXES = (
    "npm run build",
    "npm run lint",
    "npm run test",
    "npm run dev",
    "npm install",
    "npm ci",
    "npx tsc",
    "npx prisma generate",
    "npx prisma migrate",
    "npx prisma db push",
    "npx prisma validate",
    "npx prisma format",
    "git status",
    "git diff",
    "git log",
    "git show",
    "ls",
    "cat",
    "find",
)

# Commands run without a shell; anything using these is refused.
SHELL_METACHARACTERS = (";", "&", "|", ">", "<", "`", "$(")


class RunCommandTool:
    """Run an allow-listed shell command inside the repository."""

    def __init__(
        self,
        repo_dir: Path,
        allowed_prefixes: tuple[str, ...] = ALLOWED_PREFIXES,
        timeout: float = 180.0,
        max_chars: int = 50000,
    ):
        self.repo_dir = Path(repo_dir)
        self.allowed_prefixes = tuple(allowed_prefixes)
        self.timeout = timeout
        self.max_chars = max_chars
        self.logger = logger.bind(component="run_command_tool")

    @property
    def name(self) -> str:
        return "run_command"

    @property
    def description(self) -> str:
        return (
            "Run a safe shell command in the repository directory. Use it to verify "
            'TypeScript compiles ("npx tsc --noEmit"), check build status, run Prisma '
            "migrations, or inspect git state."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "Command to run. Allowed prefixes: " + ", ".join(self.allowed_prefixes),
                },
                "cwd": {
                    "type": "string",
                    "description": 'Subdirectory relative to the repository root (e.g. "turbo-backend"). Defaults to the root.',
                },
            },
            "required": ["command"],
        }

    def is_allowed(self, argv: list[str]) -> bool:
        """True if ``argv`` starts with the tokens of an allowed prefix."""
        for prefix in self.allowed_prefixes:
            tokens = prefix.split()
            if argv[: len(tokens)] == tokens:
                return True
        return False

    async def execute(self, command: str, cwd: str | None = None, **kwargs) -> str:
        command = command.strip()
        if any(char in command for char in SHELL_METACHARACTERS):
            self.logger.warning("command_blocked", command=command)
            return f'Error: Command blocked: "{command}" uses shell operators. Run one command at a time.'
        try:
            argv = shlex.split(command)
        except ValueError as e:
            return f"Error: Could not parse command: {e}"
        if not self.is_allowed(argv):
            allowed = "\n".join(f"  - {p}" for p in self.allowed_prefixes)
            return f'Error: Command not allowed: "{command}"\nAllowed prefixes:\n{allowed}'

        work_dir = resolve_inside(self.repo_dir, cwd) if cwd else self.repo_dir.resolve()
        if work_dir is None:
            return "Error: cwd outside repo directory"
        if not work_dir.is_dir():
            return f"Error: cwd does not exist: {cwd}"

        self.logger.info("command_start", command=command, cwd=str(work_dir))
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=work_dir,
            )
        except OSError as e:
            self.logger.warning("command_spawn_failed", command=command, error=str(e))
            return f"Command failed:\n{e}"
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self.logger.warning("command_timeout", command=command, timeout=self.timeout)
            return f"Command failed:\nCommand timed out after {self.timeout:g}s"

        stdout_text = stdout.decode(errors="replace") if stdout else ""
        stderr_text = stderr.decode(errors="replace") if stderr else ""
        self.logger.info("command_finished", command=command, returncode=process.returncode)

        if process.returncode != 0:
            output = "\n".join(
                part
                for part in (
                    stdout_text.strip(),
                    stderr_text.strip(),
                    f"Command exited with code {process.returncode}",
                )
                if part
            )
            return truncate_output(f"Command failed:\n{output}", self.max_chars)

        output = "\n".join(part for part in (stdout_text.strip(), stderr_text.strip()) if part)
        return truncate_output(output or "(command completed with no output)", self.max_chars)
