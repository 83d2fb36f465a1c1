# ============================================
# GIT PUSH TOOL
# ============================================

import asyncio
import os
import shutil
from pathlib import Path
from typing import Any

import structlog

from upcore_agent.infrastructure.tools.paths import resolve_inside

logger = structlog.get_logger()

# (path in repository, file name in knowledge base)
BRAIN_SYNC_FILES = (
    ("CLAUDE.md", "CLAUDE.md"),
    ("turbo-backend/CLAUDE.md", "BACKEND_CLAUDE.md"),
    ("turbo-frontend/CLAUDE.md", "FRONTEND_CLAUDE.md"),
    ("turbo-backend/docs/API_REFERENCE.md", "API_REFERENCE.md"),
    ("turbo-backend/docs/DATA_MODEL.md", "DATA_MODEL.md"),
    ("turbo-frontend/docs/DESIGN_SYSTEM.md", "DESIGN_SYSTEM.md"),
)


class GitCommandError(Exception):
    """A git subprocess exited non-zero."""

    def __init__(self, args: tuple[str, ...], returncode: int, stdout: str, stderr: str):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"git {' '.join(args)} exited with code {returncode}")

    def details(self) -> str:
        return "\n".join(p for p in (self.stdout.strip(), self.stderr.strip(), str(self)) if p)


class GitPushTool:
    """Commit repository changes, push them, then refresh the knowledge base."""

    AUTHOR_NAME = "UpcoreAgent"
    AUTHOR_EMAIL = "upcore-agent@turboiam.dev"

    def __init__(
        self,
        repo_dir: Path,
        context_dir: Path,
        github_token: str | None = None,
        repo_url: str | None = None,
        local_credentials: bool = False,
        branch: str = "main",
        timeout: float = 60.0,
    ):
        """
        Args:
            repo_dir: Working copy to commit in
            context_dir: Knowledge base refreshed after a successful push
            github_token: Token injected into the https remote URL
            repo_url: https URL of the remote
            local_credentials: Use the machine's git credentials instead of a token
            branch: Branch pulled from and pushed to
            timeout: Per git command timeout in seconds
        """
        self.repo_dir = Path(repo_dir)
        self.context_dir = Path(context_dir)
        self.github_token = github_token
        self.repo_url = repo_url
        self.local_credentials = local_credentials
        self.branch = branch
        self.timeout = timeout
        self.logger = logger.bind(component="git_push_tool")

    @property
    def name(self) -> str:
        return "git_push"

    @property
    def description(self) -> str:
        return (
            f"Commit changes and push to the repository ({self.branch} branch). Run "
            'run_command("npx tsc --noEmit") before calling this to catch type errors. '
            "Knowledge base files are synced automatically after a successful push."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "message": {
                    "type": "string",
                    "description": 'Conventional commit message (e.g. "fix: resolve pagination bug"), under 72 characters',
                },
                "files": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Paths relative to the repository root to stage. Omit to stage everything (git add -A).",
                },
            },
            "required": ["message"],
        }

    async def _git(self, *args: str) -> str:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.repo_dir,
            env=_git_env(),
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise GitCommandError(self._redact(args), -1, "", f"timed out after {self.timeout:g}s")
        out = stdout.decode(errors="replace")
        if process.returncode != 0:
            raise GitCommandError(
                self._redact(args), process.returncode, out, stderr.decode(errors="replace")
            )
        return out

    def _redact(self, args: tuple[str, ...]) -> tuple[str, ...]:
        if not self.github_token:
            return args
        return tuple(a.replace(self.github_token, "***") for a in args)

    async def execute(self, message: str, files: list[str] | None = None, **kwargs) -> str:
        if not self.local_credentials and not (self.github_token and self.repo_url):
            return (
                "Error: GITHUB_TOKEN and TURBO_REPO_URL are required for git_push "
                "unless local git credentials are enabled."
            )

        try:
            await self._git("config", "user.email", self.AUTHOR_EMAIL)
            await self._git("config", "user.name", self.AUTHOR_NAME)

            if self.github_token and self.repo_url:
                auth_url = self.repo_url.replace("https://", f"https://{self.github_token}@", 1)
                await self._git("remote", "set-url", "origin", auth_url)

            try:
                await self._git("pull", "origin", self.branch, "--rebase")
            except GitCommandError as e:
                self.logger.warning("git_pull_failed", error=str(e))

            if files:
                for file in files:
                    target = resolve_inside(self.repo_dir, file)
                    if target is None:
                        return f"Error: Access denied - path outside repo directory: {file}"
                    await self._git("add", "--", str(target))
            else:
                await self._git("add", "-A")

            status = (await self._git("status", "--porcelain")).strip()
            if not status:
                return "⚠️ Nothing to commit - working tree is clean. No push performed."

            await self._git(
                "commit",
                "-m",
                f"{message}\n\nCo-Authored-By: {self.AUTHOR_NAME} <{self.AUTHOR_EMAIL}>",
            )
            await self._git("push", "origin", self.branch)
        except GitCommandError as e:
            self.logger.error("git_push_failed", error=str(e))
            return f"Git push failed:\n{e.details()}"

        synced = self.sync_brain_files()
        self.logger.info("git_push_complete", files=status.count("\n") + 1, synced=synced)
        return (
            "✅ Successfully pushed!\n\n"
            f'Commit: "{message}"\n\n'
            f"Files committed:\n{status}\n\n"
            f"📚 Synced {synced} knowledge base file(s)."
        )

    def sync_brain_files(self) -> int:
        """Copy brain files from the repository into the knowledge base."""
        synced = 0
        self.context_dir.mkdir(parents=True, exist_ok=True)
        for source, dest in BRAIN_SYNC_FILES:
            src_path = self.repo_dir / source
            if not src_path.is_file():
                continue
            try:
                shutil.copyfile(src_path, self.context_dir / dest)
                synced += 1
            except OSError as e:
                self.logger.warning("brain_sync_failed", file=source, error=str(e))
        return synced


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env
