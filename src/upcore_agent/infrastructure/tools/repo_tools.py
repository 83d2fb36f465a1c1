"""
Read and write files in the working copy of the target repository.

Writes are limited to the configured writable prefixes plus Markdown files at
the repository root, and to an extension allow-list.
"""

from pathlib import Path
from typing import Any

import aiofiles
import structlog

from upcore_agent.infrastructure.tools.paths import display_path, resolve_inside
from upcore_agent.infrastructure.tools.tool_converter import truncate_output

logger = structlog.get_logger()

ALLOWED_EXTENSIONS = (
    ".ts", ".tsx", ".js", ".jsx",
    ".json", ".md", ".css", ".html",
    ".example", ".prisma", ".sql",
    ".yaml", ".yml", ".toml",
)
DEFAULT_WRITABLE_PREFIXES = ("turbo-backend/", "turbo-frontend/")


class ReadRepoFileTool:
    """Read a repository file, or list a repository directory."""

    def __init__(self, repo_dir: Path, max_chars: int = 50000):
        self.repo_dir = Path(repo_dir)
        self.max_chars = max_chars

    @property
    def name(self) -> str:
        return "read_repo_file"

    @property
    def description(self) -> str:
        return (
            "Read a file from the live repository on disk, or list a directory. "
            "Always read the existing file before writing to it."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": 'Path relative to the repository root (e.g. "turbo-backend/src/main.ts")',
                }
            },
            "required": ["path"],
        }

    async def execute(self, path: str, **kwargs) -> str:
        full_path = resolve_inside(self.repo_dir, path)
        if full_path is None:
            return "Error: Access denied - path outside repo directory"
        if not full_path.exists():
            return f"Error: File not found: {path}"

        if full_path.is_dir():
            entries = sorted(
                p.name + ("/" if p.is_dir() else "") for p in full_path.iterdir()
            )
            label = display_path(self.repo_dir, full_path)
            return f"Directory listing for {label}:\n" + "\n".join(entries)

        async with aiofiles.open(full_path, "r", encoding="utf-8", errors="replace") as f:
            content = await f.read()
        return truncate_output(content, self.max_chars)


class WriteFileTool:
    """Create or overwrite a repository file."""

    def __init__(
        self,
        repo_dir: Path,
        writable_prefixes: tuple[str, ...] = DEFAULT_WRITABLE_PREFIXES,
    ):
        self.repo_dir = Path(repo_dir)
        self.writable_prefixes = tuple(writable_prefixes)
        self.logger = logger.bind(component="write_file_tool")

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        prefixes = ", ".join(self.writable_prefixes)
        return (
            "Write or overwrite a file in the repository. Read the existing file with "
            "read_repo_file first if it exists. Write complete file contents, never "
            f"placeholders. Writable locations: {prefixes} and .md files at the root."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "File path relative to the repository root",
                },
                "content": {
                    "type": "string",
                    "description": "Complete file content to write",
                },
            },
            "required": ["path", "content"],
        }

    def _is_writable(self, relative: str) -> bool:
        if relative.startswith(self.writable_prefixes):
            return True
        return "/" not in relative and relative.lower().endswith(".md")

    async def execute(self, path: str, content: str, **kwargs) -> str:
        full_path = resolve_inside(self.repo_dir, path)
        if full_path is None or full_path == self.repo_dir.resolve():
            return "Error: Access denied - path outside repo directory"

        relative = display_path(self.repo_dir, full_path)
        if not self._is_writable(relative):
            prefixes = ", ".join(self.writable_prefixes)
            return f"Error: Can only write to {prefixes} or .md files at root."

        suffix = full_path.suffix.lower()
        if suffix and suffix not in ALLOWED_EXTENSIONS:
            return (
                f'Error: File extension "{suffix}" not allowed. '
                f"Allowed: {', '.join(ALLOWED_EXTENSIONS)}"
            )

        full_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(full_path, "w", encoding="utf-8") as f:
            await f.write(content)

        lines = content.count("\n") + 1
        self.logger.info("repo_file_written", path=relative, lines=lines)
        return f"✅ Written: {relative} ({lines} lines)"
