"""
Read-only tools over the knowledge base directory (the Markdown "brain"
files). Every path is confined to that directory.
"""

import re
from pathlib import Path
from typing import Any

import aiofiles

from upcore_agent.infrastructure.tools.paths import display_path, resolve_inside

BRAIN_FILES = {
    "ROOT": "CLAUDE.md",
    "API_REFERENCE": "API_REFERENCE.md",
    "DATA_MODEL": "DATA_MODEL.md",
    "DESIGN_SYSTEM": "DESIGN_SYSTEM.md",
}


async def _read_text(path: Path) -> str:
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        return await f.read()


class ListFilesTool:
    """List knowledge base files."""

    def __init__(self, context_dir: Path):
        self.context_dir = Path(context_dir)

    @property
    def name(self) -> str:
        return "list_files"

    @property
    def description(self) -> str:
        return (
            "List all files available in the knowledge base. Use this to discover "
            "what files exist before reading them."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    async def execute(self, **kwargs) -> str:
        if not self.context_dir.is_dir():
            return f"Error: Knowledge base directory not found: {self.context_dir}"
        files = sorted(p.name for p in self.context_dir.iterdir() if not p.name.startswith("."))
        return "Available context files:\n" + "\n".join(files)


class ReadFileTool:
    """Read one knowledge base file."""

    def __init__(self, context_dir: Path):
        self.context_dir = Path(context_dir)

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return "Read a file from the knowledge base. Use this to get the full contents of a specific file."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": 'Relative path inside the knowledge base (e.g. "CLAUDE.md", "API_REFERENCE.md")',
                }
            },
            "required": ["path"],
        }

    async def execute(self, path: str, **kwargs) -> str:
        full_path = resolve_inside(self.context_dir, path)
        if full_path is None:
            return "Error: Access denied - path outside context directory"
        if not full_path.is_file():
            return f"Error: File not found: {path}"
        return await _read_text(full_path)


class SearchCodeTool:
    """Case-insensitive regex search over the knowledge base."""

    MAX_MATCHES = 50

    def __init__(self, context_dir: Path):
        self.context_dir = Path(context_dir)

    @property
    def name(self) -> str:
        return "search_code"

    @property
    def description(self) -> str:
        return (
            "Search for a text pattern across all context files (or a specific file). "
            "Returns matching lines with line numbers and file names. Use this to find "
            "where a specific endpoint, model, or component is documented."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "Text pattern to search for (case-insensitive regex)",
                },
                "file": {
                    "type": "string",
                    "description": 'Optional: limit search to a specific file (e.g. "API_REFERENCE.md")',
                },
            },
            "required": ["pattern"],
        }

    async def execute(self, pattern: str, file: str | None = None, **kwargs) -> str:
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            return f"Error: Invalid pattern: {e}"

        if file:
            target = resolve_inside(self.context_dir, file)
            if target is None or not target.is_file():
                return f"Error: File not found: {file}"
            files = [target]
        else:
            files = sorted(
                p
                for p in self.context_dir.glob("*.md")
                if p.is_file() and not p.name.startswith(".")
            )

        matches: list[str] = []
        for path in files:
            label = display_path(self.context_dir, path)
            for number, line in enumerate((await _read_text(path)).splitlines(), start=1):
                if regex.search(line):
                    matches.append(f"{label}:{number}: {line.strip()}")

        if not matches:
            return f"No matches found for: {pattern}"

        shown = matches[: self.MAX_MATCHES]
        text = f'Found {len(matches)} match(es) for "{pattern}":\n\n' + "\n".join(shown)
        if len(matches) > self.MAX_MATCHES:
            text += f"\n... ({len(matches) - self.MAX_MATCHES} more matches truncated)"
        return text


class GetContextTool:
    """Fetch a named brain file by short key."""

    def __init__(self, context_dir: Path):
        self.context_dir = Path(context_dir)

    @property
    def name(self) -> str:
        return "get_context"

    @property
    def description(self) -> str:
        return (
            "Get a named brain file by its short key. Use ROOT for overall stack and "
            "patterns, API_REFERENCE for endpoints, DATA_MODEL for data models, "
            "DESIGN_SYSTEM for UI components and colors."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "enum": list(BRAIN_FILES),
                    "description": "Which brain file to retrieve",
                }
            },
            "required": ["name"],
        }

    async def execute(self, name: str, **kwargs) -> str:
        filename = BRAIN_FILES.get(name)
        if filename is None:
            return f"Error: Unknown brain file: {name}. Use one of: {', '.join(BRAIN_FILES)}"
        path = self.context_dir / filename
        if not path.is_file():
            return (
                f"Error: Brain file not found: {filename}. "
                "Populate the knowledge base directory first."
            )
        return await _read_text(path)
