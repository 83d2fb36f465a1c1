"""Unit tests for repository file tools and path confinement."""

import pytest

from upcore_agent.infrastructure.tools.paths import display_path, resolve_inside
from upcore_agent.infrastructure.tools.repo_tools import ReadRepoFileTool, WriteFileTool


@pytest.fixture
def repo_dir(tmp_path):
    repo = tmp_path / "repo"
    (repo / "turbo-backend" / "src").mkdir(parents=True)
    (repo / "turbo-backend" / "src" / "main.ts").write_text("bootstrap();\n", encoding="utf-8")
    (repo / "README.md").write_text("# Repo\n", encoding="utf-8")
    return repo


class TestPaths:
    def test_resolve_inside(self, tmp_path):
        assert resolve_inside(tmp_path, "a/b.txt") == (tmp_path / "a" / "b.txt").resolve()
        assert resolve_inside(tmp_path, ".") == tmp_path.resolve()

    def test_resolve_rejects_escape(self, tmp_path):
        assert resolve_inside(tmp_path, "../x") is None
        assert resolve_inside(tmp_path, "/etc/passwd") is None

    def test_display_path(self, tmp_path):
        assert display_path(tmp_path, tmp_path / "a" / "b.md") == "a/b.md"


class TestReadRepoFileTool:
    @pytest.mark.asyncio
    async def test_reads_file(self, repo_dir):
        result = await ReadRepoFileTool(repo_dir).execute(path="turbo-backend/src/main.ts")

        assert result == "bootstrap();\n"

    @pytest.mark.asyncio
    async def test_lists_directory(self, repo_dir):
        result = await ReadRepoFileTool(repo_dir).execute(path="turbo-backend")

        assert result == "Directory listing for turbo-backend:\nsrc/"

    @pytest.mark.asyncio
    async def test_truncates_large_file(self, repo_dir):
        (repo_dir / "README.md").write_text("x" * 100, encoding="utf-8")

        result = await ReadRepoFileTool(repo_dir, max_chars=10).execute(path="README.md")

        assert result == "x" * 10 + "\n... (truncated 90 characters)"

    @pytest.mark.asyncio
    async def test_rejects_escape(self, repo_dir):
        result = await ReadRepoFileTool(repo_dir).execute(path="../secret")

        assert result == "Error: Access denied - path outside repo directory"


class TestWriteFileTool:
    @pytest.mark.asyncio
    async def test_writes_under_prefix(self, repo_dir):
        result = await WriteFileTool(repo_dir).execute(
            path="turbo-backend/src/audit/audit.service.ts", content="a\nb\nc"
        )

        assert result == "✅ Written: turbo-backend/src/audit/audit.service.ts (3 lines)"
        written = repo_dir / "turbo-backend" / "src" / "audit" / "audit.service.ts"
        assert written.read_text(encoding="utf-8") == "a\nb\nc"

    @pytest.mark.asyncio
    async def test_root_markdown_allowed(self, repo_dir):
        result = await WriteFileTool(repo_dir).execute(path="NOTES.md", content="hi")

        assert result.startswith("✅ Written: NOTES.md")

    @pytest.mark.asyncio
    async def test_outside_prefixes_rejected(self, repo_dir):
        result = await WriteFileTool(repo_dir).execute(path="scripts/deploy.ts", content="x")

        assert result.startswith("Error: Can only write to turbo-backend/, turbo-frontend/")
        assert not (repo_dir / "scripts").exists()

    @pytest.mark.asyncio
    async def test_extension_rejected(self, repo_dir):
        result = await WriteFileTool(repo_dir).execute(path="turbo-backend/run.sh", content="x")

        assert result.startswith('Error: File extension ".sh" not allowed.')

    @pytest.mark.asyncio
    async def test_escape_rejected(self, repo_dir):
        result = await WriteFileTool(repo_dir).execute(path="../evil.md", content="x")

        assert result == "Error: Access denied - path outside repo directory"
