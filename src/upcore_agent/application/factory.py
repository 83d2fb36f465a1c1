"""
Application Layer - Agent Factory

Dependency wiring from AgentSettings to a ready-to-use runtime:

- checkpoint store (file backend at CHECKPOINT_FILE)
- tool registry (knowledge base, repository, shell, git and checkpoint tools)
- LiteLLM provider and the AgentLoop around it
- executor, session registry and rate limiters shared by all transports
"""

from dataclasses import dataclass

import structlog

from upcore_agent.application.executor import AgentExecutor
from upcore_agent.application.settings import AgentSettings
from upcore_agent.core.domain.agent_loop import AgentLoop
from upcore_agent.core.domain.rate_limiter import FixedWindowRateLimiter
from upcore_agent.core.domain.session import SessionRegistry
from upcore_agent.core.interfaces.llm import LLMProviderProtocol
from upcore_agent.core.interfaces.tools import ToolProtocol
from upcore_agent.core.prompts.system_prompt import SystemPromptBuilder
from upcore_agent.infrastructure.llm.litellm_provider import LiteLLMProvider
from upcore_agent.infrastructure.persistence.checkpoint_store import (
    CheckpointStore,
    FileCheckpointBackend,
)
from upcore_agent.infrastructure.tools.checkpoint_tools import (
    ClearCheckpointTool,
    LoadCheckpointTool,
    SaveCheckpointTool,
)
from upcore_agent.infrastructure.tools.context_tools import (
    GetContextTool,
    ListFilesTool,
    ReadFileTool,
    SearchCodeTool,
)
from upcore_agent.infrastructure.tools.git_tool import GitPushTool
from upcore_agent.infrastructure.tools.registry import ToolRegistry
from upcore_agent.infrastructure.tools.repo_tools import ReadRepoFileTool, WriteFileTool
from upcore_agent.infrastructure.tools.shell_tool import RunCommandTool


@dataclass
class AgentRuntime:
    """Long-lived objects shared by the server, the bot and the CLI."""

    settings: AgentSettings
    checkpoint_store: CheckpointStore
    tool_registry: ToolRegistry
    agent_loop: AgentLoop
    executor: AgentExecutor
    sessions: SessionRegistry
    login_limiter: FixedWindowRateLimiter


class AgentFactory:
    """
    Factory for creating the agent runtime with dependency injection.

    Args:
        settings: Loaded AgentSettings
        llm_provider: Optional provider override (tests, alternative backends)
    """

    def __init__(self, settings: AgentSettings, llm_provider: LLMProviderProtocol | None = None):
        self.settings = settings
        self._llm_provider = llm_provider
        self.logger = structlog.get_logger().bind(component="agent_factory")

    def create_checkpoint_store(self) -> CheckpointStore:
        return CheckpointStore(FileCheckpointBackend(self.settings.checkpoint_file))

    def create_llm_provider(self) -> LLMProviderProtocol:
        if self._llm_provider is not None:
            return self._llm_provider
        s = self.settings
        return LiteLLMProvider(
            model=s.llm_model,
            max_tokens=s.llm_max_tokens,
            temperature=s.llm_temperature,
            timeout=s.llm_timeout,
        )

    def create_tools(self, checkpoint_store: CheckpointStore) -> list[ToolProtocol]:
        s = self.settings
        context_dir = s.context_dir
        repo_dir = s.repo_dir
        return [
            ReadFileTool(context_dir),
            SearchCodeTool(context_dir),
            ListFilesTool(context_dir),
            GetContextTool(context_dir),
            ReadRepoFileTool(repo_dir),
            WriteFileTool(repo_dir, writable_prefixes=tuple(s.writable_prefixes)),
            RunCommandTool(repo_dir, timeout=s.command_timeout),
            GitPushTool(
                repo_dir,
                context_dir,
                github_token=s.github_token,
                repo_url=s.turbo_repo_url,
                local_credentials=s.electron,
                branch=s.git_branch,
            ),
            SaveCheckpointTool(checkpoint_store),
            LoadCheckpointTool(checkpoint_store),
            ClearCheckpointTool(checkpoint_store),
        ]

    def create_agent_loop(
        self, tool_registry: ToolRegistry, checkpoint_store: CheckpointStore
    ) -> AgentLoop:
        s = self.settings
        return AgentLoop(
            llm_provider=self.create_llm_provider(),
            tool_registry=tool_registry,
            system_prompt=SystemPromptBuilder(s.context_dir).build,
            max_turns=s.max_turns,
            phase_token_ceiling=s.phase_token_ceiling,
            heartbeat_interval=s.heartbeat_interval,
            result_preview_chars=s.result_preview_chars,
            checkpoint_store=checkpoint_store,
        )

    def create_runtime(self) -> AgentRuntime:
        s = self.settings
        checkpoint_store = self.create_checkpoint_store()
        tool_registry = ToolRegistry(self.create_tools(checkpoint_store))
        agent_loop = self.create_agent_loop(tool_registry, checkpoint_store)
        executor = AgentExecutor(
            agent_loop,
            FixedWindowRateLimiter(s.message_limit, s.message_window_seconds),
            checkpoint_store,
        )
        runtime = AgentRuntime(
            settings=s,
            checkpoint_store=checkpoint_store,
            tool_registry=tool_registry,
            agent_loop=agent_loop,
            executor=executor,
            sessions=SessionRegistry(),
            login_limiter=FixedWindowRateLimiter(s.login_limit, s.login_window_seconds),
        )
        self.logger.info(
            "runtime_created",
            model=s.llm_model,
            tools=tool_registry.names(),
            repo_dir=str(s.repo_dir),
            context_dir=str(s.context_dir),
            checkpoint=checkpoint_store.location,
        )
        return runtime
