"""
Configuration management.

Settings come from environment variables (and ``.env``) under their plain
names, e.g. ``AGENT_PASSWORD`` or ``TELEGRAM_BOT_TOKEN``. A YAML file can
override them via ``AgentSettings.load_from_file``.
"""

import tempfile
from pathlib import Path

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REPO_DIR = "/tmp/turbo-claude"
MIN_JWT_SECRET_LENGTH = 32


class AgentSettings(BaseSettings):
    """Runtime configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Auth
    agent_password: str | None = Field(default=None, description="Password for POST /api/auth/login")
    agent_jwt_secret: str | None = Field(default=None, description="HS256 signing secret (>= 32 chars)")
    jwt_expiry_hours: int = Field(default=24, description="Token lifetime")

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")

    # Telegram
    telegram_bot_token: str | None = Field(default=None, description="Enables the Telegram bot")
    telegram_allowed_chat_ids: str = Field(default="", description="Comma separated chat ids")
    telegram_max_chars: int = Field(default=4096)
    telegram_edit_interval: float = Field(default=1.5)

    # Workspace
    turbo_project_dir: str | None = Field(default=None, description="Local checkout (desktop mode)")
    turbo_repo_dir: str | None = Field(default=None, description="Server-side clone")
    context_dir: Path = Field(default=Path("context"), description="Knowledge base directory")
    checkpoint_file: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "upcore-checkpoint.json"
    )
    writable_prefixes: list[str] = Field(
        default_factory=lambda: ["turbo-backend/", "turbo-frontend/"]
    )
    command_timeout: float = Field(default=180.0)

    # Git
    github_token: str | None = Field(default=None)
    turbo_repo_url: str | None = Field(default=None)
    electron: bool = Field(default=False, description="Use local git credentials")
    git_branch: str = Field(default="main")

    # Model
    llm_model: str = Field(default="anthropic/claude-sonnet-4-5", description="LiteLLM model string")
    llm_max_tokens: int = Field(default=8192)
    llm_temperature: float | None = Field(default=None)
    llm_timeout: float = Field(default=600.0)

    # Agent loop
    max_turns: int = Field(default=15, ge=1)
    phase_token_ceiling: int = Field(default=150_000, ge=1)
    heartbeat_interval: float = Field(default=5.0, gt=0)
    result_preview_chars: int = Field(default=500, ge=1)

    # Rate limits
    login_limit: int = Field(default=5, ge=1)
    login_window_seconds: float = Field(default=15 * 60)
    message_limit: int = Field(default=10, ge=1)
    message_window_seconds: float = Field(default=60)

    # Logging
    log_level: str = Field(default="INFO")

    @field_validator("agent_jwt_secret")
    @classmethod
    def _check_jwt_secret(cls, value: str | None) -> str | None:
        if value is not None and len(value) < MIN_JWT_SECRET_LENGTH:
            raise ValueError(
                f"AGENT_JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters. "
                "Generate with: openssl rand -hex 32"
            )
        return value

    @model_validator(mode="after")
    def _check_telegram(self) -> "AgentSettings":
        if self.telegram_bot_token and not self.allowed_chat_ids:
            raise ValueError("TELEGRAM_ALLOWED_CHAT_IDS is required when TELEGRAM_BOT_TOKEN is set.")
        return self

    @property
    def allowed_chat_ids(self) -> list[int]:
        ids = []
        for part in self.telegram_allowed_chat_ids.split(","):
            part = part.strip()
            if part.lstrip("-").isdigit():
                ids.append(int(part))
        return ids

    @property
    def repo_dir(self) -> Path:
        return Path(self.turbo_project_dir or self.turbo_repo_dir or DEFAULT_REPO_DIR)

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token)

    def require_server_auth(self) -> None:
        """Raise ValueError unless the login credentials are configured."""
        missing = [
            name
            for name, value in (
                ("AGENT_PASSWORD", self.agent_password),
                ("AGENT_JWT_SECRET", self.agent_jwt_secret),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AgentSettings":
        """Load settings from a YAML configuration file."""
        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)
