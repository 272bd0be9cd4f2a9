"""Project-level configuration, path helpers and environment settings."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "agent_bridge.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_DETAIL_LOG_PATH = LOGS_DIR / "agent-detail.log"

DEFAULT_FEISHU_BASE_URL = "https://open.feishu.cn/open-apis"
SUPPORTED_PROVIDERS = ("claude", "codex")


PathLike = Union[str, Path]


class ConfigError(ValueError):
    """Raised when required settings are missing or invalid."""


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass
class Settings:
    """Runtime settings read from the environment."""

    feishu_app_id: str = ""
    feishu_app_secret: str = ""
    feishu_verification_token: str | None = None
    feishu_base_url: str = DEFAULT_FEISHU_BASE_URL
    ai_provider: str = "claude"
    workspace: str = "/workspace"
    notify_target: str = ""
    codex_command: list[str] = field(default_factory=lambda: ["codex"])
    api_host: str = "localhost"
    api_port: int = 8000
    database_url: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            feishu_app_id=os.getenv("FEISHU_APP_ID", ""),
            feishu_app_secret=os.getenv("FEISHU_APP_SECRET", ""),
            feishu_verification_token=os.getenv("FEISHU_VERIFICATION_TOKEN") or None,
            feishu_base_url=os.getenv("FEISHU_BASE_URL", DEFAULT_FEISHU_BASE_URL),
            ai_provider=os.getenv("AI_PROVIDER", "claude").strip().lower(),
            workspace=os.getenv("WORKSPACE", "/workspace"),
            notify_target=os.getenv("NOTIFY_USER_ID", ""),
            codex_command=os.getenv("CODEX_COMMAND", "codex").split(),
            api_host=os.getenv("API_HOST", "localhost"),
            api_port=int(os.getenv("API_PORT", "8000")),
            database_url=os.getenv("DATABASE_URL"),
        )

    def validate(self) -> None:
        """Raise ConfigError if the bot cannot start with these settings."""
        if not self.feishu_app_id or not self.feishu_app_secret:
            raise ConfigError("Missing Feishu config: FEISHU_APP_ID, FEISHU_APP_SECRET")
        if self.ai_provider not in SUPPORTED_PROVIDERS:
            raise ConfigError(
                f"Unsupported AI_PROVIDER {self.ai_provider!r}; "
                f"expected one of {', '.join(SUPPORTED_PROVIDERS)}"
            )
        if self.ai_provider == "claude" and not os.getenv("ANTHROPIC_API_KEY"):
            raise ConfigError("Missing Claude API config: ANTHROPIC_API_KEY")
        if not self.codex_command:
            raise ConfigError("CODEX_COMMAND must not be empty")
