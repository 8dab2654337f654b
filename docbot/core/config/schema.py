"""docbot configuration schema — YAML + Pydantic + env override."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ════════════════════════════════════════════════════════════
# SUB-CONFIGS (nested BaseModel)
# ════════════════════════════════════════════════════════════


class ProviderConfig(BaseModel):
    """Single LLM provider."""

    api_key: str = ""
    api_base: str | None = None


class ProvidersConfig(BaseModel):
    """LLM providers (LiteLLM multi-provider)."""

    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)
    deepseek: ProviderConfig = Field(default_factory=ProviderConfig)
    groq: ProviderConfig = Field(default_factory=ProviderConfig)
    gemini: ProviderConfig = Field(default_factory=ProviderConfig)
    ollama: ProviderConfig = Field(default_factory=ProviderConfig)


class FallbackCheckpoint(BaseModel):
    """Minimum confirmed changes expected once ``iteration`` is reached."""

    iteration: int
    min_changes: int


def _default_checkpoints() -> list[FallbackCheckpoint]:
    return [
        FallbackCheckpoint(iteration=5, min_changes=1),
        FallbackCheckpoint(iteration=10, min_changes=2),
        FallbackCheckpoint(iteration=15, min_changes=3),
    ]


_NARRATION_MARKERS = [
    "i will now",
    "i'll now",
    "now i will",
    "i am going to",
    "i'm going to",
    "let me add",
    "let me insert",
    "let me edit",
    "let me update",
    "let me remove",
    "next, i will",
    "working on it",
    "in progress",
    "will be added",
    "will be inserted",
]


class AgentConfig(BaseModel):
    """Orchestration loop policy (agent.*).

    Every threshold the loop acts on lives here so the policy can be tuned
    and tested without touching the loop itself.
    """

    model: str = "openai/gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 4096
    system_prompt: str | None = None

    max_iterations: int = 32
    status_check_interval: int = 5
    repeat_threshold: int = 3
    stall_threshold: int = 6
    no_tool_call_limit: int = 2
    change_stop_threshold: int | None = 3

    fallback_checkpoints: list[FallbackCheckpoint] = Field(
        default_factory=_default_checkpoints
    )
    fallback_hard_stop: int = 20

    narration_markers: list[str] = Field(
        default_factory=lambda: list(_NARRATION_MARKERS)
    )
    # Tools that receive trusted document_id/user_id. Matched by exact name.
    document_scoped_tools: list[str] = Field(
        default_factory=lambda: [
            "read_document", "grep", "get_header", "insert", "edit", "delete",
        ]
    )
    mutating_tools: list[str] = Field(
        default_factory=lambda: ["insert", "edit", "delete"]
    )
    # Tools whose results carry images the agent must place with a tool call.
    image_tools: list[str] = Field(default_factory=lambda: ["image_search"])

    use_plan: bool = True
    max_plan_steps: int = 8
    summary_messages: int = 6
    summary_chars: int = 400
    callback_drain_timeout_s: float = 5.0


class RetryConfig(BaseModel):
    """Per-tool retry policy: attempt n gets base_timeout_s * 2**(n-1)."""

    max_attempts: int = 3
    base_timeout_s: float = 10.0
    backoff_base_s: float = 0.5
    backoff_max_s: float = 5.0


class ToolsConfig(BaseModel):
    retry: RetryConfig = Field(default_factory=RetryConfig)
    grep_max_matches: int = 100
    read_max_chars: int = 50_000


# Database
class DatabaseConfig(BaseModel):
    path: str = "data/docbot.db"


# ════════════════════════════════════════════════════════════
# ROOT CONFIG (BaseSettings — env + .env support)
# ════════════════════════════════════════════════════════════


class Config(BaseSettings):
    """
    Root configuration.

    Priority: env vars > .env > YAML (init kwargs) > defaults

    Env override examples:
        DOCBOT_AGENT__MODEL=openai/gpt-4o
        DOCBOT_AGENT__MAX_ITERATIONS=16
        DOCBOT_TOOLS__RETRY__BASE_TIMEOUT_S=5
        DOCBOT_PROVIDERS__OPENAI__API_KEY=sk-...
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCBOT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    @property
    def db_path(self) -> Path:
        return Path(self.database.path)

    # ── Provider helpers ────────────────────────────────────

    def get_api_base(self, model: str | None = None) -> str | None:
        """Get API base URL for model name."""
        model_name = (model or self.agent.model).lower()
        if "openrouter" in model_name:
            return self.providers.openrouter.api_base or "https://openrouter.ai/api/v1"
        for name in ProvidersConfig.model_fields:
            p = getattr(self.providers, name)
            if isinstance(p, ProviderConfig) and name in model_name and p.api_base:
                return p.api_base
        return None
