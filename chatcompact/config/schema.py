"""Configuration schema using Pydantic."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompressionConfig(BaseModel):
    """Context compression trigger, guard and prompt settings."""
    trigger_tokens: int = Field(default=40_000, gt=0)  # Absolute token trigger
    trigger_utilization: float = Field(default=0.5, ge=0.0, le=1.0)  # Safety valve
    min_messages_since_last_compress: int = Field(default=25, ge=0)
    min_time_between_prompts: float = Field(default=300, ge=0)  # Seconds
    frequency_multiplier: float = Field(default=1.5, ge=1.0)
    max_trigger_tokens: int = Field(default=200_000, gt=0)  # Cap for less_frequent
    max_min_messages: int = Field(default=100, gt=0)  # Cap for less_frequent
    interactive: bool = True
    auto_skip: bool = False  # Never show the goal prompt, compress with auto
    prompt_timeout_seconds: float = Field(default=30, gt=0)
    threshold: float = Field(default=0.5, ge=0.0, le=1.0)  # Non-forced check only
    preserve_threshold: float = Field(default=0.3, gt=0.0, lt=1.0)
    min_messages_to_compress: int = Field(default=5, ge=1)
    goal_extraction_timeout_seconds: float = Field(default=10, gt=0)
    goal_extraction_max_messages: int = Field(default=20, gt=0)
    summary_model: str | None = None  # Model used for summaries (defaults to chat model)


class AgentDefaults(BaseModel):
    """Default agent configuration."""
    model: str = "anthropic/claude-sonnet-4-5"
    max_context_tokens: int | None = None  # Overrides the built-in model limit
    system_prompt: str = ""


class AgentsConfig(BaseModel):
    """Agent configuration."""
    defaults: AgentDefaults = Field(default_factory=AgentDefaults)


class ProviderConfig(BaseModel):
    """LLM provider configuration."""
    api_key: str = ""


class TelemetryConfig(BaseModel):
    """Telemetry sink configuration."""
    enabled: bool = True
    path: str = "~/.chatcompact/telemetry/chat_compression.jsonl"


class Config(BaseSettings):
    """Root configuration for chatcompact."""
    model_config = SettingsConfigDict(
        env_prefix="CHATCOMPACT_",
        env_nested_delimiter="__",
    )

    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    def get_summary_model(self, chat_model: str | None = None) -> str:
        """Model used for summarization: explicit setting, else the chat model."""
        return (
            self.compression.summary_model
            or chat_model
            or self.agents.defaults.model
        )


# Flat setting names exposed to users, mapped to dot-paths in Config.
SETTING_PATHS: dict[str, str] = {
    "compressionTriggerTokens": "compression.trigger_tokens",
    "compressionTriggerUtilization": "compression.trigger_utilization",
    "compressionMinMessagesSinceLastCompress": "compression.min_messages_since_last_compress",
    "compressionMinTimeBetweenPrompts": "compression.min_time_between_prompts",
    "compressionFrequencyMultiplier": "compression.frequency_multiplier",
    "compressionInteractive": "compression.interactive",
    "compressionPromptTimeoutSeconds": "compression.prompt_timeout_seconds",
    "compressionThreshold": "compression.threshold",
    "compressionAutoSkip": "compression.auto_skip",
}
