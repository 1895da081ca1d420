from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    # Read from OS env and optional .env file in project root.
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Upstream chat-completion endpoint (OpenAI-compatible, DeepSeek by default).
    upstream_api_key: Optional[str] = Field(
        default=None,
        alias="DEEPSEEK_API_KEY",
        description="Bearer credential for the upstream chat-completion API",
    )
    upstream_base_url: str = Field(
        "https://api.deepseek.com",
        alias="UPSTREAM_BASE_URL",
    )
    upstream_chat_path: str = Field(
        "/v1/chat/completions",
        alias="UPSTREAM_CHAT_PATH",
    )
    upstream_model: str = Field("deepseek-chat", alias="UPSTREAM_MODEL")
    upstream_temperature: float = Field(0.7, alias="UPSTREAM_TEMPERATURE")
    upstream_stream_max_tokens: int = Field(2000, alias="UPSTREAM_STREAM_MAX_TOKENS")
    upstream_completion_max_tokens: int = Field(
        1000, alias="UPSTREAM_COMPLETION_MAX_TOKENS"
    )

    # HTTP timeouts
    upstream_timeout: float = Field(600.0, alias="UPSTREAM_TIMEOUT")

    # Prompt template asset used to seed every new session.
    prompts_dir: Path = Field(
        PACKAGE_DIR / "prompts",
        alias="PROMPTS_DIR",
        description="Directory containing prompt template text files",
    )
    prompt_template_file: str = Field("default.txt", alias="PROMPT_TEMPLATE_FILE")

    # What to do when the intent classifier cannot produce a judgment.
    intent_fallback: Literal["continue", "stop"] = Field(
        "continue",
        alias="INTENT_FALLBACK",
        description="Policy applied when feedback intent is unknown: 'continue' or 'stop'",
    )

    # Characters of each assistant reply kept in the human-readable conversation log.
    conversation_summary_chars: int = Field(200, alias="CONVERSATION_SUMMARY_CHARS")

    cors_allow_origins: str = Field(
        "*",
        alias="CORS_ALLOW_ORIGINS",
        description="Comma-separated list of allowed origins, '*' for any",
    )

    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(3000, alias="PORT")

    # Application log level for our aiguide logger.
    # Can be overridden via LOG_LEVEL env var, e.g. "DEBUG" while debugging.
    log_level: str = Field(
        "INFO",
        alias="LOG_LEVEL",
        description="Application log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_timezone: Optional[str] = Field(
        default=None,
        alias="LOG_TIMEZONE",
        description="Timezone name for log timestamps, e.g. 'Asia/Shanghai'. Defaults to system local time.",
    )
    log_dir: Path = Field(Path("logs"), alias="LOG_DIR")

    @property
    def upstream_chat_url(self) -> str:
        return self.upstream_base_url.rstrip("/") + "/" + self.upstream_chat_path.lstrip("/")

    def get_cors_origins(self) -> List[str]:
        """
        Return configured CORS origins from CORS_ALLOW_ORIGINS.
        Whitespace is stripped and empty entries are ignored.
        """
        if not self.cors_allow_origins:
            return []
        return [
            item.strip()
            for item in self.cors_allow_origins.split(",")
            if item.strip()
        ]


settings = Settings()  # Reads from environment if available


def build_upstream_headers(api_key: str) -> Dict[str, str]:
    """
    Build headers for calling the upstream chat-completion endpoint.
    """
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
