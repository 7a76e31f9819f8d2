"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "Business Concierge"
    app_version: str = "1.0.0"
    debug: bool = True

    # Files
    config_dir: str = "./config"  # business.json, SOUL.md, AGENTS.md, skills.json
    local_storage_path: str = "./data"

    # LLM Provider settings
    llm_provider: str = "openrouter"  # openai, openrouter, deepseek, groq, ollama, volcengine
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None  # uses provider default if not set
    llm_base_url: Optional[str] = None  # uses provider default if not set
    llm_timeout_seconds: float = 60.0

    # Optional fallback provider, tried once when the primary call fails
    fallback_llm_provider: Optional[str] = None
    fallback_llm_api_key: Optional[str] = None
    fallback_llm_model: Optional[str] = None
    fallback_llm_base_url: Optional[str] = None

    # Agent loop
    max_tool_calls: int = 5
    history_limit: int = 10
    session_retention: int = 50
    tool_timeout_seconds: float = 20.0
    turn_timeout_seconds: float = 180.0

    # Owner notifications
    owner_channel: Optional[str] = None
    owner_address: Optional[str] = None
    notify_orders: bool = False
    notify_complaints: bool = True

    # Feishu (Lark) Bot settings
    feishu_app_id: Optional[str] = None
    feishu_app_secret: Optional[str] = None
    feishu_verification_token: Optional[str] = None
    feishu_encrypt_key: Optional[str] = None

    # Admin API (disabled when no token is configured)
    admin_token: Optional[str] = None

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/concierge.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_llm_calls: bool = True  # Log all LLM calls with token usage

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
