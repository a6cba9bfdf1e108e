"""Runner configuration"""
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings
from typing import Optional

from .errors import ConfigurationError
from .models.batch_schemas import AgentErrorPolicy, LogMode


class Settings(BaseSettings):
    """Configuration for a runner invocation."""

    # Action inputs (passed as INPUT_<NAME> by the pipeline)
    input_apikey: str = ""
    input_baseurl: str = ""
    input_nonblocking: bool = False
    input_commitsha: str = ""
    input_repositoryurl: str = ""
    input_branch: str = ""
    input_commitmessage: str = ""
    input_agenterrorpolicy: AgentErrorPolicy = AgentErrorPolicy.FAIL
    input_logmode: LogMode = LogMode.FULL

    # Service connection
    propolis_api_key: str = ""
    propolis_api_url: str = "https://api.propolis.tech"
    request_timeout_seconds: float = 30.0

    # Polling config
    poll_interval_seconds: float = 10.0
    poll_timeout_seconds: float = 1200.0  # 20 minutes

    # Pipeline environment
    github_sha: str = ""
    github_server_url: str = "https://github.com"
    github_repository: str = ""
    github_head_ref: str = ""
    github_ref_name: str = ""
    github_event_path: str = ""
    github_output: str = ""
    github_step_summary: str = ""

    # Logging
    log_level: str = "INFO"

    # Process environment only, never a .env file from the working directory
    class Config:
        case_sensitive = False
        env_prefix = ""  # No prefix, use exact env var names
        extra = "ignore"

    @field_validator("input_nonblocking", "input_agenterrorpolicy", "input_logmode", mode="before")
    @classmethod
    def _blank_means_default(cls, value, info):
        # Declared but unset inputs arrive as empty strings
        if isinstance(value, str) and not value.strip():
            return cls.model_fields[info.field_name].default
        if isinstance(value, str):
            return value.strip().lower()
        return value

    # Resolved values used by the rest of the runner
    @property
    def api_key(self) -> str:
        return self.input_apikey or self.propolis_api_key

    @property
    def base_url(self) -> Optional[str]:
        return self.input_baseurl or None

    @property
    def non_blocking(self) -> bool:
        return self.input_nonblocking

    @property
    def agent_error_policy(self) -> AgentErrorPolicy:
        return self.input_agenterrorpolicy

    @property
    def log_mode(self) -> LogMode:
        return self.input_logmode

    @property
    def api_url(self) -> str:
        return self.propolis_api_url.rstrip('/')


def load_settings() -> Settings:
    """Read settings from the environment, reporting bad values as configuration errors."""
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
