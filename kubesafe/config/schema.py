"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kubesafe.kubectl.risk import DEFAULT_HIGH_VERBS, DEFAULT_MEDIUM_VERBS
from kubesafe.utils.helpers import expand_path


class KubeConfig(BaseModel):
    """kubectl connection profile discovery."""
    kubeconfig: str | None = None  # Falls back to $KUBECONFIG, then ~/.kube/config
    context: str | None = None  # Override current-context
    binary: str = "kubectl"


class LocalBackendConfig(BaseModel):
    """Local inference engine (Ollama)."""
    enabled: bool = True
    base_url: str = "http://localhost:11434"
    model: str = "llama3.2"
    probe_timeout_seconds: float = 1.0


class RemoteBackendConfig(BaseModel):
    """Remote LLM API, reached through LiteLLM."""
    enabled: bool = True
    model: str = "gpt-4o-mini"
    api_key: str = ""
    api_base: str | None = None


class TranslationConfig(BaseModel):
    """Natural language to kubectl translation."""
    timeout_seconds: float = 10.0
    max_retries: int = 1  # Only transient network failures are retried
    retry_delay_seconds: float = 0.5
    deadline_seconds: float | None = None  # Whole request; None means timeout_seconds * (max_retries + 1)
    temperature: float = 0.3
    max_tokens: int = 500
    confidence_threshold: int = 70  # Below this an advisory banner is shown
    max_input_chars: int = 500
    local: LocalBackendConfig = Field(default_factory=LocalBackendConfig)
    remote: RemoteBackendConfig = Field(default_factory=RemoteBackendConfig)


class RiskConfig(BaseModel):
    """Verb catalog used by the risk classifier."""
    high_verbs: list[str] = Field(default_factory=lambda: list(DEFAULT_HIGH_VERBS))
    medium_verbs: list[str] = Field(default_factory=lambda: list(DEFAULT_MEDIUM_VERBS))


class ExecToolConfig(BaseModel):
    """Command execution configuration."""
    timeout_seconds: int = 300  # 5 minutes default
    max_output_bytes: int = 200000  # Retained per stream for display


class AuditConfig(BaseModel):
    """Audit trail configuration."""
    database_path: str = "~/.kubesafe/audit.db"
    retention_days: int = 90
    max_output_bytes: int = 10240  # stdout/stderr cap per entry
    page_size: int = 20


class AllowlistConfig(BaseModel):
    """Always-allowed commands file."""
    path: str = "~/.kubesafe/allowlist"


class LoggingConfig(BaseModel):
    """Log sink configuration."""
    level: Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"] = "INFO"
    file: str = "~/.kubesafe/logs/kubesafe.log"
    rotation: str = "5 MB"
    retention: str = "14 days"


class Config(BaseSettings):
    """Root configuration for kubesafe."""
    kube: KubeConfig = Field(default_factory=KubeConfig)
    translation: TranslationConfig = Field(default_factory=TranslationConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    exec: ExecToolConfig = Field(default_factory=ExecToolConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    allowlist: AllowlistConfig = Field(default_factory=AllowlistConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="KUBESAFE_",
        env_nested_delimiter="__",
    )

    @property
    def audit_path(self) -> Path:
        """Get expanded audit database path."""
        return expand_path(self.audit.database_path)

    @property
    def allowlist_path(self) -> Path:
        """Get expanded allowlist path."""
        return expand_path(self.allowlist.path)

    @property
    def log_path(self) -> Path:
        """Get expanded log file path."""
        return expand_path(self.logging.file)
