"""Configuration loaded from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_HOME = Path.home() / ".rapport"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class EncryptionConfig:
    """Encryption-at-rest settings.

    Encryption is enabled whenever a master key is present, unless
    explicitly switched off with ENCRYPTION_ENABLED=false.
    """

    master_key: str | None = None
    enabled: bool = True

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.master_key)


@dataclass
class ProviderSettings:
    """Credentials and transport limits for the upstream model providers."""

    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    groq_api_key: str | None = None
    timeout: float = 60.0
    max_retries: int = 0
    max_tokens: int = 2048


@dataclass
class ExtractionConfig:
    """Settings for the secondary fact extraction call."""

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    max_tokens: int = 500


@dataclass
class StorageConfig:
    """Where conversations and memories are stored."""

    db_path: Path = field(default_factory=lambda: DEFAULT_HOME / "rapport.db")
    personas_path: Path | None = None
    memory_limit: int = 50


@dataclass
class ServerConfig:
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_dir: Path | None = None


@dataclass
class RapportConfig:
    """Top-level configuration."""

    encryption: EncryptionConfig = field(default_factory=EncryptionConfig)
    providers: ProviderSettings = field(default_factory=ProviderSettings)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUTHY


def _env_path(name: str) -> Path | None:
    value = os.getenv(name)
    return Path(value).expanduser() if value else None


def config_from_env() -> RapportConfig:
    """Load configuration from environment variables.

    Provider credentials are read here but only checked when a provider
    is first used, so a missing key never fails startup.
    """
    encryption = EncryptionConfig(
        master_key=os.getenv("ENCRYPTION_MASTER_KEY") or None,
        enabled=_env_flag("ENCRYPTION_ENABLED", True),
    )

    providers = ProviderSettings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
        groq_api_key=os.getenv("GROQ_API_KEY") or None,
        timeout=float(os.getenv("PROVIDER_TIMEOUT", "60")),
        max_retries=int(os.getenv("PROVIDER_MAX_RETRIES", "0")),
    )

    extraction = ExtractionConfig(
        provider=os.getenv("EXTRACTION_PROVIDER", "openai"),
        model=os.getenv("EXTRACTION_MODEL", "gpt-4o-mini"),
    )

    storage = StorageConfig(
        db_path=_env_path("RAPPORT_DB_PATH") or DEFAULT_HOME / "rapport.db",
        personas_path=_env_path("RAPPORT_PERSONAS"),
        memory_limit=int(os.getenv("RAPPORT_MEMORY_LIMIT", "50")),
    )

    server = ServerConfig(
        host=os.getenv("RAPPORT_HOST", "127.0.0.1"),
        port=int(os.getenv("RAPPORT_PORT", "8000")),
        log_dir=_env_path("RAPPORT_LOG_DIR"),
    )

    return RapportConfig(
        encryption=encryption,
        providers=providers,
        extraction=extraction,
        storage=storage,
        server=server,
    )
