"""
Configuration module for RAG Memory.

Loads settings from config.yaml and secrets from environment variables.
Nothing reads this implicitly: the hosting application builds a Config
and hands it to create_memory_manager().
"""

import contextvars
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Context variable for project logging
project_context = contextvars.ContextVar("project_id", default=None)


class ProjectLogFilter(logging.Filter):
    """Filter to inject the current project into log records."""
    def filter(self, record):
        project_id = project_context.get()
        if project_id is not None:
            record.project_info = f" [Project {project_id}]"
        else:
            record.project_info = ""
        return True


@contextmanager
def project_scope(project_id: str):
    """Tag log lines emitted inside the block with a project id."""
    token = project_context.set(project_id)
    try:
        yield
    finally:
        project_context.reset(token)


# Default config file path
CONFIG_FILE = Path(__file__).parent.parent / "config.yaml"


def _load_yaml_config() -> dict:
    """Load configuration from YAML file."""
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE) as f:
            return yaml.safe_load(f) or {}
    return {}


# Load YAML config once at module import
_yaml_config = _load_yaml_config()


def _get_yaml(section: str, key: str, default=None):
    """Get a value from the YAML config."""
    return _yaml_config.get(section, {}).get(key, default)


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration."""
    # Secret from .env. Empty means every embedding uses the local fallback.
    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    base_url: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL") or None)

    # Settings from YAML
    provider: Literal["openai", "local"] = field(
        default_factory=lambda: _get_yaml("embedding", "provider", "openai")
    )
    # Must produce 1536 dimensions to match the vector index
    model: str = field(
        default_factory=lambda: _get_yaml("embedding", "model", "text-embedding-3-small")
    )
    timeout_seconds: float = field(
        default_factory=lambda: _get_yaml("embedding", "timeout_seconds", 10.0)
    )
    max_input_chars: int = field(
        default_factory=lambda: _get_yaml("embedding", "max_input_chars", 8000)
    )


@dataclass
class StorageConfig:
    """Storage backend configuration."""
    backend: Literal["memory", "chroma", "pgvector"] = field(
        default_factory=lambda: _get_yaml("storage", "backend", "chroma")
    )
    table_name: str = field(
        default_factory=lambda: _get_yaml("storage", "table_name", "rag_memories")
    )
    chroma_path: str = field(
        default_factory=lambda: _get_yaml("storage", "chroma_path", "./memory_store")
    )
    # Secret from .env (contains credentials)
    postgres_url: str = field(default_factory=lambda: os.getenv("POSTGRES_URL", ""))


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = field(
        default_factory=lambda: _get_yaml("logging", "level", "INFO")
    )


@dataclass
class Config:
    """Main configuration container."""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log: LoggingConfig = field(default_factory=LoggingConfig)

    def setup_logging(self) -> logging.Logger:
        """Configure and return the package logger."""
        # Reset existing handlers to ensure clean configuration
        root = logging.getLogger()
        if root.handlers:
            for handler in list(root.handlers):
                root.removeHandler(handler)

        logging.basicConfig(
            level=getattr(logging, self.log.level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s%(project_info)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Add filter to the handler created by basicConfig
        for handler in logging.getLogger().handlers:
            handler.addFilter(ProjectLogFilter())

        return logging.getLogger("rag_memory")

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of missing/invalid settings.

        A missing OPENAI_API_KEY is not an error: it selects the fallback
        embedding.

        Returns:
            List of validation error messages, empty if all valid.
        """
        errors = []

        if self.embedding.provider not in ("openai", "local"):
            errors.append(f"Unknown embedding provider: {self.embedding.provider}")
        if self.embedding.timeout_seconds <= 0:
            errors.append("embedding.timeout_seconds must be positive")

        if self.storage.backend not in ("memory", "chroma", "pgvector"):
            errors.append(f"Unknown storage backend: {self.storage.backend}")
        elif self.storage.backend == "pgvector" and not self.storage.postgres_url:
            errors.append("POSTGRES_URL is required when using the pgvector backend")

        if not isinstance(getattr(logging, self.log.level.upper(), None), int):
            errors.append(f"Unknown log level: {self.log.level}")

        return errors
