"""
MemSync Configuration.

Dataclass configuration loaded from a JSON file, with environment variable
overrides (a ``.env`` file is honoured through python-dotenv).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv

load_dotenv()


# ============================================================================
# Default Paths
# ============================================================================


def get_default_data_dir() -> Path:
    """Get the default data directory for MemSync."""
    if env_path := os.environ.get("MEMSYNC_DATA_DIR"):
        return Path(env_path)

    return Path.home() / ".memsync"


def get_default_config_path() -> Path:
    return get_default_data_dir() / "memsync_config.json"


# ============================================================================
# Configuration Classes
# ============================================================================


@dataclass
class EmbeddingConfig:
    """Configuration for the embedding adapter."""

    provider: Literal["openai", "sentence_transformers"] = "openai"
    model: str = "text-embedding-3-small"
    dimension: int = 1536
    api_key: str | None = None  # Falls back to OPENAI_API_KEY
    base_url: str | None = None
    device: str = "cpu"
    timeout: float = 30.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EmbeddingConfig":
        return cls(**{k: v for k, v in data.items() if hasattr(cls, k)})

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "dimension": self.dimension,
            "base_url": self.base_url,
            "device": self.device,
            "timeout": self.timeout,
            # Don't serialize API key for security
        }


@dataclass
class VectorConfig:
    """Configuration for the vector index."""

    backend: Literal["qdrant"] = "qdrant"
    url: str = ":memory:"  # ':memory:' for Qdrant local mode, or 'http://localhost:6333'
    api_key: str | None = None  # Falls back to QDRANT_API_KEY
    memory_collection: str = "memories"
    event_collection: str = "calendar_events"
    distance: Literal["cosine"] = "cosine"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VectorConfig":
        return cls(**{k: v for k, v in data.items() if hasattr(cls, k)})

    def to_dict(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "url": self.url,
            "memory_collection": self.memory_collection,
            "event_collection": self.event_collection,
            "distance": self.distance,
        }


@dataclass
class DatabaseConfig:
    """Configuration for the relational store."""

    path: str | None = None  # None -> <data_dir>/memsync.duckdb; ':memory:' for tests

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DatabaseConfig":
        return cls(path=data.get("path"))

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path}


@dataclass
class CalendarConfig:
    """Configuration for the external calendar provider."""

    base_url: str = "https://www.googleapis.com/calendar/v3"
    calendar_id: str = "primary"
    timeout: float = 30.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CalendarConfig":
        return cls(**{k: v for k, v in data.items() if hasattr(cls, k)})

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "calendar_id": self.calendar_id,
            "timeout": self.timeout,
        }


@dataclass
class MemSyncConfig:
    """Main configuration for MemSync.

    Aggregates all sub-configurations and provides load/save functionality.
    """

    data_dir: Path = field(default_factory=get_default_data_dir)

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector: VectorConfig = field(default_factory=VectorConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    def __post_init__(self):
        if isinstance(self.data_dir, str):
            self.data_dir = Path(self.data_dir)

    @property
    def database_path(self) -> str:
        """Resolved DuckDB path."""
        if self.database.path:
            return self.database.path
        return str(self.data_dir / "memsync.duckdb")

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> "MemSyncConfig":
        """Load configuration from a JSON file, then apply environment overrides.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            MemSyncConfig instance (defaults when the file does not exist)
        """
        if config_path is None:
            config_path = get_default_config_path()

        config_path = Path(config_path)

        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                config = cls.from_dict(json.load(f))
        else:
            config = cls()

        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Override settings from environment variables when they are set."""
        if provider := os.getenv("MEMSYNC_EMBEDDING_PROVIDER"):
            self.embedding.provider = provider.strip().lower().replace("-", "_")
        if model := os.getenv("MEMSYNC_EMBEDDING_MODEL"):
            self.embedding.model = model
        if base_url := os.getenv("OPENAI_BASE_URL"):
            self.embedding.base_url = base_url
        if url := os.getenv("QDRANT_URL"):
            self.vector.url = url
        if qdrant_key := os.getenv("QDRANT_API_KEY"):
            self.vector.api_key = qdrant_key
        if db_path := os.getenv("MEMSYNC_DB_PATH"):
            self.database.path = db_path
        if level := os.getenv("MEMSYNC_LOG_LEVEL"):
            self.log_level = level.upper()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemSyncConfig":
        """Create config from dictionary."""
        return cls(
            data_dir=Path(data.get("data_dir", get_default_data_dir())),
            embedding=EmbeddingConfig.from_dict(data.get("embedding", {})),
            vector=VectorConfig.from_dict(data.get("vector", {})),
            database=DatabaseConfig.from_dict(data.get("database", {})),
            calendar=CalendarConfig.from_dict(data.get("calendar", {})),
            log_level=data.get("log_level", "INFO"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "data_dir": str(self.data_dir),
            "embedding": self.embedding.to_dict(),
            "vector": self.vector.to_dict(),
            "database": self.database.to_dict(),
            "calendar": self.calendar.to_dict(),
            "log_level": self.log_level,
        }

    def save(self, config_path: str | Path | None = None) -> Path:
        """Save configuration to a JSON file.

        Args:
            config_path: Path to save to. If None, uses default location.

        Returns:
            Path to saved file
        """
        if config_path is None:
            config_path = self.data_dir / "memsync_config.json"

        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

        return config_path

    def ensure_directories(self) -> None:
        """Ensure the data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
