# config.py
import os
from dataclasses import dataclass, fields

@dataclass
class Config:
    """Holds all application configuration."""
    API_BASE_URL: str = "http://localhost:3000"
    SHARE_BASE_URL: str = "http://localhost:3000/"
    REQUEST_TIMEOUT: float = 15.0
    USER_AGENT: str = "metadata-explorer/0.1"
    DATABASE_FILENAME: str = "metadata_explorer.db"
    MAX_HISTORY: int = 20
    MAX_BATCH: int = 4
    ANALYTICS_WINDOW: int = 50
    RECENT_SEARCHES: int = 10

    @classmethod
    def from_env(cls, environ=None) -> "Config":
        """Builds a config, letting METADATA_* environment variables override the defaults."""
        environ = os.environ if environ is None else environ
        overrides = {
            "API_BASE_URL": environ.get("METADATA_API_URL"),
            "SHARE_BASE_URL": environ.get("METADATA_SHARE_URL"),
            "REQUEST_TIMEOUT": environ.get("METADATA_REQUEST_TIMEOUT"),
            "DATABASE_FILENAME": environ.get("METADATA_DB"),
        }
        types = {f.name: f.type for f in fields(cls)}
        values = {}
        for name, raw in overrides.items():
            if not raw:
                continue
            values[name] = float(raw) if types[name] in (float, "float") else raw
        return cls(**values)
