"""
TRIALBYTE - Database Configuration
==================================
Connection target and pool sizing, read from the environment (and the
project ``.env``) when a config is instantiated.

``DATABASE_URL`` wins over the individual ``DB_*`` variables.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent.parent / '.env')


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass
class DatabaseConfig:
    host: str = field(default_factory=lambda: _env('DB_HOST', 'localhost'))
    port: int = field(default_factory=lambda: _env_int('DB_PORT', 5432))
    database: str = field(default_factory=lambda: _env('DB_NAME', 'trialbyte'))
    username: str = field(default_factory=lambda: _env('DB_USER', 'postgres'))
    password: str = field(default_factory=lambda: _env('DB_PASSWORD', 'postgres'))
    url: Optional[str] = field(default_factory=lambda: os.getenv('DATABASE_URL') or None)

    # Pool (ignored for SQLite)
    pool_size: int = field(default_factory=lambda: _env_int('DB_POOL_SIZE', 10))
    max_overflow: int = field(default_factory=lambda: _env_int('DB_MAX_OVERFLOW', 20))
    pool_timeout: int = field(default_factory=lambda: _env_int('DB_POOL_TIMEOUT', 30))
    pool_recycle: int = field(default_factory=lambda: _env_int('DB_POOL_RECYCLE', 1800))

    echo: bool = field(default_factory=lambda: _env('DB_ECHO', 'false').lower() == 'true')

    @property
    def connection_url(self) -> str:
        if not self.url:
            return f"postgresql://{self.username}:{self.password}@{self.host}:{self.port}/{self.database}"
        # SQLAlchemy no longer accepts the short postgres:// scheme
        if self.url.startswith('postgres://'):
            return 'postgresql://' + self.url[len('postgres://'):]
        return self.url

    @property
    def is_sqlite(self) -> bool:
        return self.connection_url.startswith('sqlite')

    @property
    def display_name(self) -> str:
        """Connection target without credentials, for logs."""
        if not self.url:
            return f"{self.host}:{self.port}/{self.database}"
        return self.connection_url.rsplit('@', 1)[-1]


DEFAULT_CONFIG = DatabaseConfig()
