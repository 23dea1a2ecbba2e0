"""
Deployment Configuration

Settings are read once from the environment when the application starts.
The require-authentication switch in particular is evaluated a single time
while routes are bound and cannot be changed per route afterwards.
"""
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from ..constants import (
    EnvKeys,
    TRUTHY_VALUES,
    DEFAULT_DATABASE_URL,
    DEFAULT_STREAM_BATCH_SIZE,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def _is_truthy(value: Optional[str]) -> bool:
    return (value or '').strip().lower() in TRUTHY_VALUES


def _normalize_prefix(prefix: str) -> str:
    prefix = '/' + prefix.strip().strip('/')
    return prefix if prefix != '/' else ''


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    require_auth: bool = False
    api_tokens: Tuple[str, ...] = field(default_factory=tuple)
    route_prefix: str = '/entities'
    lazy_route_prefix: str = '/entities-lazy'
    stream_batch_size: int = DEFAULT_STREAM_BATCH_SIZE
    log_dir: Optional[Path] = None
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings instance

        Raises:
            ConfigurationError: if a value cannot be interpreted
        """
        env = os.environ if environ is None else environ
        invalid = []

        batch_size = DEFAULT_STREAM_BATCH_SIZE
        raw_batch = env.get(EnvKeys.STREAM_BATCH_SIZE)
        if raw_batch:
            try:
                batch_size = int(raw_batch)
                if batch_size < 1:
                    raise ValueError(raw_batch)
            except ValueError:
                invalid.append(EnvKeys.STREAM_BATCH_SIZE)

        log_level = env.get(EnvKeys.LOG_LEVEL, 'INFO').upper()
        if log_level not in _LOG_LEVELS:
            invalid.append(EnvKeys.LOG_LEVEL)

        if invalid:
            raise ConfigurationError(
                f"Invalid configuration values: {', '.join(invalid)}",
                invalid_keys=invalid
            )

        tokens = tuple(
            token.strip() for token in env.get(EnvKeys.API_TOKENS, '').split(',') if token.strip()
        )
        log_dir = env.get(EnvKeys.LOG_DIR)

        settings = cls(
            database_url=env.get(EnvKeys.DATABASE_URL, DEFAULT_DATABASE_URL),
            require_auth=_is_truthy(env.get(EnvKeys.REQUIRE_AUTH)),
            api_tokens=tokens,
            route_prefix=_normalize_prefix(env.get(EnvKeys.ROUTE_PREFIX, '/entities')),
            lazy_route_prefix=_normalize_prefix(env.get(EnvKeys.LAZY_ROUTE_PREFIX, '/entities-lazy')),
            stream_batch_size=batch_size,
            log_dir=Path(log_dir) if log_dir else None,
            log_level=log_level,
        )

        if settings.require_auth:
            logger.info("Authentication required on generated endpoints")
        return settings
