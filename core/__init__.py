"""Discovery Core - Configuration and logging"""

from .config import (
    DiscoveryConfig,
    DatabaseConfig,
    EmbeddingConfig,
    ScoringConfig,
    Environment,
    EmbeddingProviderName,
    get_config,
    set_config,
)
from .logging_config import JSONFormatter, setup_logging

__all__ = [
    "DiscoveryConfig",
    "DatabaseConfig",
    "EmbeddingConfig",
    "ScoringConfig",
    "Environment",
    "EmbeddingProviderName",
    "get_config",
    "set_config",
    "JSONFormatter",
    "setup_logging",
]
