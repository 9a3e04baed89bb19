"""Infrastructure layer for pharma-assurance.

Re-exports the public API surface for convenience::

    from pharma_assurance.infrastructure import (
        EngineConfig, DeepValidationConfig, load_config_from_env,
        EventBus, EventStore, ResultCache,
    )
"""

from pharma_assurance.infrastructure.config import (
    DeepValidationConfig,
    EngineConfig,
    load_config_from_env,
    load_config_from_json,
)
from pharma_assurance.infrastructure.event_bus import EventBus, EventStore
from pharma_assurance.infrastructure.result_cache import ResultCache, cache_key
from pharma_assurance.infrastructure.serialization import canonical_json, to_json, to_plain

__all__ = [
    "EngineConfig",
    "DeepValidationConfig",
    "load_config_from_env",
    "load_config_from_json",
    "EventBus",
    "EventStore",
    "ResultCache",
    "cache_key",
    "canonical_json",
    "to_json",
    "to_plain",
]
