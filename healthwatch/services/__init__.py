from healthwatch.services.registry import (
    UNSET,
    ServiceDefinition,
    ServicePatch,
    ServiceRegistry,
)

__all__ = [
    "UNSET",
    "ServiceDefinition",
    "ServicePatch",
    "ServiceRegistry",
]
