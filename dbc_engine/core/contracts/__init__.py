"""
Contract Validation Module

Валидация JSON снапшотов PoolConfig и VirtualPoolState и их разбор в
доменные модели.
"""

from .validators import (
    ContractValidator,
    PoolConfigValidator,
    SchemaLoader,
    VirtualPoolValidator,
)

__all__ = [
    "SchemaLoader",
    "ContractValidator",
    "PoolConfigValidator",
    "VirtualPoolValidator",
]
