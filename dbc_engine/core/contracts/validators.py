"""
JSON Schema Contract Validators

Снапшоты от persistence/ledger коллабораторов приходят как dict. Прежде чем
стать доменной моделью, снапшот проходит JSON Schema контракта:

    dict -> JSON Schema (best_match) -> Pydantic модель

Схемы (dbc_engine/core/contracts/schema/):
- pool_config.json — PoolConfig (кривая, fee, миграция, supply)
- virtual_pool.json — VirtualPoolState (цена, резервы, трекер волатильности)

Потребители:
- ConfigValidator — first_error / error_field для кода причины отказа
- QuoteEngine — parse снапшота пула перед котировкой
"""

import json
from pathlib import Path
from typing import Any, ClassVar, Dict, Generic, Optional, Type, TypeVar

import jsonschema
from jsonschema import Draft202012Validator, ValidationError
from jsonschema.exceptions import best_match
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from dbc_engine.core.domain.pool_config import PoolConfig
from dbc_engine.core.domain.virtual_pool import VirtualPoolState
from dbc_engine.core.exceptions import InvalidConfiguration

ModelT = TypeVar("ModelT", bound=BaseModel)


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """
    Загрузчик JSON Schema контрактов с кэшем.

    По умолчанию читает schema/ рядом с модулем, поэтому схемы доступны
    из установленного дистрибутива.
    """

    def __init__(self, schema_dir: Optional[Path] = None):
        self._schema_dir = schema_dir or Path(__file__).parent / "schema"
        if not self._schema_dir.is_dir():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Схема контракта по имени файла без расширения.

        Raises:
            FileNotFoundError: Если файла схемы нет
            ValueError: Если файл не проходит meta-validation Draft 2020-12
        """
        cached = self._schemas.get(schema_name)
        if cached is not None:
            return cached

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e.message}") from e

        self._schemas[schema_name] = schema
        return schema


_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator(Generic[ModelT]):
    """
    Контракт снапшота: JSON Schema плюс доменная модель, в которую он парсится.

    Подклассы задают schema_name, model и reject_reason — код причины,
    с которым parse отклоняет снапшот.
    """

    schema_name: ClassVar[str]
    model: ClassVar[Type[BaseModel]]
    reject_reason: ClassVar[str]

    def __init__(self, loader: Optional[SchemaLoader] = None):
        self.schema = (loader or _SCHEMA_LOADER).load_schema(self.schema_name)
        self.validator = Draft202012Validator(self.schema)

    def is_valid(self, data: Dict[str, Any]) -> bool:
        return self.validator.is_valid(data)

    def first_error(self, data: Dict[str, Any]) -> Optional[ValidationError]:
        """Наиболее релевантная ошибка схемы (jsonschema best_match) или None."""
        return best_match(self.validator.iter_errors(data))

    @staticmethod
    def error_field(error: ValidationError) -> str:
        """Поле верхнего уровня, к которому относится ошибка ('' для корня)."""
        return str(error.absolute_path[0]) if error.absolute_path else ""

    @staticmethod
    def describe(error: ValidationError) -> str:
        path = ".".join(str(part) for part in error.absolute_path) or "<root>"
        return f"{path}: {error.message}"

    def parse(self, data: Dict[str, Any]) -> ModelT:
        """
        Снапшот -> доменная модель.

        Raises:
            InvalidConfiguration: reject_reason, если снапшот нарушает схему
                или ограничения модели
        """
        error = self.first_error(data)
        if error is not None:
            raise InvalidConfiguration(self.reject_reason, self.describe(error))
        try:
            return self.model.model_validate(data)
        except ModelValidationError as e:
            raise InvalidConfiguration(self.reject_reason, str(e)) from e


class PoolConfigValidator(ContractValidator[PoolConfig]):
    """Контракт pool_config."""

    schema_name = "pool_config"
    model = PoolConfig
    reject_reason = "schema_invalid"


class VirtualPoolValidator(ContractValidator[VirtualPoolState]):
    """Контракт virtual_pool: снапшот ledger-коллаборатора для QuoteEngine."""

    schema_name = "virtual_pool"
    model = VirtualPoolState
    reject_reason = "pool_state_invalid"
