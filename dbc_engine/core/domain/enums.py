"""
Enums — перечисления домена

Числовые значения совпадают с кодировкой settlement-программы: конфигурации,
десериализованные из внешнего хранилища, используют именно их.
"""

from enum import Enum, IntEnum


class Rounding(str, Enum):
    """Направление округления целочисленного деления"""

    UP = "up"
    DOWN = "down"


class TradeDirection(IntEnum):
    """Направление сделки относительно пары base/quote"""

    BASE_TO_QUOTE = 0
    QUOTE_TO_BASE = 1


class CollectFeeMode(IntEnum):
    """
    Токен, в котором собирается trading fee.

    QUOTE_TOKEN: fee всегда в quote (на входе при покупке, на выходе при продаже)
    OUTPUT_TOKEN: fee всегда в выходном токене сделки
    """

    QUOTE_TOKEN = 0
    OUTPUT_TOKEN = 1


class BaseFeeMode(IntEnum):
    """Режим base fee: затухающее расписание или rate limiter по размеру сделки"""

    FEE_SCHEDULER_LINEAR = 0
    FEE_SCHEDULER_EXPONENTIAL = 1
    RATE_LIMITER = 2

    @property
    def is_scheduler(self) -> bool:
        return self in (
            BaseFeeMode.FEE_SCHEDULER_LINEAR,
            BaseFeeMode.FEE_SCHEDULER_EXPONENTIAL,
        )


class MigrationOption(IntEnum):
    """Целевой пул после миграции"""

    MET_DAMM = 0
    MET_DAMM_V2 = 1


class ActivationType(IntEnum):
    """Единица измерения activation/current point"""

    SLOT = 0
    TIMESTAMP = 1


class TokenType(IntEnum):
    """Стандарт base токена"""

    SPL = 0
    TOKEN_2022 = 1


class MigrationFeeOption(IntEnum):
    """Фиксированный fee целевого пула после миграции"""

    FIXED_BPS_25 = 0
    FIXED_BPS_30 = 1
    FIXED_BPS_100 = 2
    FIXED_BPS_200 = 3
    FIXED_BPS_400 = 4
    FIXED_BPS_600 = 5


class TokenDecimal(IntEnum):
    """Допустимые decimals base токена"""

    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
