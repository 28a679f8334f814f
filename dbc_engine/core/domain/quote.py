"""
Quote — результаты котировок

Frozen dataclasses, потребляемые instruction-building коллаборатором.
Отклонённая котировка (PoolCompleted, нулевой объём) — это результат
с accepted=False, а не исключение.
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

from dbc_engine.core.exceptions import InvalidConfiguration, PoolCompleted


class QuoteRejectReason(str, Enum):
    """Причина отклонения котировки"""

    POOL_COMPLETED = "pool_completed"
    AMOUNT_ZERO = "amount_zero"


class SwapAmount(NamedTuple):
    """Результат обхода кривой."""

    amount: int  # выход для exact-in, требуемый вход для exact-out
    next_sqrt_price: int


class FeeOnAmount(NamedTuple):
    """Сумма после fee и разбивка fee."""

    amount: int
    trading_fee: int
    protocol_fee: int
    referral_fee: int


class FeeMode(NamedTuple):
    """Где собирается fee для конкретной сделки."""

    fees_on_input: bool
    fees_on_base_token: bool
    has_referral: bool


@dataclass(frozen=True)
class FeeBreakdown:
    """Разбивка fee сделки."""

    trading: int = 0
    protocol: int = 0
    referral: int = 0

    @property
    def total(self) -> int:
        return self.trading + self.protocol + self.referral


@dataclass(frozen=True)
class _QuoteBase:
    accepted: bool
    reject_reason: Optional[QuoteRejectReason]

    # Цены в Q64.64 (sqrt_price^2 >> 64)
    price_before: int
    price_after: int
    next_sqrt_price: int
    fee: FeeBreakdown

    # Для PoolCompleted
    quote_reserve: int
    migration_quote_threshold: int

    def raise_for_rejection(self) -> None:
        """
        Превращает отклонённую котировку в исключение.

        Raises:
            PoolCompleted: Если виртуальная фаза пула завершена
            InvalidConfiguration: Если запрошен нулевой объём
        """
        if self.accepted:
            return
        if self.reject_reason == QuoteRejectReason.POOL_COMPLETED:
            raise PoolCompleted(self.quote_reserve, self.migration_quote_threshold)
        raise InvalidConfiguration("amount_zero", "swap amount must be positive")


@dataclass(frozen=True)
class SwapQuote(_QuoteBase):
    """Котировка exact-in."""

    amount_in: int = 0
    amount_out: int = 0
    minimum_amount_out: int = 0


@dataclass(frozen=True)
class SwapQuoteExactOut(_QuoteBase):
    """Котировка exact-out."""

    amount_out: int = 0
    amount_in: int = 0
    maximum_amount_in: int = 0
