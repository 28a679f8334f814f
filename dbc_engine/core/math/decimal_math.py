"""
Decimal Math — граница между человеческими параметрами и целыми

Decimal допускается только на стадии параметров (designer, fee_params):
цены, market cap, проценты. Переход обратно в целые всегда явный —
floor или ceil через decimal_to_int. Settlement-арифметика Decimal не видит.
"""

from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal, localcontext
from typing import Final, Union

from dbc_engine.core.domain.enums import Rounding
from dbc_engine.core.exceptions import NonFiniteResult
from dbc_engine.core.math.safe_math import ONE_Q64

# Точность Decimal-контекста (значащие цифры)
DECIMAL_PRECISION: Final[int] = 50

DecimalLike = Union[Decimal, int, float, str]

Q64_DECIMAL: Final[Decimal] = Decimal(ONE_Q64)


def to_decimal(value: DecimalLike) -> Decimal:
    """Приведение к Decimal; float идёт через str, чтобы не тащить двоичный хвост."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def decimal_to_int(value: Decimal, rounding: Rounding = Rounding.DOWN) -> int:
    """
    Явное приведение Decimal к int.

    Args:
        value: Decimal значение
        rounding: DOWN — floor, UP — ceil

    Returns:
        Целое

    Raises:
        NonFiniteResult: Если value — NaN или Infinity

    Examples:
        >>> decimal_to_int(Decimal("2.5"))
        2
        >>> decimal_to_int(Decimal("2.5"), Rounding.UP)
        3
    """
    if not value.is_finite():
        raise NonFiniteResult(f"cannot convert non-finite decimal {value} to int")
    mode = ROUND_CEILING if rounding == Rounding.UP else ROUND_FLOOR
    return int(value.to_integral_value(rounding=mode))


def decimal_sqrt(value: DecimalLike) -> Decimal:
    """Квадратный корень с точностью DECIMAL_PRECISION."""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return to_decimal(value).sqrt()


def sqrt_price_from_price(
    price: DecimalLike,
    token_base_decimal: int,
    token_quote_decimal: int,
    rounding: Rounding = Rounding.DOWN,
) -> int:
    """
    Sqrt цена Q64.64 из человеческой цены (quote за 1 base).

    Формула: sqrt(price / 10^(base_decimal - quote_decimal)) * 2^64

    Args:
        price: Цена в человеческих единицах
        token_base_decimal: Decimals base токена
        token_quote_decimal: Decimals quote токена
        rounding: Округление результата (по умолчанию floor)

    Raises:
        NonFiniteResult: Если цена отрицательна или не конечна
    """
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        adjusted = to_decimal(price) * Decimal(10) ** (token_quote_decimal - token_base_decimal)
        if adjusted.is_signed():
            raise NonFiniteResult(f"price must be non-negative, got {price}")
        return decimal_to_int(adjusted.sqrt() * Q64_DECIMAL, rounding)


def sqrt_price_from_market_cap(
    market_cap: DecimalLike,
    total_supply: DecimalLike,
    token_base_decimal: int,
    token_quote_decimal: int,
) -> int:
    """Sqrt цена, при которой total_supply base стоит market_cap quote."""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        price = to_decimal(market_cap) / to_decimal(total_supply)
    return sqrt_price_from_price(price, token_base_decimal, token_quote_decimal)


def price_from_sqrt_price(
    sqrt_price: int,
    token_base_decimal: int,
    token_quote_decimal: int,
) -> Decimal:
    """Человеческая цена из sqrt цены: (sqrt_price / 2^64)^2 * 10^(base - quote)."""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        ratio = Decimal(sqrt_price) / Q64_DECIMAL
        return ratio * ratio * Decimal(10) ** (token_base_decimal - token_quote_decimal)
