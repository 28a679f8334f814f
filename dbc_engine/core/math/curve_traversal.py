"""
Curve Traversal — обход кусочной кривой ликвидности

Сегмент i покрывает (curve[i-1].sqrt_price, curve[i].sqrt_price] с liquidity
curve[i].liquidity; нижняя граница нулевого сегмента — sqrt_start_price.

Exact-in:
- traverse_from_base: продажа base, движение вниз по цене, выход в quote
- traverse_from_quote: покупка за quote, движение вверх, выход в base

Exact-out:
- traverse_to_quote_output: сколько base нужно продать ради amount_out quote
- traverse_to_base_output: сколько quote нужно заплатить ради amount_out base

Все обходы ограничены длиной кривой (<= 16 сегментов).
"""

from dbc_engine.core.domain.curve import Curve
from dbc_engine.core.domain.enums import Rounding
from dbc_engine.core.domain.quote import SwapAmount
from dbc_engine.core.exceptions import InsufficientLiquidity
from dbc_engine.core.math.curve_math import (
    MIN_SQRT_PRICE,
    amount_base_between,
    amount_quote_between,
    next_sqrt_price_from_base_input,
    next_sqrt_price_from_base_output,
    next_sqrt_price_from_input,
    next_sqrt_price_from_quote_input,
    next_sqrt_price_from_quote_output,
)
from dbc_engine.core.math.safe_math import sub


def _liquidity_below(curve: Curve, index: int) -> int:
    # Liquidity между curve[index] и ценой выше неё
    if index + 1 < len(curve):
        return curve[index + 1].liquidity
    return curve[index].liquidity


# =============================================================================
# EXACT IN
# =============================================================================


def traverse_from_base(curve: Curve, current_sqrt_price: int, amount_in: int) -> SwapAmount:
    """
    Продажа amount_in base токена от текущей цены вниз.

    Сегменты с нулевой liquidity пропускаются. Остаток, не поглощённый
    заданными точками, применяется к liquidity curve[0] (сегмент ниже
    первой точки) с проверкой только нижней границы MIN_SQRT_PRICE.

    Args:
        curve: Кривая пула
        current_sqrt_price: Текущая sqrt цена
        amount_in: Количество base на входе (после fee, если fee на входе)

    Returns:
        SwapAmount(amount=quote на выходе, next_sqrt_price)

    Raises:
        InsufficientLiquidity: Если цена ушла бы ниже MIN_SQRT_PRICE
    """
    if amount_in == 0:
        return SwapAmount(0, current_sqrt_price)

    total_output = 0
    sqrt_price = current_sqrt_price
    amount_left = amount_in

    for i in range(len(curve) - 1, -1, -1):
        point = curve[i]
        if point.sqrt_price >= sqrt_price:
            continue

        liquidity = _liquidity_below(curve, i)
        if liquidity == 0:
            continue

        max_amount_in = amount_base_between(point.sqrt_price, sqrt_price, liquidity, Rounding.UP)
        if amount_left < max_amount_in:
            next_sqrt_price = next_sqrt_price_from_base_input(sqrt_price, liquidity, amount_left)
            total_output += amount_quote_between(
                next_sqrt_price, sqrt_price, liquidity, Rounding.DOWN
            )
            sqrt_price = next_sqrt_price
            amount_left = 0
            break

        total_output += amount_quote_between(
            point.sqrt_price, sqrt_price, liquidity, Rounding.DOWN
        )
        sqrt_price = point.sqrt_price
        amount_left = sub(amount_left, max_amount_in)

    if amount_left > 0 and curve.first.liquidity > 0:
        liquidity = curve.first.liquidity
        next_sqrt_price = next_sqrt_price_from_input(sqrt_price, liquidity, amount_left, True)
        if next_sqrt_price < MIN_SQRT_PRICE:
            raise InsufficientLiquidity(
                f"sqrt price {next_sqrt_price} below MIN_SQRT_PRICE",
                amount_left=amount_left,
            )
        total_output += amount_quote_between(
            next_sqrt_price, sqrt_price, liquidity, Rounding.DOWN
        )
        sqrt_price = next_sqrt_price

    return SwapAmount(total_output, sqrt_price)


def traverse_from_quote(curve: Curve, current_sqrt_price: int, amount_in: int) -> SwapAmount:
    """
    Покупка base за amount_in quote токена от текущей цены вверх.

    Returns:
        SwapAmount(amount=base на выходе, next_sqrt_price)

    Raises:
        InsufficientLiquidity: Если amount_in не поглощается заданными сегментами
    """
    if amount_in == 0:
        return SwapAmount(0, current_sqrt_price)

    total_output = 0
    sqrt_price = current_sqrt_price
    amount_left = amount_in

    for point in curve:
        if point.liquidity == 0 or point.sqrt_price <= sqrt_price:
            continue

        max_amount_in = amount_quote_between(
            sqrt_price, point.sqrt_price, point.liquidity, Rounding.UP
        )
        if amount_left < max_amount_in:
            next_sqrt_price = next_sqrt_price_from_quote_input(
                sqrt_price, point.liquidity, amount_left
            )
            total_output += amount_base_between(
                sqrt_price, next_sqrt_price, point.liquidity, Rounding.DOWN
            )
            sqrt_price = next_sqrt_price
            amount_left = 0
            break

        total_output += amount_base_between(
            sqrt_price, point.sqrt_price, point.liquidity, Rounding.DOWN
        )
        sqrt_price = point.sqrt_price
        amount_left = sub(amount_left, max_amount_in)

    if amount_left > 0:
        raise InsufficientLiquidity(
            f"not enough liquidity to process the entire amount, left {amount_left}",
            amount_left=amount_left,
        )

    return SwapAmount(total_output, sqrt_price)


# =============================================================================
# EXACT OUT
# =============================================================================


def traverse_to_quote_output(curve: Curve, current_sqrt_price: int, amount_out: int) -> SwapAmount:
    """
    Сколько base нужно продать, чтобы получить amount_out quote.

    Returns:
        SwapAmount(amount=требуемый base вход, next_sqrt_price)

    Raises:
        InsufficientLiquidity: Если кривая не содержит amount_out quote
            ниже текущей цены
    """
    if amount_out == 0:
        return SwapAmount(0, current_sqrt_price)

    total_input = 0
    sqrt_price = current_sqrt_price
    amount_left = amount_out

    for i in range(len(curve) - 1, -1, -1):
        point = curve[i]
        if point.sqrt_price >= sqrt_price:
            continue

        liquidity = _liquidity_below(curve, i)
        if liquidity == 0:
            continue

        max_amount_out = amount_quote_between(
            point.sqrt_price, sqrt_price, liquidity, Rounding.DOWN
        )
        if amount_left < max_amount_out:
            next_sqrt_price = next_sqrt_price_from_quote_output(sqrt_price, liquidity, amount_left)
            total_input += amount_base_between(
                next_sqrt_price, sqrt_price, liquidity, Rounding.UP
            )
            sqrt_price = next_sqrt_price
            amount_left = 0
            break

        total_input += amount_base_between(point.sqrt_price, sqrt_price, liquidity, Rounding.UP)
        sqrt_price = point.sqrt_price
        amount_left = sub(amount_left, max_amount_out)

    if amount_left > 0:
        liquidity = curve.first.liquidity
        if liquidity == 0:
            raise InsufficientLiquidity("no liquidity below the first curve point", amount_left)
        next_sqrt_price = next_sqrt_price_from_quote_output(sqrt_price, liquidity, amount_left)
        if next_sqrt_price < MIN_SQRT_PRICE:
            raise InsufficientLiquidity(
                f"sqrt price {next_sqrt_price} below MIN_SQRT_PRICE",
                amount_left=amount_left,
            )
        total_input += amount_base_between(next_sqrt_price, sqrt_price, liquidity, Rounding.UP)
        sqrt_price = next_sqrt_price

    return SwapAmount(total_input, sqrt_price)


def traverse_to_base_output(curve: Curve, current_sqrt_price: int, amount_out: int) -> SwapAmount:
    """
    Сколько quote нужно заплатить, чтобы получить amount_out base.

    Returns:
        SwapAmount(amount=требуемый quote вход, next_sqrt_price)

    Raises:
        InsufficientLiquidity: Если сегменты выше текущей цены не содержат
            amount_out base
    """
    if amount_out == 0:
        return SwapAmount(0, current_sqrt_price)

    total_input = 0
    sqrt_price = current_sqrt_price
    amount_left = amount_out

    for point in curve:
        if point.liquidity == 0 or point.sqrt_price <= sqrt_price:
            continue

        max_amount_out = amount_base_between(
            sqrt_price, point.sqrt_price, point.liquidity, Rounding.DOWN
        )
        if amount_left < max_amount_out:
            next_sqrt_price = next_sqrt_price_from_base_output(
                sqrt_price, point.liquidity, amount_left
            )
            total_input += amount_quote_between(
                sqrt_price, next_sqrt_price, point.liquidity, Rounding.UP
            )
            sqrt_price = next_sqrt_price
            amount_left = 0
            break

        total_input += amount_quote_between(
            sqrt_price, point.sqrt_price, point.liquidity, Rounding.UP
        )
        sqrt_price = point.sqrt_price
        amount_left = sub(amount_left, max_amount_out)

    if amount_left > 0:
        raise InsufficientLiquidity(
            f"not enough liquidity to deliver the entire amount, left {amount_left}",
            amount_left=amount_left,
        )

    return SwapAmount(total_input, sqrt_price)


# =============================================================================
# ЦЕНА НА ПОРОГЕ МИГРАЦИИ
# =============================================================================


def price_at_quote_threshold(curve: Curve, sqrt_start_price: int, quote_threshold: int) -> int:
    """
    Sqrt цена после покупки ровно на quote_threshold quote от стартовой цены.

    Первый сегмент останавливается только при строгом превышении порога,
    остальные — при превышении остатка; точное совпадение переводит цену
    на верхнюю границу сегмента.

    Args:
        curve: Кривая пула
        sqrt_start_price: Стартовая sqrt цена
        quote_threshold: Порог quote (обычно migration_quote_threshold)

    Returns:
        Sqrt цена миграции

    Raises:
        InsufficientLiquidity: Если кривая не поглощает quote_threshold
    """
    first = curve.first
    total_amount = amount_quote_between(
        sqrt_start_price, first.sqrt_price, first.liquidity, Rounding.UP
    )
    if total_amount > quote_threshold:
        return next_sqrt_price_from_input(
            sqrt_start_price, first.liquidity, quote_threshold, False
        )

    amount_left = quote_threshold - total_amount
    next_sqrt_price = first.sqrt_price
    for point in curve.points[1:]:
        max_amount = amount_quote_between(
            next_sqrt_price, point.sqrt_price, point.liquidity, Rounding.UP
        )
        if max_amount > amount_left:
            next_sqrt_price = next_sqrt_price_from_input(
                next_sqrt_price, point.liquidity, amount_left, False
            )
            amount_left = 0
            break
        amount_left -= max_amount
        next_sqrt_price = point.sqrt_price

    if amount_left != 0:
        raise InsufficientLiquidity(
            f"not enough liquidity, amount left: {amount_left}", amount_left=amount_left
        )

    return next_sqrt_price
