"""
Supply — учёт base токена по статьям

Общий слой для CurveDesigner и ConfigValidator: сколько base токена уходит
в свопы по кривой, в пул миграции, в vesting и в leftover.

    minimum supply = swap (+ буфер) + migration base + vesting + leftover

Буфер свопа: +25% к объёму до цены миграции, но не больше, чем кривая
вообще способна отдать до MAX_SQRT_PRICE. Без буфера крупная сделка у
конца кривой упиралась бы в нехватку liquidity.
"""

from typing import Final, NamedTuple

from dbc_engine.core.domain.curve import Curve, CurvePoint
from dbc_engine.core.domain.enums import MigrationOption, Rounding
from dbc_engine.core.domain.pool_config import PoolConfig
from dbc_engine.core.domain.vesting import LockedVestingSchedule
from dbc_engine.core.math.curve_math import (
    MAX_SQRT_PRICE,
    MIN_SQRT_PRICE,
    amount_base_between,
    initial_liquidity_from_delta_base,
    initial_liquidity_from_delta_quote,
)
from dbc_engine.core.math.curve_traversal import price_at_quote_threshold
from dbc_engine.core.math.safe_math import RESOLUTION, div, div_ceil, mul_div, shl, sub

# Буфер свопа (%)
SWAP_BUFFER_PERCENTAGE: Final[int] = 25


class SupplyBreakdown(NamedTuple):
    """Разбивка supply base токена для конфигурации пула."""

    sqrt_migration_price: int
    swap_base_amount: int
    swap_base_amount_buffer: int
    migration_base_amount: int
    total_vesting_amount: int

    @property
    def minimum_supply_without_buffer(self) -> int:
        return self.swap_base_amount + self.migration_base_amount + self.total_vesting_amount

    @property
    def minimum_supply_with_buffer(self) -> int:
        return (
            self.swap_base_amount_buffer + self.migration_base_amount + self.total_vesting_amount
        )


# =============================================================================
# СТАТЬИ SUPPLY
# =============================================================================


def total_vesting_amount(locked_vesting: LockedVestingSchedule) -> int:
    return locked_vesting.total_amount


def base_token_for_swap(sqrt_start_price: int, sqrt_migration_price: int, curve: Curve) -> int:
    """
    Base токен, продаваемый по кривой от стартовой цены до цены миграции.

    Сегмент, содержащий цену миграции, учитывается частично; дальше обход
    не идёт. Количества округлены вверх.
    """
    total_amount = 0
    for i, point in enumerate(curve):
        lower_sqrt_price = sqrt_start_price if i == 0 else curve[i - 1].sqrt_price
        if point.sqrt_price > sqrt_migration_price:
            total_amount += amount_base_between(
                lower_sqrt_price, sqrt_migration_price, point.liquidity, Rounding.UP
            )
            break
        total_amount += amount_base_between(
            lower_sqrt_price, point.sqrt_price, point.liquidity, Rounding.UP
        )
    return total_amount


def migration_base_token(
    migration_quote_amount: int,
    sqrt_migration_price: int,
    migration_option: MigrationOption,
) -> int:
    """
    Base токен, уходящий в пул миграции вместе с migration_quote_amount.

    MET_DAMM:    ceil((quote << 128) / sqrt_price^2)
    MET_DAMM_V2: full-range позиция [MIN_SQRT_PRICE, MAX_SQRT_PRICE] при цене миграции

    Raises:
        ValueError: Для неизвестного варианта миграции
    """
    if migration_option == MigrationOption.MET_DAMM:
        price = sqrt_migration_price * sqrt_migration_price
        quote = shl(migration_quote_amount, RESOLUTION * 2)
        return div_ceil(quote, price)

    if migration_option == MigrationOption.MET_DAMM_V2:
        liquidity = initial_liquidity_from_delta_quote(
            migration_quote_amount, MIN_SQRT_PRICE, sqrt_migration_price
        )
        return amount_base_between(sqrt_migration_price, MAX_SQRT_PRICE, liquidity, Rounding.UP)

    raise ValueError(f"invalid migration option: {migration_option}")


def swap_amount_with_buffer(
    swap_base_amount: int,
    sqrt_start_price: int,
    curve: Curve,
    buffer_percentage: int = SWAP_BUFFER_PERCENTAGE,
) -> int:
    """swap + swap * buffer% / 100, но не больше, чем кривая содержит до MAX_SQRT_PRICE."""
    swap_amount_buffer = swap_base_amount + swap_base_amount * buffer_percentage // 100
    max_base_amount_on_curve = base_token_for_swap(sqrt_start_price, MAX_SQRT_PRICE, curve)
    return min(swap_amount_buffer, max_base_amount_on_curve)


# =============================================================================
# MIGRATION FEE
# =============================================================================


def migration_quote_amount(migration_quote_threshold: int, migration_fee_percentage: int) -> int:
    """
    Quote, уходящий в пул миграции после удержания migration fee.

    Examples:
        >>> migration_quote_amount(1_000, 10)
        900
    """
    return mul_div(
        migration_quote_threshold, sub(100, migration_fee_percentage), 100, Rounding.DOWN
    )


def migration_quote_threshold_from_amount(
    quote_amount: int, migration_fee_percentage: int
) -> int:
    """Обратное к migration_quote_amount: порог, дающий заданный quote после fee."""
    return mul_div(
        quote_amount, 100, sub(100, migration_fee_percentage), Rounding.UP
    )


# =============================================================================
# КРИВАЯ
# =============================================================================


def liquidity_for_range(
    base_amount: int,
    quote_amount: int,
    sqrt_min_price: int,
    sqrt_max_price: int,
) -> int:
    """Liquidity диапазона: минимум из ограничений по base и по quote."""
    liquidity_from_base = initial_liquidity_from_delta_base(
        base_amount, sqrt_max_price, sqrt_min_price
    )
    liquidity_from_quote = initial_liquidity_from_delta_quote(
        quote_amount, sqrt_min_price, sqrt_max_price
    )
    return min(liquidity_from_base, liquidity_from_quote)


def first_curve(
    sqrt_migration_price: int,
    migration_base_amount: int,
    swap_amount: int,
    migration_quote_threshold: int,
    migration_fee_percentage: int = 0,
) -> tuple[int, Curve]:
    """
    Односегментная кривая до цены миграции.

    Стартовая цена выбирается так, чтобы swap_amount base и migration base
    давали одну и ту же цену на границе миграции с учётом migration fee:

        sqrt_start = sqrt_migration * migration_base * 100 / (swap * (100 - fee%))

    Returns:
        (sqrt_start_price, Curve с одной точкой на цене миграции)
    """
    sqrt_start_price = div(
        sqrt_migration_price * migration_base_amount * 100,
        swap_amount * sub(100, migration_fee_percentage),
    )
    liquidity = liquidity_for_range(
        swap_amount, migration_quote_threshold, sqrt_start_price, sqrt_migration_price
    )
    curve = Curve(points=(CurvePoint(sqrt_price=sqrt_migration_price, liquidity=liquidity),))
    return sqrt_start_price, curve


def last_point_liquidity(remaining_amount: int, sqrt_migration_price: int) -> int:
    """Liquidity финального сегмента [цена миграции, MAX_SQRT_PRICE] для остатка base."""
    return initial_liquidity_from_delta_base(remaining_amount, MAX_SQRT_PRICE, sqrt_migration_price)


# =============================================================================
# СВОДНЫЕ ВЕЛИЧИНЫ
# =============================================================================


def supply_breakdown(
    migration_quote_threshold: int,
    sqrt_start_price: int,
    curve: Curve,
    locked_vesting: LockedVestingSchedule,
    migration_option: MigrationOption,
    migration_fee_percentage: int = 0,
    buffer_percentage: int = SWAP_BUFFER_PERCENTAGE,
) -> SupplyBreakdown:
    """
    Полная разбивка supply по кривой и параметрам миграции.

    Raises:
        InsufficientLiquidity: Если кривая не достигает порога миграции
    """
    sqrt_migration_price = price_at_quote_threshold(
        curve, sqrt_start_price, migration_quote_threshold
    )
    swap_base_amount = base_token_for_swap(sqrt_start_price, sqrt_migration_price, curve)
    swap_base_amount_buffer = swap_amount_with_buffer(
        swap_base_amount, sqrt_start_price, curve, buffer_percentage
    )
    migration_base_amount = migration_base_token(
        migration_quote_amount(migration_quote_threshold, migration_fee_percentage),
        sqrt_migration_price,
        migration_option,
    )
    return SupplyBreakdown(
        sqrt_migration_price=sqrt_migration_price,
        swap_base_amount=swap_base_amount,
        swap_base_amount_buffer=swap_base_amount_buffer,
        migration_base_amount=migration_base_amount,
        total_vesting_amount=total_vesting_amount(locked_vesting),
    )


def pool_config_supply_breakdown(
    config: PoolConfig, buffer_percentage: int = SWAP_BUFFER_PERCENTAGE
) -> SupplyBreakdown:
    return supply_breakdown(
        config.migration_quote_threshold,
        config.sqrt_start_price,
        config.curve,
        config.locked_vesting,
        config.migration_option,
        config.migration_fee.fee_percentage,
        buffer_percentage,
    )


def total_supply_from_curve(
    migration_quote_threshold: int,
    sqrt_start_price: int,
    curve: Curve,
    locked_vesting: LockedVestingSchedule,
    migration_option: MigrationOption,
    leftover: int = 0,
    migration_fee_percentage: int = 0,
) -> int:
    """Минимальный supply с буфером свопа, включая leftover."""
    breakdown = supply_breakdown(
        migration_quote_threshold,
        sqrt_start_price,
        curve,
        locked_vesting,
        migration_option,
        migration_fee_percentage,
    )
    return breakdown.minimum_supply_with_buffer + leftover
