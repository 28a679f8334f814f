"""
Curve Strategies — построение кривой по человеческим параметрам

Каждая стратегия превращает supply, цены/market cap и параметры миграции
в CurveDesign: стартовую sqrt цену, кривую, порог миграции и vesting.
Fee, LP-доли и прочая конфигурация собираются уровнем выше (CurveDesigner).

Стратегии:
- build_curve: один сегмент до цены миграции + остаток до MAX_SQRT_PRICE
- build_curve_with_market_cap: то же, но по начальному и целевому market cap
- build_curve_with_two_segments: два сегмента через промежуточную цену
- build_curve_with_liquidity_weights: 16 сегментов с весами liquidity
- design_constant_product_curve: постоянное произведение с буферной точкой
- design_curve: одна точка до MAX_SQRT_PRICE по порогу и доле миграции

Decimal используется только для цен и процентов; все величины, попадающие
в CurveDesign, — целые.
"""

from decimal import Decimal, localcontext
from typing import NamedTuple, Optional, Sequence

from dbc_engine.core.domain.curve import MAX_CURVE_POINT, Curve, CurvePoint
from dbc_engine.core.domain.enums import MigrationOption, Rounding
from dbc_engine.core.domain.vesting import LockedVestingSchedule
from dbc_engine.core.exceptions import InvalidConfiguration
from dbc_engine.core.math.curve_math import (
    MAX_SQRT_PRICE,
    MIN_SQRT_PRICE,
    amount_quote_between,
    initial_liquidity_from_delta_quote,
    liquidity_buffer,
)
from dbc_engine.core.math.decimal_math import (
    DECIMAL_PRECISION,
    DecimalLike,
    decimal_sqrt,
    decimal_to_int,
    price_from_sqrt_price,
    sqrt_price_from_market_cap,
    sqrt_price_from_price,
    to_decimal,
)
from dbc_engine.core.math.safe_math import RESOLUTION, shl
from dbc_engine.core.math.supply import (
    base_token_for_swap,
    first_curve,
    last_point_liquidity,
    migration_base_token,
    migration_quote_amount,
    migration_quote_threshold_from_amount,
    total_supply_from_curve,
)

# Веса для промежуточной цены двухсегментной кривой (после геометрического среднего)
MID_PRICE_WEIGHTS_DEFAULT: tuple[Decimal, ...] = (
    Decimal("0.5"),
    Decimal("0.25"),
    Decimal("0.75"),
)


class CurveDesign(NamedTuple):
    """Результат стратегии: всё, что определяет кривую и supply."""

    sqrt_start_price: int
    curve: Curve
    migration_quote_threshold: int
    total_supply: int
    locked_vesting: LockedVestingSchedule


class TwoSegmentSolution(NamedTuple):
    """Решение системы двух сегментов; is_ok=False — неотрицательного решения нет."""

    is_ok: bool
    liquidity_0: int = 0
    liquidity_1: int = 0


def _to_raw(amount: DecimalLike, decimal: int) -> int:
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return decimal_to_int(to_decimal(amount) * Decimal(10) ** decimal)


# =============================================================================
# LOCKED VESTING
# =============================================================================


def locked_vesting_params(
    total_locked_vesting_amount: DecimalLike,
    number_of_vesting_period: int,
    cliff_unlock_amount: DecimalLike,
    total_vesting_duration: int,
    cliff_duration_from_migration_time: int,
    token_base_decimal: int,
) -> LockedVestingSchedule:
    """
    Vesting по человеческим суммам.

    Порция за период округляется вниз, а остаток от округления добавляется
    к cliff unlock — сумма всегда равна total_locked_vesting_amount.

    Особый случай total == cliff: одна порция в 1 атом, cliff = total - 1.

    Args:
        total_locked_vesting_amount: Весь vesting (человеческие единицы base)
        number_of_vesting_period: Число периодов
        cliff_unlock_amount: Разблокировка в cliff (человеческие единицы)
        total_vesting_duration: Длительность vesting (секунды)
        cliff_duration_from_migration_time: Задержка cliff после миграции
        token_base_decimal: Decimals base токена

    Returns:
        LockedVestingSchedule (по умолчанию — для нулевого vesting)

    Raises:
        InvalidConfiguration: Если параметры противоречивы

    Examples:
        >>> locked_vesting_params(10, 3, 0, 300, 0, 0).cliff_unlock_amount
        1
    """
    total = to_decimal(total_locked_vesting_amount)
    cliff = to_decimal(cliff_unlock_amount)

    if total == 0:
        return LockedVestingSchedule()

    total_raw = _to_raw(total, token_base_decimal)

    if total == cliff:
        return LockedVestingSchedule(
            amount_per_period=1,
            cliff_duration_from_migration_time=cliff_duration_from_migration_time,
            frequency=1,
            number_of_period=1,
            cliff_unlock_amount=total_raw - 1,
        )

    if number_of_vesting_period <= 0:
        raise InvalidConfiguration(
            "locked_vesting_invalid", "number_of_vesting_period must be positive"
        )
    if total_vesting_duration <= 0:
        raise InvalidConfiguration(
            "locked_vesting_invalid", "total_vesting_duration must be positive"
        )
    if cliff > total:
        raise InvalidConfiguration(
            "locked_vesting_invalid", "cliff_unlock_amount exceeds total vesting amount"
        )

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        amount_per_period = (total - cliff) / Decimal(number_of_vesting_period)
        amount_per_period_raw = _to_raw(amount_per_period, token_base_decimal)

    cliff_raw = _to_raw(cliff, token_base_decimal)
    total_periodic = amount_per_period_raw * number_of_vesting_period
    remainder = total_raw - (cliff_raw + total_periodic)

    return LockedVestingSchedule(
        amount_per_period=amount_per_period_raw,
        cliff_duration_from_migration_time=cliff_duration_from_migration_time,
        frequency=total_vesting_duration // number_of_vesting_period,
        number_of_period=number_of_vesting_period,
        cliff_unlock_amount=cliff_raw + remainder,
    )


# =============================================================================
# ОДИН СЕГМЕНТ
# =============================================================================


def _append_remaining(
    curve: Curve,
    total_supply: int,
    total_dynamic_supply: int,
    sqrt_migration_price: int,
) -> Curve:
    """Финальная точка на MAX_SQRT_PRICE для нераспределённого base, если он есть."""
    remaining = total_supply - total_dynamic_supply
    if remaining <= 0:
        return curve
    liquidity = last_point_liquidity(remaining, sqrt_migration_price)
    if liquidity <= 0:
        return curve
    return curve.append(CurvePoint(sqrt_price=MAX_SQRT_PRICE, liquidity=liquidity))


def build_curve(
    total_token_supply: int,
    percentage_supply_on_migration: DecimalLike,
    migration_quote_threshold: DecimalLike,
    migration_option: MigrationOption,
    token_base_decimal: int,
    token_quote_decimal: int,
    locked_vesting: Optional[LockedVestingSchedule] = None,
    leftover: int = 0,
    migration_fee_percentage: int = 0,
) -> CurveDesign:
    """
    Кривая из одного сегмента до цены миграции.

    Цена миграции — quote после migration fee, делённый на base для пула
    миграции. Стартовая цена подбирается так, чтобы swap supply и migration
    supply сходились на цене миграции. Остаток supply (если есть) уходит в
    сегмент [цена миграции, MAX_SQRT_PRICE].

    Args:
        total_token_supply: Полный supply (человеческие единицы base)
        percentage_supply_on_migration: Доля supply для пула миграции (%)
        migration_quote_threshold: Порог миграции (человеческие единицы quote)
        migration_option: Целевой пул миграции
        token_base_decimal: Decimals base токена
        token_quote_decimal: Decimals quote токена
        locked_vesting: Vesting (по умолчанию — нет)
        leftover: Base, остающийся у создателя (человеческие единицы)
        migration_fee_percentage: Migration fee (%)

    Returns:
        CurveDesign

    Raises:
        InvalidConfiguration: Если supply не покрывает миграцию и vesting
    """
    locked_vesting = locked_vesting or LockedVestingSchedule()
    threshold = to_decimal(migration_quote_threshold)

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        migration_base_supply = (
            Decimal(total_token_supply) * to_decimal(percentage_supply_on_migration) / 100
        )
        migration_quote = threshold * (100 - migration_fee_percentage) / 100
        migration_price = migration_quote / migration_base_supply

    sqrt_migration_price = sqrt_price_from_price(
        migration_price, token_base_decimal, token_quote_decimal
    )

    total_supply = _to_raw(total_token_supply, token_base_decimal)
    leftover_raw = _to_raw(leftover, token_base_decimal)
    migration_quote_threshold_raw = _to_raw(threshold, token_quote_decimal)

    migration_base_amount = migration_base_token(
        migration_quote_amount(migration_quote_threshold_raw, migration_fee_percentage),
        sqrt_migration_price,
        migration_option,
    )
    swap_amount = (
        total_supply - migration_base_amount - locked_vesting.total_amount - leftover_raw
    )
    if swap_amount <= 0:
        raise InvalidConfiguration(
            "token_supply_invalid",
            "total supply does not cover migration, vesting and leftover",
        )

    sqrt_start_price, curve = first_curve(
        sqrt_migration_price,
        migration_base_amount,
        swap_amount,
        migration_quote_threshold_raw,
        migration_fee_percentage,
    )

    total_dynamic_supply = total_supply_from_curve(
        migration_quote_threshold_raw,
        sqrt_start_price,
        curve,
        locked_vesting,
        migration_option,
        leftover_raw,
        migration_fee_percentage,
    )
    curve = _append_remaining(curve, total_supply, total_dynamic_supply, sqrt_migration_price)

    return CurveDesign(
        sqrt_start_price=sqrt_start_price,
        curve=curve,
        migration_quote_threshold=migration_quote_threshold_raw,
        total_supply=total_supply,
        locked_vesting=locked_vesting,
    )


# =============================================================================
# MARKET CAP
# =============================================================================


def percentage_supply_on_migration(
    initial_market_cap: DecimalLike,
    migration_market_cap: DecimalLike,
    total_vesting_amount: int,
    leftover: int,
    total_token_supply: int,
    token_base_decimal: int,
) -> Decimal:
    """
    Доля supply для пула миграции (%), при которой кривая проходит от
    initial_market_cap до migration_market_cap.

        sqrt_ratio = sqrt(initial_mc / migration_mc)
        pct = (100 - vesting% - leftover%) * sqrt_ratio / (1 + sqrt_ratio)

    Args:
        initial_market_cap: Market cap на старте (quote)
        migration_market_cap: Market cap на миграции (quote)
        total_vesting_amount: Vesting (атомы base)
        leftover: Leftover (человеческие единицы base)
        total_token_supply: Полный supply (человеческие единицы base)
        token_base_decimal: Decimals base токена
    """
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        sqrt_ratio = decimal_sqrt(
            to_decimal(initial_market_cap) / to_decimal(migration_market_cap)
        )
        total_supply_raw = Decimal(total_token_supply) * Decimal(10) ** token_base_decimal
        vesting_percentage = Decimal(total_vesting_amount) * 100 / total_supply_raw
        leftover_percentage = Decimal(leftover) * 100 / Decimal(total_token_supply)
        return (
            (100 - vesting_percentage - leftover_percentage) * sqrt_ratio / (1 + sqrt_ratio)
        )


def migration_quote_amount_from_market_cap(
    migration_market_cap: DecimalLike, percentage_supply_on_migration: DecimalLike
) -> Decimal:
    """Quote в пуле миграции: migration_mc * pct / 100."""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return (
            to_decimal(migration_market_cap) * to_decimal(percentage_supply_on_migration) / 100
        )


def build_curve_with_market_cap(
    total_token_supply: int,
    initial_market_cap: DecimalLike,
    migration_market_cap: DecimalLike,
    migration_option: MigrationOption,
    token_base_decimal: int,
    token_quote_decimal: int,
    locked_vesting: Optional[LockedVestingSchedule] = None,
    leftover: int = 0,
    migration_fee_percentage: int = 0,
) -> CurveDesign:
    """
    build_curve по начальному и целевому market cap.

    Порог миграции — quote пула миграции, увеличенный на migration fee:
    threshold = migration_mc * pct / 100 * 100 / (100 - fee%).
    """
    locked_vesting = locked_vesting or LockedVestingSchedule()
    percentage = percentage_supply_on_migration(
        initial_market_cap,
        migration_market_cap,
        locked_vesting.total_amount,
        leftover,
        total_token_supply,
        token_base_decimal,
    )
    quote_amount = migration_quote_amount_from_market_cap(migration_market_cap, percentage)
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        threshold = quote_amount * 100 / (100 - Decimal(migration_fee_percentage))

    return build_curve(
        total_token_supply,
        percentage,
        threshold,
        migration_option,
        token_base_decimal,
        token_quote_decimal,
        locked_vesting,
        leftover,
        migration_fee_percentage,
    )


# =============================================================================
# ДВА СЕГМЕНТА
# =============================================================================


def solve_two_segment_curve(
    sqrt_start_price: int,
    sqrt_mid_price: int,
    sqrt_migration_price: int,
    swap_amount: int,
    migration_quote_threshold: int,
) -> TwoSegmentSolution:
    """
    Liquidity двух сегментов [start, mid] и [mid, migration].

    Система двух линейных уравнений:
        swap_amount             = l0 * (1/p0 - 1/p1) + l1 * (1/p1 - 1/p2)
        quote_threshold << 128  = l0 * (p1 - p0)     + l1 * (p2 - p1)

    Returns:
        TwoSegmentSolution; is_ok=False, если цены не строго возрастают или
        какая-либо liquidity отрицательна
    """
    if not sqrt_start_price < sqrt_mid_price < sqrt_migration_price:
        return TwoSegmentSolution(is_ok=False)

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        p0 = Decimal(sqrt_start_price)
        p1 = Decimal(sqrt_mid_price)
        p2 = Decimal(sqrt_migration_price)

        a1 = 1 / p0 - 1 / p1
        b1 = 1 / p1 - 1 / p2
        c1 = Decimal(swap_amount)
        a2 = p1 - p0
        b2 = p2 - p1
        c2 = Decimal(shl(migration_quote_threshold, RESOLUTION * 2))

        determinant = a1 * b2 - a2 * b1
        if determinant == 0:
            return TwoSegmentSolution(is_ok=False)

        liquidity_0 = (c1 * b2 - c2 * b1) / determinant
        liquidity_1 = (a1 * c2 - a2 * c1) / determinant

    if liquidity_0 < 0 or liquidity_1 < 0:
        return TwoSegmentSolution(is_ok=False)

    return TwoSegmentSolution(
        is_ok=True,
        liquidity_0=decimal_to_int(liquidity_0),
        liquidity_1=decimal_to_int(liquidity_1),
    )


def mid_price_candidates(
    sqrt_start_price: int,
    sqrt_migration_price: int,
    weights: Sequence[Decimal] = MID_PRICE_WEIGHTS_DEFAULT,
) -> list[int]:
    """Кандидаты промежуточной цены: геометрическое среднее, затем взвешенные средние."""
    candidates = [decimal_to_int(decimal_sqrt(sqrt_start_price * sqrt_migration_price))]
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        for weight in weights:
            mid = Decimal(sqrt_start_price) * weight + Decimal(sqrt_migration_price) * (1 - weight)
            candidates.append(decimal_to_int(mid))
    return candidates


def build_curve_with_two_segments(
    total_token_supply: int,
    initial_market_cap: DecimalLike,
    migration_market_cap: DecimalLike,
    percentage_supply_on_migration: DecimalLike,
    migration_option: MigrationOption,
    token_base_decimal: int,
    token_quote_decimal: int,
    locked_vesting: Optional[LockedVestingSchedule] = None,
    leftover: int = 0,
    migration_fee_percentage: int = 0,
    mid_price_weights: Sequence[Decimal] = MID_PRICE_WEIGHTS_DEFAULT,
) -> CurveDesign:
    """
    Кривая из двух сегментов: старт по initial_market_cap, миграция по
    migration_market_cap, промежуточная цена — первый кандидат, для которого
    система двух сегментов имеет неотрицательное решение.

    Raises:
        InvalidConfiguration: Если ни один кандидат не дал решения
    """
    locked_vesting = locked_vesting or LockedVestingSchedule()

    quote_amount = migration_quote_amount_from_market_cap(
        migration_market_cap, percentage_supply_on_migration
    )
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        migration_base_supply = (
            Decimal(total_token_supply) * to_decimal(percentage_supply_on_migration) / 100
        )
        migration_price = quote_amount / migration_base_supply

    sqrt_migration_price = sqrt_price_from_price(
        migration_price, token_base_decimal, token_quote_decimal
    )
    sqrt_start_price = sqrt_price_from_market_cap(
        initial_market_cap, total_token_supply, token_base_decimal, token_quote_decimal
    )

    total_supply = _to_raw(total_token_supply, token_base_decimal)
    leftover_raw = _to_raw(leftover, token_base_decimal)
    quote_amount_raw = _to_raw(quote_amount, token_quote_decimal)
    migration_quote_threshold_raw = migration_quote_threshold_from_amount(
        quote_amount_raw, migration_fee_percentage
    )

    migration_base_amount = migration_base_token(
        quote_amount_raw, sqrt_migration_price, migration_option
    )
    swap_amount = (
        total_supply - migration_base_amount - locked_vesting.total_amount - leftover_raw
    )
    if swap_amount <= 0:
        raise InvalidConfiguration(
            "token_supply_invalid",
            "total supply does not cover migration, vesting and leftover",
        )

    for sqrt_mid_price in mid_price_candidates(
        sqrt_start_price, sqrt_migration_price, mid_price_weights
    ):
        solution = solve_two_segment_curve(
            sqrt_start_price,
            sqrt_mid_price,
            sqrt_migration_price,
            swap_amount,
            migration_quote_threshold_raw,
        )
        if solution.is_ok:
            break
    else:
        raise InvalidConfiguration(
            "curve_invalid", "no mid price yields non-negative liquidity for both segments"
        )

    curve = Curve.from_pairs(
        [
            (sqrt_mid_price, solution.liquidity_0),
            (sqrt_migration_price, solution.liquidity_1),
        ]
    )

    total_dynamic_supply = total_supply_from_curve(
        migration_quote_threshold_raw,
        sqrt_start_price,
        curve,
        locked_vesting,
        migration_option,
        leftover_raw,
        migration_fee_percentage,
    )
    curve = _append_remaining(curve, total_supply, total_dynamic_supply, sqrt_migration_price)

    return CurveDesign(
        sqrt_start_price=sqrt_start_price,
        curve=curve,
        migration_quote_threshold=migration_quote_threshold_raw,
        total_supply=total_supply,
        locked_vesting=locked_vesting,
    )


# =============================================================================
# ВЕСА LIQUIDITY
# =============================================================================


def build_curve_with_liquidity_weights(
    total_token_supply: int,
    initial_market_cap: DecimalLike,
    migration_market_cap: DecimalLike,
    liquidity_weights: Sequence[DecimalLike],
    migration_option: MigrationOption,
    token_base_decimal: int,
    token_quote_decimal: int,
    locked_vesting: Optional[LockedVestingSchedule] = None,
    leftover: int = 0,
    migration_fee_percentage: int = 0,
) -> CurveDesign:
    """
    Кривая из MAX_CURVE_POINT сегментов с относительными весами liquidity.

    Цены сегментов делят [p_min, p_max] геометрически:
        p_i = p_min * (p_max / p_min)^(i / 16)

    Базовая liquidity l1 решается из баланса supply:
        swap + migration base = total - vesting - leftover
    где swap = l1 * sum_i(w_i * (1/p_i - 1/p_{i+1})), а migration base
    выражается через quote = l1 * sum_i(w_i * (p_{i+1} - p_i)) / 2^128.

    Raises:
        InvalidConfiguration: Если весов не MAX_CURVE_POINT или supply не
            сходится в пределах leftover
    """
    if len(liquidity_weights) != MAX_CURVE_POINT:
        raise InvalidConfiguration(
            "curve_invalid", f"expected {MAX_CURVE_POINT} liquidity weights"
        )
    locked_vesting = locked_vesting or LockedVestingSchedule()

    sqrt_start_price = sqrt_price_from_market_cap(
        initial_market_cap, total_token_supply, token_base_decimal, token_quote_decimal
    )
    sqrt_migration_price = sqrt_price_from_market_cap(
        migration_market_cap, total_token_supply, token_base_decimal, token_quote_decimal
    )
    if sqrt_start_price >= sqrt_migration_price:
        raise InvalidConfiguration(
            "curve_invalid", "migration market cap must exceed initial market cap"
        )

    total_supply = _to_raw(total_token_supply, token_base_decimal)
    leftover_raw = _to_raw(leftover, token_base_decimal)
    total_swap_and_migration = total_supply - locked_vesting.total_amount - leftover_raw

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        p_min = Decimal(sqrt_start_price)
        p_max = Decimal(sqrt_migration_price)
        weights = [to_decimal(weight) for weight in liquidity_weights]

        step = (p_max / p_min) ** (Decimal(1) / Decimal(MAX_CURVE_POINT))
        sqrt_prices = [p_min]
        for _ in range(MAX_CURVE_POINT):
            sqrt_prices.append(sqrt_prices[-1] * step)
        sqrt_prices[-1] = p_max

        # sum_i w_i * (1/p_i - 1/p_{i+1}) и sum_i w_i * (p_{i+1} - p_i)
        sum_base = Decimal(0)
        sum_quote = Decimal(0)
        for i, weight in enumerate(weights):
            lower, upper = sqrt_prices[i], sqrt_prices[i + 1]
            sum_base += weight * (1 / lower - 1 / upper)
            sum_quote += weight * (upper - lower)

        fee_factor = Decimal(100 - migration_fee_percentage) / 100
        if migration_option == MigrationOption.MET_DAMM:
            # migration base = quote * 2^128 / p_max^2
            migration_per_l1 = sum_quote * fee_factor / (p_max * p_max)
        else:
            # full-range позиция [MIN, MAX] при цене p_max
            migration_per_l1 = (
                sum_quote
                * fee_factor
                * (Decimal(MAX_SQRT_PRICE) - p_max)
                / ((p_max - Decimal(MIN_SQRT_PRICE)) * p_max * Decimal(MAX_SQRT_PRICE))
            )
        l1 = Decimal(total_swap_and_migration) / (sum_base + migration_per_l1)

        pairs = [
            (decimal_to_int(sqrt_prices[i + 1]), decimal_to_int(l1 * weight))
            for i, weight in enumerate(weights)
        ]
    pairs[-1] = (sqrt_migration_price, pairs[-1][1])
    curve = Curve.from_pairs(pairs)

    # порог: весь quote, собираемый кривой до p_max
    migration_quote_threshold_raw = 0
    lower_price = sqrt_start_price
    for point in curve:
        migration_quote_threshold_raw += amount_quote_between(
            lower_price, point.sqrt_price, point.liquidity, Rounding.UP
        )
        lower_price = point.sqrt_price

    total_dynamic_supply = total_supply_from_curve(
        migration_quote_threshold_raw,
        sqrt_start_price,
        curve,
        locked_vesting,
        migration_option,
        leftover_raw,
        migration_fee_percentage,
    )
    if total_dynamic_supply > total_supply:
        delta = total_dynamic_supply - total_supply
        if delta > leftover_raw:
            raise InvalidConfiguration(
                "token_supply_invalid",
                f"curve needs {delta} more base than supply, beyond leftover {leftover_raw}",
            )

    return CurveDesign(
        sqrt_start_price=sqrt_start_price,
        curve=curve,
        migration_quote_threshold=migration_quote_threshold_raw,
        total_supply=total_supply,
        locked_vesting=locked_vesting,
    )


# =============================================================================
# CONSTANT PRODUCT
# =============================================================================


def _constant_product_curve(
    sqrt_start_price: int, sqrt_migration_price: int, migration_quote_threshold: int
) -> Curve:
    """Сегмент до цены миграции плюс буферная точка на MAX_SQRT_PRICE."""
    liquidity = initial_liquidity_from_delta_quote(
        migration_quote_threshold, sqrt_start_price, sqrt_migration_price
    )
    return Curve.from_pairs(
        [
            (sqrt_migration_price, liquidity),
            (MAX_SQRT_PRICE, liquidity_buffer(liquidity, sqrt_migration_price, MAX_SQRT_PRICE)),
        ]
    )


def _quote_threshold_at_price(
    migration_price: Decimal,
    migration_supply: int,
    token_base_decimal: int,
    token_quote_decimal: int,
) -> int:
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return decimal_to_int(
            migration_price
            * Decimal(migration_supply)
            * Decimal(10) ** token_quote_decimal
            / Decimal(10) ** token_base_decimal
        )


def design_constant_product_curve_with_lock_vesting(
    total_token_supply: int,
    percentage_supply_on_migration: DecimalLike,
    percentage_supply_vesting: DecimalLike,
    frequency: int,
    number_of_period: int,
    start_price: DecimalLike,
    migration_price: DecimalLike,
    migration_option: MigrationOption,
    token_base_decimal: int,
    token_quote_decimal: int,
) -> CurveDesign:
    """
    Constant product от start_price до migration_price с vesting.

    Vesting делится на number_of_period равных порций; всё, что не ушло в
    свопы, пул миграции и порции, становится cliff unlock.

    Raises:
        InvalidConfiguration: Если supply не покрывает свопы, миграцию и vesting
    """
    total_supply = _to_raw(total_token_supply, token_base_decimal)
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        migration_supply = decimal_to_int(
            Decimal(total_supply) * to_decimal(percentage_supply_on_migration) / 100
        )
        locked_vesting_amount = decimal_to_int(
            Decimal(total_supply) * to_decimal(percentage_supply_vesting) / 100
        )

    amount_per_period = locked_vesting_amount // number_of_period if number_of_period else 0
    locked_vesting_amount = amount_per_period * number_of_period

    sqrt_start_price = sqrt_price_from_price(start_price, token_base_decimal, token_quote_decimal)
    sqrt_migration_price = sqrt_price_from_price(
        migration_price, token_base_decimal, token_quote_decimal
    )
    migration_quote_threshold = _quote_threshold_at_price(
        to_decimal(migration_price), migration_supply, token_base_decimal, token_quote_decimal
    )
    curve = _constant_product_curve(
        sqrt_start_price, sqrt_migration_price, migration_quote_threshold
    )

    max_swap_amount = base_token_for_swap(sqrt_start_price, MAX_SQRT_PRICE, curve)
    migration_amount = migration_base_token(
        migration_quote_threshold, sqrt_migration_price, migration_option
    )

    cliff_unlock_amount = 0
    if to_decimal(percentage_supply_vesting) > 0:
        cliff_unlock_amount = (
            total_supply - max_swap_amount - locked_vesting_amount - migration_amount
        )
        if cliff_unlock_amount < 0:
            raise InvalidConfiguration(
                "token_supply_invalid",
                "total supply does not cover swap, migration and vesting",
            )

    locked_vesting = LockedVestingSchedule(
        amount_per_period=amount_per_period,
        frequency=frequency,
        number_of_period=number_of_period,
        cliff_unlock_amount=cliff_unlock_amount,
    )
    return CurveDesign(
        sqrt_start_price=sqrt_start_price,
        curve=curve,
        migration_quote_threshold=migration_quote_threshold,
        total_supply=total_supply,
        locked_vesting=locked_vesting,
    )


def design_constant_product_curve_without_lock_vesting(
    total_token_supply: int,
    percentage_supply_on_migration: DecimalLike,
    start_price: DecimalLike,
    token_base_decimal: int,
    token_quote_decimal: int,
) -> CurveDesign:
    """
    Constant product без vesting: цена миграции выводится из соотношения
    swap supply к migration supply.

        sqrt_migration = sqrt_start * swap_supply / migration_supply - 1
    """
    total_supply = _to_raw(total_token_supply, token_base_decimal)
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        migration_supply = decimal_to_int(
            Decimal(total_supply) * to_decimal(percentage_supply_on_migration) / 100
        )
    swap_supply = total_supply - migration_supply
    if migration_supply <= 0 or swap_supply <= 0:
        raise InvalidConfiguration(
            "token_supply_invalid", "percentage_supply_on_migration must be in (0, 100)"
        )

    sqrt_start_price = sqrt_price_from_price(start_price, token_base_decimal, token_quote_decimal)
    sqrt_migration_price = sqrt_start_price * swap_supply // migration_supply - 1
    migration_price = price_from_sqrt_price(
        sqrt_migration_price, token_base_decimal, token_quote_decimal
    )
    migration_quote_threshold = _quote_threshold_at_price(
        migration_price, migration_supply, token_base_decimal, token_quote_decimal
    )
    curve = _constant_product_curve(
        sqrt_start_price, sqrt_migration_price, migration_quote_threshold
    )
    return CurveDesign(
        sqrt_start_price=sqrt_start_price,
        curve=curve,
        migration_quote_threshold=migration_quote_threshold,
        total_supply=total_supply,
        locked_vesting=LockedVestingSchedule(),
    )


# =============================================================================
# ОДНА ТОЧКА
# =============================================================================


def design_curve(
    token_decimal: int,
    migration_quote_threshold: int,
    token_base_supply: int,
    migration_base_percent: DecimalLike,
) -> CurveDesign:
    """
    Одна точка на MAX_SQRT_PRICE по порогу миграции (атомы quote) и доле
    supply для миграции (дробь, 0.2 = 20%).

        p_max     = ceil(sqrt(threshold / migration_base) * 2^64)
        p_min     = (2^128 // 10^7) // p_max
        liquidity = (threshold << 128) // (p_max - p_min)

    Returns:
        CurveDesign; total_supply не задан (0) — supply не контролируется
    """
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        migration_base_supply = (
            Decimal(token_base_supply)
            * to_decimal(migration_base_percent)
            * Decimal(10) ** token_decimal
        )
        price = Decimal(migration_quote_threshold) / migration_base_supply
        sqrt_max_price = decimal_to_int(
            decimal_sqrt(price) * Decimal(2) ** RESOLUTION, Rounding.UP
        )

    sqrt_min_price = (1 << (RESOLUTION * 2)) // 10_000_000 // sqrt_max_price
    liquidity = initial_liquidity_from_delta_quote(
        migration_quote_threshold, sqrt_min_price, sqrt_max_price
    )
    return CurveDesign(
        sqrt_start_price=sqrt_min_price,
        curve=Curve.from_pairs([(MAX_SQRT_PRICE, liquidity)]),
        migration_quote_threshold=migration_quote_threshold,
        total_supply=0,
        locked_vesting=LockedVestingSchedule(),
    )
