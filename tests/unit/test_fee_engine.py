"""Тесты для fee-движка: расписание, rate limiter, dynamic fee, инверсия

Покрытие:
- Fee scheduler (linear / exponential, sentinel до активации)
- Rate limiter (граница reference_amount, окно, направление)
- Variable fee и cap на MAX_FEE_NUMERATOR
- Разбивка trading/protocol/referral
- Инверсия fee (closed form и поиск)
"""

import pytest

from dbc_engine.core.domain.enums import ActivationType, TradeDirection
from dbc_engine.core.domain.fees import (
    BaseFeeSchedule,
    DynamicFeeConfig,
    PoolFees,
    VolatilityTracker,
)
from dbc_engine.core.domain.quote import FeeOnAmount
from dbc_engine.core.exceptions import DivisionByZero
from dbc_engine.core.math.fee_math import (
    current_base_fee_numerator,
    excluded_fee_amount,
    fee_on_amount,
    included_fee_amount,
    included_fee_amount_by_search,
    split_trading_fee,
    total_fee_numerator,
    variable_fee,
)
from dbc_engine.core.math.fee_scheduler import (
    MAX_FEE_NUMERATOR,
    current_period,
    fee_in_period,
    linear_fee_numerator,
    min_scheduler_fee_numerator,
    scheduler_fee_numerator,
)
from dbc_engine.core.math.rate_limiter import (
    MAX_RATE_LIMITER_DURATION_IN_SECONDS,
    MAX_RATE_LIMITER_DURATION_IN_SLOTS,
    fee_numerator_on_rate_limiter,
    is_rate_limiter_applied,
    max_index,
    max_rate_limiter_duration,
    rate_limiter_fee_numerator,
)

ACTIVATION = 1_000


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def linear_schedule() -> BaseFeeSchedule:
    """10% -> 5% за 10 периодов по 60."""
    return BaseFeeSchedule.fee_scheduler(
        cliff_fee_numerator=100_000_000,
        number_of_period=10,
        period_frequency=60,
        reduction_factor=5_000_000,
    )


@pytest.fixture
def rate_limiter() -> BaseFeeSchedule:
    """1% cliff, +10 bps за каждые 1000 единиц сверх первых 1000."""
    return BaseFeeSchedule.rate_limiter(
        cliff_fee_numerator=10_000_000,
        fee_increment_bps=10,
        max_limiter_duration=500,
        reference_amount=1_000,
    )


def make_dynamic_fee(variable_fee_control: int = 1_000_000) -> DynamicFeeConfig:
    """Helper: dynamic fee с bin_step 1."""
    return DynamicFeeConfig(
        bin_step=1,
        bin_step_u128=1_844_674_407_370_955,
        filter_period=10,
        decay_period=120,
        reduction_factor=5_000,
        max_volatility_accumulator=100_000,
        variable_fee_control=variable_fee_control,
    )


# =============================================================================
# FEE SCHEDULER
# =============================================================================


class TestFeeScheduler:
    """Тесты для fee scheduler"""

    def test_current_period(self, linear_schedule: BaseFeeSchedule) -> None:
        """Период = elapsed // frequency с cap на number_of_period"""
        assert current_period(linear_schedule, ACTIVATION, ACTIVATION) == 0
        assert current_period(linear_schedule, ACTIVATION + 125, ACTIVATION) == 2
        assert current_period(linear_schedule, ACTIVATION + 10_000, ACTIVATION) == 10

    def test_pre_activation_sentinel(self, linear_schedule: BaseFeeSchedule) -> None:
        """До активации период = number_of_period, fee минимальный"""
        assert current_period(linear_schedule, ACTIVATION - 1, ACTIVATION) == 10
        assert scheduler_fee_numerator(linear_schedule, 0, ACTIVATION) == 50_000_000

    def test_linear_decay(self, linear_schedule: BaseFeeSchedule) -> None:
        """Линейное снижение на reduction_factor за период"""
        assert scheduler_fee_numerator(linear_schedule, ACTIVATION, ACTIVATION) == 100_000_000
        assert scheduler_fee_numerator(linear_schedule, ACTIVATION + 125, ACTIVATION) == 90_000_000
        assert min_scheduler_fee_numerator(linear_schedule) == 50_000_000

    def test_linear_saturates_at_zero(self) -> None:
        """Линейное снижение не уходит ниже нуля"""
        assert linear_fee_numerator(100, 30, 3) == 10
        assert linear_fee_numerator(100, 30, 5) == 0

    def test_exponential_fast_paths(self) -> None:
        """Периоды 0 и 1 считаются без pow_q64"""
        assert fee_in_period(1000, 100, 0) == 1000
        assert fee_in_period(1000, 100, 1) == 990

    def test_exponential_decay(self) -> None:
        """cliff * (1 - rf/10000)^period"""
        assert fee_in_period(1000, 100, 2) == 980
        schedule = BaseFeeSchedule.fee_scheduler(
            cliff_fee_numerator=500_000_000,
            number_of_period=100,
            period_frequency=1,
            reduction_factor=383,
            exponential=True,
        )
        values = [scheduler_fee_numerator(schedule, ACTIVATION + p, ACTIVATION) for p in range(5)]
        assert values == sorted(values, reverse=True)
        assert values[0] == 500_000_000

    def test_zero_frequency_is_flat(self) -> None:
        """period_frequency == 0 — всегда cliff"""
        schedule = BaseFeeSchedule.fee_scheduler(cliff_fee_numerator=2_500_000)
        assert scheduler_fee_numerator(schedule, ACTIVATION + 10**6, ACTIVATION) == 2_500_000
        assert min_scheduler_fee_numerator(schedule) == 2_500_000

    def test_rate_limiter_schedule_rejected(self, rate_limiter: BaseFeeSchedule) -> None:
        """Расписание rate limiter не интерпретируется как scheduler"""
        with pytest.raises(ValueError, match="invalid fee scheduler mode"):
            scheduler_fee_numerator(rate_limiter, ACTIVATION, ACTIVATION)


# =============================================================================
# RATE LIMITER
# =============================================================================


class TestRateLimiter:
    """Тесты для rate limiter"""

    def test_input_at_reference_is_cliff(self) -> None:
        """Вход <= reference_amount платит cliff"""
        assert fee_numerator_on_rate_limiter(10_000_000, 1_000, 10, 1_000) == 10_000_000
        assert fee_numerator_on_rate_limiter(10_000_000, 1_000, 10, 1) == 10_000_000

    def test_one_block_above_reference(self) -> None:
        """Второй блок платит cliff + increment: среднее 1.05%"""
        assert fee_numerator_on_rate_limiter(10_000_000, 1_000, 10, 2_000) == 10_500_000

    def test_fee_grows_with_size(self) -> None:
        """Эффективная ставка не убывает по размеру сделки"""
        sizes = [1_000, 1_500, 2_000, 5_000, 50_000, 500_000]
        values = [fee_numerator_on_rate_limiter(10_000_000, 1_000, 10, s) for s in sizes]
        assert values == sorted(values)

    def test_capped_at_max(self) -> None:
        """Очень большая сделка не превышает MAX_FEE_NUMERATOR"""
        value = fee_numerator_on_rate_limiter(10_000_000, 1_000, 10, 10**9)
        assert 10_000_000 < value <= MAX_FEE_NUMERATOR

    def test_max_index(self) -> None:
        """(MAX - cliff) / increment"""
        assert max_index(10_000_000, 10) == 490

    def test_zero_increment(self) -> None:
        """Нулевой шаг ставки — DivisionByZero"""
        with pytest.raises(DivisionByZero):
            max_index(10_000_000, 0)

    def test_applied_window(self, rate_limiter: BaseFeeSchedule) -> None:
        """Активен только в окне [activation, activation + duration]"""
        buy = TradeDirection.QUOTE_TO_BASE
        assert is_rate_limiter_applied(rate_limiter, ACTIVATION, ACTIVATION, buy)
        assert is_rate_limiter_applied(rate_limiter, ACTIVATION + 500, ACTIVATION, buy)
        assert not is_rate_limiter_applied(rate_limiter, ACTIVATION + 501, ACTIVATION, buy)
        assert not is_rate_limiter_applied(rate_limiter, ACTIVATION - 1, ACTIVATION, buy)

    def test_not_applied_to_sells(self, rate_limiter: BaseFeeSchedule) -> None:
        """Продажа base всегда платит cliff"""
        sell = TradeDirection.BASE_TO_QUOTE
        assert not is_rate_limiter_applied(rate_limiter, ACTIVATION, ACTIVATION, sell)
        numerator = rate_limiter_fee_numerator(rate_limiter, ACTIVATION, ACTIVATION, sell, 10**6)
        assert numerator == 10_000_000

    def test_zero_rate_limiter_not_applied(self) -> None:
        """Нулевые параметры — rate limiter выключен"""
        schedule = BaseFeeSchedule.rate_limiter(10_000_000, 0, 0, 0)
        assert not is_rate_limiter_applied(
            schedule, ACTIVATION, ACTIVATION, TradeDirection.QUOTE_TO_BASE
        )

    def test_max_duration(self) -> None:
        """Максимальное окно зависит от activation type"""
        assert max_rate_limiter_duration(ActivationType.SLOT) == MAX_RATE_LIMITER_DURATION_IN_SLOTS
        assert (
            max_rate_limiter_duration(ActivationType.TIMESTAMP)
            == MAX_RATE_LIMITER_DURATION_IN_SECONDS
        )


# =============================================================================
# BASE + DYNAMIC FEE
# =============================================================================


class TestTotalFeeNumerator:
    """Тесты для current_base_fee_numerator / variable_fee / total_fee_numerator"""

    def test_rate_limiter_without_trade_context(self, rate_limiter: BaseFeeSchedule) -> None:
        """Без направления и размера сделки rate limiter отдаёт cliff"""
        assert current_base_fee_numerator(rate_limiter, ACTIVATION, ACTIVATION) == 10_000_000

    def test_rate_limiter_with_trade_context(self, rate_limiter: BaseFeeSchedule) -> None:
        """С контекстом сделки учитывается размер входа"""
        numerator = current_base_fee_numerator(
            rate_limiter, ACTIVATION, ACTIVATION, TradeDirection.QUOTE_TO_BASE, 2_000
        )
        assert numerator == 10_500_000

    def test_variable_fee_disabled(self) -> None:
        """Нет dynamic fee или нулевой аккумулятор — ноль"""
        tracker = VolatilityTracker(volatility_accumulator=10_000)
        assert variable_fee(None, tracker) == 0
        assert variable_fee(make_dynamic_fee(), VolatilityTracker()) == 0
        disabled = make_dynamic_fee().model_copy(update={"initialized": False})
        assert variable_fee(disabled, tracker) == 0

    def test_variable_fee_rounds_up(self) -> None:
        """ceil((va * bin_step)^2 * vfc / 1e11)"""
        dynamic = make_dynamic_fee()
        assert variable_fee(dynamic, VolatilityTracker(volatility_accumulator=10_000)) == 1_000
        assert variable_fee(dynamic, VolatilityTracker(volatility_accumulator=10_001)) == 1_001

    def test_total_capped(self) -> None:
        """base + dynamic ограничен MAX_FEE_NUMERATOR"""
        fees = PoolFees(
            base_fee=BaseFeeSchedule(cliff_fee_numerator=490_000_000),
            dynamic_fee=make_dynamic_fee(variable_fee_control=10**10),
        )
        tracker = VolatilityTracker(volatility_accumulator=100_000)
        assert total_fee_numerator(fees, tracker, ACTIVATION, ACTIVATION) == MAX_FEE_NUMERATOR

    def test_total_without_dynamic(self, linear_schedule: BaseFeeSchedule) -> None:
        """Без dynamic fee total == base"""
        fees = PoolFees(base_fee=linear_schedule)
        numerator = total_fee_numerator(fees, VolatilityTracker(), ACTIVATION, ACTIVATION)
        assert numerator == 100_000_000


# =============================================================================
# FEE ON AMOUNT
# =============================================================================


class TestFeeOnAmount:
    """Тесты для fee_on_amount и split_trading_fee"""

    def test_without_referral(self) -> None:
        """20% trading fee уходит протоколу"""
        fees = PoolFees(base_fee=BaseFeeSchedule(cliff_fee_numerator=10_000_000))
        assert fee_on_amount(1_000_000, 10_000_000, fees, False) == FeeOnAmount(
            990_000, 8_000, 2_000, 0
        )

    def test_with_referral(self) -> None:
        """Referral берётся из protocol fee"""
        fees = PoolFees(base_fee=BaseFeeSchedule(cliff_fee_numerator=10_000_000))
        assert fee_on_amount(1_000_000, 10_000_000, fees, True) == FeeOnAmount(
            990_000, 8_000, 1_600, 400
        )

    def test_fee_rounds_up(self) -> None:
        """Trading fee округляется вверх, пользователь получает не больше"""
        fees = PoolFees(base_fee=BaseFeeSchedule(cliff_fee_numerator=10_000_000))
        result = fee_on_amount(150, 10_000_000, fees, False)
        assert result.amount == 148
        assert result.trading_fee + result.protocol_fee + result.referral_fee == 2

    def test_split_sums_to_total(self) -> None:
        """Разбивка сохраняет сумму"""
        fees = PoolFees(
            base_fee=BaseFeeSchedule(cliff_fee_numerator=10_000_000),
            protocol_fee_percent=33,
            referral_fee_percent=17,
        )
        trading, protocol, referral = split_trading_fee(12_345, fees, True)
        assert trading + protocol + referral == 12_345


# =============================================================================
# ИНВЕРСИЯ FEE
# =============================================================================


class TestFeeInversion:
    """Тесты для included_fee_amount / included_fee_amount_by_search"""

    def test_closed_form(self) -> None:
        """ceil(excluded * DEN / (DEN - n))"""
        assert included_fee_amount(990_000, 10_000_000) == 1_000_000
        assert excluded_fee_amount(1_000_000, 10_000_000) == 990_000

    def test_closed_form_is_minimal(self) -> None:
        """Восстановленная сумма покрывает excluded, на единицу меньше — нет"""
        for excluded in (1, 7, 999, 123_456, 10**12 + 3):
            for numerator in (100_000, 2_500_000, 123_456_789, MAX_FEE_NUMERATOR):
                included = included_fee_amount(excluded, numerator)
                assert excluded_fee_amount(included, numerator) >= excluded
                assert excluded_fee_amount(included - 1, numerator) < excluded

    def test_search_matches_closed_form(self) -> None:
        """Поиск с постоянным numerator совпадает с closed form"""
        for excluded in (1, 50, 10**6 + 1, 10**15):
            expected = included_fee_amount(excluded, 25_000_000)
            assert included_fee_amount_by_search(excluded, lambda _: 25_000_000) == expected

    def test_search_with_rate_limiter(self) -> None:
        """Numerator, зависящий от суммы: результат минимален"""

        def numerator_for(amount: int) -> int:
            return fee_numerator_on_rate_limiter(10_000_000, 1_000, 10, amount)

        excluded = 50_000
        included = included_fee_amount_by_search(excluded, numerator_for)
        assert excluded_fee_amount(included, numerator_for(included)) >= excluded
        assert excluded_fee_amount(included - 1, numerator_for(included - 1)) < excluded

    def test_search_zero(self) -> None:
        """Нулевая сумма — ноль"""
        assert included_fee_amount_by_search(0, lambda _: MAX_FEE_NUMERATOR) == 0
