"""Тесты для Fee Params — расписания fee по человеческим параметрам

Покрытие:
- bps <-> numerator
- derive_base_fee_params (linear, exponential, flat, отказы)
- derive_rate_limiter_params
- derive_dynamic_fee_params (калибровка 20% base fee)
"""

import pytest

from dbc_engine.core.domain.enums import ActivationType, BaseFeeMode
from dbc_engine.core.domain.fees import VolatilityTracker
from dbc_engine.core.exceptions import InvalidConfiguration
from dbc_engine.core.math.fee_math import variable_fee
from dbc_engine.core.math.fee_params import (
    bps_to_fee_numerator,
    derive_base_fee_params,
    derive_dynamic_fee_params,
    derive_rate_limiter_params,
    fee_numerator_to_bps,
    min_base_fee_bps,
)
from dbc_engine.core.math.fee_scheduler import min_scheduler_fee_numerator
from dbc_engine.core.math.rate_limiter import MAX_RATE_LIMITER_DURATION_IN_SLOTS


# =============================================================================
# BPS
# =============================================================================


class TestBpsConversion:
    """Тесты для bps <-> fee numerator"""

    def test_round_values(self) -> None:
        """100 bps == 1% == 10_000_000 / 1e9"""
        assert bps_to_fee_numerator(100) == 10_000_000
        assert fee_numerator_to_bps(10_000_000) == 100
        assert bps_to_fee_numerator(5_000) == 500_000_000

    def test_numerator_to_bps_floors(self) -> None:
        """Обратное преобразование округляет вниз"""
        assert fee_numerator_to_bps(100_000_112) == 1_000


# =============================================================================
# BASE FEE
# =============================================================================


class TestDeriveBaseFeeParams:
    """Тесты для derive_base_fee_params"""

    def test_linear(self) -> None:
        """reduction_factor = (max - min) // number_of_period"""
        schedule = derive_base_fee_params(5_000, 1_000, BaseFeeMode.FEE_SCHEDULER_LINEAR, 144, 1_440)
        assert schedule.cliff_fee_numerator == 500_000_000
        assert schedule.reduction_factor == 2_777_777
        assert schedule.number_of_period == 144
        assert schedule.period_frequency == 10
        assert schedule.base_fee_mode == BaseFeeMode.FEE_SCHEDULER_LINEAR

    def test_exponential(self) -> None:
        """reduction_factor = floor(10_000 * (1 - (min/max)^(1/n)))"""
        schedule = derive_base_fee_params(
            5_000, 100, BaseFeeMode.FEE_SCHEDULER_EXPONENTIAL, 100, 6_000
        )
        assert schedule.reduction_factor == 383
        assert schedule.period_frequency == 60
        assert schedule.base_fee_mode == BaseFeeMode.FEE_SCHEDULER_EXPONENTIAL

    def test_exponential_ends_near_target(self) -> None:
        """Последний период экспоненциального расписания близок к ending fee"""
        schedule = derive_base_fee_params(
            5_000, 100, BaseFeeMode.FEE_SCHEDULER_EXPONENTIAL, 100, 6_000
        )
        ending = min_scheduler_fee_numerator(schedule)
        assert bps_to_fee_numerator(100) <= ending < bps_to_fee_numerator(110)

    def test_flat(self) -> None:
        """Одинаковые fee — расписание без периодов"""
        schedule = derive_base_fee_params(100, 100, BaseFeeMode.FEE_SCHEDULER_LINEAR, 0, 0)
        assert schedule.cliff_fee_numerator == 10_000_000
        assert schedule.period_frequency == 0

    def test_flat_with_periods_rejected(self) -> None:
        """Плоский fee с периодами противоречив"""
        with pytest.raises(InvalidConfiguration) as exc_info:
            derive_base_fee_params(100, 100, BaseFeeMode.FEE_SCHEDULER_LINEAR, 10, 100)
        assert exc_info.value.reason == "base_fee_invalid"

    def test_ending_above_starting_rejected(self) -> None:
        """Fee не растёт со временем"""
        with pytest.raises(InvalidConfiguration, match="ending fee"):
            derive_base_fee_params(100, 200, BaseFeeMode.FEE_SCHEDULER_LINEAR, 10, 100)

    def test_starting_above_max_rejected(self) -> None:
        """Начальный fee выше 50%"""
        with pytest.raises(InvalidConfiguration):
            derive_base_fee_params(5_001, 100, BaseFeeMode.FEE_SCHEDULER_LINEAR, 10, 100)

    def test_rate_limiter_mode_rejected(self) -> None:
        """Rate limiter строится отдельной функцией"""
        with pytest.raises(InvalidConfiguration):
            derive_base_fee_params(100, 50, BaseFeeMode.RATE_LIMITER, 10, 100)

    def test_min_base_fee_bps(self) -> None:
        """Минимальный fee расписания в bps"""
        schedule = derive_base_fee_params(5_000, 1_000, BaseFeeMode.FEE_SCHEDULER_LINEAR, 144, 1_440)
        assert min_base_fee_bps(schedule) == 1_000


# =============================================================================
# RATE LIMITER
# =============================================================================


class TestDeriveRateLimiterParams:
    """Тесты для derive_rate_limiter_params"""

    def test_reference_amount_scaled(self) -> None:
        """reference_amount переводится в атомы quote"""
        schedule = derive_rate_limiter_params(100, 10, "1.5", 1_000, 9, ActivationType.SLOT)
        assert schedule.is_rate_limiter
        assert schedule.cliff_fee_numerator == 10_000_000
        assert schedule.reference_amount == 1_500_000_000
        assert schedule.fee_increment_bps == 10
        assert schedule.max_limiter_duration == 1_000
        assert min_base_fee_bps(schedule) == 100

    def test_duration_above_max_rejected(self) -> None:
        """Окно больше максимума для activation type"""
        with pytest.raises(InvalidConfiguration) as exc_info:
            derive_rate_limiter_params(
                100, 10, 1, MAX_RATE_LIMITER_DURATION_IN_SLOTS + 1, 9, ActivationType.SLOT
            )
        assert exc_info.value.reason == "rate_limiter_invalid"

    def test_non_positive_rejected(self) -> None:
        """Все параметры должны быть положительными"""
        with pytest.raises(InvalidConfiguration):
            derive_rate_limiter_params(100, 0, 1, 1_000, 9, ActivationType.SLOT)
        with pytest.raises(InvalidConfiguration):
            derive_rate_limiter_params(100, 10, 0, 1_000, 9, ActivationType.SLOT)

    def test_base_fee_above_max_rejected(self) -> None:
        """Cliff выше MAX_FEE_NUMERATOR"""
        with pytest.raises(InvalidConfiguration):
            derive_rate_limiter_params(5_001, 10, 1, 1_000, 9, ActivationType.TIMESTAMP)


# =============================================================================
# DYNAMIC FEE
# =============================================================================


class TestDeriveDynamicFeeParams:
    """Тесты для derive_dynamic_fee_params"""

    def test_default_calibration(self) -> None:
        """max_va соответствует движению цены на 15% при bin_step 1"""
        config = derive_dynamic_fee_params(100)
        assert config.initialized
        assert config.bin_step == 1
        assert config.max_volatility_accumulator == 14_460_000

    def test_max_fee_is_twenty_percent_of_base(self) -> None:
        """На max_va надбавка не превышает 20% base fee и близка к нему"""
        config = derive_dynamic_fee_params(100)
        tracker = VolatilityTracker(volatility_accumulator=config.max_volatility_accumulator)
        fee = variable_fee(config, tracker)
        assert 2_000_000 - 3_000 < fee <= 2_000_000

    def test_price_change_above_limit_rejected(self) -> None:
        """max_price_change_bps > 1500"""
        with pytest.raises(InvalidConfiguration) as exc_info:
            derive_dynamic_fee_params(100, 1_501)
        assert exc_info.value.reason == "dynamic_fee_invalid"
