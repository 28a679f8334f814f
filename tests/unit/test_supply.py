"""Тесты для Supply — учёт base токена по статьям"""

import pytest

from dbc_engine.core.domain.curve import Curve
from dbc_engine.core.domain.enums import MigrationOption
from dbc_engine.core.domain.vesting import LockedVestingSchedule
from dbc_engine.core.exceptions import InsufficientLiquidity
from dbc_engine.core.math.supply import (
    base_token_for_swap,
    first_curve,
    migration_base_token,
    migration_quote_amount,
    migration_quote_threshold_from_amount,
    supply_breakdown,
    swap_amount_with_buffer,
    total_supply_from_curve,
)

Q64 = 1 << 64
LIQUIDITY = 1 << 126


@pytest.fixture
def two_segments() -> Curve:
    """[1.0, 2.0]: 2^61 base; [2.0, 4.0]: 2^60 base."""
    return Curve.from_pairs([(2 * Q64, LIQUIDITY), (4 * Q64, LIQUIDITY)])


class TestMigrationAmounts:
    """Тесты для quote/base пула миграции"""

    def test_quote_after_fee(self) -> None:
        """Migration fee удерживается из порога"""
        assert migration_quote_amount(1_000, 10) == 900
        assert migration_quote_amount(1_000, 0) == 1_000

    def test_threshold_from_amount(self) -> None:
        """Порог округляется вверх и покрывает quote после fee"""
        threshold = migration_quote_threshold_from_amount(1_000, 10)
        assert threshold == 1_112
        assert migration_quote_amount(threshold, 10) >= 1_000

    def test_met_damm(self) -> None:
        """MET_DAMM: quote / price на цене миграции"""
        assert migration_base_token(1 << 62, 2 * Q64, MigrationOption.MET_DAMM) == 1 << 60

    def test_met_damm_v2_close_to_damm(self) -> None:
        """Full-range позиция почти совпадает с MET_DAMM вдали от границ цены"""
        damm = migration_base_token(1 << 62, 2 * Q64, MigrationOption.MET_DAMM)
        damm_v2 = migration_base_token(1 << 62, 2 * Q64, MigrationOption.MET_DAMM_V2)
        assert damm_v2 != damm
        assert abs(damm_v2 - damm) < damm // 10**6


class TestSwapAmounts:
    """Тесты для base на свопы"""

    def test_partial_segment(self, two_segments: Curve) -> None:
        """Сегмент с ценой миграции учитывается частично"""
        assert base_token_for_swap(Q64, 2 * Q64, two_segments) == 1 << 61
        assert base_token_for_swap(Q64, 4 * Q64, two_segments) == (1 << 61) + (1 << 60)

    def test_buffer(self, two_segments: Curve) -> None:
        """+25%, но не больше, чем есть на кривой"""
        assert swap_amount_with_buffer(1 << 61, Q64, two_segments) == (1 << 61) + (1 << 59)
        assert swap_amount_with_buffer(1 << 61, Q64, two_segments, 100) == (1 << 61) + (1 << 60)


class TestSupplyBreakdown:
    """Тесты для supply_breakdown"""

    def test_breakdown(self, two_segments: Curve) -> None:
        """Порог на границе сегментов"""
        vesting = LockedVestingSchedule(amount_per_period=10, number_of_period=2, frequency=1)
        breakdown = supply_breakdown(
            1 << 62, Q64, two_segments, vesting, MigrationOption.MET_DAMM
        )
        assert breakdown.sqrt_migration_price == 2 * Q64
        assert breakdown.swap_base_amount == 1 << 61
        assert breakdown.migration_base_amount == 1 << 60
        assert breakdown.minimum_supply_without_buffer == (3 << 60) + 20
        assert breakdown.minimum_supply_with_buffer == (3 << 60) + (1 << 59) + 20

    def test_total_supply_includes_leftover(self, two_segments: Curve) -> None:
        """Leftover добавляется к минимуму с буфером"""
        total = total_supply_from_curve(
            1 << 62, Q64, two_segments, LockedVestingSchedule(), MigrationOption.MET_DAMM, 7
        )
        assert total == (3 << 60) + (1 << 59) + 7

    def test_threshold_beyond_curve(self, two_segments: Curve) -> None:
        """Кривая не собирает порог"""
        with pytest.raises(InsufficientLiquidity):
            supply_breakdown(
                (1 << 62) + (1 << 63) + 1,
                Q64,
                two_segments,
                LockedVestingSchedule(),
                MigrationOption.MET_DAMM,
            )


class TestFirstCurve:
    """Тесты для first_curve"""

    def test_start_price_balances_supply(self) -> None:
        """sqrt_start = sqrt_migration * migration_base / swap"""
        sqrt_start_price, curve = first_curve(2 * Q64, 1 << 60, 1 << 61, 1 << 62)
        assert sqrt_start_price == Q64
        assert curve.first.sqrt_price == 2 * Q64
        assert curve.first.liquidity == LIQUIDITY
