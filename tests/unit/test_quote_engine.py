"""Тесты для QuoteEngine — котировки exact-in / exact-out

Проверяемые инварианты:
1. Таблица fee mode: fee на входе только для покупки с QUOTE_TOKEN
2. Exact-in совпадает с обходом кривой плюс fee
3. Вход exact-out, применённый как exact-in, покрывает запрошенный выход
4. Завершённый пул и нулевой объём — отклонённый результат, а не исключение
5. Нехватка liquidity пробрасывается как InsufficientLiquidity
"""

import pytest

from dbc_engine.core.domain.curve import Curve
from dbc_engine.core.domain.enums import CollectFeeMode, TradeDirection
from dbc_engine.core.domain.fees import BaseFeeSchedule, PoolFees, VolatilityTracker
from dbc_engine.core.domain.pool_config import PoolConfig
from dbc_engine.core.domain.quote import FeeMode, QuoteRejectReason
from dbc_engine.core.domain.virtual_pool import VirtualPoolState
from dbc_engine.core.exceptions import InsufficientLiquidity, InvalidConfiguration, PoolCompleted
from dbc_engine.core.math.curve_traversal import (
    traverse_from_base,
    traverse_from_quote,
    traverse_to_base_output,
)
from dbc_engine.core.math.fee_math import included_fee_amount
from dbc_engine.core.math.fee_params import derive_dynamic_fee_params
from dbc_engine.quote import QuoteEngine
from dbc_engine.quote.engine import fee_mode, is_curve_complete

Q64 = 1 << 64
LIQUIDITY = 1 << 126

# Сегмент [1.0, 2.0]: 2^61 base, 2^62 quote
SEGMENT_QUOTE = 1 << 62
FEE_NUMERATOR = 10_000_000

AMOUNT = 10**12


# =============================================================================
# FIXTURES
# =============================================================================


def make_config(
    base_fee: BaseFeeSchedule | None = None,
    collect_fee_mode: CollectFeeMode = CollectFeeMode.QUOTE_TOKEN,
    dynamic_fee_enabled: bool = False,
) -> PoolConfig:
    base_fee = base_fee or BaseFeeSchedule(cliff_fee_numerator=FEE_NUMERATOR)
    dynamic_fee = derive_dynamic_fee_params(100) if dynamic_fee_enabled else None
    return PoolConfig(
        pool_fees=PoolFees(base_fee=base_fee, dynamic_fee=dynamic_fee),
        collect_fee_mode=collect_fee_mode,
        migration_quote_threshold=SEGMENT_QUOTE,
        token_decimal=9,
        partner_locked_lp_percentage=100,
        sqrt_start_price=Q64,
        curve=Curve.from_pairs([(2 * Q64, LIQUIDITY)]),
    )


@pytest.fixture
def engine() -> QuoteEngine:
    """QuoteEngine с конфигурацией по умолчанию."""
    return QuoteEngine()


@pytest.fixture
def config() -> PoolConfig:
    """Один сегмент [1.0, 2.0], плоский fee 1%, fee в quote."""
    return make_config()


@pytest.fixture
def pool_at_start() -> VirtualPoolState:
    """Пул на стартовой цене."""
    return VirtualPoolState(sqrt_price=Q64)


@pytest.fixture
def pool_mid_curve() -> VirtualPoolState:
    """Пул на sqrt цене 1.5 — есть что продавать."""
    return VirtualPoolState(sqrt_price=3 * Q64 // 2, quote_reserve=SEGMENT_QUOTE // 2)


# =============================================================================
# FEE MODE
# =============================================================================


class TestFeeMode:
    """Тесты для fee_mode"""

    def test_quote_token_buy(self) -> None:
        """QUOTE_TOKEN + покупка — fee на входе"""
        mode = fee_mode(CollectFeeMode.QUOTE_TOKEN, TradeDirection.QUOTE_TO_BASE, False)
        assert mode == FeeMode(fees_on_input=True, fees_on_base_token=False, has_referral=False)

    def test_quote_token_sell(self) -> None:
        """QUOTE_TOKEN + продажа — fee на выходе (quote)"""
        mode = fee_mode(CollectFeeMode.QUOTE_TOKEN, TradeDirection.BASE_TO_QUOTE, True)
        assert mode == FeeMode(fees_on_input=False, fees_on_base_token=False, has_referral=True)

    def test_output_token_buy(self) -> None:
        """OUTPUT_TOKEN + покупка — fee на выходе (base)"""
        mode = fee_mode(CollectFeeMode.OUTPUT_TOKEN, TradeDirection.QUOTE_TO_BASE, False)
        assert mode == FeeMode(fees_on_input=False, fees_on_base_token=True, has_referral=False)

    def test_output_token_sell(self) -> None:
        """OUTPUT_TOKEN + продажа — fee на выходе (quote)"""
        mode = fee_mode(CollectFeeMode.OUTPUT_TOKEN, TradeDirection.BASE_TO_QUOTE, False)
        assert not mode.fees_on_input
        assert not mode.fees_on_base_token


class TestIsCurveComplete:
    """Тесты для is_curve_complete"""

    def test_threshold_boundary(self, config: PoolConfig) -> None:
        """Порог включительно"""
        assert not is_curve_complete(config, SEGMENT_QUOTE - 1)
        assert is_curve_complete(config, SEGMENT_QUOTE)
        assert is_curve_complete(config, SEGMENT_QUOTE + 1)


# =============================================================================
# EXACT IN
# =============================================================================


class TestQuoteExactIn:
    """Тесты для QuoteEngine.quote_exact_in"""

    def test_buy_fee_on_input(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """Покупка: fee снимается с quote до обхода кривой"""
        quote = engine.quote_exact_in(pool_at_start, config, False, AMOUNT, 100)
        expected = traverse_from_quote(config.curve, Q64, AMOUNT - AMOUNT // 100)

        assert quote.accepted
        assert quote.reject_reason is None
        assert quote.amount_out == expected.amount
        assert quote.next_sqrt_price == expected.next_sqrt_price
        assert quote.fee.total == AMOUNT // 100
        assert quote.fee.trading == 8_000_000_000
        assert quote.fee.protocol == 2_000_000_000

    def test_sell_fee_on_output(
        self, engine: QuoteEngine, config: PoolConfig, pool_mid_curve: VirtualPoolState
    ) -> None:
        """Продажа: fee снимается с quote на выходе"""
        quote = engine.quote_exact_in(pool_mid_curve, config, True, AMOUNT, 100)
        gross = traverse_from_base(config.curve, pool_mid_curve.sqrt_price, AMOUNT).amount
        trading_fee = -(-gross // 100)

        assert quote.amount_out == gross - trading_fee
        assert quote.fee.total == trading_fee
        assert quote.next_sqrt_price < pool_mid_curve.sqrt_price

    def test_output_token_buy_fee_on_base(
        self, engine: QuoteEngine, pool_at_start: VirtualPoolState
    ) -> None:
        """OUTPUT_TOKEN: покупка тратит весь quote, fee снимается с base"""
        config = make_config(collect_fee_mode=CollectFeeMode.OUTPUT_TOKEN)
        quote = engine.quote_exact_in(pool_at_start, config, False, AMOUNT, 100)
        gross = traverse_from_quote(config.curve, Q64, AMOUNT).amount

        assert quote.amount_out == gross - -(-gross // 100)

    def test_referral_split(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """Referral получает 20% protocol fee"""
        quote = engine.quote_exact_in(pool_at_start, config, False, AMOUNT, 100, has_referral=True)
        assert quote.fee.trading == 8_000_000_000
        assert quote.fee.protocol == 1_600_000_000
        assert quote.fee.referral == 400_000_000

    def test_minimum_amount_out(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """minimum_amount_out = floor(out * (1 - slippage))"""
        quote = engine.quote_exact_in(pool_at_start, config, False, AMOUNT, 100, slippage_bps=100)
        assert quote.minimum_amount_out == quote.amount_out * 9_900 // 10_000

    def test_prices(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """Цены до и после в Q64.64"""
        quote = engine.quote_exact_in(pool_at_start, config, False, AMOUNT, 100)
        assert quote.price_before == Q64
        assert quote.price_after > quote.price_before

    def test_dynamic_fee_increases_fee(
        self, engine: QuoteEngine, pool_at_start: VirtualPoolState
    ) -> None:
        """Ненулевой аккумулятор волатильности увеличивает fee"""
        config = make_config(dynamic_fee_enabled=True)
        volatile_pool = pool_at_start.model_copy(
            update={
                "volatility_tracker": VolatilityTracker(
                    volatility_accumulator=config.pool_fees.dynamic_fee.max_volatility_accumulator
                )
            }
        )
        static = engine.quote_exact_in(pool_at_start, config, False, AMOUNT, 100)
        dynamic = engine.quote_exact_in(volatile_pool, config, False, AMOUNT, 100)
        assert dynamic.fee.total > static.fee.total
        assert dynamic.amount_out < static.amount_out

    def test_insufficient_liquidity_propagates(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """Вход сверх ёмкости кривой"""
        with pytest.raises(InsufficientLiquidity):
            engine.quote_exact_in(pool_at_start, config, False, 2 * SEGMENT_QUOTE, 100)


# =============================================================================
# EXACT OUT
# =============================================================================


class TestQuoteExactOut:
    """Тесты для QuoteEngine.quote_exact_out"""

    def test_buy_required_input(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """Покупка: требуемый quote после fee инвертируется в вход до fee"""
        quote = engine.quote_exact_out(pool_at_start, config, False, AMOUNT, 100)
        required = traverse_to_base_output(config.curve, Q64, AMOUNT)

        assert quote.accepted
        assert quote.amount_out == AMOUNT
        assert quote.amount_in == included_fee_amount(required.amount, FEE_NUMERATOR)
        assert quote.next_sqrt_price == required.next_sqrt_price

    def test_buy_covers_output(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """Вход exact-out, потраченный как exact-in, даёт не меньше base"""
        exact_out = engine.quote_exact_out(pool_at_start, config, False, AMOUNT, 100)
        exact_in = engine.quote_exact_in(pool_at_start, config, False, exact_out.amount_in, 100)
        assert exact_in.amount_out >= AMOUNT

    def test_sell_covers_output(
        self, engine: QuoteEngine, config: PoolConfig, pool_mid_curve: VirtualPoolState
    ) -> None:
        """Продажа: fee на выходе инвертируется до обхода кривой"""
        exact_out = engine.quote_exact_out(pool_mid_curve, config, True, AMOUNT, 100)
        exact_in = engine.quote_exact_in(pool_mid_curve, config, True, exact_out.amount_in, 100)
        assert exact_in.amount_out >= AMOUNT

    def test_rate_limiter_uses_search(
        self, engine: QuoteEngine, pool_at_start: VirtualPoolState
    ) -> None:
        """Rate limiter: fee растёт с размером входа, вход покрывает выход"""
        config = make_config(
            base_fee=BaseFeeSchedule.rate_limiter(
                FEE_NUMERATOR,
                fee_increment_bps=10,
                max_limiter_duration=500,
                reference_amount=10**9,
            )
        )
        amount_out = 5 * 10**9
        exact_out = engine.quote_exact_out(pool_at_start, config, False, amount_out, 10)
        exact_in = engine.quote_exact_in(pool_at_start, config, False, exact_out.amount_in, 10)

        assert exact_in.amount_out >= amount_out
        assert exact_out.fee.total > exact_out.amount_in // 100

    def test_maximum_amount_in(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """maximum_amount_in = ceil(in * (1 + slippage))"""
        quote = engine.quote_exact_out(pool_at_start, config, False, AMOUNT, 100, slippage_bps=50)
        assert quote.maximum_amount_in == -(-quote.amount_in * 10_050 // 10_000)

    def test_output_beyond_curve(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """Выход больше base кривой"""
        with pytest.raises(InsufficientLiquidity):
            engine.quote_exact_out(pool_at_start, config, False, 1 << 62, 100)


# =============================================================================
# ОТКЛОНЕНИЯ
# =============================================================================


class TestRejections:
    """Тесты для отклонённых котировок"""

    def test_pool_completed(self, engine: QuoteEngine, config: PoolConfig) -> None:
        """Quote reserve на пороге — POOL_COMPLETED"""
        pool = VirtualPoolState(sqrt_price=2 * Q64, quote_reserve=SEGMENT_QUOTE)
        quote = engine.quote_exact_in(pool, config, False, AMOUNT, 100)

        assert not quote.accepted
        assert quote.reject_reason == QuoteRejectReason.POOL_COMPLETED
        assert quote.amount_out == 0
        assert quote.next_sqrt_price == pool.sqrt_price

        with pytest.raises(PoolCompleted) as exc_info:
            quote.raise_for_rejection()
        assert exc_info.value.quote_reserve == SEGMENT_QUOTE
        assert exc_info.value.migration_quote_threshold == SEGMENT_QUOTE

    def test_pool_completed_exact_out(self, engine: QuoteEngine, config: PoolConfig) -> None:
        """Exact-out на завершённом пуле тоже отклоняется"""
        pool = VirtualPoolState(sqrt_price=2 * Q64, quote_reserve=SEGMENT_QUOTE + 1)
        quote = engine.quote_exact_out(pool, config, True, AMOUNT, 100)
        assert quote.reject_reason == QuoteRejectReason.POOL_COMPLETED

    def test_amount_zero(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """Нулевой вход — AMOUNT_ZERO"""
        quote = engine.quote_exact_in(pool_at_start, config, False, 0, 100)
        assert quote.reject_reason == QuoteRejectReason.AMOUNT_ZERO

        with pytest.raises(InvalidConfiguration) as exc_info:
            quote.raise_for_rejection()
        assert exc_info.value.reason == "amount_zero"

    def test_accepted_does_not_raise(
        self, engine: QuoteEngine, config: PoolConfig, pool_at_start: VirtualPoolState
    ) -> None:
        """Принятая котировка не поднимает исключение"""
        engine.quote_exact_in(pool_at_start, config, False, AMOUNT, 100).raise_for_rejection()

    @pytest.mark.parametrize("slippage_bps", [-1, 10_001])
    def test_invalid_slippage(
        self,
        engine: QuoteEngine,
        config: PoolConfig,
        pool_at_start: VirtualPoolState,
        slippage_bps: int,
    ) -> None:
        """Slippage вне [0, 10000] — ошибка вызова"""
        with pytest.raises(InvalidConfiguration) as exc_info:
            engine.quote_exact_in(pool_at_start, config, False, AMOUNT, 100, slippage_bps=slippage_bps)
        assert exc_info.value.reason == "slippage_invalid"


# =============================================================================
# POOL SNAPSHOT
# =============================================================================


class TestPoolSnapshot:
    """Тесты для dict снапшотов пула в QuoteEngine"""

    def test_snapshot_matches_model(
        self, engine: QuoteEngine, config: PoolConfig, pool_mid_curve: VirtualPoolState
    ) -> None:
        """dict снапшот котируется так же, как модель"""
        snapshot = pool_mid_curve.model_dump(mode="json")
        assert engine.quote_exact_in(snapshot, config, True, AMOUNT, 100) == engine.quote_exact_in(
            pool_mid_curve, config, True, AMOUNT, 100
        )
        assert engine.quote_exact_out(snapshot, config, False, AMOUNT, 100) == engine.quote_exact_out(
            pool_mid_curve, config, False, AMOUNT, 100
        )

    def test_minimal_snapshot(self, engine: QuoteEngine, config: PoolConfig) -> None:
        """Снапшот только с sqrt_price"""
        quote = engine.quote_exact_in({"sqrt_price": Q64}, config, False, AMOUNT, 100)
        assert quote.accepted
        assert quote.quote_reserve == 0

    def test_zero_sqrt_price(self, engine: QuoteEngine, config: PoolConfig) -> None:
        """Нулевая цена — pool_state_invalid"""
        with pytest.raises(InvalidConfiguration) as exc_info:
            engine.quote_exact_in({"sqrt_price": 0}, config, False, AMOUNT, 100)
        assert exc_info.value.reason == "pool_state_invalid"
        assert exc_info.value.details.startswith("sqrt_price")

    def test_reserve_above_u64(self, engine: QuoteEngine, config: PoolConfig) -> None:
        """Резерв вне u64 отклоняется до котировки"""
        snapshot = {"sqrt_price": Q64, "quote_reserve": 1 << 64}
        with pytest.raises(InvalidConfiguration) as exc_info:
            engine.quote_exact_out(snapshot, config, False, AMOUNT, 100)
        assert exc_info.value.reason == "pool_state_invalid"
        assert exc_info.value.details.startswith("quote_reserve")

    def test_unknown_tracker_field(self, engine: QuoteEngine, config: PoolConfig) -> None:
        """Лишнее поле трекера волатильности"""
        snapshot = {"sqrt_price": Q64, "volatility_tracker": {"bin_id": 1}}
        with pytest.raises(InvalidConfiguration) as exc_info:
            engine.quote_exact_in(snapshot, config, False, AMOUNT, 100)
        assert exc_info.value.reason == "pool_state_invalid"
        assert exc_info.value.details.startswith("volatility_tracker")
