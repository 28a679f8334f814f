"""
QuoteEngine — котировки exact-in / exact-out по виртуальной кривой

Композиция CurveModel (curve_traversal) и FeeEngine (fee_math):

Exact-in:
    fee на входе:  fee_on_amount(amount_in) -> обход кривой на остатке
    fee на выходе: обход кривой на amount_in -> fee_on_amount(выход)

Exact-out:
    fee на входе:  обратный обход -> требуемый вход после fee -> инверсия fee
    fee на выходе: инверсия fee на amount_out -> обратный обход

Таблица fee mode (collect_fee_mode x направление):

    QUOTE_TOKEN  + BASE_TO_QUOTE -> fee на выходе (quote)
    QUOTE_TOKEN  + QUOTE_TO_BASE -> fee на входе  (quote)
    OUTPUT_TOKEN + BASE_TO_QUOTE -> fee на выходе (quote)
    OUTPUT_TOKEN + QUOTE_TO_BASE -> fee на выходе (base)

Снапшот пула принимается как VirtualPoolState или как dict: dict проходит
контракт virtual_pool (core/contracts) и разбирается в модель.

Отклонения (пул завершён, нулевой объём) возвращаются как результат с
accepted=False. InsufficientLiquidity и ArithmeticError пробрасываются.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from dbc_engine.core.contracts.validators import VirtualPoolValidator
from dbc_engine.core.domain.enums import CollectFeeMode, Rounding, TradeDirection
from dbc_engine.core.domain.pool_config import PoolConfig
from dbc_engine.core.domain.quote import (
    FeeBreakdown,
    FeeMode,
    FeeOnAmount,
    QuoteRejectReason,
    SwapAmount,
    SwapQuote,
    SwapQuoteExactOut,
)
from dbc_engine.core.domain.virtual_pool import VirtualPoolState
from dbc_engine.core.exceptions import InvalidConfiguration
from dbc_engine.core.math.curve_math import price_q64_from_sqrt_price
from dbc_engine.core.math.curve_traversal import (
    traverse_from_base,
    traverse_from_quote,
    traverse_to_base_output,
    traverse_to_quote_output,
)
from dbc_engine.core.math.fee_math import (
    fee_on_amount,
    included_fee_amount,
    included_fee_amount_by_search,
    total_fee_numerator,
)
from dbc_engine.core.math.safe_math import BASIS_POINT_MAX, mul_div

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class QuoteEngineConfig:
    """Конфигурация QuoteEngine."""

    # Максимальный допуск проскальзывания (bps)
    max_slippage_bps: int = BASIS_POINT_MAX


# =============================================================================
# FEE MODE
# =============================================================================


def fee_mode(
    collect_fee_mode: CollectFeeMode,
    trade_direction: TradeDirection,
    has_referral: bool,
) -> FeeMode:
    """
    Где собирается fee сделки.

    Examples:
        >>> fee_mode(CollectFeeMode.QUOTE_TOKEN, TradeDirection.QUOTE_TO_BASE, False)
        FeeMode(fees_on_input=True, fees_on_base_token=False, has_referral=False)
    """
    if collect_fee_mode == CollectFeeMode.OUTPUT_TOKEN:
        return FeeMode(
            fees_on_input=False,
            fees_on_base_token=trade_direction == TradeDirection.QUOTE_TO_BASE,
            has_referral=has_referral,
        )
    return FeeMode(
        fees_on_input=trade_direction == TradeDirection.QUOTE_TO_BASE,
        fees_on_base_token=False,
        has_referral=has_referral,
    )


def is_curve_complete(config: PoolConfig, quote_reserve: int) -> bool:
    """Виртуальная фаза завершена: quote reserve достиг порога миграции."""
    return quote_reserve >= config.migration_quote_threshold


def _fee_breakdown(fee: FeeOnAmount) -> FeeBreakdown:
    return FeeBreakdown(
        trading=fee.trading_fee, protocol=fee.protocol_fee, referral=fee.referral_fee
    )


# =============================================================================
# ENGINE
# =============================================================================


class QuoteEngine:
    """QuoteEngine — чистые котировки над снапшотами PoolConfig и VirtualPoolState.

    Состояние не хранится и не изменяется; VolatilityTracker только читается.
    """

    def __init__(self, config: QuoteEngineConfig | None = None):
        """
        Args:
            config: конфигурация (опционально, используется default)
        """
        self.config = config or QuoteEngineConfig()
        self._pool_validator = VirtualPoolValidator()

    def quote_exact_in(
        self,
        pool: Union[VirtualPoolState, Dict[str, Any]],
        config: PoolConfig,
        swap_base_for_quote: bool,
        amount_in: int,
        current_point: int,
        has_referral: bool = False,
        slippage_bps: int = 0,
    ) -> SwapQuote:
        """
        Котировка на точный вход.

        Args:
            pool: Снапшот пула (цена, резервы, активация, трекер): модель
                или dict, который проверяется контрактом virtual_pool
            config: Конфигурация пула
            swap_base_for_quote: True — продажа base, False — покупка base
            amount_in: Вход до fee
            current_point: Текущий slot/timestamp
            has_referral: Есть ли реферальный аккаунт
            slippage_bps: Допуск для minimum_amount_out

        Returns:
            SwapQuote (accepted=False для завершённого пула или нулевого входа)

        Raises:
            InsufficientLiquidity: Если кривая не поглощает вход
            InvalidConfiguration: Если slippage_bps вне допуска или снапшот
                пула нарушает контракт (pool_state_invalid)
        """
        pool = self._pool_state(pool)
        self._check_slippage(slippage_bps)
        direction = self._direction(swap_base_for_quote)

        rejection = self._rejection(pool, config, amount_in)
        if rejection is not None:
            return SwapQuote(
                **self._rejected_fields(pool, config, rejection), amount_in=amount_in
            )

        mode = fee_mode(config.collect_fee_mode, direction, has_referral)
        fee_numerator = total_fee_numerator(
            config.pool_fees,
            pool.volatility_tracker,
            current_point,
            pool.activation_point,
            direction,
            amount_in,
        )

        actual_amount_in = amount_in
        fee = FeeOnAmount(amount_in, 0, 0, 0)
        if mode.fees_on_input:
            fee = fee_on_amount(amount_in, fee_numerator, config.pool_fees, has_referral)
            actual_amount_in = fee.amount

        if direction == TradeDirection.BASE_TO_QUOTE:
            swap = traverse_from_base(config.curve, pool.sqrt_price, actual_amount_in)
        else:
            swap = traverse_from_quote(config.curve, pool.sqrt_price, actual_amount_in)

        amount_out = swap.amount
        if not mode.fees_on_input:
            fee = fee_on_amount(swap.amount, fee_numerator, config.pool_fees, has_referral)
            amount_out = fee.amount

        minimum_amount_out = mul_div(
            amount_out, BASIS_POINT_MAX - slippage_bps, BASIS_POINT_MAX, Rounding.DOWN
        )

        logger.debug(
            "exact-in %s: in=%d out=%d fee_numerator=%d next_sqrt_price=%d",
            direction.name,
            amount_in,
            amount_out,
            fee_numerator,
            swap.next_sqrt_price,
        )

        return SwapQuote(
            accepted=True,
            reject_reason=None,
            price_before=price_q64_from_sqrt_price(pool.sqrt_price),
            price_after=price_q64_from_sqrt_price(swap.next_sqrt_price),
            next_sqrt_price=swap.next_sqrt_price,
            fee=_fee_breakdown(fee),
            quote_reserve=pool.quote_reserve,
            migration_quote_threshold=config.migration_quote_threshold,
            amount_in=amount_in,
            amount_out=amount_out,
            minimum_amount_out=minimum_amount_out,
        )

    def quote_exact_out(
        self,
        pool: Union[VirtualPoolState, Dict[str, Any]],
        config: PoolConfig,
        swap_base_for_quote: bool,
        amount_out: int,
        current_point: int,
        has_referral: bool = False,
        slippage_bps: int = 0,
    ) -> SwapQuoteExactOut:
        """
        Котировка на точный выход.

        Для rate limiter fee numerator зависит от размера входа, поэтому
        вход до fee ищется бисекцией (included_fee_amount_by_search).

        Returns:
            SwapQuoteExactOut (accepted=False для завершённого пула или нулевого выхода)

        Raises:
            InsufficientLiquidity: Если кривая не может отдать amount_out
            FeeInversionError: Если инверсия fee не покрывает требуемую сумму
            InvalidConfiguration: Если slippage_bps вне допуска или снапшот
                пула нарушает контракт (pool_state_invalid)
        """
        pool = self._pool_state(pool)
        self._check_slippage(slippage_bps)
        direction = self._direction(swap_base_for_quote)

        rejection = self._rejection(pool, config, amount_out)
        if rejection is not None:
            return SwapQuoteExactOut(
                **self._rejected_fields(pool, config, rejection), amount_out=amount_out
            )

        mode = fee_mode(config.collect_fee_mode, direction, has_referral)

        def numerator_for(input_amount: Optional[int]) -> int:
            return total_fee_numerator(
                config.pool_fees,
                pool.volatility_tracker,
                current_point,
                pool.activation_point,
                direction,
                input_amount,
            )

        if mode.fees_on_input:
            swap = self._traverse_to_output(config, pool, direction, amount_out)
            if config.pool_fees.base_fee.is_rate_limiter:
                amount_in = included_fee_amount_by_search(swap.amount, numerator_for)
            else:
                amount_in = included_fee_amount(swap.amount, numerator_for(None))
            fee_numerator = numerator_for(amount_in)
            fee = fee_on_amount(amount_in, fee_numerator, config.pool_fees, has_referral)
        else:
            fee_numerator = numerator_for(None)
            amount_out_before_fee = included_fee_amount(amount_out, fee_numerator)
            swap = self._traverse_to_output(config, pool, direction, amount_out_before_fee)
            amount_in = swap.amount
            fee = fee_on_amount(
                amount_out_before_fee, fee_numerator, config.pool_fees, has_referral
            )

        maximum_amount_in = mul_div(
            amount_in, BASIS_POINT_MAX + slippage_bps, BASIS_POINT_MAX, Rounding.UP
        )

        logger.debug(
            "exact-out %s: out=%d in=%d fee_numerator=%d next_sqrt_price=%d",
            direction.name,
            amount_out,
            amount_in,
            fee_numerator,
            swap.next_sqrt_price,
        )

        return SwapQuoteExactOut(
            accepted=True,
            reject_reason=None,
            price_before=price_q64_from_sqrt_price(pool.sqrt_price),
            price_after=price_q64_from_sqrt_price(swap.next_sqrt_price),
            next_sqrt_price=swap.next_sqrt_price,
            fee=_fee_breakdown(fee),
            quote_reserve=pool.quote_reserve,
            migration_quote_threshold=config.migration_quote_threshold,
            amount_out=amount_out,
            amount_in=amount_in,
            maximum_amount_in=maximum_amount_in,
        )

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    def _pool_state(self, pool: Union[VirtualPoolState, Dict[str, Any]]) -> VirtualPoolState:
        if isinstance(pool, VirtualPoolState):
            return pool
        return self._pool_validator.parse(pool)

    @staticmethod
    def _direction(swap_base_for_quote: bool) -> TradeDirection:
        if swap_base_for_quote:
            return TradeDirection.BASE_TO_QUOTE
        return TradeDirection.QUOTE_TO_BASE

    @staticmethod
    def _traverse_to_output(
        config: PoolConfig,
        pool: VirtualPoolState,
        direction: TradeDirection,
        amount_out: int,
    ) -> SwapAmount:
        if direction == TradeDirection.BASE_TO_QUOTE:
            return traverse_to_quote_output(config.curve, pool.sqrt_price, amount_out)
        return traverse_to_base_output(config.curve, pool.sqrt_price, amount_out)

    def _check_slippage(self, slippage_bps: int) -> None:
        if not 0 <= slippage_bps <= self.config.max_slippage_bps:
            raise InvalidConfiguration(
                "slippage_invalid",
                f"slippage_bps {slippage_bps} outside [0, {self.config.max_slippage_bps}]",
            )

    @staticmethod
    def _rejection(
        pool: VirtualPoolState, config: PoolConfig, amount: int
    ) -> Optional[QuoteRejectReason]:
        if is_curve_complete(config, pool.quote_reserve):
            logger.info(
                "quote rejected: pool completed (quote_reserve=%d threshold=%d)",
                pool.quote_reserve,
                config.migration_quote_threshold,
            )
            return QuoteRejectReason.POOL_COMPLETED
        if amount <= 0:
            return QuoteRejectReason.AMOUNT_ZERO
        return None

    @staticmethod
    def _rejected_fields(
        pool: VirtualPoolState, config: PoolConfig, reason: QuoteRejectReason
    ) -> dict:
        price = price_q64_from_sqrt_price(pool.sqrt_price)
        return {
            "accepted": False,
            "reject_reason": reason,
            "price_before": price,
            "price_after": price,
            "next_sqrt_price": pool.sqrt_price,
            "fee": FeeBreakdown(),
            "quote_reserve": pool.quote_reserve,
            "migration_quote_threshold": config.migration_quote_threshold,
        }
