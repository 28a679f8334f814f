"""
Fees — модели fee-конфигурации пула

Каноническая схема base fee: одна структура с тремя универсальными полями,
интерпретация которых зависит от режима.

| mode                       | first_factor      | second_factor        | third_factor     |
|----------------------------|-------------------|----------------------|------------------|
| FEE_SCHEDULER_LINEAR       | number_of_period  | period_frequency     | reduction_factor |
| FEE_SCHEDULER_EXPONENTIAL  | number_of_period  | period_frequency     | reduction_factor |
| RATE_LIMITER               | fee_increment_bps | max_limiter_duration | reference_amount |

VolatilityTracker изменяется внешним коллаборатором после каждой сделки;
здесь он только читается.
"""

from typing import Optional

from pydantic import BaseModel, Field

from dbc_engine.core.domain.enums import BaseFeeMode


# =============================================================================
# BASE FEE
# =============================================================================


class BaseFeeSchedule(BaseModel):
    """
    Base fee: затухающее расписание или rate limiter.

    Значения хранятся в числителях с знаменателем FEE_DENOMINATOR (1e9).
    """

    cliff_fee_numerator: int = Field(..., ge=0, description="Начальный fee numerator")
    base_fee_mode: BaseFeeMode = Field(
        BaseFeeMode.FEE_SCHEDULER_LINEAR, description="Режим base fee"
    )
    first_factor: int = Field(0, ge=0, le=65_535, description="u16 параметр режима")
    second_factor: int = Field(0, ge=0, description="u64 параметр режима")
    third_factor: int = Field(0, ge=0, description="u64 параметр режима")

    model_config = {"frozen": True}

    # Fee scheduler
    @property
    def number_of_period(self) -> int:
        return self.first_factor

    @property
    def period_frequency(self) -> int:
        return self.second_factor

    @property
    def reduction_factor(self) -> int:
        return self.third_factor

    # Rate limiter
    @property
    def fee_increment_bps(self) -> int:
        return self.first_factor

    @property
    def max_limiter_duration(self) -> int:
        return self.second_factor

    @property
    def reference_amount(self) -> int:
        return self.third_factor

    @property
    def is_rate_limiter(self) -> bool:
        return self.base_fee_mode == BaseFeeMode.RATE_LIMITER

    @classmethod
    def fee_scheduler(
        cls,
        cliff_fee_numerator: int,
        number_of_period: int = 0,
        period_frequency: int = 0,
        reduction_factor: int = 0,
        exponential: bool = False,
    ) -> "BaseFeeSchedule":
        """Расписание linear/exponential в терминах его собственных параметров."""
        return cls(
            cliff_fee_numerator=cliff_fee_numerator,
            base_fee_mode=(
                BaseFeeMode.FEE_SCHEDULER_EXPONENTIAL
                if exponential
                else BaseFeeMode.FEE_SCHEDULER_LINEAR
            ),
            first_factor=number_of_period,
            second_factor=period_frequency,
            third_factor=reduction_factor,
        )

    @classmethod
    def rate_limiter(
        cls,
        cliff_fee_numerator: int,
        fee_increment_bps: int,
        max_limiter_duration: int,
        reference_amount: int,
    ) -> "BaseFeeSchedule":
        """Rate limiter в терминах его собственных параметров."""
        return cls(
            cliff_fee_numerator=cliff_fee_numerator,
            base_fee_mode=BaseFeeMode.RATE_LIMITER,
            first_factor=fee_increment_bps,
            second_factor=max_limiter_duration,
            third_factor=reference_amount,
        )


# =============================================================================
# DYNAMIC FEE
# =============================================================================


class DynamicFeeConfig(BaseModel):
    """Параметры волатильностной надбавки к fee."""

    initialized: bool = Field(True, description="Надбавка включена")
    bin_step: int = Field(..., ge=0, description="Шаг бина (bps)")
    bin_step_u128: int = Field(..., ge=0, description="bin_step << 64 / BASIS_POINT_MAX")
    filter_period: int = Field(..., ge=0, description="Период фильтра")
    decay_period: int = Field(..., ge=0, description="Период затухания")
    reduction_factor: int = Field(..., ge=0, description="Фактор затухания (bps)")
    max_volatility_accumulator: int = Field(..., ge=0, description="Кап аккумулятора")
    variable_fee_control: int = Field(..., ge=0, description="Масштаб надбавки")

    model_config = {"frozen": True}


class VolatilityTracker(BaseModel):
    """Снапшот внешнего трекера волатильности (read-only)."""

    volatility_accumulator: int = Field(0, ge=0)
    volatility_reference: int = Field(0, ge=0)
    sqrt_price_reference: int = Field(0, ge=0)
    last_update_timestamp: int = Field(0, ge=0)

    model_config = {"frozen": True}


# =============================================================================
# POOL FEES
# =============================================================================


class PoolFees(BaseModel):
    """Полная fee-конфигурация пула."""

    base_fee: BaseFeeSchedule
    dynamic_fee: Optional[DynamicFeeConfig] = Field(
        None, description="Волатильностная надбавка (None — выключена)"
    )
    protocol_fee_percent: int = Field(
        20, ge=0, le=100, description="Доля протокола в trading fee (%)"
    )
    referral_fee_percent: int = Field(
        20, ge=0, le=100, description="Доля реферала в protocol fee (%)"
    )

    model_config = {"frozen": True}

    @property
    def dynamic_fee_enabled(self) -> bool:
        return self.dynamic_fee is not None and self.dynamic_fee.initialized
