"""
LockedVestingSchedule — расписание заблокированного vesting base токена
"""

from pydantic import BaseModel, Field


class LockedVestingSchedule(BaseModel):
    """
    Vesting после миграции: cliff unlock плюс равные порции по периодам.

    Все нули — "vesting отсутствует" (default schedule).
    """

    amount_per_period: int = Field(0, ge=0, description="Разблокировка за период")
    cliff_duration_from_migration_time: int = Field(
        0, ge=0, description="Задержка cliff относительно миграции"
    )
    frequency: int = Field(0, ge=0, description="Длина периода")
    number_of_period: int = Field(0, ge=0, description="Число периодов")
    cliff_unlock_amount: int = Field(0, ge=0, description="Разблокировка в cliff")

    model_config = {"frozen": True}

    @property
    def is_default(self) -> bool:
        return (
            self.amount_per_period == 0
            and self.cliff_duration_from_migration_time == 0
            and self.frequency == 0
            and self.number_of_period == 0
            and self.cliff_unlock_amount == 0
        )

    @property
    def total_amount(self) -> int:
        """cliff_unlock_amount + amount_per_period * number_of_period"""
        return self.cliff_unlock_amount + self.amount_per_period * self.number_of_period
