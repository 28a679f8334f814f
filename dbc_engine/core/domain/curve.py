"""
Curve — кусочная кривая ликвидности

Immutable Pydantic модели точек кривой и самой кривой.

Точка задаёт ВЕРХНЮЮ границу сегмента: liquidity активна в интервале
(sqrt_price предыдущей точки, sqrt_price этой точки]. Нижняя граница
первого сегмента — sqrt_start_price конфигурации пула.

Ёмкость кривой фиксирована (MAX_CURVE_POINT) и проверяется при построении:
кривая никогда не бывает разреженным массивом с пустыми слотами.
Порядок точек и положительность liquidity НЕ проверяются здесь —
это задача ConfigValidator, который должен уметь отклонить такую кривую
с машиночитаемой причиной.
"""

from typing import Final, Iterator

from pydantic import BaseModel, Field, model_validator

# Максимальное число точек кривой
MAX_CURVE_POINT: Final[int] = 16


class CurvePoint(BaseModel):
    """Точка кривой: верхняя граница сегмента и его liquidity"""

    sqrt_price: int = Field(..., ge=0, description="Верхняя граница сегмента (Q64.64)")
    liquidity: int = Field(..., ge=0, description="Liquidity сегмента")

    model_config = {"frozen": True}


class Curve(BaseModel):
    """
    Упорядоченная последовательность точек кривой (1..MAX_CURVE_POINT).

    Принимает как {"points": [...]}, так и просто список точек.
    """

    points: tuple[CurvePoint, ...] = Field(
        ...,
        min_length=1,
        max_length=MAX_CURVE_POINT,
        description="Точки кривой по возрастанию sqrt_price",
    )

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def wrap_point_sequence(cls, data):
        if isinstance(data, (list, tuple)):
            return {"points": data}
        return data

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[CurvePoint]:  # type: ignore[override]
        return iter(self.points)

    def __getitem__(self, index: int) -> CurvePoint:
        return self.points[index]

    @property
    def first(self) -> CurvePoint:
        return self.points[0]

    @property
    def last(self) -> CurvePoint:
        return self.points[-1]

    @property
    def is_full(self) -> bool:
        return len(self.points) >= MAX_CURVE_POINT

    def append(self, point: CurvePoint) -> "Curve":
        """
        Новая кривая с точкой в конце.

        Raises:
            ValueError: Если кривая уже содержит MAX_CURVE_POINT точек
        """
        if self.is_full:
            raise ValueError(f"curve capacity {MAX_CURVE_POINT} exceeded")
        return Curve(points=self.points + (point,))

    @classmethod
    def from_pairs(cls, pairs: list[tuple[int, int]]) -> "Curve":
        """Построение из пар (sqrt_price, liquidity)."""
        return cls(
            points=tuple(
                CurvePoint(sqrt_price=sqrt_price, liquidity=liquidity)
                for sqrt_price, liquidity in pairs
            )
        )
