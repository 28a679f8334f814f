"""
Safe Math — целочисленные примитивы фиксированной точки

Модуль реализует единственный арифметический слой движка: все вычисления,
которые должны совпадать с settlement-программой до единицы, идут через него.

- mul_div с явным направлением округления (промежуточная ширина 256 бит)
- Безопасные shl/shr/add/sub/mul/div без wraparound
- Проверки разрядности u64/u128/u256
- Бинарное возведение в степень в формате Q64.64

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Деление на ноль всегда бросает DivisionByZero (никаких fallback-значений)
2. Вычитание с b > a всегда бросает MathUnderflow
3. Выход за разрядность всегда бросает MathOverflow
4. Каждое деление имеет явное направление округления
"""

from typing import Final

from dbc_engine.core.domain.enums import Rounding
from dbc_engine.core.exceptions import (
    DivisionByZero,
    MathOverflow,
    MathUnderflow,
)

# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Число дробных бит Q64.64
RESOLUTION: Final[int] = 64

# 1.0 в формате Q64.64
ONE_Q64: Final[int] = 1 << RESOLUTION

# Максимумы беззнаковых типов settlement-программы
U16_MAX: Final[int] = (1 << 16) - 1
U24_MAX: Final[int] = (1 << 24) - 1
U64_MAX: Final[int] = (1 << 64) - 1
U128_MAX: Final[int] = (1 << 128) - 1
U256_MAX: Final[int] = (1 << 256) - 1

# 100% в базисных пунктах
BASIS_POINT_MAX: Final[int] = 10_000


# =============================================================================
# ПРОВЕРКИ РАЗРЯДНОСТИ
# =============================================================================


def _ensure_width(value: int, max_value: int, type_name: str, context: str) -> int:
    if value < 0:
        raise MathUnderflow(f"{context}: negative value {value} for {type_name}")
    if value > max_value:
        raise MathOverflow(f"{context}: {value} exceeds {type_name} max")
    return value


def ensure_u64(value: int, context: str = "value") -> int:
    """
    Проверка, что значение помещается в u64.

    Args:
        value: Проверяемое значение
        context: Имя величины для сообщения об ошибке

    Returns:
        value без изменений

    Raises:
        MathUnderflow: Если value < 0
        MathOverflow: Если value > U64_MAX
    """
    return _ensure_width(value, U64_MAX, "u64", context)


def ensure_u128(value: int, context: str = "value") -> int:
    """Проверка, что значение помещается в u128."""
    return _ensure_width(value, U128_MAX, "u128", context)


def ensure_u256(value: int, context: str = "value") -> int:
    """Проверка, что значение помещается в u256."""
    return _ensure_width(value, U256_MAX, "u256", context)


# =============================================================================
# БАЗОВЫЕ ОПЕРАЦИИ
# =============================================================================


def add(a: int, b: int, max_value: int = U256_MAX) -> int:
    """
    Безопасное сложение беззнаковых целых.

    Raises:
        MathOverflow: Если a + b > max_value
    """
    result = a + b
    if result > max_value:
        raise MathOverflow(f"add overflow: {a} + {b}")
    return result


def sub(a: int, b: int) -> int:
    """
    Безопасное вычитание беззнаковых целых.

    Args:
        a: Уменьшаемое
        b: Вычитаемое

    Returns:
        a - b

    Raises:
        MathUnderflow: Если b > a

    Examples:
        >>> sub(10, 3)
        7
        >>> sub(3, 10)
        Traceback (most recent call last):
        ...
        MathUnderflow: sub underflow: 3 - 10
    """
    if b > a:
        raise MathUnderflow(f"sub underflow: {a} - {b}")
    return a - b


def mul(a: int, b: int, max_value: int = U256_MAX) -> int:
    """Безопасное умножение беззнаковых целых."""
    result = a * b
    if result > max_value:
        raise MathOverflow(f"mul overflow: {a} * {b}")
    return result


def div(a: int, b: int) -> int:
    """
    Целочисленное деление с округлением вниз.

    Raises:
        DivisionByZero: Если b == 0
    """
    if b == 0:
        raise DivisionByZero(f"div by zero: {a} / 0")
    return a // b


def div_ceil(a: int, b: int) -> int:
    """
    Целочисленное деление с округлением вверх.

    Raises:
        DivisionByZero: Если b == 0
    """
    if b == 0:
        raise DivisionByZero(f"div_ceil by zero: {a} / 0")
    return (a + b - 1) // b


def shl(value: int, bits: int, max_value: int = U256_MAX) -> int:
    """
    Точный сдвиг влево.

    Raises:
        MathOverflow: Если результат не помещается в max_value
    """
    if bits < 0:
        raise ValueError(f"shift must be non-negative, got {bits}")
    result = value << bits
    if result > max_value:
        raise MathOverflow(f"shl overflow: {value} << {bits}")
    return result


def shr(value: int, bits: int) -> int:
    """Точный сдвиг вправо (отбрасывает младшие биты)."""
    if bits < 0:
        raise ValueError(f"shift must be non-negative, got {bits}")
    return value >> bits


# =============================================================================
# MUL-DIV
# =============================================================================


def mul_div(x: int, y: int, denominator: int, rounding: Rounding) -> int:
    """
    Вычисление x * y / denominator с явным округлением.

    Промежуточное произведение считается в ширине u256 (два u128 операнда),
    результат обязан помещаться в u128.

    Args:
        x: Первый множитель
        y: Второй множитель
        denominator: Делитель
        rounding: Rounding.UP (ceil) или Rounding.DOWN (floor)

    Returns:
        Округлённое частное

    Raises:
        DivisionByZero: Если denominator == 0
        MathOverflow: Если произведение > u256 или результат > u128

    Examples:
        >>> mul_div(7, 3, 2, Rounding.DOWN)
        10
        >>> mul_div(7, 3, 2, Rounding.UP)
        11
    """
    if denominator == 0:
        raise DivisionByZero(f"mul_div by zero: {x} * {y} / 0")

    prod = ensure_u256(x * y, "mul_div product")

    if rounding == Rounding.UP:
        result = (prod + denominator - 1) // denominator
    else:
        result = prod // denominator

    return ensure_u128(result, "mul_div result")


def mul_div_floor(x: int, y: int, denominator: int) -> int:
    """floor(x * y / denominator)"""
    return mul_div(x, y, denominator, Rounding.DOWN)


def mul_div_ceil(x: int, y: int, denominator: int) -> int:
    """ceil(x * y / denominator)"""
    return mul_div(x, y, denominator, Rounding.UP)


# =============================================================================
# Q64.64 СТЕПЕНЬ
# =============================================================================


def pow_q64(base: int, exponent: int) -> int:
    """
    Возведение Q64.64 числа в целую степень бинарным методом.

    На каждом установленном бите показателя result = result * base >> 64,
    base возводится в квадрат с тем же масштабированием. Количество шагов
    ограничено битовой длиной показателя.

    Args:
        base: Основание в Q64.64
        exponent: Целый показатель (может быть отрицательным)

    Returns:
        base^exponent в Q64.64

    Raises:
        DivisionByZero: Если отрицательный показатель обнулил результат

    Examples:
        >>> pow_q64(ONE_Q64, 100) == ONE_Q64
        True
        >>> pow_q64(2 * ONE_Q64, 3) == 8 * ONE_Q64
        True
    """
    if exponent == 0:
        return ONE_Q64
    if base == 0:
        return 0
    if base == ONE_Q64:
        return ONE_Q64

    is_negative = exponent < 0
    exp = -exponent if is_negative else exponent

    result = ONE_Q64
    current = base
    while exp > 0:
        if exp & 1:
            result = (result * current) // ONE_Q64
        current = (current * current) // ONE_Q64
        exp >>= 1

    if is_negative:
        result = div(ONE_Q64 * ONE_Q64, result)

    return result
