"""
Exceptions — иерархия ошибок движка

Три класса отказов:
- Арифметические (MathError и наследники): дефект или невалидная конфигурация,
  всегда пропагируют, повтор с теми же данными бессмысленен
- Доменные отказы котировки (InsufficientLiquidity, PoolCompleted)
- Отказы конфигурации (InvalidConfiguration) с машиночитаемой причиной

Насыщающие политики (cap fee numerator на MAX_FEE_NUMERATOR) не являются
ошибками и документированы в fee_math.
"""


# =============================================================================
# ARITHMETIC
# =============================================================================


class MathError(ArithmeticError):
    """Базовая ошибка целочисленной арифметики фиксированной точки."""
    pass


class DivisionByZero(MathError, ZeroDivisionError):
    """Деление на ноль в mul_div / div / delta-формулах."""
    pass


class MathUnderflow(MathError):
    """
    Вычитание b из a при b > a.

    Беззнаковая арифметика не допускает wraparound: любое отрицательное
    промежуточное значение означает ошибку в вызывающем коде или в данных.
    """
    pass


class MathOverflow(MathError):
    """Результат не помещается в целевую разрядность (u64/u128/u256)."""
    pass


class NonFiniteResult(MathError):
    """Decimal-вычисление дало NaN/Inf на границе designer → integer."""
    pass


class FeeInversionError(MathError):
    """
    Обратный расчёт fee (excluded → included) не прошёл прямую проверку.

    Повторное применение fee к восстановленной сумме дало меньше исходной
    excluded-суммы: округление инверсии некорректно.
    """
    pass


# =============================================================================
# QUOTE
# =============================================================================


class InsufficientLiquidity(Exception):
    """
    Сегменты кривой не способны поглотить запрошенный объём.

    Вызывающая сторона решает: повторить с меньшим объёмом или выбрать
    другую кривую.
    """

    def __init__(self, message: str, amount_left: int = 0):
        super().__init__(message)
        self.amount_left = amount_left


class PoolCompleted(Exception):
    """
    Виртуальная фаза пула завершена: quote reserve достиг migration threshold.

    Не является дефектом. QuoteEngine возвращает отклонённую котировку;
    исключение бросается только по явному запросу (raise_for_rejection).
    """

    def __init__(self, quote_reserve: int, migration_quote_threshold: int):
        super().__init__(
            f"pool completed: quote_reserve={quote_reserve} >= "
            f"migration_quote_threshold={migration_quote_threshold}"
        )
        self.quote_reserve = quote_reserve
        self.migration_quote_threshold = migration_quote_threshold


# =============================================================================
# CONFIGURATION
# =============================================================================


class InvalidConfiguration(ValueError):
    """
    Конфигурация пула нарушает инвариант (форма кривой, границы fee, vesting,
    достаточность supply).

    Attributes:
        reason: машиночитаемый код причины (например, 'curve_invalid')
        details: человекочитаемое описание
    """

    def __init__(self, reason: str, details: str = ""):
        message = f"{reason}: {details}" if details else reason
        super().__init__(message)
        self.reason = reason
        self.details = details
