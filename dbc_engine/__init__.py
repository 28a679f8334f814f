"""
dbc-engine — детерминированное ценообразование dynamic bonding curve.

Fixed-point математика кривой, fee, проектирование конфигурации пула и
котировки. Без I/O: все операции — чистые функции над снапшотами.
"""
