"""Designer — проектирование конфигурации пула по человеческим параметрам."""

from .designer import CurveDesigner, DesignerConfig, PoolParams
from .strategies import CurveDesign, TwoSegmentSolution, locked_vesting_params

__all__ = [
    "CurveDesigner",
    "DesignerConfig",
    "PoolParams",
    "CurveDesign",
    "TwoSegmentSolution",
    "locked_vesting_params",
]
