# WorldGraph Translation module

from .biome import lower_biome_wrapper, raise_biome_wrapper
from .lowering import Lowerer, lower
from .raising import RaiseResult, Raiser, raise_asset

__all__ = [
    "Lowerer",
    "lower",
    "Raiser",
    "RaiseResult",
    "raise_asset",
    "lower_biome_wrapper",
    "raise_biome_wrapper",
]
