# WorldGraph: bidirectional translator between the editor's internal asset
# graph and the engine's native asset format.
#
# The translator is pure: it receives and returns plain trees (dicts, lists,
# scalars) and performs no file I/O.

import logging

from .utils.settings import get_settings

# Global logger for the package
logger = logging.getLogger(__name__)
logger.setLevel(get_settings().log_level)

handler = logging.StreamHandler()
handler.setLevel(logging.DEBUG)
formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
handler.setFormatter(formatter)
logger.addHandler(handler)

from .translation.biome import lower_biome_wrapper, raise_biome_wrapper  # noqa: E402
from .translation.lowering import lower  # noqa: E402
from .translation.raising import RaiseResult, raise_asset  # noqa: E402
from .utils.export_lint import lint_export  # noqa: E402
from .utils.format_detection import is_native_format  # noqa: E402

__version__ = "0.1.0"

__all__ = [
    "lower",
    "lower_biome_wrapper",
    "raise_asset",
    "raise_biome_wrapper",
    "RaiseResult",
    "is_native_format",
    "lint_export",
]
