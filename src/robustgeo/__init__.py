# Andy Zhao
"""
robustgeo: robust estimation of geometric models from point correspondences.
"""

from ._logging import setup_logging, enable_debug_logging

setup_logging()

__version__ = "0.1.0"

__all__ = ["enable_debug_logging", "__version__"]
