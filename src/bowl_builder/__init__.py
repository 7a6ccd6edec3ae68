"""
Bowl Builder - Build-your-own-bowl configurator tooling

Keeps the ingredient category taxonomy, stored display orderings and bowl
template limits consistent, and prices customer bowl selections for the
storefront calculator.
"""

__version__ = "0.1.0"

from . import calculator
from . import catalog
from . import taxonomy
from . import utils

__all__ = ["calculator", "catalog", "taxonomy", "utils"]
