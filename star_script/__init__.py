"""
Star Script - Pine-like indicator & strategy scripting
"""

__version__ = "1.0.0"

from .core.config import Config
from .core.strategy_engine import StrategyEngine
from .language.parser import parse
from .language.transpiler import transpile_pine_to_star, transpile_to_module
from .runtime.runner import run_script
