# Core module initialization
from .config import Config
from .strategy_engine import Order, Position, StrategyEngine, Trade
