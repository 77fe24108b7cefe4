"""
Strategy Engine
Simulated order execution and position tracking for strategy.* calls
"""
import math
from collections.abc import Mapping
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from loguru import logger


@dataclass
class Position:
    """Single long-only position"""
    size: int = 0
    avg_price: float = 0.0


@dataclass
class Order:
    """Result of one executed (possibly partial) order"""
    order_id: str
    action: str  # buy or sell
    requested_qty: float
    filled_qty: int
    price: float
    slippage: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class Trade:
    """Fill record kept in the trade history"""
    side: str
    qty: int
    price: float
    order_id: str
    commission: float = 0.0
    pnl: Optional[float] = None


@dataclass
class Commission:
    """Commission settings; percent is a fraction of traded value"""
    percent: float = 0.0


def _options(options: tuple, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge an options mapping or trailing name/value pairs with keyword options"""
    merged: Dict[str, Any] = {}
    if len(options) == 1 and isinstance(options[0], Mapping):
        merged.update(options[0])
    else:
        pairs = list(options)
        for name, value in zip(pairs[0::2], pairs[1::2]):
            if isinstance(name, str):
                merged[name] = value
    merged.update(kwargs)
    return merged


def _as_float(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _is_quantity(value: Any) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(value, (bool, np.bool_))


class StrategyEngine:
    """
    Strategy simulator

    Fills orders at the latest close supplied by `price_source`, applying
    slippage, partial fills and commission. Long only: sells never take the
    position below zero.
    """

    # Direction constants, strategy.long / strategy.short in scripts
    long = 'long'
    short = 'short'

    def __init__(self, price_source: Callable[[], float], commission_percent: float = 0.0,
                 default_qty: int = 1):
        self.price_source = price_source
        self.commission = Commission(percent=commission_percent)
        self.default_qty = default_qty

        self.state = Position()
        self.realized_pnl = 0.0

        self.entries: List[Dict] = []
        self.exits: List[Dict] = []
        self.orders: List[Order] = []
        self.trades: List[Trade] = []

        # Stats
        self.winning_trades = 0
        self.losing_trades = 0
        self.total_commission = 0.0

    def entry(self, id: str, *args, **kwargs) -> Optional[Order]:
        """
        strategy.entry(): record the entry and trade `qty`

        Accepts entry(id, qty) and entry(id, direction, qty); qty may also be
        named. A short entry sells, so it only reduces a long position.
        """
        options = list(args)
        direction = self.long
        if options and isinstance(options[0], str) and options[0].lower() in (self.long, self.short):
            direction = options.pop(0).lower()
        qty = kwargs.pop('qty', None)
        if qty is None and options and _is_quantity(options[0]):
            qty = options.pop(0)
        if qty is None:
            qty = self.default_qty
        self.entries.append({'id': id, 'qty': qty})
        action = 'buy' if direction == self.long else 'sell'
        return self.order(id, action, qty, *options, **kwargs)

    def exit(self, id: str, *options, **kwargs) -> Optional[Order]:
        """strategy.exit(): record the exit and sell the whole position"""
        self.exits.append({'id': id})
        if self.state.size > 0:
            return self.order(id, 'sell', self.state.size, *options, **kwargs)
        return None

    def close_all(self, *options, **kwargs) -> Optional[Order]:
        """strategy.close_all(): flatten the position"""
        return self.exit('close_all', *options, **kwargs)

    def order(self, id: str, action: str, qty: Any, *options, **kwargs) -> Optional[Order]:
        """
        strategy.order(): execute a market order at the latest close

        Options (mapping, name/value pairs or keywords):
            slippage: fraction added to buys and taken from sells (default 0)
            fillPercent / fill_percent: fraction of qty filled, clamped to [0, 1]
        """
        opts = _options(options, kwargs)
        slippage = _as_float(opts.get('slippage', 0.0), 0.0)
        fill_percent = _as_float(opts.get('fillPercent', opts.get('fill_percent', 1.0)), 1.0)
        fill_percent = min(1.0, max(0.0, fill_percent))

        side = str(action).lower()
        if side not in ('buy', 'sell'):
            logger.warning(f"Ignoring order {id}: unknown action {action!r}")
            return None

        requested = max(0.0, _as_float(qty, 0.0))
        filled = int(math.floor(requested * fill_percent))

        price = float(self.price_source())
        adj_price = price * (1 + slippage) if side == 'buy' else price * (1 - slippage)

        if side == 'buy':
            executed = filled
        else:
            executed = min(filled, self.state.size)

        if executed <= 0:
            logger.debug(f"Order {id} {side} {requested}: nothing to fill")
            return None

        commission = adj_price * executed * self.commission.percent
        self.total_commission += commission

        if side == 'buy':
            self._apply_buy(id, executed, adj_price, commission)
        else:
            self._apply_sell(id, executed, adj_price, commission)

        order = Order(
            order_id=str(id),
            action=side,
            requested_qty=requested,
            filled_qty=executed,
            price=adj_price,
            slippage=slippage
        )
        self.orders.append(order)
        logger.info(f"Strategy order filled: {id} - {side} {executed}/{requested} @ {adj_price:.4f}")
        return order

    def _apply_buy(self, order_id: str, qty: int, price: float, commission: float):
        """Add to the position; commission is folded into the average price"""
        pos = self.state
        new_size = pos.size + qty
        pos.avg_price = (pos.avg_price * pos.size + price * qty + commission) / new_size
        pos.size = new_size

        self.trades.append(Trade(side='buy', qty=qty, price=price, order_id=str(order_id),
                                 commission=commission))

    def _apply_sell(self, order_id: str, qty: int, price: float, commission: float):
        """Reduce the position and realize P&L against the average price"""
        pos = self.state
        pnl = (price - pos.avg_price) * qty - commission
        self.realized_pnl += pnl
        if pnl >= 0:
            self.winning_trades += 1
        else:
            self.losing_trades += 1

        pos.size -= qty
        if pos.size == 0:
            pos.avg_price = 0.0

        self.trades.append(Trade(side='sell', qty=qty, price=price, order_id=str(order_id),
                                 commission=commission, pnl=pnl))

    def position(self, *args, **options) -> Dict[str, float]:
        """strategy.position(): snapshot of size and average price"""
        return {'size': self.state.size, 'avg': self.state.avg_price}

    def pnl(self, *args, **options) -> float:
        """strategy.pnl(): realized plus unrealized P&L at the latest close"""
        unrealized = (float(self.price_source()) - self.state.avg_price) * self.state.size
        return self.realized_pnl + unrealized

    def summary(self) -> Dict:
        """Get trading statistics"""
        closed = self.winning_trades + self.losing_trades
        return {
            'total_trades': len(self.trades),
            'closed_trades': closed,
            'winning_trades': self.winning_trades,
            'losing_trades': self.losing_trades,
            'win_rate': (self.winning_trades / closed * 100) if closed > 0 else 0,
            'realized_pnl': self.realized_pnl,
            'total_pnl': self.pnl(),
            'total_commission': self.total_commission,
            'position_size': self.state.size,
            'avg_price': self.state.avg_price
        }
