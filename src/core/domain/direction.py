"""
Direction — Направление сделки и знаковые множители

В движке ДВА разных множителя направления, и их нельзя объединять:

    position_direction_factor   buy = +1, sell = -1
        Агрегация exposure: отслеживает направление позиции.
        Покупка увеличивает длинную позицию по продукту.

    pnl_direction_factor        buy = -1, sell = +1
        MTM оценка: mtm_value = (trade_price - mtm_price) * qty * factor.
        Покупка теряет стоимость, когда рынок ниже цены сделки,
        и зарабатывает, когда рынок выше.
"""

from enum import Enum


class BuySell(str, Enum):
    """Направление сделки"""

    BUY = "buy"
    SELL = "sell"


def position_direction_factor(buy_sell: BuySell) -> int:
    """Множитель направления позиции для агрегации exposure: buy +1, sell -1"""
    return 1 if BuySell(buy_sell) == BuySell.BUY else -1


def pnl_direction_factor(buy_sell: BuySell) -> int:
    """Множитель направления P&L для MTM оценки: buy -1, sell +1"""
    return -1 if BuySell(buy_sell) == BuySell.BUY else 1
