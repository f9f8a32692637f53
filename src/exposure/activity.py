"""
Activity — Количество ног по месяцам

Отдельное окно из 7 месяцев (2 назад, текущий, 4 вперёд), не связанное
с 13-месячным горизонтом exposure.

Физическая нога относится к месяцу physical exposure, бумажная — к своему
расчётному месяцу. Ноги с нераспознанным периодом не считаются.
"""

import logging
from datetime import date, datetime
from typing import Iterable

from src.core.domain.errors import InvalidPeriodError
from src.core.domain.periods import build_trades_window, to_date
from src.core.domain.trade_leg import PaperTradeLeg, PhysicalTradeLeg
from src.exposure.aggregation import paper_exposure_month, physical_exposure_month


logger = logging.getLogger(__name__)


def count_trades_per_month(
    legs: Iterable[PhysicalTradeLeg | PaperTradeLeg],
    today: date | datetime | str,
) -> dict[str, int]:
    """
    Число ног по месяцам окна активности.

    Args:
        legs: Физические и бумажные ноги
        today: Опорная дата окна

    Returns:
        {month_code: count} по всем 7 месяцам окна (включая нулевые)
    """
    counts = {month: 0 for month in build_trades_window(to_date(today))}

    for leg in legs:
        try:
            if isinstance(leg, PhysicalTradeLeg):
                month = physical_exposure_month(leg)
            else:
                month = paper_exposure_month(leg)
        except InvalidPeriodError as e:
            logger.debug("Leg %s not counted: %s", leg.leg_id, e)
            continue
        if month in counts:
            counts[month] += 1

    return counts
