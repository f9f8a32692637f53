"""
Errors — Таксономия ошибок движка exposure/MTM

Все исключения наследуются от ExposureEngineError и от соответствующего
встроенного типа (ValueError / LookupError), чтобы вызывающий код мог ловить
их как обычные ошибки Python.

Политика обработки:
- MalformedFormulaError: никогда не выходит за пределы границы парсинга,
  формула заменяется пустым sentinel
- InvalidPeriodError: нога пропускается агрегацией и учитывается в skipped_leg_count
- UnresolvedPriceError: в MTM одной ноги превращается в явный результат UNRESOLVED
"""


class ExposureEngineError(Exception):
    """Базовое исключение движка"""


class MalformedFormulaError(ExposureEngineError, ValueError):
    """Сохранённая формула ценообразования не проходит разбор"""


class InvalidPeriodError(ExposureEngineError, ValueError):
    """Период (месяц или диапазон дат) пустой или не парсится"""


class UnresolvedPriceError(ExposureEngineError, LookupError):
    """Нет ни исторической, ни форвардной цены для инструмента/месяца"""

    def __init__(self, instrument: str, month: str, source: str):
        self.instrument = instrument
        self.month = month
        self.source = source
        super().__init__(f"No {source} price for {instrument!r} in {month}")
