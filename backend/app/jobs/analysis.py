from __future__ import annotations

import asyncio
import logging

from app.analysis.service import AnalysisService
from app.config.settings import AnalysisSettings
from app.jobs.periodic import PeriodicTask
from app.schemas.strategy import StrategyRecord

logger = logging.getLogger(__name__)


class AnalysisScheduler:
    def __init__(self, service: AnalysisService, settings: AnalysisSettings) -> None:
        self.service = service
        self.settings = settings
        self.symbols = [symbol.upper() for symbol in settings.symbols]
        self._timer: PeriodicTask | None = None

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.running

    def initialize(self) -> None:
        if self._timer is not None:
            return
        self._timer = PeriodicTask("analysis-scheduler", self.settings.interval_seconds, self.run_cycle)
        self._timer.start()

    async def run_cycle(self) -> list[StrategyRecord]:
        results = await asyncio.gather(
            *(self.service.analyze_and_record(symbol) for symbol in self.symbols),
            return_exceptions=True,
        )
        records: list[StrategyRecord] = []
        for symbol, result in zip(self.symbols, results):
            if isinstance(result, BaseException):
                logger.error("Auto analysis for %s failed: %s", symbol, result)
                continue
            records.append(result)
        logger.info("Auto analysis recorded %d/%d strategies", len(records), len(self.symbols))
        return records

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.stop()
