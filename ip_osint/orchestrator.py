"""
orchestrator.py - Runs every source against one IP and builds the Report

Usage:
    orchestrator = Orchestrator(connection, store=store)
    report = await orchestrator.run("8.8.8.8")

Phases, each fanned out over all sources with asyncio.gather:
  1. open one background tab per source
  2. wait for each tab to finish loading
  3. run each source's ExtractionTask on its own tab
Then the tabs we opened are closed (always, exactly once), the Report is
assembled with one slot per source and persisted if a store is set.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from .config import Settings
from .connection import BrowserConnection
from .models import ExtractionResult, Report, SoftError
from .scrapers import ExtractionTask, default_tasks
from .storage import ReportStore
from .targets import Target, TargetLifecycle

logger = logging.getLogger(__name__)


async def _guarded(fn, *args):
    # Turns a synchronous raise inside fn into a failed awaitable for gather()
    return await fn(*args)


class Orchestrator:
    def __init__(self, connection: BrowserConnection, settings: Optional[Settings] = None,
                 tasks: Optional[Iterable[ExtractionTask]] = None,
                 store: Optional[ReportStore] = None,
                 lifecycle: Optional[TargetLifecycle] = None):
        self.connection = connection
        self.settings = settings or connection.settings
        self.tasks = tuple(tasks) if tasks is not None else default_tasks(self.settings)
        self.store = store
        self.lifecycle = lifecycle or TargetLifecycle(connection, self.settings)

    async def run(self, ip: str) -> Report:
        """
        Collect `ip` from every source. Never raises: a source that cannot
        be opened, loaded or scraped gets a failure slot and a soft-error.
        """
        logger.info(f"Collecting {ip} from {len(self.tasks)} sources")
        results: Dict[str, ExtractionResult] = {}
        errors: List[SoftError] = []
        created: List[Target] = []

        def fail(task: ExtractionTask, message: str):
            logger.warning(f"[{task.name}] {message}")
            results[task.key] = task.failure(ip, message)
            errors.append(SoftError(source=task.name, message=message))

        try:
            # 1. Tabs
            outcomes = await asyncio.gather(
                *(_guarded(self._open, task, ip) for task in self.tasks),
                return_exceptions=True
            )
            opened = []
            for task, outcome in zip(self.tasks, outcomes):
                if isinstance(outcome, BaseException):
                    fail(task, f"Tab creation failed: {outcome}")
                else:
                    created.append(outcome)
                    opened.append((task, outcome))

            # 2. Load
            outcomes = await asyncio.gather(
                *(_guarded(self.lifecycle.await_loaded, target) for _, target in opened),
                return_exceptions=True
            )
            loaded = []
            for (task, target), outcome in zip(opened, outcomes):
                if isinstance(outcome, BaseException):
                    fail(task, f"Page load failed: {outcome}")
                else:
                    loaded.append((task, target))

            # 3. Extraction
            outcomes = await asyncio.gather(
                *(_guarded(task.run, self.connection, target, ip) for task, target in loaded),
                return_exceptions=True
            )
            for (task, _), outcome in zip(loaded, outcomes):
                if isinstance(outcome, BaseException):
                    fail(task, f"Scraping failed: {outcome}")
                elif not outcome.ok:
                    fail(task, outcome.message)
                else:
                    results[task.key] = outcome
        except Exception as e:
            logger.error(f"Collection of {ip} aborted: {e}")
            for task in self.tasks:
                if task.key not in results:
                    fail(task, f"Collection aborted: {e}")
        finally:
            await asyncio.gather(
                *(_guarded(self.lifecycle.destroy, target) for target in created),
                return_exceptions=True
            )

        report = Report(
            ip=ip,
            sources={task.key: results[task.key] for task in self.tasks},
            errors=tuple(errors)
        )

        if self.store is not None:
            try:
                await self.store.store(ip, report)
            except Exception as e:
                logger.error(f"Failed to store report for {ip}: {e}")
                report = report.model_copy(update={
                    "errors": report.errors + (SoftError(source="Storage", message=str(e)),)
                })

        logger.info(f"Collected {ip}: {len(report.succeeded())} ok, {len(report.failed())} failed")
        return report

    async def _open(self, task: ExtractionTask, ip: str) -> Target:
        return await self.lifecycle.create(task.url_for(ip))
