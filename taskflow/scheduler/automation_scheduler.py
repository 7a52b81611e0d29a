"""Automation Scheduler - Periodic automatic transition passes

Runs one pass over every project at a fixed interval. Each pass is bounded
by a deadline so a slow pass never overlaps the next one.
"""
import asyncio
from datetime import timedelta
from typing import Callable, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..engine.engine import WorkflowEngine
from ..engine.condition_evaluator import get_condition_registry
from ..utils.logger import get_logger, set_correlation_id
from ..utils.idgen import generate_correlation_id
from ..utils.time import utc_now

logger = get_logger(__name__)


class AutomationScheduler:
    """
    APScheduler wrapper driving ``WorkflowEngine.process_automatic_transitions``
    
    The engine is built lazily through ``engine_factory`` so the scheduler
    can be created before the database is reachable.
    """
    
    def __init__(
        self,
        engine_factory: Callable[[], WorkflowEngine],
        interval_seconds: Optional[int] = None,
        batch_timeout_seconds: Optional[int] = None
    ):
        self.engine_factory = engine_factory
        self.interval_seconds = interval_seconds or settings.automation_interval_seconds
        self.batch_timeout_seconds = batch_timeout_seconds or settings.automation_batch_timeout_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False
        self._pass_count = 0
    
    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("Automation scheduler already running")
            return
        
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_pass,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id="process_automatic_transitions",
            name="Process automatic workflow transitions",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(
            "Automation scheduler started",
            extra={
                "interval_seconds": self.interval_seconds,
                "batch_timeout_seconds": self.batch_timeout_seconds
            }
        )
    
    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("Automation scheduler stopped")
    
    @property
    def is_running(self) -> bool:
        return self._is_running
    
    async def run_pass(self) -> int:
        """Run one pass off the event loop; returns the number of tasks moved"""
        set_correlation_id(generate_correlation_id())
        self._pass_count += 1
        deadline = utc_now() + timedelta(seconds=self.batch_timeout_seconds)
        
        try:
            engine = self.engine_factory()
            processed = await asyncio.to_thread(
                engine.process_automatic_transitions, None, deadline
            )
        except Exception as e:
            logger.error(f"Automatic transition pass failed: {e}", exc_info=True)
            return 0
        
        if processed:
            logger.info(
                f"Automatic transition pass {self._pass_count} moved {len(processed)} tasks"
            )
        return len(processed)


# Global scheduler instance
_scheduler: Optional[AutomationScheduler] = None


def get_scheduler(engine_factory: Optional[Callable[[], WorkflowEngine]] = None) -> AutomationScheduler:
    """Get or create scheduler instance"""
    global _scheduler
    if _scheduler is None:
        if engine_factory is None:
            from ..repositories.mongo_store import MongoWorkflowStore
            engine_factory = lambda: WorkflowEngine(
                MongoWorkflowStore(), condition_registry=get_condition_registry()
            )
        _scheduler = AutomationScheduler(engine_factory)
    return _scheduler


def start_scheduler(engine_factory: Optional[Callable[[], WorkflowEngine]] = None) -> None:
    """Start the global scheduler"""
    scheduler = get_scheduler(engine_factory)
    scheduler.start()


def stop_scheduler() -> None:
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
