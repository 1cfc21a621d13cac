"""
Named cron jobs with at-most-one concurrent run per job.

APScheduler only ticks; the running flag, last-run bookkeeping and manual
triggers live here so /api/monitor/jobs can report them.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from nastools.utils.logger import job_log_context

logger = logging.getLogger(__name__)

JobFn = Callable[[], Awaitable[Any]]

SKIPPED = "skipped"
SUCCEEDED = "succeeded"
FAILED = "failed"
UNKNOWN = "unknown"


def build_cron_trigger(expression: str, tz) -> CronTrigger:
    """Five-field cron expression -> CronTrigger, ValueError when invalid"""
    if len(expression.split()) != 5:
        raise ValueError(f"Expected five cron fields, got {expression!r}")
    return CronTrigger.from_crontab(expression, timezone=tz)


def compute_next_run(expression: str, now: datetime) -> Optional[datetime]:
    """Next fire time strictly after now, in now's timezone; None for an invalid expression"""
    tz = now.tzinfo or timezone.utc
    try:
        trigger = build_cron_trigger(expression, tz)
    except ValueError:
        return None
    # CronTrigger may return now itself when now falls exactly on a fire time
    return trigger.get_next_fire_time(None, now + timedelta(microseconds=1))


@dataclass
class JobEntry:
    name: str
    description: str
    schedule: str
    fn: JobFn
    run_on_start: bool = False
    running: bool = False
    run_id: Optional[str] = None
    last_run_at: Optional[datetime] = None
    last_run_duration_ms: Optional[int] = None
    last_run_error: Optional[str] = None


@dataclass
class JobStatus:
    name: str
    description: str
    schedule: str
    running: bool
    last_run_at: Optional[datetime] = None
    last_run_duration_ms: Optional[int] = None
    last_run_error: Optional[str] = None
    next_run_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("last_run_at", "next_run_at"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data


class JobScheduler:

    def __init__(self, timezone_name: str = "UTC"):
        self.tz = ZoneInfo(timezone_name)
        self.jobs: Dict[str, JobEntry] = {}
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._tasks: Set[asyncio.Task] = set()

    def register(self, name: str, description: str, schedule: str, fn: JobFn, run_on_start: bool = False):
        """Register a job; registering an existing name again keeps the first registration"""
        if name in self.jobs:
            logger.debug(f"Job {name} already registered")
            return self.jobs[name]

        build_cron_trigger(schedule, self.tz)
        entry = JobEntry(name=name, description=description, schedule=schedule, fn=fn, run_on_start=run_on_start)
        self.jobs[name] = entry
        logger.info(f"Registered job {name} ({schedule})")
        return entry

    async def run(self, name: str, trigger: str = "manual") -> str:
        entry = self.jobs.get(name)
        if entry is None:
            logger.warning(f"Unknown job {name}")
            return UNKNOWN

        if entry.running:
            logger.info(f"Job {name} is already running (run {entry.run_id}), skipping {trigger} run")
            return SKIPPED

        entry.running = True
        entry.run_id = uuid.uuid4().hex[:8]
        entry.last_run_error = None
        started_at = datetime.now(timezone.utc)
        started = time.monotonic()

        with job_log_context(name, entry.run_id):
            logger.info(f"Job {name} started ({trigger})")
            try:
                await entry.fn()
                result = SUCCEEDED
            except Exception as e:
                entry.last_run_error = str(e) or e.__class__.__name__
                result = FAILED
                logger.error(f"✗ Job {name} failed: {e}", exc_info=True)
            finally:
                entry.last_run_at = started_at
                entry.last_run_duration_ms = int((time.monotonic() - started) * 1000)
                entry.running = False

            if result == SUCCEEDED:
                logger.info(f"✓ Job {name} finished in {entry.last_run_duration_ms} ms")
        return result

    def status(self) -> List[JobStatus]:
        now = datetime.now(self.tz)
        return [
            JobStatus(
                name=entry.name,
                description=entry.description,
                schedule=entry.schedule,
                running=entry.running,
                last_run_at=entry.last_run_at,
                last_run_duration_ms=entry.last_run_duration_ms,
                last_run_error=entry.last_run_error,
                next_run_at=compute_next_run(entry.schedule, now),
            )
            for entry in self.jobs.values()
        ]

    def trigger(self, name: str, source: str = "manual") -> bool:
        """Start a run in the background; False for unknown jobs"""
        if name not in self.jobs:
            return False
        task = asyncio.get_running_loop().create_task(self.run(name, trigger=source))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    def start(self):
        if self._scheduler is not None and self._scheduler.running:
            return

        self._scheduler = AsyncIOScheduler(timezone=self.tz)
        for entry in self.jobs.values():
            self._scheduler.add_job(
                self.run,
                trigger=build_cron_trigger(entry.schedule, self.tz),
                args=[entry.name, "schedule"],
                id=entry.name,
                name=entry.description,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        self._scheduler.start()
        logger.info(f"✓ Scheduler started with {len(self.jobs)} jobs")

        for entry in self.jobs.values():
            if entry.run_on_start:
                self.trigger(entry.name, source="startup")

    async def shutdown(self):
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self._scheduler = None
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
