"""
Cron-driven engine for the stored schedules.

One long-lived task loops through the states of :class:`EngineState`:

* LOADING   -- read every schedule from the database.
* EMPTY     -- nothing can fire; sleep until the reload signal moves.
* COMPUTING -- pick the enabled schedule that fires soonest.
* WAITING   -- sleep until it is due, racing the reload signal.
* RUNNING   -- hand it, and every schedule due at the same instant, to the
              birthday task runner, then reload.

The engine never polls: with nothing to run it waits on the reload signal
only. A database failure while loading waits for the retry backoff (or a
reload, whichever comes first) before trying again.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from lobbycord.configuration.app_configuration import DEFAULT_RETRY_BACKOFF_SECONDS
from lobbycord.database.database import Database
from lobbycord.datatypes.schedule_datatypes import EngineState, Schedule, ScheduledRun, TaskType
from lobbycord.errors import InvalidCronExpressionError, ReloadSignalClosed
from lobbycord.scheduler.birthday_tasks import BirthdayTaskRunner
from lobbycord.scheduler.cron import next_occurrence
from lobbycord.scheduler.reload_signal import ReloadSignal
from lobbycord.util.date_utils import utc_now
from lobbycord.util.logger import get_logger

logger = get_logger("schedule_engine")


def find_next_schedule(schedules: Iterable[Schedule], now: datetime) -> Optional[ScheduledRun]:
    """
    Choose the enabled schedule whose next occurrence after ``now`` is soonest.

    Disabled schedules are ignored. Unparseable expressions are logged and
    skipped, as are expressions that never fire. Among schedules due at the
    same instant the first one in ``schedules`` wins.

    Returns:
        The winning schedule with its due time and wait, or None when nothing
        can fire.
    """
    best: Optional[ScheduledRun] = None
    for schedule in schedules:
        if not schedule.enabled:
            continue
        try:
            due_at = next_occurrence(schedule.cron_expression, now)
        except InvalidCronExpressionError as exc:
            logger.error("[SCHEDULER] Skipping schedule %s: %s", schedule.id, exc)
            continue
        if due_at is None:
            logger.warning(
                "[SCHEDULER] Schedule %s (%s) never fires, skipping",
                schedule.id, schedule.cron_expression,
            )
            continue

        wait_seconds = max((due_at - now).total_seconds(), 0.0)
        if best is None or wait_seconds < best.wait_seconds:
            best = ScheduledRun(schedule=schedule, due_at=due_at, wait_seconds=wait_seconds)
    return best


def find_schedules_due_at(schedules: Iterable[Schedule], now: datetime, due_at: datetime) -> List[Schedule]:
    """
    Every enabled schedule whose next occurrence after ``now`` is exactly ``due_at``.

    Schedules keep their input order.
    """
    due: List[Schedule] = []
    for schedule in schedules:
        if not schedule.enabled:
            continue
        try:
            occurrence = next_occurrence(schedule.cron_expression, now)
        except InvalidCronExpressionError:
            continue
        if occurrence == due_at:
            due.append(schedule)
    return due


class ScheduleEngine:
    """
    Runs stored schedules at their cron times.

    Args:
        database: Source of the schedules.
        runner: Executes the birthday tasks.
        reload_signal: Published whenever schedules change.
        retry_backoff_seconds: Pause after a failed schedule load.
        clock: Returns the current aware UTC time; replaced in tests.
    """

    def __init__(
        self,
        database: Database,
        runner: BirthdayTaskRunner,
        reload_signal: ReloadSignal,
        *,
        retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.database = database
        self.runner = runner
        self.retry_backoff_seconds = retry_backoff_seconds
        self.clock = clock
        self._subscription = reload_signal.subscribe()
        self._state = EngineState.LOADING
        self._task: asyncio.Task[None] | None = None
        self._last_due: Optional[datetime] = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _set_state(self, state: EngineState) -> None:
        if state is not self._state:
            logger.debug("[SCHEDULER] %s -> %s", self._state.name, state.name)
        self._state = state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Create the engine task if it is not already running."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run(), name="lobbycord-schedule-engine")

    async def shutdown(self) -> None:
        """Cancel the engine task and wait for it to finish. Safe to call twice."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[SCHEDULER] Schedule engine shut down")

    async def run(self) -> None:
        """Loop until the reload signal closes or the task is cancelled."""
        logger.info("[SCHEDULER] Schedule engine started")
        try:
            while True:
                await self.run_cycle()
        except ReloadSignalClosed:
            logger.info("[SCHEDULER] Reload signal closed, stopping schedule engine")
        except asyncio.CancelledError:
            logger.info("[SCHEDULER] Schedule engine cancelled")
            raise

    # ------------------------------------------------------------------
    # One pass through the state machine
    # ------------------------------------------------------------------

    async def run_cycle(self) -> None:
        """LOADING through to RUNNING (or an early return on reload/empty)."""
        self._set_state(EngineState.LOADING)
        try:
            schedules = await self.database.get_all_schedules()
        except Exception as exc:
            logger.error(
                "[SCHEDULER] Failed to load schedules, retrying in %ss: %s",
                self.retry_backoff_seconds, exc,
            )
            await self._wait_for_reload(self.retry_backoff_seconds)
            return

        self._set_state(EngineState.COMPUTING)
        reference = self._reference_time()
        next_run = find_next_schedule(schedules, reference)
        if next_run is None:
            self._set_state(EngineState.EMPTY)
            logger.info("[SCHEDULER] No runnable schedules, waiting for changes")
            await self._subscription.changed()
            return

        self._set_state(EngineState.WAITING)
        logger.info(
            "[SCHEDULER] Next: schedule %s (%s, guild %s) at %s",
            next_run.schedule.id, next_run.schedule.task_type.value,
            next_run.schedule.guild_id, next_run.due_at.isoformat(),
        )
        if await self._wait_for_reload(next_run.wait_seconds):
            logger.info("[SCHEDULER] Schedules changed, reloading")
            return

        # The loop clock can fire a hair before the wall clock reaches due_at
        remaining = (next_run.due_at - self.clock()).total_seconds()
        if remaining > 0:
            await asyncio.sleep(remaining)

        self._set_state(EngineState.RUNNING)
        self._last_due = next_run.due_at
        for schedule in find_schedules_due_at(schedules, reference, next_run.due_at):
            try:
                await self.dispatch(schedule)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("[SCHEDULER] Schedule %s failed: %s", schedule.id, exc)

    def _reference_time(self) -> datetime:
        """Now, but never before the last executed due time, so a run never repeats."""
        now = self.clock()
        if self._last_due is not None and now < self._last_due:
            return self._last_due
        return now

    async def _wait_for_reload(self, timeout: float) -> bool:
        """True if the reload signal moved within ``timeout`` seconds."""
        try:
            await asyncio.wait_for(self._subscription.changed(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def dispatch(self, schedule: Schedule) -> None:
        """Run the task a schedule stands for."""
        if schedule.task_type is TaskType.BIRTHDAY_NOTIFY:
            if schedule.guild_id is None:
                logger.error("[SCHEDULER] Birthday notify schedule %s has no guild, skipping", schedule.id)
                return
            await self.runner.run_birthday_notify(schedule.guild_id)
        elif schedule.task_type is TaskType.BIRTHDAY_ROLE_SYNC:
            if schedule.guild_id is None:
                await self.runner.run_birthday_role_sync_all()
            else:
                await self.runner.run_birthday_role_sync(schedule.guild_id)
