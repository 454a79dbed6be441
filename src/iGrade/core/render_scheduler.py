"""Single in-flight render coalescing for the full-resolution preview.

:class:`RenderScheduler` is a plain state machine with no threads or Qt
objects.  It decides *when* a render is dispatched and which results are
presented; the caller supplies the ``dispatch`` hook that actually starts the
work (a worker pool job, or a synchronous render on the next frame tick) and
reports back through :meth:`RenderScheduler.complete` or
:meth:`RenderScheduler.fail`.

At most one job is in flight.  Requests arriving while busy only raise the
pending flag; when the job finishes, one follow-up render is started with the
*latest* parameters from ``params_provider`` so intermediate values are
dropped.
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from .params import FilterParams

_LOGGER = logging.getLogger(__name__)

SourceT = TypeVar("SourceT")
ResultT = TypeVar("ResultT")


class SchedulerState(enum.Enum):
    IDLE = "idle"
    BUSY = "busy"


@dataclass(frozen=True)
class RenderJob(Generic[SourceT]):
    """One dispatched render request."""

    job_id: int
    source_token: int
    source: SourceT
    params: FilterParams
    seed: int


class RenderScheduler(Generic[SourceT, ResultT]):
    """Idle/Busy state machine with a pending flag."""

    def __init__(
        self,
        dispatch: Callable[[RenderJob[SourceT]], None],
        params_provider: Callable[[], FilterParams],
        *,
        seed_factory: Optional[Callable[[], int]] = None,
        present: Optional[Callable[[RenderJob[SourceT], ResultT], None]] = None,
        on_failure: Optional[Callable[[RenderJob[SourceT], str], None]] = None,
    ) -> None:
        self._dispatch = dispatch
        self._params_provider = params_provider
        self._seed_factory = seed_factory or (lambda: 0)
        self._present = present
        self._on_failure = on_failure

        self._state = SchedulerState.IDLE
        self._pending = False
        self._active: Optional[RenderJob[SourceT]] = None
        self._source: Optional[SourceT] = None
        self._source_token = 0
        self._job_ids = itertools.count(1)

    # ------------------------------------------------------------------
    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def active_job(self) -> Optional[RenderJob[SourceT]]:
        return self._active

    @property
    def source_token(self) -> int:
        return self._source_token

    def has_source(self) -> bool:
        return self._source is not None

    # ------------------------------------------------------------------
    def set_source(self, source: SourceT) -> int:
        """Replace the render source and return its identity token.

        The scheduler goes back to Idle with no pending request.  A job still in
        flight keeps rendering the old source; its result is dropped when it
        arrives because its token no longer matches.
        """

        self._source = source
        self._source_token += 1
        self._state = SchedulerState.IDLE
        self._pending = False
        self._active = None
        return self._source_token

    def clear_source(self) -> None:
        """Forget the render source; nothing is dispatched until a new one is set.

        Like :meth:`set_source`, the token advances so a job still in flight has
        its result dropped.
        """

        self._source = None
        self._source_token += 1
        self._state = SchedulerState.IDLE
        self._pending = False
        self._active = None

    def request_render(self, params: Optional[FilterParams] = None) -> Optional[RenderJob[SourceT]]:
        """Dispatch a render now, or flag one for later when already busy.

        Returns the dispatched job, or ``None`` when the request was coalesced
        into the pending flag or no source has been set yet.
        """

        if self._source is None:
            return None
        if self._state is SchedulerState.BUSY:
            self._pending = True
            return None

        job = RenderJob(
            job_id=next(self._job_ids),
            source_token=self._source_token,
            source=self._source,
            params=params if params is not None else self._params_provider(),
            seed=int(self._seed_factory()),
        )
        self._state = SchedulerState.BUSY
        self._active = job
        try:
            self._dispatch(job)
        except Exception:
            # Nothing is in flight if the job could not even be started.
            self._state = SchedulerState.IDLE
            self._active = None
            raise
        return job

    def complete(self, job: RenderJob[SourceT], result: ResultT) -> bool:
        """Record that *job* finished with *result*.

        Returns ``True`` when the result was presented.  Results of jobs that
        are no longer active, or that rendered a replaced source, are dropped.
        """

        if not self._finish(job):
            return False

        if job.source_token != self._source_token:
            _LOGGER.debug("Dropping render %d for superseded source", job.job_id)
            self._follow_up()
            return False

        try:
            if self._present is not None:
                self._present(job, result)
        finally:
            # A failing presenter must not strand the pending request.
            self._follow_up()
        return True

    def fail(self, job: RenderJob[SourceT], message: str) -> None:
        """Record that *job* failed; Busy is cleared so later requests proceed."""

        if not self._finish(job):
            return
        if self._on_failure is not None:
            self._on_failure(job, message)
        self._follow_up()

    # ------------------------------------------------------------------
    def _finish(self, job: RenderJob[Any]) -> bool:
        if self._active is None or job.job_id != self._active.job_id:
            _LOGGER.debug("Ignoring completion of inactive render %d", job.job_id)
            return False
        self._state = SchedulerState.IDLE
        self._active = None
        return True

    def _follow_up(self) -> None:
        if self._pending:
            self._pending = False
            self.request_render(self._params_provider())


__all__ = ["RenderJob", "RenderScheduler", "SchedulerState"]
