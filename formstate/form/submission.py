import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from formstate.core import Signal
from formstate.exceptions import DefectError, SubmitError, global_error_handler
from formstate.form.mode import ON_BLUR, ON_CHANGE, ValidationMode
from formstate.form.state import FormState, SubmittedValues
from formstate.form.validation import ErrorEntry, route_errors_with_source
from formstate.schema.ast import Schema
from formstate.schema.issues import ParseError
from formstate.schema.parser import decode_issue
from formstate.utils.async_task import maybe_await, run_async
from formstate.utils.cancellation import CancellationToken
from formstate.utils.debounce import Debounced

logger = logging.getLogger(__name__)


class SubmitPhase(str, Enum):
    IDLE = "Idle"
    DECODING = "Decoding"
    DECODE_FAILED = "DecodeFailed"
    SUBMITTING = "Submitting"
    SUCCESS = "Success"
    SUBMIT_FAILED = "SubmitFailed"


INITIAL = "Initial"
SUCCESS = "Success"
FAILURE = "Failure"

DECODE = "decode"
SUBMIT = "submit"
DEFECT = "defect"


class SubmitResult:
    """
    Observable outcome of the latest submission.

    ``outcome`` is "Initial", "Success" (``value`` holds what the submit
    operation returned) or "Failure" (``failure_kind`` is "decode",
    "submit" or "defect" and ``error`` holds the failure). ``waiting`` is
    True while a submission is in flight; the previous outcome stays
    readable meanwhile.
    """
    __slots__ = ('waiting', 'outcome', 'value', 'error', 'failure_kind')

    def __init__(self, waiting: bool = False, outcome: str = INITIAL, value: Any = None,
                 error: Optional[BaseException] = None, failure_kind: Optional[str] = None):
        self.waiting = waiting
        self.outcome = outcome
        self.value = value
        self.error = error
        self.failure_kind = failure_kind

    @classmethod
    def success(cls, value: Any) -> 'SubmitResult':
        return cls(outcome=SUCCESS, value=value)

    @classmethod
    def failure(cls, kind: str, error: BaseException) -> 'SubmitResult':
        return cls(outcome=FAILURE, error=error, failure_kind=kind)

    def as_waiting(self, waiting: bool = True) -> 'SubmitResult':
        return SubmitResult(waiting, self.outcome, self.value, self.error, self.failure_kind)

    @property
    def is_success(self) -> bool:
        return self.outcome == SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.outcome == FAILURE

    def __repr__(self):
        return (f"SubmitResult(waiting={self.waiting!r}, outcome={self.outcome!r}, value={self.value!r}, "
                f"error={self.error!r}, failure_kind={self.failure_kind!r})")


class SubmitContext:
    """Second argument of a submit operation."""
    __slots__ = ('decoded', 'encoded', 'runtime', 'form', 'cancellation')

    def __init__(self, decoded: Any, encoded: Any, runtime: Any = None, form: Any = None,
                 cancellation: Optional[CancellationToken] = None):
        self.decoded = decoded
        self.encoded = encoded
        self.runtime = runtime
        self.form = form
        self.cancellation = cancellation or CancellationToken()


class SubmissionCoordinator:
    """
    Runs submissions against a form state signal.

    One submission is in flight at a time. Auto-submit listens to two
    separate streams: identity changes of ``values`` (user edits) and the
    waiting flag of the result (completion). An edit made while a
    submission runs is remembered and replayed once on completion, so
    completion itself never retriggers a submit.
    """

    def __init__(self, schema: Schema, state: Signal, on_submit: Optional[Callable], mode: ValidationMode,
                 runtime: Any = None, form: Any = None,
                 before_decode: Optional[Callable[[], None]] = None,
                 on_decode_failure: Optional[Callable[[Dict[str, ErrorEntry]], None]] = None,
                 on_decode_success: Optional[Callable[[], None]] = None,
                 timer=None, error_handler: Callable = None):
        self.schema = schema
        self.state = state
        self.on_submit = on_submit
        self.mode = mode
        self.runtime = runtime
        self.form = form
        self.before_decode = before_decode
        self.on_decode_failure = on_decode_failure
        self.on_decode_success = on_decode_success
        self._error_handler = error_handler or global_error_handler

        self.result = Signal(SubmitResult(), error_handler=self._error_handler)
        self.phase = SubmitPhase.IDLE
        self._task: Optional[asyncio.Future] = None
        self._token: Optional[CancellationToken] = None
        self._pending_changes = False
        self._unsubscribers = []
        self._auto_submit: Optional[Debounced] = None

        if mode.auto_submit:
            delay = mode.debounce_ms if mode.trigger == ON_CHANGE else None
            self._auto_submit = Debounced(self._fire_auto_submit, delay, timer=timer,
                                          error_handler=self._error_handler)
            if mode.trigger == ON_CHANGE:
                self._unsubscribers.append(state.subscribe(lambda s: s.values, self._on_values_changed))
            self._unsubscribers.append(self.result.subscribe(lambda r: r.waiting, self._on_waiting_changed))

    @property
    def waiting(self) -> bool:
        return self.result().waiting

    @property
    def pending_changes(self) -> bool:
        return self._pending_changes

    # -- Submission ---

    def submit(self, args: Any = None) -> Optional[asyncio.Future]:
        """
        Starts a submission and returns its task.

        While another submission is in flight the request is dropped and
        the in-flight task is returned instead.
        """
        if self.waiting:
            logger.debug("Submit requested while a submission is in flight; ignoring")
            return self._task

        # Raises RuntimeError outside a running loop, before any state is touched
        asyncio.get_running_loop()

        if self.before_decode is not None:
            self.before_decode()

        self._token = CancellationToken()
        self.result.set(lambda previous: previous.as_waiting(True))
        self._task = run_async(
            self._run,
            (args, self._token),
            on_error=lambda e: self._error_handler(e, "Error while submitting"),
        )
        return self._task

    async def join(self) -> None:
        """Waits for the in-flight submission, if any."""
        if self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    def _set_phase(self, phase: SubmitPhase) -> None:
        logger.debug("Submission phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def _finish(self, result: SubmitResult) -> SubmitResult:
        self.result.set(result)
        return result

    async def _run(self, args: Any, token: CancellationToken) -> SubmitResult:
        values = self.state().values
        self._set_phase(SubmitPhase.DECODING)

        try:
            ok, decoded = await decode_issue(self.schema, values)
        except asyncio.CancelledError:
            self._cancelled()
            raise
        except Exception as e:
            self._set_phase(SubmitPhase.DECODE_FAILED)
            self._error_handler(e, "Unexpected error while decoding")
            return self._finish(SubmitResult.failure(DEFECT, DefectError(e, "decode")))

        if not ok:
            self._set_phase(SubmitPhase.DECODE_FAILED)
            if self.on_decode_failure is not None:
                self.on_decode_failure(route_errors_with_source(decoded))
            return self._finish(SubmitResult.failure(DECODE, ParseError(decoded)))

        if self.on_decode_success is not None:
            self.on_decode_success()

        self._set_phase(SubmitPhase.SUBMITTING)
        context = SubmitContext(decoded, values, self.runtime, self.form, token)
        try:
            if self.on_submit is None:
                # Validation-only form: the decoded values are the result
                outcome = decoded
            else:
                outcome = await maybe_await(self.on_submit(args, context))
            if isinstance(outcome, SubmitError):
                raise outcome
            if isinstance(outcome, Exception):
                raise SubmitError(outcome)
        except asyncio.CancelledError:
            self._cancelled()
            raise
        except SubmitError as e:
            self._set_phase(SubmitPhase.SUBMIT_FAILED)
            self._complete(None)
            return self._finish(SubmitResult.failure(SUBMIT, e))
        except Exception as e:
            self._set_phase(SubmitPhase.SUBMIT_FAILED)
            self._error_handler(e, "Unexpected error in submit operation")
            self._complete(None)
            return self._finish(SubmitResult.failure(DEFECT, DefectError(e, "submit")))

        self._set_phase(SubmitPhase.SUCCESS)
        self._complete(SubmittedValues(values, decoded))
        return self._finish(SubmitResult.success(outcome))

    def _complete(self, submitted: Optional[SubmittedValues]) -> None:
        def update(state: FormState) -> FormState:
            changes = {"submit_count": state.submit_count + 1}
            if submitted is not None:
                changes["last_submitted_values"] = submitted
            return state.replace(**changes)

        self.state.set(update)

    def _cancelled(self) -> None:
        logger.debug("Submission cancelled")
        self._set_phase(SubmitPhase.IDLE)
        self.result.set(lambda previous: previous.as_waiting(False))

    # -- Auto-submit ---

    def _on_values_changed(self, values: Any, previous: Any) -> None:
        if self.waiting:
            self._pending_changes = True
        else:
            self._auto_submit()

    def _on_waiting_changed(self, waiting: bool, was_waiting: bool) -> None:
        if was_waiting and not waiting and self._pending_changes:
            self._pending_changes = False
            self._auto_submit()

    def _fire_auto_submit(self) -> None:
        if self.waiting:
            self._pending_changes = True
            return
        self.submit()

    def blur(self) -> None:
        """Submits on blur when auto-submit on blur is on and values moved since the last submit."""
        if not (self.mode.auto_submit and self.mode.trigger == ON_BLUR):
            return
        state: FormState = self.state()
        last = state.last_submitted_values
        reference = last.encoded if last is not None else state.initial_values
        if state.values == reference:
            return
        if self.waiting:
            self._pending_changes = True
            return
        self._auto_submit()

    def dispose(self) -> None:
        """Cancels timers and the in-flight submission."""
        if self._auto_submit is not None:
            self._auto_submit.cancel()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._pending_changes = False
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
