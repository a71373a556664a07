"""
Quiz session controller for the quiz session engine.
Owns the state of one attempt and drives it from setup to submission.
"""
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

from .models import (
    Answer, HistoryEntry, Question, QuestionType, QuizResult, SessionConfig,
    SessionPhase, SessionQuestion, SessionState, ValidationReason
)
from .profile_manager import HistoryStore
from .quiz_engine import SelectionPlanner
from .quiz_timer import Clock, SystemClock, TickSource, TimerController, TimerLifecycleLogger
from .scoring import ScoringEngine
from .translations import Translator, default_translate, message_key_for


class QuizSessionError(Exception):
    """Base exception for session state machine errors."""

    def __init__(self, message: str, reason: ValidationReason):
        super().__init__(message)
        self.reason = reason


class InvalidSessionStateError(QuizSessionError):
    """Raised when the attempt is in the wrong phase for the requested operation."""
    pass


class SessionNotReadyError(QuizSessionError):
    """Raised when no pool or configuration has been supplied."""

    def __init__(self, message: str = "No question pool or configuration loaded"):
        super().__init__(message, ValidationReason.NOT_READY)


class SessionStateMachine:
    """
    Coordinates planning, navigation, timing and grading of quiz attempts.

    Each instance holds at most one attempt. Public operations never raise for
    validation or configuration problems; they return a result dictionary
    with ``success``, ``reason`` (a ValidationReason or None) and
    ``message_key`` (a translation key or None).
    """

    def __init__(
        self,
        history_store: HistoryStore,
        planner: Optional[SelectionPlanner] = None,
        scoring_engine: Optional[ScoringEngine] = None,
        clock: Optional[Clock] = None,
        tick_source: Optional[TickSource] = None,
        translate: Translator = default_translate,
        on_tick: Optional[Callable[[int], Any]] = None,
        on_time_up: Optional[Callable[[QuizResult], Any]] = None,
        tick_interval: Optional[float] = None
    ):
        """
        Initialize the state machine.

        Args:
            history_store: Receives one HistoryEntry per submitted attempt
            planner: Selection planner; built with ``translate`` if None
            scoring_engine: Grader; a default ScoringEngine if None
            clock: Time source shared with the timer
            tick_source: Tick scheduler handed to the timer
            translate: Translation function for engine-generated text
            on_tick: Called with remaining seconds on every timer tick
            on_time_up: Called with the result after an expiry submission
            tick_interval: Seconds between timer ticks
        """
        self.logger = logging.getLogger(__name__)
        self.history_store = history_store
        self.planner = planner or SelectionPlanner(translate=translate)
        self.scoring_engine = scoring_engine or ScoringEngine()
        self.clock = clock or SystemClock()
        self.tick_source = tick_source
        self.translate = translate
        self._on_tick = on_tick
        self._on_time_up = on_time_up
        self._tick_interval = tick_interval

        self._pool: Optional[List[Question]] = None
        self._config: Optional[SessionConfig] = None
        self._signature: Optional[tuple] = None

        self._phase = SessionPhase.SETUP
        self._state: Optional[SessionState] = None
        self._timer: Optional[TimerController] = None
        self._no_questions = False
        self._is_submitting = False
        self._time_up = False
        self._timer_fallback = False
        self._last_result: Optional[QuizResult] = None
        self._last_entry: Optional[HistoryEntry] = None

        self.logger.info("SessionStateMachine initialized")

    # ------------------------------------------------------------------
    # Attempt lifecycle
    # ------------------------------------------------------------------

    def rebuild_session(self, pool: Optional[Sequence[Question]], config: Optional[SessionConfig]) -> Dict[str, Any]:
        """
        Plan a new attempt if the pool or configuration changed.

        Calling this again with equal inputs is a no-op. While the current
        attempt is submitted the inputs are only remembered, to be used by
        the next ``try_again``.

        Args:
            pool: Question pool from the question bank, None if no profile is active
            config: Attempt configuration, None if no profile is active

        Returns:
            Result dictionary; ``started`` tells whether a new attempt began
        """
        if pool is None or config is None:
            self.abandon()
            self._pool = None
            self._config = None
            self._signature = None
            self.logger.info(
                "Session rebuild requested without an active pool or configuration",
                extra={'event_type': 'session_not_ready', 'timestamp': time.time()}
            )
            return self._blocked(ValidationReason.NOT_READY, started=False)

        pool = list(pool)
        signature = self._make_signature(pool, config)
        self._pool = pool
        self._config = config

        if self._phase == SessionPhase.SUBMITTED:
            self.logger.debug("Inputs changed after submission, deferring until try_again")
            return self._ok(started=False)

        if signature == self._signature:
            if self._no_questions:
                return self._blocked(ValidationReason.NO_QUESTIONS, started=False)
            if self._state is not None:
                return self._ok(started=False)

        return self._start_attempt()

    def try_again(self) -> Dict[str, Any]:
        """Discard the current attempt and plan a new one from the last inputs."""
        if self._pool is None or self._config is None:
            return self._blocked(ValidationReason.NOT_READY, started=False)
        return self._start_attempt()

    def abandon(self) -> bool:
        """
        Stop the timer and discard the current attempt.

        Returns:
            True if an in-progress or submitted attempt was discarded
        """
        had_attempt = self._state is not None
        self._stop_timer("abandoned")
        if had_attempt:
            self.logger.info(
                f"Abandoned attempt {self._state.attempt_id} in phase {self._phase.value}",
                extra={
                    'event_type': 'attempt_abandoned',
                    'attempt_id': self._state.attempt_id,
                    'phase': self._phase.value,
                    'timestamp': time.time()
                }
            )
        self._state = None
        self._phase = SessionPhase.SETUP
        self._signature = None
        self._no_questions = False
        self._is_submitting = False
        self._time_up = False
        self._timer_fallback = False
        return had_attempt

    def _start_attempt(self) -> Dict[str, Any]:
        self.abandon()
        config = self._config
        questions = self.planner.plan(self._pool, config)
        self._signature = self._make_signature(self._pool, config)

        if not questions:
            self._no_questions = True
            self._last_result = None
            self._last_entry = None
            self.logger.warning(
                "No questions available for a new attempt",
                extra={'event_type': 'attempt_no_questions', 'pool_size': len(self._pool), 'timestamp': time.time()}
            )
            return self._blocked(ValidationReason.NO_QUESTIONS, started=False)

        state = SessionState(
            attempt_id=uuid.uuid4().hex[:12],
            questions=questions,
            answers=[None] * len(questions),
            config=config
        )
        self._state = state
        self._phase = SessionPhase.IN_PROGRESS
        self._last_result = None
        self._last_entry = None

        timer_fallback = config.timer_active and not self._start_timer(state)
        self._timer_fallback = timer_fallback

        self.logger.info(
            f"Started attempt {state.attempt_id} with {len(questions)} questions",
            extra={
                'event_type': 'attempt_started',
                'attempt_id': state.attempt_id,
                'total_questions': len(questions),
                'timer_seconds': state.remaining_seconds,
                'timestamp': time.time()
            }
        )
        if timer_fallback:
            return self._ok(
                started=True,
                total_questions=len(questions),
                timer_fallback=True,
                message_key='msgTimerUnavailable'
            )
        return self._ok(started=True, total_questions=len(questions), timer_fallback=False)

    def _start_timer(self, state: SessionState) -> bool:
        attempt_id = state.attempt_id
        timer = TimerController(
            state.config.timer_duration_seconds,
            on_expire=lambda: self._handle_expiry(attempt_id),
            clock=self.clock,
            tick_source=self.tick_source,
            on_tick=self._handle_tick,
            attempt_id=state.attempt_id,
            tick_interval=self._tick_interval
        )
        try:
            timer.start()
        except RuntimeError as e:
            # Without a running scheduler the attempt continues untimed.
            self.logger.error(
                f"Timer could not start for attempt {state.attempt_id}, continuing without timer: {e}",
                exc_info=True,
                extra={'event_type': 'timer_fallback', 'attempt_id': state.attempt_id, 'timestamp': time.time()}
            )
            return False
        self._timer = timer
        state.start_timestamp = timer.start_timestamp
        state.remaining_seconds = timer.remaining_seconds
        return True

    def _stop_timer(self, reason: str) -> None:
        if self._timer is not None:
            self._timer.stop(reason)
            self._timer = None

    def _handle_tick(self, remaining: int) -> None:
        if self._state is None:
            return
        self._state.remaining_seconds = remaining
        if self._on_tick is not None:
            self._on_tick(remaining)

    def _handle_expiry(self, attempt_id: str) -> None:
        if self._state is None or self._state.attempt_id != attempt_id:
            self.logger.warning(
                f"Ignoring expiry from replaced attempt {attempt_id}",
                extra={'event_type': 'stale_timer_expiry', 'attempt_id': attempt_id, 'timestamp': time.time()}
            )
            return
        self.logger.info(
            "Time limit reached, submitting attempt",
            extra={
                'event_type': 'attempt_time_up',
                'attempt_id': attempt_id,
                'timestamp': time.time()
            }
        )
        outcome = self.submit(is_auto_from_expiry=True)
        if outcome['success'] and self._on_time_up is not None:
            self._on_time_up(self._last_result)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def select_answer(self, value: Answer) -> Dict[str, Any]:
        """
        Store an answer for the current question. No validation is applied.

        Args:
            value: None, a rendered option index, or free text
        """
        try:
            state = self._require_in_progress("select_answer")
        except QuizSessionError as e:
            return self._reject(e, "select_answer")

        state.answers[state.current_index] = value
        return self._ok(current_index=state.current_index)

    def go_to_previous(self) -> Dict[str, Any]:
        """Move back one question; does nothing on the first question."""
        try:
            state = self._require_in_progress("go_to_previous")
        except QuizSessionError as e:
            return self._reject(e, "go_to_previous")

        moved = state.current_index > 0
        if moved:
            state.current_index -= 1
        return self._ok(current_index=state.current_index, moved=moved)

    def go_to_next(self) -> Dict[str, Any]:
        """
        Move forward one question once the current one is answered.

        Returns:
            Result dictionary; on a blocked move ``reason`` says why and the
            index is unchanged
        """
        try:
            state = self._require_in_progress("go_to_next")
        except QuizSessionError as e:
            return self._reject(e, "go_to_next")

        reason = self.required_answer_reason(state.current, state.answers[state.current_index])
        if reason is not None:
            return self._blocked(reason, current_index=state.current_index)

        moved = not state.is_last_question
        if moved:
            state.current_index += 1
        return self._ok(current_index=state.current_index, moved=moved)

    def submit(self, is_auto_from_expiry: bool = False) -> Dict[str, Any]:
        """
        Grade the attempt, record history and finish it.

        A manual submit from the last question requires that question to be
        answered; a submit triggered by timer expiry skips validation. Only
        the first successful call grades and records; later calls are no-ops.

        Args:
            is_auto_from_expiry: True when called by the timer

        Returns:
            Result dictionary including ``result`` (QuizResult) on success
        """
        try:
            state = self._require_in_progress("submit")
        except QuizSessionError as e:
            if e.reason == ValidationReason.ALREADY_SUBMITTED:
                attempt_id = self._state.attempt_id if self._state else None
                TimerLifecycleLogger.log_race_condition_detected(
                    attempt_id,
                    f"submit(is_auto_from_expiry={is_auto_from_expiry}) after attempt was already submitted"
                )
            return self._reject(e, "submit")

        if self._is_submitting:
            TimerLifecycleLogger.log_race_condition_detected(
                state.attempt_id, "re-entrant submit ignored"
            )
            return self._blocked(ValidationReason.ALREADY_SUBMITTED)

        if not is_auto_from_expiry and state.is_last_question:
            if self.required_answer_reason(state.current, state.answers[state.current_index]) is not None:
                return self._blocked(ValidationReason.LAST_ANSWER_REQUIRED, current_index=state.current_index)

        self._is_submitting = True

        elapsed = None
        duration = None
        if self._timer is not None:
            elapsed = self._timer.elapsed_seconds()
            duration = self._timer.duration_seconds
        self._stop_timer("expired" if is_auto_from_expiry else "submitted")

        result = self.scoring_engine.grade(state.questions, list(state.answers), elapsed, duration)
        entry = self.scoring_engine.build_history_entry(result, self.clock.utcnow())

        state.phase = SessionPhase.SUBMITTED
        self._phase = SessionPhase.SUBMITTED
        self._time_up = is_auto_from_expiry
        self._last_result = result
        self._last_entry = entry

        self.history_store.append_history(entry)

        self.logger.info(
            f"Submitted attempt {state.attempt_id}: {result.score}/{result.total_possible} ({result.percentage}%)",
            extra={
                'event_type': 'attempt_submitted',
                'attempt_id': state.attempt_id,
                'score': result.score,
                'total_possible': result.total_possible,
                'percentage': result.percentage,
                'time_taken_seconds': result.time_taken_seconds,
                'auto': is_auto_from_expiry,
                'timestamp': time.time()
            }
        )
        return self._ok(result=result, time_up=is_auto_from_expiry)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def required_answer_reason(session_question: SessionQuestion, answer: Answer) -> Optional[ValidationReason]:
        """
        Check the required-answer rule for a question type.

        Returns:
            None if the answer is acceptable, otherwise the blocking reason
        """
        if session_question.type == QuestionType.FILL_BLANK:
            if not isinstance(answer, str) or not answer.strip():
                return ValidationReason.TEXT_REQUIRED
            return None
        if not isinstance(answer, int) or isinstance(answer, bool):
            return ValidationReason.ANSWER_REQUIRED
        return None

    def _require_in_progress(self, operation: str) -> SessionState:
        if self._phase == SessionPhase.SUBMITTED:
            raise InvalidSessionStateError(
                f"Cannot {operation}: attempt already submitted", ValidationReason.ALREADY_SUBMITTED
            )
        if self._state is None:
            if self._pool is None or self._config is None:
                raise SessionNotReadyError()
            if self._no_questions:
                raise InvalidSessionStateError(
                    f"Cannot {operation}: no questions available", ValidationReason.NO_QUESTIONS
                )
            raise InvalidSessionStateError(
                f"Cannot {operation}: no attempt in progress", ValidationReason.NOT_IN_PROGRESS
            )
        return self._state

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def state(self) -> Optional[SessionState]:
        """The current attempt's state; None before planning or after abandon."""
        return self._state

    @property
    def result(self) -> Optional[QuizResult]:
        return self._last_result

    @property
    def history_entry(self) -> Optional[HistoryEntry]:
        return self._last_entry

    @property
    def time_up(self) -> bool:
        """True when the last attempt was submitted by timer expiry."""
        return self._time_up

    @property
    def has_questions(self) -> bool:
        return self._state is not None and bool(self._state.questions)

    @property
    def timer(self) -> Optional[TimerController]:
        return self._timer

    def current_question(self) -> Optional[SessionQuestion]:
        if self._state is None or self._phase != SessionPhase.IN_PROGRESS:
            return None
        return self._state.current

    def current_answer(self) -> Answer:
        if self._state is None:
            return None
        return self._state.answers[self._state.current_index]

    def status(self) -> Dict[str, Any]:
        """
        UI-facing projection of the attempt.

        Returns:
            Dictionary with phase, index, totals, remaining time and flags
        """
        state = self._state
        if state is None:
            return {
                'phase': self._phase.value,
                'ready': self._pool is not None and self._config is not None,
                'has_questions': False,
                'no_questions': self._no_questions,
                'current_index': None,
                'total_questions': 0,
                'answered_count': 0,
                'is_last_question': False,
                'remaining_seconds': None,
                'timer_enabled': False,
                'timer_fallback': False,
                'time_up': self._time_up,
            }
        return {
            'phase': self._phase.value,
            'ready': True,
            'has_questions': bool(state.questions),
            'no_questions': False,
            'current_index': state.current_index,
            'total_questions': state.total_questions,
            'answered_count': state.answered_count(),
            'is_last_question': state.is_last_question,
            'remaining_seconds': state.remaining_seconds,
            'timer_enabled': state.start_timestamp is not None,
            'timer_fallback': self._timer_fallback,
            'time_up': self._time_up,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _make_signature(pool: Sequence[Question], config: SessionConfig) -> tuple:
        return (tuple(pool), config.signature())

    @staticmethod
    def _ok(**extra) -> Dict[str, Any]:
        result = {'success': True, 'reason': None, 'message_key': None}
        result.update(extra)
        return result

    @staticmethod
    def _blocked(reason: ValidationReason, **extra) -> Dict[str, Any]:
        result = {'success': False, 'reason': reason, 'message_key': message_key_for(reason)}
        result.update(extra)
        return result

    def _reject(self, error: QuizSessionError, operation: str) -> Dict[str, Any]:
        self.logger.debug(
            f"{operation} rejected: {error}",
            extra={
                'event_type': 'session_operation_rejected',
                'operation': operation,
                'reason': error.reason.value,
                'timestamp': time.time()
            }
        )
        return self._blocked(error.reason)
