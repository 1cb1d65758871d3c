"""
Quiz session controller for the Trivia Quiz Bot.
Owns the session state machine and mediates between the question source,
the countdown timer and the presentation layer.
"""
import dataclasses
import logging
import time
from enum import Enum
from typing import Any, Dict, Optional

from .config_manager import ConfigManager
from .models import (
    AnswerOutcome,
    DifficultyTier,
    FinalScore,
    Question,
    SessionPhase,
    SessionState,
)
from .question_source import QuestionSource
from .quiz_engine import CountdownTimer, format_time


class SessionEvent(Enum):
    """Inbound events that drive the session state machine."""
    BEGIN = "begin"
    SUBMIT = "submit"
    TIMEOUT = "timeout"
    ADVANCE = "advance"
    RESET = "reset"


class SessionSignal(Enum):
    """Outbound signals; values name the SessionListener method that receives them."""
    QUESTION_PRESENTED = "question_presented"
    ANSWER_OUTCOME = "answer_outcome"
    TIMER_TICK = "timer_tick"
    SESSION_FINISHED = "session_finished"
    LOAD_FAILED = "load_failed"


# Phases in which each event is legal. Resolution guards are checked separately.
TRANSITIONS = {
    SessionEvent.BEGIN: {SessionPhase.IDLE, SessionPhase.FINISHED},
    SessionEvent.SUBMIT: {SessionPhase.IN_PROGRESS},
    SessionEvent.TIMEOUT: {SessionPhase.IN_PROGRESS},
    SessionEvent.ADVANCE: {SessionPhase.IN_PROGRESS},
    SessionEvent.RESET: {SessionPhase.IDLE, SessionPhase.IN_PROGRESS, SessionPhase.FINISHED},
}


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class InvalidTransitionError(QuizControllerError):
    """Raised in strict mode when an event is not legal in the current state."""
    pass


class SessionListener:
    """
    Receiver for session signals.

    Every method is a no-op; presentation layers override the ones they need.
    """

    async def question_presented(self, question: Question, index: int, total: int, time_limit: int) -> None:
        pass

    async def answer_outcome(self, outcome: AnswerOutcome) -> None:
        pass

    async def timer_tick(self, remaining_seconds: int) -> None:
        pass

    async def session_finished(self, score: int, total: int) -> None:
        pass

    async def load_failed(self) -> None:
        pass


class QuizController:
    """
    Orchestrates a single quiz session.

    The session moves Idle -> InProgress -> Finished. Loading a new batch
    from Idle or Finished starts over at question 0; reset returns to Idle
    from anywhere. Invalid events are rejected without touching state.
    """

    def __init__(
        self,
        question_source: QuestionSource,
        config_manager: Optional[ConfigManager] = None,
        listener: Optional[SessionListener] = None,
        timer: Optional[CountdownTimer] = None,
        strict: bool = False
    ):
        """
        Initialize the quiz controller.

        Args:
            question_source: Source of question batches
            config_manager: Provides per-tier time limits
            listener: Receives outbound session signals
            timer: Countdown used for each question
            strict: Raise InvalidTransitionError instead of returning a rejection value
        """
        self.logger = logging.getLogger(__name__)
        self.question_source = question_source
        self.config_manager = config_manager or ConfigManager()
        self.listener = listener or SessionListener()
        self.timer = timer or CountdownTimer(name="question")
        self.strict = strict

        self._state = SessionState()
        self._request_generation = 0
        self._loading = False

        self.logger.info("QuizController initialized")

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    async def begin(self, tier) -> bool:
        """
        Load a question batch and start the first question.

        Args:
            tier: DifficultyTier or tier name

        Returns:
            True if the session is now in progress, False otherwise
        """
        tier = DifficultyTier.parse(tier)
        previous_phase = self._state.phase

        if not self._is_allowed(SessionEvent.BEGIN):
            return self._reject(SessionEvent.BEGIN, f"cannot begin while {self._state.phase.value}")
        if self._loading:
            return self._reject(SessionEvent.BEGIN, "a question batch is already loading")

        self._request_generation += 1
        generation = self._request_generation
        self._loading = True
        time_limit = self.config_manager.get_time_limit(tier)

        self.logger.info(
            f"Loading {tier.value} questions (request {generation})",
            extra={
                'event_type': 'session_loading',
                'tier': tier.value,
                'request_generation': generation,
                'timestamp': time.time()
            }
        )

        try:
            batch = await self.question_source.fetch_questions(tier)
        except Exception as e:
            self.logger.error(f"Question source failed for request {generation}: {e}", exc_info=True)
            batch = ()
        finally:
            if generation == self._request_generation:
                self._loading = False

        if generation != self._request_generation:
            self.logger.warning(
                f"Discarding stale question batch from request {generation} "
                f"(current request {self._request_generation})",
                extra={
                    'event_type': 'session_stale_response',
                    'request_generation': generation,
                    'current_generation': self._request_generation,
                    'timestamp': time.time()
                }
            )
            return False

        if not batch:
            self._state = SessionState(phase=SessionPhase.IDLE, time_limit_seconds=time_limit, tier=tier)
            self.logger.warning(
                f"No questions available for {tier.value}",
                extra={
                    'event_type': 'session_load_failed',
                    'tier': tier.value,
                    'timestamp': time.time()
                }
            )
            await self._emit(SessionSignal.LOAD_FAILED)
            return False

        self._state = SessionState(
            phase=SessionPhase.IN_PROGRESS,
            questions=tuple(batch),
            current_index=0,
            score=0,
            time_limit_seconds=time_limit,
            resolved=False,
            tier=tier
        )
        self._log_transition(previous_phase, SessionPhase.IN_PROGRESS, f"{len(batch)} questions loaded")

        await self._present_current_question()
        return True

    async def submit_answer(self, choice_index: int) -> Optional[AnswerOutcome]:
        """
        Resolve the current question with a chosen answer.

        Args:
            choice_index: Index into the current question's answers

        Returns:
            AnswerOutcome, or None if the submission was rejected
        """
        if not self._is_allowed(SessionEvent.SUBMIT):
            return self._reject(SessionEvent.SUBMIT, f"no question in progress ({self._state.phase.value})", None)
        if self._state.resolved:
            return self._reject(SessionEvent.SUBMIT, "current question is already resolved", None)

        question = self.current_question
        if (not isinstance(choice_index, int) or isinstance(choice_index, bool)
                or not 0 <= choice_index < len(question.answers)):
            return self._reject(SessionEvent.SUBMIT, f"answer index {choice_index!r} out of range", None)

        self.timer.stop()

        was_correct = question.is_correct(choice_index)
        if was_correct:
            self._state.score += 1
        self._state.resolved = True

        outcome = AnswerOutcome(
            correct_index=question.correct_index,
            was_correct=was_correct,
            chosen_index=choice_index,
            timed_out=False
        )
        self.logger.info(
            f"Question {self._state.current_index + 1} answered "
            f"{'correctly' if was_correct else 'incorrectly'}, score {self._state.score}",
            extra={
                'event_type': 'question_answered',
                'question_index': self._state.current_index,
                'chosen_index': choice_index,
                'was_correct': was_correct,
                'score': self._state.score,
                'timestamp': time.time()
            }
        )
        await self._emit(SessionSignal.ANSWER_OUTCOME, outcome)
        return outcome

    async def on_timer_timeout(self) -> Optional[AnswerOutcome]:
        """
        Resolve the current question as unanswered when time runs out.

        Returns:
            AnswerOutcome, or None if there was nothing to time out
        """
        if not self._is_allowed(SessionEvent.TIMEOUT):
            return self._reject(SessionEvent.TIMEOUT, f"no question in progress ({self._state.phase.value})", None)
        if self._state.resolved:
            return self._reject(SessionEvent.TIMEOUT, "current question is already resolved", None)

        self.timer.stop()
        question = self.current_question
        self._state.resolved = True

        outcome = AnswerOutcome(
            correct_index=question.correct_index,
            was_correct=False,
            chosen_index=None,
            timed_out=True
        )
        self.logger.info(
            f"Question {self._state.current_index + 1} timed out",
            extra={
                'event_type': 'question_timed_out',
                'question_index': self._state.current_index,
                'score': self._state.score,
                'timestamp': time.time()
            }
        )
        await self._emit(SessionSignal.ANSWER_OUTCOME, outcome)
        return outcome

    async def advance(self) -> bool:
        """
        Move past the resolved question.

        Returns:
            True if the session advanced (to the next question or to Finished)
        """
        if not self._is_allowed(SessionEvent.ADVANCE):
            return self._reject(SessionEvent.ADVANCE, f"no question in progress ({self._state.phase.value})")
        if not self._state.resolved:
            return self._reject(SessionEvent.ADVANCE, "current question is not resolved yet")

        self._state.current_index += 1
        self._state.resolved = False

        if self._state.current_index >= len(self._state.questions):
            self.timer.stop()
            self._state.phase = SessionPhase.FINISHED
            self._log_transition(
                SessionPhase.IN_PROGRESS,
                SessionPhase.FINISHED,
                f"score {self._state.score}/{len(self._state.questions)}"
            )
            await self._emit(SessionSignal.SESSION_FINISHED, self._state.score, len(self._state.questions))
            return True

        await self._present_current_question()
        return True

    def reset(self) -> None:
        """Stop everything and return to Idle, discarding the batch."""
        previous_phase = self._state.phase
        self.timer.stop()
        # Any batch still loading belongs to the old session
        self._request_generation += 1
        self._loading = False
        self._state = SessionState()
        self._log_transition(previous_phase, SessionPhase.IDLE, "session reset")

    # Names used by the presentation layer
    begin_session = begin
    advance_to_next = advance
    reset_session = reset

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _present_current_question(self) -> None:
        index = self._state.current_index
        question = self._state.questions[index]
        self.timer.start(self._state.time_limit_seconds, self._on_timer_tick, self.on_timer_timeout)
        await self._emit(
            SessionSignal.QUESTION_PRESENTED,
            question,
            index,
            len(self._state.questions),
            self._state.time_limit_seconds
        )

    async def _on_timer_tick(self, remaining_seconds: int) -> None:
        if self._state.phase is SessionPhase.IN_PROGRESS and not self._state.resolved:
            await self._emit(SessionSignal.TIMER_TICK, remaining_seconds)

    async def _emit(self, signal: SessionSignal, *args) -> None:
        handler = getattr(self.listener, signal.value)
        await handler(*args)

    def _is_allowed(self, event: SessionEvent) -> bool:
        return self._state.phase in TRANSITIONS[event]

    def _reject(self, event: SessionEvent, reason: str, result: Any = False) -> Any:
        message = f"Rejected {event.value}: {reason}"
        self.logger.warning(
            message,
            extra={
                'event_type': 'session_transition_rejected',
                'session_event': event.value,
                'phase': self._state.phase.value,
                'reason': reason,
                'timestamp': time.time()
            }
        )
        if self.strict:
            raise InvalidTransitionError(message)
        return result

    def _log_transition(self, from_phase: SessionPhase, to_phase: SessionPhase, reason: str) -> None:
        self.logger.info(
            f"Session: {from_phase.value} -> {to_phase.value} ({reason})",
            extra={
                'event_type': 'session_transition',
                'from_phase': from_phase.value,
                'to_phase': to_phase.value,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def score(self) -> int:
        return self._state.score

    @property
    def current_index(self) -> int:
        return self._state.current_index

    @property
    def total(self) -> int:
        return len(self._state.questions)

    @property
    def time_limit(self) -> int:
        return self._state.time_limit_seconds

    @property
    def tier(self) -> Optional[DifficultyTier]:
        return self._state.tier

    @property
    def is_resolved(self) -> bool:
        return self._state.resolved

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def current_question(self) -> Optional[Question]:
        """The question being asked, or None outside InProgress."""
        if self._state.phase is not SessionPhase.IN_PROGRESS:
            return None
        return self._state.questions[self._state.current_index]

    @property
    def final_score(self) -> Optional[FinalScore]:
        """Final score once the session has finished."""
        if self._state.phase is not SessionPhase.FINISHED:
            return None
        return FinalScore(score=self._state.score, total=len(self._state.questions))

    @property
    def state(self) -> SessionState:
        """Copy of the session state."""
        return dataclasses.replace(self._state)

    def get_progress(self) -> Dict[str, Any]:
        """
        Get progress information for the current session.

        Returns:
            Dictionary with phase, question number, total, score and timer details
        """
        return {
            'phase': self._state.phase.value,
            'tier': self._state.tier.value if self._state.tier else None,
            'question_number': min(self._state.current_index + 1, len(self._state.questions)),
            'total_questions': len(self._state.questions),
            'score': self._state.score,
            'resolved': self._state.resolved,
            'time_limit': self._state.time_limit_seconds,
            'remaining_time': self.timer.remaining_seconds if self.timer.running else None,
            'loading': self._loading
        }

    def get_status_summary(self) -> str:
        """One-line human readable status."""
        if self._loading:
            return "Loading questions..."
        if self._state.phase is SessionPhase.IDLE:
            return "No quiz in progress"
        if self._state.phase is SessionPhase.FINISHED:
            return f"Quiz finished: {self._state.score} out of {len(self._state.questions)}"

        summary = (
            f"Question {self._state.current_index + 1} of {len(self._state.questions)} "
            f"({self._state.tier.value}), score {self._state.score}"
        )
        if self.timer.running:
            summary += f", {format_time(self.timer.remaining_seconds)} left"
        elif self._state.resolved:
            summary += ", waiting for next question"
        return summary
