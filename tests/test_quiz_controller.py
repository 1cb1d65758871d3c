"""
Unit tests for QuizController session state management.
"""
import asyncio
import logging
import unittest
from unittest.mock import AsyncMock, Mock

from trivia_quiz.config_manager import ConfigManager
from trivia_quiz.models import DifficultyTier, FinalScore, Question, SessionPhase
from trivia_quiz.quiz_controller import (
    TRANSITIONS,
    InvalidTransitionError,
    QuizController,
    SessionEvent,
    SessionListener,
    SessionSignal,
)
from trivia_quiz.quiz_engine import CountdownTimer
from tests.test_fixtures import AsyncTestHelpers, FakeQuestionSource, RecordingListener, TestFixtures


class ControllerTestCase(unittest.IsolatedAsyncioTestCase):
    """Shared setup: fake source, recording listener and a timer that never ticks on its own."""

    tick_interval = 60.0

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.source = FakeQuestionSource()
        self.listener = RecordingListener()
        self.config_manager = ConfigManager()
        self.timer = CountdownTimer(name="test", tick_interval=self.tick_interval)
        self.controller = QuizController(
            self.source,
            config_manager=self.config_manager,
            listener=self.listener,
            timer=self.timer
        )

    async def asyncTearDown(self):
        self.controller.reset()

    def tearDown(self):
        logging.disable(logging.NOTSET)

    async def answer_all(self, correct: bool = True):
        """Resolve and advance through every remaining question."""
        while self.controller.phase is SessionPhase.IN_PROGRESS:
            question = self.controller.current_question
            index = question.correct_index if correct else (question.correct_index + 1) % len(question.answers)
            await self.controller.submit_answer(index)
            await self.controller.advance()


class TestSessionScenarios(ControllerTestCase):
    """End-to-end session scenarios."""

    async def test_easy_correct_answer_then_advance(self):
        self.assertTrue(await self.controller.begin("easy"))
        self.assertIs(self.controller.phase, SessionPhase.IN_PROGRESS)
        self.assertEqual(self.controller.total, 10)
        self.assertEqual(self.controller.time_limit, 120)
        self.assertTrue(self.timer.running)
        self.assertEqual(self.timer.remaining_seconds, 120)

        first = self.controller.current_question
        outcome = await self.controller.submit_answer(first.correct_index)

        self.assertTrue(outcome.was_correct)
        self.assertEqual(outcome.chosen_index, first.correct_index)
        self.assertEqual(self.controller.score, 1)
        self.assertFalse(self.timer.running)
        self.assertIs(self.controller.phase, SessionPhase.IN_PROGRESS)
        self.assertEqual(self.controller.current_index, 0)

        self.assertTrue(await self.controller.advance())
        self.assertEqual(self.controller.current_index, 1)
        self.assertTrue(self.timer.running)
        self.assertEqual(self.timer.remaining_seconds, 120)

        presented = self.listener.last("question_presented")
        self.assertEqual(presented[1:], (1, 10, 120))

    async def test_medium_timeout_resolves_unanswered(self):
        await self.controller.begin(DifficultyTier.MEDIUM)
        self.assertEqual(self.controller.time_limit, 60)

        outcome = await self.controller.on_timer_timeout()

        self.assertFalse(outcome.was_correct)
        self.assertIsNone(outcome.chosen_index)
        self.assertTrue(outcome.timed_out)
        self.assertEqual(self.controller.score, 0)
        self.assertTrue(self.controller.is_resolved)
        self.assertEqual(self.listener.last("answer_outcome"), (outcome,))

    async def test_empty_batch_reports_load_failure(self):
        self.source.batch = ()

        self.assertFalse(await self.controller.begin("hard"))

        self.assertIs(self.controller.phase, SessionPhase.IDLE)
        self.assertEqual(self.listener.names(), ["load_failed"])
        self.assertFalse(self.timer.running)
        self.assertEqual(self.timer.generation, 0)
        self.assertFalse(self.controller.is_loading)

    async def test_source_exception_reports_load_failure(self):
        self.controller.question_source = Mock()
        self.controller.question_source.fetch_questions = AsyncMock(side_effect=RuntimeError("boom"))

        self.assertFalse(await self.controller.begin("easy"))

        self.assertIs(self.controller.phase, SessionPhase.IDLE)
        self.assertEqual(self.listener.names(), ["load_failed"])

    async def test_load_failure_discards_previous_batch(self):
        await self.controller.begin("easy")
        await self.answer_all()
        self.assertIs(self.controller.phase, SessionPhase.FINISHED)

        self.source.batch = ()
        self.assertFalse(await self.controller.begin("easy"))
        self.assertIs(self.controller.phase, SessionPhase.IDLE)
        self.assertEqual(self.controller.total, 0)
        self.assertEqual(self.controller.score, 0)

    async def test_finished_reset_begin_again(self):
        await self.controller.begin("easy")
        await self.answer_all()
        self.assertIs(self.controller.phase, SessionPhase.FINISHED)
        self.assertEqual(self.controller.score, 10)

        self.controller.reset()
        self.assertIs(self.controller.phase, SessionPhase.IDLE)

        self.assertTrue(await self.controller.begin("medium"))
        self.assertIs(self.controller.phase, SessionPhase.IN_PROGRESS)
        self.assertEqual(self.controller.score, 0)
        self.assertEqual(self.controller.current_index, 0)

    async def test_begin_again_directly_from_finished(self):
        await self.controller.begin("easy")
        await self.answer_all(correct=False)

        self.assertTrue(await self.controller.begin("expert"))
        self.assertEqual(self.controller.score, 0)
        self.assertEqual(self.controller.time_limit, 3000)
        self.assertIs(self.controller.tier, DifficultyTier.EXPERT)

    async def test_full_session_signals(self):
        await self.controller.begin("easy")
        await self.answer_all()

        names = self.listener.names()
        self.assertEqual(names.count("question_presented"), 10)
        self.assertEqual(names.count("answer_outcome"), 10)
        self.assertEqual(names[-1], "session_finished")
        self.assertEqual(self.listener.last("session_finished"), (10, 10))
        self.assertEqual(self.controller.final_score, FinalScore(10, 10))
        self.assertFalse(self.timer.running)


class TestSessionInvariants(ControllerTestCase):
    """Score and phase invariants across a session."""

    async def test_score_is_monotonic_and_bounded(self):
        await self.controller.begin("easy")
        previous = 0
        resolutions = 0

        while self.controller.phase is SessionPhase.IN_PROGRESS:
            question = self.controller.current_question
            if resolutions % 3 == 0:
                await self.controller.on_timer_timeout()
            elif resolutions % 3 == 1:
                await self.controller.submit_answer(question.correct_index)
            else:
                await self.controller.submit_answer((question.correct_index + 1) % 4)
            resolutions += 1

            self.assertIn(self.controller.score - previous, (0, 1))
            previous = self.controller.score
            await self.controller.advance()

        self.assertEqual(resolutions, 10)
        self.assertIs(self.controller.phase, SessionPhase.FINISHED)
        self.assertLessEqual(self.controller.score, self.controller.total)
        self.assertEqual(self.controller.score, 3)

    async def test_second_submission_is_rejected(self):
        await self.controller.begin("easy")
        question = self.controller.current_question
        await self.controller.submit_answer(question.correct_index)

        self.assertIsNone(await self.controller.submit_answer(question.correct_index))
        self.assertEqual(self.controller.score, 1)

    async def test_timeout_after_submission_is_rejected(self):
        await self.controller.begin("easy")
        await self.controller.submit_answer(0)
        outcomes = self.listener.names().count("answer_outcome")

        self.assertIsNone(await self.controller.on_timer_timeout())
        self.assertEqual(self.listener.names().count("answer_outcome"), outcomes)

    async def test_submission_after_timeout_is_rejected(self):
        await self.controller.begin("easy")
        await self.controller.on_timer_timeout()

        question_index = self.controller.current_question.correct_index
        self.assertIsNone(await self.controller.submit_answer(question_index))
        self.assertEqual(self.controller.score, 0)

    async def test_out_of_range_index_is_rejected(self):
        await self.controller.begin("easy")

        for bad_index in (-1, 4, 99, True, "1", None):
            with self.subTest(index=bad_index):
                self.assertIsNone(await self.controller.submit_answer(bad_index))

        self.assertFalse(self.controller.is_resolved)
        self.assertTrue(self.timer.running)
        self.assertNotIn("answer_outcome", self.listener.names())

    async def test_advance_requires_resolution(self):
        await self.controller.begin("easy")

        self.assertFalse(await self.controller.advance())
        self.assertEqual(self.controller.current_index, 0)

    async def test_operations_rejected_while_idle(self):
        self.assertIsNone(await self.controller.submit_answer(0))
        self.assertIsNone(await self.controller.on_timer_timeout())
        self.assertFalse(await self.controller.advance())
        self.assertIs(self.controller.phase, SessionPhase.IDLE)
        self.assertEqual(self.listener.events, [])

    async def test_begin_rejected_while_in_progress(self):
        await self.controller.begin("easy")
        await self.controller.submit_answer(0)

        self.assertFalse(await self.controller.begin("hard"))
        self.assertIs(self.controller.tier, DifficultyTier.EASY)
        self.assertEqual(len(self.source.calls), 1)

    async def test_operations_rejected_when_finished(self):
        await self.controller.begin("easy")
        await self.answer_all()

        self.assertIsNone(await self.controller.submit_answer(0))
        self.assertFalse(await self.controller.advance())
        self.assertEqual(self.controller.final_score, FinalScore(10, 10))

    async def test_unknown_tier_uses_medium(self):
        await self.controller.begin("legendary")

        self.assertIs(self.controller.tier, DifficultyTier.MEDIUM)
        self.assertEqual(self.controller.time_limit, 60)
        self.assertEqual(self.source.calls, [DifficultyTier.MEDIUM])

    async def test_configured_time_limit_is_used(self):
        self.config_manager.set_time_limit("hard", 90)
        await self.controller.begin("hard")

        self.assertEqual(self.controller.time_limit, 90)
        self.assertEqual(self.timer.remaining_seconds, 90)

    async def test_single_question_batch(self):
        self.source.batch = TestFixtures.create_sample_questions(1)
        await self.controller.begin("easy")
        await self.controller.on_timer_timeout()
        await self.controller.advance()

        self.assertIs(self.controller.phase, SessionPhase.FINISHED)
        self.assertEqual(self.listener.last("session_finished"), (0, 1))


class TestStaleResponses(ControllerTestCase):
    """Request generation handling for in-flight loads."""

    async def test_response_after_reset_is_discarded(self):
        gate = self.source.hold()
        begin_task = asyncio.ensure_future(self.controller.begin("easy"))
        self.assertTrue(await AsyncTestHelpers.wait_until(lambda: self.source.calls))
        self.assertTrue(self.controller.is_loading)

        self.controller.reset()
        gate.set()

        self.assertFalse(await begin_task)
        self.assertIs(self.controller.phase, SessionPhase.IDLE)
        self.assertFalse(self.timer.running)
        self.assertEqual(self.listener.events, [])

    async def test_begin_rejected_while_loading(self):
        gate = self.source.hold()
        begin_task = asyncio.ensure_future(self.controller.begin("easy"))
        self.assertTrue(await AsyncTestHelpers.wait_until(lambda: self.source.calls))

        self.assertFalse(await self.controller.begin("hard"))

        gate.set()
        self.assertTrue(await begin_task)
        self.assertIs(self.controller.tier, DifficultyTier.EASY)
        self.assertEqual(len(self.source.calls), 1)

    async def test_newer_begin_wins_after_reset(self):
        gate = self.source.hold()
        stale_task = asyncio.ensure_future(self.controller.begin("easy"))
        self.assertTrue(await AsyncTestHelpers.wait_until(lambda: len(self.source.calls) == 1))

        self.controller.reset()
        fresh_task = asyncio.ensure_future(self.controller.begin("hard"))
        self.assertTrue(await AsyncTestHelpers.wait_until(lambda: len(self.source.calls) == 2))
        gate.set()

        self.assertFalse(await stale_task)
        self.assertTrue(await fresh_task)
        self.assertIs(self.controller.tier, DifficultyTier.HARD)
        self.assertEqual(self.listener.names(), ["question_presented"])


class TestRealTimerTimeout(ControllerTestCase):
    """Timeout delivered by a running countdown."""

    tick_interval = 0.0005

    async def test_countdown_timeout_resolves_question(self):
        self.config_manager.set_time_limit("medium", 5)
        await self.controller.begin("medium")

        self.assertTrue(await AsyncTestHelpers.wait_until(lambda: self.controller.is_resolved))

        outcome = self.listener.last("answer_outcome")[0]
        self.assertTrue(outcome.timed_out)
        self.assertIsNone(outcome.chosen_index)
        ticks = [args[0] for name, args in self.listener.events if name == "timer_tick"]
        self.assertEqual(ticks, [4, 3, 2, 1, 0])
        self.assertFalse(self.timer.running)

    async def test_submission_stops_countdown(self):
        self.config_manager.set_time_limit("medium", 5)
        await self.controller.begin("medium")
        await self.controller.submit_answer(self.controller.current_question.correct_index)

        await asyncio.sleep(0.02)
        self.assertEqual(self.listener.names().count("answer_outcome"), 1)
        self.assertNotIn("timer_tick", self.listener.names())


class TestStrictMode(ControllerTestCase):
    """strict=True raises instead of returning a rejection value."""

    def setUp(self):
        super().setUp()
        self.controller.strict = True

    async def test_submit_while_idle_raises(self):
        with self.assertRaises(InvalidTransitionError):
            await self.controller.submit_answer(0)

    async def test_advance_unresolved_raises(self):
        await self.controller.begin("easy")
        with self.assertRaises(InvalidTransitionError):
            await self.controller.advance()
        self.assertEqual(self.controller.current_index, 0)


class TestAccessors(ControllerTestCase):
    """Read-only accessors and status reporting."""

    async def test_progress_while_idle(self):
        progress = self.controller.get_progress()
        self.assertEqual(progress['phase'], 'idle')
        self.assertEqual(progress['total_questions'], 0)
        self.assertIsNone(progress['remaining_time'])
        self.assertEqual(self.controller.get_status_summary(), "No quiz in progress")
        self.assertIsNone(self.controller.current_question)
        self.assertIsNone(self.controller.final_score)

    async def test_progress_in_progress(self):
        await self.controller.begin("easy")
        await self.controller.submit_answer(self.controller.current_question.correct_index)
        await self.controller.advance()

        progress = self.controller.get_progress()
        self.assertEqual(progress['phase'], 'in_progress')
        self.assertEqual(progress['tier'], 'easy')
        self.assertEqual(progress['question_number'], 2)
        self.assertEqual(progress['score'], 1)
        self.assertEqual(progress['remaining_time'], 120)
        self.assertEqual(
            self.controller.get_status_summary(),
            "Question 2 of 10 (easy), score 1, 2:00 left"
        )

    async def test_status_when_waiting_and_finished(self):
        await self.controller.begin("easy")
        await self.controller.on_timer_timeout()
        self.assertTrue(self.controller.get_status_summary().endswith("waiting for next question"))

        await self.answer_all()
        self.assertEqual(self.controller.get_status_summary(), "Quiz finished: 9 out of 10")

    async def test_state_is_a_copy(self):
        await self.controller.begin("easy")
        state = self.controller.state
        state.score = 99
        self.assertEqual(self.controller.score, 0)


class TestTransitionTable(unittest.TestCase):
    """The transition table and signal names."""

    def test_every_event_has_an_entry(self):
        self.assertEqual(set(TRANSITIONS), set(SessionEvent))

    def test_begin_only_from_idle_or_finished(self):
        self.assertEqual(TRANSITIONS[SessionEvent.BEGIN], {SessionPhase.IDLE, SessionPhase.FINISHED})

    def test_signals_name_listener_methods(self):
        for signal in SessionSignal:
            self.assertTrue(callable(getattr(SessionListener, signal.value)))

    def test_aliases(self):
        self.assertIs(QuizController.begin_session, QuizController.begin)
        self.assertIs(QuizController.advance_to_next, QuizController.advance)
        self.assertIs(QuizController.reset_session, QuizController.reset)

    def test_custom_questions_accepted(self):
        question = Question("Pick B", ("A", "B"), 1)
        source = FakeQuestionSource((question,))
        controller = QuizController(source)
        self.assertIs(controller.phase, SessionPhase.IDLE)


if __name__ == '__main__':
    unittest.main()
