"""
Unit tests for the core data models.
"""
import unittest

from trivia_quiz.models import (
    AnswerOutcome,
    DifficultyTier,
    FinalScore,
    Question,
    SessionPhase,
    SessionState,
)


class TestQuestion(unittest.TestCase):
    """Test cases for the Question invariant."""

    def test_valid_question(self):
        question = Question("2+2?", ["3", "4", "5"], 1)
        self.assertEqual(question.answers, ("3", "4", "5"))
        self.assertEqual(question.correct_answer, "4")
        self.assertTrue(question.is_correct(1))
        self.assertFalse(question.is_correct(0))

    def test_too_few_answers(self):
        with self.assertRaises(ValueError):
            Question("Only one?", ["yes"], 0)

    def test_correct_index_out_of_range(self):
        with self.assertRaises(ValueError):
            Question("2+2?", ["3", "4"], 2)
        with self.assertRaises(ValueError):
            Question("2+2?", ["3", "4"], -1)

    def test_question_is_immutable(self):
        question = Question("2+2?", ["3", "4"], 1)
        with self.assertRaises(AttributeError):
            question.correct_index = 0


class TestDifficultyTier(unittest.TestCase):
    """Test cases for tier parsing and API mapping."""

    def test_api_difficulty_mapping(self):
        self.assertEqual(DifficultyTier.EASY.api_difficulty, "easy")
        self.assertEqual(DifficultyTier.MEDIUM.api_difficulty, "medium")
        self.assertEqual(DifficultyTier.HARD.api_difficulty, "hard")
        self.assertEqual(DifficultyTier.EXPERT.api_difficulty, "hard")

    def test_parse_names(self):
        self.assertIs(DifficultyTier.parse("easy"), DifficultyTier.EASY)
        self.assertIs(DifficultyTier.parse(" Expert "), DifficultyTier.EXPERT)
        self.assertIs(DifficultyTier.parse(DifficultyTier.HARD), DifficultyTier.HARD)

    def test_parse_unknown_defaults_to_medium(self):
        self.assertIs(DifficultyTier.parse("impossible"), DifficultyTier.MEDIUM)
        self.assertIs(DifficultyTier.parse(None), DifficultyTier.MEDIUM)


class TestSessionModels(unittest.TestCase):
    """Test cases for session-related records."""

    def test_session_state_defaults(self):
        state = SessionState()
        self.assertIs(state.phase, SessionPhase.IDLE)
        self.assertEqual(state.questions, ())
        self.assertEqual(state.current_index, 0)
        self.assertEqual(state.score, 0)
        self.assertFalse(state.resolved)

    def test_timeout_outcome_has_no_choice(self):
        outcome = AnswerOutcome(correct_index=2, was_correct=False, timed_out=True)
        self.assertIsNone(outcome.chosen_index)

    def test_final_score_percentage(self):
        self.assertAlmostEqual(FinalScore(7, 10).percentage, 70.0)
        self.assertEqual(FinalScore(0, 0).percentage, 0.0)


if __name__ == '__main__':
    unittest.main()
