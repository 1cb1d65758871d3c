"""
Core data models for the Trivia Quiz Bot.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class DifficultyTier(Enum):
    """User-selectable quiz difficulty."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"

    @classmethod
    def parse(cls, value) -> "DifficultyTier":
        """
        Convert a tier name (or tier) into a DifficultyTier.

        Unrecognized names fall back to MEDIUM, matching the API mapping.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown difficulty tier {value!r}, using medium")
            return cls.MEDIUM

    @property
    def api_difficulty(self) -> str:
        """Difficulty value understood by the trivia API."""
        if self is DifficultyTier.EXPERT:
            return "hard"
        return self.value


class SessionPhase(Enum):
    """Phases of a quiz session."""
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


@dataclass(frozen=True)
class Question:
    """A multiple-choice question with exactly one correct answer."""
    text: str
    answers: Tuple[str, ...]
    correct_index: int

    def __post_init__(self):
        object.__setattr__(self, 'answers', tuple(self.answers))
        if len(self.answers) < 2:
            raise ValueError("A question needs at least two answers")
        if not isinstance(self.correct_index, int) or not 0 <= self.correct_index < len(self.answers):
            raise ValueError(
                f"Correct index {self.correct_index} out of range for {len(self.answers)} answers"
            )

    @property
    def correct_answer(self) -> str:
        return self.answers[self.correct_index]

    def is_correct(self, choice_index: int) -> bool:
        return choice_index == self.correct_index


QuestionBatch = Tuple[Question, ...]


@dataclass
class SessionState:
    """Mutable state of a quiz session, owned by QuizController."""
    phase: SessionPhase = SessionPhase.IDLE
    questions: QuestionBatch = ()
    current_index: int = 0
    score: int = 0
    time_limit_seconds: int = 60
    resolved: bool = False
    tier: Optional[DifficultyTier] = None


@dataclass(frozen=True)
class TimerState:
    """Snapshot of a countdown timer."""
    remaining_seconds: int = 0
    running: bool = False


@dataclass(frozen=True)
class AnswerOutcome:
    """Result of resolving a question by answer or timeout."""
    correct_index: int
    was_correct: bool
    chosen_index: Optional[int] = None
    timed_out: bool = False


@dataclass(frozen=True)
class FinalScore:
    """Score reported when a session finishes."""
    score: int
    total: int

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.score / self.total) * 100
