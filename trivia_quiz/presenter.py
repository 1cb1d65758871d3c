"""
Discord presentation of quiz session signals.
Renders questions, outcomes, the countdown and the final score as embeds.
"""
import logging
from typing import Awaitable, Callable, Optional

import discord

from .models import AnswerOutcome, DifficultyTier, Question
from .quiz_controller import SessionListener
from .quiz_engine import format_time
from .views import ContinueView, QuestionView

logger = logging.getLogger(__name__)

COLOR_NEUTRAL = 0x3498db
COLOR_CORRECT = 0x28a745
COLOR_INCORRECT = 0xdc3545
COLOR_WARNING = 0xff6600


def build_intro_embed() -> discord.Embed:
    embed = discord.Embed(
        title="🧠 Trivia Quiz",
        description="Ten multiple-choice questions against the clock. Ready?",
        color=COLOR_NEUTRAL
    )
    embed.set_footer(text="Questions from the Open Trivia Database")
    return embed


def build_level_embed(time_limits) -> discord.Embed:
    """Level select screen listing each tier's time limit."""
    embed = discord.Embed(
        title="🎚️ Choose your level",
        description="Each level sets how hard the questions are and how long you get.",
        color=COLOR_NEUTRAL
    )
    for tier in DifficultyTier:
        embed.add_field(
            name=tier.value.title(),
            value=f"⏱️ {format_time(time_limits[tier])} per question",
            inline=True
        )
    return embed


def build_loading_embed(tier: DifficultyTier) -> discord.Embed:
    return discord.Embed(
        title="⏳ Loading questions...",
        description=f"Fetching {tier.value} questions.",
        color=COLOR_NEUTRAL
    )


def build_question_embed(question: Question, index: int, total: int, remaining: int) -> discord.Embed:
    """Question embed with the countdown."""
    embed = discord.Embed(
        title=f"Question {index + 1} of {total}",
        description=question.text,
        color=COLOR_NEUTRAL if remaining > 5 else COLOR_WARNING
    )
    embed.add_field(name="⏱️ Time Remaining", value=format_time(remaining), inline=True)
    if remaining <= 5:
        embed.set_footer(text="⚡ Time running out!")
    return embed


def build_outcome_embed(question: Question, index: int, total: int, outcome: AnswerOutcome, score: int) -> discord.Embed:
    """Question embed after it was answered or timed out."""
    if outcome.timed_out:
        title = "⏰ Time's up!"
        color = COLOR_INCORRECT
    elif outcome.was_correct:
        title = "✅ Correct!"
        color = COLOR_CORRECT
    else:
        title = "❌ Incorrect"
        color = COLOR_INCORRECT

    embed = discord.Embed(
        title=f"{title} - Question {index + 1} of {total}",
        description=question.text,
        color=color
    )
    embed.add_field(name="Correct Answer", value=f"**{question.answers[outcome.correct_index]}**", inline=False)
    embed.add_field(name="Score", value=f"{score} / {total}", inline=True)
    return embed


def build_score_embed(score: int, total: int) -> discord.Embed:
    embed = discord.Embed(
        title="🏆 Game Over",
        description=f"You scored **{score}** out of **{total}**!",
        color=COLOR_CORRECT
    )
    embed.set_footer(text="Play again to choose a new level")
    return embed


def build_load_failed_embed() -> discord.Embed:
    return discord.Embed(
        title="❌ Error loading questions",
        description="Error loading questions. Please check your connection or try again.",
        color=COLOR_INCORRECT
    )


class DiscordPresenter(SessionListener):
    """
    Session listener that renders the quiz in one Discord channel.

    Button clicks are forwarded to the handlers given at construction.
    """

    def __init__(
        self,
        on_answer: Callable[[discord.Interaction, int], Awaitable[None]],
        on_next: Callable[[discord.Interaction], Awaitable[None]],
        on_play_again: Callable[[discord.Interaction], Awaitable[None]],
        on_back: Callable[[discord.Interaction], Awaitable[None]]
    ):
        self._on_answer = on_answer
        self._on_next = on_next
        self._on_play_again = on_play_again
        self._on_back = on_back

        self.channel: Optional[discord.abc.Messageable] = None
        self.question_message: Optional[discord.Message] = None
        self.question_view: Optional[QuestionView] = None
        self._question: Optional[Question] = None
        self._index = 0
        self._total = 0
        self._score = 0

    def bind(self, channel: discord.abc.Messageable) -> None:
        """Render subsequent signals into this channel."""
        self.channel = channel
        self.clear()

    def clear(self) -> None:
        """Forget the current question message."""
        self.question_message = None
        self.question_view = None
        self._question = None
        self._score = 0

    @staticmethod
    def should_refresh(remaining_seconds: int) -> bool:
        """Throttle countdown edits to stay inside Discord's rate limits."""
        return remaining_seconds % 10 == 0 or remaining_seconds <= 5

    async def question_presented(self, question: Question, index: int, total: int, time_limit: int) -> None:
        if index == 0:
            self._score = 0
        self._question = question
        self._index = index
        self._total = total
        # Ticks arriving while the send is in flight must not edit the previous message
        self.question_message = None
        self.question_view = QuestionView(question.answers, self._on_answer, self._on_next)
        self.question_message = await self._send(
            embed=build_question_embed(question, index, total, time_limit),
            view=self.question_view
        )

    async def timer_tick(self, remaining_seconds: int) -> None:
        if self.question_message is None or self._question is None:
            return
        if not self.should_refresh(remaining_seconds):
            return
        await self._edit(embed=build_question_embed(self._question, self._index, self._total, remaining_seconds))

    async def answer_outcome(self, outcome: AnswerOutcome) -> None:
        if self._question is None:
            return
        if outcome.was_correct:
            self._score += 1

        view = None
        if self.question_view is not None:
            view = self.question_view.reveal(outcome, is_last=self._index + 1 >= self._total)
        await self._edit(
            embed=build_outcome_embed(self._question, self._index, self._total, outcome, self._score),
            view=view
        )

    async def session_finished(self, score: int, total: int) -> None:
        self.clear()
        await self._send(
            embed=build_score_embed(score, total),
            view=ContinueView("Play Again", self._on_play_again, discord.ButtonStyle.success)
        )

    async def load_failed(self) -> None:
        self.clear()
        await self._send(
            embed=build_load_failed_embed(),
            view=ContinueView("Go Back", self._on_back, discord.ButtonStyle.secondary)
        )

    async def _send(self, **kwargs) -> Optional[discord.Message]:
        if self.channel is None:
            logger.warning("No channel bound, dropping quiz message")
            return None
        try:
            return await self.channel.send(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to send quiz message: {e}")
            return None

    async def _edit(self, **kwargs) -> None:
        if self.question_message is None:
            return
        try:
            await self.question_message.edit(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to update question message: {e}")
