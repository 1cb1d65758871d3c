"""
Discord message components for the Trivia Quiz Bot.
"""
from typing import Awaitable, Callable, Optional, Sequence

import discord

from .models import AnswerOutcome, DifficultyTier

InteractionHandler = Callable[[discord.Interaction], Awaitable[None]]

ANSWER_LETTERS = "ABCDEFGHIJ"
MAX_LABEL_LENGTH = 80  # Discord button label limit


def answer_label(index: int, answer: str) -> str:
    """Button label for an answer, prefixed with its letter and cut to Discord's limit."""
    label = f"{ANSWER_LETTERS[index]}. {answer}"
    if len(label) > MAX_LABEL_LENGTH:
        label = label[:MAX_LABEL_LENGTH - 1] + "…"
    return label


class IntroView(discord.ui.View):
    """Intro screen with a single start button."""

    def __init__(self, on_start: InteractionHandler):
        super().__init__(timeout=None)
        self._on_start = on_start

    @discord.ui.button(label="Start", style=discord.ButtonStyle.success, emoji="▶️")
    async def start_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._on_start(interaction)


class LevelSelectView(discord.ui.View):
    """Level select screen, one button per difficulty tier."""

    def __init__(self, on_select: Callable[[discord.Interaction, DifficultyTier], Awaitable[None]]):
        super().__init__(timeout=None)
        self._on_select = on_select

    @discord.ui.button(label="Easy", style=discord.ButtonStyle.success)
    async def easy_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._on_select(interaction, DifficultyTier.EASY)

    @discord.ui.button(label="Medium", style=discord.ButtonStyle.primary)
    async def medium_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._on_select(interaction, DifficultyTier.MEDIUM)

    @discord.ui.button(label="Hard", style=discord.ButtonStyle.danger)
    async def hard_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._on_select(interaction, DifficultyTier.HARD)

    @discord.ui.button(label="Expert", style=discord.ButtonStyle.secondary)
    async def expert_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self._on_select(interaction, DifficultyTier.EXPERT)


class AnswerButton(discord.ui.Button):
    """One answer choice."""

    def __init__(self, index: int, answer: str, on_answer):
        super().__init__(
            label=answer_label(index, answer),
            style=discord.ButtonStyle.secondary,
            row=index // 2
        )
        self.index = index
        self._on_answer = on_answer

    async def callback(self, interaction: discord.Interaction):
        await self._on_answer(interaction, self.index)


class NextButton(discord.ui.Button):
    """Moves the session past a resolved question."""

    def __init__(self, label: str, on_next: InteractionHandler):
        super().__init__(label=label, style=discord.ButtonStyle.primary, row=4)
        self._on_next = on_next

    async def callback(self, interaction: discord.Interaction):
        await self._on_next(interaction)


class QuestionView(discord.ui.View):
    """Answer buttons for one question; reveal() turns it into the outcome view."""

    def __init__(
        self,
        answers: Sequence[str],
        on_answer: Callable[[discord.Interaction, int], Awaitable[None]],
        on_next: InteractionHandler
    ):
        super().__init__(timeout=None)
        self._on_next = on_next
        self.answer_buttons = [
            AnswerButton(index, answer, on_answer) for index, answer in enumerate(answers)
        ]
        for button in self.answer_buttons:
            self.add_item(button)

    def reveal(self, outcome: AnswerOutcome, is_last: bool) -> "QuestionView":
        """Colour the answers, lock them, and add the next button."""
        for button in self.answer_buttons:
            button.disabled = True
            if button.index == outcome.correct_index:
                button.style = discord.ButtonStyle.success
            elif button.index == outcome.chosen_index:
                button.style = discord.ButtonStyle.danger

        self.add_item(NextButton("See Score" if is_last else "Next", self._on_next))
        return self


class ContinueView(discord.ui.View):
    """Single-button view used for Play Again and Go Back."""

    def __init__(self, label: str, on_click: InteractionHandler, style: Optional[discord.ButtonStyle] = None):
        super().__init__(timeout=None)
        self._on_click = on_click
        button = discord.ui.Button(label=label, style=style or discord.ButtonStyle.primary)
        button.callback = self._handle_click
        self.add_item(button)

    async def _handle_click(self, interaction: discord.Interaction):
        await self._on_click(interaction)
