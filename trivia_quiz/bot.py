import discord
from discord.ext import commands
import logging
from typing import Optional

import aiohttp

from .config_manager import ConfigManager
from .models import DifficultyTier, SessionPhase
from .presenter import (
    DiscordPresenter,
    build_intro_embed,
    build_level_embed,
    build_loading_embed,
)
from .question_source import QuestionSource
from .quiz_controller import QuizController
from .views import IntroView, LevelSelectView

logger = logging.getLogger(__name__)


class QuizBot(commands.Bot):
    """Discord bot hosting one trivia quiz session at a time"""

    def __init__(self, config=None):
        # Minimal intents for slash commands and components
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        # Core components, created in setup_hook
        self.config_manager: Optional[ConfigManager] = None
        self.question_source: Optional[QuestionSource] = None
        self.quiz_controller: Optional[QuizController] = None
        self.presenter: Optional[DiscordPresenter] = None
        self.http_session: Optional[aiohttp.ClientSession] = None

        # Channel the current session renders into
        self.active_channel_id: Optional[int] = None
        # Set while a level select is claiming the session, before the load starts
        self._claimed = False

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")
            self.build_components(aiohttp.ClientSession())
            await self.setup_commands()
            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def build_components(self, http_session: Optional[aiohttp.ClientSession] = None) -> None:
        """Create the config, question source, presenter and session controller."""
        self.config_manager = ConfigManager()
        for error in self.config_manager.apply_config(self.app_config):
            logger.warning(f"Ignoring configuration value: {error}")

        settings = self.config_manager.get_settings()
        self.http_session = http_session
        self.question_source = QuestionSource(
            api_url=settings.api_url,
            amount=settings.question_amount,
            request_timeout=settings.request_timeout,
            session=http_session
        )
        self.presenter = DiscordPresenter(
            on_answer=self.handle_answer,
            on_next=self.handle_next,
            on_play_again=self.handle_play_again,
            on_back=self.handle_back
        )
        self.quiz_controller = QuizController(
            self.question_source,
            self.config_manager,
            listener=self.presenter
        )

    async def setup_commands(self):
        """Register all slash commands"""
        @self.tree.command(name="trivia", description="Start a trivia quiz")
        async def trivia_command(interaction: discord.Interaction):
            await self.handle_trivia(interaction)

        @self.tree.command(name="quit", description="Abandon the current trivia quiz")
        async def quit_command(interaction: discord.Interaction):
            await self.handle_quit(interaction)

        @self.tree.command(name="status", description="Show the current quiz progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="help", description="Display available commands")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def close(self):
        """Stop the session and release the HTTP session on shutdown"""
        if self.quiz_controller is not None:
            self.quiz_controller.reset()
        if self.http_session is not None and not self.http_session.closed:
            await self.http_session.close()
        await super().close()

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "Error"):
        """Send error response to user with fallback handling"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            logger.error(f"Failed to send error embed: {e}")

    def is_busy(self) -> bool:
        """Check whether a quiz is loading or being played"""
        return (
            self._claimed
            or self.quiz_controller.is_loading
            or self.quiz_controller.phase is SessionPhase.IN_PROGRESS
        )

    def is_active_channel(self, interaction: discord.Interaction) -> bool:
        return self.active_channel_id is None or interaction.channel_id == self.active_channel_id

    async def reject_if_busy(self, interaction: discord.Interaction) -> bool:
        """Tell the user a quiz is already running; returns True if it did"""
        if not self.is_busy():
            return False
        if self.is_active_channel(interaction):
            message = "A quiz is already running here. Use `/quit` to abandon it."
        else:
            message = "A quiz is already running in another channel. Only one quiz can run at a time."
        await self.send_error_response(interaction, message, "❌ Quiz In Progress")
        return True

    async def show_level_select(self, interaction: discord.Interaction):
        """Replace the clicked message with the level select screen"""
        settings = self.config_manager.get_settings()
        await interaction.response.edit_message(
            embed=build_level_embed(settings.time_limits),
            view=LevelSelectView(self.handle_level_select)
        )

    # Command handlers
    async def handle_trivia(self, interaction: discord.Interaction):
        """Handle /trivia command"""
        if await self.reject_if_busy(interaction):
            return
        await interaction.response.send_message(embed=build_intro_embed(), view=IntroView(self.handle_start))

    async def handle_quit(self, interaction: discord.Interaction):
        """Handle /quit command"""
        if not self.is_busy() or not self.is_active_channel(interaction):
            await self.send_error_response(interaction, "There is no quiz running in this channel.", "❌ No Quiz")
            return

        self.quiz_controller.reset_session()
        self.presenter.clear()
        self.active_channel_id = None
        await interaction.response.send_message("🛑 Quiz abandoned. Use `/trivia` to start a new one.")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        embed = discord.Embed(
            title="📊 Quiz Status",
            description=self.quiz_controller.get_status_summary(),
            color=0x3498db
        )
        embed.add_field(name="⚙️ Settings", value=self.config_manager.get_settings_summary(), inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        embed = discord.Embed(
            title="🎯 Trivia Quiz Commands",
            color=0x00ff00
        )
        embed.add_field(
            name="Commands",
            value=(
                "`/trivia` - Start a quiz and pick a level\n"
                "`/quit` - Abandon the running quiz\n"
                "`/status` - Show progress and settings\n"
                "`/help` - Show this message"
            ),
            inline=False
        )
        embed.add_field(
            name="How to play",
            value="Pick the right answer before the timer runs out, then press **Next**.",
            inline=False
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    def is_current_question(self, interaction: discord.Interaction) -> bool:
        """Check that a component belongs to the question message on screen"""
        message = self.presenter.question_message
        return message is not None and interaction.message is not None and interaction.message.id == message.id

    # Component handlers
    async def handle_start(self, interaction: discord.Interaction):
        """Intro Start button"""
        await self.show_level_select(interaction)

    async def handle_level_select(self, interaction: discord.Interaction, tier: DifficultyTier):
        """Level button: load questions and begin the session"""
        if await self.reject_if_busy(interaction):
            return

        # Claim before the first await so a concurrent click sees the quiz as busy
        self._claimed = True
        self.active_channel_id = interaction.channel_id
        self.presenter.bind(interaction.channel)
        try:
            await interaction.response.edit_message(embed=build_loading_embed(tier), view=None)
            await self.quiz_controller.begin_session(tier)
        finally:
            self._claimed = False

    async def handle_answer(self, interaction: discord.Interaction, index: int):
        """Answer button"""
        await interaction.response.defer()
        if not self.is_current_question(interaction):
            await self.send_error_response(interaction, "This question is no longer active.", "⚠️ Old Question")
            return
        outcome = await self.quiz_controller.submit_answer(index)
        if outcome is None:
            await self.send_error_response(interaction, "This question has already been answered.", "⚠️ Too Late")

    async def handle_next(self, interaction: discord.Interaction):
        """Next / See Score button"""
        await interaction.response.defer()
        if not self.is_current_question(interaction):
            await self.send_error_response(interaction, "This question is no longer active.", "⚠️ Old Question")
            return
        if not await self.quiz_controller.advance_to_next():
            await self.send_error_response(interaction, "There is no question to move past.", "⚠️ Nothing To Do")

    async def handle_play_again(self, interaction: discord.Interaction):
        """Play Again button on the score screen"""
        if await self.reject_if_busy(interaction):
            return
        await self.show_level_select(interaction)

    async def handle_back(self, interaction: discord.Interaction):
        """Go Back button after a failed load"""
        if await self.reject_if_busy(interaction):
            return
        self.quiz_controller.reset_session()
        self.active_channel_id = None
        await self.show_level_select(interaction)


async def run_bot(token: str, config=None):
    """Run the bot until it is stopped"""
    bot = QuizBot(config)
    async with bot:
        await bot.start(token)
