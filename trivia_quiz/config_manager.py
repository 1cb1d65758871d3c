"""
Configuration manager for Trivia Quiz Bot settings and parameters.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .models import DifficultyTier
from .question_source import DEFAULT_API_URL, DEFAULT_QUESTION_AMOUNT, DEFAULT_REQUEST_TIMEOUT


DEFAULT_TIME_LIMITS = {
    DifficultyTier.EASY: 120,     # 2 minutes
    DifficultyTier.MEDIUM: 60,    # 1 minute
    DifficultyTier.HARD: 3000,    # 50 minutes
    DifficultyTier.EXPERT: 3000,  # same as hard
}


@dataclass
class TriviaSettings:
    """Configuration settings for trivia quiz sessions."""
    api_url: str = DEFAULT_API_URL
    question_amount: int = DEFAULT_QUESTION_AMOUNT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    time_limits: Dict[DifficultyTier, int] = field(default_factory=lambda: dict(DEFAULT_TIME_LIMITS))


class ConfigManager:
    """Manages bot configuration settings and quiz parameters."""

    # Validation limits
    MIN_TIME_LIMIT = 5
    MAX_TIME_LIMIT = 3600  # 1 hour
    MIN_QUESTION_AMOUNT = 1
    MAX_QUESTION_AMOUNT = 50  # API maximum per request
    MIN_REQUEST_TIMEOUT = 1
    MAX_REQUEST_TIMEOUT = 60

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._settings = TriviaSettings()

    def get_settings(self) -> TriviaSettings:
        """
        Get a copy of the current settings.

        Returns:
            TriviaSettings object with current configuration
        """
        return TriviaSettings(
            api_url=self._settings.api_url,
            question_amount=self._settings.question_amount,
            request_timeout=self._settings.request_timeout,
            time_limits=dict(self._settings.time_limits)
        )

    def get_time_limit(self, tier) -> int:
        """
        Get the per-question time limit for a tier.

        Args:
            tier: DifficultyTier or tier name; unknown names use medium

        Returns:
            Time limit in seconds
        """
        return self._settings.time_limits[DifficultyTier.parse(tier)]

    def set_time_limit(self, tier, seconds: int) -> Dict[str, Any]:
        """
        Set the per-question time limit for a tier.

        Args:
            tier: DifficultyTier or tier name
            seconds: Time limit in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(tier, DifficultyTier):
            resolved_tier = tier
        else:
            try:
                resolved_tier = DifficultyTier(str(tier).strip().lower())
            except ValueError:
                error_msg = f"Unknown difficulty tier: {tier}"
                self.logger.error(error_msg)
                tier_names = ", ".join(t.value for t in DifficultyTier)
                return {
                    'success': False,
                    'error': error_msg,
                    'user_message': f"❌ Unknown level '{tier}'. Choose one of: {tier_names}"
                }

        # bool is an int subclass, reject it explicitly
        if not isinstance(seconds, int) or isinstance(seconds, bool):
            error_msg = f"Time limit must be an integer, got {type(seconds).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            }

        if seconds < self.MIN_TIME_LIMIT:
            error_msg = f"Time limit must be at least {self.MIN_TIME_LIMIT} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too short: Minimum is {self.MIN_TIME_LIMIT} seconds"
            }

        if seconds > self.MAX_TIME_LIMIT:
            error_msg = f"Time limit cannot exceed {self.MAX_TIME_LIMIT} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Timer too long: Maximum is {self.MAX_TIME_LIMIT} seconds ({self.MAX_TIME_LIMIT // 60} minutes)"
            }

        self._settings.time_limits[resolved_tier] = seconds
        self.logger.info(f"Time limit for {resolved_tier.value} set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Time limit for {resolved_tier.value} set to {seconds} seconds",
            'user_message': f"✅ {resolved_tier.value.title()} questions now allow {seconds} seconds"
        }

    def set_question_amount(self, amount: int) -> Dict[str, Any]:
        """
        Set the number of questions fetched per quiz.

        Args:
            amount: Questions per batch

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(amount, int) or isinstance(amount, bool):
            error_msg = f"Question amount must be an integer, got {type(amount).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(amount).__name__}"
            }

        if not self.MIN_QUESTION_AMOUNT <= amount <= self.MAX_QUESTION_AMOUNT:
            error_msg = (
                f"Question amount must be between {self.MIN_QUESTION_AMOUNT} "
                f"and {self.MAX_QUESTION_AMOUNT}"
            )
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {error_msg}"
            }

        self._settings.question_amount = amount
        self.logger.info(f"Question amount set to {amount}")
        return {
            'success': True,
            'message': f"Question amount set to {amount}",
            'user_message': f"✅ Quizzes will have {amount} questions"
        }

    def set_request_timeout(self, seconds) -> Dict[str, Any]:
        """
        Set the trivia API request timeout.

        Args:
            seconds: Timeout in seconds (int or float)

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(seconds, (int, float)) or isinstance(seconds, bool):
            error_msg = f"Request timeout must be a number, got {type(seconds).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(seconds).__name__}"
            }

        if not self.MIN_REQUEST_TIMEOUT <= seconds <= self.MAX_REQUEST_TIMEOUT:
            error_msg = (
                f"Request timeout must be between {self.MIN_REQUEST_TIMEOUT} "
                f"and {self.MAX_REQUEST_TIMEOUT} seconds"
            )
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {error_msg}"
            }

        self._settings.request_timeout = float(seconds)
        self.logger.info(f"Request timeout set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Request timeout set to {seconds} seconds",
            'user_message': f"✅ Request timeout set to {seconds} seconds"
        }

    def set_api_url(self, url: str) -> Dict[str, Any]:
        """
        Set the trivia API endpoint.

        Args:
            url: HTTP(S) URL of the API

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(url, str) or not url.strip():
            error_msg = "API URL must be a non-empty string"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ API URL cannot be empty"
            }

        parsed = urlparse(url.strip())
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            error_msg = f"Invalid API URL: {url}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid URL: {url}"
            }

        self._settings.api_url = url.strip()
        self.logger.info(f"API URL set to {self._settings.api_url}")
        return {
            'success': True,
            'message': f"API URL set to {self._settings.api_url}",
            'user_message': f"✅ Questions will be fetched from {self._settings.api_url}"
        }

    def apply_config(self, config: Optional[Dict[str, Any]]) -> List[str]:
        """
        Apply the 'trivia' section of a configuration dictionary.

        Invalid values are logged and skipped, keeping the current setting.

        Args:
            config: Parsed config.json contents

        Returns:
            List of error messages for values that were rejected
        """
        errors = []
        trivia_config = (config or {}).get('trivia', {})

        results = []
        if 'api_url' in trivia_config:
            results.append(self.set_api_url(trivia_config['api_url']))
        if 'question_amount' in trivia_config:
            results.append(self.set_question_amount(trivia_config['question_amount']))
        if 'request_timeout' in trivia_config:
            results.append(self.set_request_timeout(trivia_config['request_timeout']))
        for tier_name, seconds in trivia_config.get('time_limits', {}).items():
            results.append(self.set_time_limit(tier_name, seconds))

        for result in results:
            if not result['success']:
                errors.append(result['error'])

        if errors:
            self.logger.warning(f"Configuration applied with {len(errors)} rejected values")
        else:
            self.logger.info("Configuration applied successfully")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = TriviaSettings()
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        for tier in DifficultyTier:
            seconds = self._settings.time_limits.get(tier)
            if (not isinstance(seconds, int) or
                    seconds < self.MIN_TIME_LIMIT or
                    seconds > self.MAX_TIME_LIMIT):
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid time limit for {tier.value}: {seconds}")

        amount = self._settings.question_amount
        if (not isinstance(amount, int) or
                amount < self.MIN_QUESTION_AMOUNT or
                amount > self.MAX_QUESTION_AMOUNT):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid question amount: {amount}")

        timeout = self._settings.request_timeout
        if (not isinstance(timeout, (int, float)) or
                timeout < self.MIN_REQUEST_TIMEOUT or
                timeout > self.MAX_REQUEST_TIMEOUT):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid request timeout: {timeout}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        limits = ", ".join(
            f"{tier.value} {self._settings.time_limits[tier]}s" for tier in DifficultyTier
        )
        return (
            f"Trivia Settings:\n"
            f"• Questions per quiz: {self._settings.question_amount}\n"
            f"• Time limits: {limits}\n"
            f"• Request timeout: {self._settings.request_timeout:g} seconds\n"
            f"• API: {self._settings.api_url}"
        )
