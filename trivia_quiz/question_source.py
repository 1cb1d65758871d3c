"""
Question source for the Trivia Quiz Bot.
Fetches multiple-choice questions from the Open Trivia Database and
normalizes them into Question records.
"""
import asyncio
import html
import logging
import random
from typing import Any, Dict, List, Optional

import aiohttp

from .models import DifficultyTier, Question, QuestionBatch

logger = logging.getLogger(__name__)


DEFAULT_API_URL = "https://opentdb.com/api.php"
DEFAULT_QUESTION_AMOUNT = 10
DEFAULT_REQUEST_TIMEOUT = 10.0


class MalformedPayloadError(ValueError):
    """Raised when an API payload does not have the expected shape."""
    pass


def map_tier_to_difficulty(tier) -> str:
    """
    Map a difficulty tier to the API difficulty parameter.

    Expert aliases to hard; anything unrecognized maps to medium.
    """
    return DifficultyTier.parse(tier).api_difficulty


def shuffle_in_place(items: List[Any], rng: Optional[random.Random] = None) -> List[Any]:
    """
    Fisher-Yates shuffle.

    Args:
        items: List to shuffle in place
        rng: Random generator, defaults to the module-level generator

    Returns:
        The same list, shuffled
    """
    rng = rng or random
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def normalize_item(item: Dict[str, Any], rng: Optional[random.Random] = None) -> Question:
    """
    Turn a raw API result into a Question with shuffled answers.

    Args:
        item: One entry of the API 'results' list
        rng: Random generator used for the shuffle

    Returns:
        Question with HTML entities decoded

    Raises:
        MalformedPayloadError: If required fields are missing or mistyped
    """
    if not isinstance(item, dict):
        raise MalformedPayloadError(f"Result item must be an object, got {type(item).__name__}")

    text = item.get('question')
    correct = item.get('correct_answer')
    incorrect = item.get('incorrect_answers')

    if not isinstance(text, str) or not isinstance(correct, str):
        raise MalformedPayloadError("Result item is missing 'question' or 'correct_answer'")
    if not isinstance(incorrect, list) or not incorrect:
        raise MalformedPayloadError("Result item has no 'incorrect_answers'")
    if not all(isinstance(answer, str) for answer in incorrect):
        raise MalformedPayloadError("'incorrect_answers' must only contain strings")

    # Shuffle indices; the correct answer is tracked by its original position
    answers = incorrect + [correct]
    order = shuffle_in_place(list(range(len(answers))), rng)
    correct_position = len(answers) - 1

    return Question(
        text=html.unescape(text),
        answers=tuple(html.unescape(answers[position]) for position in order),
        correct_index=order.index(correct_position)
    )


def normalize_payload(payload: Any, rng: Optional[random.Random] = None) -> QuestionBatch:
    """
    Convert a full API response into a question batch.

    Returns an empty batch for a non-zero response code or an empty result set.

    Raises:
        MalformedPayloadError: If the payload does not have the expected shape
    """
    if not isinstance(payload, dict):
        raise MalformedPayloadError(f"Payload must be an object, got {type(payload).__name__}")

    response_code = payload.get('response_code')
    results = payload.get('results')

    if response_code != 0:
        logger.error(f"Trivia API returned response code {response_code}")
        return ()
    if not isinstance(results, list):
        raise MalformedPayloadError("Payload 'results' must be a list")
    if not results:
        logger.error("Trivia API returned no results")
        return ()

    return tuple(normalize_item(item, rng) for item in results)


class QuestionSource:
    """Fetches question batches from the trivia API."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        amount: int = DEFAULT_QUESTION_AMOUNT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the question source.

        Args:
            api_url: Trivia API endpoint
            amount: Number of questions per batch
            request_timeout: Total request timeout in seconds
            session: Shared aiohttp session; a new one is opened per request if None
            rng: Random generator used to shuffle answers
        """
        self.api_url = api_url
        self.amount = amount
        self.request_timeout = request_timeout
        self.logger = logging.getLogger(__name__)
        self._session = session
        self._rng = rng or random.Random()

    def build_params(self, tier) -> Dict[str, Any]:
        """Query parameters for a batch request."""
        return {
            'amount': self.amount,
            'type': 'multiple',
            'difficulty': map_tier_to_difficulty(tier)
        }

    async def fetch_questions(self, tier) -> QuestionBatch:
        """
        Fetch and normalize one batch of questions.

        Args:
            tier: DifficultyTier or tier name

        Returns:
            Tuple of Question objects; empty if questions could not be loaded
        """
        params = self.build_params(tier)
        self.logger.info(f"Requesting {params['amount']} {params['difficulty']} questions from {self.api_url}")

        try:
            payload = await self._request_payload(params)
            batch = normalize_payload(payload, self._rng)
        except aiohttp.ClientError as e:
            self.logger.error(f"Failed to fetch questions: {e}")
            return ()
        except asyncio.TimeoutError:
            self.logger.error(f"Trivia API request timed out after {self.request_timeout}s")
            return ()
        except MalformedPayloadError as e:
            self.logger.error(f"Malformed trivia API payload: {e}")
            return ()
        except ValueError as e:
            # Body was not valid JSON
            self.logger.error(f"Invalid JSON from trivia API: {e}")
            return ()

        self.logger.info(f"Loaded {len(batch)} questions")
        return batch

    async def _request_payload(self, params: Dict[str, Any]) -> Any:
        """Issue the GET request and decode the JSON body."""
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)

        if self._session is not None:
            return await self._get_json(self._session, params, timeout)

        async with aiohttp.ClientSession() as session:
            return await self._get_json(session, params, timeout)

    async def _get_json(self, session: aiohttp.ClientSession, params: Dict[str, Any], timeout) -> Any:
        async with session.get(self.api_url, params=params, timeout=timeout) as response:
            response.raise_for_status()
            return await response.json(content_type=None)
