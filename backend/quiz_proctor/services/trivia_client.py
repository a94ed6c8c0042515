"""
Open Trivia DB client
"""
import html
import logging
import random
from typing import List, Optional

import httpx

from ..exceptions import NotEnoughQuestionsError, OfflineError, TriviaError
from ..models.data_models import Question

logger = logging.getLogger(__name__)


# Open Trivia DB categories
CATEGORIES = [
    {"key": "0", "text": "Any Category", "value": 0},
    {"key": "9", "text": "General Knowledge", "value": 9},
    {"key": "10", "text": "Entertainment: Books", "value": 10},
    {"key": "11", "text": "Entertainment: Film", "value": 11},
    {"key": "12", "text": "Entertainment: Music", "value": 12},
    {"key": "13", "text": "Entertainment: Musicals & Theatres", "value": 13},
    {"key": "14", "text": "Entertainment: Television", "value": 14},
    {"key": "15", "text": "Entertainment: Video Games", "value": 15},
    {"key": "16", "text": "Entertainment: Board Games", "value": 16},
    {"key": "17", "text": "Science & Nature", "value": 17},
    {"key": "18", "text": "Science: Computers", "value": 18},
    {"key": "19", "text": "Science: Mathematics", "value": 19},
    {"key": "20", "text": "Mythology", "value": 20},
    {"key": "21", "text": "Sports", "value": 21},
    {"key": "22", "text": "Geography", "value": 22},
    {"key": "23", "text": "History", "value": 23},
    {"key": "24", "text": "Politics", "value": 24},
    {"key": "25", "text": "Art", "value": 25},
    {"key": "26", "text": "Celebrities", "value": 26},
    {"key": "27", "text": "Animals", "value": 27},
    {"key": "28", "text": "Vehicles", "value": 28},
    {"key": "29", "text": "Entertainment: Comics", "value": 29},
    {"key": "30", "text": "Science: Gadgets", "value": 30},
    {"key": "31", "text": "Entertainment: Japanese Anime & Manga", "value": 31},
    {"key": "32", "text": "Entertainment: Cartoon & Animations", "value": 32},
]


def category_name(value: Optional[int]) -> str:
    for category in CATEGORIES:
        if category["value"] == value:
            return category["text"]
    return "Any Category"


def shuffle(items: list, rng: Optional[random.Random] = None) -> list:
    """Return a shuffled copy"""
    shuffled = list(items)
    (rng or random).shuffle(shuffled)
    return shuffled


class TriviaClient:
    """Fetches multiple choice questions from Open Trivia DB"""

    # response_code values documented by Open Trivia DB
    RESPONSE_SUCCESS = 0
    RESPONSE_NO_RESULTS = 1

    def __init__(
        self,
        api_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None
    ):
        self.api_url = api_url
        self.rng = rng
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def fetch_questions(
        self,
        category: Optional[int],
        amount: int = 10,
        difficulty: str = "easy",
        qtype: str = "multiple"
    ) -> List[Question]:
        """
        Fetch questions and shuffle each question's options.

        Raises:
            NotEnoughQuestionsError: response_code 1
            OfflineError: the API could not be reached
            TriviaError: any other unusable response
        """
        params = {"amount": amount, "difficulty": difficulty, "type": qtype}
        if category:
            params["category"] = category

        try:
            response = await self.client.get(self.api_url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.TransportError as e:
            logger.error(f"Trivia API unreachable: {e}")
            raise OfflineError("You are offline. Please check your connection.") from e
        except (httpx.HTTPStatusError, ValueError) as e:
            logger.error(f"Trivia API error: {e}")
            raise TriviaError(str(e)) from e

        response_code = data.get("response_code")
        if response_code == self.RESPONSE_NO_RESULTS:
            raise NotEnoughQuestionsError()
        if response_code != self.RESPONSE_SUCCESS:
            raise TriviaError(f"Trivia API returned response_code {response_code}")

        questions = []
        for element in data.get("results", []):
            correct = html.unescape(element["correct_answer"])
            incorrect = [html.unescape(answer) for answer in element["incorrect_answers"]]
            questions.append(Question(
                category=html.unescape(element.get("category", "")),
                difficulty=element.get("difficulty", difficulty),
                question=html.unescape(element["question"]),
                correct_answer=correct,
                incorrect_answers=incorrect,
                options=shuffle([correct, *incorrect], self.rng)
            ))

        logger.info(f"Fetched {len(questions)} questions for category {category}")
        return questions

    async def aclose(self) -> None:
        await self.client.aclose()
