"""
Unit tests for the Open Trivia DB client
"""
import random

import httpx
import pytest

from quiz_proctor.exceptions import NotEnoughQuestionsError, OfflineError, TriviaError
from quiz_proctor.services.trivia_client import (
    CATEGORIES,
    TriviaClient,
    category_name,
    shuffle,
)

API_URL = "https://opentdb.test/api.php"

RESULT = {
    "category": "Science &amp; Nature",
    "type": "multiple",
    "difficulty": "easy",
    "question": "What is H&#039;s symbol?",
    "correct_answer": "H",
    "incorrect_answers": ["He", "&quot;Hy&quot;", "Hd"],
}


def make_client(handler, rng=None):
    return TriviaClient(API_URL, transport=httpx.MockTransport(handler), rng=rng)


class TestCategories:

    def test_any_category_first(self):
        assert CATEGORIES[0]["value"] == 0
        assert len(CATEGORIES) == 25

    def test_category_name(self):
        assert category_name(21) == "Sports"
        assert category_name(None) == "Any Category"
        assert category_name(999) == "Any Category"


class TestShuffle:

    def test_returns_copy_with_same_items(self):
        items = [1, 2, 3, 4, 5]
        shuffled = shuffle(items, random.Random(1))

        assert sorted(shuffled) == items
        assert items == [1, 2, 3, 4, 5]


class TestFetchQuestions:
    """Test question fetching and response codes"""

    @pytest.mark.asyncio
    async def test_request_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"response_code": 0, "results": [RESULT]})

        client = make_client(handler)
        await client.fetch_questions(17, amount=10)

        params = seen[0].url.params
        assert params["amount"] == "10"
        assert params["difficulty"] == "easy"
        assert params["type"] == "multiple"
        assert params["category"] == "17"
        await client.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("category", [None, 0])
    async def test_any_category_omits_param(self, category):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"response_code": 0, "results": []})

        client = make_client(handler)
        await client.fetch_questions(category)

        assert "category" not in seen[0].url.params
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unescapes_and_shuffles(self):
        client = make_client(
            lambda request: httpx.Response(200, json={"response_code": 0, "results": [RESULT]}),
            rng=random.Random(3)
        )

        questions = await client.fetch_questions(17)

        question = questions[0]
        assert question.category == "Science & Nature"
        assert question.question == "What is H's symbol?"
        assert question.incorrect_answers == ["He", '"Hy"', "Hd"]
        assert sorted(question.options) == sorted(["H", "He", '"Hy"', "Hd"])
        await client.aclose()

    @pytest.mark.asyncio
    async def test_no_results_code(self):
        client = make_client(lambda request: httpx.Response(200, json={"response_code": 1, "results": []}))

        with pytest.raises(NotEnoughQuestionsError) as exc_info:
            await client.fetch_questions(13)

        assert "different category" in exc_info.value.message
        await client.aclose()

    @pytest.mark.asyncio
    async def test_other_response_code(self):
        client = make_client(lambda request: httpx.Response(200, json={"response_code": 5}))
        with pytest.raises(TriviaError):
            await client.fetch_questions(9)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = make_client(lambda request: httpx.Response(500))
        with pytest.raises(TriviaError):
            await client.fetch_questions(9)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_offline(self):
        def handler(request):
            raise httpx.ConnectError("no network", request=request)

        client = make_client(handler)
        with pytest.raises(OfflineError) as exc_info:
            await client.fetch_questions(9)

        assert exc_info.value.message == "You are offline. Please check your connection."
        await client.aclose()
