"""
Tests for the LLM classifier and the OpenAI chat client.

No network: the classifier gets a fake chat client, and the OpenAI client
gets a patched httpx.AsyncClient.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from storefront.models import ProductCompliance
from storefront.services.ai_classifier import (
    AIClassification,
    AIProductClassifier,
    ClassificationParseError,
    apply_classification,
    build_messages,
)
from storefront.services.openai_client import ChatResult, OpenAIClient


class FakeChatClient:
    def __init__(self, result):
        self.result = result
        self.messages = None

    async def chat_json(self, messages):
        self.messages = messages
        return self.result


def completion(content, status_code=200):
    return httpx.Response(
        status_code,
        json={
            "model": "gpt-4o",
            "choices": [{"message": {"content": content}}],
            "usage": {"prompt_tokens": 120, "completion_tokens": 30},
        },
    )


def patched_async_client(response=None, error=None):
    """Patch httpx.AsyncClient so ``post`` answers with ``response`` or raises ``error``."""
    mock_client = MagicMock()
    mock_client.post = AsyncMock(return_value=response, side_effect=error)
    patcher = patch("storefront.services.openai_client.httpx.AsyncClient")
    client_cls = patcher.start()
    client_cls.return_value.__aenter__.return_value = mock_client
    client_cls.return_value.__aexit__.return_value = False
    return patcher, mock_client


class TestAIClassificationParsing:
    """Tests for AIClassification.from_payload()."""

    def test_valid_payload(self):
        classification = AIClassification.from_payload({
            "categories": ["Nicotine", "Nicotine"],
            "nicotineProduct": True,
            "requiresLabTest": False,
            "hiddenReason": "Nicotine products restricted to tobacco site",
        })

        assert classification.categories == ("Nicotine",)
        assert classification.nicotine_product is True
        assert classification.hidden_reason == "Nicotine products restricted to tobacco site"

    def test_other_is_not_regulated(self):
        classification = AIClassification.from_payload({
            "categories": ["THCA", "Other"],
            "nicotineProduct": False,
            "requiresLabTest": True,
        })

        assert classification.regulated_categories == ["THCA"]
        assert classification.hidden_reason is None

    @pytest.mark.parametrize("payload", [
        ["THCA"],
        {"nicotineProduct": False, "requiresLabTest": False},
        {"categories": ["Caffeine"], "nicotineProduct": False, "requiresLabTest": False},
        {"categories": [], "nicotineProduct": "no", "requiresLabTest": False},
        {"categories": [], "nicotineProduct": False},
        {"categories": [], "nicotineProduct": False, "requiresLabTest": False, "hiddenReason": 1},
    ])
    def test_invalid_payloads(self, payload):
        with pytest.raises(ClassificationParseError):
            AIClassification.from_payload(payload)


class TestAIProductClassifier:
    def test_messages(self):
        messages = build_messages("ZYN Cool Mint", "")

        assert messages[0]["role"] == "system"
        assert "Respond ONLY with JSON" in messages[0]["content"]
        assert messages[1]["content"] == "TITLE: ZYN Cool Mint\nDESCRIPTION: No description"

    @pytest.mark.asyncio
    async def test_classify(self):
        client = FakeChatClient(ChatResult(success=True, data={
            "categories": ["Kratom"],
            "nicotineProduct": False,
            "requiresLabTest": True,
        }))

        result = await AIProductClassifier(client=client).classify("Maeng Da Powder", "250g")

        assert result.success is True
        assert result.classification.categories == ("Kratom",)
        assert "TITLE: Maeng Da Powder" in client.messages[1]["content"]

    @pytest.mark.asyncio
    async def test_client_error_is_returned(self):
        client = FakeChatClient(ChatResult(success=False, error="OPENAI_API_KEY is not configured"))

        result = await AIProductClassifier(client=client).classify("Anything")

        assert result.success is False
        assert result.error == "OPENAI_API_KEY is not configured"

    @pytest.mark.asyncio
    async def test_schema_violation_is_returned(self):
        client = FakeChatClient(ChatResult(success=True, data={"categories": "THCA"}))

        result = await AIProductClassifier(client=client).classify("THCA Flower")

        assert result.success is False
        assert "categories" in result.error


@pytest.mark.django_db
class TestApplyClassification:
    def test_links_rules_and_sets_flags(self, make_product):
        product = make_product(name="Delta-9 Gummies")
        classification = AIClassification(
            categories=("THCA", "Other"), nicotine_product=False, requires_lab_test=True
        )

        linked = apply_classification(product, classification)

        assert linked == ["THCA"]
        product.refresh_from_db()
        assert product.requires_lab_test is True
        assert product.nicotine_product is False
        link = ProductCompliance.objects.get(product=product)
        assert link.compliance_rule.category == "THCA"
        assert link.assigned_by == "ai_classifier"


class TestOpenAIClient:
    """Tests for OpenAIClient.chat_json()."""

    @pytest.mark.asyncio
    async def test_not_configured(self):
        result = await OpenAIClient(api_key="").chat_json([])

        assert result.success is False
        assert result.error == "OPENAI_API_KEY is not configured"

    @pytest.mark.asyncio
    async def test_success(self):
        content = json.dumps({"categories": ["Other"], "nicotineProduct": False, "requiresLabTest": False})
        patcher, mock_client = patched_async_client(completion(content))
        try:
            client = OpenAIClient(api_key="sk-test", model="gpt-4o-mini", base_url="https://llm.test/v1/")
            result = await client.chat_json([{"role": "user", "content": "hi"}])
        finally:
            patcher.stop()

        assert result.success is True
        assert result.data["categories"] == ["Other"]
        assert result.token_usage["prompt_tokens"] == 120

        url = mock_client.post.call_args.args[0]
        kwargs = mock_client.post.call_args.kwargs
        assert url == "https://llm.test/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["json"]["model"] == "gpt-4o-mini"
        assert kwargs["json"]["temperature"] == 0
        assert kwargs["json"]["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_timeout(self):
        patcher, _ = patched_async_client(error=httpx.ReadTimeout("timed out"))
        try:
            result = await OpenAIClient(api_key="sk-test", timeout=5.0).chat_json([])
        finally:
            patcher.stop()

        assert result.success is False
        assert result.error == "Request timeout after 5.0s"

    @pytest.mark.asyncio
    async def test_error_status(self):
        response = httpx.Response(429, json={"error": {"message": "Rate limit reached"}})
        patcher, _ = patched_async_client(response)
        try:
            result = await OpenAIClient(api_key="sk-test").chat_json([])
        finally:
            patcher.stop()

        assert result.success is False
        assert result.error == "OpenAI returned status 429: Rate limit reached"

    @pytest.mark.asyncio
    async def test_non_json_content(self):
        patcher, _ = patched_async_client(completion("Sure! Here is the classification"))
        try:
            result = await OpenAIClient(api_key="sk-test").chat_json([])
        finally:
            patcher.stop()

        assert result.success is False
        assert result.error.startswith("Model did not return JSON")

    @pytest.mark.asyncio
    async def test_json_array_rejected(self):
        patcher, _ = patched_async_client(completion("[1, 2]"))
        try:
            result = await OpenAIClient(api_key="sk-test").chat_json([])
        finally:
            patcher.stop()

        assert result.success is False
        assert result.error == "Model returned JSON that is not an object"
