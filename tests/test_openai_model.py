"""OpenAI model adapter tests with a stubbed async client."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from landhacker.data.base import ComparableObservation, DistanceInfo
from landhacker.models.base import ValuationContext, ValuationModelError
from landhacker.models.openai_model import OpenAIModel
from landhacker.models.prompts import NO_COMPS_LINE, build_valuation_prompt
from landhacker.services.price_normalizer import normalize


def fake_client(content=None, side_effect=None):
    message = SimpleNamespace(content=content)
    completion = SimpleNamespace(choices=[SimpleNamespace(message=message)])
    create = AsyncMock(return_value=completion, side_effect=side_effect)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


@pytest.fixture
def context(subject):
    comps = [
        ComparableObservation("11 Comp Ln", 9, 216000),
        ComparableObservation("12 Comp Ln", 11, 275000),
        ComparableObservation("14 Comp Ln", 8, 800000),
    ]
    return ValuationContext(
        subject=subject,
        summary=normalize(comps, subject),
        comparables=comps,
        distance=DistanceInfo("Austin, TX", "6.1 mi", 9817, "7 mins", 420),
    )


async def test_returns_decoded_json(context, valid_estimate):
    client = fake_client(json.dumps(valid_estimate))
    result = await OpenAIModel(client=client, model="gpt-test").analyze_property(context)

    assert result == valid_estimate
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-test"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0]["role"] == "system"


async def test_non_json_content(context):
    client = fake_client("I think about $250k")
    with pytest.raises(ValuationModelError):
        await OpenAIModel(client=client, model="gpt-test").analyze_property(context)


async def test_non_object_json(context):
    with pytest.raises(ValuationModelError):
        await OpenAIModel(client=fake_client("[1, 2]"), model="gpt-test").analyze_property(context)


async def test_empty_content(context):
    with pytest.raises(ValuationModelError):
        await OpenAIModel(client=fake_client(""), model="gpt-test").analyze_property(context)


async def test_api_error_is_wrapped(context):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    client = fake_client(side_effect=openai.APIConnectionError(request=request))
    with pytest.raises(ValuationModelError):
        await OpenAIModel(client=client, model="gpt-test").analyze_property(context)


async def test_marketing_returns_text():
    client = fake_client("A quiet 10 acre retreat.")
    text = await OpenAIModel(client=client, model="gpt-test").generate_marketing_description(
        {"address": "Lot 7"}, "retirees"
    )
    assert text == "A quiet 10 acre retreat."
    prompt = client.chat.completions.create.await_args.kwargs["messages"][1]["content"]
    assert "retirees" in prompt
    assert "Lot 7" in prompt


class TestPrompt:
    def test_includes_summary_and_distance(self, context):
        prompt = build_valuation_prompt(context)
        assert "1 Subject Rd, Austin, TX 78701" in prompt
        assert "Distance to Austin, TX: 6.1 mi (7 mins drive)" in prompt
        assert "1 outlier(s) excluded" in prompt
        assert "$15,000 and $35,000 per acre" in prompt
        assert NO_COMPS_LINE not in prompt

    def test_without_comparables(self, subject):
        prompt = build_valuation_prompt(ValuationContext(subject=subject))
        assert NO_COMPS_LINE in prompt
        assert "Distance to" not in prompt
