"""Tests for multimodal embedding generation with a mocked Voyage endpoint."""

import json
from unittest.mock import patch

import httpx
import pytest

from spark_engine.core.config import get_settings
from spark_engine.core.embeddings import EncoderInput, encode, encode_query

DIM = 1024


def _vector(value: float, dim: int = DIM) -> list[float]:
    return [value] * dim


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _echo_handler(requests: list[dict], reverse: bool = False):
    """Respond with one vector per input, value = input position."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        data = [
            {"index": i, "embedding": _vector(float(i))} for i in range(len(body["inputs"]))
        ]
        if reverse:
            data.reverse()
        return httpx.Response(200, json={"data": data})

    return handler


@pytest.mark.asyncio
async def test_encode_empty_list():
    assert await encode([]) == []


@pytest.mark.asyncio
async def test_encode_restores_input_order():
    """Provider results arrive reversed; output follows input order."""
    requests: list[dict] = []
    async with _client(_echo_handler(requests, reverse=True)) as client:
        results = await encode(
            [EncoderInput(text="a"), EncoderInput(text="b"), EncoderInput(text="c")],
            client=client,
        )

    assert [r[0] for r in results] == [0.0, 1.0, 2.0]
    assert requests[0]["input_type"] == "document"


@pytest.mark.asyncio
async def test_encode_batches_at_most_50_inputs():
    requests: list[dict] = []
    inputs = [EncoderInput(text=f"item {i}") for i in range(120)]
    async with _client(_echo_handler(requests)) as client:
        results = await encode(inputs, client=client)

    assert [len(r["inputs"]) for r in requests] == [50, 50, 20]
    assert all(r is not None for r in results)
    # Second batch restarts provider indices at 0
    assert results[50][0] == 0.0
    assert results[119][0] == 19.0


@pytest.mark.asyncio
async def test_encode_http_error_returns_none():
    def handler(request):
        return httpx.Response(500, text="boom")

    async with _client(handler) as client:
        results = await encode([EncoderInput(text="a"), EncoderInput(text="b")], client=client)

    assert results == [None, None]


@pytest.mark.asyncio
async def test_encode_without_api_key_returns_none():
    settings = get_settings().model_copy(update={"VOYAGE_API_KEY": None})
    with patch("spark_engine.core.embeddings.get_settings", return_value=settings):
        results = await encode([EncoderInput(text="a")])

    assert results == [None]


@pytest.mark.asyncio
async def test_encode_drops_wrong_dimension():
    def handler(request):
        return httpx.Response(
            200,
            json={"data": [{"index": 0, "embedding": [0.1] * 512}, {"index": 1, "embedding": _vector(0.2)}]},
        )

    async with _client(handler) as client:
        results = await encode([EncoderInput(text="a"), EncoderInput(text="b")], client=client)

    assert results[0] is None
    assert len(results[1]) == DIM


@pytest.mark.asyncio
async def test_encode_truncates_text_and_attaches_image():
    requests: list[dict] = []
    long_text = "x" * 20_000
    async with _client(_echo_handler(requests)) as client:
        await encode(
            [
                EncoderInput(text=long_text),
                EncoderInput(text=long_text, image_url="https://example.com/a.png"),
            ],
            client=client,
        )

    text_only, with_image = requests[0]["inputs"]
    assert len(text_only["content"][0]["text"]) == 16_000
    assert len(with_image["content"][0]["text"]) == 4_000
    assert with_image["content"][1] == {"type": "image_url", "image_url": "https://example.com/a.png"}


@pytest.mark.asyncio
async def test_encode_skips_empty_inputs():
    requests: list[dict] = []
    async with _client(_echo_handler(requests)) as client:
        results = await encode([EncoderInput(text="  "), EncoderInput(text="real")], client=client)

    assert len(requests[0]["inputs"]) == 1
    assert results[0] is None
    assert results[1] is not None


@pytest.mark.asyncio
async def test_encode_query_uses_query_mode():
    requests: list[dict] = []
    client = _client(_echo_handler(requests))

    with patch("spark_engine.core.embeddings.httpx.AsyncClient", return_value=client):
        vector = await encode_query("vector search")

    assert vector is not None
    assert requests[0]["input_type"] == "query"
