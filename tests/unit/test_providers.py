"""Unit tests for provider connectors and the connector factory."""

import json
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import httpx
import openai
import pytest

from src.core.llm_connector import MODEL_ROLE, USER_ROLE, ContentPart, ContentTurn, InvocationConfig
from src.core.providers.factory import create_connector
from src.core.providers.ollama_provider import OllamaProvider
from src.core.providers.openrouter_provider import OpenRouterProvider, parse_citations
from src.core.stream_orchestrator import StreamOrchestrator
from src.lib.cancellation import CancellationToken
from src.lib.config import RouterSettings
from src.lib.errors import FatalProviderError, TransientProviderError
from src.models.query import ImageAttachment

pytestmark = pytest.mark.unit

REQUEST = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
CONTENTS = [
    ContentTurn.from_text(USER_ROLE, "Hi"),
    ContentTurn.from_text(MODEL_ROLE, "Hello!"),
    ContentTurn.from_text(USER_ROLE, "What is new?"),
]
CONFIG = InvocationConfig(system_instruction="sys", temperature=0.4, max_tokens=200)


def completion(text="Hi there.", annotations=None):
    message = SimpleNamespace(content=text, annotations=annotations)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=3, completion_tokens=4, total_tokens=7),
        model="google/gemini-2.0-flash-001",
    )


def stream_chunk(text=None, usage=None):
    choices = [] if text is None else [SimpleNamespace(delta=SimpleNamespace(content=text))]
    return SimpleNamespace(choices=choices, usage=usage)


class FakeStream:
    """Stands in for openai's AsyncStream; records whether it was closed."""

    def __init__(self, *chunks):
        self.chunks = list(chunks)
        self.yielded = 0
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            self.yielded += 1
            yield chunk

    async def close(self):
        self.closed = True


@pytest.fixture
def client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion())
    client.models.list = AsyncMock(return_value=[])
    client.close = AsyncMock()
    return client


@pytest.fixture
def openrouter(client):
    return OpenRouterProvider(api_key="sk-test", client=client)


class TestOpenRouterProvider:
    @pytest.mark.asyncio
    async def test_generate(self, openrouter, client):
        response = await openrouter.generate("m", CONTENTS, CONFIG)

        assert response.text == "Hi there."
        assert response.usage.total_tokens == 7
        assert response.usage.input_tokens == 3

        params = client.chat.completions.create.call_args.kwargs
        assert params["model"] == "m"
        assert params["temperature"] == 0.4
        assert params["max_tokens"] == 200
        assert params["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "What is new?"},
        ]
        assert "extra_body" not in params

    @pytest.mark.asyncio
    async def test_grounding_and_reasoning_options(self, openrouter, client):
        config = InvocationConfig(
            system_instruction="sys",
            temperature=0.3,
            max_tokens=9830,
            thinking_budget=3932,
            web_grounding=True,
        )
        await openrouter.generate("m", CONTENTS, config)

        extra_body = client.chat.completions.create.call_args.kwargs["extra_body"]
        assert extra_body == {"plugins": [{"id": "web"}], "reasoning": {"max_tokens": 3932}}

    @pytest.mark.asyncio
    async def test_image_becomes_data_url(self, openrouter, client):
        turn = ContentTurn(
            role=USER_ROLE,
            parts=(
                ContentPart(image=ImageAttachment(data=b"abc", mime_type="image/png")),
                ContentPart(text="What is this?"),
            ),
        )
        await openrouter.generate("m", [turn], CONFIG)

        content = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert content[0] == {
            "type": "image_url",
            "image_url": {"url": "data:image/png;base64,YWJj"},
        }
        assert content[1] == {"type": "text", "text": "What is this?"}

    @pytest.mark.asyncio
    async def test_citations(self, openrouter, client):
        annotations = [
            {"type": "url_citation", "url_citation": {"url": "https://a.example", "title": "A"}},
            {"type": "other"},
        ]
        client.chat.completions.create.return_value = completion(annotations=annotations)

        response = await openrouter.generate("m", CONTENTS, CONFIG)

        assert [(c.uri, c.title) for c in response.citations] == [("https://a.example", "A")]

    @pytest.mark.asyncio
    async def test_stream(self, openrouter, client):
        stream = FakeStream(
            stream_chunk("Hel"),
            stream_chunk("lo."),
            stream_chunk(usage=SimpleNamespace(prompt_tokens=2, completion_tokens=3, total_tokens=5)),
        )
        client.chat.completions.create.return_value = stream

        chunks = [chunk async for chunk in openrouter.generate_stream("m", CONTENTS, CONFIG)]

        assert "".join(c.text for c in chunks) == "Hello."
        assert chunks[-1].usage.total_tokens == 5
        assert stream.closed
        params = client.chat.completions.create.call_args.kwargs
        assert params["stream"] is True
        assert params["stream_options"] == {"include_usage": True}

    @pytest.mark.asyncio
    async def test_cancelled_stream_is_closed(self, openrouter, client):
        stream = FakeStream(*[stream_chunk(f"part {i} ") for i in range(50)])
        client.chat.completions.create.return_value = stream
        token = CancellationToken()
        received = []

        def sink(fragment):
            received.append(fragment)
            if len(received) == 2:
                token.cancel("user left")

        state = await StreamOrchestrator(openrouter).run_pass(
            "m", CONTENTS, CONFIG, on_fragment=sink, cancel=token
        )

        assert state.cancelled
        assert received == ["part 0 ", "part 1 "]
        assert stream.yielded < 50
        assert stream.closed

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self, openrouter, client):
        client.chat.completions.create.side_effect = openai.RateLimitError(
            "rate limited", response=httpx.Response(429, request=REQUEST), body=None
        )

        with pytest.raises(TransientProviderError) as exc_info:
            await openrouter.generate("m", CONTENTS, CONFIG)
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_bad_request_is_fatal(self, openrouter, client):
        client.chat.completions.create.side_effect = openai.BadRequestError(
            "bad request", response=httpx.Response(400, request=REQUEST), body=None
        )

        with pytest.raises(FatalProviderError):
            await openrouter.generate("m", CONTENTS, CONFIG)

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, openrouter, client):
        client.chat.completions.create.side_effect = openai.APIConnectionError(request=REQUEST)

        with pytest.raises(TransientProviderError):
            await openrouter.generate("m", CONTENTS, CONFIG)

    @pytest.mark.asyncio
    async def test_health_and_close(self, openrouter, client):
        assert await openrouter.check_health() is True

        client.models.list.side_effect = openai.APIConnectionError(request=REQUEST)
        assert await openrouter.check_health() is False

        await openrouter.close()
        client.close.assert_awaited_once()

    def test_capabilities(self, openrouter):
        assert openrouter.supports_capability("web_grounding")
        assert not openrouter.supports_capability("teleportation")
        assert openrouter.get_capabilities() == [
            "streaming",
            "vision",
            "web_grounding",
            "extended_reasoning",
        ]

    @pytest.mark.asyncio
    async def test_options_need_matching_capability(self, openrouter, client):
        openrouter.provider_config["capabilities"] = ["streaming"]
        config = InvocationConfig(
            system_instruction="sys",
            temperature=0.3,
            max_tokens=9830,
            thinking_budget=3932,
            web_grounding=True,
        )

        await openrouter.generate("m", CONTENTS, config)

        assert "extra_body" not in client.chat.completions.create.call_args.kwargs


def test_parse_citations_skips_missing_urls():
    assert parse_citations([{"type": "url_citation", "url_citation": {"title": "no url"}}]) == []


def ollama_with(handler) -> OllamaProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaProvider(base_url="http://ollama.test", client=client)


class TestOllamaProvider:
    def test_capabilities(self):
        provider = ollama_with(lambda request: httpx.Response(200))
        assert provider.get_capabilities() == ["streaming", "vision"]
        assert not provider.supports_capability("web_grounding")

    @pytest.mark.asyncio
    async def test_web_grounding_is_ignored(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"content": "Hi."}, "done": True})

        config = InvocationConfig(
            system_instruction="sys", temperature=0.4, max_tokens=200, web_grounding=True
        )
        response = await ollama_with(handler).generate("llama3", CONTENTS, config)

        assert response.text == "Hi."
        assert set(seen["body"]) == {"model", "messages", "stream", "options"}

    @pytest.mark.asyncio
    async def test_generate(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "llama3",
                    "message": {"role": "assistant", "content": "Hi."},
                    "done": True,
                    "prompt_eval_count": 5,
                    "eval_count": 2,
                },
            )

        provider = ollama_with(handler)
        response = await provider.generate("llama3", CONTENTS, CONFIG)

        assert response.text == "Hi."
        assert response.usage.total_tokens == 7
        assert seen["url"] == "http://ollama.test/api/chat"
        assert seen["body"]["stream"] is False
        assert seen["body"]["options"] == {"temperature": 0.4, "num_predict": 200}
        assert seen["body"]["messages"][0] == {"role": "system", "content": "sys"}
        assert seen["body"]["messages"][2]["role"] == "assistant"

    @pytest.mark.asyncio
    async def test_image_is_base64(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"content": "A cat."}, "done": True})

        turn = ContentTurn(
            role=USER_ROLE,
            parts=(
                ContentPart(image=ImageAttachment(data=b"abc", mime_type="image/png")),
                ContentPart(text="What is this?"),
            ),
        )
        await ollama_with(handler).generate("llava", [turn], CONFIG)

        assert seen["body"]["messages"][1]["images"] == ["YWJj"]

    @pytest.mark.asyncio
    async def test_stream(self):
        lines = [
            {"message": {"content": "Hel"}, "done": False},
            {"message": {"content": "lo."}, "done": True, "prompt_eval_count": 1, "eval_count": 2},
        ]
        body = "\n".join(json.dumps(line) for line in lines) + "\n"

        provider = ollama_with(lambda request: httpx.Response(200, content=body.encode()))
        chunks = [chunk async for chunk in provider.generate_stream("llama3", CONTENTS, CONFIG)]

        assert [c.text for c in chunks] == ["Hel", "lo."]
        assert chunks[0].usage is None
        assert chunks[-1].usage.total_tokens == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [(503, TransientProviderError), (400, FatalProviderError)])
    async def test_http_errors(self, status, error):
        provider = ollama_with(lambda request: httpx.Response(status, json={"error": "x"}))

        with pytest.raises(error):
            await provider.generate("llama3", CONTENTS, CONFIG)

    @pytest.mark.asyncio
    async def test_server_down_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientProviderError, match="Ollama unavailable"):
            await ollama_with(handler).generate("llama3", CONTENTS, CONFIG)

    @pytest.mark.asyncio
    async def test_health(self):
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": []})

        provider = ollama_with(handler)
        assert await provider.check_health() is True
        await provider.close()


class TestFactory:
    def test_openrouter_requires_key(self):
        with pytest.raises(ValueError, match="OPENROUTER_API_KEY"):
            create_connector(RouterSettings(provider="openrouter"))

    def test_openrouter(self):
        connector = create_connector(RouterSettings(openrouter_api_key="sk-test"))
        assert isinstance(connector, OpenRouterProvider)

    def test_ollama(self):
        assert isinstance(create_connector(RouterSettings(provider="ollama")), OllamaProvider)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            create_connector(RouterSettings(provider="carrier-pigeon"))
