"""Tests for the AI service: prompt, HTTP client, response parsing."""

import json
import logging

import httpx
import pytest

from app.backend.models import ExtractedReceipt
from app.backend.services.ai import (
    RECEIPT_SCHEMA_TEMPLATE,
    GeminiClient,
    InvalidResponseError,
    JsonParseError,
    NetworkOrHttpError,
    ReceiptAIService,
    build_extraction_prompt,
    clean_response_text,
    get_response_text,
    parse_receipt_json,
)

from conftest import SAMPLE_RECEIPT_DATA, gemini_payload


def _leaf_keys(template, keys=None) -> set[str]:
    keys = set() if keys is None else keys
    if isinstance(template, dict):
        for key, value in template.items():
            keys.add(key)
            _leaf_keys(value, keys)
    elif isinstance(template, list):
        for value in template:
            _leaf_keys(value, keys)
    return keys


class TestBuildExtractionPrompt:
    """Tests for prompt generation."""

    def test_prompt_starts_with_json_instruction(self):
        prompt = build_extraction_prompt("receipt")
        assert prompt.startswith("ONLY OUTPUT VALID JSON.")

    def test_prompt_names_every_field(self):
        prompt = build_extraction_prompt("receipt")
        for key in _leaf_keys(RECEIPT_SCHEMA_TEMPLATE):
            assert f'"{key}"' in prompt

    def test_template_matches_model_keys(self):
        """Test that the template asks for exactly the keys the model reads."""
        wire = ExtractedReceipt(items=[{}]).to_wire()
        assert _leaf_keys(RECEIPT_SCHEMA_TEMPLATE) == _leaf_keys(wire)

    def test_receipt_text_appended_verbatim(self):
        text = 'OLIVE  STORE {"odd": true}\nTotal 5.00'
        prompt = build_extraction_prompt(text)
        assert prompt.endswith(text)


class TestCleanResponseText:
    """Tests for code-fence cleanup."""

    def test_strips_json_fence(self):
        assert clean_response_text('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_plain_fence(self):
        assert clean_response_text('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_clean_text_is_unchanged(self):
        assert clean_response_text('{"a": 1}') == '{"a": 1}'

    def test_idempotent(self):
        once = clean_response_text('  ```json\n{"a": [1, 2]}\n```  ')
        assert clean_response_text(once) == once

    def test_fenced_block_inside_prose(self):
        text = 'Here is the data:\n```json\n{"a": 1}\n```\nHope this helps.'
        assert clean_response_text(text) == '{"a": 1}'

    def test_unbalanced_fence(self):
        assert clean_response_text('```json\n{"a": 1}') == '{"a": 1}'

    def test_fenced_and_plain_parse_identically(self):
        raw = json.dumps(SAMPLE_RECEIPT_DATA)
        fenced = f"```json\n{raw}\n```"
        assert parse_receipt_json(fenced) == parse_receipt_json(raw)


class TestGetResponseText:
    """Tests for response shape handling."""

    def test_extracts_text(self):
        assert get_response_text(gemini_payload("hello")) == "hello"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"candidates": []},
            {"candidates": [{}]},
            {"candidates": [{"content": {"parts": []}}]},
            {"candidates": [{"content": {"parts": [{}]}}]},
            {"candidates": [{"content": {"parts": [{"text": ""}]}}]},
            None,
        ],
    )
    def test_missing_text_raises(self, payload):
        with pytest.raises(InvalidResponseError):
            get_response_text(payload)


class TestParseReceiptJson:
    """Tests for JSON parsing of model output."""

    def test_parses_receipt(self):
        receipt = parse_receipt_json(json.dumps(SAMPLE_RECEIPT_DATA))
        assert receipt.store.name == "Shop"
        assert receipt.items[0].code == "A1"

    def test_invalid_json_raises(self):
        with pytest.raises(JsonParseError):
            parse_receipt_json("Sorry, I cannot read this receipt.")

    def test_non_object_raises(self):
        with pytest.raises(InvalidResponseError):
            parse_receipt_json("[1, 2, 3]")


class TestGeminiClient:
    """Tests for the HTTP client."""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        """Test URL, key parameter, body and headers of the request."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=gemini_payload("{}"))

        client = GeminiClient(
            api_key="secret",
            model="gemini-2.0-flash-001",
            base_url="https://example.test/v1beta/",
            transport=httpx.MockTransport(handler),
        )
        result = await client.generate_content("the prompt")

        assert result == gemini_payload("{}")
        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/v1beta/models/gemini-2.0-flash-001:generateContent"
        assert request.url.params["key"] == "secret"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {
            "contents": [{"parts": [{"text": "the prompt"}]}]
        }

    @pytest.mark.asyncio
    async def test_api_key_not_logged(self, caplog):
        """Test that no log record carries the API key, including httpx request logs."""
        import app.backend.main  # noqa: F401  (applies the application logging setup)

        caplog.set_level(logging.INFO)
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json=gemini_payload("{}"))
        )
        client = GeminiClient("SUPERSECRET", "m", transport=transport)
        await client.generate_content("hi")

        assert caplog.records
        assert all("SUPERSECRET" not in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_retries_once_on_server_error(self):
        statuses = iter([503, 200])
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            code = next(statuses)
            if code != 200:
                return httpx.Response(code, json={"error": {"message": "overloaded"}})
            return httpx.Response(200, json=gemini_payload("{}"))

        client = GeminiClient("k", "m", transport=httpx.MockTransport(handler), max_retries=1)
        await client.generate_content("p")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_bounded_retries(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, json={"error": {"message": "internal"}})

        client = GeminiClient("k", "m", transport=httpx.MockTransport(handler), max_retries=1)
        with pytest.raises(NetworkOrHttpError) as exc_info:
            await client.generate_content("p")
        assert len(calls) == 2
        assert exc_info.value.status_code == 500
        assert exc_info.value.server_message == "internal"

    @pytest.mark.asyncio
    async def test_negative_retries_still_attempts_once(self):
        """Test that the last failure is raised after a single attempt."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, json={"error": {"message": "overloaded"}})

        client = GeminiClient("k", "m", transport=httpx.MockTransport(handler), max_retries=-3)
        with pytest.raises(NetworkOrHttpError) as exc_info:
            await client.generate_content("p")
        assert len(calls) == 1
        assert exc_info.value.status_code == 503
        assert exc_info.value.server_message == "overloaded"

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        """Test that a 4xx (e.g. bad API key) fails immediately with the server message."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(
                400,
                json={
                    "error": {
                        "code": 400,
                        "message": "API key not valid. Please pass a valid API key.",
                        "status": "INVALID_ARGUMENT",
                    }
                },
            )

        client = GeminiClient(None, "m", transport=httpx.MockTransport(handler), max_retries=1)
        with pytest.raises(NetworkOrHttpError) as exc_info:
            await client.generate_content("p")
        assert len(calls) == 1
        assert exc_info.value.status_code == 400
        assert exc_info.value.server_message.startswith("API key not valid")

    @pytest.mark.asyncio
    async def test_top_level_message_used(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"message": "Forbidden region"})

        client = GeminiClient("k", "m", transport=httpx.MockTransport(handler))
        with pytest.raises(NetworkOrHttpError) as exc_info:
            await client.generate_content("p")
        assert exc_info.value.server_message == "Forbidden region"

    @pytest.mark.asyncio
    async def test_transport_error_retried_then_raised(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = GeminiClient("k", "m", transport=httpx.MockTransport(handler), max_retries=1)
        with pytest.raises(NetworkOrHttpError) as exc_info:
            await client.generate_content("p")
        assert len(calls) == 2
        assert exc_info.value.status_code is None
        assert exc_info.value.server_message is None

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = GeminiClient("k", "m", transport=httpx.MockTransport(handler), max_retries=0)
        with pytest.raises(NetworkOrHttpError) as exc_info:
            await client.generate_content("p")
        assert "timed out" in str(exc_info.value)


class TestReceiptAIService:
    """Tests for ReceiptAIService."""

    @pytest.mark.asyncio
    async def test_extract_receipt_with_fenced_output(self, ai_service, api_calls):
        receipt = await ai_service.extract_receipt("Shop A1 Item 1 5 5")

        assert receipt.store.name == "Shop"
        assert receipt.items[0].code == "A1"
        assert receipt.payment.amount == "5"
        assert len(api_calls) == 1
        body = json.loads(api_calls[0].content)
        assert body["contents"][0]["parts"][0]["text"].endswith("Shop A1 Item 1 5 5")

    @pytest.mark.asyncio
    async def test_invalid_json_output(self, ai_service, model_output):
        model_output["text"] = "I could not find a receipt."
        with pytest.raises(JsonParseError):
            await ai_service.extract_receipt("text")

    @pytest.mark.asyncio
    async def test_missing_candidates(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"promptFeedback": {}})
        )
        service = ReceiptAIService(api_key="k", transport=transport)
        with pytest.raises(InvalidResponseError):
            await service.extract_receipt("text")

    def test_settings_fill_defaults(self):
        service = ReceiptAIService(api_key="k")
        assert service.model
        assert service.base_url.startswith("https://")
        assert service.max_retries >= 0

    def test_missing_key_is_not_a_startup_error(self):
        """Test that the service builds without a key; failure happens at request time."""
        service = ReceiptAIService(api_key="")
        assert service.client.api_key == ""
        assert service.use_mock is False

    @pytest.mark.asyncio
    async def test_mock_mode(self):
        service = ReceiptAIService(api_key="", use_mock=True)
        receipt = await service.extract_receipt("anything")
        assert receipt.store.name
        assert len(receipt.items) >= 1
