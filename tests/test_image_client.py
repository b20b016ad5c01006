import base64
import io
import json

import httpx
import pytest
from PIL import Image

from restoration.photo_restoration import (
    EmptyResultError,
    Failed,
    ImageRestorationClient,
    RestorationSession,
    SourceImage,
    Success,
    TransportError,
    ValidationError,
)

INSTRUCTION = "Restore this old photograph."


def gemini_response(*parts, candidates=True):
    if not candidates:
        return {"candidates": []}
    return {"candidates": [{"content": {"role": "model", "parts": list(parts)}}]}


def image_part(data: bytes, mime="image/png", camel=True):
    payload = base64.b64encode(data).decode()
    if camel:
        return {"inlineData": {"mimeType": mime, "data": payload}}
    return {"inline_data": {"mime_type": mime, "data": payload}}


@pytest.fixture
async def client_factory():
    clients = []

    def factory(handler, api_key="test-key"):
        client = ImageRestorationClient(api_key=api_key, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.close()


@pytest.fixture
def source(png_bytes):
    return SourceImage(data=png_bytes, mime_type="image/png")


async def test_restore_sends_raw_base64_and_returns_png(client_factory, source, make_image):
    seen = []
    returned = make_image(size=(20, 20), color=(10, 200, 10))

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json=gemini_response(
            {"text": "Here is the restored photo."},
            image_part(returned),
        ))

    client = client_factory(handler)
    restored = await client.restore(source, INSTRUCTION)

    assert restored.mime_type == "image/png"
    assert Image.open(io.BytesIO(restored.data)).size == (20, 20)

    request = seen[0]
    assert request.url.path == "/v1beta/models/gemini-2.5-flash-image:generateContent"
    assert request.headers["x-goog-api-key"] == "test-key"
    body = json.loads(request.content)
    inline, text = body["contents"][0]["parts"]
    assert inline["inline_data"] == {"mime_type": "image/png", "data": source.to_base64()}
    assert not inline["inline_data"]["data"].startswith("data:")
    assert text == {"text": INSTRUCTION}
    assert body["generationConfig"]["responseModalities"] == ["IMAGE"]


async def test_non_png_output_is_normalized_to_png(client_factory, source, make_image):
    jpeg = make_image(fmt="JPEG")
    client = client_factory(lambda request: httpx.Response(
        200, json=gemini_response(image_part(jpeg, mime="image/jpeg", camel=False))
    ))

    restored = await client.restore(source, INSTRUCTION)

    assert restored.mime_type == "image/png"
    assert restored.data.startswith(b"\x89PNG")


async def test_zero_candidates_is_an_empty_result(client_factory, source):
    client = client_factory(lambda request: httpx.Response(200, json=gemini_response(candidates=False)))

    with pytest.raises(EmptyResultError, match="No image data returned"):
        await client.restore(source, INSTRUCTION)


async def test_blocked_prompt_names_the_reason(client_factory, source):
    client = client_factory(lambda request: httpx.Response(
        200, json={"promptFeedback": {"blockReason": "SAFETY"}}
    ))

    with pytest.raises(EmptyResultError, match="SAFETY"):
        await client.restore(source, INSTRUCTION)


async def test_text_only_candidate_is_an_empty_result(client_factory, source):
    client = client_factory(lambda request: httpx.Response(
        200, json=gemini_response({"text": "I cannot do that."})
    ))

    with pytest.raises(EmptyResultError):
        await client.restore(source, INSTRUCTION)


async def test_missing_api_key_fails_before_the_call(client_factory, source):
    calls = []
    client = client_factory(lambda request: calls.append(request), api_key=None)

    with pytest.raises(ValidationError, match="API key"):
        await client.restore(source, INSTRUCTION)
    assert calls == []


async def test_unsupported_type_fails_before_the_call(client_factory, png_bytes):
    calls = []
    client = client_factory(lambda request: calls.append(request))

    with pytest.raises(ValidationError, match="image/gif"):
        await client.restore(SourceImage(data=png_bytes, mime_type="image/gif"), INSTRUCTION)
    assert calls == []


async def test_error_response_carries_remote_message(client_factory, source):
    client = client_factory(lambda request: httpx.Response(
        400, json={"error": {"code": 400, "message": "API key not valid.", "status": "INVALID_ARGUMENT"}}
    ))

    with pytest.raises(TransportError) as exc_info:
        await client.restore(source, INSTRUCTION)
    assert "400" in exc_info.value.message
    assert "API key not valid." in exc_info.value.message


async def test_network_failure_is_a_transport_error(client_factory, source):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = client_factory(handler)

    with pytest.raises(TransportError, match="Could not reach"):
        await client.restore(source, INSTRUCTION)


async def test_timeout_is_a_transport_error(client_factory, source):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = client_factory(handler)

    with pytest.raises(TransportError, match="too long"):
        await client.restore(source, INSTRUCTION)


async def test_malformed_body_is_an_empty_result(client_factory, source):
    client = client_factory(lambda request: httpx.Response(200, content=b"<html>oops</html>"))

    with pytest.raises(EmptyResultError, match="malformed"):
        await client.restore(source, INSTRUCTION)


@pytest.mark.parametrize("body", [
    {"candidates": [{"content": {"parts": ["oops"]}}]},
    {"candidates": ["oops"]},
    {"candidates": {"content": {}}},
    {"candidates": [{"content": "oops"}]},
    {"candidates": [{"content": {"parts": [{"inlineData": "oops"}]}}]},
])
async def test_malformed_candidate_shape_is_an_empty_result(client_factory, source, body):
    client = client_factory(lambda request: httpx.Response(200, json=body))

    with pytest.raises(EmptyResultError, match="malformed"):
        await client.restore(source, INSTRUCTION)


async def test_non_string_image_payload_is_an_empty_result(client_factory, source):
    body = gemini_response({"inlineData": {"mimeType": "image/png", "data": 42}})
    client = client_factory(lambda request: httpx.Response(200, json=body))

    with pytest.raises(EmptyResultError, match="not a valid image"):
        await client.restore(source, INSTRUCTION)


async def test_undecodable_image_is_an_empty_result(client_factory, source):
    client = client_factory(lambda request: httpx.Response(
        200, json=gemini_response(image_part(b"definitely not an image"))
    ))

    with pytest.raises(EmptyResultError, match="not a valid image"):
        await client.restore(source, INSTRUCTION)


async def test_unexpected_errors_are_normalized(client_factory, source):
    def handler(request):
        raise RuntimeError("kaboom")

    client = client_factory(handler)

    with pytest.raises(TransportError, match="kaboom"):
        await client.restore(source, INSTRUCTION)


async def test_ten_pixel_png_restores_end_to_end(client_factory, make_image):
    original = make_image(size=(10, 10))
    client = client_factory(lambda request: httpx.Response(
        200, json=gemini_response(image_part(make_image(size=(10, 10), color=(250, 240, 230))))
    ))
    session = RestorationSession(client)
    session.acquire_image(original, "image/png")

    state = await session.start_restoration()

    assert isinstance(state, Success)
    assert state.result.original.data == original
    assert state.result.restored.data
    assert Image.open(io.BytesIO(state.result.restored.data)).size == (10, 10)


async def test_session_fails_when_model_returns_no_image(client_factory, png_bytes):
    client = client_factory(lambda request: httpx.Response(200, json=gemini_response(candidates=False)))
    session = RestorationSession(client)
    session.acquire_image(png_bytes, "image/png")

    state = await session.start_restoration()

    assert isinstance(state, Failed)
    assert "No image data returned" in state.message
    assert session.result is None
