import json

import httpx
import pytest
from pydantic import AnyHttpUrl, SecretStr

from voicer.config import Settings
from voicer.services.tts import ElevenLabsClient, ElevenLabsError
from voicer.services.tts.elevenlabs_client import DEFAULT_VOICE_SETTINGS


def make_settings(**overrides) -> Settings:
    values = {
        "elevenlabs_api_key": SecretStr("test-key"),
        "elevenlabs_base_url": AnyHttpUrl("https://tts.example.com/v1"),
    }
    values.update(overrides)
    return Settings(**values)


def make_client(handler, **overrides) -> ElevenLabsClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ElevenLabsClient(make_settings(**overrides), http_client=http_client)


@pytest.mark.asyncio
async def test_text_to_speech_posts_expected_request():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"mp3-bytes")

    client = make_client(handler)
    audio = await client.text_to_speech(
        "voice-1",
        "Hello there.",
        {"stability": 0.3, "model_id": "eleven_turbo_v2", "language_code": "en"},
    )

    assert audio == b"mp3-bytes"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/text-to-speech/voice-1"
    assert request.url.params["output_format"] == "mp3_44100_128"
    assert request.headers["xi-api-key"] == "test-key"
    body = json.loads(request.content)
    assert body == {
        "text": "Hello there.",
        "model_id": "eleven_turbo_v2",
        "voice_settings": {"stability": 0.3},
        "language_code": "en",
    }


def test_build_request_falls_back_to_defaults():
    client = ElevenLabsClient(make_settings())

    payload, params = client.build_request("Hi.", None)

    assert payload["model_id"] == "eleven_monolingual_v1"
    assert payload["voice_settings"] == DEFAULT_VOICE_SETTINGS
    assert "language_code" not in payload
    assert params == {"output_format": "mp3_44100_128"}


@pytest.mark.asyncio
async def test_http_error_status_is_wrapped():
    client = make_client(lambda request: httpx.Response(429, json={"detail": "slow down"}))

    with pytest.raises(ElevenLabsError) as excinfo:
        await client.text_to_speech("voice-1", "Hello.")

    assert excinfo.value.status_code == 429


@pytest.mark.asyncio
async def test_transport_error_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    client = make_client(handler)

    with pytest.raises(ElevenLabsError):
        await client.text_to_speech("voice-1", "Hello.")


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_request():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    client = make_client(handler, elevenlabs_api_key=None)

    assert client.is_configured is False
    with pytest.raises(ElevenLabsError):
        await client.text_to_speech("voice-1", "Hello.")
    assert calls == []


VOICES = {
    "voices": [
        {"voice_id": "v3", "name": "zed", "category": "cloned", "labels": {}},
        {"voice_id": "v2", "name": "Bella", "category": "premade", "labels": {"gender": "female"}},
        {"voice_id": "v1", "name": "adam", "category": "premade", "labels": {}},
    ]
}


@pytest.mark.asyncio
async def test_list_voices_sorts_and_caches():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=VOICES)

    client = make_client(handler)

    voices = await client.list_voices()
    again = await client.list_voices()

    assert [voice["voice_id"] for voice in voices] == ["v1", "v2", "v3"]
    assert voices[1]["gender"] == "female"
    assert voices[0]["settings"] == DEFAULT_VOICE_SETTINGS
    assert again is voices
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_list_voices_serves_expired_cache_on_failure():
    responses = [httpx.Response(200, json=VOICES), httpx.Response(503)]

    client = make_client(lambda request: responses.pop(0), voice_cache_seconds=0)

    first = await client.list_voices()
    second = await client.list_voices()

    assert second == first
    assert responses == []


@pytest.mark.asyncio
async def test_list_voices_without_cache_raises():
    client = make_client(lambda request: httpx.Response(500))

    with pytest.raises(ElevenLabsError):
        await client.list_voices()
