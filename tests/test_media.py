"""Tests for the multimedia normalizer."""

import pytest
from conftest import FakeClient, FakeVoice, make_event

from chatpilot.agent.media import MediaNormalizer
from chatpilot.config.schema import Config, FeaturesConfig, LimitsConfig


def _normalizer(config: Config | None = None, client: FakeClient | None = None, voice=None) -> MediaNormalizer:
    return MediaNormalizer(config or Config(), client or FakeClient(), voice)


@pytest.mark.asyncio
async def test_text_is_trimmed_and_truncated() -> None:
    config = Config(limits=LimitsConfig(max_input_characters=10))
    result = await _normalizer(config).normalize(make_event("   hello there, how are you   "))
    assert result.body == "hello ther"
    assert result.image is None


@pytest.mark.asyncio
async def test_audio_is_transcribed() -> None:
    client = FakeClient(media={"aud-1": b"OggS"})
    voice = FakeVoice("how much is the business plan")
    event = make_event("", msg_type="audio", media={"id": "aud-1", "mime": "audio/ogg", "meta": {"duration": 12}})

    result = await _normalizer(client=client, voice=voice).normalize(event)

    assert result.body == "how much is the business plan"
    assert result.from_audio and result.transcribed
    assert voice.stt_calls == ["aud-1.ogg"]


@pytest.mark.asyncio
async def test_long_audio_falls_back_to_notice() -> None:
    client = FakeClient(media={"aud-1": b"OggS"})
    voice = FakeVoice()
    event = make_event("", msg_type="audio", media={"id": "aud-1", "meta": {"duration": 600}})

    result = await _normalizer(client=client, voice=voice).normalize(event)

    assert result.notice is True
    assert result.body == Config().messages.audio_not_supported_message
    assert voice.stt_calls == []
    assert client.downloads == []


@pytest.mark.asyncio
async def test_audio_disabled() -> None:
    config = Config(features=FeaturesConfig(audio_input=False))
    event = make_event("", msg_type="audio", media={"id": "aud-1", "meta": {"duration": 5}})
    result = await _normalizer(config, voice=FakeVoice()).normalize(event)
    assert result.notice and result.from_audio and not result.transcribed


@pytest.mark.asyncio
async def test_audio_download_failure_falls_back() -> None:
    event = make_event("", msg_type="audio", media={"id": "missing", "meta": {"duration": 5}})
    result = await _normalizer(voice=FakeVoice()).normalize(event)
    assert result.body == Config().messages.audio_not_supported_message


@pytest.mark.asyncio
async def test_document_with_and_without_caption() -> None:
    normalizer = _normalizer()
    with_caption = make_event("", msg_type="document", media={"id": "doc-1", "caption": "my invoice"})
    without = make_event("", msg_type="video", media={"id": "vid-1"})

    assert (await normalizer.normalize(with_caption)).body == "my invoice"
    result = await normalizer.normalize(without)
    assert result.notice is True
    assert result.body == Config().messages.media_not_supported_message


@pytest.mark.asyncio
async def test_location() -> None:
    event = make_event("", msg_type="location", location={"name": "Wassenger HQ", "address": "Main St 1"})
    result = await _normalizer().normalize(event)
    assert result.body == "Location: Wassenger HQ Main St 1"


@pytest.mark.asyncio
async def test_poll() -> None:
    event = make_event("", msg_type="poll", poll={"name": "Best day?", "options": [{"name": "Mon"}, "Tue"]})
    result = await _normalizer().normalize(event)
    assert result.body == "Best day?\n- Mon\n- Tue"


@pytest.mark.asyncio
async def test_event_skips_missing_fields() -> None:
    event = make_event("", msg_type="event", event={
        "name": "Demo call",
        "date": "2024-05-06T10:00:00Z",
        "callLink": "https://call.example.com/x",
    })
    result = await _normalizer().normalize(event)
    assert result.body == "Event: Demo call\nDate: 2024-05-06T10:00:00Z\nCall link: https://call.example.com/x"


@pytest.mark.asyncio
async def test_contacts() -> None:
    event = make_event("", msg_type="contacts", contacts=[
        {"name": "Ana", "phones": [{"number": "+34600000001"}, "+34600000002"]},
        {"name": "Luis", "phone": "+34600000003"},
    ])
    result = await _normalizer().normalize(event)
    assert result.body == "Ana: +34600000001, +34600000002\nLuis: +34600000003"


@pytest.mark.asyncio
async def test_image_kept_as_reference() -> None:
    event = make_event("", msg_type="image", media={"id": "img-1", "mime": "image/jpeg", "size": 2048})
    result = await _normalizer().normalize(event)
    assert result.body == ""
    assert result.image is not None and result.image.id == "img-1"
    assert not result.is_empty


@pytest.mark.asyncio
async def test_image_disabled_or_too_large_uses_caption() -> None:
    disabled = Config(features=FeaturesConfig(image_input=False))
    event = make_event("", msg_type="image", media={"id": "img-1", "size": 2048})
    result = await _normalizer(disabled).normalize(event)
    assert result.is_empty

    large = make_event("", msg_type="image", media={"id": "img-2", "size": 10 * 1024 * 1024, "caption": "receipt"})
    result = await _normalizer().normalize(large)
    assert result.body == "receipt"
    assert result.image is None
