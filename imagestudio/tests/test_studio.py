"""End-to-end tests for the client orchestrator against the relay app."""

from __future__ import annotations

import threading

import httpx
import pytest
from fastapi.testclient import TestClient

from imagestudio.client.context import ClientContext, mark_reference
from imagestudio.client.relayclient import RelayClient
from imagestudio.client.session import Done, Failed, SessionStatus
from imagestudio.client.studio import ImageStudio
from imagestudio.config import Settings
from imagestudio.errors import GenerationValidationError, ImageGenerationError
from imagestudio.main import app
from imagestudio.schemas import GenerateImageRequest, HistoryEntry
from imagestudio.service import RelayService, get_relay_service
from imagestudio.storageservice.storageservice import LocalStorage


@pytest.fixture
def http_client(factory):
    relay = RelayService(Settings(openai_api_key="server-key", _env_file=None), client_factory=factory)
    app.dependency_overrides[get_relay_service] = lambda: relay
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def storage(tmp_path):
    service = LocalStorage(str(tmp_path / "client.db"))
    try:
        yield service
    finally:
        service.close()


@pytest.fixture
def studio(http_client: TestClient, storage: LocalStorage) -> ImageStudio:
    return ImageStudio(ClientContext.load(storage), RelayClient(http_client))


def test_full_batch_creates_exactly_one_history_entry(studio: ImageStudio, storage: LocalStorage) -> None:
    session = studio.generate("a red bicycle", size="1024x1792")

    assert session.status is SessionStatus.complete
    assert len(studio.context.history) == 1
    entry = studio.context.history[0]
    assert entry.prompt == "a red bicycle"
    assert entry.size == "1024x1792"
    assert entry.imageUrls == [f"https://images.test/{index}.png" for index in range(4)]
    assert storage.load_history() == [entry]


def test_partial_batch_is_not_added_to_history(studio: ImageStudio, factory) -> None:
    factory.failing = {2}

    session = studio.generate("a red bicycle")

    assert [type(slot) for slot in session.slots] == [Done, Done, Failed, Done]
    assert session.status is SessionStatus.complete
    assert studio.context.history == []
    assert studio.last_entry is None


def test_style_and_credential_are_sent_with_the_request(studio: ImageStudio, factory) -> None:
    studio.context.set_credential("sk-user")
    studio.styles.select("watercolor")
    studio.styles.select("anime")

    studio.generate("a fox")

    prompt, _ = factory.calls[0]
    assert prompt == f"a fox, {studio.styles.style_text}"
    assert ", combined with " in prompt
    assert factory.api_keys == ["sk-user"]
    assert studio.context.history[0].style == studio.styles.style_text


def test_fatal_error_surfaces_single_message(studio: ImageStudio, factory) -> None:
    session = studio.generate("   ")

    assert session.status is SessionStatus.failed
    assert session.error == "Prompt is required"
    assert factory.calls == []
    assert studio.context.history == []


def test_cancelled_generation_records_nothing(studio: ImageStudio) -> None:
    cancel = threading.Event()
    cancel.set()

    session = studio.generate("a fox", cancel_event=cancel)

    assert session.status is SessionStatus.aborted
    assert studio.context.history == []


def test_history_entry_restores_form_with_reference_image(studio: ImageStudio, factory) -> None:
    studio.styles.select("vintage")
    studio.generate("a harbour", size="1792x1024", reference_image_url="https://example.com/ref.png")
    entry = studio.context.history[0]
    calls_before = len(factory.calls)

    studio.styles.clear()
    form = studio.load_history_entry(entry.id)

    assert form.prompt == "a harbour"
    assert form.size == "1792x1024"
    assert form.reference_image_url == "https://example.com/ref.png"
    assert form.style == studio.styles.style_text
    assert "[reference:" not in form.style
    assert len(factory.calls) == calls_before


def test_history_is_reloaded_by_a_new_context(studio: ImageStudio, storage: LocalStorage) -> None:
    studio.context.set_credential("sk-saved")
    studio.generate("first")
    studio.generate("second")

    reloaded = ClientContext.load(storage)

    assert reloaded.credential == "sk-saved"
    assert [entry.prompt for entry in reloaded.history] == ["second", "first"]
    assert reloaded.remove_history_entry(reloaded.history[0].id)
    assert [entry.prompt for entry in ClientContext.load(storage).history] == ["first"]


def test_server_error_status_fails_the_session(storage: LocalStorage) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    relay = RelayClient(httpx.Client(transport=transport, base_url="http://relay.test"))
    studio = ImageStudio(ClientContext.load(storage), relay)

    session = studio.generate("a fox")

    assert session.status is SessionStatus.failed
    assert "500" in session.error


def test_garbled_stream_fails_the_session(storage: LocalStorage) -> None:
    body = 'data: {"status":"generating","index":0}\n\nthis is not an event\n\n'
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=body))
    relay = RelayClient(httpx.Client(transport=transport, base_url="http://relay.test"))
    studio = ImageStudio(ClientContext.load(storage), relay)

    session = studio.generate("a fox")

    assert session.status is SessionStatus.failed
    assert studio.context.history == []


def test_relay_client_batch_variant(http_client: TestClient, factory) -> None:
    relay = RelayClient(http_client)

    result = relay.generate_batch(GenerateImageRequest(prompt="a fox"))
    assert len(result.imageUrls) == 4

    with pytest.raises(GenerationValidationError):
        relay.generate_batch(GenerateImageRequest(prompt=""))

    factory.failing = {0, 1, 2, 3}
    with pytest.raises(ImageGenerationError):
        relay.generate_batch(GenerateImageRequest(prompt="a fox"))


@pytest.mark.parametrize(
    "url",
    [
        "http://[::1]/ref.png",
        "https://[2001:db8::7]:8443/images/ref.png?size=large",
        "https://example.com/a]b.png",
    ],
)
def test_restore_keeps_reference_urls_containing_brackets(url: str) -> None:
    entry = HistoryEntry(
        prompt="a harbour",
        style=mark_reference("anime style", url),
        imageUrls=[f"https://images.test/{index}.png" for index in range(4)],
    )

    form = ClientContext.restore(entry)

    assert form.reference_image_url == url
    assert form.style == "anime style"


def test_restore_without_style_keeps_only_the_reference() -> None:
    entry = HistoryEntry(
        prompt="a harbour",
        style=mark_reference("", "http://[::1]/ref.png"),
        imageUrls=["https://images.test/0.png"],
    )

    form = ClientContext.restore(entry)

    assert form.reference_image_url == "http://[::1]/ref.png"
    assert form.style == ""


def test_keep_alive_comments_in_stream_are_ignored(storage: LocalStorage) -> None:
    frames = [": keep-alive\n\n"]
    for index in range(4):
        frames.append(f'data: {{"status":"generating","index":{index}}}\n\n')
        frames.append(": keep-alive\n\n")
        frames.append(f'data: {{"index":{index},"imageUrl":"https://images.test/{index}.png"}}\n\n')
    frames.append('event: message\nid: 9\ndata: {"status":"complete"}\n\n')
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="".join(frames)))
    relay = RelayClient(httpx.Client(transport=transport, base_url="http://relay.test"))
    studio = ImageStudio(ClientContext.load(storage), relay)

    session = studio.generate("a fox")

    assert session.status is SessionStatus.complete
    assert session.image_urls == [f"https://images.test/{index}.png" for index in range(4)]
    assert len(studio.context.history) == 1
