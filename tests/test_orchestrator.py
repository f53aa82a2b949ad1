import anyio
import httpx
import pytest

from page_digest.pipeline.models import GenerationResult, MediaType, Trigger
from page_digest.pipeline.orchestrator import ChunkVerdict, classify

from helpers import (
    FakePage,
    FakeTransport,
    RecordingPresentation,
    error_result,
    make_service,
    make_settings,
    ok_result,
)

# Twenty thousand characters of selected text split into three chunks for translation
LONG_SELECTION = "word " * 4000


def test_classify_covers_every_reply_shape():
    assert classify(ok_result("text")) is ChunkVerdict.CONTENT
    assert classify(error_result(400, "bad")) is ChunkVerdict.ERROR
    assert classify(ok_result("", "SAFETY")) is ChunkVerdict.RESPONSE_BLOCKED
    blocked = GenerationResult(ok=True, status=200, body={"promptFeedback": {"blockReason": "OTHER"}})
    assert classify(blocked) is ChunkVerdict.PROMPT_BLOCKED
    no_parts = GenerationResult(ok=True, status=200, body={"candidates": [{"finishReason": "STOP"}]})
    assert classify(no_parts) is ChunkVerdict.UNEXPECTED
    assert classify(GenerationResult(ok=True, status=200, body={})) is ChunkVerdict.UNEXPECTED


@pytest.mark.anyio
async def test_blocked_second_chunk_stops_the_run():
    service, transport = make_service(
        [ok_result("First."), ok_result("", "SAFETY"), ok_result("Third.")]
    )
    outcome = await service.orchestrator.run(FakePage(selection=LONG_SELECTION))

    assert len(outcome.chunks) == 3
    assert len(transport.calls) == 2
    assert outcome.content == "First.\n\nThe response was blocked. Reason: SAFETY"


@pytest.mark.anyio
async def test_identical_run_is_served_from_cache():
    service, transport = make_service([ok_result("1. Point.")], captions="")
    page = FakePage(page_text="Some article text to summarize.")

    first = await service.orchestrator.run(page)
    second = await service.orchestrator.run(page)

    assert len(transport.calls) == 1
    assert first.content == second.content == "1. Point.\n\n"


@pytest.mark.anyio
async def test_run_command_bypasses_cache():
    service, transport = make_service([ok_result("one"), ok_result("two")])
    page = FakePage(page_text="Some article text.")

    await service.orchestrator.run(page)
    outcome = await service.orchestrator.run(page, use_cache=False)

    assert len(transport.calls) == 2
    assert outcome.content == "two\n\n"
    assert len(await service.cache.entries()) == 1


@pytest.mark.anyio
async def test_cache_key_includes_language():
    service, transport = make_service([ok_result("en"), ok_result("ja")])
    page = FakePage(page_text="Some article text.")

    await service.orchestrator.run(page, language_code="en")
    outcome = await service.orchestrator.run(page, language_code="ja")

    assert len(transport.calls) == 2
    assert outcome.content == "ja\n\n"


@pytest.mark.anyio
async def test_api_error_without_key_adds_hint():
    service, _ = make_service(
        [error_result(400, "API key not valid.")], settings=make_settings(GEMINI_API_KEY="")
    )
    outcome = await service.orchestrator.run(FakePage(page_text="text"))

    assert outcome.content.startswith("Error: 400\n\nAPI key not valid.")
    assert outcome.content.endswith(service.catalog.get("popup_no_apikey"))
    assert await service.cache.entries() == []


@pytest.mark.anyio
async def test_api_error_with_key_has_no_hint():
    service, _ = make_service([error_result(500, "Internal error.")])
    outcome = await service.orchestrator.run(FakePage(page_text="text"))
    assert outcome.content == "Error: 500\n\nInternal error."


@pytest.mark.anyio
async def test_prompt_block_is_reported():
    blocked = GenerationResult(
        ok=True, status=200, body={"promptFeedback": {"blockReason": "SAFETY"}}
    )
    service, _ = make_service([blocked])
    outcome = await service.orchestrator.run(FakePage(page_text="text"))
    assert outcome.content == "The prompt was blocked. Reason: SAFETY"


@pytest.mark.anyio
async def test_unexpected_shape_is_reported():
    odd = GenerationResult(ok=True, status=200, body={"candidates": [{"finishReason": "STOP"}]})
    service, _ = make_service([odd])
    outcome = await service.orchestrator.run(FakePage(page_text="text"))
    assert outcome.content == "An unexpected response was received."


@pytest.mark.anyio
async def test_transport_failure_keeps_partial_output_and_cleans_up():
    service, transport = make_service([ok_result("First.")])
    transport.error = None
    presentation = RecordingPresentation()

    original_generate = transport.generate

    async def failing_generate(api_key, model_id, contents):
        if transport.calls:
            raise httpx.ConnectError("connection refused")
        return await original_generate(api_key, model_id, contents)

    transport.generate = failing_generate
    outcome = await service.orchestrator.run(
        FakePage(selection=LONG_SELECTION), presentation=presentation
    )

    assert outcome.content == "First.\n\n" + service.catalog.get("popup_miscellaneous_error")
    assert presentation.busy == [True, False]
    assert presentation.statuses[-1] == ""
    assert presentation.renders[-1] == outcome.content

    stored = await service.get_result(outcome.result_index)
    assert stored.response_content == outcome.content
    assert stored.request_api_content["role"] == "user"


@pytest.mark.anyio
async def test_resolution_failure_is_reported_as_processing_error():
    service, transport = make_service()
    presentation = RecordingPresentation()
    outcome = await service.orchestrator.run(
        FakePage(screenshot=None), presentation=presentation
    )

    assert outcome.content == service.catalog.get("popup_miscellaneous_error")
    assert transport.calls == []
    assert presentation.busy == [False]
    stored = await service.get_result(outcome.result_index)
    assert stored.request_api_content is None


@pytest.mark.anyio
async def test_result_index_rotates_through_ten_slots():
    service, _ = make_service()
    indexes = [await service.orchestrator.next_result_index() for _ in range(11)]
    assert indexes == [0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 0]


@pytest.mark.anyio
async def test_run_is_saved_to_result_slot():
    service, _ = make_service([ok_result("1. Point.")])
    outcome = await service.orchestrator.run(FakePage(page_text="Article body."))

    index, stored = await service.latest_result()
    assert index == outcome.result_index == 0
    assert stored.response_content == "1. Point.\n\n"
    assert stored.request_api_content["parts"][0]["text"].endswith("\nText:\nArticle body.")


@pytest.mark.anyio
async def test_streaming_updates_partial_output():
    service, transport = make_service(
        [ok_result("Hello there")], settings=make_settings(streaming=True)
    )
    presentation = RecordingPresentation()
    outcome = await service.orchestrator.run(
        FakePage(page_text="Article body."), presentation=presentation
    )

    assert transport.calls[0]["streamed"]
    assert outcome.content == "Hello there\n\n"
    partials = [render for render in presentation.renders if render.startswith("\n\n")]
    assert partials
    assert all(render.endswith("\n\n") for render in partials)
    assert any("Hello" in render for render in partials)
    assert not [key for key in service.store._data if key.startswith("streamContent")]


@pytest.mark.anyio
async def test_loading_status_is_shown_while_generating():
    service, _ = make_service([ok_result("Bonjour")])
    presentation = RecordingPresentation()
    await service.orchestrator.run(FakePage(selection="Hello"), presentation=presentation)
    assert "Translating" in presentation.statuses


@pytest.mark.anyio
async def test_image_is_sent_as_a_single_inline_chunk():
    service, transport = make_service([ok_result("1. A chart.")])
    outcome = await service.orchestrator.run(
        FakePage(selection="ignored"), trigger=Trigger.SCREENSHOT
    )

    assert outcome.media_type is MediaType.IMAGE
    assert outcome.chunks == [FakePage().screenshot]
    parts = transport.calls[0]["contents"][0]["parts"]
    assert parts[0]["text"].startswith("Summarize the image")
    assert parts[1]["inline_data"] == {"mime_type": "image/jpeg", "data": "/9j/4AAQSkZJRg=="}


class EchoTransport(FakeTransport):
    """Replies with the upper-cased task input of each request."""

    def _next(self, api_key, model_id, contents, streamed):
        self.calls.append(
            {"api_key": api_key, "model_id": model_id, "contents": contents, "streamed": streamed}
        )
        task_input = contents[0]["parts"][0]["text"].rsplit("\n", 1)[-1]
        return ok_result(task_input.upper())


@pytest.mark.anyio
async def test_concurrent_streaming_runs_keep_their_own_partial_output():
    service, _ = make_service(
        settings=make_settings(streaming=True), transport=EchoTransport()
    )
    alpha, bravo = RecordingPresentation(), RecordingPresentation()
    outcomes = {}

    async def _run(name, text, presentation):
        outcomes[name] = await service.orchestrator.run(
            FakePage(page_text=text), presentation=presentation
        )

    async with anyio.create_task_group() as tg:
        tg.start_soon(_run, "alpha", "alpha alpha alpha alpha", alpha)
        tg.start_soon(_run, "bravo", "bravo bravo bravo bravo", bravo)

    assert outcomes["alpha"].content == "ALPHA ALPHA ALPHA ALPHA\n\n"
    assert outcomes["bravo"].content == "BRAVO BRAVO BRAVO BRAVO\n\n"
    assert any("ALPHA" in render for render in alpha.renders)
    assert any("BRAVO" in render for render in bravo.renders)
    assert not any("BRAVO" in render for render in alpha.renders)
    assert not any("ALPHA" in render for render in bravo.renders)


@pytest.mark.anyio
async def test_cancelled_run_still_saves_its_result_slot():
    service, transport = make_service()
    presentation = RecordingPresentation()

    async def hanging_generate(api_key, model_id, contents):
        await anyio.sleep_forever()

    transport.generate = hanging_generate

    async def _run():
        await service.orchestrator.run(
            FakePage(page_text="Article body."), presentation=presentation
        )

    async with anyio.create_task_group() as tg:
        tg.start_soon(_run)
        await anyio.sleep(0.1)
        tg.cancel_scope.cancel()

    index, stored = await service.latest_result()
    assert index == 0
    assert stored is not None
    assert stored.response_content == ""
    assert presentation.busy == [True, False]
    assert presentation.statuses[-1] == ""
    assert presentation.renders[-1] == ""
