"""
Tests for request sequencing, debouncing and history pushes in the processing coordinator.
"""
from __future__ import annotations

import asyncio

import pytest

from quiklens.application.use_cases.processing_coordinator import ProcessingCoordinator
from quiklens.domain.entities.edit_params import AdjustmentValues, EditParams, EffectKind
from quiklens.domain.entities.editing_session import EditingSession
from quiklens.domain.entities.geometry import Dimensions, OriginalRect
from quiklens.domain.entities.images import DisplayedImage
from quiklens.domain.errors import ServiceError, ValidationError
from quiklens.domain.services.history_stack import HistoryStack

DIMS = Dimensions(400, 200)


def make_coordinator(gateway, delay=0.01, released=None):
    session = EditingSession()
    session.source_bytes = b"source"
    session.filename = "photo.png"
    session.source_media_type = "image/png"
    session.true_original_dimensions = DIMS
    history = HistoryStack()
    coordinator = ProcessingCoordinator(
        session, history, gateway, debounce_delay=delay,
        on_release=released.append if released is not None else None,
    )
    coordinator.show(DisplayedImage(data=b"original", dimensions=DIMS, media_type="image/png"))
    history.reset(EditParams(source_base_dimensions=DIMS))
    return session, history, coordinator


class TestDebounce:
    def test_burst_of_changes_sends_one_request(self, gateway):
        async def scenario():
            session, history, coord = make_coordinator(gateway)
            for value in (1.1, 1.2, 1.3, 1.4, 1.5):
                session.adjustments = session.adjustments.with_value("brightness", value)
                assert coord.schedule_adjustment_preview()
            await coord.wait_idle()
            return session, history

        session, history = asyncio.run(scenario())
        assert len(gateway.calls) == 1
        effect, params = gateway.calls[0]
        assert effect == EffectKind.APPLY_ALL
        assert params.adjustments.brightness == 1.5
        assert len(history) == 2
        assert history.current.adjustments.brightness == 1.5
        assert not session.is_loading

    def test_suppressed_while_cropping(self, gateway):
        async def scenario():
            session, _, coord = make_coordinator(gateway)
            session.is_cropping = True
            assert not coord.schedule_adjustment_preview()
            await coord.wait_idle()

        asyncio.run(scenario())
        assert gateway.calls == []

    def test_entering_crop_mode_drops_pending_preview(self, gateway):
        async def scenario():
            session, _, coord = make_coordinator(gateway)
            coord.schedule_adjustment_preview()
            session.is_cropping = True
            await coord.wait_idle()

        asyncio.run(scenario())
        assert gateway.calls == []

    def test_suppressed_without_file(self, gateway):
        async def scenario():
            coord = ProcessingCoordinator(EditingSession(), HistoryStack(), gateway)
            return coord.schedule_adjustment_preview()

        assert asyncio.run(scenario()) is False

    def test_failure_is_recorded_not_raised(self, gateway):
        gateway.fail_with = "Processing failed: 500 Internal Server Error"

        async def scenario():
            session, history, coord = make_coordinator(gateway)
            session.adjustments = session.adjustments.with_value("contrast", 20)
            coord.schedule_adjustment_preview()
            await coord.wait_idle()
            return session, history

        session, history = asyncio.run(scenario())
        assert session.error == "Processing failed: 500 Internal Server Error"
        assert len(history) == 1
        assert not session.is_loading


class TestOrdering:
    def test_stale_response_is_discarded(self, gateway):
        gateway.delays = [0.05, 0.0]

        async def scenario():
            session, history, coord = make_coordinator(gateway)
            session.adjustments = AdjustmentValues(brightness=1.2)
            first = asyncio.create_task(coord.request_adjustment_preview())
            await asyncio.sleep(0)
            session.adjustments = AdjustmentValues(brightness=1.6)
            second = asyncio.create_task(coord.request_adjustment_preview())
            results = await asyncio.gather(first, second)
            return session, history, results

        session, history, results = asyncio.run(scenario())
        assert results == [False, True]
        assert len(history) == 2
        assert history.current.adjustments.brightness == 1.6
        assert session.displayed_image.data == b"result-1"

    def test_earlier_response_arriving_first_is_discarded(self, gateway):
        gateway.delays = [0.02, 0.1]

        async def scenario():
            session, history, coord = make_coordinator(gateway)
            session.adjustments = AdjustmentValues(brightness=1.2)
            first = asyncio.create_task(coord.request_adjustment_preview())
            await asyncio.sleep(0)
            crop = asyncio.create_task(coord.request_crop(OriginalRect(0, 0, 200, 100)))
            results = await asyncio.gather(first, crop)
            return session, history, results

        session, history, results = asyncio.run(scenario())
        assert results == [False, True]
        assert len(history) == 2
        assert history.current.committed_crop == OriginalRect(0, 0, 200, 100)
        assert session.displayed_image.data == b"result-1"
        assert session.base_image_dimensions == Dimensions(200, 100)

    def test_response_for_replaced_file_is_discarded(self, gateway):
        gateway.delays = [0.05]

        async def scenario():
            session, history, coord = make_coordinator(gateway)
            task = asyncio.create_task(coord.request_adjustment_preview())
            await asyncio.sleep(0)
            session.reset()
            coord.cancel_pending()
            return await task, session, history

        applied, session, history = asyncio.run(scenario())
        assert applied is False
        assert session.displayed_image is None
        assert len(history) == 1

    def test_failure_leaves_history_and_session(self, gateway):
        gateway.fail_with = "unreachable"

        async def scenario():
            session, history, coord = make_coordinator(gateway)
            before = session.snapshot()
            with pytest.raises(ServiceError):
                await coord.request_crop(OriginalRect(0, 0, 100, 100))
            return session, history, before

        session, history, before = asyncio.run(scenario())
        assert session.snapshot() == before
        assert session.committed_crop is None
        assert len(history) == 1
        assert session.error == "unreachable"


class TestRequests:
    def test_crop_commits_rectangle_and_dimensions(self, gateway):
        crop = OriginalRect(40, 20, 200, 100)

        async def scenario():
            session, history, coord = make_coordinator(gateway)
            assert await coord.request_crop(crop)
            return session, history

        session, history = asyncio.run(scenario())
        assert gateway.calls[0][0] == EffectKind.CROP
        assert session.committed_crop == crop
        assert session.base_image_dimensions == Dimensions(200, 100)
        entry = history.current
        assert entry.committed_crop == crop
        assert entry.applied_crop_for_this_state == crop
        assert entry.source_base_dimensions == Dimensions(200, 100)

    def test_named_effect_keeps_crop(self, gateway):
        crop = OriginalRect(0, 0, 100, 50)

        async def scenario():
            session, history, coord = make_coordinator(gateway)
            session.committed_crop = crop
            assert await coord.request_named_effect(EffectKind.GRAYSCALE)
            return session, history

        session, history = asyncio.run(scenario())
        effect, params = gateway.calls[0]
        assert effect == EffectKind.GRAYSCALE
        assert params.committed_crop == crop
        assert session.grayscale
        assert history.current.grayscale

    def test_resize_derives_missing_side(self, gateway):
        async def scenario():
            session, history, coord = make_coordinator(gateway)
            await coord.request_named_effect(EffectKind.RESIZE, {"width": 100})
            return session

        session = asyncio.run(scenario())
        assert gateway.calls[0][1].output_size == Dimensions(100, 50)
        assert session.output_size == Dimensions(100, 50)
        assert session.base_image_dimensions == Dimensions(100, 50)

    def test_slider_named_effect_updates_adjustments(self, gateway):
        async def scenario():
            session, _, coord = make_coordinator(gateway)
            await coord.request_named_effect(EffectKind.SATURATION, {"saturation": 5})
            return session

        session = asyncio.run(scenario())
        # clamped to the slider range
        assert session.adjustments.saturation == 2.0

    def test_unknown_override_is_rejected(self, gateway):
        async def scenario():
            _, _, coord = make_coordinator(gateway)
            with pytest.raises(ValidationError):
                await coord.request_named_effect(EffectKind.GRAYSCALE, {"vignette": 3})

        asyncio.run(scenario())
        assert gateway.calls == []

    def test_replay_does_not_push(self, gateway):
        async def scenario():
            _, history, coord = make_coordinator(gateway)
            assert await coord.replay(history.current)
            return history

        history = asyncio.run(scenario())
        assert len(history) == 1
        assert gateway.calls[0][0] == EffectKind.APPLY_ALL

    def test_request_without_file_is_rejected(self, gateway):
        async def scenario():
            coord = ProcessingCoordinator(EditingSession(), HistoryStack(), gateway)
            with pytest.raises(ValidationError):
                await coord.request_adjustment_preview()

        asyncio.run(scenario())


def test_previous_image_released_once_when_replaced(gateway):
    released: list[DisplayedImage] = []

    async def scenario():
        session, _, coord = make_coordinator(gateway, released=released)
        first = session.displayed_image
        coord.show(first)
        assert released == []
        await coord.request_adjustment_preview()
        return first

    first = asyncio.run(scenario())
    assert released == [first]
