"""
Tests for the Editor facade: loading, crop workflow, named effects, undo/redo and export names.
"""
from __future__ import annotations

import asyncio
import io

import numpy as np
import pytest
from PIL import Image

from quiklens.application.editor import Editor
from quiklens.config import EditorSettings
from quiklens.domain.entities.edit_params import AspectRatioOption, EffectKind
from quiklens.domain.entities.geometry import Dimensions, DisplayRect, OriginalRect, Point
from quiklens.domain.entities.images import RawPreview
from quiklens.domain.errors import DecodeError, ValidationError
from quiklens.domain.services.crop_engine import CropHandle

SETTINGS = EditorSettings(debounce_delay=0.01)


def make_image_bytes(w=400, h=200, color=(128, 64, 32), fmt="PNG") -> bytes:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    img = Image.fromarray(arr, mode="RGB")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def run(coro_fn):
    return asyncio.run(coro_fn())


async def loaded_editor(gateway, filename="photo.png", fmt="PNG", **kwargs) -> Editor:
    editor = Editor(gateway, settings=SETTINGS, **kwargs)
    await editor.load_file(make_image_bytes(fmt=fmt), filename)
    return editor


class TestLoad:
    def test_load_png(self, gateway):
        async def scenario():
            return await loaded_editor(gateway, container=Dimensions(800, 600))

        editor = run(scenario)
        s = editor.session
        assert s.is_loaded
        assert s.base_image_dimensions == Dimensions(400, 200)
        assert s.true_original_dimensions == Dimensions(400, 200)
        assert len(editor.history) == 1
        assert editor.is_pristine()
        assert not editor.can_undo() and not editor.can_redo()
        assert editor.export_filename() == "QuikLens_original_photo.png"
        # fitted to the container
        assert editor.zoom == pytest.approx(2.0)
        assert editor.pan_offset == Point(0, 100)
        assert gateway.calls == []

    def test_jpeg_exports_as_jpg(self, gateway):
        editor = run(lambda: loaded_editor(gateway, filename="holiday.jpeg", fmt="JPEG"))
        assert editor.export_filename() == "QuikLens_original_holiday.jpg"

    def test_load_raw_uses_preview_service(self, gateway):
        gateway.preview = RawPreview(
            preview=make_image_bytes(540, 360, fmt="JPEG"),
            preview_dimensions=Dimensions(540, 360),
            true_original_dimensions=Dimensions(6000, 4000),
        )
        editor = run(lambda: loaded_editor(gateway, filename="shot.NEF"))
        s = editor.session
        assert gateway.preview_calls == ["shot.NEF"]
        assert s.true_original_dimensions == Dimensions(6000, 4000)
        assert s.base_image_dimensions == Dimensions(540, 360)
        assert editor.export_filename() == "QuikLens_original_shot.png"

    def test_raw_preview_failure_leaves_nothing_loaded(self, gateway):
        editor = Editor(gateway, settings=SETTINGS)

        async def scenario():
            with pytest.raises(DecodeError):
                await editor.load_file(b"not really raw", "broken.cr2")

        run(scenario)
        assert not editor.session.is_loaded
        assert editor.error.startswith("Could not load broken.cr2")
        assert not editor.is_loading
        assert not editor.can_export()

    def test_corrupt_file(self, gateway):
        editor = Editor(gateway, settings=SETTINGS)

        async def scenario():
            with pytest.raises(DecodeError):
                await editor.load_file(b"garbage", "photo.png")

        run(scenario)
        assert not editor.session.is_loaded

    def test_loading_new_file_releases_old_image(self, gateway):
        released = []

        async def scenario():
            editor = await loaded_editor(gateway, on_release=released.append)
            first = editor.displayed_image
            await editor.load_file(make_image_bytes(100, 100), "second.png")
            return editor, first

        editor, first = run(scenario)
        assert released == [first]
        assert editor.session.filename == "second.png"
        assert len(editor.history) == 1


class TestSlidersAndHistory:
    def test_slider_edit_then_undo_redo(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            editor.set_slider("brightness", 1.4)
            editor.set_slider("brightness", 1.6)
            await editor.wait_idle()
            assert editor.can_undo()
            assert not editor.is_pristine()
            assert editor.export_filename() == "QuikLens_edited_photo.png"

            assert await editor.undo()
            assert editor.adjustments.brightness == 1.0
            assert editor.can_redo()
            assert await editor.redo()
            assert editor.adjustments.brightness == 1.6
            return editor

        editor = run(scenario)
        assert len(editor.history) == 2
        assert [effect for effect, _ in gateway.calls] == [EffectKind.APPLY_ALL] * 3
        # replays send the historical entry
        assert gateway.calls[1][1].adjustments.brightness == 1.0

    def test_slider_value_is_clamped(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            editor.set_slider("contrast", 500)
            await editor.wait_idle()
            return editor

        assert run(scenario).adjustments.contrast == 50

    def test_unknown_slider(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            with pytest.raises(ValidationError):
                editor.set_slider("vibrance", 1)

        run(scenario)

    def test_undo_and_redo_at_bounds_are_noops(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            assert not await editor.undo()
            assert not await editor.redo()

        run(scenario)
        assert gateway.calls == []

    def test_failed_undo_restores_cursor(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            editor.set_slider("exposure", 1.0)
            await editor.wait_idle()
            gateway.fail_with = "service down"
            assert not await editor.undo()
            return editor

        editor = run(scenario)
        assert editor.history.index == 1
        assert editor.adjustments.exposure == 1.0
        assert editor.error == "service down"
        assert not editor.is_loading

    def test_preview_arriving_before_undo_replay_is_discarded(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            editor.set_slider("brightness", 1.5)
            await editor.wait_idle()
            # the preview answers first, the replay issued after it answers last
            gateway.delays = [0, 0.05, 0.2]
            editor.session.adjustments = editor.adjustments.with_value("brightness", 1.8)
            preview = asyncio.create_task(editor.coordinator.request_adjustment_preview())
            await asyncio.sleep(0)
            assert await editor.undo()
            assert await preview is False

            assert len(editor.history) == 2
            assert editor.history.index == 0
            assert editor.history.current.adjustments == editor.adjustments
            assert editor.adjustments.brightness == 1.0
            assert editor.displayed_image.data == b"result-2"

            assert await editor.redo()
            assert editor.adjustments.brightness == 1.5
            return editor

        editor = run(scenario)
        assert editor.history.current.adjustments.brightness == 1.5
        assert not editor.is_loading


class TestCrop:
    def test_two_crops_then_undo(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            assert editor.toggle_crop_mode()
            assert editor.ui_crop_region == DisplayRect(0, 0, 400, 200)

            assert editor.pointer_down(Point(0, 0)) == CropHandle.TOP_LEFT
            editor.pointer_move(Point(100, 50))
            editor.pointer_up()
            assert editor.ui_crop_region == DisplayRect(100, 50, 300, 150)
            assert await editor.commit_crop()
            assert not editor.is_cropping
            assert editor.session.committed_crop == OriginalRect(100, 50, 300, 150)
            assert editor.session.base_image_dimensions == Dimensions(300, 150)

            editor.toggle_crop_mode()
            assert editor.pointer_down(Point(300, 150)) == CropHandle.BOTTOM_RIGHT
            editor.pointer_move(Point(200, 100))
            editor.pointer_up()
            assert await editor.commit_crop()
            assert editor.session.committed_crop == OriginalRect(100, 50, 200, 100)

            assert await editor.undo()
            return editor

        editor = run(scenario)
        s = editor.session
        assert s.committed_crop == OriginalRect(100, 50, 300, 150)
        assert s.base_image_dimensions == Dimensions(300, 150)
        assert gateway.calls[-1][0] == EffectKind.APPLY_ALL
        assert gateway.calls[-1][1].committed_crop == OriginalRect(100, 50, 300, 150)
        assert len(editor.history) == 3

    def test_too_small_crop_is_rejected(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            editor.toggle_crop_mode()
            editor.session.ui_crop_region = DisplayRect(0, 0, 10, 10)
            with pytest.raises(ValidationError):
                await editor.commit_crop()
            return editor

        editor = run(scenario)
        assert gateway.calls == []
        assert len(editor.history) == 1
        assert editor.is_cropping
        assert editor.error.startswith("Crop dimensions are too small")

    def test_preview_arriving_before_crop_is_discarded(self, gateway):
        gateway.delays = [0.02, 0.1]

        async def scenario():
            editor = await loaded_editor(gateway)
            editor.session.adjustments = editor.adjustments.with_value("brightness", 1.3)
            preview = asyncio.create_task(editor.coordinator.request_adjustment_preview())
            await asyncio.sleep(0)
            editor.toggle_crop_mode()
            editor.session.ui_crop_region = DisplayRect(0, 0, 200, 100)
            assert await editor.commit_crop()
            assert await preview is False
            return editor

        editor = run(scenario)
        s = editor.session
        assert len(editor.history) == 2
        assert editor.history.index == 1
        assert editor.history.current.committed_crop == s.committed_crop == OriginalRect(0, 0, 200, 100)
        assert editor.history.current.adjustments == s.adjustments
        assert s.displayed_image.data == b"result-1"
        assert s.base_image_dimensions == Dimensions(200, 100)

    def test_commit_outside_crop_mode(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            with pytest.raises(ValidationError):
                await editor.commit_crop()

        run(scenario)

    def test_failed_crop_stays_in_crop_mode(self, gateway):
        gateway.fail_with = "Processing failed: 502 Bad Gateway"

        async def scenario():
            editor = await loaded_editor(gateway)
            editor.toggle_crop_mode()
            editor.session.ui_crop_region = DisplayRect(0, 0, 200, 100)
            assert not await editor.commit_crop()
            return editor

        editor = run(scenario)
        assert editor.is_cropping
        assert editor.session.committed_crop is None
        assert editor.error == "Processing failed: 502 Bad Gateway"
        assert len(editor.history) == 1
        editor.clear_error()
        assert editor.error is None

    def test_aspect_ratio_selection(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            editor.toggle_crop_mode()
            editor.set_aspect_ratio("1:1")
            assert editor.aspect_ratio == AspectRatioOption.SQUARE
            assert editor.ui_crop_region == DisplayRect(0, 0, 200, 200)
            with pytest.raises(ValidationError):
                editor.set_aspect_ratio("2:1")

        run(scenario)

    def test_slider_changes_do_not_render_while_cropping(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            editor.toggle_crop_mode()
            assert not editor.set_slider("tint", 30)
            await editor.wait_idle()

        run(scenario)
        assert gateway.calls == []


class TestNamedEffects:
    def test_grayscale(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            assert await editor.apply_named_effect("grayscale")
            return editor

        editor = run(scenario)
        assert editor.session.grayscale
        assert not editor.is_pristine()
        assert gateway.calls[0][0] == EffectKind.GRAYSCALE

    @pytest.mark.parametrize("name", ["crop", "applyAll", "sepia"])
    def test_rejected_effects(self, gateway, name):
        async def scenario():
            editor = await loaded_editor(gateway)
            with pytest.raises(ValidationError):
                await editor.apply_named_effect(name)

        run(scenario)
        assert gateway.calls == []


class TestViewport:
    def test_drag_pans_outside_crop_mode(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            assert editor.pointer_down(Point(10, 10)) is None
            editor.pointer_move(Point(30, 20))
            editor.pointer_up()
            editor.pan(Point(5, 5))
            return editor

        assert run(scenario).pan_offset == Point(25, 15)

    def test_wheel_zoom(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            editor.wheel(Point(0, 0), -200)
            return editor

        assert run(scenario).zoom == pytest.approx(1.2)

    def test_close_discards_everything(self, gateway):
        async def scenario():
            editor = await loaded_editor(gateway)
            editor.set_slider("brightness", 1.3)
            editor.close()
            await editor.wait_idle()
            return editor

        editor = run(scenario)
        assert not editor.session.is_loaded
        assert len(editor.history) == 0
        assert gateway.calls == []
        with pytest.raises(ValidationError):
            editor.export_filename()
