"""
Tests for exporting, the RAW toolchain wrappers and the RAW preview use case.
"""
from __future__ import annotations

import io
import json
import subprocess
from unittest.mock import Mock, patch

import numpy as np
import pytest
from PIL import Image

from quiklens.application.use_cases.export_image import ExportImageUseCase
from quiklens.application.use_cases.raw_preview import GenerateRawPreviewUseCase
from quiklens.domain.entities.geometry import Dimensions
from quiklens.domain.entities.images import DisplayedImage
from quiklens.domain.errors import DecodeError, ValidationError
from quiklens.infrastructure.raw.toolchain import RawMetadata, RawToolchain
from quiklens.infrastructure.storage.supabase_storage import StorageResult


def make_image_bytes(w=64, h=32, fmt="PNG") -> bytes:
    arr = np.full((h, w, 3), 200, dtype=np.uint8)
    buf = io.BytesIO()
    Image.fromarray(arr, mode="RGB").save(buf, format=fmt)
    return buf.getvalue()


def completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestExportImageUseCase:
    def _editor(self, filename: str, media_type: str, data: bytes):
        editor = Mock()
        editor.displayed_image = DisplayedImage(data=data, dimensions=Dimensions(64, 32), media_type=media_type)
        editor.export_filename.return_value = filename
        return editor

    def _storage(self):
        storage = Mock()
        storage.upload_bytes.side_effect = lambda user_id, data, filename, content_type: StorageResult(
            path=f"{user_id}/x/{filename}", content_type=content_type, size=len(data)
        )
        storage.public_url.side_effect = lambda path: f"/local-storage/{path}"
        return storage

    def test_png_is_uploaded_as_is(self):
        data = make_image_bytes()
        storage = self._storage()
        result = ExportImageUseCase(storage).execute("user_1", self._editor("QuikLens_edited_a.png", "image/png", data))

        storage.upload_bytes.assert_called_once_with("user_1", data, "QuikLens_edited_a.png", "image/png")
        assert result.url == "/local-storage/user_1/x/QuikLens_edited_a.png"
        assert result.dimensions == Dimensions(64, 32)

    def test_png_result_of_jpeg_source_is_reencoded(self):
        storage = self._storage()
        result = ExportImageUseCase(storage).execute(
            "user_1", self._editor("QuikLens_edited_a.jpg", "image/png", make_image_bytes())
        )
        uploaded = storage.upload_bytes.call_args.args[1]
        assert Image.open(io.BytesIO(uploaded)).format == "JPEG"
        assert result.stored.content_type == "image/jpeg"

    def test_nothing_to_export(self):
        editor = Mock()
        editor.displayed_image = None
        with pytest.raises(ValidationError):
            ExportImageUseCase(self._storage()).execute("user_1", editor)


class TestRawToolchain:
    def test_metadata_swaps_rotated_dimensions(self):
        record = [{"ImageWidth": 6000, "ImageHeight": 4000, "Orientation": 6, "FileType": "NEF"}]
        with patch("quiklens.infrastructure.raw.toolchain.subprocess.run", return_value=completed(json.dumps(record))) as run:
            meta = RawToolchain().read_metadata(b"raw", "shot.nef")
        args = run.call_args.args[0]
        assert args[:3] == ["exiftool", "-json", "-n"]
        assert meta.orientation == 6
        assert meta.oriented_dimensions == Dimensions(4000, 6000)

    def test_metadata_without_dimensions(self):
        with patch("quiklens.infrastructure.raw.toolchain.subprocess.run", return_value=completed('[{"FileType": "NEF"}]')):
            with pytest.raises(DecodeError):
                RawToolchain().read_metadata(b"raw", "shot.nef")

    def test_missing_binary(self):
        with patch("quiklens.infrastructure.raw.toolchain.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(DecodeError, match="not installed"):
                RawToolchain(dcraw_bin="no-such-dcraw").decode_to_tiff(b"raw", "shot.cr2")

    def test_nonzero_exit(self):
        with patch(
            "quiklens.infrastructure.raw.toolchain.subprocess.run",
            return_value=completed(stderr="Cannot decode file", returncode=1),
        ):
            with pytest.raises(DecodeError, match="exit code 1"):
                RawToolchain().decode_to_tiff(b"raw", "shot.cr2")

    def test_decode_reads_tiff_next_to_input(self):
        tiff = make_image_bytes(fmt="TIFF")

        def fake_run(args, **kwargs):
            # dcraw_emu writes <input>.tiff
            with open(args[-1] + ".tiff", "wb") as fh:
                fh.write(tiff)
            return completed()

        with patch("quiklens.infrastructure.raw.toolchain.subprocess.run", side_effect=fake_run) as run:
            out = RawToolchain().decode_to_tiff(b"raw", "shot.cr2")
        assert run.call_args.args[0][:3] == ["dcraw_emu", "-w", "-T"]
        assert out == tiff


class TestRawPreview:
    def test_raw_preview_is_bounded_jpeg(self):
        tools = Mock(spec=RawToolchain)
        tools.read_metadata.return_value = RawMetadata(width=3000, height=2000, orientation=1)
        tools.decode_to_tiff.return_value = make_image_bytes(3000, 2000, fmt="TIFF")

        result = GenerateRawPreviewUseCase(raw_tools=tools).execute(b"raw", "shot.arw")

        assert result.true_original_dimensions == Dimensions(3000, 2000)
        assert result.preview_dimensions == Dimensions(1080, 720)
        assert Image.open(io.BytesIO(result.preview)).format == "JPEG"

    def test_small_image_is_not_enlarged(self):
        tools = Mock(spec=RawToolchain)
        result = GenerateRawPreviewUseCase(raw_tools=tools).execute(make_image_bytes(64, 32), "small.png")
        tools.read_metadata.assert_not_called()
        assert result.preview_dimensions == Dimensions(64, 32)
        assert result.true_original_dimensions == Dimensions(64, 32)
