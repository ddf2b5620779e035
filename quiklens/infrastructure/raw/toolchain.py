from __future__ import annotations

import json
import logging
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from quiklens.config import EditorSettings
from quiklens.domain.entities.geometry import Dimensions
from quiklens.domain.errors import DecodeError

logger = logging.getLogger(__name__)

EXIF_FIELDS = (
    "-ImageWidth",
    "-ImageHeight",
    "-MIMEType",
    "-FileType",
    "-FileTypeExtension",
    "-SubFileType",
    "-Orientation",
)


@dataclass(frozen=True)
class RawMetadata:
    width: int
    height: int
    orientation: int | None = None
    mime_type: str | None = None
    file_type: str | None = None

    @property
    def oriented_dimensions(self) -> Dimensions:
        # EXIF orientations 5-8 are rotated by 90 or 270 degrees
        if self.orientation is not None and 5 <= self.orientation <= 8:
            return Dimensions(width=self.height, height=self.width)
        return Dimensions(width=self.width, height=self.height)


class RawToolchain:
    """Wrappers around the ``exiftool`` and LibRaw ``dcraw_emu`` command-line tools."""

    def __init__(
        self, dcraw_bin: str = "dcraw_emu", exiftool_bin: str = "exiftool", timeout: float = 120.0
    ) -> None:
        self.dcraw_bin = dcraw_bin
        self.exiftool_bin = exiftool_bin
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: EditorSettings) -> "RawToolchain":
        return cls(settings.dcraw_bin, settings.exiftool_bin, settings.tool_timeout)

    def read_metadata(self, data: bytes, filename: str) -> RawMetadata:
        with tempfile.TemporaryDirectory(prefix="quiklens_exif_") as tmp:
            path = self._write_input(Path(tmp), data, filename)
            proc = self._run([self.exiftool_bin, "-json", "-n", *EXIF_FIELDS, str(path)])
        try:
            records = json.loads(proc.stdout or "[]")
        except json.JSONDecodeError as exc:
            raise DecodeError(f"exiftool returned invalid JSON: {exc}") from exc
        if not records:
            raise DecodeError("exiftool returned no metadata")
        record = records[0]
        if record.get("Error"):
            raise DecodeError(f"exiftool error: {record['Error']}")
        width, height = record.get("ImageWidth"), record.get("ImageHeight")
        if not isinstance(width, (int, float)) or not isinstance(height, (int, float)):
            raise DecodeError(f"Could not read dimensions (width={width!r}, height={height!r})")
        orientation = record.get("Orientation")
        meta = RawMetadata(
            width=int(width),
            height=int(height),
            orientation=int(orientation) if isinstance(orientation, (int, float)) else None,
            mime_type=record.get("MIMEType"),
            file_type=record.get("FileType"),
        )
        logger.info("exiftool %s: %dx%d orientation=%s type=%s",
                    filename, meta.width, meta.height, meta.orientation, meta.file_type)
        return meta

    def decode_to_tiff(self, data: bytes, filename: str) -> bytes:
        """Demosaic a RAW file into a TIFF with camera white balance (``-w -T``)."""
        with tempfile.TemporaryDirectory(prefix="quiklens_raw_") as tmp:
            path = self._write_input(Path(tmp), data, filename)
            self._run([self.dcraw_bin, "-w", "-T", str(path)])
            # dcraw_emu appends .tiff to the input name
            output = path.with_name(path.name + ".tiff")
            if not output.exists():
                raise DecodeError(f"{self.dcraw_bin} did not produce a TIFF for {filename}")
            return output.read_bytes()

    @staticmethod
    def _write_input(tmp: Path, data: bytes, filename: str) -> Path:
        path = tmp / (Path(filename).name or "input.raw")
        path.write_bytes(data)
        return path

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        tool = args[0]
        logger.debug("Running %s", " ".join(args))
        try:
            proc = subprocess.run(args, capture_output=True, text=True, timeout=self.timeout, check=False)
        except FileNotFoundError as exc:
            raise DecodeError(f"{tool} is not installed or not on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise DecodeError(f"{tool} timed out after {self.timeout:.0f}s") from exc
        if proc.stderr and proc.stderr.strip():
            logger.warning("%s stderr: %s", tool, proc.stderr.strip())
        if proc.returncode != 0:
            raise DecodeError(f"{tool} failed with exit code {proc.returncode}: {proc.stderr.strip()}")
        return proc
