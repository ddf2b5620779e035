import asyncio
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so 'quiklens' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ.setdefault("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage")
os.environ.setdefault("QUIKLENS_DEBOUNCE_MS", "20")

from quiklens.domain.entities.edit_params import EditParams, EffectKind  # noqa: E402
from quiklens.domain.entities.geometry import Dimensions  # noqa: E402
from quiklens.domain.entities.images import ProcessedImage, RawPreview  # noqa: E402
from quiklens.domain.errors import DecodeError, ServiceError  # noqa: E402


class FakeGateway:
    """In-memory stand-in for the processing and RAW preview services.

    Returned dimensions follow the service contract: the crop size when a crop is sent,
    else the resize target, else ``source_dims``. ``delays`` holds per-call sleeps so
    tests can make responses arrive out of order.
    """

    def __init__(self, source_dims=Dimensions(400, 200)):
        self.source_dims = source_dims
        self.calls: list[tuple[EffectKind, EditParams]] = []
        self.delays: list[float] = []
        self.fail_with: str | None = None
        self.preview: RawPreview | None = None
        self.preview_calls: list[str] = []

    async def process(self, image, filename, effect, params):
        index = len(self.calls)
        self.calls.append((effect, params))
        if index < len(self.delays) and self.delays[index]:
            await asyncio.sleep(self.delays[index])
        if self.fail_with:
            raise ServiceError(self.fail_with, status_code=500)
        if params.committed_crop is not None:
            dims = Dimensions(params.committed_crop.width, params.committed_crop.height)
        elif params.output_size is not None:
            dims = params.output_size
        else:
            dims = self.source_dims
        return ProcessedImage(data=f"result-{index}".encode(), dimensions=dims)

    async def generate_preview(self, raw, filename):
        self.preview_calls.append(filename)
        if self.preview is None:
            raise DecodeError("dcraw_emu failed with exit code 1")
        return self.preview


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(scope="session")
def client() -> TestClient:
    # lazy import after env configured
    from quiklens.main import create_app

    app = create_app()
    # the context keeps one event loop alive so debounced previews can fire
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def auth_header() -> dict[str, str]:
    # any token is accepted in disabled mode
    return {"Authorization": "Bearer test-token"}
