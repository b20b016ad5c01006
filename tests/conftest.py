import asyncio
import io

import pytest
from PIL import Image

from restoration.photo_restoration import SourceImage, TransportError


def _encode(size=(10, 10), mode="RGB", color=(120, 80, 40), fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


class ImmediateRestorer:
    """Answers every call at once with a fixed image, or fails with ``error``."""

    def __init__(self, restored: SourceImage, error: Exception = None):
        self.restored = restored
        self.error = error
        self.calls = []

    async def restore(self, image, instruction):
        self.calls.append((image, instruction))
        if self.error is not None:
            raise self.error
        return self.restored


class PendingRestorer:
    """Every call waits on a future the test resolves by hand."""

    def __init__(self):
        self.calls = []
        self.pending = []

    async def restore(self, image, instruction):
        self.calls.append((image, instruction))
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future


@pytest.fixture
def make_image():
    return _encode


@pytest.fixture
def png_bytes():
    return _encode()


@pytest.fixture
def restored_image():
    return SourceImage(data=_encode(color=(200, 190, 180)), mime_type="image/png")


@pytest.fixture
def immediate_restorer(restored_image):
    return ImmediateRestorer(restored_image)


@pytest.fixture
def failing_restorer(restored_image):
    return ImmediateRestorer(restored_image, error=TransportError("Could not reach the restoration service: boom"))


@pytest.fixture
def pending_restorer():
    return PendingRestorer()
