"""Shared pytest fixtures for Mockup Studio tests."""

from __future__ import annotations

import base64
import io
from unittest.mock import AsyncMock

import pytest
from PIL import Image as PILImage

from config import Settings
from workflow import Workflow

FAKE_JPEG_B64 = base64.b64encode(b"fake-jpeg-bytes").decode("utf-8")
FAKE_PNG_B64 = base64.b64encode(b"fake-png-bytes").decode("utf-8")


def make_image_bytes(fmt: str = "PNG") -> bytes:
    """Render a tiny real image in the given Pillow format."""
    buf = io.BytesIO()
    mode = "RGBA" if fmt == "PNG" else "RGB"
    PILImage.new(mode, (8, 8), (255, 51, 68)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def settings() -> Settings:
    """Settings with no limits and no API key."""
    return Settings(api_key=None, secret_key="test-secret")


@pytest.fixture
def image_service() -> AsyncMock:
    """Stand-in for the Gemini service that succeeds by default."""
    service = AsyncMock()
    service.generate_product_image.return_value = FAKE_JPEG_B64
    service.apply_logo_to_image.return_value = FAKE_PNG_B64
    return service


@pytest.fixture
def workflow(image_service: AsyncMock, settings: Settings) -> Workflow:
    return Workflow(service=image_service, settings=settings)
