import base64

import pytest

from restoration.photo_restoration import SourceImage, ValidationError


def test_data_uri_prefix_is_stripped(png_bytes):
    uri = "data:image/png;base64," + base64.b64encode(png_bytes).decode()

    image = SourceImage.from_base64(uri, mime_type="image/jpeg")

    assert image.data == png_bytes
    assert image.mime_type == "image/png"
    assert image.to_data_uri() == uri


def test_raw_base64_uses_declared_type(png_bytes):
    image = SourceImage.from_base64(base64.b64encode(png_bytes).decode(), mime_type="image/png")

    assert image == SourceImage(data=png_bytes, mime_type="image/png")
    assert image.is_image


def test_non_image_data_uri_keeps_its_type():
    image = SourceImage.from_base64("data:text/plain;base64," + base64.b64encode(b"hi").decode())

    assert image.mime_type == "text/plain"
    assert not image.is_image


def test_invalid_base64_is_rejected():
    with pytest.raises(ValidationError, match="base64"):
        SourceImage.from_base64("not base64!!", mime_type="image/png")


def test_missing_media_type_is_rejected(png_bytes):
    with pytest.raises(ValidationError, match="media type"):
        SourceImage.from_base64(base64.b64encode(png_bytes).decode())
