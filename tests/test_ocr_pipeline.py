"""
Тесты пайплайна распознавания скана.

Tesseract не вызывается: функции OCR и OSD подменяются через monkeypatch,
проверяется валидация загрузки, подготовка изображения и связка с разбором.
"""

import io

import pytesseract
import pytest
from PIL import Image

from invites.config import settings
from invites.services import image_processor, ocr_processor
from invites.services.image_processor import ImageLoadError
from invites.services.ocr_processor import (
    EmptyFileError,
    FileTooLargeError,
    OCRError,
    UnsupportedFileTypeError,
)
from invites.services.passport_parser import PassportNumberNotFoundError

PASSPORT_TEXT = "Surname\nSMITH\nGiven Name\nJOHN\nDate of Birth: 5/3/1990\nR9909573\n"


def _png_bytes(size=(60, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, "white").save(buffer, format="PNG")
    return buffer.getvalue()


# ============================================================================
# Валидация загрузки
# ============================================================================


@pytest.mark.parametrize("filename", ["scan.jpg", "SCAN.JPEG", "scan.png", "scan.pdf"])
def test_supported_extensions(filename):
    ocr_processor.validate_upload(filename, b"data")


def test_unsupported_extension():
    with pytest.raises(UnsupportedFileTypeError, match=".jpg, .jpeg, .png, .pdf"):
        ocr_processor.validate_upload("scan.gif", b"data")


def test_empty_file():
    with pytest.raises(EmptyFileError):
        ocr_processor.validate_upload("scan.png", b"")


def test_file_too_large(monkeypatch):
    monkeypatch.setattr(settings, "max_file_size_mb", 1)

    with pytest.raises(FileTooLargeError):
        ocr_processor.validate_upload("scan.png", b"x" * (1024 * 1024 + 1))


# ============================================================================
# Подготовка изображения
# ============================================================================


def test_load_image_png():
    img = image_processor.load_image(_png_bytes(), "scan.png")

    assert img.mode == "RGB"
    assert img.size == (60, 40)


def test_load_image_rejects_garbage():
    with pytest.raises(ImageLoadError):
        image_processor.load_image(b"definitely not an image", "scan.jpg")


def test_apply_rotation_swaps_sides():
    img = Image.new("RGB", (60, 40), "white")

    assert image_processor.apply_rotation(img, 0) is img
    assert image_processor.apply_rotation(img, 90).size == (40, 60)
    assert image_processor.apply_rotation(img, 180).size == (60, 40)
    assert image_processor.apply_rotation(img, 270).size == (40, 60)


def test_apply_deskew_below_threshold_is_noop():
    img = Image.new("RGB", (60, 40), "white")

    assert image_processor.apply_deskew(img, settings.skew_threshold / 2) is img


def test_orientation_defaults_to_zero_when_osd_fails(monkeypatch):
    def broken_osd(*args, **kwargs):
        raise pytesseract.TesseractError(1, "Too few characters")

    monkeypatch.setattr(image_processor.pytesseract, "image_to_osd", broken_osd)

    orientation = image_processor.detect_orientation(Image.new("RGB", (60, 40)))

    assert orientation.rotate == 0
    assert orientation.needs_rotation is False


def test_orientation_from_osd(monkeypatch):
    monkeypatch.setattr(
        image_processor.pytesseract,
        "image_to_osd",
        lambda *args, **kwargs: {"rotate": 90, "orientation_conf": 7.5},
    )

    orientation = image_processor.detect_orientation(Image.new("RGB", (60, 40)))

    assert orientation.rotate == 90
    assert orientation.needs_rotation is True


# ============================================================================
# Пайплайн целиком
# ============================================================================


def test_extract_text_wraps_tesseract_errors(monkeypatch):
    def broken_ocr(*args, **kwargs):
        raise pytesseract.TesseractError(1, "boom")

    monkeypatch.setattr(ocr_processor.pytesseract, "image_to_string", broken_ocr)

    with pytest.raises(OCRError, match="Failed to perform OCR"):
        ocr_processor.extract_text(Image.new("RGB", (60, 40)))


def test_extract_passport_data(monkeypatch):
    calls = {}

    def fake_ocr(image, lang, config):
        calls["lang"] = lang
        calls["config"] = config
        return PASSPORT_TEXT

    monkeypatch.setattr(image_processor, "detect_skew", lambda img: image_processor.PageSkew(0.0, False))
    monkeypatch.setattr(ocr_processor.pytesseract, "image_to_string", fake_ocr)

    fields, raw_text = ocr_processor.extract_passport_data(_png_bytes(), "scan.png")

    assert raw_text == PASSPORT_TEXT
    assert fields.last_name == "SMITH"
    assert fields.first_name == "JOHN"
    assert fields.date_of_birth == "05/03/1990"
    assert fields.passport_number == "R9909573"
    assert calls["lang"] == settings.ocr_lang
    assert "--psm 3" in calls["config"]
    assert "tessedit_char_whitelist" in calls["config"]


def test_extract_passport_data_propagates_parse_errors(monkeypatch):
    monkeypatch.setattr(ocr_processor, "prepare_image", lambda data, filename: Image.new("RGB", (60, 40)))
    monkeypatch.setattr(ocr_processor, "extract_text", lambda image: "Surname\nSMITH\nGiven Name\nJOHN")

    with pytest.raises(PassportNumberNotFoundError):
        ocr_processor.extract_passport_data(_png_bytes(), "scan.png")


def test_extract_passport_data_validates_first(monkeypatch):
    def must_not_run(*args, **kwargs):
        raise AssertionError("image must not be prepared for invalid uploads")

    monkeypatch.setattr(ocr_processor, "prepare_image", must_not_run)

    with pytest.raises(UnsupportedFileTypeError):
        ocr_processor.extract_passport_data(b"GIF89a", "scan.gif")
