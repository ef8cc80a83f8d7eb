"""
Процессор OCR — распознавание скана паспорта.

Содержит:
    - Валидацию загрузки (расширение, размер)
    - Распознавание текста через Tesseract
    - Главную функцию extract_passport_data, координирующую пайплайн:
      validate -> load/OSD/deskew -> OCR -> разбор полей
"""

import logging
import time
from pathlib import Path

import pytesseract
from PIL import Image

from invites.config import settings
from invites.schemas import PassportFields
from invites.services.image_processor import prepare_image
from invites.services.passport_parser import parse_passport_text

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".pdf")


class UploadError(ValueError):
    """Загруженный файл не прошёл валидацию."""

    kind = "invalid_upload"


class UnsupportedFileTypeError(UploadError):
    kind = "invalid_file_type"


class FileTooLargeError(UploadError):
    kind = "file_too_large"


class EmptyFileError(UploadError):
    kind = "empty_file"


class OCRError(RuntimeError):
    """Ошибка Tesseract при распознавании."""


def validate_upload(filename: str, data: bytes) -> None:
    """
    Проверяет загруженный файл.

    Проверяет:
        - Расширение (.jpg, .jpeg, .png, .pdf)
        - Непустое содержимое
        - Размер (не больше max_file_size_mb)

    Args:
        filename: исходное имя файла
        data: содержимое файла

    Raises:
        UnsupportedFileTypeError: неподдерживаемое расширение
        EmptyFileError: пустой файл
        FileTooLargeError: файл больше лимита
    """
    ext = Path(filename).suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileTypeError(
            f"Invalid file type. Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    if not data:
        raise EmptyFileError("Uploaded file is empty")

    max_size = settings.max_file_size_mb * 1024 * 1024
    if len(data) > max_size:
        raise FileTooLargeError(
            f"File too large: {len(data)} bytes, "
            f"maximum: {settings.max_file_size_mb} MB"
        )


def _tesseract_config() -> str:
    config = f"--oem {settings.ocr_oem} --psm {settings.ocr_psm}"
    if settings.ocr_char_whitelist:
        config += f" -c tessedit_char_whitelist={settings.ocr_char_whitelist}"
    return config


def extract_text(image: Image.Image) -> str:
    """
    Распознаёт текст на изображении через Tesseract.

    Args:
        image: подготовленное изображение

    Returns:
        str: сырой текст OCR

    Raises:
        OCRError: при ошибке Tesseract
    """
    try:
        return pytesseract.image_to_string(
            image,
            lang=settings.ocr_lang,
            config=_tesseract_config(),
        )
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
        raise OCRError(f"Failed to perform OCR on image: {e}") from e


def extract_passport_data(data: bytes, filename: str) -> tuple[PassportFields, str]:
    """
    Извлекает поля паспорта из загруженного файла.

    Координирует пайплайн:
        1. Валидация загрузки
        2. Подготовка изображения (load -> OSD -> deskew)
        3. OCR: распознавание текста
        4. Разбор полей паспорта

    Args:
        data: содержимое файла
        filename: имя файла

    Returns:
        tuple: (PassportFields, сырой текст OCR)

    Raises:
        UploadError: файл не прошёл валидацию
        ImageLoadError: файл не удалось декодировать
        OCRError: ошибка Tesseract
        PassportParseError: не найдены обязательные поля
    """
    total_start = time.perf_counter()

    logger.info("=" * 60)
    logger.info("НОВЫЙ ЗАПРОС OCR ПАСПОРТА")
    logger.info(f"   Файл: {filename} ({len(data) / (1024 * 1024):.2f} MB)")
    logger.info("=" * 60)

    validate_upload(filename, data)

    prep_start = time.perf_counter()
    image = prepare_image(data, filename)
    prep_duration = int((time.perf_counter() - prep_start) * 1000)

    ocr_start = time.perf_counter()
    text = extract_text(image)
    ocr_duration = int((time.perf_counter() - ocr_start) * 1000)
    logger.info(f"   OCR: {ocr_duration}ms, символов: {len(text)}")

    fields = parse_passport_text(text)

    total_duration = int((time.perf_counter() - total_start) * 1000)
    logger.info("-" * 60)
    logger.info(f"   Паспорт: {fields.passport_number}")
    logger.info(f"   Подготовка: {prep_duration}ms")
    logger.info(f"   OCR:        {ocr_duration}ms")
    logger.info(f"   ИТОГО:      {total_duration}ms")
    logger.info("=" * 60)

    return fields, text
