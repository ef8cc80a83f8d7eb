"""
Подготовка скана паспорта к OCR.

Этапы:
    - Load: байты загрузки -> PIL.Image (JPEG/PNG через Pillow, PDF через pdf2image)
    - OSD: определение ориентации (Tesseract) и поворот
    - Deskew: определение мелкого наклона (deskew) и коррекция

Оптимизации:
    - OSD на уменьшенной grayscale копии с autocontrast
    - Deskew на копии 1200px по длинной стороне
"""

import io
import logging
from pathlib import Path

import numpy as np
import pytesseract
from deskew import determine_skew
from pdf2image import convert_from_bytes
from PIL import Image, ImageOps, UnidentifiedImageError

from invites.config import settings
from invites.schemas import PageOrientation, PageSkew

logger = logging.getLogger(__name__)


class ImageLoadError(ValueError):
    """Не удалось прочитать изображение из загруженного файла."""


def load_image(data: bytes, filename: str) -> Image.Image:
    """
    Загружает скан паспорта из байтов.

    Для PDF рендерится только первая страница — паспорт это один разворот.

    Args:
        data: содержимое файла
        filename: имя файла (определяет формат по расширению)

    Returns:
        Image.Image: изображение в RGB

    Raises:
        ImageLoadError: если файл не удалось декодировать
    """
    if Path(filename).suffix.lower() == ".pdf":
        try:
            pages = convert_from_bytes(
                data,
                dpi=settings.render_dpi,
                first_page=1,
                last_page=1,
            )
        except Exception as e:
            raise ImageLoadError(f"Не удалось отрендерить PDF: {e}") from e
        if not pages:
            raise ImageLoadError("PDF не содержит страниц")
        return pages[0].convert("RGB")

    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageLoadError(f"Не удалось прочитать изображение: {e}") from e

    # Учитываем EXIF-ориентацию фото с телефона
    img = ImageOps.exif_transpose(img)
    return img.convert("RGB")


def detect_orientation(img: Image.Image) -> PageOrientation:
    """
    Определяет ориентацию текста через Tesseract OSD (--psm 0).

    Args:
        img: исходное изображение

    Returns:
        PageOrientation: угол поворота и уверенность
    """
    work_img = img.copy()
    work_img.thumbnail((settings.osd_resize_px, settings.osd_resize_px))
    work_img = ImageOps.autocontrast(work_img.convert("L"))

    try:
        osd = pytesseract.image_to_osd(
            work_img,
            config="--psm 0",
            output_type=pytesseract.Output.DICT,
        )
        rotate = int(osd["rotate"])
        conf = float(osd["orientation_conf"])
    except Exception as e:
        # Мало текста — OSD не может определить ориентацию
        logger.debug(f"OSD не сработал: {e}")
        rotate = 0
        conf = 0.0

    return PageOrientation(rotate=rotate, confidence=conf, needs_rotation=rotate != 0)


def apply_rotation(img: Image.Image, rotation: int) -> Image.Image:
    """
    Применяет ОБРАТНЫЙ поворот для коррекции ориентации.

    OSD rotation — угол, на который ПОВЁРНУТ текст.
    Коррекция — поворот в обратную сторону (-rotation).
    """
    if rotation == 0:
        return img
    if rotation == 90:
        return img.transpose(Image.Transpose.ROTATE_270)
    if rotation == 180:
        return img.transpose(Image.Transpose.ROTATE_180)
    if rotation == 270:
        return img.transpose(Image.Transpose.ROTATE_90)
    return img.rotate(-rotation, expand=True, fillcolor="white")


def detect_skew(img: Image.Image) -> PageSkew:
    """
    Определяет угол наклона текста через deskew (проекционный профиль).

    Args:
        img: изображение после коррекции ориентации

    Returns:
        PageSkew: угол наклона
    """
    w, h = img.size
    ratio = settings.deskew_resize_px / max(w, h)
    small_img = img.resize(
        (max(1, int(w * ratio)), max(1, int(h * ratio))),
        Image.Resampling.BILINEAR,
    )
    img_array = np.array(small_img.convert("L"))

    try:
        angle = determine_skew(img_array, num_peaks=settings.deskew_num_peaks)
    except Exception:
        angle = 0.0

    angle = float(angle) if angle is not None else 0.0

    return PageSkew(angle=angle, needs_deskew=abs(angle) > settings.skew_threshold)


def apply_deskew(img: Image.Image, angle: float) -> Image.Image:
    """Поворачивает изображение на -angle, новые области заполняются белым."""
    if abs(angle) <= settings.skew_threshold:
        return img
    return img.rotate(
        -angle,
        resample=Image.Resampling.BICUBIC,
        expand=True,
        fillcolor="white",
    )


def prepare_image(data: bytes, filename: str) -> Image.Image:
    """
    Полная подготовка скана: load -> OSD -> deskew.

    Args:
        data: содержимое файла
        filename: имя файла

    Returns:
        Image.Image: изображение, готовое к OCR
    """
    img = load_image(data, filename)
    logger.info(f"   Load: {filename} {img.size[0]}x{img.size[1]}")

    if settings.osd_enabled:
        orientation = detect_orientation(img)
        if orientation.needs_rotation:
            logger.info(
                f"   OSD: поворот {orientation.rotate} "
                f"(уверенность {orientation.confidence:.1f})"
            )
            img = apply_rotation(img, orientation.rotate)

    skew = detect_skew(img)
    if skew.needs_deskew:
        logger.info(f"   Deskew: наклон {skew.angle:.1f}")
        img = apply_deskew(img, skew.angle)

    return img
