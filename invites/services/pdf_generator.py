"""
Генерация пригласительного письма в PDF.

Фиксированный шаблон на одной странице A4: шапка компании, номер и дата
письма, адресат, данные приглашённого, текст гарантии и место для подписи.
Рендеринг через reportlab canvas, без движка вёрстки.
"""

import io
import logging
import re
from datetime import date
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from invites.config import settings
from invites.schemas import PassportFields

logger = logging.getLogger(__name__)

MARGIN = 40
LINE_HEIGHT = 18
FONT_NAME = "Helvetica"

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


class PDFGenerationError(RuntimeError):
    """Ошибка рендеринга PDF письма."""


def wrap_text(text: str, font_size: int, max_width: float) -> list[str]:
    """Разбивает строку по словам так, чтобы каждая часть влезала в max_width."""
    return simpleSplit(text, FONT_NAME, font_size, max_width) or [""]


class _LetterWriter:
    """Пишет строки сверху вниз с фиксированным шагом, длинные переносит."""

    def __init__(self, pdf: canvas.Canvas, width: float, height: float) -> None:
        self.pdf = pdf
        self.max_width = width - 2 * MARGIN
        self.y = height - MARGIN

    def line(self, text: str, font_size: int = 11) -> None:
        self.pdf.setFont(FONT_NAME, font_size)
        self.pdf.setFillColorRGB(0, 0, 0)
        for part in wrap_text(text, font_size, self.max_width):
            self.pdf.drawString(MARGIN, self.y, part)
            self.y -= LINE_HEIGHT

    def skip(self, points: float) -> None:
        self.y -= points


def format_letter_date(day: date) -> str:
    """Дата письма без ведущих нулей: 5/3/2025."""
    return f"{day.day}/{day.month}/{day.year}"


def generate_invitation_pdf(
    fields: PassportFields,
    issued_on: Optional[date] = None,
) -> bytes:
    """
    Рендерит пригласительное письмо.

    Args:
        fields: данные приглашённого
        issued_on: дата письма (по умолчанию сегодня)

    Returns:
        bytes: содержимое PDF (начинается с %PDF)

    Raises:
        PDFGenerationError: при ошибке рендеринга
    """
    issued_on = issued_on or date.today()
    buffer = io.BytesIO()

    try:
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle(f"Invitation letter {fields.first_name} {fields.last_name}")
        width, height = A4
        writer = _LetterWriter(pdf, width, height)

        # Шапка компании
        writer.line(settings.company_name, 14)
        writer.line(settings.company_owner, 10)
        writer.line(f"Address: {settings.company_address}", 10)
        writer.line(f"Registration number: {settings.company_registration}", 10)
        writer.line(
            f"Phone: {settings.company_phone} Email: {settings.company_email}", 10
        )
        writer.line(f"Website: {settings.company_website}", 10)
        writer.skip(20)

        writer.line(f"Letter No. {settings.letter_number}")
        writer.line(f"Date: {format_letter_date(issued_on)}")
        writer.skip(20)

        writer.line(f"To: {settings.letter_recipient}")
        writer.skip(20)

        writer.line("INVITED PERSON INFORMATION")
        writer.skip(15)

        writer.line(f"Name: {fields.first_name} {fields.last_name}")
        writer.line(f"Date of Birth: {fields.date_of_birth}")
        writer.line(f"Place of Birth: {fields.place_of_birth}")
        writer.line(f"Passport Number: {fields.passport_number}")
        writer.skip(20)

        writer.line(
            "I guarantee that the invited person will not violate Armenian migration rules",
            10,
        )
        writer.line("and will leave Armenia within the specified timeframe.", 10)
        writer.skip(20)

        writer.line("_________________________")
        writer.line("Signature", 10)

        pdf.showPage()
        pdf.save()
    except Exception as e:
        logger.exception(f"Ошибка генерации PDF: {e}")
        raise PDFGenerationError(f"Failed to generate PDF: {e}") from e

    pdf_bytes = buffer.getvalue()
    logger.info(f"PDF сгенерирован: {len(pdf_bytes)} байт")
    return pdf_bytes


def generate_invitation_filename(first_name: str, last_name: str) -> str:
    """
    Имя файла письма: invitation-{фамилия}-{имя}.pdf.

    Из имён удаляется всё, кроме латиницы и цифр, результат в нижнем регистре.
    """
    first = _NON_ALNUM.sub("", first_name).lower()
    last = _NON_ALNUM.sub("", last_name).lower()
    return f"invitation-{last}-{first}.pdf"
