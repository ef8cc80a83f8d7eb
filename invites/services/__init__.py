"""
Сервисы обработки.

Модули:
    - passport_parser: разбор текста паспорта по эвристикам
    - image_processor: загрузка скана, ориентация и наклон
    - ocr_processor: распознавание текста + координация пайплайна
    - pdf_generator: рендеринг пригласительного письма
    - storage: локальное объектное хранилище
    - invitation_store: хранилище записей о письмах
"""

from invites.services.ocr_processor import extract_passport_data
from invites.services.passport_parser import (
    NameNotFoundError,
    PassportNumberNotFoundError,
    PassportParseError,
    parse_passport_text,
)
from invites.services.pdf_generator import (
    generate_invitation_filename,
    generate_invitation_pdf,
)

__all__ = [
    "extract_passport_data",
    "parse_passport_text",
    "PassportParseError",
    "NameNotFoundError",
    "PassportNumberNotFoundError",
    "generate_invitation_pdf",
    "generate_invitation_filename",
]
