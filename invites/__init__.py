"""
Invites — сервис пригласительных писем по скану паспорта.

Объединяет в одном приложении:
    - FastAPI эндпоинты (загрузка скана, генерация письма, история)
    - Пайплайн распознавания: load -> OSD -> deskew -> OCR -> разбор полей
    - PDF письма по фиксированному шаблону
    - Локальное хранилище файлов и JSON хранилище записей
"""

from invites.config import settings
from invites.schemas import InvitationRecord, InvitationRequest, PassportFields

__all__ = [
    "settings",
    "PassportFields",
    "InvitationRequest",
    "InvitationRecord",
]
