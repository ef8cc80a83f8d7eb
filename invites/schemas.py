"""
Схемы данных сервиса пригласительных писем.

Включает:
    - Pydantic модели для API (поля паспорта, запросы, ответы, записи)
    - Внутренние dataclass'ы для пайплайна обработки изображения
    - Описание сохранённого объекта в хранилище
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

# Значение для необязательных полей, которые не удалось найти
NOT_FOUND = "Not found"


# =============================================================================
# Pydantic модели для API
# =============================================================================


class PassportFields(BaseModel):
    """
    Поля, извлечённые из текста паспорта.

    Обязательные поля (имя, фамилия, номер паспорта) всегда непустые.
    Дата и место рождения — значение или NOT_FOUND.

    Attributes:
        first_name: имя (Given Name)
        last_name: фамилия (Surname)
        date_of_birth: дата рождения в формате DD/MM/YYYY или NOT_FOUND
        place_of_birth: место рождения или NOT_FOUND
        passport_number: номер паспорта
    """

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    date_of_birth: str = NOT_FOUND
    place_of_birth: str = NOT_FOUND
    passport_number: str = Field(min_length=1)


class FileInfo(BaseModel):
    """
    Информация о загруженном файле.

    Attributes:
        filename: имя файла
        size_bytes: размер файла в байтах
    """

    filename: str
    size_bytes: int


class ExtractResponse(BaseModel):
    """
    Ответ API с полями, распознанными на скане паспорта.

    Attributes:
        success: успешность операции
        data: извлечённые поля паспорта
        raw_text: сырой текст OCR (для ручной проверки)
        processing_time_ms: общее время обработки в мс
        file_info: информация о файле
    """

    success: bool
    data: PassportFields
    raw_text: str = ""
    processing_time_ms: int
    file_info: FileInfo


class InvitationRequest(BaseModel):
    """
    Данные для генерации письма (после правки пользователем).

    Attributes:
        first_name: имя
        last_name: фамилия
        date_of_birth: дата рождения (DD/MM/YYYY)
        place_of_birth: место рождения
        passport_number: номер паспорта
        image_base64: исходный скан паспорта в base64 (опционально)
    """

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    date_of_birth: str
    place_of_birth: str = Field(min_length=1)
    passport_number: str = Field(min_length=1)
    image_base64: Optional[str] = Field(
        default=None,
        description="Исходный скан паспорта в base64",
    )

    def to_fields(self) -> PassportFields:
        """Поля паспорта без вложенного изображения."""
        return PassportFields(**self.model_dump(exclude={"image_base64"}))


class InvitationRecord(BaseModel):
    """
    Запись о сгенерированном письме.

    Attributes:
        id: автоинкрементный идентификатор
        first_name, last_name, date_of_birth, place_of_birth, passport_number:
            данные приглашённого
        pdf_url: ссылка на PDF письма
        pdf_key: ключ PDF в хранилище
        image_url: ссылка на скан паспорта (если загружен)
        image_key: ключ скана в хранилище
        status: статус записи
        error_message: сообщение об ошибке (если status="failed")
        created_at: время создания
        updated_at: время последнего изменения
    """

    id: int
    first_name: str
    last_name: str
    date_of_birth: str
    place_of_birth: str
    passport_number: str
    pdf_url: str
    pdf_key: str
    image_url: Optional[str] = None
    image_key: Optional[str] = None
    status: Literal["pending", "completed", "failed"] = "pending"
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class GenerateResponse(BaseModel):
    """
    Ответ API после генерации письма.

    Attributes:
        success: успешность операции
        id: идентификатор созданной записи
        pdf_url: ссылка на PDF
        filename: имя файла письма
    """

    success: bool
    id: int
    pdf_url: str
    filename: str


class HistoryResponse(BaseModel):
    """История сгенерированных писем (новые первыми)."""

    success: bool
    letters: list[InvitationRecord] = []


class DeleteResponse(BaseModel):
    """Результат удаления записи."""

    success: bool
    id: int


# =============================================================================
# Внутренние dataclass'ы для пайплайна
# =============================================================================


@dataclass
class PageOrientation:
    """
    Результат определения ориентации скана (OSD).

    Attributes:
        rotate: угол поворота в градусах (0, 90, 180, 270)
        confidence: уверенность Tesseract (0-100)
        needs_rotation: флаг необходимости поворота (rotate != 0)
    """

    rotate: int
    confidence: float
    needs_rotation: bool


@dataclass
class PageSkew:
    """
    Результат определения наклона скана (deskew).

    Attributes:
        angle: угол наклона в градусах (отрицательный = наклон влево)
        needs_deskew: флаг необходимости коррекции
    """

    angle: float
    needs_deskew: bool


@dataclass
class StoredObject:
    """
    Объект, сохранённый в хранилище.

    Attributes:
        key: относительный ключ (например "invitations/1700000000-x.pdf")
        url: публичная ссылка на объект
        size_bytes: размер в байтах
    """

    key: str
    url: str
    size_bytes: int
