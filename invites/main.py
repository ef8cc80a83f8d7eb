"""
Сервис пригласительных писем — единое FastAPI приложение.

Пайплайн: скан паспорта -> OCR -> правка полей пользователем ->
PDF письма -> сохранение записи со ссылками на PDF и скан.

Эндпоинты:
    POST   /passport/extract — загрузка скана и извлечение полей паспорта
    POST   /invitations — генерация письма и сохранение записи
    GET    /invitations — история писем
    GET    /invitations/stats — статистика хранилища записей
    DELETE /invitations/{invitation_id} — удаление записи и её файлов
    GET    /files/{key} — выдача сохранённого объекта
    GET    /health — проверка работоспособности (Tesseract + конфиг)

Запуск:
    uvicorn invites.main:app --host 0.0.0.0 --port 8000
"""

import base64
import binascii
import json
import logging
import secrets
import time
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from invites.config import settings
from invites.schemas import (
    DeleteResponse,
    ExtractResponse,
    FileInfo,
    GenerateResponse,
    HistoryResponse,
    InvitationRequest,
    StoredObject,
)
from invites.services.image_processor import ImageLoadError
from invites.services.invitation_store import (
    create_invitation,
    delete_invitation,
    get_invitation,
    get_store_stats,
    list_invitations,
)
from invites.services.ocr_processor import (
    FileTooLargeError,
    OCRError,
    UploadError,
    extract_passport_data,
)
from invites.services.passport_parser import PassportParseError
from invites.services.pdf_generator import (
    generate_invitation_filename,
    generate_invitation_pdf,
)
from invites.services.storage import (
    StorageError,
    delete_object,
    get_object_path,
    put_object,
)

# Настройка логгера
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [Invites] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


class UnicodeJSONResponse(JSONResponse):
    """JSON ответ без \\uXXXX экранирования."""

    def render(self, content) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


# FastAPI приложение
app = FastAPI(
    title="Invitation Letter Service",
    description="Извлечение данных паспорта (Tesseract OCR) и генерация пригласительных писем",
    version="1.0.0",
    default_response_class=UnicodeJSONResponse,
)

_bearer = HTTPBearer(auto_error=False)


def require_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> None:
    """
    Проверяет статический API-токен из заголовка Authorization: Bearer <token>.

    Raises:
        HTTPException: 401 если токен отсутствует или не совпадает
    """
    if credentials is None or not secrets.compare_digest(
        credentials.credentials, settings.api_token
    ):
        raise HTTPException(
            status_code=401,
            detail={
                "error": "unauthorized",
                "message": "Отсутствует или неверный API-токен",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )


@app.get("/health")
async def health_check() -> dict:
    """
    Проверка работоспособности сервиса.

    Проверяет доступность Tesseract и возвращает текущую конфигурацию.

    Returns:
        dict: статус сервиса и информация о системе
    """
    tesseract_ok = False
    tesseract_version = "unknown"
    try:
        import pytesseract
        tesseract_version = str(pytesseract.get_tesseract_version())
        tesseract_ok = True
    except Exception as e:
        tesseract_version = f"error: {e}"

    return {
        "status": "ok" if tesseract_ok else "degraded",
        "service": "invites",
        "version": "1.0.0",
        "tesseract": {
            "available": tesseract_ok,
            "version": tesseract_version,
        },
        "config": {
            "max_file_size_mb": settings.max_file_size_mb,
            "ocr_lang": settings.ocr_lang,
            "ocr_oem": settings.ocr_oem,
            "ocr_psm": settings.ocr_psm,
            "osd_enabled": settings.osd_enabled,
            "skew_threshold": settings.skew_threshold,
        },
    }


@app.post(
    "/passport/extract",
    response_model=ExtractResponse,
    dependencies=[Depends(require_token)],
)
async def extract_passport(
    file: UploadFile = File(..., description="Скан паспорта (JPEG, PNG или PDF)"),
) -> ExtractResponse:
    """
    Извлекает поля паспорта из загруженного скана.

    Пайплайн: validate -> load/OSD/deskew -> OCR -> разбор полей.
    Ошибка разбора не повторяется автоматически — пользователю
    предлагается загрузить более чёткое изображение.

    Args:
        file: скан паспорта (multipart/form-data)

    Returns:
        ExtractResponse: извлечённые поля и сырой текст

    Raises:
        HTTPException: 400/413 при ошибках файла, 422 если поля не найдены,
            500 при ошибках OCR
    """
    start_time = time.time()
    filename = file.filename or "unknown.jpg"

    file_bytes = await file.read()
    logger.info(f"Получен файл: {filename}, {len(file_bytes)} байт")

    try:
        fields, raw_text = await run_in_threadpool(
            extract_passport_data, file_bytes, filename
        )
    except FileTooLargeError as e:
        raise HTTPException(
            status_code=413,
            detail={"error": e.kind, "message": str(e)},
        )
    except UploadError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": e.kind, "message": str(e)},
        )
    except ImageLoadError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_image", "message": str(e)},
        )
    except PassportParseError as e:
        logger.warning(f"Поля паспорта не найдены ({e.kind}): {filename}")
        raise HTTPException(
            status_code=422,
            detail={"error": e.kind, "message": str(e)},
        )
    except OCRError as e:
        logger.error(f"Ошибка OCR: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "ocr_error", "message": str(e)},
        )
    except Exception as e:
        logger.exception(f"Ошибка обработки паспорта: {e}")
        raise HTTPException(
            status_code=500,
            detail={
                "error": "processing_error",
                "message": f"Failed to extract passport data: {e}",
            },
        )

    processing_time_ms = int((time.time() - start_time) * 1000)
    logger.info(f"Паспорт распознан за {processing_time_ms}ms")

    return ExtractResponse(
        success=True,
        data=fields,
        raw_text=raw_text,
        processing_time_ms=processing_time_ms,
        file_info=FileInfo(filename=filename, size_bytes=len(file_bytes)),
    )


@app.post(
    "/invitations",
    response_model=GenerateResponse,
    dependencies=[Depends(require_token)],
)
async def generate_letter(request: InvitationRequest) -> GenerateResponse:
    """
    Генерирует письмо и сохраняет запись.

    Шаги:
        1. Рендеринг PDF по шаблону
        2. Сохранение PDF в хранилище
        3. Сохранение скана паспорта (если передан; ошибка не фатальна)
        4. Сохранение записи

    Args:
        request: исправленные пользователем поля паспорта

    Returns:
        GenerateResponse: id записи, ссылка на PDF, имя файла
    """
    image_bytes = _decode_image(request.image_base64)
    fields = request.to_fields()

    try:
        pdf_bytes = await run_in_threadpool(generate_invitation_pdf, fields)
        filename = generate_invitation_filename(fields.first_name, fields.last_name)
        # Уникальный суффикс: ключи не совпадают даже в одну миллисекунду
        object_id = f"{int(time.time() * 1000)}-{uuid.uuid4().hex}"
        pdf = await run_in_threadpool(
            put_object,
            f"invitations/{object_id}-{filename}",
            pdf_bytes,
            "application/pdf",
        )
    except Exception as e:
        logger.exception(f"Ошибка генерации письма: {e}")
        raise HTTPException(
            status_code=500,
            detail={
                "error": "generation_error",
                "message": f"Failed to generate invitation letter: {e}",
            },
        )

    image: Optional[StoredObject] = None
    if image_bytes:
        try:
            image = await run_in_threadpool(
                put_object,
                f"passports/passport-{object_id}.jpg",
                image_bytes,
                "image/jpeg",
            )
        except StorageError as e:
            logger.warning(f"Не удалось сохранить скан паспорта: {e}")

    record = await run_in_threadpool(create_invitation, fields, pdf, image)

    return GenerateResponse(
        success=True,
        id=record.id,
        pdf_url=pdf.url,
        filename=filename,
    )


@app.get(
    "/invitations",
    response_model=HistoryResponse,
    dependencies=[Depends(require_token)],
)
async def get_history() -> HistoryResponse:
    """История сгенерированных писем (новые первыми)."""
    letters = await run_in_threadpool(list_invitations)
    return HistoryResponse(success=True, letters=letters)


@app.get("/invitations/stats", dependencies=[Depends(require_token)])
async def get_invitations_stats() -> dict:
    """
    Статистика хранилища записей.

    Returns:
        dict: количество записей, самая старая/новая
    """
    return await run_in_threadpool(get_store_stats)


@app.delete(
    "/invitations/{invitation_id}",
    response_model=DeleteResponse,
    dependencies=[Depends(require_token)],
)
async def delete_letter(invitation_id: int) -> DeleteResponse:
    """
    Удаляет запись и связанные с ней PDF и скан.

    Raises:
        HTTPException: 404 если запись не найдена
    """
    record = await run_in_threadpool(get_invitation, invitation_id)
    if record is None or not await run_in_threadpool(delete_invitation, invitation_id):
        raise HTTPException(
            status_code=404,
            detail=f"Письмо с id={invitation_id} не найдено.",
        )

    await run_in_threadpool(delete_object, record.pdf_key)
    if record.image_key:
        await run_in_threadpool(delete_object, record.image_key)

    return DeleteResponse(success=True, id=invitation_id)


@app.get("/files/{key:path}", dependencies=[Depends(require_token)])
async def get_file(key: str) -> FileResponse:
    """
    Выдаёт сохранённый объект (PDF письма или скан).

    Raises:
        HTTPException: 404 если объект не найден
    """
    path = await run_in_threadpool(get_object_path, key)
    if path is None:
        raise HTTPException(status_code=404, detail=f"Объект {key} не найден")
    return FileResponse(path)


def _decode_image(image_base64: Optional[str]) -> Optional[bytes]:
    """
    Декодирует скан паспорта из base64.

    Raises:
        HTTPException: 400 если строка не является корректным base64
    """
    if not image_base64:
        return None
    try:
        return base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "invalid_image",
                "message": f"Некорректный base64 скана: {e}",
            },
        )


if __name__ == "__main__":
    import uvicorn

    port = settings.port
    logger.info(f"Запуск сервиса писем на порту {port}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
