"""
Хранилище записей о сгенерированных письмах.

Записи лежат в JSON файле data_dir/invitations.json:
    {"next_id": 3, "invitations": [{...}, {...}]}

Особенности:
    - Автоинкрементный id
    - Повреждённый или отсутствующий файл считается пустым хранилищем
    - Доступ сериализуется через Lock (эндпоинты выполняются в threadpool)
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Optional

from invites.config import settings
from invites.schemas import InvitationRecord, PassportFields, StoredObject

logger = logging.getLogger(__name__)

_lock = threading.Lock()


def _load() -> dict[str, Any]:
    path = settings.records_file
    if not path.exists():
        return {"next_id": 1, "invitations": []}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning(f"Файл записей повреждён, начинаем с пустого: {path}")
        return {"next_id": 1, "invitations": []}
    data.setdefault("next_id", 1)
    data.setdefault("invitations", [])
    return data


def _save(data: dict[str, Any]) -> None:
    path = settings.records_file
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(".tmp")
    tmp_path.write_text(
        json.dumps(data, ensure_ascii=False, indent=2, default=str),
        encoding="utf-8",
    )
    tmp_path.replace(path)


def create_invitation(
    fields: PassportFields,
    pdf: StoredObject,
    image: Optional[StoredObject] = None,
) -> InvitationRecord:
    """
    Сохраняет запись о сгенерированном письме.

    Args:
        fields: данные приглашённого
        pdf: сохранённый PDF письма
        image: сохранённый скан паспорта (если был)

    Returns:
        InvitationRecord: созданная запись со статусом "completed"
    """
    now = datetime.now()

    with _lock:
        data = _load()
        record = InvitationRecord(
            id=data["next_id"],
            **fields.model_dump(),
            pdf_url=pdf.url,
            pdf_key=pdf.key,
            image_url=image.url if image else None,
            image_key=image.key if image else None,
            status="completed",
            created_at=now,
            updated_at=now,
        )
        data["invitations"].append(record.model_dump(mode="json"))
        data["next_id"] = record.id + 1
        _save(data)

    logger.info(
        f"Сохранена запись: id={record.id}, "
        f"всего в хранилище={len(data['invitations'])}"
    )
    return record


def list_invitations() -> list[InvitationRecord]:
    """Все записи, новые первыми."""
    with _lock:
        data = _load()
    records = [InvitationRecord(**item) for item in data["invitations"]]
    records.sort(key=lambda r: (r.created_at, r.id), reverse=True)
    return records


def get_invitation(invitation_id: int) -> Optional[InvitationRecord]:
    """
    Получает запись по id.

    Returns:
        InvitationRecord или None если запись не найдена
    """
    with _lock:
        data = _load()
    for item in data["invitations"]:
        if item.get("id") == invitation_id:
            return InvitationRecord(**item)
    return None


def delete_invitation(invitation_id: int) -> bool:
    """
    Удаляет запись по id.

    Returns:
        bool: True если запись существовала и удалена
    """
    with _lock:
        data = _load()
        remaining = [
            item for item in data["invitations"] if item.get("id") != invitation_id
        ]
        if len(remaining) == len(data["invitations"]):
            logger.warning(f"Запись не найдена: id={invitation_id}")
            return False
        data["invitations"] = remaining
        _save(data)

    logger.info(f"Удалена запись: id={invitation_id}, осталось={len(remaining)}")
    return True


def get_store_stats() -> dict:
    """
    Возвращает статистику хранилища.

    Returns:
        dict: {invitations_count, oldest, newest}
    """
    records = list_invitations()
    if not records:
        return {"invitations_count": 0, "oldest": None, "newest": None}

    return {
        "invitations_count": len(records),
        "oldest": {
            "id": records[-1].id,
            "created_at": records[-1].created_at.isoformat(),
        },
        "newest": {
            "id": records[0].id,
            "created_at": records[0].created_at.isoformat(),
        },
    }
