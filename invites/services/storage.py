"""
Локальное объектное хранилище.

Хранит PDF писем и сканы паспортов в папке data_dir/objects.
Объект адресуется относительным ключом ("invitations/1700000000-x.pdf"),
ссылка на него — {public_base_url}/{key}.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Optional

from invites.config import settings
from invites.schemas import StoredObject

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Ошибка записи или некорректный ключ объекта."""


def _resolve(key: str) -> Path:
    """
    Переводит ключ в путь внутри хранилища.

    Raises:
        StorageError: если ключ абсолютный или выходит за пределы хранилища
    """
    pure = PurePosixPath(key)
    if not key or pure.is_absolute() or ".." in pure.parts:
        raise StorageError(f"Некорректный ключ объекта: {key!r}")
    return settings.objects_dir.joinpath(*pure.parts)


def object_url(key: str) -> str:
    """Публичная ссылка на объект."""
    return f"{settings.public_base_url.rstrip('/')}/{key}"


def put_object(key: str, data: bytes, content_type: str) -> StoredObject:
    """
    Сохраняет объект в хранилище (перезаписывает существующий).

    Args:
        key: относительный ключ объекта
        data: содержимое
        content_type: MIME тип (только для лога)

    Returns:
        StoredObject: ключ, ссылка и размер

    Raises:
        StorageError: при некорректном ключе или ошибке записи
    """
    path = _resolve(key)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise StorageError(f"Не удалось сохранить объект {key}: {e}") from e

    logger.info(f"Сохранён объект: {key} ({content_type}, {len(data)} байт)")
    return StoredObject(key=key, url=object_url(key), size_bytes=len(data))


def get_object_path(key: str) -> Optional[Path]:
    """
    Путь к файлу объекта.

    Returns:
        Path или None если объект не найден (или ключ некорректен)
    """
    try:
        path = _resolve(key)
    except StorageError:
        return None
    return path if path.is_file() else None


def delete_object(key: str) -> bool:
    """
    Удаляет объект.

    Returns:
        bool: True если объект существовал и удалён
    """
    path = get_object_path(key)
    if path is None:
        logger.warning(f"Объект для удаления не найден: {key}")
        return False
    path.unlink()
    logger.info(f"Удалён объект: {key}")
    return True
