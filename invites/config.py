"""
Конфигурация сервиса пригласительных писем.

Все значения читаются из .env файла (или переменных окружения).
Обязателен только api_token, остальное имеет рабочие дефолты.

Единый префикс: INVITES_
Документация по параметрам: .env.example
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Настройки сервиса.

    Читает переменные с префиксом INVITES_ из .env файла.
    Объединяет все параметры: API лимиты, OCR, хранилище, шаблон письма.
    """

    model_config = SettingsConfigDict(
        env_prefix="INVITES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Сервер ---
    port: int = 8000

    # --- Авторизация ---
    # Статический API-токен для доступа к сервису
    # Передаётся в заголовке: Authorization: Bearer <token>
    api_token: str

    # --- API: лимиты ---
    max_file_size_mb: int = 10

    # --- Хранилище ---
    # Корень для объектов (PDF, сканы) и файла с записями
    data_dir: Path = Path("data")
    # Префикс ссылок на сохранённые объекты
    public_base_url: str = "/files"

    # --- PDF паспорта -> изображение ---
    render_dpi: int = 300

    # --- OSD: определение ориентации ---
    osd_enabled: bool = True
    osd_resize_px: int = 2048

    # --- Deskew: коррекция наклона ---
    deskew_resize_px: int = 1200
    deskew_num_peaks: int = 20
    skew_threshold: float = 0.5

    # --- OCR: Tesseract ---
    ocr_lang: str = "eng"
    ocr_oem: int = 3
    ocr_psm: int = 3
    ocr_char_whitelist: str = (
        "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789/-,."
    )

    # --- Шаблон письма ---
    letter_number: str = "00190"
    letter_recipient: str = "Armenian Visa Services"
    company_name: str = "DOMOVOI TRAVEL"
    company_owner: str = "Benson Francis Paul Sole proprietorship"
    company_address: str = "Ave Baghramyan 70, 0033 Yerevan"
    company_registration: str = "264.1460655"
    company_phone: str = "+374 44761767"
    company_email: str = "contact@domovoi-travel.com"
    company_website: str = "www.domovoi-travel.com"

    @property
    def objects_dir(self) -> Path:
        """Папка объектного хранилища."""
        return self.data_dir / "objects"

    @property
    def records_file(self) -> Path:
        """JSON файл с записями о письмах."""
        return self.data_dir / "invitations.json"


# Глобальный экземпляр настроек
settings = Settings()
