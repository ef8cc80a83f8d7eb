"""
Разбор текста паспорта — извлечение полей из сырого вывода OCR.

Текст после Tesseract шумный: лишняя пунктуация, разорванные строки,
нет гарантированной раскладки. Поля восстанавливаются эвристиками:

    1. Метки — значение на той же или следующей строке после метки
       ("Surname", "Given Name", "Date of Birth", "Place of Birth", "Passport")
    2. Запасные правила — если по меткам поле не найдено

Каждое правило — чистая функция (lines) -> Optional[str].
Для каждого поля правила применяются по порядку, побеждает первое
непустое значение. Уже найденное значение не перезаписывается.
"""

import logging
import re
from typing import Callable, Optional, Sequence

from invites.schemas import NOT_FOUND, PassportFields

logger = logging.getLogger(__name__)

Rule = Callable[[list[str]], Optional[str]]
LinesObserver = Callable[[list[str]], None]

# Сколько строк выводить в отладочный лог
_DEBUG_LINES = 20

# Порог правдоподобного года рождения для запасного поиска даты
BIRTH_YEAR_BEFORE = 2010

# --- Метки ---
SURNAME_LABEL = re.compile(r"surname", re.IGNORECASE)
GIVEN_NAME_LABEL = re.compile(r"given name", re.IGNORECASE)
BIRTH_DATE_LABEL = re.compile(r"date of birth|\bDOB\b", re.IGNORECASE)
ISSUE_OR_EXPIRY_LABEL = re.compile(r"date of issue|date of expiry", re.IGNORECASE)
PLACE_LABEL = re.compile(r"place of birth", re.IGNORECASE)
PASSPORT_LABEL = re.compile(r"passport", re.IGNORECASE)

# Следующая строка — тоже метка, а не значение
SURNAME_STOP = re.compile(r"surname|given", re.IGNORECASE)
GIVEN_NAME_STOP = re.compile(r"given|nationality", re.IGNORECASE)
PLACE_STOP = re.compile(r"nationality|sex|passport", re.IGNORECASE)
NAME_FALLBACK_STOP = re.compile(r"surname|given|nationality|passport", re.IGNORECASE)

# --- Значения ---
DATE_RE = re.compile(r"([0-9]{1,2})[-/\s]([0-9]{1,2})[-/\s]([0-9]{4})")
PASSPORT_INLINE_RE = re.compile(r"([A-Z][0-9]{7,9})")
# Покрывает и индийский формат P1234567
PASSPORT_STANDALONE_RE = re.compile(r"[A-Z][0-9]{7,9}")
CAPITALIZED_WORD_RE = re.compile(r"[A-Z][A-Za-z]*")

NON_NAME_CHARS = re.compile(r"[^A-Za-z\s]")
NON_PLACE_CHARS = re.compile(r"[^A-Za-z\s,]")


class PassportParseError(ValueError):
    """Не удалось извлечь обязательные поля из текста паспорта."""

    kind = "parse_error"


class NameNotFoundError(PassportParseError):
    """Не найдены имя или фамилия."""

    kind = "name_not_found"

    def __init__(self) -> None:
        super().__init__(
            "Could not extract name from passport document. "
            "Please ensure the image is clear and contains the name field."
        )


class PassportNumberNotFoundError(PassportParseError):
    """Не найден номер паспорта."""

    kind = "passport_number_not_found"

    def __init__(self) -> None:
        super().__init__(
            "Could not extract passport number from document. "
            "Please ensure the image is clear and contains the passport number."
        )


# =============================================================================
# Вспомогательные функции
# =============================================================================


def split_lines(text: str) -> list[str]:
    """Разбивает текст на непустые строки без краевых пробелов."""
    return [line.strip() for line in text.split("\n") if line.strip()]


def _next_line(lines: list[str], idx: int) -> str:
    return lines[idx + 1] if idx + 1 < len(lines) else ""


def _clean_name(value: str) -> str:
    return NON_NAME_CHARS.sub("", value).strip()


def _clean_place(value: str) -> str:
    return NON_PLACE_CHARS.sub("", value).strip()


def _format_date(match: re.Match) -> str:
    day, month, year = match.groups()
    return f"{day.zfill(2)}/{month.zfill(2)}/{year}"


def _capitalized_words(line: str) -> list[str]:
    return [w for w in line.split() if CAPITALIZED_WORD_RE.fullmatch(w)]


def _value_after_label(
    lines: list[str],
    label: re.Pattern,
    stop: re.Pattern,
    clean: Callable[[str], str],
) -> Optional[str]:
    """Значение на строке, следующей за меткой (если это не другая метка)."""
    for idx, line in enumerate(lines):
        if not label.search(line):
            continue
        following = _next_line(lines, idx)
        if not following or stop.search(following):
            continue
        value = clean(following)
        if value:
            return value
    return None


# =============================================================================
# Правила: метки
# =============================================================================


def surname_after_label(lines: list[str]) -> Optional[str]:
    """Фамилия — строка после "Surname"."""
    return _value_after_label(lines, SURNAME_LABEL, SURNAME_STOP, _clean_name)


def given_name_after_label(lines: list[str]) -> Optional[str]:
    """Имя — строка после "Given Name"."""
    return _value_after_label(lines, GIVEN_NAME_LABEL, GIVEN_NAME_STOP, _clean_name)


def place_after_label(lines: list[str]) -> Optional[str]:
    """Место рождения — строка после "Place of Birth", запятые сохраняются."""
    return _value_after_label(lines, PLACE_LABEL, PLACE_STOP, _clean_place)


def birth_date_after_label(lines: list[str]) -> Optional[str]:
    """
    Дата рождения рядом с меткой "Date of Birth" / "DOB".

    Дата ищется на строке с меткой и на следующей строке.
    Строки с "Date of Issue" / "Date of Expiry" не рассматриваются ни как
    метка, ни как продолжение — иначе вместо даты рождения попадёт дата выдачи.

    Returns:
        str: дата в формате DD/MM/YYYY или None
    """
    for idx, line in enumerate(lines):
        if not BIRTH_DATE_LABEL.search(line) or ISSUE_OR_EXPIRY_LABEL.search(line):
            continue
        following = _next_line(lines, idx)
        if ISSUE_OR_EXPIRY_LABEL.search(following):
            following = ""
        match = DATE_RE.search(f"{line} {following}")
        if match:
            return _format_date(match)
    return None


def passport_number_near_label(lines: list[str]) -> Optional[str]:
    """Номер паспорта на той же строке, что и метка "Passport"."""
    for line in lines:
        if not PASSPORT_LABEL.search(line):
            continue
        match = PASSPORT_INLINE_RE.search(line)
        if match:
            return match.group(1)
    return None


def standalone_passport_number(lines: list[str]) -> Optional[str]:
    """Строка, целиком состоящая из номера паспорта (R9909573, P1234567)."""
    for line in lines:
        if PASSPORT_STANDALONE_RE.fullmatch(line):
            return line
    return None


# =============================================================================
# Правила: запасные
# =============================================================================


def _first_capitalized_pair(lines: list[str]) -> Optional[list[str]]:
    """
    Первая строка с двумя и более словами с заглавной буквы.

    Строки-метки пропускаются. Правдоподобность слов не проверяется:
    на шумном тексте сюда может попасть мусорное слово.
    """
    for line in lines:
        if NAME_FALLBACK_STOP.search(line):
            continue
        words = _capitalized_words(line)
        if len(words) >= 2:
            return words
    return None


def fallback_last_name(lines: list[str]) -> Optional[str]:
    """Фамилия — первое слово первой подходящей пары."""
    words = _first_capitalized_pair(lines)
    return words[0] if words else None


def fallback_first_name(lines: list[str]) -> Optional[str]:
    """Имя — второе слово первой подходящей пары."""
    words = _first_capitalized_pair(lines)
    return words[1] if words else None


def fallback_birth_date(lines: list[str]) -> Optional[str]:
    """
    Дата с правдоподобным годом рождения (год < 2010).

    На строке смотрится только первая дата: если её год не подходит,
    строка пропускается целиком. Строки с "Date of Issue" / "Date of Expiry"
    не рассматриваются.
    """
    for line in lines:
        if ISSUE_OR_EXPIRY_LABEL.search(line):
            continue
        match = DATE_RE.search(line)
        if match and int(match.group(3)) < BIRTH_YEAR_BEFORE:
            return _format_date(match)
    return None


# =============================================================================
# Порядок правил по полям
# =============================================================================

FIELD_RULES: dict[str, tuple[Rule, ...]] = {
    "last_name": (surname_after_label, fallback_last_name),
    "first_name": (given_name_after_label, fallback_first_name),
    "date_of_birth": (birth_date_after_label, fallback_birth_date),
    "place_of_birth": (place_after_label,),
    "passport_number": (passport_number_near_label, standalone_passport_number),
}


def apply_rules(rules: Sequence[Rule], lines: list[str]) -> str:
    """
    Применяет правила по порядку.

    Returns:
        str: первое непустое значение или "" если ни одно правило не сработало
    """
    for rule in rules:
        value = rule(lines)
        if value:
            return value.strip()
    return ""


def parse_passport_text(
    text: str,
    observer: Optional[LinesObserver] = None,
) -> PassportFields:
    """
    Извлекает поля паспорта из сырого текста OCR.

    Args:
        text: сырой многострочный текст (может быть пустым и шумным)
        observer: опциональный колбэк, получает список строк до разбора

    Returns:
        PassportFields: все обязательные поля заполнены

    Raises:
        NameNotFoundError: не найдены имя или фамилия
        PassportNumberNotFoundError: не найден номер паспорта
    """
    lines = split_lines(text)

    if observer is not None:
        observer(list(lines))
    logger.debug(f"Строки для разбора ({len(lines)}): {lines[:_DEBUG_LINES]}")

    found = {field: apply_rules(rules, lines) for field, rules in FIELD_RULES.items()}

    if not found["first_name"] or not found["last_name"]:
        raise NameNotFoundError()
    if not found["passport_number"]:
        raise PassportNumberNotFoundError()

    return PassportFields(
        first_name=found["first_name"],
        last_name=found["last_name"],
        date_of_birth=found["date_of_birth"] or NOT_FOUND,
        place_of_birth=found["place_of_birth"] or NOT_FOUND,
        passport_number=found["passport_number"],
    )
