"""
Тесты HTTP API сервиса писем.

OCR подменяется через monkeypatch — проверяется маппинг ошибок
в HTTP статусы, генерация письма, история и удаление.
"""

import asyncio
import base64
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from invites import main
from invites.schemas import PassportFields
from invites.services.ocr_processor import OCRError, UnsupportedFileTypeError
from invites.services.passport_parser import (
    NameNotFoundError,
    PassportNumberNotFoundError,
)

LETTER = {
    "first_name": "Mohammed",
    "last_name": "Asif",
    "date_of_birth": "21/08/1995",
    "place_of_birth": "Bidasar, Rajasthan",
    "passport_number": "R9909573",
}


@pytest.fixture
def client() -> TestClient:
    return TestClient(main.app)


def _upload(client, headers, filename="scan.png", content=b"\x89PNG fake"):
    return client.post(
        "/passport/extract",
        files={"file": (filename, content, "image/png")},
        headers=headers,
    )


def _fake_extract(result=None, error=None):
    def fake(data, filename):
        if error is not None:
            raise error
        return result, "raw ocr text"

    return fake


# ============================================================================
# Авторизация и health
# ============================================================================


def test_health_is_public(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["service"] == "invites"


def test_missing_token_is_rejected(client):
    assert client.get("/invitations").status_code == 401


def test_wrong_token_is_rejected(client):
    response = client.get("/invitations", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "unauthorized"


# ============================================================================
# Извлечение полей паспорта
# ============================================================================


def test_extract_success(client, auth_headers, monkeypatch):
    fields = PassportFields(first_name="JOHN", last_name="SMITH", passport_number="R9909573")
    monkeypatch.setattr(main, "extract_passport_data", _fake_extract(result=fields))

    response = _upload(client, auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["last_name"] == "SMITH"
    assert body["data"]["date_of_birth"] == "Not found"
    assert body["raw_text"] == "raw ocr text"
    assert body["file_info"] == {"filename": "scan.png", "size_bytes": 9}


def test_extract_unsupported_type(client, auth_headers):
    response = _upload(client, auth_headers, filename="scan.gif", content=b"GIF89a")

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "invalid_file_type"


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (NameNotFoundError(), "name_not_found"),
        (PassportNumberNotFoundError(), "passport_number_not_found"),
    ],
)
def test_extract_parse_errors(client, auth_headers, monkeypatch, error, kind):
    monkeypatch.setattr(main, "extract_passport_data", _fake_extract(error=error))

    response = _upload(client, auth_headers)

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error"] == kind
    assert "Please ensure the image is clear" in detail["message"]


def test_extract_upload_error_from_pipeline(client, auth_headers, monkeypatch):
    error = UnsupportedFileTypeError("Invalid file type")
    monkeypatch.setattr(main, "extract_passport_data", _fake_extract(error=error))

    assert _upload(client, auth_headers).status_code == 400


def test_extract_ocr_error(client, auth_headers, monkeypatch):
    monkeypatch.setattr(main, "extract_passport_data", _fake_extract(error=OCRError("boom")))

    response = _upload(client, auth_headers)

    assert response.status_code == 500
    assert response.json()["detail"]["error"] == "ocr_error"


# ============================================================================
# Письма: генерация, история, удаление
# ============================================================================


def test_generate_letter_and_download(client, auth_headers):
    response = client.post("/invitations", json=LETTER, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["filename"] == "invitation-asif-mohammed.pdf"
    assert body["pdf_url"].startswith("/files/invitations/")

    pdf = client.get(body["pdf_url"], headers=auth_headers)
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")


def test_generate_letter_stores_image(client, auth_headers):
    payload = dict(LETTER, image_base64=base64.b64encode(b"jpeg bytes").decode())

    client.post("/invitations", json=payload, headers=auth_headers)

    letters = client.get("/invitations", headers=auth_headers).json()["letters"]
    assert len(letters) == 1
    assert letters[0]["image_key"].startswith("passports/passport-")
    image = client.get(letters[0]["image_url"], headers=auth_headers)
    assert image.content == b"jpeg bytes"


def test_generate_letter_rejects_bad_base64(client, auth_headers):
    payload = dict(LETTER, image_base64="not base64!!")

    response = client.post("/invitations", json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "invalid_image"


def test_generate_letter_requires_names(client, auth_headers):
    payload = dict(LETTER, first_name="")

    assert client.post("/invitations", json=payload, headers=auth_headers).status_code == 422


def test_history_newest_first(client, auth_headers):
    client.post("/invitations", json=LETTER, headers=auth_headers)
    client.post("/invitations", json=dict(LETTER, first_name="Jane"), headers=auth_headers)

    body = client.get("/invitations", headers=auth_headers).json()

    assert body["success"] is True
    assert [letter["first_name"] for letter in body["letters"]] == ["Jane", "Mohammed"]
    assert body["letters"][0]["status"] == "completed"


def test_delete_letter_removes_files(client, auth_headers):
    created = client.post("/invitations", json=LETTER, headers=auth_headers).json()

    response = client.delete(f"/invitations/{created['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "id": created["id"]}
    assert client.get(created["pdf_url"], headers=auth_headers).status_code == 404
    assert client.get("/invitations", headers=auth_headers).json()["letters"] == []


def test_delete_unknown_letter(client, auth_headers):
    assert client.delete("/invitations/999", headers=auth_headers).status_code == 404


def test_invitations_stats(client, auth_headers):
    client.post("/invitations", json=LETTER, headers=auth_headers)

    stats = client.get("/invitations/stats", headers=auth_headers).json()

    assert stats["invitations_count"] == 1


def test_files_require_token(client, auth_headers):
    created = client.post("/invitations", json=LETTER, headers=auth_headers).json()

    response = client.get(created["pdf_url"])

    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "unauthorized"


def test_letters_in_same_millisecond_keep_separate_files(client, auth_headers, monkeypatch):
    # Оба письма получают одну и ту же метку времени
    monkeypatch.setattr(main, "time", SimpleNamespace(time=lambda: 1700000000.0))
    first = dict(LETTER, image_base64=base64.b64encode(b"scan A").decode())
    second = dict(LETTER, image_base64=base64.b64encode(b"scan B").decode())

    first_id = client.post("/invitations", json=first, headers=auth_headers).json()["id"]
    client.post("/invitations", json=second, headers=auth_headers)

    letters = client.get("/invitations", headers=auth_headers).json()["letters"]
    by_id = {letter["id"]: letter for letter in letters}
    older = by_id.pop(first_id)
    newer = next(iter(by_id.values()))
    assert older["pdf_key"] != newer["pdf_key"]
    assert older["image_key"] != newer["image_key"]
    assert client.get(older["image_url"], headers=auth_headers).content == b"scan A"
    assert client.get(newer["image_url"], headers=auth_headers).content == b"scan B"

    client.delete(f"/invitations/{first_id}", headers=auth_headers)

    image = client.get(newer["image_url"], headers=auth_headers)
    assert image.status_code == 200
    assert image.content == b"scan B"
    assert client.get(newer["pdf_url"], headers=auth_headers).status_code == 200


def test_history_reads_store_outside_event_loop(client, auth_headers, monkeypatch):
    calls = []

    def fake_list():
        # В потоке пула нет работающего event loop
        with pytest.raises(RuntimeError):
            asyncio.get_running_loop()
        calls.append("list")
        return []

    monkeypatch.setattr(main, "list_invitations", fake_list)

    response = client.get("/invitations", headers=auth_headers)

    assert response.status_code == 200
    assert calls == ["list"]
