import pymupdf as fitz
import pytest
from sqlalchemy.exc import SQLAlchemyError

from docchat.services.compiled_document_service import CompiledDocumentService

OWNER = "user-1"


def make_pdf(text):
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


async def send_message(client, content, user_id=OWNER, **extra):
    payload = {"content": content, **extra}
    return await client.post("/api/v1/messages", params={"user_id": user_id}, json=payload)


async def start_document_chat(client, content="Please read my invoice"):
    response = await send_message(
        client, content,
        blobPathname="user-files/inv.pdf",
        extractedText="Invoice total: $42",
        originalFileName="inv.pdf"
    )
    assert response.status_code == 200
    return response.json()["data"]


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_new_chat_requires_document(client):
    response = await send_message(client, "hello")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "BAD_REQUEST"


async def test_document_fields_must_be_paired(client):
    response = await send_message(client, "hello", blobPathname="user-files/inv.pdf")

    assert response.status_code == 422


async def test_first_document_message_creates_compiled_document(client, llm_calls):
    data = await start_document_chat(client)

    assert data["isNewChat"] is True
    assert data["chatTitle"] == "Document: inv.pdf"
    assert data["chat"]["id"] == data["chatId"]
    assert data["userMessage"]["blobPathname"] == "user-files/inv.pdf"
    assert data["userMessage"]["hasExtractedText"] is True
    assert data["botMessage"]["sender"] == "BOT"
    assert data["botMessage"]["content"] == "Answer to: Please read my invoice"
    assert data["compiledDocumentStatus"] == "created"
    assert llm_calls[0]["source_text"] == "Invoice total: $42"


async def test_follow_up_updates_snapshot(client, llm_calls):
    chat_id = (await start_document_chat(client))["chatId"]

    response = await send_message(client, "What is the tax?", chatId=chat_id)

    data = response.json()["data"]
    assert data["isNewChat"] is False
    assert data["chat"] is None
    assert data["compiledDocumentStatus"] == "updated"
    assert [turn["content"] for turn in llm_calls[1]["prior_turns"]] == [
        "Please read my invoice",
        "Answer to: Please read my invoice",
    ]

    response = await client.get(f"/api/v1/chats/{chat_id}/compiled-document", params={"user_id": OWNER})
    assert response.status_code == 200
    document = response.json()["data"]
    assert document["originalFileName"] == "inv.pdf"
    assert len(document["historySnapshot"]) == 4
    assert document["historySnapshot"][0]["isSourceDocument"] is True


async def test_second_upload_is_reported_but_not_adopted(client):
    chat_id = (await start_document_chat(client))["chatId"]

    response = await send_message(
        client, "Another file",
        chatId=chat_id,
        blobPathname="user-files/receipt.png",
        extractedText="Receipt",
        originalFileName="receipt.png"
    )
    assert response.json()["data"]["compiledDocumentStatus"] == "updated"

    response = await client.get(f"/api/v1/chats/{chat_id}/compiled-document", params={"user_id": OWNER})
    document = response.json()["data"]
    assert document["originalFileName"] == "inv.pdf"
    assert document["sourceFileBlobPathname"] == "user-files/inv.pdf"


async def test_other_user_is_forbidden(client):
    chat_id = (await start_document_chat(client))["chatId"]

    for path in ("compiled-document", "compiled-document/download", "messages"):
        response = await client.get(f"/api/v1/chats/{chat_id}/{path}", params={"user_id": "intruder"})
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    response = await send_message(client, "let me in", user_id="intruder", chatId=chat_id)
    assert response.status_code == 403


async def test_unknown_chat_is_not_found(client):
    response = await client.get(
        "/api/v1/chats/01HZZZZZZZZZZZZZZZZZZZZZZZ/compiled-document/download",
        params={"user_id": OWNER}
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_download_returns_compiled_pdf(client, blob_store):
    blob_store.files["user-files/inv.pdf"] = make_pdf("original invoice page")
    chat_id = (await start_document_chat(client))["chatId"]

    response = await client.get(
        f"/api/v1/chats/{chat_id}/compiled-document/download",
        params={"user_id": OWNER}
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == (
        f'attachment; filename="compiled_inv_{chat_id[:8]}.pdf"'
    )
    with fitz.open(stream=response.content, filetype="pdf") as doc:
        text = "".join(page.get_text() for page in doc)
    assert "Invoice total: $42" in text
    assert "original invoice page" in text


async def test_download_survives_missing_original(client, blob_store):
    chat_id = (await start_document_chat(client))["chatId"]

    response = await client.get(
        f"/api/v1/chats/{chat_id}/compiled-document/download",
        params={"user_id": OWNER}
    )

    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


async def test_llm_failure_stores_fallback_reply(client, monkeypatch):
    from docchat.services.llm_service import LLMService, LLMServiceError

    async def failing_completion(*args, **kwargs):
        raise LLMServiceError("upstream timeout")

    monkeypatch.setattr(LLMService, "get_completion", staticmethod(failing_completion))

    data = await start_document_chat(client)

    assert data["botMessage"]["content"].startswith("Sorry, an error occurred")
    assert data["compiledDocumentStatus"] == "created"


async def test_sync_failure_does_not_fail_message(client, monkeypatch):
    async def broken_sync(db, chat_id, candidate):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(CompiledDocumentService, "synchronize", staticmethod(broken_sync))

    data = await start_document_chat(client)

    assert data["compiledDocumentStatus"] == "failed"
    assert data["botMessage"]["sender"] == "BOT"


async def test_create_chat_with_document(client):
    response = await client.post(
        "/api/v1/chats",
        params={"user_id": OWNER},
        json={
            "blobPathname": "user-files/scan.png",
            "extractedText": "RECEIPT 12.50",
            "originalFileName": "scan.png"
        }
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["title"] == "Document: scan.png"
    assert data["hasCompiledDocument"] is True

    response = await client.get(f"/api/v1/chats/{data['id']}/messages", params={"user_id": OWNER})
    messages = response.json()["data"]
    assert [message["content"] for message in messages] == ["Uploaded: scan.png"]


async def test_list_chats_and_documents(client):
    first = await start_document_chat(client, "first")
    await start_document_chat(client, "second")
    await start_document_chat(client, "third")

    response = await client.get("/api/v1/chats", params={"user_id": OWNER})
    chats = response.json()["data"]
    assert len(chats) == 3
    assert all(chat["hasCompiledDocument"] for chat in chats)

    response = await client.get("/api/v1/chats", params={"user_id": "someone-else"})
    assert response.json()["data"] == []

    response = await client.get("/api/v1/chats/documents", params={"user_id": OWNER})
    documents = response.json()["data"]
    assert len(documents) == 3
    assert {document["fileName"] for document in documents} == {"inv.pdf"}
    assert first["chatId"] in {document["chatId"] for document in documents}


async def test_upload_file(client, blob_store):
    response = await client.post(
        "/api/v1/files",
        files={"file": ("inv.pdf", b"%PDF-1.4 data", "application/pdf")}
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["blobPathname"].startswith("user-files/")
    assert data["blobPathname"].endswith(".pdf")
    assert data["originalFileName"] == "inv.pdf"
    assert blob_store.files[data["blobPathname"]] == b"%PDF-1.4 data"


@pytest.mark.parametrize("file_name", ["report.docx", "script.exe"])
async def test_upload_rejects_unsupported_type(client, blob_store, file_name):
    response = await client.post(
        "/api/v1/files",
        files={"file": (file_name, b"data", "application/octet-stream")}
    )

    assert response.status_code == 415
    assert blob_store.files == {}


async def test_extract_text_endpoint(client, blob_store):
    blob_store.files["user-files/notes.txt"] = b"meeting notes"

    response = await client.post(
        "/api/v1/ocr/extract-text",
        json={"blobPathname": "user-files/notes.txt", "originalFileName": "notes.txt"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["text"] == "meeting notes"


async def test_unexpected_sync_error_does_not_fail_message(client, monkeypatch):
    async def dropped_connection(db, chat_id, candidate):
        raise ConnectionResetError("connection reset by peer")

    monkeypatch.setattr(CompiledDocumentService, "synchronize", staticmethod(dropped_connection))

    data = await start_document_chat(client)

    assert data["compiledDocumentStatus"] == "failed"
    response = await client.get(f"/api/v1/chats/{data['chatId']}/messages", params={"user_id": OWNER})
    assert len(response.json()["data"]) == 2
