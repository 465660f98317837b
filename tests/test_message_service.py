import asyncio

import pytest
from sqlalchemy import func, select

from docchat.models import CompiledDocument, Message
from docchat.schemas.message import MessageCreate
from docchat.services.compiled_document_service import CompiledDocumentService, SyncOutcome
from docchat.services.message_service import MessageService


def document_message(content="Please read my invoice"):
    return MessageCreate(
        content=content,
        blob_pathname="user-files/inv.pdf",
        extracted_text="Invoice total: $42",
        original_file_name="inv.pdf"
    )


async def test_unexpected_sync_error_is_reported_as_failed(db, session_factory, monkeypatch):
    async def broken_sync(session, chat_id, candidate):
        raise ValueError("snapshot is not serializable")

    monkeypatch.setattr(CompiledDocumentService, "synchronize", staticmethod(broken_sync))

    result = await MessageService.create_message(db, "user-1", document_message())

    assert result.compiled_document_status == SyncOutcome.FAILED.value
    async with session_factory() as session:
        count = await session.scalar(select(func.count(Message.id)).where(Message.chatId == result.chat_id))
    assert count == 2


async def test_cancelled_send_still_finishes_synchronization(db, session_factory, monkeypatch):
    original_sync = CompiledDocumentService.synchronize
    started = asyncio.Event()
    release = asyncio.Event()
    finished = asyncio.Event()

    async def slow_sync(session, chat_id, candidate):
        started.set()
        await release.wait()
        try:
            return await original_sync(session, chat_id, candidate)
        finally:
            finished.set()

    monkeypatch.setattr(CompiledDocumentService, "synchronize", staticmethod(slow_sync))

    task = asyncio.create_task(MessageService.create_message(db, "user-1", document_message()))
    await asyncio.wait_for(started.wait(), timeout=5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    release.set()
    await asyncio.wait_for(finished.wait(), timeout=5)

    async with session_factory() as session:
        documents = (await session.execute(select(CompiledDocument))).scalars().all()
    assert len(documents) == 1
    assert len(documents[0].historySnapshot) == 2
