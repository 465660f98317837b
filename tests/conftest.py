import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="docchat-test-")

# Settings는 import 시점에 로드되므로 먼저 환경 변수를 설정
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'unused.db')}"
os.environ["DB_SCHEMA"] = "main"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["GCP_PROJECT_ID"] = "test-project"
os.environ["GCP_BUCKET_NAME"] = "test-bucket"
os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = os.path.join(_TEST_DIR, "credentials.json")
os.environ["OPENAI_API_KEY"] = "sk-test"

import httpx
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from docchat import database
from docchat.database import Base
from docchat.models import Chat, Message, MessageSender
from docchat.services.llm_service import LLMService
from docchat.services.pdf_service import PdfService
from docchat.utils.gcs_storage import BlobStorage, BlobStorageError


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'docchat.db'}",
        poolclass=NullPool
    )

    # pysqlite의 트랜잭션 처리를 끄고 직접 BEGIN (SAVEPOINT 지원)
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine, monkeypatch):
    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
    monkeypatch.setattr(database, "AsyncSessionLocal", factory)
    return factory


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    from docchat.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture(autouse=True)
def llm_calls(monkeypatch):
    calls = []

    async def fake_completion(user_text, prior_turns, source_text=None, source_blob_pathname=None):
        calls.append({
            "user_text": user_text,
            "prior_turns": prior_turns,
            "source_text": source_text,
            "source_blob_pathname": source_blob_pathname,
        })
        return f"Answer to: {user_text}"

    monkeypatch.setattr(LLMService, "get_completion", staticmethod(fake_completion))
    return calls


class FakeBlobStore:
    def __init__(self):
        self.files = {}
        self.fetches = []
        self.fail = False

    async def fetch_bytes(self, blob_pathname):
        self.fetches.append(blob_pathname)
        if self.fail or blob_pathname not in self.files:
            raise BlobStorageError(f"blob {blob_pathname} unavailable")
        return self.files[blob_pathname]

    async def upload_file(self, content, file_id, file_extension):
        blob_name = f"user-files/{file_id}.{file_extension}"
        self.files[blob_name] = content
        return blob_name


@pytest.fixture
def blob_store(monkeypatch):
    store = FakeBlobStore()
    monkeypatch.setattr(BlobStorage, "fetch_bytes", staticmethod(store.fetch_bytes))
    monkeypatch.setattr(BlobStorage, "upload_file", staticmethod(store.upload_file))
    return store


@pytest.fixture
def rendered(monkeypatch):
    """PDF 렌더러 대체 (입력 payload 기록)"""
    payloads = []

    async def fake_render(data):
        payloads.append(data)
        return b"%PDF-1.7 fake"

    monkeypatch.setattr(PdfService, "render_compiled_pdf", staticmethod(fake_render))
    return payloads


@pytest.fixture
def make_chat(db):
    async def _make_chat(user_id="user-1", title="Document: inv.pdf"):
        chat = Chat(userId=user_id, title=title)
        db.add(chat)
        await db.commit()
        return chat
    return _make_chat


@pytest.fixture
def add_message(db):
    async def _add_message(chat, content, sender=MessageSender.USER, blob=None, text=None, file_name=None):
        message = Message(
            chatId=chat.id,
            sender=sender,
            content=content,
            blobPathname=blob,
            extractedText=text,
            originalFileName=file_name
        )
        db.add(message)
        await db.commit()
        return message
    return _add_message
