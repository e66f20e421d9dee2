import logging
import os
import uuid
from typing import Any, Dict, List, Optional

import pytest
from dotenv import find_dotenv, load_dotenv
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)

env_file = find_dotenv(f'.env{os.getenv("ENV", ".test")}')
logger.info("Fetching env_file %s", env_file)
load_dotenv(env_file)

from docsign.core.db import Base, get_async_db, get_session_factory  # noqa: E402
from docsign.documents.models import Document, DocumentMeta, Recipient  # noqa: E402
from docsign.documents.schemas import (  # noqa: E402
    DocumentStatus, RecipientRole, SigningOrderMode, SigningStatus,
)
from docsign.fields.models import Field  # noqa: E402
from docsign.fields.schemas import FieldType  # noqa: E402
from docsign.main import docsign_app as fast_api_app  # noqa: E402
from docsign.notifications.sinks import EventSink, get_event_sink  # noqa: E402


# Simulating the event sink for test cases
class InMemoryEventSink(EventSink):
    def __init__(self):
        self.published: List[tuple] = []
        self.fail = False

    async def publish(self, event_type: str, message: Dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("event sink unavailable")
        self.published.append((event_type, message))

    @property
    def event_types(self) -> List[str]:
        return [event_type for event_type, _ in self.published]


@pytest.fixture
def database_file(tmp_path):
    return tmp_path / "docsign_test.db"


@pytest.fixture
def sync_engine(database_file):
    engine = create_engine(f"sqlite:///{database_file}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(sync_engine):
    """Synchronous session used to seed and inspect the test database."""
    db = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def session_factory(database_file, sync_engine):
    engine = create_async_engine(f"sqlite+aiosqlite:///{database_file}", poolclass=NullPool)
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False,
    )


@pytest.fixture
def event_sink():
    return InMemoryEventSink()


@pytest.fixture
def client(session_factory, event_sink):

    # Override FastAPI's dependencies to use the test database and sink
    async def override_get_async_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fast_api_app.dependency_overrides[get_async_db] = override_get_async_db
    fast_api_app.dependency_overrides[get_session_factory] = lambda: session_factory
    fast_api_app.dependency_overrides[get_event_sink] = lambda: event_sink
    yield TestClient(fast_api_app)
    fast_api_app.dependency_overrides.clear()


# === Seed helpers ===

def make_document(
    db,
    status: DocumentStatus = DocumentStatus.PENDING,
    signing_order: SigningOrderMode = SigningOrderMode.PARALLEL,
    date_format: str = "yyyy-MM-dd",
    timezone: str = "Etc/UTC",
    typed_signature_enabled: bool = True,
    upload_signature_enabled: bool = True,
    draw_signature_enabled: bool = True,
    redirect_url: Optional[str] = None,
) -> Document:
    document = Document(title="Services Agreement", status=status)
    document.document_meta = DocumentMeta(
        signing_order=signing_order,
        date_format=date_format,
        timezone=timezone,
        typed_signature_enabled=typed_signature_enabled,
        upload_signature_enabled=upload_signature_enabled,
        draw_signature_enabled=draw_signature_enabled,
        redirect_url=redirect_url,
    )
    db.add(document)
    db.commit()
    return document


def make_recipient(
    db,
    document: Document,
    name: str = "Ada Lovelace",
    role: RecipientRole = RecipientRole.SIGNER,
    signing_order: Optional[int] = None,
    signing_status: SigningStatus = SigningStatus.NOT_SIGNED,
    token: Optional[str] = None,
) -> Recipient:
    recipient = Recipient(
        document_id=document.id,
        email=f"{name.split()[0].lower()}@example.com",
        name=name,
        token=token or uuid.uuid4().hex,
        role=role,
        signing_order=signing_order,
        signing_status=signing_status,
    )
    db.add(recipient)
    db.commit()
    return recipient


def make_field(
    db,
    recipient: Recipient,
    field_type: FieldType = FieldType.TEXT,
    field_meta: Optional[Dict[str, Any]] = None,
    inserted: bool = False,
    custom_text: str = "",
) -> Field:
    field = Field(
        document_id=recipient.document_id,
        recipient_id=recipient.id,
        type=field_type,
        page=1,
        position_x=10,
        position_y=20,
        width=15,
        height=5,
        inserted=inserted,
        custom_text=custom_text,
        field_meta=field_meta,
    )
    db.add(field)
    db.commit()
    return field
