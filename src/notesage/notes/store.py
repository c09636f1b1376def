"""SQLite persistence for notes, sections, tags and conversations.

Tables:
- documents: one row per indexed note (path + checksum + refresh info)
- sections: retrieval units owned by a document, with embeddings
- tags / document_tags: shared tags and their many-to-many links
- conversations / turns: chat history with per-turn embeddings

Deleting a document removes its sections and tag links; tags themselves
are shared and survive. Write methods return a Result instead of raising
so callers choose between logging and propagating.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from notesage.core.result import Result
from notesage.errors import StoreError
from notesage.notes.schema import EmbeddedSection

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# MODELS
# =============================================================================

class Document(Base):
    """An indexed note. (checksum, path) identifies one logical version."""
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    path = Column(String(1024), nullable=False, index=True)
    checksum = Column(String(64), nullable=False)
    authored_at = Column(DateTime(timezone=True), nullable=True)
    refresh_version = Column(String(36), nullable=False)
    refreshed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    sections = relationship(
        "Section",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Section.position",
    )
    tag_links = relationship(
        "DocumentTag",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (UniqueConstraint("checksum", "path", name="uq_documents_checksum_path"),)


class Section(Base):
    """A retrieval unit. The embedding is computed from content only."""
    __tablename__ = "sections"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(
        Integer,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False)
    heading = Column(Text, nullable=True)
    slug = Column(String(256), nullable=True)
    embedding = Column(JSON, nullable=True)
    token_count = Column(Integer, nullable=False, default=0)

    document = relationship("Document", back_populates="sections")


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), nullable=False, unique=True)


class DocumentTag(Base):
    __tablename__ = "document_tags"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    tag_id = Column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False)

    document = relationship("Document", back_populates="tag_links")
    tag = relationship("Tag", lazy="joined")

    __table_args__ = (UniqueConstraint("document_id", "tag_id", name="uq_document_tags_pair"),)


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(Text, nullable=False, default="New Chat")
    description = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    turns = relationship(
        "Turn",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Turn(Base):
    """One message of a conversation (role is "user" or "assistant")."""
    __tablename__ = "turns"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(
        Integer,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    embedding = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    conversation = relationship("Conversation", back_populates="turns")


# =============================================================================
# STORE
# =============================================================================

def create_store_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares a single connection."""
    kwargs: dict = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}  # Required for SQLite
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, echo=False, **kwargs)

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):  # noqa: ARG001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


class NoteStore:
    """Persistent store for the notes index and chat history."""

    def __init__(self, database_url: str = "sqlite://", engine: Engine | None = None):
        self.engine = engine or create_store_engine(database_url)
        self._sessions = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session wrapped in a transaction (commit or rollback)."""
        with self._sessions() as session, session.begin():
            yield session

    def _write(self, operation: str, fn) -> Result:
        try:
            with self.session() as session:
                return Result.ok(fn(session))
        except SQLAlchemyError as e:
            logger.warning("Store operation %s failed: %s", operation, e)
            return Result.err(StoreError(f"{operation} failed: {e}"))

    def _read(self, operation: str, fn):
        try:
            with self.session() as session:
                return fn(session)
        except SQLAlchemyError as e:
            raise StoreError(f"{operation} failed: {e}") from e

    # -- documents -----------------------------------------------------------

    def exists(self, path: str) -> bool:
        """True if any document is stored for path."""
        return self._read(
            f"exists({path})",
            lambda s: s.scalar(select(Document.id).where(Document.path == path).limit(1)) is not None,
        )

    def is_modified(self, path: str, checksum: str) -> bool:
        """True if a document is stored for path with a different checksum."""
        stored = self._read(
            f"is_modified({path})",
            lambda s: s.scalars(select(Document.checksum).where(Document.path == path)).all(),
        )
        return any(value != checksum for value in stored)

    def get_document(self, path: str) -> Document | None:
        with self.session() as session:
            return session.scalar(select(Document).where(Document.path == path).limit(1))

    def list_paths(self) -> list[str]:
        return self._read(
            "list_paths",
            lambda s: sorted(set(s.scalars(select(Document.path)).all())),
        )

    def remove(self, path: str) -> Result[int]:
        """Delete every document stored for path, cascading to sections and tag links."""
        def _remove(session: Session) -> int:
            documents = session.scalars(select(Document).where(Document.path == path)).all()
            for document in documents:
                session.delete(document)
            return len(documents)

        return self._write(f"remove({path})", _remove)

    def insert_document(
        self,
        path: str,
        checksum: str,
        refresh_version: str,
        authored_at: datetime | None = None,
        refreshed_at: datetime | None = None,
    ) -> Result[int]:
        return self._write(
            f"insert_document({path})",
            lambda s: self._add_document(s, path, checksum, refresh_version, authored_at, refreshed_at),
        )

    def insert_section(self, document_id: int, item: EmbeddedSection, position: int = 0) -> Result[int]:
        return self._write(
            f"insert_section({document_id})",
            lambda s: self._add_section(s, document_id, item, position),
        )

    def insert_tag(self, name: str) -> Result[int]:
        """Insert a tag by name; an existing tag is returned unchanged."""
        return self._write(f"insert_tag({name})", lambda s: self._add_tag(s, name))

    def insert_document_tag(self, document_id: int, tag_id: int) -> Result[int]:
        """Link a document to a tag; an existing link is a no-op."""
        return self._write(
            f"insert_document_tag({document_id}, {tag_id})",
            lambda s: self._add_document_tag(s, document_id, tag_id),
        )

    def write_document(
        self,
        path: str,
        checksum: str,
        refresh_version: str,
        sections: Iterable[EmbeddedSection],
        tags: Iterable[str] = (),
        authored_at: datetime | None = None,
        refreshed_at: datetime | None = None,
    ) -> Result[int]:
        """Insert a document with all its sections and tags in one transaction."""
        def _write_all(session: Session) -> int:
            document_id = self._add_document(
                session, path, checksum, refresh_version, authored_at, refreshed_at
            )
            for position, item in enumerate(sections):
                self._add_section(session, document_id, item, position)
            for name in tags:
                self._add_document_tag(session, document_id, self._add_tag(session, name))
            return document_id

        return self._write(f"write_document({path})", _write_all)

    @staticmethod
    def _add_document(
        session: Session,
        path: str,
        checksum: str,
        refresh_version: str,
        authored_at: datetime | None,
        refreshed_at: datetime | None,
    ) -> int:
        document = Document(
            path=path,
            checksum=checksum,
            refresh_version=refresh_version,
            authored_at=authored_at,
            refreshed_at=refreshed_at or _utcnow(),
        )
        session.add(document)
        session.flush()
        return document.id

    @staticmethod
    def _add_section(session: Session, document_id: int, item: EmbeddedSection, position: int) -> int:
        section = Section(
            document_id=document_id,
            position=position,
            content=item.section.content,
            heading=item.section.heading,
            slug=item.section.slug,
            embedding=list(item.embedding),
            token_count=item.token_count,
        )
        session.add(section)
        session.flush()
        return section.id

    @staticmethod
    def _add_tag(session: Session, name: str) -> int:
        tag_id = session.scalar(select(Tag.id).where(Tag.name == name))
        if tag_id is not None:
            return tag_id
        tag = Tag(name=name)
        session.add(tag)
        session.flush()
        return tag.id

    @staticmethod
    def _add_document_tag(session: Session, document_id: int, tag_id: int) -> int:
        link_id = session.scalar(
            select(DocumentTag.id).where(
                DocumentTag.document_id == document_id,
                DocumentTag.tag_id == tag_id,
            )
        )
        if link_id is not None:
            return link_id
        link = DocumentTag(document_id=document_id, tag_id=tag_id)
        session.add(link)
        session.flush()
        return link.id

    # -- retrieval -----------------------------------------------------------

    def all_sections(self, tags: Iterable[str] | None = None) -> list[Section]:
        """All sections, or only those of documents carrying any of the tags."""
        tag_names = list(tags or [])
        stmt = select(Section).join(Document).order_by(Document.path, Section.position)
        if tag_names:
            tagged = (
                select(DocumentTag.document_id)
                .join(Tag)
                .where(Tag.name.in_(tag_names))
            )
            stmt = stmt.where(Section.document_id.in_(tagged))
        with self.session() as session:
            return list(session.scalars(stmt).all())

    def list_tags(self) -> list[Tag]:
        with self.session() as session:
            return list(session.scalars(select(Tag).order_by(Tag.name)).all())

    # -- conversations -------------------------------------------------------

    def create_conversation(self, title: str = "New Chat", description: str = "") -> Result[Conversation]:
        def _create(session: Session) -> Conversation:
            conversation = Conversation(title=title, description=description)
            session.add(conversation)
            session.flush()
            return conversation

        return self._write("create_conversation", _create)

    def get_conversation(self, conversation_id: int) -> Conversation | None:
        with self.session() as session:
            return session.get(Conversation, conversation_id)

    def most_recent_conversation(self) -> Conversation | None:
        with self.session() as session:
            return session.scalar(
                select(Conversation)
                .order_by(Conversation.created_at.desc(), Conversation.id.desc())
                .limit(1)
            )

    def update_conversation(self, conversation_id: int, title: str, description: str) -> Result[None]:
        def _update(session: Session) -> bool:
            conversation = session.get(Conversation, conversation_id)
            if conversation is None:
                return False
            conversation.title = title
            conversation.description = description
            return True

        result = self._write(f"update_conversation({conversation_id})", _update)
        if result.failed:
            return result
        if not result.value:
            return Result.err(StoreError(f"No conversation {conversation_id}"))
        return Result.ok()

    def has_turns(self, conversation_id: int) -> bool:
        with self.session() as session:
            return session.scalar(
                select(Turn.id).where(Turn.conversation_id == conversation_id).limit(1)
            ) is not None

    def add_turn(
        self,
        conversation_id: int,
        role: str,
        content: str,
        embedding: list[float] | None = None,
    ) -> Result[Turn]:
        def _add(session: Session) -> Turn:
            turn = Turn(
                conversation_id=conversation_id,
                role=role,
                content=content,
                embedding=list(embedding) if embedding is not None else None,
            )
            session.add(turn)
            session.flush()
            return turn

        return self._write(f"add_turn({conversation_id})", _add)

    def update_turn_embedding(self, turn_id: int, embedding: list[float]) -> Result[None]:
        def _update(session: Session) -> None:
            turn = session.get(Turn, turn_id)
            if turn is not None:
                turn.embedding = list(embedding)

        return self._write(f"update_turn_embedding({turn_id})", _update)

    def all_turns(self, conversation_id: int) -> list[Turn]:
        """Turns of a conversation, oldest first."""
        with self.session() as session:
            return list(session.scalars(
                select(Turn)
                .where(Turn.conversation_id == conversation_id)
                .order_by(Turn.created_at, Turn.id)
            ).all())


def new_refresh_version() -> str:
    """Identifier shared by all documents written in one indexing pass."""
    return str(uuid.uuid4())
