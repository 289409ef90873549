"""Domain models for the groundwork database layer.

Metadata on sources and chunks is an open key-value map persisted as JSON.
The well-known keys are documented by ``SourceMetadata`` and ``ChunkMetadata``;
anything else is carried through untouched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TypedDict


class SourceType(str, Enum):
    TEXT = "text"
    WEBSITE = "website"
    QA = "qa"
    PDF = "pdf"
    TXT = "txt"
    MD = "md"
    DOCX = "docx"
    URL = "url"


class SourceStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


class SourceMetadata(TypedDict, total=False):
    """Well-known keys of ``KnowledgeSource.metadata``."""

    content_size: int
    url: str
    title: str
    char_count: int
    page_count: int
    chunk_count: int
    chunk_strategy: str
    poisoned_count: int
    error_message: str
    uploaded_at: str
    processing_started_at: str
    processing_completed_at: str
    qa_data: dict


class ChunkMetadata(TypedDict, total=False):
    """Well-known keys of ``DocumentChunk.metadata``."""

    chunk_index: int
    start_char: int
    end_char: int
    page_number: int
    contains_entities: list[str]
    url: str


@dataclass
class KnowledgeSource:
    id: str
    name: str
    type: SourceType
    status: SourceStatus = SourceStatus.PENDING
    metadata: dict = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class DocumentChunk:
    knowledge_source_id: str
    chunk_index: int
    content: str
    id: str = ""
    metadata: dict = field(default_factory=dict)
    created_at: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved chunks

    @property
    def metadata_json(self) -> str:
        return json.dumps(self.metadata)

    @property
    def page_number(self) -> int | None:
        return self.metadata.get("page_number")
