# Lockbox Export / Import
#
# JSON document format (version 2.0.0):
#
#   { "version": "2.0.0",
#     "exported_at": <epoch-ms>,
#     "lockboxes": [ { "name", "content", "category",
#                      "unlock_delay_seconds", "relock_delay_seconds" } ] }
#
# Content is exported exactly as stored (still encrypted when a master
# password is configured) and imported verbatim; import never re-encrypts
# or validates envelopes. Names that already exist are skipped.

import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import DuplicateName, ImportFormatError
from .models import Lockbox

logger = logging.getLogger(__name__)

EXPORT_VERSION = "2.0.0"


class ExportLockbox(BaseModel):
    name: str = Field(..., min_length=1, strict=True)
    content: str = Field(..., strict=True)
    category: Optional[str] = Field(None, strict=True)
    unlock_delay_seconds: int = Field(..., ge=0, strict=True)
    relock_delay_seconds: int = Field(..., ge=0, strict=True)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()

    @classmethod
    def from_lockbox(cls, lockbox: Lockbox) -> "ExportLockbox":
        return cls(
            name=lockbox.name,
            content=lockbox.content,
            category=lockbox.category,
            unlock_delay_seconds=lockbox.unlock_delay_seconds,
            relock_delay_seconds=lockbox.relock_delay_seconds,
        )


class ExportDocument(BaseModel):
    version: str = Field(..., strict=True)
    exported_at: int = Field(..., strict=True)
    lockboxes: List[ExportLockbox]


def build_export(lockboxes: Iterable[Lockbox], exported_at: int) -> ExportDocument:
    return ExportDocument(
        version=EXPORT_VERSION,
        exported_at=exported_at,
        lockboxes=[ExportLockbox.from_lockbox(lb) for lb in lockboxes],
    )


def export_json(lockboxes: Iterable[Lockbox], exported_at: int) -> str:
    """Serialize lockboxes to the pretty-printed export document."""
    return build_export(lockboxes, exported_at).model_dump_json(indent=2)


def parse_import(data: str) -> ExportDocument:
    """Parse and validate an export document.

    Raises:
        ImportFormatError: If `data` is not JSON or does not match the schema.
    """
    try:
        return ExportDocument.model_validate_json(data)
    except ValidationError as e:
        raise ImportFormatError(f"Invalid file format: {e}") from e


def import_document(store, document: ExportDocument) -> List[str]:
    """Create every lockbox whose name is not taken yet.

    Returns:
        Names of the lockboxes actually created, in document order.
    """
    existing = set(store.names())
    imported: List[str] = []

    for entry in document.lockboxes:
        if entry.name in existing:
            logger.info("Import skipped existing lockbox name %r", entry.name)
            continue

        try:
            store.create(
                name=entry.name,
                content=entry.content,
                category=entry.category,
                unlock_delay_seconds=entry.unlock_delay_seconds,
                relock_delay_seconds=entry.relock_delay_seconds,
            )
        except DuplicateName:
            # Created concurrently since the name snapshot
            logger.info("Import skipped lockbox name %r created meanwhile", entry.name)
            existing.add(entry.name)
            continue

        existing.add(entry.name)
        imported.append(entry.name)

    return imported
