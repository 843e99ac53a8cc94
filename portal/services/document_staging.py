"""
Document staging area — files chosen by the applicant before any identity
exists to own them in storage.

Files are kept in memory per document type and uploaded by the orchestrator
once the identity has been created.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from portal.config import settings
from portal.exceptions import StagingError
from portal.services.business_types import DocumentSpec

ALLOWED_CONTENT_TYPES = {
    "application/pdf":    ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "image/jpeg":         ".jpg",
    "image/jpg":          ".jpg",
    "image/png":          ".png",
}


@dataclass(frozen=True)
class StagedFile:
    """A selected file, held in memory until upload."""
    name: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def safe_name(self) -> str:
        """File name without any directory components."""
        return os.path.basename(self.name.replace("\\", "/")) or "document"


class DocumentStagingArea:
    """
    Mapping of document type → staged files.

    Parameters
    ----------
    max_files : maximum number of files per document type
    max_bytes : maximum size of a single file
    """

    def __init__(
        self,
        max_files: Optional[int] = None,
        max_bytes: Optional[int] = None,
    ) -> None:
        self._max_files = max_files or settings.MAX_FILES_PER_DOCUMENT
        self._max_bytes = max_bytes or settings.max_document_bytes
        self._files: Dict[str, List[StagedFile]] = {}

    # ── Mutation ──────────────────────────────────────────────────────────────

    def stage(self, document_type: str, files: Sequence[StagedFile]) -> None:
        """
        Replace the file list for a document type. An empty list removes it.
        File names must be unique within the type; `unstage` removes by name.
        """
        files = list(files)
        if len(files) > self._max_files:
            raise StagingError(
                f"Maximum {self._max_files} documents allowed for {document_type}"
            )
        names = [f.name for f in files]
        for f in files:
            if names.count(f.name) > 1:
                raise StagingError(f"{f.name} is already attached to {document_type}")
            if f.content_type not in ALLOWED_CONTENT_TYPES:
                raise StagingError(f"{f.name} is not a supported file type")
            if f.size > self._max_bytes:
                limit_mb = self._max_bytes // (1024 * 1024)
                raise StagingError(f"{f.name} is too large (max {limit_mb}MB)")

        if files:
            self._files[document_type] = files
        else:
            self._files.pop(document_type, None)

    def unstage(self, document_type: str, file_name: str) -> bool:
        """Remove one file by name. Returns False if nothing matched."""
        current = self._files.get(document_type, [])
        for i, f in enumerate(current):
            if f.name == file_name:
                del current[i]
                if not current:
                    del self._files[document_type]
                return True
        return False

    def clear(self) -> None:
        self._files.clear()

    # ── Queries ───────────────────────────────────────────────────────────────

    def files_for(self, document_type: str) -> Tuple[StagedFile, ...]:
        return tuple(self._files.get(document_type, ()))

    def staged_types(self) -> Set[str]:
        return {t for t, files in self._files.items() if files}

    def missing(self, required: Sequence[DocumentSpec]) -> List[DocumentSpec]:
        """Required documents that have no staged file, in the given order."""
        staged = self.staged_types()
        return [spec for spec in required if spec.type not in staged]

    def snapshot(self) -> Dict[str, Tuple[StagedFile, ...]]:
        """Detached copy handed to the orchestrator."""
        return {t: tuple(files) for t, files in self._files.items() if files}

    def items(self) -> Iterator[Tuple[str, Tuple[StagedFile, ...]]]:
        return iter(self.snapshot().items())

    def __len__(self) -> int:
        return sum(len(files) for files in self._files.values())

    @property
    def is_empty(self) -> bool:
        return not self._files
