"""Content-addressed file hosting.

Certificates reference their file by an opaque content id. Ids are derived
from the bytes: ``Qm`` followed by the first 44 hex characters of the
SHA-256 digest, so the same file always maps to the same id.

Backends:
- InMemoryContentStore: process-local map, for tests and demos
- FileSystemContentStore: one file per id plus a JSON metadata sidecar
"""

from __future__ import annotations

import hashlib
import json
import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import structlog

from ecertify.core.models import to_timestamp, utc_now
from ecertify.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

CONTENT_ID_PATTERN = re.compile(r"^Qm[0-9a-f]{44}$")
DEFAULT_FILE_TYPE = "application/pdf"


def compute_content_id(data: bytes) -> str:
    """Derive the content id for a payload."""
    return "Qm" + hashlib.sha256(data).hexdigest()[:44]


def is_valid_content_id(content_id: str) -> bool:
    """Check the content id format."""
    return bool(CONTENT_ID_PATTERN.match(content_id or ""))


@dataclass
class ContentInfo:
    """Metadata kept alongside stored content."""

    content_id: str
    file_name: str
    file_type: str
    size: int
    uploaded_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ContentStore(ABC):
    """Interface for content-addressed storage backends."""

    def __init__(self, gateway_url: str = "https://ipfs.io/ipfs"):
        self.gateway_url_base = gateway_url.rstrip("/")

    def put(self, data: bytes, file_name: str, file_type: str | None = None) -> str:
        """Store a payload.

        Args:
            data: File bytes
            file_name: Original file name
            file_type: MIME type (defaults to application/pdf)

        Returns:
            The content id

        Raises:
            ValidationError: If data is empty or file_name missing
        """
        if not data:
            raise ValidationError("Uploaded file is empty")
        if not file_name:
            raise ValidationError("File name is required")

        content_id = compute_content_id(data)
        info = ContentInfo(
            content_id=content_id,
            file_name=file_name,
            file_type=file_type or DEFAULT_FILE_TYPE,
            size=len(data),
            uploaded_at=to_timestamp(utc_now()),
        )
        self._write(content_id, data, info)

        logger.info(
            "content.stored",
            content_id=content_id,
            file_name=file_name,
            size=len(data),
        )
        return content_id

    def get(self, content_id: str) -> bytes:
        """Fetch stored bytes.

        Raises:
            NotFoundError: If nothing is stored under content_id
        """
        data = self._read(content_id)
        if data is None:
            raise NotFoundError("Content", content_id)
        return data

    def verify(self, content_id: str) -> bool:
        """True if the id is stored here or is a well-formed content id."""
        return self.exists(content_id) or is_valid_content_id(content_id)

    def gateway_url(self, content_id: str) -> str:
        """Public gateway URL for a content id."""
        return f"{self.gateway_url_base}/{content_id}"

    @abstractmethod
    def exists(self, content_id: str) -> bool: ...

    @abstractmethod
    def info(self, content_id: str) -> ContentInfo | None: ...

    @abstractmethod
    def list_contents(self) -> list[ContentInfo]: ...

    @abstractmethod
    def _write(self, content_id: str, data: bytes, info: ContentInfo) -> None: ...

    @abstractmethod
    def _read(self, content_id: str) -> bytes | None: ...


class InMemoryContentStore(ContentStore):
    """Keeps uploads in a dict for the lifetime of the process."""

    def __init__(self, gateway_url: str = "https://ipfs.io/ipfs"):
        super().__init__(gateway_url)
        self._data: dict[str, bytes] = {}
        self._info: dict[str, ContentInfo] = {}

    def exists(self, content_id: str) -> bool:
        return content_id in self._data

    def info(self, content_id: str) -> ContentInfo | None:
        return self._info.get(content_id)

    def list_contents(self) -> list[ContentInfo]:
        return list(self._info.values())

    def _write(self, content_id: str, data: bytes, info: ContentInfo) -> None:
        self._data[content_id] = data
        self._info[content_id] = info

    def _read(self, content_id: str) -> bytes | None:
        return self._data.get(content_id)


class FileSystemContentStore(ContentStore):
    """Stores each payload as ``<root>/<content_id>`` with a ``.json`` sidecar."""

    def __init__(self, root: Path, gateway_url: str = "https://ipfs.io/ipfs"):
        super().__init__(gateway_url)
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, content_id: str) -> Path:
        # Reject anything that could escape root
        if not is_valid_content_id(content_id):
            raise NotFoundError("Content", content_id)
        return self.root / content_id

    def exists(self, content_id: str) -> bool:
        if not is_valid_content_id(content_id):
            return False
        return self._path(content_id).exists()

    def info(self, content_id: str) -> ContentInfo | None:
        if not self.exists(content_id):
            return None
        sidecar = self._path(content_id).with_suffix(".json")
        try:
            with open(sidecar, encoding="utf-8") as f:
                return ContentInfo(**json.load(f))
        except (json.JSONDecodeError, OSError, TypeError):
            return None

    def list_contents(self) -> list[ContentInfo]:
        infos = []
        for sidecar in sorted(self.root.glob("Qm*.json")):
            info = self.info(sidecar.stem)
            if info is not None:
                infos.append(info)
        return infos

    def _write(self, content_id: str, data: bytes, info: ContentInfo) -> None:
        path = self._path(content_id)
        path.write_bytes(data)
        path.with_suffix(".json").write_text(
            json.dumps(info.to_dict(), indent=2), encoding="utf-8"
        )

    def _read(self, content_id: str) -> bytes | None:
        if not self.exists(content_id):
            return None
        return self._path(content_id).read_bytes()
