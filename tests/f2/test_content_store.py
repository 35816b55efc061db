"""Tests for content-addressed storage (F2)."""

import json

import pytest

from ecertify.core.content_store import (
    FileSystemContentStore,
    InMemoryContentStore,
    compute_content_id,
    is_valid_content_id,
)
from ecertify.errors import NotFoundError, ValidationError

PDF_BYTES = b"%PDF-1.4 certificate of completion"


class TestContentId:
    """Tests for content id derivation."""

    def test_format(self):
        content_id = compute_content_id(PDF_BYTES)
        assert content_id.startswith("Qm")
        assert len(content_id) == 46
        assert is_valid_content_id(content_id)

    def test_deterministic(self):
        assert compute_content_id(PDF_BYTES) == compute_content_id(PDF_BYTES)
        assert compute_content_id(PDF_BYTES) != compute_content_id(b"other")

    def test_invalid_ids(self):
        assert not is_valid_content_id("cid123")
        assert not is_valid_content_id("")
        assert not is_valid_content_id("Qm../../etc/passwd")


class TestInMemoryContentStore:
    """Tests for InMemoryContentStore."""

    def test_put_and_get(self):
        store = InMemoryContentStore()
        content_id = store.put(PDF_BYTES, "diploma.pdf")
        assert store.get(content_id) == PDF_BYTES
        assert store.exists(content_id)

    def test_info_defaults_to_pdf(self):
        store = InMemoryContentStore()
        content_id = store.put(PDF_BYTES, "diploma.pdf")
        info = store.info(content_id)
        assert info.file_name == "diploma.pdf"
        assert info.file_type == "application/pdf"
        assert info.size == len(PDF_BYTES)

    def test_empty_upload_rejected(self):
        with pytest.raises(ValidationError):
            InMemoryContentStore().put(b"", "empty.pdf")

    def test_missing_name_rejected(self):
        with pytest.raises(ValidationError):
            InMemoryContentStore().put(PDF_BYTES, "")

    def test_get_unknown(self):
        with pytest.raises(NotFoundError):
            InMemoryContentStore().get(compute_content_id(b"never stored"))

    def test_verify(self):
        """Stored ids and well-formed ids verify; anything else does not."""
        store = InMemoryContentStore()
        content_id = store.put(PDF_BYTES, "diploma.pdf")
        assert store.verify(content_id)
        assert store.verify(compute_content_id(b"elsewhere"))
        assert not store.verify("cid123")

    def test_gateway_url(self):
        store = InMemoryContentStore(gateway_url="https://ipfs.io/ipfs/")
        assert store.gateway_url("QmX") == "https://ipfs.io/ipfs/QmX"

    def test_list_contents(self):
        store = InMemoryContentStore()
        store.put(PDF_BYTES, "a.pdf")
        store.put(b"png bytes", "b.png", "image/png")
        assert sorted(i.file_name for i in store.list_contents()) == ["a.pdf", "b.png"]


class TestFileSystemContentStore:
    """Tests for FileSystemContentStore."""

    def test_writes_file_and_sidecar(self, tmp_path):
        store = FileSystemContentStore(tmp_path / "content")
        content_id = store.put(PDF_BYTES, "diploma.pdf")

        assert (tmp_path / "content" / content_id).read_bytes() == PDF_BYTES
        sidecar = json.loads((tmp_path / "content" / f"{content_id}.json").read_text())
        assert sidecar["file_name"] == "diploma.pdf"

    def test_survives_new_instance(self, tmp_path):
        """A second store over the same root sees earlier uploads."""
        content_id = FileSystemContentStore(tmp_path).put(PDF_BYTES, "diploma.pdf")
        reopened = FileSystemContentStore(tmp_path)
        assert reopened.get(content_id) == PDF_BYTES
        assert reopened.info(content_id).file_name == "diploma.pdf"
        assert [i.content_id for i in reopened.list_contents()] == [content_id]

    def test_rejects_path_traversal(self, tmp_path):
        store = FileSystemContentStore(tmp_path)
        assert not store.exists("../secret")
        with pytest.raises(NotFoundError):
            store.get("../secret")
