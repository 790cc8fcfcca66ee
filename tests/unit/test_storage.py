"""
Unit tests for content storage.

Tests LocalContentStorage against tmp_path and InMemoryContentStorage.
"""

import pytest

from ticketbridge.storage import ContentStorage, InMemoryContentStorage, LocalContentStorage


class TestLocalContentStorage:
    @pytest.fixture
    def storage(self, tmp_path) -> LocalContentStorage:
        return LocalContentStorage(tmp_path)

    def test_implements_protocol(self, storage):
        assert isinstance(storage, ContentStorage)

    @pytest.mark.asyncio
    async def test_write_creates_parent_directories(self, storage, tmp_path):
        await storage.write("archivos/1_abc.pdf", b"hello")
        assert (tmp_path / "archivos" / "1_abc.pdf").read_bytes() == b"hello"

    @pytest.mark.asyncio
    async def test_size_of_written_payload(self, storage):
        await storage.write("archivos/a.bin", b"x" * 1024)
        assert await storage.size("archivos/a.bin") == 1024

    @pytest.mark.asyncio
    async def test_size_of_missing_path_is_none(self, storage):
        assert await storage.size("archivos/missing.bin") is None

    @pytest.mark.asyncio
    async def test_delete(self, storage, tmp_path):
        await storage.write("archivos/a.bin", b"data")
        await storage.delete("archivos/a.bin")
        assert not (tmp_path / "archivos" / "a.bin").exists()

    @pytest.mark.asyncio
    async def test_delete_missing_path_is_not_an_error(self, storage):
        await storage.delete("archivos/never-written.bin")

    @pytest.mark.parametrize("path", ["/etc/passwd", "../outside.txt", "archivos/../../x"])
    def test_rejects_paths_outside_root(self, storage, path):
        with pytest.raises(ValueError):
            storage.resolve(path)

    def test_resolve(self, storage, tmp_path):
        assert storage.resolve("archivos/a.pdf") == tmp_path / "archivos" / "a.pdf"
        assert storage.root == tmp_path


class TestInMemoryContentStorage:
    @pytest.fixture
    def storage(self) -> InMemoryContentStorage:
        return InMemoryContentStorage()

    def test_implements_protocol(self, storage):
        assert isinstance(storage, ContentStorage)

    @pytest.mark.asyncio
    async def test_round_trip(self, storage):
        await storage.write("archivos/a.txt", b"abc")
        assert storage.read("archivos/a.txt") == b"abc"
        assert await storage.size("archivos/a.txt") == 3
        assert storage.paths == ["archivos/a.txt"]

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        await storage.write("archivos/a.txt", b"abc")
        await storage.delete("archivos/a.txt")
        assert await storage.size("archivos/a.txt") is None
        assert storage.paths == []

    @pytest.mark.asyncio
    async def test_rejects_parent_references(self, storage):
        with pytest.raises(ValueError):
            await storage.write("../a.txt", b"abc")
