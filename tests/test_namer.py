"""Tests for content-addressed naming and hash copy."""

import io

import pytest
from blake3 import blake3

from bucketsync.core.namer import (
    HashCopier,
    digest_stream,
    encode_crockford,
    name_for_file,
    target_name,
)
from bucketsync.errors import BucketSyncError, NotFoundError

from conftest import make_tree


CROCKFORD_ALPHABET = set("0123456789abcdefghjkmnpqrstvwxyz")


class TestContentNames:
    """Test digest encoding."""

    def test_same_content_same_name(self):
        assert digest_stream(io.BytesIO(b"content")) == digest_stream(io.BytesIO(b"content"))

    def test_different_content_different_name(self):
        assert digest_stream(io.BytesIO(b"content-a")) != digest_stream(io.BytesIO(b"content-b"))

    def test_chunk_size_does_not_change_name(self):
        data = bytes(range(256)) * 1000
        assert digest_stream(io.BytesIO(data), chunk_size=7) == digest_stream(io.BytesIO(data), chunk_size=65536)

    def test_name_uses_safe_alphabet(self):
        name = digest_stream(io.BytesIO(b"anything"))
        assert set(name) <= CROCKFORD_ALPHABET
        assert name == name.lower()
        assert len(name) == 52

    def test_empty_input_known_vector(self):
        # BLAKE3 of no bytes is af1349b9...3262
        assert digest_stream(io.BytesIO(b"")) == "nw9mkefnz6gtd8209qn3dq6996dwp9e9nq0h5dycka9wns0z69h0"

    def test_matches_blake3_digest(self):
        digest = blake3(b"abc").digest()
        assert digest_stream(io.BytesIO(b"abc")) == encode_crockford(digest)

    def test_encode_known_values(self):
        assert encode_crockford(b"\x00" * 5) == "00000000"
        assert encode_crockford(b"\xff" * 5) == "zzzzzzzz"
        assert encode_crockford(b"\x00\x44") == "0120"

    @pytest.mark.asyncio
    async def test_name_for_file_matches_stream(self, tmp_path):
        make_tree(tmp_path, {"photo.JPG": b"jpeg bytes"})

        name = await name_for_file(tmp_path / "photo.JPG")

        assert name == digest_stream(io.BytesIO(b"jpeg bytes"))

    @pytest.mark.asyncio
    async def test_target_name_lowercases_extension(self, tmp_path):
        make_tree(tmp_path, {"photo.JPG": b"jpeg bytes", "README": b"text"})

        assert (await target_name(tmp_path / "photo.JPG")).endswith(".jpg")
        assert "." not in await target_name(tmp_path / "README")


class TestHashCopier:
    """Test the hash-copy tool."""

    @pytest.mark.asyncio
    async def test_copies_matching_files_under_content_names(self, tmp_path):
        source = make_tree(tmp_path / "src", {
            "a.jpg": b"image-a",
            "nested/b.PNG": b"image-b",
            "notes.txt": b"skip me",
            ".hidden.jpg": b"hidden",
            ".cache/c.jpg": b"hidden dir",
        })
        target = tmp_path / "out"

        report = await HashCopier().copy_files(source, target, extensions=["jpg", ".png"])

        names = sorted(p.name for p in target.iterdir())
        assert len(report.copied) == 2
        assert names == sorted([
            digest_stream(io.BytesIO(b"image-a")) + ".jpg",
            digest_stream(io.BytesIO(b"image-b")) + ".png",
        ])
        assert report.failed == []

    @pytest.mark.asyncio
    async def test_existing_target_is_duplicate(self, tmp_path):
        source = make_tree(tmp_path / "src", {"one.jpg": b"same", "two.jpg": b"same"})

        report = await HashCopier().copy_files(source, tmp_path / "out")

        assert len(report.copied) == 1
        assert len(report.duplicates) == 1
        assert report.total_files == 2

    @pytest.mark.asyncio
    async def test_move_after_copy_trashes_sources(self, tmp_path, trash):
        source = make_tree(tmp_path / "src", {"one.jpg": b"1", "two.jpg": b"2"})

        report = await HashCopier(trash_func=trash).copy_files(source, tmp_path / "out", move_after_copy=True)

        assert len(report.moved_to_trash) == 2
        assert not list(source.rglob("*.jpg"))
        assert len(list((tmp_path / "out").iterdir())) == 2

    @pytest.mark.asyncio
    async def test_move_after_copy_keeps_duplicates(self, tmp_path, trash):
        source = make_tree(tmp_path / "src", {"a.jpg": b"same", "b.jpg": b"same"})

        report = await HashCopier(trash_func=trash).copy_files(source, tmp_path / "out", move_after_copy=True)

        assert len(report.copied) == 1
        assert len(report.duplicates) == 1
        assert report.moved_to_trash == [str(source / "a.jpg")]
        assert trash.paths == [str(source / "a.jpg")]
        assert (source / "b.jpg").read_bytes() == b"same"

    @pytest.mark.asyncio
    async def test_target_inside_source_is_not_rescanned(self, tmp_path):
        source = make_tree(tmp_path / "src", {"a.jpg": b"a"})
        out = source / "out"
        out.mkdir()
        (out / "existing.jpg").write_bytes(b"already there")

        report = await HashCopier().copy_files(source, out)

        assert [path for path, _ in report.copied] == [str(source / "a.jpg")]

    @pytest.mark.asyncio
    async def test_same_source_and_target_rejected(self, tmp_path):
        source = make_tree(tmp_path / "src", {"a.jpg": b"a"})
        with pytest.raises(BucketSyncError):
            await HashCopier().copy_files(source, source)

    @pytest.mark.asyncio
    async def test_missing_source_rejected(self, tmp_path):
        with pytest.raises(NotFoundError):
            await HashCopier().copy_files(tmp_path / "missing", tmp_path / "out")
