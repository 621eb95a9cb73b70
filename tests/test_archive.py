"""Tests for tarball entry extraction."""

import gzip
import io
import os
import tarfile

from usefultools.plugins.archive import extract_bytes, extract_text

from conftest import make_tarball


class TestExtract:
    """Entries are looked up by exact path."""

    def test_extracts_text_entry(self):
        """A UTF-8 entry comes back as text."""
        archive = make_tarball({"package/package.json": "{}", "package/plugin.json": '{"id": "x"}'})
        assert extract_text(archive, "package/plugin.json") == '{"id": "x"}'

    def test_extracts_binary_entry(self):
        """Raw bytes are returned unchanged."""
        payload = bytes(range(256))
        archive = make_tarball({"package/dist/x.wasm": payload})
        assert extract_bytes(archive, "package/dist/x.wasm") == payload

    def test_first_matching_entry_wins(self):
        """With duplicate paths the earliest entry is returned."""
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            for content in (b"first", b"second"):
                info = tarfile.TarInfo(name="package/plugin.json")
                info.size = len(content)
                tar.addfile(info, io.BytesIO(content))
        archive = buffer.getvalue()

        assert extract_text(archive, "package/plugin.json") == "first"

    def test_path_must_match_exactly(self):
        """Suffix or prefix matches do not count."""
        archive = make_tarball({"package/plugin.json": "{}"})
        assert extract_text(archive, "plugin.json") is None
        assert extract_text(archive, "package/plugin.json.bak") is None


class TestAbsent:
    """Missing entries, corrupt archives and bad encodings all read as absent."""

    def test_missing_entry(self):
        """An archive without the entry yields None."""
        archive = make_tarball({"package/index.js": "x"})
        assert extract_bytes(archive, "package/plugin.json") is None

    def test_not_gzip(self):
        """Arbitrary bytes yield None."""
        assert extract_bytes(b"definitely not an archive", "package/plugin.json") is None

    def test_gzip_but_not_tar(self):
        """A gzip stream without a tar inside yields None."""
        assert extract_bytes(gzip.compress(b"plain text, no tar header"), "package/plugin.json") is None

    def test_truncated_archive(self):
        """A cut-off download yields None."""
        archive = make_tarball({"package/plugin.json": os.urandom(10_000)})
        assert extract_bytes(archive[: len(archive) // 2], "package/plugin.json") is None

    def test_empty_input(self):
        """Zero bytes yield None."""
        assert extract_text(b"", "package/plugin.json") is None

    def test_non_utf8_text(self):
        """Invalid UTF-8 is absent as text but still readable as bytes."""
        archive = make_tarball({"package/plugin.json": b"\xff\xfe\xfa"})
        assert extract_text(archive, "package/plugin.json") is None
        assert extract_bytes(archive, "package/plugin.json") == b"\xff\xfe\xfa"
