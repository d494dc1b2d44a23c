"""Unit tests for upload type filtering, naming and destinations."""

from pathlib import Path

import pytest

from soundshelf.config import StorageSettings
from soundshelf.domain.exceptions import UploadRejectedError
from soundshelf.infrastructure.uploads import (
    FileKind,
    accept_file,
    destination_for,
    generate_filename,
    kind_for_field,
)


class TestAcceptFile:
    """MIME type OR extension has to be on the allow-list."""

    @pytest.mark.parametrize(
        ("name", "content_type"),
        [
            ("song.mp3", "audio/mpeg"),
            ("song.m4a", "application/octet-stream"),
            ("song.FLAC", "audio/x-flac"),
            ("noext", "audio/ogg"),
            ("song.wav", "audio/wav; codecs=1"),
        ],
    )
    def test_audio_accepted(self, name: str, content_type: str) -> None:
        accept_file(FileKind.AUDIO, name, content_type)

    def test_audio_rejected_lists_extensions(self) -> None:
        with pytest.raises(UploadRejectedError) as exc_info:
            accept_file(FileKind.AUDIO, "notes.txt", "text/plain")

        assert exc_info.value.kind == "file_type"
        assert exc_info.value.message.startswith("Invalid audio format. Allowed formats: .mp3")

    def test_image_rules_differ_from_audio(self) -> None:
        accept_file(FileKind.IMAGE, "cover.webp", None)

        with pytest.raises(UploadRejectedError):
            accept_file(FileKind.IMAGE, "cover.mp3", "audio/mpeg")


def test_kind_for_field() -> None:
    assert kind_for_field("audio") == FileKind.AUDIO
    assert kind_for_field("coverImage") == FileKind.IMAGE
    assert kind_for_field("avatar") == FileKind.IMAGE

    with pytest.raises(UploadRejectedError) as exc_info:
        kind_for_field("document")

    assert exc_info.value.kind == "unexpected_field"


class TestGenerateFilename:
    def test_shape(self) -> None:
        assert generate_filename("My Song (live).mp3", now_ms=1700000000000, suffix=42) == (
            "My-Song--live--1700000000000-42.mp3"
        )

    def test_path_segments_are_dropped(self) -> None:
        name = generate_filename("../../etc/passwd.mp3", now_ms=1, suffix=2)

        assert name == "passwd-1-2.mp3"
        assert "/" not in name

    def test_windows_path(self) -> None:
        assert generate_filename(r"C:\music\track.flac", now_ms=1, suffix=2) == "track-1-2.flac"

    def test_long_base_is_truncated(self) -> None:
        name = generate_filename("a" * 80 + ".ogg", now_ms=1, suffix=2)

        assert name == "a" * 50 + "-1-2.ogg"

    def test_non_ascii_becomes_dashes(self) -> None:
        assert generate_filename("歌曲.mp3", now_ms=1, suffix=2) == "---1-2.mp3"

    def test_random_names_differ(self) -> None:
        assert generate_filename("a.mp3") != generate_filename("a.mp3")


@pytest.mark.parametrize(
    ("field", "directory", "url"),
    [
        ("audio", "audio", "/uploads/audio"),
        ("coverImage", "images", "/uploads/images"),
        ("avatar", "images", "/uploads/images"),
        ("other", "temp", "/uploads/temp"),
    ],
)
def test_destination_by_field(field: str, directory: str, url: str, tmp_path: Path) -> None:
    storage = StorageSettings(upload_path=tmp_path)

    path, prefix = destination_for(field, storage)

    assert path == tmp_path / directory
    assert prefix == url
