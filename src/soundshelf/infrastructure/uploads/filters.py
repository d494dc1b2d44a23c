"""File type filtering, filename generation and destination selection for uploads."""

import random
import re
import time
from enum import Enum
from pathlib import Path, PurePosixPath, PureWindowsPath

from soundshelf.config import StorageSettings
from soundshelf.domain.exceptions import UploadRejectedError


class FileKind(str, Enum):
    """Kind of media a form field carries."""

    AUDIO = "audio"
    IMAGE = "image"


AUDIO_MIME_TYPES = frozenset(
    {
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/wave",
        "audio/x-wav",
        "audio/aac",
        "audio/ogg",
        "audio/webm",
        "audio/mp4",
        "audio/m4a",
        "audio/x-m4a",
        "audio/flac",
    }
)
AUDIO_EXTENSIONS = (".mp3", ".wav", ".aac", ".ogg", ".webm", ".mp4", ".m4a", ".flac")

IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")

_ALLOW_LISTS: dict[FileKind, tuple[frozenset[str], tuple[str, ...]]] = {
    FileKind.AUDIO: (AUDIO_MIME_TYPES, AUDIO_EXTENSIONS),
    FileKind.IMAGE: (IMAGE_MIME_TYPES, IMAGE_EXTENSIONS),
}

# Field name -> kind. Anything not listed here is not a file field we know about.
FIELD_KINDS: dict[str, FileKind] = {
    "audio": FileKind.AUDIO,
    "coverImage": FileKind.IMAGE,
    "avatar": FileKind.IMAGE,
}

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")
MAX_BASENAME_LENGTH = 50


def _base_name(original_name: str) -> str:
    # Clients may send "C:\music\song.mp3" or "../../song.mp3" - keep only the last segment
    return PurePosixPath(PureWindowsPath(original_name).name).name


def file_extension(original_name: str) -> str:
    """Extension of the client's filename including the dot ("" when there is none)."""
    return PurePosixPath(_base_name(original_name)).suffix


# Hey future me, this is an OR policy on purpose! A file passes when its declared MIME type OR its
# lower-cased extension is on the list. Browsers and phones send "application/octet-stream" for
# .m4a or "audio/x-flac" for .flac often enough that requiring both to agree rejects real uploads.
def accept_file(kind: FileKind, original_name: str, content_type: str | None) -> None:
    """Check a file against the allow-list of its kind.

    Raises:
        UploadRejectedError: kind="file_type", message naming the allowed extensions
    """
    mime_types, extensions = _ALLOW_LISTS[kind]
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime in mime_types or file_extension(original_name).lower() in extensions:
        return
    raise UploadRejectedError(
        f"Invalid {kind.value} format. Allowed formats: {', '.join(extensions)}",
        kind="file_type",
    )


def kind_for_field(field_name: str) -> FileKind:
    """Kind of file expected in a form field.

    Raises:
        UploadRejectedError: For field names that never carry files
    """
    kind = FIELD_KINDS.get(field_name)
    if kind is None:
        raise UploadRejectedError("Invalid field name", kind="unexpected_field")
    return kind


def generate_filename(
    original_name: str,
    now_ms: int | None = None,
    suffix: int | None = None,
) -> str:
    """Build a unique storage filename: ``<safe-base>-<epoch ms>-<random>.<ext>``.

    The base keeps only ASCII letters and digits (everything else becomes ``-``) and is cut
    to 50 characters. Uniqueness comes from the millisecond timestamp plus a random number
    in 0..1e9 - collision-resistant, not cryptographically unique.
    """
    extension = file_extension(original_name)
    stem = _base_name(original_name)
    if extension:
        stem = stem[: -len(extension)]
    safe = _UNSAFE_CHARS.sub("-", stem)[:MAX_BASENAME_LENGTH]
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if suffix is None:
        suffix = round(random.random() * 1e9)
    return f"{safe}-{now_ms}-{suffix}{extension}"


def destination_for(field_name: str, storage: StorageSettings) -> tuple[Path, str]:
    """Directory and public URL prefix for a form field.

    Chosen purely by field name: audio -> audio/, coverImage and avatar -> images/,
    anything else -> temp/.
    """
    kind = FIELD_KINDS.get(field_name)
    prefix = storage.public_prefix.rstrip("/")
    if kind == FileKind.AUDIO:
        return storage.audio_path, f"{prefix}/audio"
    if kind == FileKind.IMAGE:
        return storage.image_path, f"{prefix}/images"
    return storage.temp_path, f"{prefix}/temp"
