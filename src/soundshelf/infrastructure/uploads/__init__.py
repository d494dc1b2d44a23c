"""Upload acceptance for multipart requests."""

from .filters import (
    AUDIO_EXTENSIONS,
    AUDIO_MIME_TYPES,
    IMAGE_EXTENSIONS,
    IMAGE_MIME_TYPES,
    FileKind,
    accept_file,
    destination_for,
    generate_filename,
    kind_for_field,
)
from .pipeline import (
    AVATAR_UPLOAD,
    SONG_UPLOAD,
    FieldRule,
    UploadBatch,
    UploadedFile,
    UploadPipeline,
    UploadPolicy,
)

__all__ = [
    "AUDIO_EXTENSIONS",
    "AUDIO_MIME_TYPES",
    "AVATAR_UPLOAD",
    "IMAGE_EXTENSIONS",
    "IMAGE_MIME_TYPES",
    "SONG_UPLOAD",
    "FieldRule",
    "FileKind",
    "UploadBatch",
    "UploadPipeline",
    "UploadPolicy",
    "UploadedFile",
    "accept_file",
    "destination_for",
    "generate_filename",
    "kind_for_field",
]
