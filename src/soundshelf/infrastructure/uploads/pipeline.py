"""Multipart upload acceptance: limits, type filtering, streaming to disk and cleanup."""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType

from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request

from soundshelf.config import StorageSettings
from soundshelf.domain.entities import MAX_AUDIO_FILE_SIZE, MAX_IMAGE_FILE_SIZE, FileDescriptor
from soundshelf.domain.exceptions import UploadRejectedError

from .filters import (
    FileKind,
    accept_file,
    destination_for,
    generate_filename,
    kind_for_field,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# Violation kinds that get a policy-specific message instead of the raw parser text
LIMIT_KINDS = ("file_size", "file_count", "field_count", "unexpected_field")


@dataclass(frozen=True)
class FieldRule:
    """Limits for one file field."""

    name: str
    max_size: int
    max_count: int = 1
    required: bool = False
    missing_error: str = "File required"
    missing_message: str = "Please provide a file"

    @property
    def kind(self) -> FileKind:
        return kind_for_field(self.name)


@dataclass(frozen=True)
class UploadPolicy:
    """One upload configuration: allowed fields, limits and user-facing messages."""

    name: str
    fields: tuple[FieldRule, ...]
    max_files: int
    error: str
    messages: dict[str, str] = field(default_factory=dict, hash=False)
    max_fields: int = 100

    def rule_for(self, field_name: str) -> FieldRule | None:
        return next((rule for rule in self.fields if rule.name == field_name), None)

    def reject(self, kind: str, detail: str) -> UploadRejectedError:
        """Build the error for a violation, using the tailored message for limit kinds."""
        if kind in LIMIT_KINDS:
            message = self.messages.get(kind, f"Upload error: {detail}")
        else:
            message = detail
        return UploadRejectedError(message, kind=kind, error=self.error)


SONG_UPLOAD = UploadPolicy(
    name="song",
    fields=(
        FieldRule(
            "audio",
            max_size=MAX_AUDIO_FILE_SIZE,
            required=True,
            missing_error="Audio file required",
            missing_message="Please provide an audio file",
        ),
        FieldRule("coverImage", max_size=MAX_IMAGE_FILE_SIZE),
    ),
    max_files=2,
    error="File upload failed",
    messages={
        "file_size": "File too large. Audio files must be under 100MB, images under 5MB",
        "file_count": "Too many files. Maximum 1 audio file and 1 cover image allowed",
        "field_count": "Too many fields in request",
        "unexpected_field": (
            'Unexpected file field. Only "audio" and "coverImage" fields are allowed'
        ),
    },
)

AVATAR_UPLOAD = UploadPolicy(
    name="avatar",
    fields=(
        FieldRule(
            "avatar",
            max_size=MAX_IMAGE_FILE_SIZE,
            required=True,
            missing_error="No image provided",
            missing_message="Please provide an image file",
        ),
    ),
    max_files=1,
    error="Image upload failed",
    messages={"file_size": "Image too large. Maximum size is 5MB"},
)


@dataclass
class UploadedFile:
    """A file of the current request that has been written to its destination."""

    field_name: str
    path: Path
    original_name: str
    mime_type: str
    size: int
    filename: str
    url: str

    def to_descriptor(self) -> FileDescriptor:
        return FileDescriptor(
            filename=self.filename,
            original_name=self.original_name,
            mime_type=self.mime_type,
            size=self.size,
            url=self.url,
        )


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
        logger.debug(f"Deleted upload {path}")
    except OSError as e:
        logger.error(f"Failed to delete upload {path}: {e}", extra={"path": str(path)})


# Hey future me, UploadBatch is the scoped resource for a request's stored files. The handler
# wraps its work in `async with batch:` - if ANYTHING raises inside (validation, DB error,
# permission check), every file of the batch is deleted before the exception propagates. On a
# clean exit the files stay, they are referenced by the new track/profile now. cleanup() is
# idempotent and never raises: a failed unlink is logged and the original error response wins.
@dataclass
class UploadBatch:
    """Files and plain form fields accepted from one multipart request."""

    files: dict[str, list[UploadedFile]] = field(default_factory=dict)
    fields: dict[str, list[str]] = field(default_factory=dict)
    _cleaned_up: bool = field(default=False, init=False, repr=False)

    def add(self, uploaded: UploadedFile) -> None:
        self.files.setdefault(uploaded.field_name, []).append(uploaded)

    def file(self, field_name: str) -> UploadedFile | None:
        """First file of a field, or None."""
        stored = self.files.get(field_name)
        return stored[0] if stored else None

    def value(self, name: str, default: str | None = None) -> str | None:
        """First plain value of a form field."""
        values = self.fields.get(name)
        return values[0] if values else default

    def values(self, name: str) -> list[str]:
        return list(self.fields.get(name, []))

    @property
    def all_files(self) -> list[UploadedFile]:
        return [uploaded for stored in self.files.values() for uploaded in stored]

    @property
    def cleaned_up(self) -> bool:
        return self._cleaned_up

    async def cleanup(self) -> None:
        """Delete every stored file of the batch (best effort, safe to call repeatedly)."""
        if self._cleaned_up:
            return
        self._cleaned_up = True
        for uploaded in self.all_files:
            await asyncio.to_thread(_remove, uploaded.path)

    async def __aenter__(self) -> "UploadBatch":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc_type is not None:
            logger.info(
                f"Request failed after upload, removing {len(self.all_files)} file(s)",
                extra={"error_type": exc_type.__name__},
            )
            await self.cleanup()
        return False


class UploadPipeline:
    """Accept the files of a multipart request according to an UploadPolicy."""

    def __init__(self, storage: StorageSettings, chunk_size: int = CHUNK_SIZE) -> None:
        self.storage = storage
        self.chunk_size = chunk_size

    # Listen up, accept() is ONE awaited call: it either returns a complete UploadBatch or raises
    # UploadRejectedError with nothing left on disk. Steps:
    #   1. parse the form (Starlette enforces max_files / max_fields while parsing)
    #   2. check every file part BEFORE writing anything (field allowed, per-field count, type,
    #      declared size)
    #   3. stream each file to its destination in chunks, counting bytes as we go
    #   4. re-check required fields
    # A failure in 3 or 4 deletes everything written so far.
    async def accept(self, request: Request, policy: UploadPolicy) -> UploadBatch:
        """Parse, validate and store the files of ``request``.

        Raises:
            UploadRejectedError: On any limit, type or required-field violation
        """
        try:
            form = await request.form(max_files=policy.max_files, max_fields=policy.max_fields)
        except MultiPartException as e:
            raise self._parse_error(policy, e.message) from e
        except StarletteHTTPException as e:
            raise self._parse_error(policy, str(e.detail)) from e

        batch = UploadBatch()
        pending: list[tuple[str, UploadFile]] = []
        for name, value in form.multi_items():
            if isinstance(value, UploadFile):
                pending.append((name, value))
            else:
                batch.fields.setdefault(name, []).append(value)

        try:
            for upload, rule in self._check_parts(pending, policy):
                batch.add(await self._store(upload, rule, policy))
            self._check_required(batch, policy)
        except BaseException:
            await batch.cleanup()
            raise
        finally:
            for _, upload in pending:
                await upload.close()

        logger.debug(
            f"Accepted {len(batch.all_files)} file(s) for {policy.name} upload",
            extra={"files": [f.filename for f in batch.all_files]},
        )
        return batch

    @staticmethod
    def _parse_error(policy: UploadPolicy, detail: str) -> UploadRejectedError:
        lowered = detail.lower()
        if lowered.startswith("too many files"):
            return policy.reject("file_count", detail)
        if lowered.startswith("too many fields"):
            return policy.reject("field_count", detail)
        return policy.reject("other", detail)

    @staticmethod
    def _check_parts(
        parts: list[tuple[str, UploadFile]], policy: UploadPolicy
    ) -> list[tuple[UploadFile, FieldRule]]:
        if len(parts) > policy.max_files:
            raise policy.reject("file_count", "Too many files")
        counts: dict[str, int] = {}
        accepted: list[tuple[UploadFile, FieldRule]] = []
        for name, upload in parts:
            rule = policy.rule_for(name)
            if rule is None:
                raise policy.reject("unexpected_field", "Unexpected field")
            counts[name] = counts.get(name, 0) + 1
            if counts[name] > rule.max_count:
                raise policy.reject("file_count", "Too many files")
            try:
                accept_file(rule.kind, upload.filename or "", upload.content_type)
            except UploadRejectedError as e:
                raise policy.reject(e.kind, e.message) from e
            if upload.size is not None and upload.size > rule.max_size:
                raise policy.reject("file_size", "File too large")
            accepted.append((upload, rule))
        return accepted

    @staticmethod
    def _check_required(batch: UploadBatch, policy: UploadPolicy) -> None:
        for rule in policy.fields:
            if rule.required and len(batch.files.get(rule.name, [])) != 1:
                raise UploadRejectedError(
                    rule.missing_message, kind="missing_file", error=rule.missing_error
                )

    async def _store(
        self, upload: UploadFile, rule: FieldRule, policy: UploadPolicy
    ) -> UploadedFile:
        directory, url_prefix = destination_for(rule.name, self.storage)
        await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
        original_name = upload.filename or ""
        filename = generate_filename(original_name)
        path = directory / filename

        size = 0
        handle = await asyncio.to_thread(path.open, "xb")
        try:
            while chunk := await upload.read(self.chunk_size):
                size += len(chunk)
                if size > rule.max_size:
                    raise policy.reject("file_size", "File too large")
                await asyncio.to_thread(handle.write, chunk)
        except BaseException:
            await asyncio.to_thread(handle.close)
            await asyncio.to_thread(_remove, path)
            raise
        await asyncio.to_thread(handle.close)

        return UploadedFile(
            field_name=rule.name,
            path=path,
            original_name=original_name,
            mime_type=upload.content_type or "application/octet-stream",
            size=size,
            filename=filename,
            url=f"{url_prefix}/{filename}",
        )


__all__ = [
    "AVATAR_UPLOAD",
    "SONG_UPLOAD",
    "FieldRule",
    "UploadBatch",
    "UploadPipeline",
    "UploadPolicy",
    "UploadedFile",
]
