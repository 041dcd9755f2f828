"""Inline CV attachments stored as data URLs on the application document."""

import asyncio
import base64
import binascii
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .models import Attachment, JobApplication

logger = logging.getLogger(__name__)

# Firestore documents are capped at 1 MiB and base64 inflates content by a
# third, which leaves this much room for the file plus the other fields.
MAX_ATTACHMENT_BYTES = 800 * 1024

DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_FILE_NAME = "resume"


class AttachmentTooLargeError(ValueError):
    """The selected file exceeds MAX_ATTACHMENT_BYTES."""

    def __init__(self, size: int):
        super().__init__(
            "File is too large. For database storage, please choose a file under 800KB."
        )
        self.size = size


class AttachmentReadError(OSError):
    """The selected file could not be read."""

    def __init__(self) -> None:
        super().__init__("Failed to read file.")


@dataclass(frozen=True)
class SelectedFile:
    """A file picked by the user: name, size in bytes and a reader."""

    name: str
    size: int
    read: Callable[[], bytes]

    @classmethod
    def from_path(cls, path: Path) -> "SelectedFile":
        return cls(name=path.name, size=path.stat().st_size, read=path.read_bytes)


def check_size(file: SelectedFile) -> None:
    """Reject files over the inline attachment ceiling."""
    if file.size > MAX_ATTACHMENT_BYTES:
        logger.warning(
            f"Rejected attachment {file.name}: {file.size} bytes exceeds "
            f"{MAX_ATTACHMENT_BYTES}"
        )
        raise AttachmentTooLargeError(file.size)


def to_data_url(file_name: str, content: bytes) -> str:
    """Build a data URL with a MIME type guessed from the file name."""
    mime_type, _ = mimetypes.guess_type(file_name)
    payload = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{payload}"


async def encode_attachment(file: SelectedFile) -> Attachment:
    """Size-check and read a file into an inline data URL."""
    check_size(file)

    try:
        content = await asyncio.to_thread(file.read)
    except Exception as e:
        logger.error(f"Error reading file {file.name}: {e}")
        raise AttachmentReadError() from e

    logger.debug(f"Encoded attachment {file.name} ({len(content)} bytes)")
    return Attachment(file.name, to_data_url(file.name, content))


def decode_attachment(data_url: str) -> bytes:
    """Return the raw bytes held in a base64 data URL."""
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Attachment is not a base64 data URL")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Attachment payload is not valid base64: {e}") from e


def save_attachment(app: JobApplication, directory: Path) -> Path:
    """Write an application's CV into a directory and return its path."""
    if not app.cv_base64:
        raise ValueError(f"Application {app.id} has no attachment")

    name = Path(app.cv_file_name or "").name
    if name in ("", ".", ".."):
        name = DEFAULT_FILE_NAME
    target = directory / name
    target.write_bytes(decode_attachment(app.cv_base64))
    logger.info(f"Saved attachment for {app.company} to {target}")
    return target
