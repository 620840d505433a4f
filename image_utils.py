import asyncio
import base64
import io
import mimetypes
import os
import re
from dataclasses import dataclass

from PIL import Image as PILImage, UnidentifiedImageError

ACCEPTED_MIME_TYPES = ("image/png", "image/jpeg", "image/webp")

DATA_URL_RE = re.compile(r"data:([^;]+);base64,(.+)")


class ReadError(Exception):
    """The uploaded file could not be read."""


class FormatError(ValueError):
    """A string is not a base64 data URL."""


@dataclass(frozen=True)
class Image:
    encoded: str
    mime_type: str

    @property
    def display_url(self):
        return f"data:{self.mime_type};base64,{self.encoded}"

    @classmethod
    def from_bytes(cls, data, mime_type):
        return cls(base64.b64encode(data).decode("utf-8"), mime_type)

    @classmethod
    def from_data_url(cls, data_url):
        parsed = decode_data_url(data_url)
        return cls(parsed["encoded"], parsed["mimeType"])

    def to_bytes(self):
        return base64.b64decode(self.encoded)

    def as_part(self):
        """Shape expected by the generation client for a reference image."""
        return {"data": self.encoded, "mimeType": self.mime_type}


def decode_data_url(data_url):
    """Split a data URL into its mime type and raw base64 payload.

    The whole string must be ``data:<mime>;base64,<payload>``: the mime type is
    one or more characters other than ``;`` and the payload is a non-empty
    single line. Neither part is validated further.
    """
    m = DATA_URL_RE.fullmatch(data_url)
    if not m or len(m.groups()) != 2:
        raise FormatError("Invalid data URL format")
    return {"mimeType": m.group(1), "encoded": m.group(2)}


def encode_as_data_url(image):
    return image.display_url


def _guess_mime_type(file):
    for attr in ("mimetype", "content_type"):
        value = getattr(file, attr, None)
        if value:
            return value.split(";")[0].strip()
    if isinstance(file, (str, os.PathLike)):
        name = file
    else:
        name = getattr(file, "filename", None) or getattr(file, "name", None)
    if name:
        guessed, _ = mimetypes.guess_type(str(name))
        if guessed:
            return guessed
    return "application/octet-stream"


def _read_bytes(file):
    if isinstance(file, (str, os.PathLike)):
        with open(file, "rb") as f:
            return f.read()
    data = file.read()
    if isinstance(data, str):
        raise ReadError("File was opened in text mode")
    return data


async def read_file(file):
    """Read an uploaded file, returning ``(bytes, mime_type)``."""
    try:
        data = await asyncio.to_thread(_read_bytes, file)
    except (OSError, ValueError) as e:
        raise ReadError(f"Could not read file: {e}") from e
    return data, _guess_mime_type(file)


async def encode_file_to_data_url(file):
    """Read a path or binary file object and return it as a data URL."""
    data, mime_type = await read_file(file)
    return Image.from_bytes(data, mime_type).display_url


# Pillow reports multi-picture JPEGs from phone cameras as MPO
_MIME_OVERRIDES = {"MPO": "image/jpeg"}


def sniff_mime_type(data):
    """Identify the real image format of ``data`` with Pillow, or None.

    Raises ReadError when the image is too large to open safely.
    """
    try:
        with PILImage.open(io.BytesIO(data)) as img:
            fmt = img.format
    except PILImage.DecompressionBombError as e:
        raise ReadError(f"Image is too large to process: {e}") from e
    except (UnidentifiedImageError, OSError):
        return None
    return _MIME_OVERRIDES.get(fmt) or PILImage.MIME.get(fmt)
