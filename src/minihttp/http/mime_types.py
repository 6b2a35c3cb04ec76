"""
MIME type lookup for file responses.

File responses carry the Content-Type of the file they were read from.
Only the extension is consulted; unknown extensions fall back to
``application/octet-stream``.
"""

from pathlib import Path
from typing import Optional, Union


MIME_TYPES = {
    # Text
    ".txt": "text/plain",
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".csv": "text/csv",
    ".md": "text/markdown",
    ".xml": "application/xml",
    ".js": "application/javascript",
    ".json": "application/json",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
    ".toml": "text/x-toml",
    ".py": "text/x-python",
    ".rs": "text/x-rust",
    ".sh": "text/x-shellscript",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",

    # Documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",

    # Media
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".webm": "video/webm",

    ".wasm": "application/wasm",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

_TEXT_APPLICATION_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
    "image/svg+xml",
}


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file based on its extension.

        >>> get_mime_type("report.PDF")
        'application/pdf'
        >>> get_mime_type("blob.xyz")
        'application/octet-stream'
    """
    suffix = Path(path).suffix.lower()
    return MIME_TYPES.get(suffix, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    """Check whether a MIME type names text content."""
    return mime_type.startswith("text/") or mime_type in _TEXT_APPLICATION_TYPES


def get_content_type(path: Union[str, Path], charset: str = "utf-8") -> str:
    """
    Get the Content-Type header value for a file.

    Text types get a charset parameter, binary types are returned bare:

        >>> get_content_type("notes.txt")
        'text/plain; charset=utf-8'
        >>> get_content_type("logo.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
