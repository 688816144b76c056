"""File handler module: encoding-aware reads and directory-creating writes.

Provides the file I/O used by the exporter (writes) and importer (reads).
"""

from pathlib import Path

from charset_normalizer import from_bytes


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    UTF-8 is tried strictly before detection so that exported files are
    always decoded exactly as written.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(result), result.encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write text to a file, creating parent directories as needed.

    Newlines are written untranslated so content round-trips exactly.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode(encoding)
    path.write_bytes(data)
    return len(data)


def write_bytes(path: Path, data: bytes) -> int:
    """Write binary data to a file, creating parent directories as needed.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return len(data)
