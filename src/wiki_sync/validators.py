"""
Input validation for page paths and filenames.

Validation functions return ``(is_valid, error_message)`` tuples so that
callers can decide whether a failure is fatal or only skips one item.
"""


def format_validation_error(field_name: str, reason: str) -> str:
    """Generate consistent error message for validation failures."""
    return f"{field_name} {reason}"


def validate_page_path(path: str) -> tuple[bool, str]:
    """
    Validate a hierarchical page path such as ``/guides/intro``.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Must start with '/'
        - Cannot contain '..' segments (path traversal protection)
        - Cannot contain a backslash or NUL character
    """
    if not path or not path.strip():
        return (
            False,
            format_validation_error("Page path", "cannot be empty"),
        )

    if not path.startswith("/"):
        return (
            False,
            format_validation_error("Page path", "must start with '/'"),
        )

    segments = [s for s in path.split("/") if s]
    if any(s in (".", "..") for s in segments):
        return (
            False,
            format_validation_error(
                "Page path", "cannot contain '.' or '..' segments"
            ),
        )

    if "\\" in path or "\x00" in path:
        return (
            False,
            format_validation_error(
                "Page path", "cannot contain backslashes or NUL"
            ),
        )

    return (True, "")


def validate_filename(filename: str) -> tuple[bool, str]:
    """
    Validate an image filename taken from a ``.meta`` sidecar.

    The filename is used as a path component below ``images/``, so it must
    not escape that directory.
    """
    if not filename or not filename.strip():
        return (
            False,
            format_validation_error("Filename", "cannot be empty"),
        )

    if "/" in filename or "\\" in filename or filename in (".", ".."):
        return (
            False,
            format_validation_error(
                "Filename", "cannot contain path separators"
            ),
        )

    return (True, "")
