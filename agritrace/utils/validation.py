"""
Input validation utilities for engine entry points.

Provides reusable checks for identifiers, certificate documents and
file paths so that malformed input is rejected before any ledger or
content store call.
"""

import re


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


ALLOWED_DOCUMENT_TYPES = frozenset({
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/json",
    "text/plain",
})

_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_\-\.]+$')


def validate_entity_id(entity_id: str, field_name: str = "id") -> str:
    """
    Validate a product, farmer or certificate ID.

    IDs must be non-empty strings containing only alphanumeric
    characters, hyphens, underscores and dots.

    Args:
        entity_id: The ID to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated ID (stripped of whitespace)

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_entity_id("0b6c5f0e-5d1e-4c52-9a55-0f4f6f3f7a10")
        '0b6c5f0e-5d1e-4c52-9a55-0f4f6f3f7a10'
        >>> validate_entity_id("F1", "farmer_id")
        'F1'
        >>> validate_entity_id("bad id!")  # doctest: +SKIP
        ValidationError: id contains invalid characters
    """
    if not entity_id or not isinstance(entity_id, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    entity_id = entity_id.strip()

    if not entity_id:
        raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    if not _ID_PATTERN.match(entity_id):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "Only alphanumeric, hyphens, underscores, and dots are allowed."
        )

    # Ledger keys are bounded
    if len(entity_id) > 255:
        raise ValidationError(f"{field_name} exceeds maximum length of 255 characters")

    return entity_id


def validate_document(data: bytes, mimetype: str, max_bytes: int, field_name: str = "document") -> str:
    """
    Validate a certificate document before upload.

    Args:
        data: Document bytes
        mimetype: Declared MIME type
        max_bytes: Size limit
        field_name: Name of the field (for error messages)

    Returns:
        The normalized MIME type

    Raises:
        ValidationError: If the document is empty, too large or of a
            type that is not accepted

    Examples:
        >>> validate_document(b"%PDF-1.7", "application/pdf", 1024)
        'application/pdf'
        >>> validate_document(b"MZ", "application/x-msdownload", 1024)  # doctest: +SKIP
        ValidationError: document type application/x-msdownload is not allowed
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ValidationError(f"{field_name} must be bytes, got {type(data).__name__}")

    if not data:
        raise ValidationError(f"{field_name} is empty")

    if len(data) > max_bytes:
        raise ValidationError(f"{field_name} exceeds maximum size of {max_bytes} bytes")

    mimetype = (mimetype or "").split(";")[0].strip().lower()
    if mimetype not in ALLOWED_DOCUMENT_TYPES:
        raise ValidationError(
            f"{field_name} type {mimetype or 'unknown'} is not allowed. "
            f"Allowed types: {', '.join(sorted(ALLOWED_DOCUMENT_TYPES))}"
        )

    return mimetype


def validate_file_path(file_path: str, field_name: str = "file_path") -> str:
    """
    Validate a file path given on the command line.

    Args:
        file_path: The file path to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated file path (stripped of whitespace)

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_file_path("certs/organic-2024.pdf")
        'certs/organic-2024.pdf'
        >>> validate_file_path("cert\\x00.pdf")  # doctest: +SKIP
        ValidationError: file_path contains null bytes
    """
    if not file_path or not isinstance(file_path, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    file_path = file_path.strip()

    if not file_path:
        raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    if "\x00" in file_path:
        raise ValidationError(f"{field_name} contains null bytes")

    if len(file_path) > 4096:  # Linux PATH_MAX
        raise ValidationError(f"{field_name} exceeds maximum length of 4096 characters")

    return file_path
