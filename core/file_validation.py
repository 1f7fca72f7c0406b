"""
Image type detection using magic bytes — not client-supplied MIME headers.
"""

# Magic byte signatures for allowed formats
# Format: (offset, bytes_to_match)
IMAGE_SIGNATURES = {
    "image/jpeg": [(0, b'\xff\xd8\xff')],
    "image/png":  [(0, b'\x89PNG\r\n\x1a\n')],
    "image/bmp":  [(0, b'BM')],
    "image/webp": [(0, b'RIFF'), (8, b'WEBP')],  # both must match
}

# OpenCV picks the encoder from the extension
IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png":  ".png",
    "image/bmp":  ".bmp",
    "image/webp": ".webp",
}

ALLOWED_IMAGE_TYPES = set(IMAGE_SIGNATURES.keys())


def _read_header(data: bytes, offset: int, length: int) -> bytes:
    """Safely read bytes from a specific offset."""
    if len(data) < offset + length:
        return b''
    return data[offset:offset + length]


def _check_signatures(header: bytes, signatures: list) -> bool:
    """
    Check if header matches ALL signature tuples in the list.
    For formats like WEBP that need two matches.
    """
    for offset, magic in signatures:
        chunk = _read_header(header, offset, len(magic))
        if chunk != magic:
            return False
    return True


def detect_image_type(header: bytes) -> str | None:
    """
    Detect image type from magic bytes.
    Returns MIME type string or None if unrecognised.
    """
    for mime_type, signatures in IMAGE_SIGNATURES.items():
        if _check_signatures(header, signatures):
            return mime_type
    return None


def validate_image_bytes(contents: bytes, allowed_types=None) -> str:
    """
    Validate image bytes using magic bytes.
    Returns detected MIME type.
    Raises ValueError if the data is too small or not an allowed format;
    the upload endpoint maps this to a per-file processing failure.
    """
    if len(contents) < 12:
        raise ValueError("File too small to be a valid image")

    detected = detect_image_type(contents[:16])
    allowed = ALLOWED_IMAGE_TYPES if allowed_types is None else set(allowed_types)

    if detected is None or detected not in allowed:
        raise ValueError(
            "File is not a recognised image format. Supported: JPEG, PNG, BMP, WebP."
        )

    return detected


def extension_for(mime_type: str) -> str:
    """File extension OpenCV should encode to for a detected MIME type."""
    return IMAGE_EXTENSIONS.get(mime_type, ".jpg")
