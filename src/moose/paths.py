"""Image directory validation and creation."""

import os
from pathlib import Path

from .logging import debug, warning

DEFAULT_IMAGE_PATH = "./img"
CURRENT_DIR = "."


def is_path_within(base_path: Path, target_path: str) -> bool:
    """Check whether target_path, resolved against base_path, stays inside it."""
    base = Path(base_path).resolve()
    return (base / target_path).resolve().is_relative_to(base)


def validate_image_path(base_path: Path, image_path: str) -> str | None:
    """Validate an image download path against a document directory.

    Args:
        base_path: Directory of the document
        image_path: Configured download path (relative)

    Returns:
        image_path unchanged if it is relative and stays inside base_path,
        None otherwise
    """
    if not isinstance(image_path, str) or not image_path.strip():
        return None
    if os.path.isabs(image_path) or image_path.startswith("~"):
        return None
    if not is_path_within(base_path, image_path):
        return None
    return image_path


def get_image_download_path(document_path: Path, resolver) -> str:
    """Get the configured, validated image download path for a document.

    Args:
        document_path: Path to the Markdown document
        resolver: SettingsResolver used for ``imageDownloader.path``

    Returns:
        The configured path, or ``./img`` when it is invalid
    """
    configured = resolver.resolve(
        "imageDownloader", "path", document_path, DEFAULT_IMAGE_PATH
    )
    valid = validate_image_path(Path(document_path).parent, configured)
    if valid:
        return valid

    warning(f"Invalid image path {configured!r} in settings. Using {DEFAULT_IMAGE_PATH!r}.")
    return DEFAULT_IMAGE_PATH


def ensure_image_directory(base_path: Path, image_path: str) -> str:
    """Create the image directory, falling back when creation fails.

    Tries image_path, then ``./img``, then the document directory itself.

    Args:
        base_path: Directory of the document
        image_path: Desired image directory, relative to base_path

    Returns:
        The relative directory that images can be saved to
    """
    try:
        (Path(base_path) / image_path).mkdir(parents=True, exist_ok=True)
        debug(f"Image directory: {image_path}")
        return image_path
    except OSError as e:
        warning(
            f"Failed to create directory {image_path} ({e}). "
            f"Trying {DEFAULT_IMAGE_PATH!r} instead."
        )

    if image_path != DEFAULT_IMAGE_PATH:
        try:
            (Path(base_path) / DEFAULT_IMAGE_PATH).mkdir(parents=True, exist_ok=True)
            return DEFAULT_IMAGE_PATH
        except OSError as e:
            warning(f"Failed to create {DEFAULT_IMAGE_PATH!r} ({e}). Using current directory.")
    else:
        warning("Using current directory.")

    return CURRENT_DIR
