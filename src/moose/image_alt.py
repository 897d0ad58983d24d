"""Assign image alt text from the surrounding heading context.

Each image gets the text of the nearest heading above it. Images above the
first heading use the first heading (the document title), and documents
without headings fall back to the image's file extension. Repeated alt
texts are numbered: ``Setup``, ``Setup 02``, ``Setup 03``...
"""

import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from .edits import TextEdit

IMAGE_PATTERN = re.compile(r"!\[(.*?)\]\((.*?)\)")
HEADING_PATTERN = re.compile(r"^(#{1,6})[ \t]+(.+)$", re.MULTILINE)
CODE_BLOCK_PATTERN = re.compile(r"```.*?```", re.DOTALL)
_NON_ALT_CHARS = re.compile(r"[^a-zA-Z0-9\s]")

FALLBACK_ALT = "image"


@dataclass(frozen=True)
class ImageMatch:
    """An image reference ``![alt](url)`` found in a document."""

    full_text: str
    alt_text: str
    url: str
    position: int


@dataclass(frozen=True)
class HeadingMatch:
    text: str
    level: int
    position: int


@dataclass
class AltTextResult:
    """Outcome of an alt text pass over one document."""

    images: list[ImageMatch] = field(default_factory=list)
    edits: list[TextEdit] = field(default_factory=list)

    @property
    def replaced(self) -> int:
        return len(self.edits)


def find_code_blocks(content: str) -> list[tuple[int, int]]:
    """Character spans of fenced code blocks."""
    return [(m.start(), m.end()) for m in CODE_BLOCK_PATTERN.finditer(content)]


def extract_images(content: str) -> list[ImageMatch]:
    """Extract all Markdown images, ignoring those inside fenced code blocks."""
    code_blocks = find_code_blocks(content)
    images = []
    for match in IMAGE_PATTERN.finditer(content):
        position = match.start()
        if any(start <= position <= end for start, end in code_blocks):
            continue
        images.append(
            ImageMatch(
                full_text=match.group(0),
                alt_text=match.group(1),
                url=match.group(2),
                position=position,
            )
        )
    return images


def extract_headings(content: str) -> list[HeadingMatch]:
    """Extract ATX headings (``#`` to ``######``) in document order."""
    return [
        HeadingMatch(
            text=match.group(2).strip(),
            level=len(match.group(1)),
            position=match.start(),
        )
        for match in HEADING_PATTERN.finditer(content)
    ]


def sanitize_alt_text(text: str) -> str:
    """Keep only ASCII letters, digits and whitespace."""
    return _NON_ALT_CHARS.sub("", text).strip()


def get_file_extension(url: str) -> str:
    """Lower-cased file extension of a URL or path, or ``image`` if it has none."""
    try:
        path = urlsplit(url).path
    except ValueError:
        path = re.split(r"[?#]", url, maxsplit=1)[0]
    name = path.rstrip("/").rsplit("/", 1)[-1]
    if "." not in name:
        return FALLBACK_ALT
    extension = name.rsplit(".", 1)[1].lower()
    return extension or FALLBACK_ALT


def find_nearest_heading(
    image: ImageMatch, headings: list[HeadingMatch]
) -> HeadingMatch | None:
    """The heading closest above the image, if any."""
    nearest = None
    for heading in headings:
        if heading.position >= image.position:
            break
        nearest = heading
    return nearest


def choose_alt_text(image: ImageMatch, headings: list[HeadingMatch]) -> str:
    """Pick the base alt text for an image: heading, title, then extension."""
    heading = find_nearest_heading(image, headings)
    if heading is None and headings:
        heading = headings[0]
    if heading is not None:
        alt = sanitize_alt_text(heading.text)
        if alt:
            return alt
    return sanitize_alt_text(get_file_extension(image.url)) or FALLBACK_ALT


def assign_alt_text(content: str, overwrite_existing: bool = False) -> AltTextResult:
    """Compute alt text edits for every image in a document.

    Args:
        content: Markdown document text
        overwrite_existing: Also replace alt text that is already set

    Returns:
        AltTextResult with the images considered and the edits to apply
    """
    images = extract_images(content)
    headings = extract_headings(content)
    result = AltTextResult(images=images)

    used: dict[str, int] = {}
    for image in images:
        if image.alt_text and not overwrite_existing:
            continue

        base = choose_alt_text(image, headings)
        count = used.get(base, 0)
        used[base] = count + 1
        alt = base if count == 0 else f"{base} {count + 1:02d}"

        new_text = f"![{alt}]({image.url})"
        if new_text != image.full_text:
            result.edits.append(
                TextEdit(
                    start=image.position,
                    end=image.position + len(image.full_text),
                    new_text=new_text,
                )
            )

    return result
