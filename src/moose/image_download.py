"""Download remote Markdown images and point the links at the local copies."""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import parse_qs, unquote, urlsplit

import httpx

from .edits import Document, TextEdit
from .errors import ImageDownloadError
from .logging import debug, error
from .paths import CURRENT_DIR, ensure_image_directory, get_image_download_path

IMAGE_URL_PATTERN = re.compile(r"!\[.*?\]\((https?://[^\s)]+)\)")

# Next.js-style image optimizer: /_next/image?url=<original>&w=...
PROXY_PATH_SEGMENT = "_next/image"
PROXY_URL_PARAM = "url"

USER_AGENT = "markdown-moose/1.0 (+image downloader)"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_FILE_SIZE_MB = 10

ProgressCallback = Callable[[str, float], None]


@dataclass(frozen=True)
class CleanUrl:
    """A remote image URL and the local filename it should be saved as."""

    url: str
    filename: str


@dataclass(frozen=True)
class DownloadPolicy:
    overwrite_existing: bool = False
    limit_file_size: bool = False
    max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB
    timeout: float = DEFAULT_TIMEOUT

    @property
    def max_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    @classmethod
    def from_settings(cls, resolver, document_path: Path) -> "DownloadPolicy":
        """Resolve the imageDownloader settings that govern a download run."""

        def setting(key, default):
            return resolver.resolve("imageDownloader", key, document_path, default)

        return cls(
            overwrite_existing=bool(setting("overwriteExisting", False)),
            limit_file_size=bool(setting("limitFileSize", False)),
            max_file_size_mb=float(setting("maxFileSizeMB", DEFAULT_MAX_FILE_SIZE_MB)),
            timeout=float(setting("timeout", DEFAULT_TIMEOUT)),
        )


@dataclass
class DownloadResult:
    """Outcome of downloading every remote image in a document."""

    images: list[CleanUrl] = field(default_factory=list)
    downloaded: list[CleanUrl] = field(default_factory=list)
    skipped: list[CleanUrl] = field(default_factory=list)
    failed: list[ImageDownloadError] = field(default_factory=list)
    edits: list[TextEdit] = field(default_factory=list)
    target_dir: str | None = None


def _safe_basename(path: str) -> str | None:
    """Percent-decoded last segment of a URL path, without any directory part."""
    name = unquote(path.rsplit("/", 1)[-1])
    name = name.replace("\\", "/").rsplit("/", 1)[-1]
    if name in ("", ".", ".."):
        return None
    return name


def clean_image_url(url: str) -> CleanUrl | None:
    """Derive the local filename for an image URL.

    Proxy URLs (``/_next/image?url=...``) are named after the original image
    they wrap rather than after the proxy endpoint.

    Args:
        url: Remote image URL

    Returns:
        CleanUrl, or None if no usable filename can be derived
    """
    try:
        parsed = urlsplit(url)
        source_path = parsed.path
        if PROXY_PATH_SEGMENT in parsed.path:
            original = parse_qs(parsed.query).get(PROXY_URL_PARAM)
            if not original:
                debug(f"Proxy image URL without '{PROXY_URL_PARAM}' parameter: {url}")
                return None
            source_path = urlsplit(original[0]).path
    except ValueError as e:
        debug(f"Error parsing URL {url}: {e}")
        return None

    filename = _safe_basename(source_path)
    if filename is None:
        debug(f"No filename in image URL: {url}")
        return None
    return CleanUrl(url=url, filename=filename)


def collect_remote_images(markdown_content: str) -> list[CleanUrl]:
    """Find every ``![...](http(s)://...)`` image that has a usable filename."""
    images = []
    for match in IMAGE_URL_PATTERN.finditer(markdown_content):
        clean = clean_image_url(match.group(1))
        if clean is not None:
            images.append(clean)
    return images


def unique_filename(filename: str, taken: set[str]) -> str:
    """filename, or ``stem-2.ext``, ``stem-3.ext``... if already taken."""
    if filename not in taken:
        return filename
    path = Path(filename)
    counter = 2
    while f"{path.stem}-{counter}{path.suffix}" in taken:
        counter += 1
    return f"{path.stem}-{counter}{path.suffix}"


def relative_link(target_dir: str, filename: str) -> str:
    """Link to a downloaded image, relative to the document."""
    if target_dir in ("", CURRENT_DIR, "./"):
        return f"./{filename}"
    return f"{target_dir.rstrip('/')}/{filename}"


def download_image(
    clean_url: CleanUrl,
    destination: Path,
    policy: DownloadPolicy,
    client: httpx.Client,
) -> Path | None:
    """Download one image.

    Args:
        clean_url: Image to fetch
        destination: File to write
        policy: Overwrite and size rules
        client: HTTP client

    Returns:
        destination on success, None if skipped because the file exists

    Raises:
        ImageDownloadError: On HTTP errors, oversized images or write failures
    """
    if destination.exists() and not policy.overwrite_existing:
        debug(f"Skipping {clean_url.filename}: {destination} already exists")
        return None

    debug(f"Downloading image from {clean_url.url} to {destination}")
    try:
        with client.stream("GET", clean_url.url) as response:
            if not response.is_success:
                raise ImageDownloadError(
                    clean_url.url,
                    f"HTTP {response.status_code} {response.reason_phrase}".rstrip(),
                )
            if policy.limit_file_size:
                declared = response.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > policy.max_bytes:
                    raise ImageDownloadError(
                        clean_url.url,
                        f"{int(declared)} bytes exceeds the {policy.max_file_size_mb:g} MB limit",
                    )
            data = response.read()
    except httpx.HTTPError as e:
        raise ImageDownloadError(clean_url.url, str(e) or type(e).__name__) from e

    try:
        destination.write_bytes(data)
    except OSError as e:
        raise ImageDownloadError(clean_url.url, f"cannot write {destination}: {e}") from e

    debug(f"Saved {destination} ({len(data)} bytes)")
    return destination


def download_images(
    document: Document,
    resolver,
    client: httpx.Client | None = None,
    progress: ProgressCallback | None = None,
) -> DownloadResult:
    """Download all remote images of a document and rewrite their links.

    Images are fetched one at a time. A failed image is logged and recorded
    in the result; the remaining images are still processed.

    Args:
        document: Markdown document
        resolver: SettingsResolver for the imageDownloader settings
        client: HTTP client to use (one is created and closed if omitted)
        progress: Called with (filename, fraction done) after each image

    Returns:
        DownloadResult; its single edit (if any) rewrites the whole document
    """
    images = collect_remote_images(document.text)
    result = DownloadResult(images=images)
    if not images:
        return result

    image_path = get_image_download_path(document.path, resolver)
    target_dir = ensure_image_directory(document.directory, image_path)
    result.target_dir = target_dir
    policy = DownloadPolicy.from_settings(resolver, document.path)

    owns_client = client is None
    if owns_client:
        client = httpx.Client(
            timeout=policy.timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    text = document.text
    # filename written for each URL in this run, and every filename taken
    saved_as: dict[str, str] = {}
    taken: set[str] = set()
    try:
        for index, clean in enumerate(images, start=1):
            filename = saved_as.get(clean.url)
            if filename is None:
                filename = unique_filename(clean.filename, taken)
                destination = document.directory / target_dir / filename
                try:
                    saved = download_image(clean, destination, policy, client)
                except ImageDownloadError as e:
                    error(str(e))
                    result.failed.append(e)
                else:
                    if saved is None:
                        result.skipped.append(clean)
                    else:
                        saved_as[clean.url] = filename
                        taken.add(filename)
                        result.downloaded.append(CleanUrl(clean.url, filename))

            if clean.url in saved_as:
                text = text.replace(clean.url, relative_link(target_dir, filename), 1)

            if progress is not None:
                progress(filename, index / len(images))
    finally:
        if owns_client:
            client.close()

    if text != document.text:
        result.edits.append(TextEdit(start=0, end=len(document.text), new_text=text))
    return result
