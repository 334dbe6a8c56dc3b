import io
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import requests
from filetype import guess
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, DownloadError
from .publisher import Publisher
from .render import OUTPUT_FORMAT, ImageProfile, ImageSlot, generate_alt_text, render_asset

logger = logging.getLogger("imagepipeline")

MAX_SOURCE_BYTES = 25 * 1024 * 1024
USER_AGENT = "imagepipeline/0.1"


@dataclass
class AssetResult:
    source_url: str
    published_url: str
    storage_key: str
    filename: str
    alt_text: str
    width: int
    height: int
    slot: str
    byte_size: int = 0
    format: str = OUTPUT_FORMAT

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def storage_key_for(slug: str, slot: ImageSlot) -> str:
    return f"{slug}-{slot.name}"


class AssetTransformer:
    """
    Fetch one source image, fit it to a slot profile, re-encode it as WebP
    and publish it under a deterministic key.

    Publishing the same (slug, slot) twice overwrites the earlier asset.
    """

    def __init__(
        self,
        publisher: Publisher,
        session: Optional[requests.Session] = None,
        download_timeout: float = 30.0,
        max_source_bytes: int = MAX_SOURCE_BYTES,
    ) -> None:
        self.publisher = publisher
        self.session = session or _default_session()
        self.download_timeout = download_timeout
        self.max_source_bytes = max_source_bytes

    def transform(
        self,
        source_url: str,
        slot: ImageSlot,
        profile: ImageProfile,
        display_name: str,
        normalized_slug: str,
    ) -> AssetResult:
        logger.info("Processing %s for %s: %s", slot.name, display_name, source_url)

        raw = self.download(source_url)
        img = decode_image(raw, source_url)
        try:
            data, (width, height) = render_asset(img, profile)
        except (OSError, ValueError) as exc:
            raise DecodeError(f"Could not re-encode image from {source_url}: {exc}") from exc

        storage_key = storage_key_for(normalized_slug, slot)
        published = self.publisher.publish(data, storage_key, tags=[slot.kind])

        return AssetResult(
            source_url=source_url,
            published_url=published.url,
            storage_key=published.public_id,
            filename=f"{storage_key}.{OUTPUT_FORMAT}",
            alt_text=generate_alt_text(slot, display_name, normalized_slug),
            width=width,
            height=height,
            slot=slot.name,
            byte_size=len(data),
        )

    def download(self, url: str) -> bytes:
        try:
            resp = self.session.get(url, timeout=self.download_timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise DownloadError(f"Failed to download image: {exc}") from exc

        data = resp.content
        if not data:
            raise DownloadError(f"Failed to download image: empty response from {url}")
        if len(data) > self.max_source_bytes:
            raise DownloadError(
                f"Failed to download image: {len(data)} bytes exceeds limit of {self.max_source_bytes}"
            )
        return data


def decode_image(data: bytes, source: str = "") -> Image.Image:
    """
    Check the file signature before handing bytes to Pillow; HTML error
    pages served with a 200 are a common failure here.
    """
    kind = guess(data)
    if kind is None or not kind.mime.startswith("image/"):
        detected = kind.mime if kind else "unknown"
        raise DecodeError(f"Unsupported image data from {source or 'source'} (detected {detected})")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Could not decode image from {source or 'source'}: {exc}") from exc
    return img


def _default_session() -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session
