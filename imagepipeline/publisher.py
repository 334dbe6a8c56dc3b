import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol
from urllib.parse import unquote, urlparse

from .errors import ConfigError, PublishError

logger = logging.getLogger("imagepipeline")

DEFAULT_FOLDER = "processed-club-images"
MOCK_CDN_BASE = "https://mock-cdn.com"


@dataclass
class PublishedAsset:
    url: str
    public_id: str
    width: Optional[int] = None
    height: Optional[int] = None


class Publisher(Protocol):
    def publish(
        self,
        data: bytes,
        storage_key: str,
        tags: Optional[List[str]] = None,
    ) -> PublishedAsset:
        ...


@dataclass(frozen=True)
class CloudinaryCredentials:
    cloud_name: str
    api_key: str
    api_secret: str

    @classmethod
    def from_url(cls, url: str) -> "CloudinaryCredentials":
        """
        Parse a `cloudinary://<api_key>:<api_secret>@<cloud_name>` URL.
        """
        parsed = urlparse(url)
        if parsed.scheme != "cloudinary" or not (parsed.username and parsed.password and parsed.hostname):
            raise ConfigError("CLOUDINARY_URL must look like cloudinary://<api_key>:<api_secret>@<cloud_name>")
        return cls(
            cloud_name=parsed.hostname,
            api_key=unquote(parsed.username),
            api_secret=unquote(parsed.password),
        )


@dataclass
class CloudinaryPublisher:
    """
    Uploads encoded assets to Cloudinary.

    Credentials are passed on every call instead of through the SDK's
    global config, so several publishers can coexist in one process.
    """

    credentials: CloudinaryCredentials
    folder: str = DEFAULT_FOLDER
    timeout: float = 60.0
    base_tags: List[str] = field(default_factory=lambda: ["processed"])

    def publish(
        self,
        data: bytes,
        storage_key: str,
        tags: Optional[List[str]] = None,
    ) -> PublishedAsset:
        import cloudinary.exceptions
        import cloudinary.uploader

        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(data),
                resource_type="image",
                public_id=storage_key,
                folder=self.folder,
                overwrite=True,
                tags=self.base_tags + list(tags or []),
                timeout=self.timeout,
                cloud_name=self.credentials.cloud_name,
                api_key=self.credentials.api_key,
                api_secret=self.credentials.api_secret,
            )
        except (cloudinary.exceptions.Error, OSError) as exc:
            raise PublishError(f"Cloudinary upload failed for {storage_key}: {exc}") from exc

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise PublishError(f"Cloudinary returned no URL for {storage_key}")
        logger.debug("Uploaded %s -> %s", storage_key, url)
        return PublishedAsset(
            url=url,
            public_id=result.get("public_id", storage_key),
            width=result.get("width"),
            height=result.get("height"),
        )


@dataclass
class MockPublisher:
    """
    Local stand-in used when no destination credentials are configured.
    Returns deterministic URLs and keeps the last payload per key.
    """

    folder: str = DEFAULT_FOLDER
    base_url: str = MOCK_CDN_BASE
    uploads: dict = field(default_factory=dict)

    def publish(
        self,
        data: bytes,
        storage_key: str,
        tags: Optional[List[str]] = None,
    ) -> PublishedAsset:
        public_id = f"{self.folder}/{storage_key}" if self.folder else storage_key
        self.uploads[public_id] = data
        return PublishedAsset(url=f"{self.base_url}/{public_id}.webp", public_id=public_id)
