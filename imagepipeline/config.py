"""Runtime settings for the pipeline, read once from the environment."""

import os
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, TypeVar

from .errors import ConfigError
from .publisher import DEFAULT_FOLDER, CloudinaryCredentials
from .render import ImageProfile, SlotKind, build_profiles

T = TypeVar("T")


@dataclass
class PipelineConfig:
    """Credentials and tuning knobs passed explicitly to each component."""

    cloudinary: Optional[CloudinaryCredentials] = None
    cloudinary_folder: str = DEFAULT_FOLDER
    airtable_api_key: Optional[str] = None
    airtable_base_id: Optional[str] = None
    airtable_table_name: Optional[str] = None
    hero_max_dimension: Optional[int] = None
    logo_max_dimension: Optional[int] = None
    gallery_max_dimension: Optional[int] = None
    image_quality: Optional[int] = None
    max_workers: int = 1
    download_timeout: float = 30.0
    publish_timeout: float = 60.0
    store_timeout: float = 30.0

    @property
    def airtable_configured(self) -> bool:
        return bool(self.airtable_api_key and self.airtable_base_id and self.airtable_table_name)

    def profiles(self) -> Dict[SlotKind, ImageProfile]:
        return build_profiles(
            hero_max=self.hero_max_dimension,
            logo_max=self.logo_max_dimension,
            gallery_max=self.gallery_max_dimension,
            quality=self.image_quality,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(name)
            return value.strip() if value and value.strip() else None

        config = cls(
            cloudinary=_cloudinary_credentials(get),
            cloudinary_folder=get("CLOUDINARY_FOLDER") or DEFAULT_FOLDER,
            airtable_api_key=get("AIRTABLE_API_KEY"),
            airtable_base_id=get("AIRTABLE_BASE_ID"),
            airtable_table_name=get("AIRTABLE_TABLE_NAME"),
            hero_max_dimension=_parse("HERO_MAX_DIMENSION", get, int),
            logo_max_dimension=_parse("LOGO_MAX_DIMENSION", get, int),
            gallery_max_dimension=_parse("GALLERY_MAX_DIMENSION", get, int),
            image_quality=_parse("IMAGE_QUALITY", get, int),
            max_workers=_parse("PIPELINE_MAX_WORKERS", get, int, default=1),
            download_timeout=_parse("DOWNLOAD_TIMEOUT", get, float, default=30.0),
            publish_timeout=_parse("PUBLISH_TIMEOUT", get, float, default=60.0),
            store_timeout=_parse("STORE_TIMEOUT", get, float, default=30.0),
        )
        config.validate()
        return config

    def validate(self) -> None:
        for name in ("hero_max_dimension", "logo_max_dimension", "gallery_max_dimension"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")
        if self.image_quality is not None and not 1 <= self.image_quality <= 100:
            raise ConfigError(f"image_quality must be between 1 and 100, got {self.image_quality}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")
        for name in ("download_timeout", "publish_timeout", "store_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")


def _cloudinary_credentials(get: Callable[[str], Optional[str]]) -> Optional[CloudinaryCredentials]:
    url = get("CLOUDINARY_URL")
    if url:
        return CloudinaryCredentials.from_url(url)
    cloud_name = get("CLOUDINARY_CLOUD_NAME")
    api_key = get("CLOUDINARY_API_KEY")
    api_secret = get("CLOUDINARY_API_SECRET")
    if cloud_name and api_key and api_secret:
        return CloudinaryCredentials(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret)
    return None


def _parse(
    name: str,
    get: Callable[[str], Optional[str]],
    kind: Callable[[str], T],
    default: Optional[T] = None,
) -> Optional[T]:
    raw = get(name)
    if raw is None:
        return default
    try:
        return kind(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
