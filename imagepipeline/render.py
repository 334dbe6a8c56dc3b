import io
import re
from dataclasses import dataclass, replace
from typing import Dict, Literal, Optional, Tuple

from PIL import Image, ImageOps


SlotKind = Literal["hero", "logo", "gallery"]

MAX_GALLERY_SLOTS = 4
OUTPUT_FORMAT = "webp"


@dataclass(frozen=True)
class ImageSlot:
    kind: SlotKind
    index: int = 0  # 1-based for gallery slots, 0 otherwise

    @property
    def name(self) -> str:
        if self.kind == "gallery":
            return f"gallery-{self.index}"
        return self.kind

    @classmethod
    def parse(cls, name: str) -> "ImageSlot":
        """
        Inverse of `name`: 'hero', 'logo' or 'gallery-N' with N in 1..4.
        """
        if name in ("hero", "logo"):
            return cls(kind=name)  # type: ignore[arg-type]
        match = re.fullmatch(r"gallery-([1-9]\d*)", name)
        if match and int(match.group(1)) <= MAX_GALLERY_SLOTS:
            return cls(kind="gallery", index=int(match.group(1)))
        raise ValueError(f"Unknown image slot: {name!r}")

    def __str__(self) -> str:
        return self.name


HERO = ImageSlot("hero")
LOGO = ImageSlot("logo")
GALLERY_SLOTS: Tuple[ImageSlot, ...] = tuple(
    ImageSlot("gallery", i) for i in range(1, MAX_GALLERY_SLOTS + 1)
)


@dataclass(frozen=True)
class ImageProfile:
    max_dimension: int
    quality: int


DEFAULT_PROFILES: Dict[SlotKind, ImageProfile] = {
    "hero": ImageProfile(max_dimension=1600, quality=80),
    "logo": ImageProfile(max_dimension=400, quality=90),
    "gallery": ImageProfile(max_dimension=1200, quality=80),
}


def build_profiles(
    hero_max: Optional[int] = None,
    logo_max: Optional[int] = None,
    gallery_max: Optional[int] = None,
    quality: Optional[int] = None,
) -> Dict[SlotKind, ImageProfile]:
    """
    Start from DEFAULT_PROFILES and apply any overrides. A single `quality`
    applies to every slot kind.
    """
    overrides = {"hero": hero_max, "logo": logo_max, "gallery": gallery_max}
    profiles: Dict[SlotKind, ImageProfile] = {}
    for kind, profile in DEFAULT_PROFILES.items():
        if overrides[kind] is not None:
            profile = replace(profile, max_dimension=overrides[kind])
        if quality is not None:
            profile = replace(profile, quality=quality)
        profiles[kind] = profile
    return profiles


def resize_within(img: Image.Image, max_dimension: int) -> Image.Image:
    """
    Shrink so the long edge fits `max_dimension`, keeping the aspect ratio.
    Images already small enough are returned at their native size.
    """
    img = img.copy()
    img.thumbnail((max_dimension, max_dimension), Image.LANCZOS)
    return img


def prepare_for_web(img: Image.Image) -> Image.Image:
    """
    Apply EXIF orientation and normalise the mode to something WebP accepts.
    """
    img = ImageOps.exif_transpose(img)
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info):
        return img.convert("RGBA")
    return img.convert("RGB")


def encode_webp(img: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="WEBP", quality=quality, method=4)
    return buf.getvalue()


def render_asset(img: Image.Image, profile: ImageProfile) -> Tuple[bytes, Tuple[int, int]]:
    """
    Orientation fix, resize and WebP encode in one step.

    Returns the encoded bytes and the final (width, height).
    """
    prepared = prepare_for_web(img)
    resized = resize_within(prepared, profile.max_dimension)
    return encode_webp(resized, profile.quality), resized.size


ALT_TEXT_TEMPLATES: Dict[str, str] = {
    "hero": "{name} hero image",
    "logo": "{name} logo",
    "gallery": "{name} group photo",
}


def title_from_slug(slug: str) -> str:
    spaced = slug.replace("-", " ")
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


def generate_alt_text(slot: ImageSlot, display_name: Optional[str], slug: str = "") -> str:
    """
    Alt text comes from a fixed template per slot kind, never free text.
    Falls back to the title-cased slug when no display name is available.
    """
    name = (display_name or "").strip() or title_from_slug(slug)
    template = ALT_TEXT_TEMPLATES.get(slot.kind, "{name} image")
    return template.format(name=name)
