"""
Normalize tabular rows, record-store records and reference lists into
Submission values.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .errors import ValidationError
from .render import GALLERY_SLOTS, HERO, LOGO, MAX_GALLERY_SLOTS, ImageSlot

logger = logging.getLogger("imagepipeline")

SLUG_MAX_LENGTH = 50
UNKNOWN_NAME = "Unknown Club"


@dataclass(frozen=True)
class Submission:
    display_name: str
    normalized_slug: str
    submission_id: str = ""
    contact_email: str = ""
    hero_image_ref: Optional[str] = None
    logo_image_ref: Optional[str] = None
    gallery_image_refs: Tuple[str, ...] = ()
    record_id: Optional[str] = None
    source_row: Optional[int] = None

    @property
    def label(self) -> str:
        """Name for logs and alt text; the placeholder when nothing was submitted."""
        return self.display_name.strip() or UNKNOWN_NAME

    def image_slots(self) -> List[Tuple[ImageSlot, str]]:
        """
        Populated slots in processing order: hero, logo, gallery-1..4.
        """
        slots: List[Tuple[ImageSlot, str]] = []
        if self.hero_image_ref:
            slots.append((HERO, self.hero_image_ref))
        if self.logo_image_ref:
            slots.append((LOGO, self.logo_image_ref))
        for slot, url in zip(GALLERY_SLOTS, self.gallery_image_refs):
            slots.append((slot, url))
        return slots


@dataclass(frozen=True)
class CsvLayout:
    """Zero-based column positions in the intake form export."""

    submission_id: int = 0
    email: int = 8
    name: int = 10
    hero: int = 27
    logo: int = 28
    gallery: int = 29

    @property
    def min_columns(self) -> int:
        return max(self.submission_id, self.email, self.name, self.hero, self.logo, self.gallery) + 1


@dataclass(frozen=True)
class StoreFields:
    """Field names used when reading submissions from the record store."""

    name: str = "What's the name of your club/community/group?"
    hero: str = "Upload a hero image:"
    logo: str = "Upload your community's logo:"
    gallery: str = "Upload up to 4 images for your photo gallery:"
    submission_id: Optional[str] = "Submission ID"
    email: Optional[str] = "Email"


def slugify(text: str) -> str:
    """
    Lowercase, drop non-word characters, turn whitespace into hyphens and cap
    the length. Applying it to its own output is a no-op.
    """
    slug = text.strip().lower()
    slug = re.sub(r"[^\w\s-]", "", slug, flags=re.ASCII)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug[:SLUG_MAX_LENGTH]
    return slug or "submission"


def is_valid_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in value


def split_gallery(value: Any) -> List[str]:
    """
    Accept a comma-joined string, a list of URLs or an attachment list
    (dicts with a "url" key). Invalid entries are dropped.
    """
    if not value:
        return []
    if isinstance(value, str):
        candidates = value.split(",")
    else:
        candidates = [_attachment_url(item) for item in value]
    urls = [c.strip() for c in candidates if c and c.strip()]
    return [u for u in urls if is_valid_url(u)]


def build_submission(
    name: Optional[str],
    hero: Any = None,
    logo: Any = None,
    gallery: Any = None,
    submission_id: Optional[str] = None,
    email: Optional[str] = None,
    record_id: Optional[str] = None,
    source_row: Optional[int] = None,
) -> Submission:
    """
    Shared normalization for every input adapter.

    Raises ValidationError when no usable image reference remains.
    """
    hero_url = _single_url(hero)
    logo_url = _single_url(logo)
    gallery_urls = split_gallery(gallery)
    if len(gallery_urls) > MAX_GALLERY_SLOTS:
        logger.debug(
            "Gallery for %r has %d images; keeping the first %d",
            name,
            len(gallery_urls),
            MAX_GALLERY_SLOTS,
        )
        gallery_urls = gallery_urls[:MAX_GALLERY_SLOTS]

    if not (hero_url or logo_url or gallery_urls):
        raise ValidationError(f"No valid image references for {name or UNKNOWN_NAME!r}")

    # The raw name stays the store lookup key; only the slug sees the placeholder.
    label = (name or "").strip() or UNKNOWN_NAME
    return Submission(
        display_name=name or "",
        normalized_slug=slugify(label),
        submission_id=(submission_id or "").strip(),
        contact_email=(email or "").strip(),
        hero_image_ref=hero_url,
        logo_image_ref=logo_url,
        gallery_image_refs=tuple(gallery_urls),
        record_id=record_id,
        source_row=source_row,
    )


def extract_submissions(
    rows: Sequence[Sequence[str]],
    layout: CsvLayout = CsvLayout(),
) -> List[Submission]:
    """
    Turn parsed CSV rows into submissions. The first row is the header.
    Short rows and rows without images are skipped with a log line.
    """
    if not rows:
        return []

    header = rows[0]
    logger.debug("CSV header has %d columns", len(header))

    submissions: List[Submission] = []
    for row_index in range(1, len(rows)):
        values = rows[row_index]
        if len(values) < layout.min_columns:
            logger.warning(
                "Row %d has only %d columns (need %d), skipping",
                row_index,
                len(values),
                layout.min_columns,
            )
            continue
        try:
            submission = build_submission(
                name=values[layout.name],
                hero=values[layout.hero],
                logo=values[layout.logo],
                gallery=values[layout.gallery],
                submission_id=values[layout.submission_id],
                email=values[layout.email],
                source_row=row_index,
            )
        except ValidationError as exc:
            logger.info("Row %d skipped: %s", row_index, exc)
            continue
        submissions.append(submission)
    return submissions


def extract_from_store(
    records: Iterable[Mapping[str, Any]],
    fields: StoreFields = StoreFields(),
) -> List[Submission]:
    """
    Same normalization as the CSV path, reading named fields from store
    records shaped like {"id": "rec...", "fields": {...}}.
    """
    submissions: List[Submission] = []
    for record in records:
        values: Mapping[str, Any] = record.get("fields") or {}
        record_id = record.get("id")
        try:
            submission = build_submission(
                name=_text(values.get(fields.name)),
                hero=values.get(fields.hero),
                logo=values.get(fields.logo),
                gallery=values.get(fields.gallery),
                submission_id=_text(values.get(fields.submission_id)) if fields.submission_id else None,
                email=_text(values.get(fields.email)) if fields.email else None,
                record_id=record_id,
            )
        except ValidationError as exc:
            logger.info("Record %s skipped: %s", record_id, exc)
            continue
        submissions.append(submission)
    return submissions


def extract_from_references(items: Iterable[Mapping[str, Any]]) -> List[Submission]:
    """
    Batch-by-reference input: dicts carrying a name and image URLs directly.
    Both camelCase and snake_case keys are accepted.
    """
    submissions: List[Submission] = []
    for index, item in enumerate(items):
        try:
            submission = build_submission(
                name=_text(_first_key(item, "name", "clubName")),
                hero=_first_key(item, "heroUrl", "hero_url"),
                logo=_first_key(item, "logoUrl", "logo_url"),
                gallery=_first_key(item, "galleryUrls", "gallery_urls"),
                submission_id=_text(_first_key(item, "submissionId", "submission_id")),
                email=_text(_first_key(item, "email", "contactEmail")),
                record_id=_first_key(item, "recordId", "record_id"),
                source_row=_first_key(item, "rowIndex", "row_index"),
            )
        except ValidationError as exc:
            logger.info("Reference %d skipped: %s", index, exc)
            continue
        submissions.append(submission)
    return submissions


def _single_url(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        value = _attachment_url(value[0]) if value else None
    if not value:
        return None
    url = str(value).strip()
    return url if is_valid_url(url) else None


def _attachment_url(item: Any) -> str:
    if isinstance(item, Mapping):
        return str(item.get("url") or "")
    return str(item or "")


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _first_key(item: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if item.get(key) not in (None, ""):
            return item[key]
    return None
