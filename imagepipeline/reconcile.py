"""
Write published asset URLs back to the record they came from.

The matching record is located through a chain of imperfect keys, tried in
order until one hits:

1. the submission id, when the intake form provided one
2. the display name exactly as submitted
3. the normalized slug

Results read from the store already carry their record id and skip the
search. Only fields for slots that succeeded are written; everything else
on the record is left as is.
"""

import json
import logging
from dataclasses import asdict, dataclass, fields as dataclass_fields
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Literal, Optional, Tuple

from .airtable import AirtableStore, RecordStore
from .errors import ConfigError, NoMatch, NotConfigured
from .render import ImageSlot

if TYPE_CHECKING:
    from .config import PipelineConfig
    from .core import SubmissionResult

logger = logging.getLogger("imagepipeline")

GalleryFormat = Literal["text", "attachments"]


@dataclass
class ReconciliationOutcome:
    matched: bool
    external_record_id: Optional[str] = None
    fields_updated: int = 0
    message: str = ""
    matched_by: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, exc: Exception) -> "ReconciliationOutcome":
        return cls(matched=False, message=str(exc), error=type(exc).__name__)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReconcileSchema:
    """
    Field names on the external record. Set any of them to None to skip
    writing it. Gallery templates take `{n}` for the 1-based slot index.
    """

    submission_id_field: str = "Submission ID"
    name_field: str = "What's the name of your club/community/group?"
    slug_field: Optional[str] = None  # defaults to name_field
    hero_url_field: Optional[str] = "Hero Image Processed URL"
    hero_alt_field: Optional[str] = "Hero Image Alt Text"
    logo_url_field: Optional[str] = "Logo Image Processed URL"
    logo_alt_field: Optional[str] = "Logo Image Alt Text"
    gallery_url_field: Optional[str] = "Gallery Image {n} Processed URL"
    gallery_alt_field: Optional[str] = "Gallery Image {n} Alt Text"
    gallery_aggregate_field: Optional[str] = "Gallery Processed URLs"
    gallery_aggregate_format: GalleryFormat = "text"
    status_field: Optional[str] = "Image Processing Status"
    status_value: str = "Processed"
    processed_at_field: Optional[str] = "Images Processed At"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReconcileSchema":
        known = {f.name for f in dataclass_fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown schema keys: {', '.join(sorted(unknown))}")
        schema = cls(**data)
        if schema.gallery_aggregate_format not in ("text", "attachments"):
            raise ConfigError("gallery_aggregate_format must be 'text' or 'attachments'")
        return schema

    @classmethod
    def load(cls, path: Path) -> "ReconcileSchema":
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Could not read schema file {path}: {exc}") from exc
        return cls.from_dict(data)


FLAT_SCHEMA = ReconcileSchema(gallery_aggregate_field=None)


class RecordReconciler:
    def __init__(
        self,
        store: RecordStore,
        schema: ReconcileSchema = ReconcileSchema(),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.store = store
        self.schema = schema
        self.clock = clock

    @classmethod
    def from_config(
        cls,
        config: "PipelineConfig",
        schema: ReconcileSchema = ReconcileSchema(),
    ) -> "RecordReconciler":
        if not config.airtable_configured:
            raise NotConfigured(
                "Record store not configured. Set AIRTABLE_API_KEY, AIRTABLE_BASE_ID and AIRTABLE_TABLE_NAME."
            )
        store = AirtableStore(
            api_key=config.airtable_api_key or "",
            base_id=config.airtable_base_id or "",
            table_name=config.airtable_table_name or "",
            timeout=(5.0, config.store_timeout),
        )
        return cls(store, schema)

    def reconcile(self, result: "SubmissionResult") -> ReconciliationOutcome:
        record_id, matched_by = self.locate(result)
        update = self.build_update(result)
        self.store.update(record_id, update)
        logger.info(
            "Updated record %s for %s (%d fields, matched by %s)",
            record_id,
            result.label,
            len(update),
            matched_by,
        )
        return ReconciliationOutcome(
            matched=True,
            external_record_id=record_id,
            fields_updated=len(update),
            message=f"Updated {len(update)} fields",
            matched_by=matched_by,
        )

    def locate(self, result: "SubmissionResult") -> Tuple[str, str]:
        """
        Return (record_id, key_name) for the first lookup key that hits.
        """
        if result.record_id:
            return result.record_id, "record_id"

        for key_name, field, value in self.lookup_chain(result):
            records = self.store.find(field, value)
            if records:
                return records[0]["id"], key_name
            logger.debug("No record with %s = %r", field, value)

        raise NoMatch(f"No record found for {result.label!r}")

    def lookup_chain(self, result: "SubmissionResult") -> List[Tuple[str, str, str]]:
        schema = self.schema
        chain: List[Tuple[str, str, str]] = []
        if result.submission_id.strip():
            chain.append(("submission_id", schema.submission_id_field, result.submission_id.strip()))
        if result.display_name.strip():
            chain.append(("display_name", schema.name_field, result.display_name))
        chain.append(("slug", schema.slug_field or schema.name_field, result.normalized_slug))
        return chain

    def build_update(self, result: "SubmissionResult") -> Dict[str, Any]:
        schema = self.schema
        update: Dict[str, Any] = {}
        gallery: List[Any] = []

        for asset in result.assets:
            slot = ImageSlot.parse(asset.slot)
            if slot.kind == "hero":
                _put(update, schema.hero_url_field, asset.published_url)
                _put(update, schema.hero_alt_field, asset.alt_text)
            elif slot.kind == "logo":
                _put(update, schema.logo_url_field, asset.published_url)
                _put(update, schema.logo_alt_field, asset.alt_text)
            else:
                if schema.gallery_url_field:
                    _put(update, schema.gallery_url_field.format(n=slot.index), asset.published_url)
                if schema.gallery_alt_field:
                    _put(update, schema.gallery_alt_field.format(n=slot.index), asset.alt_text)
                if schema.gallery_aggregate_format == "attachments":
                    gallery.append({"url": asset.published_url, "filename": asset.filename})
                else:
                    gallery.append(asset.published_url)

        if gallery and schema.gallery_aggregate_field:
            if schema.gallery_aggregate_format == "attachments":
                update[schema.gallery_aggregate_field] = gallery
            else:
                update[schema.gallery_aggregate_field] = ", ".join(gallery)

        _put(update, schema.status_field, schema.status_value)
        _put(update, schema.processed_at_field, self.clock().isoformat())
        return update


def _put(update: Dict[str, Any], field: Optional[str], value: Any) -> None:
    if field:
        update[field] = value
