"""Unit tests for record lookup and partial write-back."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from imagepipeline.airtable import equals_formula
from imagepipeline.assets import AssetResult
from imagepipeline.config import PipelineConfig
from imagepipeline.core import SubmissionResult
from imagepipeline.errors import ConfigError, NoMatch, NotConfigured, SearchError
from imagepipeline.reconcile import FLAT_SCHEMA, ReconcileSchema, RecordReconciler
from imagepipeline.submissions import build_submission
from tests.fakes import FakeStore

NAME_FIELD = ReconcileSchema().name_field
FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _asset(slot: str) -> AssetResult:
    return AssetResult(
        source_url=f"https://src.example.com/{slot}.jpg",
        published_url=f"https://cdn.example.com/club-{slot}.webp",
        storage_key=f"club-{slot}",
        filename=f"club-{slot}.webp",
        alt_text=f"Club {slot}",
        width=100,
        height=100,
        slot=slot,
    )


def _result(submission_id: str = "", record_id=None, slots=("hero",)) -> SubmissionResult:
    return SubmissionResult(
        display_name="Fishtown Run Club!",
        normalized_slug="fishtown-run-club",
        submission_id=submission_id,
        record_id=record_id,
        assets=[_asset(s) for s in slots],
    )


def _reconciler(store: FakeStore, schema: ReconcileSchema = ReconcileSchema()) -> RecordReconciler:
    return RecordReconciler(store, schema, clock=lambda: FIXED_NOW)


def test_blank_submission_id_searches_name_then_slug() -> None:
    """Without an id the chain starts at the display name and never queries the id field."""
    store = FakeStore([{"id": "rec9", "fields": {NAME_FIELD: "fishtown-run-club"}}])

    outcome = _reconciler(store).reconcile(_result(submission_id="  "))

    assert store.searches == [
        (NAME_FIELD, "Fishtown Run Club!"),
        (NAME_FIELD, "fishtown-run-club"),
    ]
    assert outcome.matched
    assert outcome.external_record_id == "rec9"
    assert outcome.matched_by == "slug"


def test_submission_id_hit_stops_the_chain() -> None:
    """A match on the submission id skips the name and slug searches."""
    store = FakeStore([{"id": "rec1", "fields": {"Submission ID": "42"}}])

    outcome = _reconciler(store).reconcile(_result(submission_id="42"))

    assert store.searches == [("Submission ID", "42")]
    assert outcome.matched_by == "submission_id"


def test_name_match_used_when_id_misses() -> None:
    """The display name is tried after an unmatched id."""
    store = FakeStore([{"id": "rec2", "fields": {NAME_FIELD: "Fishtown Run Club!"}}])

    outcome = _reconciler(store).reconcile(_result(submission_id="404"))

    assert [field for field, _ in store.searches] == ["Submission ID", NAME_FIELD]
    assert outcome.external_record_id == "rec2"


def test_known_record_id_skips_search() -> None:
    """Results read from the store update their own record directly."""
    store = FakeStore()

    outcome = _reconciler(store).reconcile(_result(record_id="recXYZ"))

    assert store.searches == []
    assert store.updates[0][0] == "recXYZ"
    assert outcome.matched_by == "record_id"


def test_no_match_raises() -> None:
    """Exhausting the chain raises NoMatch and writes nothing."""
    store = FakeStore()

    with pytest.raises(NoMatch):
        _reconciler(store).reconcile(_result(submission_id="1"))

    assert len(store.searches) == 3
    assert store.updates == []


def test_search_error_propagates() -> None:
    """Store failures surface as SearchError."""
    with pytest.raises(SearchError):
        _reconciler(FakeStore(fail_search=True)).reconcile(_result())


def test_update_contains_only_successful_slots() -> None:
    """Only present slots are written, plus the status marker."""
    store = FakeStore([{"id": "rec1", "fields": {NAME_FIELD: "Fishtown Run Club!", "Other": "keep"}}])

    outcome = _reconciler(store).reconcile(_result(slots=("logo", "gallery-1", "gallery-3")))

    _record_id, update = store.updates[0]
    assert update == {
        "Logo Image Processed URL": "https://cdn.example.com/club-logo.webp",
        "Logo Image Alt Text": "Club logo",
        "Gallery Image 1 Processed URL": "https://cdn.example.com/club-gallery-1.webp",
        "Gallery Image 1 Alt Text": "Club gallery-1",
        "Gallery Image 3 Processed URL": "https://cdn.example.com/club-gallery-3.webp",
        "Gallery Image 3 Alt Text": "Club gallery-3",
        "Gallery Processed URLs": (
            "https://cdn.example.com/club-gallery-1.webp, https://cdn.example.com/club-gallery-3.webp"
        ),
        "Image Processing Status": "Processed",
        "Images Processed At": FIXED_NOW.isoformat(),
    }
    assert outcome.fields_updated == len(update)
    assert store.records[0]["fields"]["Other"] == "keep"


def test_flat_schema_omits_aggregate_field() -> None:
    """The flat preset writes per-slot gallery fields only."""
    update = _reconciler(FakeStore(), FLAT_SCHEMA).build_update(_result(slots=("gallery-1",)))

    assert "Gallery Processed URLs" not in update
    assert "Gallery Image 1 Processed URL" in update


def test_attachment_aggregate_format() -> None:
    """Grouped gallery can be written as an attachment list."""
    schema = ReconcileSchema(
        gallery_url_field=None,
        gallery_alt_field=None,
        gallery_aggregate_field="Gallery",
        gallery_aggregate_format="attachments",
        processed_at_field=None,
    )

    update = _reconciler(FakeStore(), schema).build_update(_result(slots=("hero", "gallery-2")))

    assert update["Gallery"] == [
        {"url": "https://cdn.example.com/club-gallery-2.webp", "filename": "club-gallery-2.webp"}
    ]
    assert not any(key.startswith("Gallery Image") for key in update)
    assert "Images Processed At" not in update


def test_custom_slug_field_is_used_for_last_step() -> None:
    """A dedicated slug field replaces the name field for the slug lookup."""
    store = FakeStore([{"id": "rec5", "fields": {"Slug": "fishtown-run-club"}}])
    schema = ReconcileSchema(slug_field="Slug")

    outcome = _reconciler(store, schema).reconcile(_result())

    assert store.searches[-1] == ("Slug", "fishtown-run-club")
    assert outcome.external_record_id == "rec5"


def test_schema_from_dict_rejects_unknown_keys() -> None:
    """Typos in a schema file are reported."""
    with pytest.raises(ConfigError):
        ReconcileSchema.from_dict({"hero_url_feild": "x"})


def test_schema_load_reads_json(tmp_path) -> None:
    """Schema files override only the keys they set."""
    path = tmp_path / "schema.json"
    path.write_text('{"hero_url_field": "Hero URL", "status_field": null}', encoding="utf-8")

    schema = ReconcileSchema.load(path)

    assert schema.hero_url_field == "Hero URL"
    assert schema.status_field is None
    assert schema.logo_url_field == "Logo Image Processed URL"


def test_from_config_requires_credentials() -> None:
    """Missing store credentials raise NotConfigured."""
    with pytest.raises(NotConfigured):
        RecordReconciler.from_config(PipelineConfig(airtable_api_key="key"))


def test_equals_formula_escapes_field_and_value() -> None:
    """Braces in field names and quotes in values are escaped."""
    formula = equals_formula("A}B", "Bob's")

    assert formula == "{A\\}B}='Bob\\'s'"


def test_name_with_trailing_space_is_searched_as_submitted() -> None:
    """The name lookup uses the raw submitted name, whitespace included."""
    submission = build_submission("Run Club ", hero="https://a.com/h.jpg")
    store = FakeStore([{"id": "recR", "fields": {NAME_FIELD: "Run Club "}}])
    result = SubmissionResult.for_submission(submission)
    result.assets.append(_asset("hero"))

    outcome = _reconciler(store).reconcile(result)

    assert store.searches == [(NAME_FIELD, "Run Club ")]
    assert outcome.external_record_id == "recR"
    assert outcome.matched_by == "display_name"


def test_blank_name_skips_name_lookup() -> None:
    """A blank name is never searched as the placeholder label."""
    submission = build_submission("", hero="https://a.com/h.jpg")
    store = FakeStore(
        [
            {"id": "recX", "fields": {NAME_FIELD: "Unknown Club"}},
            {"id": "recY", "fields": {NAME_FIELD: "unknown-club"}},
        ]
    )
    result = SubmissionResult.for_submission(submission)
    result.assets.append(_asset("hero"))

    outcome = _reconciler(store).reconcile(result)

    assert store.searches == [(NAME_FIELD, "unknown-club")]
    assert outcome.external_record_id == "recY"
    assert outcome.matched_by == "slug"
