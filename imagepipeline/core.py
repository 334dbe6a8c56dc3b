import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from .assets import AssetResult, AssetTransformer
from .config import PipelineConfig
from .errors import AssetError, NotConfigured, ReconciliationError
from .publisher import CloudinaryPublisher, MockPublisher, Publisher
from .reconcile import ReconcileSchema, ReconciliationOutcome, RecordReconciler
from .render import DEFAULT_PROFILES, ImageProfile, ImageSlot, SlotKind
from .submissions import UNKNOWN_NAME, Submission

logger = logging.getLogger("imagepipeline")


@dataclass
class SubmissionResult:
    display_name: str
    normalized_slug: str
    submission_id: str = ""
    contact_email: str = ""
    record_id: Optional[str] = None
    assets: List[AssetResult] = field(default_factory=list)
    slot_errors: Dict[str, str] = field(default_factory=dict)
    reconciliation: Optional[ReconciliationOutcome] = None

    @classmethod
    def for_submission(cls, submission: Submission) -> "SubmissionResult":
        return cls(
            display_name=submission.display_name,
            normalized_slug=submission.normalized_slug,
            submission_id=submission.submission_id,
            contact_email=submission.contact_email,
            record_id=submission.record_id,
        )

    @property
    def label(self) -> str:
        return self.display_name.strip() or UNKNOWN_NAME

    @property
    def succeeded(self) -> bool:
        return bool(self.assets)

    @property
    def status(self) -> str:
        if not self.assets:
            return "failed"
        return "partial" if self.slot_errors else "completed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.display_name,
            "slug": self.normalized_slug,
            "submission_id": self.submission_id,
            "email": self.contact_email,
            "record_id": self.record_id,
            "status": self.status,
            "assets": [asset.to_dict() for asset in self.assets],
            "errors": dict(self.slot_errors),
            "reconciliation": self.reconciliation.to_dict() if self.reconciliation else None,
        }


class SubmissionPipeline:
    """
    Orchestrates one batch:
    - for each submission, in input order:
        * transform every populated slot (hero, logo, gallery-1..4)
        * record failures per slot without touching sibling slots
        * reconcile with the record store when at least one slot succeeded
    """

    def __init__(
        self,
        transformer: AssetTransformer,
        profiles: Optional[Dict[SlotKind, ImageProfile]] = None,
        reconciler: Optional[RecordReconciler] = None,
        max_workers: int = 1,
    ) -> None:
        self.transformer = transformer
        self.profiles = profiles or dict(DEFAULT_PROFILES)
        self.reconciler = reconciler
        self.max_workers = max(1, max_workers)

    def run(self, submissions: Sequence[Submission]) -> List[SubmissionResult]:
        results: List[SubmissionResult] = []
        if self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                for submission in submissions:
                    results.append(self.process(submission, executor))
        else:
            for submission in submissions:
                results.append(self.process(submission))
        return results

    def process(
        self,
        submission: Submission,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> SubmissionResult:
        logger.info("Processing submission: %s", submission.label)
        result = SubmissionResult.for_submission(submission)
        slots = submission.image_slots()

        if executor is None:
            outcomes = [self._attempt(submission, slot, url) for slot, url in slots]
        else:
            futures = [executor.submit(self._attempt, submission, slot, url) for slot, url in slots]
            outcomes = [future.result() for future in futures]

        for (slot, _url), (asset, error) in zip(slots, outcomes):
            if asset is not None:
                result.assets.append(asset)
            else:
                result.slot_errors[slot.name] = error or "unknown error"

        if self.reconciler is not None and result.succeeded:
            result.reconciliation = self._reconcile(self.reconciler, result)
        return result

    def _attempt(
        self,
        submission: Submission,
        slot: ImageSlot,
        url: str,
    ) -> Tuple[Optional[AssetResult], Optional[str]]:
        profile = self.profiles[slot.kind]
        try:
            asset = self.transformer.transform(
                url,
                slot,
                profile,
                display_name=submission.label,
                normalized_slug=submission.normalized_slug,
            )
        except AssetError as exc:
            logger.warning("%s failed for %s: %s", slot.name, submission.label, exc)
            return None, str(exc)
        except Exception as exc:
            logger.exception("Unexpected error in %s for %s", slot.name, submission.label)
            return None, f"{type(exc).__name__}: {exc}"
        return asset, None

    def _reconcile(self, reconciler: RecordReconciler, result: SubmissionResult) -> ReconciliationOutcome:
        try:
            return reconciler.reconcile(result)
        except ReconciliationError as exc:
            logger.warning("Reconciliation failed for %s: %s", result.label, exc)
            return ReconciliationOutcome.failed(exc)


def build_publisher(config: PipelineConfig) -> Publisher:
    if config.cloudinary is None:
        logger.warning("Cloudinary not configured; publishing to mock CDN URLs")
        return MockPublisher(folder=config.cloudinary_folder)
    return CloudinaryPublisher(
        credentials=config.cloudinary,
        folder=config.cloudinary_folder,
        timeout=config.publish_timeout,
    )


def build_pipeline(
    config: PipelineConfig,
    schema: ReconcileSchema = ReconcileSchema(),
    reconcile: bool = True,
    publisher: Optional[Publisher] = None,
    session: Optional[requests.Session] = None,
) -> SubmissionPipeline:
    """
    Wire a pipeline from configuration. Reconciliation is skipped entirely
    when the record store is not configured.
    """
    transformer = AssetTransformer(
        publisher=publisher or build_publisher(config),
        session=session,
        download_timeout=config.download_timeout,
    )

    reconciler: Optional[RecordReconciler] = None
    if reconcile:
        try:
            reconciler = RecordReconciler.from_config(config, schema)
        except NotConfigured as exc:
            logger.info("Skipping reconciliation: %s", exc)

    return SubmissionPipeline(
        transformer=transformer,
        profiles=config.profiles(),
        reconciler=reconciler,
        max_workers=config.max_workers,
    )
