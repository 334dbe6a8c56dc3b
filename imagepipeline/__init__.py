"""
Pipeline package for community submission images.

Modules:
- csv_parser: lenient CSV parsing for intake form exports
- submissions: Submission model and input normalization
- render: slot profiles, resizing, WebP encoding and alt text
- assets: download, transform and publish one image slot
- publisher: Cloudinary upload adapter and local mock
- core: per-submission orchestration with per-slot failure isolation
- reconcile / airtable: write results back to the record store
- batch: CSV, reference-list and record-store entry points
- export: JSON report and ZIP bulk export
"""
