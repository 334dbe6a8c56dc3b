import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Tuple

import requests
from pyairtable import Api
from pyairtable.formulas import match

from .errors import SearchError, UpdateError

logger = logging.getLogger("imagepipeline")

Record = Dict[str, Any]


class RecordStore(Protocol):
    def list_records(self) -> List[Record]:
        ...

    def find(self, field: str, value: str) -> List[Record]:
        ...

    def update(self, record_id: str, fields: Dict[str, Any]) -> Record:
        ...


def equals_formula(field: str, value: str) -> str:
    """
    Airtable formula for an exact match, e.g. {Name}='Run Club'. Both the
    field name and the value are escaped.
    """
    return str(match({field: value}))


@dataclass
class AirtableStore:
    """
    Thin wrapper over a pyairtable Table. Network and HTTP failures are
    translated into SearchError / UpdateError.
    """

    api_key: str
    base_id: str
    table_name: str
    timeout: Tuple[float, float] = (5.0, 30.0)
    max_matches: int = 2

    def __post_init__(self) -> None:
        self._table = Api(self.api_key, timeout=self.timeout).table(self.base_id, self.table_name)

    def list_records(self) -> List[Record]:
        try:
            return self._table.all()
        except requests.RequestException as exc:
            raise SearchError(f"Could not list records in {self.table_name}: {exc}") from exc

    def find(self, field: str, value: str) -> List[Record]:
        formula = equals_formula(field, value)
        try:
            records = self._table.all(formula=formula, max_records=self.max_matches)
        except requests.RequestException as exc:
            raise SearchError(f"Search {formula} failed: {exc}") from exc
        if len(records) > 1:
            logger.warning("%d records match %s; using the first", len(records), formula)
        return records

    def update(self, record_id: str, fields: Dict[str, Any]) -> Record:
        try:
            return self._table.update(record_id, fields)
        except requests.RequestException as exc:
            raise UpdateError(f"Update of {record_id} failed: {exc}") from exc
