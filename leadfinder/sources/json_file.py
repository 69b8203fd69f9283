import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import EnrichmentError, InvalidRequestError, SourceError
from ..models import Candidate
from .base import BusinessSource, city_from_address

PROVIDER = "json_file"

CANDIDATE_FIELDS = {
    "name", "category", "address", "source_id", "phone", "website", "email",
    "city", "state", "postal_code", "rating", "review_count", "latitude", "longitude",
}


def _matches(text: Optional[str], needle: str) -> bool:
    return needle.lower() in (text or "").lower()


def _matches_query(text: Optional[str], query: str) -> bool:
    # "dentists" should find a business filed under "dentist"
    query = query.strip()
    if _matches(text, query):
        return True
    singular = query[:-1] if query.lower().endswith("s") else query
    return len(singular) > 2 and _matches(text, singular)


class JsonFileSource(BusinessSource):
    """
    Business search over a local JSON file (a list of business objects).

    Useful offline and for replaying a saved provider response.
    """

    name = PROVIDER

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            raise SourceError(f"Source file not found: {self.path}", provider=PROVIDER)
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidRequestError(f"Source file is not valid JSON: {e}", provider=PROVIDER) from e
        if isinstance(data, dict):
            data = data.get("results", [])
        if not isinstance(data, list):
            raise InvalidRequestError("Source file must contain a list of businesses", provider=PROVIDER)
        return data

    def search(self, query: str, location: str, radius: int = 5000) -> List[Candidate]:
        results = []
        for record in self._load():
            if not record.get("name"):
                continue
            if query and not (_matches_query(record.get("name"), query) or _matches_query(record.get("category"), query)):
                continue
            if location and not (_matches(record.get("address"), location) or _matches(record.get("city"), location)):
                continue
            results.append(self._to_candidate(record))
        return results

    def fetch_details(self, source_id: str) -> Dict[str, Optional[str]]:
        try:
            records = self._load()
        except SourceError as e:
            raise EnrichmentError(f"Could not read {self.path} for details: {e}") from e
        for record in records:
            if record.get("source_id") == source_id:
                return {"phone": record.get("phone"), "website": record.get("website")}
        return {}

    @staticmethod
    def _to_candidate(record: Dict[str, Any]) -> Candidate:
        fields = {k: v for k, v in record.items() if k in CANDIDATE_FIELDS and v is not None}
        fields.setdefault("category", "business")
        if "city" not in fields:
            fields["city"] = city_from_address(fields.get("address"))
        return Candidate(source=PROVIDER, **fields)
