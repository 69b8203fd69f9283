"""Interface every business search provider implements."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..errors import EnrichmentError
from ..logger import get_logger
from ..models import Candidate

logger = get_logger()


class BusinessSource(ABC):
    """
    Capability interface for business directories.

    search() raises SourceError subclasses on provider failure; an empty
    list means nothing matched. enrich_details() never raises: providers
    implement fetch_details(), which raises EnrichmentError when the lookup
    fails, and a failed lookup comes back as an empty dict.
    """

    name = "base"
    requires_credential = False

    @abstractmethod
    def search(self, query: str, location: str, radius: int = 5000) -> List[Candidate]:
        raise NotImplementedError

    def enrich_details(self, source_id: str) -> Dict[str, Optional[str]]:
        try:
            return self.fetch_details(source_id)
        except EnrichmentError as e:
            logger.warning("Enrichment failed", provider=self.name, source_id=source_id, error=str(e))
            return {}

    def fetch_details(self, source_id: str) -> Dict[str, Optional[str]]:
        return {}


def city_from_address(address: Optional[str]) -> Optional[str]:
    """
    Pull the city out of a formatted address.

    "123 Main St, San Diego, CA 92101, USA" -> "San Diego"
    """
    if not address:
        return None
    parts = [p.strip() for p in address.split(",") if p.strip()]
    if len(parts) < 3:
        return None
    # Trailing country part present when there are 4+ parts
    city = parts[-3] if len(parts) >= 4 else parts[-2]
    return city or None
