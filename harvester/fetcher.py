"""
Fetch-transform task: one link in, zero or more flat records out.

The actual download and parsing is done by a pluggable extractor,
`extractor(uri, proxy) -> Iterable[dict]`, which raises on failure.
"""

from typing import Callable, Iterable, List, Optional

from harvester.exceptions import ExtractionError
from harvester.models import Link

Extractor = Callable[[str, Optional[str]], Iterable[dict]]

ID_FIELD = "Id"
_SCALARS = (str, int, float, bool, type(None))


class FetchTask:
    """Runs an extractor for a link and validates what comes back."""

    def __init__(self, extractor: Extractor, proxy: Optional[str] = None):
        self.extractor = extractor
        self.proxy = proxy

    def __call__(self, link: Link) -> List[dict]:
        """
        Fetch and transform one link.

        Args:
            link: Link to fetch

        Returns:
            List of flat records, stamped with the link's correlation id if it has one

        Raises:
            ExtractionError: If the extractor returns something that is not flat records
            Exception: Whatever the extractor raises for transport failures
        """
        result = self.extractor(link.uri, self.proxy)
        if result is None:
            raise ExtractionError(f"Extractor returned nothing for {link.uri}")

        records = []
        for record in result:
            records.append(self._flatten_check(link, record))
        return records

    @staticmethod
    def _flatten_check(link: Link, record) -> dict:
        if not isinstance(record, dict):
            raise ExtractionError(f"Record for {link.uri} is {type(record).__name__}, expected dict")

        for key, value in record.items():
            if not isinstance(value, _SCALARS):
                raise ExtractionError(
                    f"Field {key!r} for {link.uri} is {type(value).__name__}, expected a scalar"
                )

        if link.correlation_id is not None and ID_FIELD not in record:
            return {ID_FIELD: link.correlation_id, **record}
        return dict(record)
