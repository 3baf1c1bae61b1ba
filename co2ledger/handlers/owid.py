"""
Our World in Data CO2 handler: fetches the bulk JSON document and turns it
into emission records.
"""

import json
import logging
import math
import httpx
from datetime import date
from typing import List, Dict, Any, Optional

from co2ledger.models.emission import EmissionRecord
from co2ledger.core.constants import (
    MIN_YEAR,
    MAX_YEAR,
    MEGATONNES_TO_KILOTONS,
    EXCLUDED_REGIONS,
    EXCLUDED_TERRITORIES,
    EXCLUDED_NAME_FRAGMENTS,
)
from co2ledger.core.errors import SourceUnavailableError

logger = logging.getLogger(__name__)


async def fetch_owid_document(
    url: str,
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> str:
    """
    Download the raw OWID CO2 document.

    Args:
        url: Dataset URL
        timeout: Request timeout in seconds
        transport: Optional httpx transport (used by tests)

    Returns:
        Response body as text

    Raises:
        SourceUnavailableError: on network or HTTP errors
    """
    logger.info("Requesting OWID dataset from %s", url)

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise SourceUnavailableError(f"OWID request failed: {e}") from e

    body = response.text
    logger.info("OWID response received: %d characters", len(body))
    return body


def load_owid_document(raw: Optional[str], min_chars: int = 1000) -> Dict[str, Any]:
    """
    Sanity-check and decode the raw document into a mapping of country name
    to country entry. Payloads of ``min_chars`` characters or fewer are rejected.
    """
    if not raw or len(raw) <= min_chars:
        raise SourceUnavailableError(f"OWID response too small ({len(raw or '')} characters)")

    try:
        document = json.loads(raw)
    except ValueError as e:
        raise SourceUnavailableError(f"OWID response is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise SourceUnavailableError(
            f"OWID document root must be an object, got {type(document).__name__}"
        )
    return document


def is_valid_country(country_name: Optional[str]) -> bool:
    """
    Country-validity filter.

    Rejects regional and economic aggregates, dependent territories, names with
    parenthetical qualifiers and names shorter than three characters.
    """
    if not country_name:
        return False
    if country_name in EXCLUDED_REGIONS or country_name in EXCLUDED_TERRITORIES:
        return False
    if "(" in country_name:
        return False

    lowered = country_name.lower()
    if any(fragment in lowered for fragment in EXCLUDED_NAME_FRAGMENTS):
        return False

    return len(country_name) > 2


def _parse_country(
    country_name: str,
    entry: Any,
    data_source: str,
    uploaded_by: str,
    source_date: date
) -> List[EmissionRecord]:
    if not isinstance(entry, dict):
        return []

    country_code = entry.get("iso_code")
    observations = entry.get("data")

    if not isinstance(country_code, str) or len(country_code) != 3:
        return []
    if not observations or not is_valid_country(country_name):
        return []

    records = []
    for observation in observations:
        year = observation.get("year")
        co2 = observation.get("co2")
        if year is None or co2 is None:
            continue

        year = int(year)
        if year < MIN_YEAR or year > MAX_YEAR:
            continue

        megatonnes = float(co2)
        if not math.isfinite(megatonnes) or megatonnes <= 0:
            continue

        records.append(EmissionRecord(
            country_name=country_name,
            country_code=country_code,
            year=year,
            co2_emission_kt=megatonnes * MEGATONNES_TO_KILOTONS,
            source_date=source_date,
            data_source=data_source,
            uploaded_by=uploaded_by
        ))

    return records


def parse_owid_document(
    document: Dict[str, Any],
    data_source: str,
    uploaded_by: str,
    source_date: date
) -> List[EmissionRecord]:
    """
    Parse every country of an OWID document into unsaved emission records.

    A malformed country entry is logged and skipped; it never aborts the pass.

    Returns:
        Records in document order, tagged with the given provenance
    """
    records: List[EmissionRecord] = []
    countries = 0

    for country_name, entry in document.items():
        try:
            parsed = _parse_country(country_name, entry, data_source, uploaded_by, source_date)
        except (AttributeError, KeyError, OverflowError, TypeError, ValueError) as e:
            logger.warning("Skipping OWID entry %r: %s", country_name, e)
            continue

        if parsed:
            countries += 1
            records.extend(parsed)

    logger.info("Parsed %d OWID records from %d countries", len(records), countries)
    return records
