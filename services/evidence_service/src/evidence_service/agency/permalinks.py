"""Deterministic permalinks into known regulatory/agency systems."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping
from urllib.parse import quote

from evidence_service.resolution import Resolution


@dataclass(frozen=True)
class EventProvenance:
    """Structured provenance of a brand event, as consumed by the agency rules."""

    raw_data: Mapping[str, Any]
    title: str | None = None
    occurred_at: datetime | None = None


@dataclass(frozen=True)
class AgencyRule:
    name: str
    # Historical field-name synonyms for the same identifier, checked in order.
    fields: tuple[str, ...]
    template: Callable[[str], str]

    def identifier(self, raw_data: Mapping[str, Any]) -> str | None:
        for field in self.fields:
            value = raw_data.get(field)
            if value is None or isinstance(value, (dict, list, bool)):
                continue
            text = str(value).strip()
            if text:
                return text
        return None


def _q(value: str) -> str:
    return quote(value, safe="")


AGENCY_RULES: tuple[AgencyRule, ...] = (
    AgencyRule(
        name="osha_inspection",
        fields=("activity_nr", "activity_number", "inspection_nr"),
        template=lambda v: f"https://www.osha.gov/ords/imis/establishment.inspection_detail?id={_q(v)}",
    ),
    AgencyRule(
        name="osha_establishment",
        fields=("estab_id", "establishment_id"),
        template=lambda v: f"https://www.osha.gov/establishments/{_q(v)}",
    ),
    AgencyRule(
        name="epa_enforcement_case",
        fields=("case_number", "enforcement_case_id"),
        template=lambda v: f"https://echo.epa.gov/enforcement-case-report?id={_q(v)}",
    ),
    AgencyRule(
        name="epa_facility",
        fields=("registry_id", "frs_id"),
        template=lambda v: f"https://echo.epa.gov/detailed-facility-report?fid={_q(v)}",
    ),
    AgencyRule(
        name="fec_filing",
        fields=("image_number", "file_number"),
        template=lambda v: f"https://docquery.fec.gov/cgi-bin/fecimg/?{_q(v)}",
    ),
)


class AgencyPermalinkResolver:
    """
    Synthesize a canonical document URL from an event's agency identifiers.

    Pure: no network access and no side effects. Rules are evaluated in
    priority order and only the first match is returned.
    """

    def __init__(self, rules: tuple[AgencyRule, ...] = AGENCY_RULES) -> None:
        self.rules = rules

    def resolve(self, provenance: EventProvenance | None) -> Resolution | None:
        if provenance is None or not provenance.raw_data:
            return None
        for rule in self.rules:
            identifier = rule.identifier(provenance.raw_data)
            if identifier is None:
                continue
            return Resolution(
                url=rule.template(identifier),
                method=f"agency:{rule.name}",
                title=provenance.title,
                published_at=provenance.occurred_at,
            )
        return None
