from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

from seoulmate_scraper.models.place import (
    PlaceRecord, has_valid_name, has_valid_identifier, has_valid_coordinates,
    has_valid_description, is_complete
)
from seoulmate_scraper.utils.logging_config import get_logger

MAX_INCOMPLETE_EXAMPLES = 5


@dataclass
class CompletenessReport:
    """Field completeness over one batch of scraped places"""
    total: int
    with_name: int
    with_identifier: int
    with_coordinates: int
    with_description: int
    complete: int
    incomplete_examples: List[Dict[str, Any]] = field(default_factory=list)

    @staticmethod
    def _percentage(count: int, total: int) -> float:
        return round(count * 100.0 / total, 1) if total else 0.0

    @property
    def completeness_score(self) -> float:
        return self.complete / self.total if self.total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        fields = {
            'name': self.with_name,
            'identifier': self.with_identifier,
            'coordinates': self.with_coordinates,
            'description': self.with_description,
            'complete': self.complete,
        }
        return {
            'total': self.total,
            'counts': fields,
            'percentages': {k: self._percentage(v, self.total) for k, v in fields.items()},
            'incomplete_examples': self.incomplete_examples,
        }


def _missing_fields(record: PlaceRecord) -> List[str]:
    missing = []
    if not has_valid_name(record):
        missing.append('name')
    if not has_valid_identifier(record):
        missing.append('identifier')
    if not has_valid_coordinates(record):
        missing.append('coordinates')
    if not has_valid_description(record):
        missing.append('description')
    return missing


def build_completeness_report(records: List[PlaceRecord]) -> CompletenessReport:
    examples = []
    for record in records:
        if len(examples) >= MAX_INCOMPLETE_EXAMPLES:
            break
        if not is_complete(record):
            examples.append({
                'identifier': record.identifier,
                'name': record.name,
                'missing': _missing_fields(record),
            })

    return CompletenessReport(
        total=len(records),
        with_name=sum(1 for r in records if has_valid_name(r)),
        with_identifier=sum(1 for r in records if has_valid_identifier(r)),
        with_coordinates=sum(1 for r in records if has_valid_coordinates(r)),
        with_description=sum(1 for r in records if has_valid_description(r)),
        complete=sum(1 for r in records if is_complete(r)),
        incomplete_examples=examples,
    )


def log_data_statistics(records: List[PlaceRecord], run_id: Optional[str] = None) -> CompletenessReport:
    """Log field completeness for a scrape batch and return the report"""
    logger = get_logger()
    report = build_completeness_report(records)
    if report.total == 0:
        logger.warning("No places to analyse", run_id=run_id, stage='QUALITY')
        return report

    percentages = report.to_dict()['percentages']
    logger.info(
        f"Data completeness for {report.total} places: "
        f"name {report.with_name} ({percentages['name']}%), "
        f"identifier {report.with_identifier} ({percentages['identifier']}%), "
        f"coordinates {report.with_coordinates} ({percentages['coordinates']}%), "
        f"description {report.with_description} ({percentages['description']}%), "
        f"complete {report.complete} ({percentages['complete']}%)",
        run_id=run_id, stage='QUALITY'
    )
    for example in report.incomplete_examples:
        logger.info(f"Incomplete place {example['name']} ({example['identifier']}): "
                    f"missing {', '.join(example['missing'])}", run_id=run_id, stage='QUALITY')
    return report
