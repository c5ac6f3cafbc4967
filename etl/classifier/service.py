"""
Eligibility Classifier - applies hard rules and metadata backfills.

Order: hard rules (job board, professions) -> category backfill -> visa
backfill -> location backfill. Every step checks its own precondition so a
second pass over the same postings changes nothing.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Tuple

from etl.classifier.categories import (
    FALLBACK_CATEGORY,
    has_only_default_categories,
    match_categories,
)
from etl.classifier.rules import HARD_RULES, EligibilityRule, rule_matches
from etl.classifier.visa import assess_visa
from etl.location import REMOTE_MARKER, normalize_location

logger = logging.getLogger(__name__)


@dataclass
class ClassificationChange:
    hash: str
    field: str
    old: Any
    new: Any


@dataclass
class ClassificationReport:
    changes: List[ClassificationChange] = field(default_factory=list)
    filtered: Counter = field(default_factory=Counter)
    evaluated: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    def record(self, posting: Any, field_name: str, new: Any) -> None:
        old = getattr(posting, field_name, None)
        if old == new:
            return
        self.changes.append(ClassificationChange(posting.hash, field_name, old, new))
        setattr(posting, field_name, new)


class EligibilityClassifier:
    """Interpreter over the ordered rule tables.

    Works on anything carrying the Posting attribute names: canonicalized
    ``PostingRecord``s before upsert, or ``Posting`` ORM rows during a
    reclassification pass.
    """

    def __init__(self, rules: Tuple[EligibilityRule, ...] = HARD_RULES):
        self.rules = rules

    def classify(self, postings: Iterable[Any]) -> ClassificationReport:
        report = ClassificationReport()
        for posting in postings:
            report.evaluated += 1
            self.classify_one(posting, report)

        if report.filtered:
            summary = ", ".join(f"{reason}={count}" for reason, count in sorted(report.filtered.items()))
            logger.info(f"Filtered {sum(report.filtered.values())} postings: {summary}")
        logger.info(f"Classified {report.evaluated} postings, {len(report.changes)} field changes")
        return report

    def classify_one(self, posting: Any, report: ClassificationReport) -> None:
        if not posting.active:
            return

        self._apply_hard_rules(posting, report)
        if not posting.active:
            return

        self._backfill_categories(posting, report)
        self._backfill_visa(posting, report)
        self._backfill_location(posting, report)

    def _apply_hard_rules(self, posting: Any, report: ClassificationReport) -> None:
        for rule in self.rules:
            if posting.filtered_reason == rule.reason:
                continue
            if not rule_matches(rule, posting):
                continue
            logger.debug(f"Rule {rule.reason} hit posting {posting.hash[:12]} ({posting.title!r})")
            report.record(posting, "active", False)
            report.record(posting, "status", "inactive")
            report.record(posting, "filtered_reason", rule.reason)
            if rule.clears_employer:
                report.record(posting, "employer_display", None)
            report.filtered[rule.reason] += 1
            return

    def _backfill_categories(self, posting: Any, report: ClassificationReport) -> None:
        current = list(posting.categories or [])
        if not has_only_default_categories(current):
            return

        additions = [c for c in match_categories(posting.title, posting.description) if c not in current]
        if not additions and "early-career" in current and FALLBACK_CATEGORY not in current:
            additions = [FALLBACK_CATEGORY]
        if additions:
            # Assign a new list so ORM JSON columns see the change
            report.record(posting, "categories", current + additions)

    def _backfill_visa(self, posting: Any, report: ClassificationReport) -> None:
        if posting.visa_friendly is not None:
            return
        assessment = assess_visa(posting.title, posting.description or "", posting.employer_raw or "")
        if assessment.visa_friendly is not None:
            report.record(posting, "visa_friendly", assessment.visa_friendly)

    def _backfill_location(self, posting: Any, report: ClassificationReport) -> None:
        if posting.city is not None or not posting.location or posting.location == REMOTE_MARKER:
            return
        info = normalize_location(posting.location)
        if info.city is not None:
            report.record(posting, "city", info.city)
        if info.country_code is not None and posting.country_code is None:
            report.record(posting, "country_code", info.country_code)
