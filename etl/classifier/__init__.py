"""
Eligibility Classifier.

Public API:
- EligibilityClassifier: applies the ordered rule tables to postings
- EligibilityRule / HARD_RULES: declarative hard-rule structs
- ClassificationReport: per-field change log of one classification pass

Modules:
- rules.py: job-board and out-of-scope profession rules
- categories.py: keyword-to-category table and career-path mapping
- visa.py: visa sponsorship heuristics
- service.py: the interpreter
"""

from etl.classifier.rules import EligibilityRule, HARD_RULES, rule_matches
from etl.classifier.service import EligibilityClassifier, ClassificationReport, ClassificationChange

__all__ = [
    'EligibilityClassifier',
    'ClassificationReport',
    'ClassificationChange',
    'EligibilityRule',
    'HARD_RULES',
    'rule_matches',
]
