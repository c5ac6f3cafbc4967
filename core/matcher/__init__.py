"""Matcher Module - per-user candidate selection.

The diversity distributor depends on scored results and is imported from
core.matcher.distribution directly.
"""
from core.matcher.dto import UserProfile, PostingDTO, RelaxationEvent
from core.matcher.candidate_selector import CandidateSelector, CandidateSelection

__all__ = [
    'UserProfile', 'PostingDTO', 'RelaxationEvent',
    'CandidateSelector', 'CandidateSelection',
]
