"""Preference-store boundary: user profiles from a JSON file."""

import json
import logging
from typing import List

from core.matcher.dto import UserProfile

logger = logging.getLogger(__name__)


def load_user_profiles(profiles_file_path: str) -> List[UserProfile]:
    """Load user profiles from a JSON list of profile dicts.

    Entries without a user_key or email are skipped with a warning.
    Raises FileNotFoundError or json.JSONDecodeError for unreadable files.
    """
    logger.info(f"Loading user profiles from {profiles_file_path}")
    with open(profiles_file_path, 'r') as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON list of profiles in {profiles_file_path}")

    profiles: List[UserProfile] = []
    seen = set()
    for index, entry in enumerate(data):
        try:
            profile = UserProfile.from_dict(entry)
        except (ValueError, AttributeError) as e:
            logger.warning(f"Skipping profile #{index}: {e}")
            continue
        if profile.user_key in seen:
            logger.warning(f"Skipping duplicate profile for {profile.user_key}")
            continue
        seen.add(profile.user_key)
        profiles.append(profile)

    logger.info(f"Loaded {len(profiles)} user profiles")
    return profiles
