import json

import pytest

from pipeline.profiles import load_user_profiles


def _write(tmp_path, data):
    path = tmp_path / "profiles.json"
    path.write_text(json.dumps(data))
    return str(path)


def test_loads_profiles_in_file_order(tmp_path):
    path = _write(tmp_path, [
        {"user_key": "u1", "email": "u1@example.com", "target_cities": ["London", "Paris"],
         "languages": ["English", "French"], "career_paths": ["Data"]},
        {"email": "u2@example.com"},
    ])

    profiles = load_user_profiles(path)

    assert [p.user_key for p in profiles] == ["u1", "u2@example.com"]
    assert profiles[0].target_cities == ("London", "Paris")
    assert profiles[0].languages == ("en", "fr")
    assert profiles[0].career_paths == ("data",)


def test_target_cities_are_capped_at_three(tmp_path):
    path = _write(tmp_path, [{"user_key": "u1", "target_cities": ["London", "Paris", "Berlin", "Madrid"]}])

    [profile] = load_user_profiles(path)

    assert profile.target_cities == ("London", "Paris", "Berlin")


def test_skips_invalid_and_duplicate_entries(tmp_path):
    path = _write(tmp_path, [
        {"user_key": "u1"},
        {"target_cities": ["London"]},
        "not a profile",
        {"user_key": "u1", "target_cities": ["Paris"]},
    ])

    profiles = load_user_profiles(path)

    assert [p.user_key for p in profiles] == ["u1"]
    assert profiles[0].target_cities == ()


def test_rejects_non_list_file(tmp_path):
    path = _write(tmp_path, {"user_key": "u1"})

    with pytest.raises(ValueError):
        load_user_profiles(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_user_profiles(str(tmp_path / "missing.json"))
