from datetime import datetime, timezone

from profile_indexer.utils.hashing import build_fingerprint, canonical_json, hash_payload, json_equal


class TestHashing:

    def test_hash_ignores_key_order(self):
        assert hash_payload({"a": 1, "b": [1, 2]}) == hash_payload({"b": [1, 2], "a": 1})

    def test_hash_changes_with_content(self):
        assert hash_payload({"a": 1}) != hash_payload({"a": 2})

    def test_canonical_json_serializes_datetimes(self):
        value = {"at": datetime(2024, 1, 2, tzinfo=timezone.utc)}
        assert canonical_json(value) == '{"at":"2024-01-02T00:00:00+00:00"}'

    def test_json_equal_is_deep(self):
        assert json_equal({"x": {"b": 2, "a": 1}}, {"x": {"a": 1, "b": 2}})
        assert not json_equal({"x": [1, 2]}, {"x": [2, 1]})


class TestFingerprint:

    def test_normalizes_case_and_whitespace(self):
        assert build_fingerprint(["  Acme  Corp ", "CTO", "2020-01-01", None]) == "acme corp|cto|2020-01-01|"

    def test_same_role_different_spacing_collides(self):
        assert build_fingerprint(["Acme", "Chief  Technology Officer"]) == build_fingerprint(
            ["acme", "chief technology officer"]
        )
