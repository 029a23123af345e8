from profile_indexer.utils.json_parser import parse_json_object, parse_json_safely, strip_code_fences


class TestParseJsonSafely:

    def test_plain_json(self):
        assert parse_json_safely('{"shouldProceed": true}') == {"shouldProceed": True}

    def test_code_fenced_json(self):
        assert parse_json_safely('```json\n{"a": 1}\n```') == {"a": 1}

    def test_prose_around_object(self):
        assert parse_json_safely('Sure, here it is: {"a": 1, "b": [1, 2]} Hope that helps.') == {"a": 1, "b": [1, 2]}

    def test_trailing_garbage(self):
        assert parse_json_safely('{"a": 1}}}') == {"a": 1}

    def test_unparseable_returns_none(self):
        assert parse_json_safely("no json here") is None
        assert parse_json_safely("") is None

    def test_strip_code_fences_without_language(self):
        assert strip_code_fences("```\n[1]\n```") == "[1]"


class TestParseJsonObject:

    def test_rejects_arrays(self):
        assert parse_json_object("[1, 2]") is None

    def test_accepts_objects(self):
        assert parse_json_object('{"minAge": 30}') == {"minAge": 30}
