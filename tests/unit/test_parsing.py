"""Unit tests for model output parsing."""

from devswarm.agents.models import Complexity
from devswarm.agents.parsing import (
    extract_json_array,
    option_from_dict,
    parse_analysis,
    parse_numbered_steps,
)


class TestParseAnalysis:
    """Test PROBLEM / CONTEXT / CONSTRAINTS parsing."""

    def test_sections(self):
        text = (
            "Sure, here is my analysis.\n"
            "PROBLEM: Login endpoint returns 500\n"
            "CONTEXT: Flask app with SQLAlchemy\n"
            "CONSTRAINTS:\n"
            "- Keep the API stable\n"
            "* Add a regression test\n"
            "\n"
            "Let me know if you need more."
        )
        analysis = parse_analysis(text)

        assert analysis.problem == "Login endpoint returns 500"
        assert analysis.context == "Flask app with SQLAlchemy"
        assert analysis.constraints == ["Keep the API stable", "Add a regression test"]

    def test_single_line(self):
        analysis = parse_analysis("PROBLEM: slow query CONTEXT: postgres")
        assert analysis.problem == "slow query"
        assert analysis.context == "postgres"
        assert analysis.constraints == []

    def test_missing_sections(self):
        analysis = parse_analysis("no structure at all")
        assert analysis.problem == ""
        assert analysis.context == ""
        assert analysis.constraints == []


class TestExtractJsonArray:
    """Test tolerant JSON array extraction."""

    def test_plain_array(self):
        assert extract_json_array('[{"title": "A"}, {"title": "B"}]') == [
            {"title": "A"},
            {"title": "B"},
        ]

    def test_leading_prose_and_fence(self):
        text = 'Here are the options:\n```json\n[{"title": "A"}]\n```\nHope this helps.'
        assert extract_json_array(text) == [{"title": "A"}]

    def test_prose_brackets_before_array(self):
        text = 'Options [see below]: [{"title": "A"}]'
        assert extract_json_array(text) == [{"title": "A"}]

    def test_truncated_array_salvages_complete_objects(self):
        text = '[{"title": "A"}, {"title": "B"}, {"title": "C", "pros": ["fa'
        assert extract_json_array(text) == [{"title": "A"}, {"title": "B"}]

    def test_options_wrapper(self):
        assert extract_json_array('{"options": [{"title": "A"}, 3]}') == [{"title": "A"}]

    def test_non_objects_are_dropped(self):
        assert extract_json_array('[1, "two", {"title": "A"}]') == [{"title": "A"}]

    def test_garbage(self):
        assert extract_json_array("") == []
        assert extract_json_array("I could not think of anything") == []
        assert extract_json_array("[not json") == []


class TestNumberedSteps:
    """Test plan step parsing."""

    def test_steps(self):
        text = "Plan:\n1. Add model\n2) Add route\n  3. Write tests\nDone."
        assert parse_numbered_steps(text) == ["Add model", "Add route", "Write tests"]

    def test_no_steps(self):
        assert parse_numbered_steps("just do it") == []


class TestOptionFromDict:
    """Test option normalization."""

    def test_defaults(self):
        option = option_from_dict({}, "option-t-0")
        assert option.option_id == "option-t-0"
        assert option.title == "Untitled option"
        assert option.complexity == Complexity.MEDIUM
        assert option.confidence == 0.5
        assert option.estimated_duration_seconds == 3600

    def test_confidence_is_clamped(self):
        assert option_from_dict({"confidence": 7}, "o").confidence == 1.0
        assert option_from_dict({"confidence": -1}, "o").confidence == 0.0
        assert option_from_dict({"confidence": "nan"}, "o").confidence == 0.5
        assert option_from_dict({"confidence": "high"}, "o").confidence == 0.5

    def test_alternative_keys(self):
        option = option_from_dict(
            {
                "title": "Cache",
                "estimatedTime": 7_200_000,
                "filesToModify": ["src/cache.py"],
                "complexity": "HIGH",
                "pros": "fast",
            },
            "o",
        )
        assert option.estimated_duration_seconds == 7200
        assert option.files_to_modify == ["src/cache.py"]
        assert option.complexity == Complexity.HIGH
        assert option.pros == ["fast"]
