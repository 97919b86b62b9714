import pytest

from lode.core.exceptions import ExpressionError
from lode.core.expressions import evaluate, matches

PROPS = {"csduid": "2410", "income": 72000, "province": "QC", "growth": None}


class TestEvaluate:
    @pytest.mark.parametrize(
        "expression,expected",
        [
            (["get", "income"], 72000),
            (["get", "missing"], None),
            (["has", "csduid"], True),
            (["has", "missing"], False),
            (["==", ["get", "csduid"], "2410"], True),
            (["!=", ["get", "csduid"], "2410"], False),
            ([">=", ["get", "income"], 60000], True),
            (["<", ["get", "income"], 60000], False),
            (["!", ["has", "missing"]], True),
            (["all", [">", ["get", "income"], 1], ["==", ["get", "province"], "QC"]], True),
            (["any", ["<", ["get", "income"], 1], ["==", ["get", "province"], "ON"]], False),
            (["in", ["get", "province"], ["literal", ["QC", "ON"]]], True),
            (["match", ["get", "province"], ["QC", "NB"], "east", "ON", "centre", "other"], "east"),
            (["match", ["get", "province"], "BC", "west", "other"], "other"),
            (["case", ["<", ["get", "income"], 50000], "low", "high"], "high"),
            (["to-string", ["get", "income"]], "72000"),
            (["to-number", "12.5"], 12.5),
            ("plain", "plain"),
        ],
    )
    def test_operators(self, expression, expected):
        assert evaluate(expression, PROPS) == expected

    def test_ordering_against_missing_value_is_false(self):
        assert evaluate(["<", ["get", "growth"], 0], PROPS) is False
        assert evaluate([">=", ["get", "growth"], 0], PROPS) is False

    def test_ordering_incomparable_types_is_false(self):
        assert evaluate(["<", ["get", "csduid"], 5], PROPS) is False

    def test_tuples_are_accepted(self):
        assert evaluate(("==", ("get", "province"), "QC"), PROPS) is True

    def test_unknown_operator_raises(self):
        with pytest.raises(ExpressionError):
            evaluate(["interpolate", ["linear"], ["zoom"]], PROPS)

    def test_wrong_arity_raises(self):
        with pytest.raises(ExpressionError):
            evaluate(["==", ["get", "income"]], PROPS)

    def test_bad_number_raises(self):
        with pytest.raises(ExpressionError):
            evaluate(["to-number", "abc"], PROPS)


class TestMatches:
    def test_none_matches_everything(self):
        assert matches(None, {})

    def test_truthiness(self):
        assert matches(["==", ["get", "province"], "QC"], PROPS)
        assert not matches(["==", ["get", "province"], "ON"], PROPS)
