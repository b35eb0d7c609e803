"""
Tests for `{{variable}}` template expansion.
"""

from nanoflow.core.variables import expand_variables


def test_first_variable_varies_slowest():
    result = expand_variables(
        "A {{c}} {{s}}",
        {"c": ["red", "blue"], "s": ["cat", "dog"]},
    )
    assert result == ["A red cat", "A red dog", "A blue cat", "A blue dog"]


def test_no_variables_returns_template():
    assert expand_variables("A {{c}} cat", {}) == ["A {{c}} cat"]


def test_every_occurrence_is_replaced():
    assert expand_variables("{{x}} and {{x}}", {"x": ["a"]}) == ["a and a"]


def test_unknown_placeholders_are_left_alone():
    assert expand_variables("{{x}} {{y}}", {"x": ["1", "2"]}) == ["1 {{y}}", "2 {{y}}"]


def test_empty_value_list_yields_nothing():
    assert expand_variables("{{x}} {{y}}", {"x": ["a"], "y": []}) == []


def test_count_is_product_of_lengths():
    result = expand_variables("{{a}}{{b}}{{c}}", {"a": "12", "b": "xyz", "c": ["!", "?"]})
    assert len(result) == 2 * 3 * 2
    assert result[0] == "1x!"
    assert result[-1] == "2z?"
