"""Unit tests for model output coercion"""
from app.services.ai.normalize import as_dict, clamp_score, string_list, to_number


class TestToNumber:
    def test_numbers_pass_through(self):
        """Test numbers convert to float"""
        assert to_number(7) == 7.0
        assert to_number(2.5) == 2.5

    def test_numeric_strings(self):
        """Test numeric strings are parsed"""
        assert to_number(" 42 ") == 42.0
        assert to_number("85%") == 85.0

    def test_garbage_uses_default(self):
        """Test unparseable values fall back to the default"""
        assert to_number("high", default=3) == 3
        assert to_number(None) == 0.0
        assert to_number(float("nan")) == 0.0


class TestClampScore:
    def test_in_range_is_rounded(self):
        """Test in-range scores are rounded"""
        assert clamp_score(72.6) == 73

    def test_above_range(self):
        """Test scores above 100 clamp to 100"""
        assert clamp_score(150) == 100

    def test_below_range(self):
        """Test negative scores clamp to 0"""
        assert clamp_score(-20) == 0

    def test_non_numeric_becomes_lower_bound(self):
        """Test non-numeric scores become 0"""
        assert clamp_score("n/a") == 0

    def test_result_is_int(self):
        """Test clamped scores are integers"""
        assert isinstance(clamp_score("88.0"), int)


def test_string_list():
    """Test string lists drop blanks and wrap single strings"""
    assert string_list(None) == []
    assert string_list("one") == ["one"]
    assert string_list(["a", None, "", " ", 3]) == ["a", "3"]
    assert string_list({"a": 1}) == []


def test_as_dict():
    """Test non-dict values become an empty dict"""
    assert as_dict({"a": 1}) == {"a": 1}
    assert as_dict([1]) == {}
