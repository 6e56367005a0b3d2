"""
Tests for join code generation and normalisation.
"""

from app.modules.quiz.codes import CODE_ALPHABET, generate_code, normalize_code


class TestGenerateCode:
    def test_default_length_is_six(self):
        assert len(generate_code()) == 6

    def test_uses_only_unambiguous_characters(self):
        for _ in range(200):
            code = generate_code(8)
            assert set(code) <= set(CODE_ALPHABET)
        for confusable in "IO01":
            assert confusable not in CODE_ALPHABET

    def test_codes_vary(self):
        assert len({generate_code() for _ in range(50)}) > 1


class TestNormalizeCode:
    def test_strips_and_uppercases(self):
        assert normalize_code("  abc123 ") == "ABC123"

    def test_none_becomes_empty(self):
        assert normalize_code(None) == ""
