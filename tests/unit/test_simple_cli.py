"""
Unit tests for simple_cli.line_to_keys

Coverage plan
─────────────
normal modes → one key per character, empty line is Enter, word keys
text modes   → line replaces the buffer, then Enter
"""

import pytest

from core.session import Mode
from simple_cli import line_to_keys


class TestNormalModeLines:

    def test_each_character_is_a_key(self):
        assert line_to_keys("jj", Mode.NORMAL) == ["j", "j"]

    def test_empty_line_is_enter(self):
        assert line_to_keys("", Mode.NORMAL) == ["enter"]

    def test_surrounding_whitespace_is_ignored(self):
        assert line_to_keys("  q ", Mode.NORMAL) == ["q"]

    @pytest.mark.parametrize("word,key", [
        (":up", "up"),
        (":down", "down"),
        (":left", "left"),
        (":right", "right"),
        (":esc", "escape"),
        (":enter", "enter"),
    ])
    def test_word_keys(self, word, key):
        assert line_to_keys(word, Mode.SELECTING_CONNECTION) == [key]


class TestTextModeLines:

    def test_line_replaces_buffer(self):
        keys = line_to_keys("new", Mode.EDITING_NAME, buffer="old")
        assert keys == ["backspace"] * 3 + ["n", "e", "w", "enter"]

    def test_empty_line_submits_empty_buffer(self):
        assert line_to_keys("", Mode.ADDING_CONNECTION_URL, buffer="ab") == ["backspace", "backspace", "enter"]

    def test_escape_word_cancels(self):
        assert line_to_keys(":esc", Mode.ADDING_CONNECTION_NAME, buffer="x") == ["escape"]
