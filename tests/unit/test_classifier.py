"""
Unit tests for core/classifier.py

Coverage plan
─────────────
strip_leading_comments → line/block comments, interleaving, unterminated
classify               → Query vs Command, case folding, comment invariance
"""

import pytest

from core.classifier import StatementKind, classify, strip_leading_comments


# ─────────────────────────────────────────────────────────────────────────────
# 1. Comment stripping
# ─────────────────────────────────────────────────────────────────────────────

class TestStripLeadingComments:

    def test_plain_text_is_only_left_trimmed(self):
        assert strip_leading_comments("  SELECT 1  ") == "SELECT 1  "

    def test_line_comment_is_removed(self):
        assert strip_leading_comments("-- note\nSELECT 1") == "SELECT 1"

    def test_block_comment_is_removed(self):
        assert strip_leading_comments("/* note */ SELECT 1") == "SELECT 1"

    def test_interleaved_comments_and_whitespace(self):
        sql = "\n  /* a */ -- b\n\t/* c\n d */\n-- e\n  update t set x = 1"
        assert strip_leading_comments(sql) == "update t set x = 1"

    def test_unterminated_block_comment_consumes_everything(self):
        assert strip_leading_comments("/* unterminated SELECT 1") == ""

    def test_line_comment_without_newline_consumes_everything(self):
        assert strip_leading_comments("-- only a comment") == ""

    def test_block_comment_close_must_follow_the_opener(self):
        assert strip_leading_comments("/*/ SELECT 1") == ""

    def test_comment_after_first_token_is_kept(self):
        assert strip_leading_comments("SELECT 1 -- trailing") == "SELECT 1 -- trailing"


# ─────────────────────────────────────────────────────────────────────────────
# 2. Classification
# ─────────────────────────────────────────────────────────────────────────────

class TestClassify:

    def test_line_comment_before_select_is_query(self):
        assert classify("-- note\nSELECT 1") is StatementKind.QUERY

    def test_unterminated_block_comment_is_command(self):
        assert classify("/* unterminated") is StatementKind.COMMAND

    @pytest.mark.parametrize("sql", ["select 1", "SeLeCt now()", "WITH x AS (SELECT 1) SELECT * FROM x", "with t as (select 1) select 2"])
    def test_row_producing_statements(self, sql):
        assert classify(sql) is StatementKind.QUERY

    @pytest.mark.parametrize("sql", [
        "INSERT INTO t VALUES (1)",
        "update t set a = 1",
        "CREATE TABLE t (id int)",
        "DELETE FROM t",
        "SHOW search_path",
    ])
    def test_other_statements_are_commands(self, sql):
        assert classify(sql) is StatementKind.COMMAND

    @pytest.mark.parametrize("sql", ["", "   \n\t", "-- just a note", "/* a */ -- b"])
    def test_empty_or_all_comment_input_is_command(self, sql):
        assert classify(sql) is StatementKind.COMMAND

    @pytest.mark.parametrize("prefix", [
        "",
        "-- c\n",
        "/* c */",
        "  /* multi\nline */  -- x\n\n",
        "--a\n--b\n/*c*//*d*/\n",
    ])
    @pytest.mark.parametrize("suffix", ["SELECT 1", "with q as (select 1) select 1", "DROP TABLE t", "vacuum"])
    def test_leading_comments_never_change_the_result(self, prefix, suffix):
        assert classify(prefix + suffix) is classify(suffix)
