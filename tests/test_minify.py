"""Tests for the minimizer: comment removal and separator choice."""

from __future__ import annotations

from rmsprep.lexer import tokenize
from rmsprep.minify import minify, needs_space


def _min(source: str, keep_newlines: bool = True) -> str:
    return minify(tokenize(source), keep_newlines)


class TestComments:
    def test_block_comment_removed(self):
        assert _min("a /* note */ b") == "a b"

    def test_line_comment_removed(self):
        assert _min("a // note\nb") == "a\nb"

    def test_comment_only(self):
        assert _min("/* a */\n// b\n") == ""

    def test_comment_between_punctuation(self):
        assert _min("(/* x */)") == "()"


class TestWhitespace:
    def test_words_keep_one_space(self):
        assert _min("base_terrain    GRASS") == "base_terrain GRASS"

    def test_punctuation_needs_no_space(self):
        assert _min("place_land( rnd( 1 , 5 ) )") == "place_land(rnd(1,5))"

    def test_braces_keep_spaces(self):
        assert _min("create_land{terrain_type GRASS}") == "create_land { terrain_type GRASS }"

    def test_blank_lines_collapse(self):
        assert _min("a\n\n\n   b\n") == "a\nb"

    def test_leading_and_trailing_whitespace_removed(self):
        assert _min("  \n a \n ") == "a"

    def test_single_line(self):
        assert _min("a\nb\n(\nc\n)", keep_newlines=False) == "a b (c)"

    def test_sign_stays_apart_from_command(self):
        assert _min("land_percent -5") == "land_percent -5"

    def test_sign_without_gap_stays_attached(self):
        assert _min("(A-5)") == "(A-5)"

    def test_spaced_paren_stays_apart_from_name(self):
        assert _min("#const A   (B + 1)") == "#const A (B +1)"

    def test_call_without_gap_stays_attached(self):
        assert _min("rnd(1,5)") == "rnd(1,5)"

    def test_directive_spacing(self):
        assert _min("#const   X   5") == "#const X 5"


class TestMerging:
    def test_slashes_do_not_merge_into_comment(self):
        assert _min("a / / b") == "a/ /b"

    def test_slash_star_do_not_merge(self):
        assert _min("/ *") == "/ *"

    def test_hash_before_name(self):
        assert _min("# name") == "# name"

    def test_number_dot_number(self):
        assert _min("1 .5") == "1. 5"

    def test_needs_space_for_adjacent_words(self):
        a, b = tokenize("ab")[0], tokenize("cd")[0]
        assert needs_space(a, b)

    def test_no_space_between_parens(self):
        a, b = tokenize(")(")[:2]
        assert not needs_space(a, b)


class TestFixedPoint:
    def test_minified_output_is_stable(self):
        source = "create_land {\n  terrain_type  GRASS // x\n  land_percent -5\n}\na / / b (c , d)"
        once = _min(source)
        assert _min(once) == once
