"""End-to-end tests of the full pipeline and its documented properties."""

from __future__ import annotations

import io

import pytest

from rmsprep import preprocess
from rmsprep.errors import CyclicConstantError, StructureError
from rmsprep.pipeline import Options, process


class TestExamples:
    def test_repeat_with_rnd_hoists_three_constants(self, run):
        out = run("#REPEAT(3)\nplace_land(rnd(1,5))\n#END_REPEAT")
        assert out == (
            "#const C1 rnd(1,5)\n"
            "#const C2 rnd(1,5)\n"
            "#const C3 rnd(1,5)\n"
            "place_land(C1)\n"
            "place_land(C2)\n"
            "place_land(C3)"
        )

    def test_unmatched_end_repeat(self):
        result = process("a\n#END_REPEAT\n")
        assert result.text is None
        (diag,) = result.diagnostics
        assert diag.kind == "StructureError"
        assert diag.span.start.line == 2

    def test_unmatched_end_repeat_raises(self):
        with pytest.raises(StructureError):
            preprocess("#END_REPEAT")

    def test_cyclic_constants(self):
        with pytest.raises(CyclicConstantError) as exc_info:
            preprocess("#const A B\n#const B A")
        assert "A" in exc_info.value.chain
        assert "B" in exc_info.value.chain


class TestFixedPoint:
    @pytest.mark.parametrize(
        "source",
        [
            "base_terrain GRASS",
            "create_land {\n  terrain_type GRASS // main\n  land_percent -5\n}\n",
            "/* header */\n<PLAYER_SETUP>\n  random_placement\n\n\n<LAND_GENERATION>",
            "start_random\n  percent_chance 50 #define A\nend_random\nif A\n  x\nendif",
            "create_object GOLD { number_of_objects rnd(2,4) min_distance_to_players 7 }",
            "actor_area POND\navoid_actor_area POND",
            "#const N (2 * 3)\nland_percent N",
        ],
    )
    def test_output_is_fixed_point(self, run, source):
        once = run(source)
        assert run(once) == once

    def test_single_line_fixed_point(self, run):
        once = run("a {\n b\n}\nc rnd(1,2)", keep_newlines=False)
        assert run(once, keep_newlines=False) == once


class TestRepeatProperty:
    @pytest.mark.parametrize("n", [0, 1, 2, 5])
    def test_n_concatenations(self, run, n):
        body = "create_terrain FOREST {\n  land_percent 5 /* x */\n}\n"
        out = run(f"#REPEAT({n})\n{body}#END_REPEAT")
        single = run(body)
        assert out == "\n".join([single] * n)

    def test_zero_is_empty(self, run):
        assert run("#REPEAT(0)\nanything at all\n#END_REPEAT") == ""


class TestAreaProperty:
    def test_reference_unaffected_by_unrelated_declaration(self, run):
        with_b = run("actor_area A\nactor_area B\navoid_actor_area A")
        without_b = run("actor_area A\navoid_actor_area A")
        assert with_b.splitlines()[-1] == without_b.splitlines()[-1] == "avoid_actor_area 20000"

    def test_area_base_option(self, run):
        assert run("actor_area A", area_base=100) == "actor_area 100"

    def test_documents_do_not_share_ids(self, run):
        first = run("actor_area A\nactor_area B")
        second = run("actor_area C")
        assert first == "actor_area 20000\nactor_area 20001"
        assert second == "actor_area 20000"


def _split(out: str) -> tuple[list[str], list[str]]:
    """Hoisted declaration lines and the remaining lines of an output."""
    lines = out.splitlines()
    decls = [line for line in lines if line.startswith("#const C")]
    rest = [line for line in lines if not line.startswith("#const C")]
    return decls, rest


class TestTruncationProperty:
    @pytest.mark.parametrize(
        "before,after",
        [
            ("a b\nc", "d e"),
            ("x rnd(1,2)\n#REPEAT(2) y #END_REPEAT", "z rnd(3,4)"),
            ("#HEADER_START\ntitle\n#HEADER_END\nq", "r"),
        ],
    )
    def test_output_with_break_is_prefix(self, run, before, after):
        full = _split(run(f"{before}\n{after}"))
        cut = _split(run(f"{before}\n#BREAK\n{after}"))
        for full_part, cut_part in zip(full, cut):
            assert full_part[: len(cut_part)] == cut_part

    def test_hoisted_constants_survive_break(self, run):
        out = run("a\nx rnd(1,9)\n#BREAK\nb")
        assert out == "#const C1 rnd(1,9)\na\nx C1"

    def test_break_inside_repeat(self, run):
        assert run("#REPEAT(3)\nx\n#BREAK\n#END_REPEAT") == "x"


class TestHoistProperty:
    def test_declaration_does_not_use_later_constant(self, run):
        out = run("#const N 5\ncreate_object GOLD { number_of_objects rnd(1,N) }")
        assert out == (
            "#const C1 rnd(1,5)\n#const N 5\ncreate_object GOLD { number_of_objects C1 }"
        )

    @pytest.mark.parametrize("k", [1, 2, 4])
    def test_k_distinct_constants(self, run, k):
        out = run("\n".join(f"line{i} rnd(1,{i + 2})" for i in range(k)))
        declarations = [line for line in out.splitlines() if line.startswith("#const")]
        assert len(declarations) == k
        assert len({d.split()[1] for d in declarations}) == k

    def test_hoisting_disabled(self, run):
        assert run("x rnd(1,2)", hoist_rnd=False) == "x rnd(1,2)"

    def test_prefix_option(self, run):
        assert run("x rnd(1,2)", rnd_prefix="R") == "#const R1 rnd(1,2)\nx R1"


class TestPatternsEndToEnd:
    def test_circle_lands(self, run):
        out = run("#CIRCLE_LANDS(2, 10) { terrain_type GRASS }")
        assert out == (
            "create_land { land_position 60 50 terrain_type GRASS }\n"
            "create_land { land_position 40 50 terrain_type GRASS }"
        )

    def test_pattern_inside_repeat(self, run):
        out = run("#REPEAT(2)\n#LINE_LANDS(1, 1, 2, 3, 4)\n#END_REPEAT")
        assert out == "create_land { land_position 1 2 }\ncreate_land { land_position 1 2 }"


class TestPerPlayerObjects:
    def test_object_copied_per_player_land(self, run):
        out = run("create_object GOLD {\n  number_of_objects 2\n  #SET_PLACE_FOR_EVERY_PLAYER\n}")
        assert out == (
            "create_object GOLD {\nnumber_of_objects 2\nplace_on_specific_land_id 1\n}\n"
            "create_object GOLD {\nnumber_of_objects 2\nplace_on_specific_land_id 2\n}"
        )

    def test_each_copy_hoists_its_own_rnd(self, run):
        out = run("create_object GOLD { number_of_objects rnd(1,3) #SET_PLACE_FOR_EVERY_PLAYER }")
        assert out.splitlines()[:2] == ["#const C1 rnd(1,3)", "#const C2 rnd(1,3)"]


class TestHeaders:
    def test_header_lines_lead(self, run):
        out = run("x\n#HEADER_START\nIslands v2\n#HEADER_END\ny")
        assert out == "/* Islands v2 */\nx\ny"


class TestOptions:
    def test_extern_constants(self):
        source = "#const A (DLC_LAND + 1)"
        result = process(source, options=Options(extern_constants=frozenset({"DLC_LAND"})))
        assert result.ok
        assert result.text == "#const A (DLC_LAND +1)"

    def test_unknown_name_without_extern(self):
        result = process("#const A (DLC_LAND + 1)")
        assert not result.ok
        assert result.diagnostics[0].kind == "UnresolvedSymbolError"

    def test_trace_dumps_tree(self):
        buf = io.StringIO()
        process("#REPEAT(2) x #END_REPEAT", trace=buf)
        assert "Repeat(2)" in buf.getvalue()
