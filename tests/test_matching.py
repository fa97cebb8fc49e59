"""Tests for signature parsing and reconciliation."""

import pytest

from security_marker.matching import (
    SignatureMatcher,
    match_signature,
    parse_signature,
    reconcile_scores,
    simple_type_name,
    split_params,
)
from security_marker.matching.signature import canonical_type, erase_generics


class TestParseSignature:
    """Signature strings -> owner, name, parameters."""

    def test_basic(self):
        parsed = parse_signature("com.acme.Parser#parse(java.lang.String,int)")
        assert parsed.owner == "com.acme.Parser"
        assert parsed.name == "parse"
        assert parsed.params == ("java.lang.String", "int")

    def test_no_params(self):
        parsed = parse_signature("pkg.mod#run()")
        assert parsed.params == ()

    def test_render_round_trip(self):
        sig = "pkg.mod.Cls#f(pathlib.Path,dict[str,int])"
        assert parse_signature(sig).render() == sig

    def test_whitespace_is_canonicalized(self):
        parsed = parse_signature("C#m(Map<String, Integer>, int)")
        assert parsed.params == ("Map<String,Integer>", "int")

    def test_varargs_read_as_arrays(self):
        parsed = parse_signature("C#m(String...)")
        assert parsed.params == ("String[]",)

    @pytest.mark.parametrize("bad", ["", "no-hash(int)", "C#m", "C#m(int"])
    def test_malformed_returns_none(self, bad):
        assert parse_signature(bad) is None


class TestSplitParams:
    """Top-level comma splitting."""

    def test_generic_commas_do_not_split(self):
        assert split_params("Map<K,V>, List<T>") == ["Map<K,V>", "List<T>"]

    def test_subscript_commas_do_not_split(self):
        assert split_params("dict[str, int], Any") == ["dict[str, int]", "Any"]

    def test_blank_is_empty(self):
        assert split_params("  ") == []


class TestTypeNames:
    """Simple type names used for tolerant comparison."""

    def test_last_dot_segment(self):
        assert simple_type_name("java.lang.String") == "String"

    def test_generics_are_erased(self):
        assert simple_type_name("java.util.List<java.lang.String>") == "List"
        assert simple_type_name("typing.Optional[pathlib.Path]") == "Optional"

    def test_arrays_are_kept(self):
        assert simple_type_name("java.lang.String[]") == "String[]"
        assert simple_type_name("String...") == "String[]"

    def test_erase_generics_keeps_array_suffix(self):
        assert erase_generics("List<String>[]") == "List[]"

    def test_canonical_type(self):
        assert canonical_type(" int ... ") == "int[]"


class TestMatchSignature:
    """Reconciliation against the authoritative set."""

    def test_exact_match_wins(self):
        auth = {"C#m(String)", "C#m(java.lang.String)"}
        assert match_signature("C#m(java.lang.String)", auth) == "C#m(java.lang.String)"

    def test_qualified_vs_simple(self):
        auth = {"C#m(String)", "C#m(int)"}
        assert match_signature("C#m(java.lang.String)", auth) == "C#m(String)"

    def test_simple_vs_qualified(self):
        auth = {"pkg.io.Reader#open(pathlib.Path)"}
        assert match_signature("pkg.io.Reader#open(Path)", auth) == "pkg.io.Reader#open(pathlib.Path)"

    def test_varargs_match_arrays(self):
        auth = {"C#log(java.lang.String[])"}
        assert match_signature("C#log(String...)", auth) == "C#log(java.lang.String[])"

    def test_generic_whitespace(self):
        auth = {"C#put(java.util.Map<java.lang.String,java.lang.Integer>)"}
        assert match_signature("C#put(Map<String, Integer>)", auth) == next(iter(auth))

    def test_arity_must_agree(self):
        auth = {"C#m(String,int)"}
        assert match_signature("C#m(String)", auth) == "C#m(String)"

    def test_owner_must_agree(self):
        auth = {"D#m(String)"}
        assert match_signature("C#m(java.lang.String)", auth) == "C#m(java.lang.String)"

    def test_miss_returns_input(self):
        assert match_signature("C#m(int)", set()) == "C#m(int)"

    def test_malformed_only_matches_exactly(self):
        assert match_signature("garbage", {"garbage"}) == "garbage"
        assert match_signature("garbage", {"C#m()"}) == "garbage"

    def test_deterministic_for_ambiguous_candidates(self):
        auth = {"C#m(b.Path)", "C#m(a.Path)"}
        for _ in range(5):
            assert match_signature("C#m(Path)", auth) == "C#m(a.Path)"


class TestReconcile:
    """Re-keying extractor output."""

    def test_rekeys_by_authoritative_signature(self):
        scores = {"C#m(Path)": 4, "C#n()": 2}
        auth = {"C#m(pathlib.Path)", "C#n()"}
        assert reconcile_scores(scores, auth) == {"C#m(pathlib.Path)": 4.0, "C#n()": 2.0}

    def test_collision_keeps_larger_score(self):
        scores = {"C#m(Path)": 3, "C#m(x.Path)": 7}
        auth = {"C#m(pathlib.Path)"}
        assert reconcile_scores(scores, auth) == {"C#m(pathlib.Path)": 7.0}

    def test_unresolved_pass_through(self):
        assert reconcile_scores({"X#y()": 1}, set()) == {"X#y()": 1.0}

    def test_matcher_membership(self):
        matcher = SignatureMatcher({"C#m()", "C#n()"})
        assert "C#m()" in matcher
        assert "C#z()" not in matcher
        assert len(matcher) == 2
