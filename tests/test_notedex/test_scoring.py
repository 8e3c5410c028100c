"""Unit tests for notedex.scoring."""

import pytest

from notedex.scoring import Haystack, highlight, score


def _hay(title="", note_id="", body="", tags=()):
    return Haystack(title=title, note_id=note_id, body=body, tags=tuple(tags))


class TestHaystack:
    def test_of_lowercases_fields(self, make_record):
        hay = Haystack.of(make_record("ID-1", title="Big Title", tags=["MixedCase"], content="Some BODY"))
        assert hay == Haystack(title="big title", note_id="id-1", body="some body", tags=("mixedcase",))

    @pytest.mark.parametrize("term", ["big", "id-", "body", "mixed"])
    def test_contains_checks_every_field(self, make_record, term):
        hay = Haystack.of(make_record("ID-1", title="Big Title", tags=["MixedCase"], content="Some BODY"))
        assert hay.contains(term)

    def test_contains_miss(self):
        assert not _hay(title="abc").contains("xyz")


class TestScore:
    def test_field_weights(self):
        # word-start bonuses included where the term starts a word
        assert score(_hay(title="zebra"), ["zebra"]) == 5.0 + 1.0
        assert score(_hay(tags=["zebra"]), ["zebra"]) == 3.0
        assert score(_hay(note_id="zebra"), ["zebra"]) == 1.0

    def test_title_beats_tag_beats_body_beats_id(self):
        title = score(_hay(title="xzebra"), ["zebra"])
        tag = score(_hay(tags=["xzebra"]), ["zebra"])
        body = score(_hay(body="xzebra"), ["zebra"])
        ident = score(_hay(note_id="xzebra"), ["zebra"])
        assert title > tag > body > ident

    def test_word_start_bonus(self):
        inside = score(_hay(body="xzebra"), ["zebra"])
        start = score(_hay(body=" zebra"), ["zebra"])
        assert start == pytest.approx(inside + 0.5)

    def test_adding_a_title_hit_never_lowers_score(self):
        base = _hay(body="about zebras")
        boosted = _hay(title="zebras", body="about zebras")
        assert score(boosted, ["zebra"]) > score(base, ["zebra"])

    def test_length_penalty_capped(self):
        short = score(_hay(body="zebra"), ["zebra"])
        huge = score(_hay(body="zebra" + "x" * 100_000), ["zebra"])
        assert short - huge == pytest.approx(1.0 - len("zebra") / 20000)

    def test_terms_add_up(self):
        hay = _hay(title="alpha beta")
        assert score(hay, ["alpha", "beta"]) == score(hay, ["alpha"]) + score(hay, ["beta"])


class TestHighlight:
    def test_marks_earliest_term(self):
        assert highlight("one two three", ["three", "two"]) == "one [two] three"

    def test_preserves_original_case(self):
        assert highlight("Hello World", ["world"]) == "Hello [World]"

    def test_ellipses_on_cut_sides(self):
        text = "a" * 50 + "needle" + "b" * 50
        excerpt = highlight(text, ["needle"])
        assert excerpt == "..." + "a" * 40 + "[needle]" + "b" * 40 + "..."

    def test_no_leading_ellipsis_near_start(self):
        assert highlight("needle" + "b" * 50, ["needle"]).startswith("[needle]")

    def test_fallback_prefix_without_match(self):
        text = "x" * 200
        assert highlight(text, ["nope"]) == "x" * 120 + "..."
        assert highlight("short", ["nope"]) == "short"

    def test_newlines_flattened(self):
        assert highlight("line one\nline two\r\nend", ["two"]) == "line one line [two] end"

    def test_empty_text(self):
        assert highlight("", ["x"]) == ""

    def test_custom_marker(self):
        assert highlight("a b c", ["b"], marker=("<<", ">>")) == "a <<b>> c"

    def test_offsets_survive_case_folding_that_changes_length(self):
        assert highlight("İİİİ zebra tail", ["zebra"]) == "İİİİ [zebra] tail"
