import pytest

from cv_ingestion.core.fuzzy import CONTAINMENT_SCORE, fuzzy_match

PAIRS = [
    ("JavaScript", "Jscript"),
    ("PostgreSQL", "Postgres"),
    ("React", "Redux"),
    ("Bachelor of Science", "Bachelor of Arts"),
    ("", "Python"),
]


@pytest.mark.parametrize("a,b", PAIRS)
def test_symmetric(a, b):
    assert fuzzy_match(a, b) == fuzzy_match(b, a)


@pytest.mark.parametrize("s", ["Python", "  python ", "C++", ""])
def test_self_match_is_one(s):
    assert fuzzy_match(s, s) == 1.0


def test_case_and_whitespace_insensitive():
    assert fuzzy_match("  JavaScript", "javascript ") == 1.0


def test_blank_against_text_is_zero():
    assert fuzzy_match("", "Python") == 0.0


def test_containment():
    assert fuzzy_match("Dhaka University", "University of Dhaka University Campus") == CONTAINMENT_SCORE
    assert fuzzy_match("Java", "JavaScript") == CONTAINMENT_SCORE


def test_edit_distance_similarity():
    # levenshtein("javascript", "jscript") == 3 over a length of 10
    assert fuzzy_match("JavaScript", "Jscript") == pytest.approx(0.7)
    assert fuzzy_match("abc", "xyz") == 0.0
