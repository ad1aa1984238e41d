"""Predicate composition and in-memory evaluation."""
from __future__ import annotations

import pytest

from schoolboard.access_policy.predicates import (
    ALWAYS,
    NEVER,
    And,
    Field,
    Or,
    Related,
    all_of,
    any_of,
    eq,
    evaluate,
    icontains,
    is_null,
    one_of,
    related,
)
from schoolboard.school.schema import EntityKind as K


def test_all_of_folds_constants_and_flattens():
    a, b, c = eq("id", 1), eq("id", 2), eq("id", 3)
    assert all_of() is ALWAYS
    assert all_of(ALWAYS, a) == a
    assert all_of(a, NEVER, b) is NEVER
    assert all_of(all_of(a, b), c) == And((a, b, c))


def test_any_of_folds_constants_and_flattens():
    a, b = eq("id", 1), eq("id", 2)
    assert any_of() is NEVER
    assert any_of(NEVER, a) == a
    assert any_of(a, ALWAYS) is ALWAYS
    assert any_of(any_of(a, b), a) == Or((a, b, a))


def test_related_nests_dotted_path():
    inner = eq("teacher_id", "t-1")
    assert related("lesson.class", inner) == Related("lesson", Related("class", inner))
    assert related("", inner) == inner


def test_unknown_operator_is_rejected():
    with pytest.raises(ValueError):
        Field("name", "startswith", "x")


def test_evaluate_follows_relations(repo):
    exam = repo.rows[K.EXAM][1]
    taught_by_t1 = related("lesson", eq("teacher_id", "t-1"))
    assert evaluate(taught_by_t1, K.EXAM, exam, repo)
    assert not evaluate(related("lesson", eq("teacher_id", "t-2")), K.EXAM, exam, repo)


def test_evaluate_to_many_relation_means_some(repo):
    class_1a = repo.rows[K.CLASS][1]
    assert evaluate(related("students", eq("id", "s-3")), K.CLASS, class_1a, repo)
    assert not evaluate(related("students", eq("id", "s-2")), K.CLASS, class_1a, repo)


def test_evaluate_join_table_relation(repo):
    math = repo.rows[K.SUBJECT][1]
    assert evaluate(related("teachers", eq("id", "t-1")), K.SUBJECT, math, repo)


def test_icontains_is_case_insensitive(repo):
    tina = repo.rows[K.TEACHER]["t-1"]
    assert evaluate(icontains("name", "TIN"), K.TEACHER, tina, repo)
    assert not evaluate(icontains("name", "theo"), K.TEACHER, tina, repo)


def test_is_null_and_one_of(repo):
    a3 = repo.rows[K.ANNOUNCEMENT][3]
    assert evaluate(is_null("class_id"), K.ANNOUNCEMENT, a3, repo)
    assert not evaluate(one_of("class_id", [1, 2]), K.ANNOUNCEMENT, a3, repo)
    assert evaluate(one_of("class_id", [2]), K.ANNOUNCEMENT, repo.rows[K.ANNOUNCEMENT][2], repo)


def test_unknown_column_raises(repo):
    with pytest.raises(ValueError):
        evaluate(eq("nope", 1), K.CLASS, repo.rows[K.CLASS][1], repo)
