"""
Access policy engine: operation decisions and row visibility.

Visibility is checked by evaluating the engine's predicate against the seeded
in-memory school (see conftest).
"""
from __future__ import annotations

import pytest

from schoolboard.access_policy.engine import (
    LIST_ACCESS,
    MUTATE_ACCESS,
    AccessPolicyEngine,
    AccessRequest,
    Operation,
)
from schoolboard.access_policy.errors import Forbidden
from schoolboard.access_policy.filters import build_query_filters
from schoolboard.access_policy.predicates import ALWAYS, NEVER, evaluate
from schoolboard.identity_access.domain import Principal, Role
from schoolboard.school.schema import EntityKind as K
from schoolboard.school.services.dashboard import DashboardService

ENGINE = AccessPolicyEngine()
ADMIN = Principal(id="a-1", role="admin")
T1 = Principal(id="t-1", role="teacher")
S1 = Principal(id="s-1", role="student")
P1 = Principal(id="p-1", role="parent")
P2 = Principal(id="p-2", role="parent")
JANITOR = Principal(id="j-1", role="janitor")


def visible(repo, predicate, kind):
    return {row["id"] for row in repo.rows[kind].values() if evaluate(predicate, kind, row, repo)}


def visible_to(repo, principal, kind):
    return visible(repo, ENGINE.build_visibility_predicate(principal, kind), kind)


# --- decisions -----------------------------------------------------------------


@pytest.mark.parametrize("kind", list(K))
@pytest.mark.parametrize("operation", [Operation.CREATE, Operation.UPDATE, Operation.DELETE])
def test_admin_may_mutate_everything(kind, operation):
    assert ENGINE.authorize(ADMIN, AccessRequest(kind, operation)).allowed


@pytest.mark.parametrize("operation", [Operation.CREATE, Operation.UPDATE, Operation.DELETE])
def test_teacher_may_mutate_results_only(operation):
    assert ENGINE.authorize(T1, AccessRequest(K.RESULT, operation)).allowed
    decision = ENGINE.authorize(T1, AccessRequest(K.EXAM, operation))
    assert not decision.allowed
    assert decision.reason == f"{operation.value}_not_permitted_for_teacher"


@pytest.mark.parametrize("principal", [S1, P1])
@pytest.mark.parametrize("kind", list(K))
def test_students_and_parents_never_mutate(principal, kind):
    for operation in (Operation.CREATE, Operation.UPDATE, Operation.DELETE):
        assert not ENGINE.authorize(principal, AccessRequest(kind, operation)).allowed


def test_list_access_by_role():
    assert ENGINE.authorize(T1, AccessRequest(K.STUDENT, Operation.LIST)).allowed
    assert not ENGINE.authorize(T1, AccessRequest(K.SUBJECT, Operation.LIST)).allowed
    assert not ENGINE.authorize(S1, AccessRequest(K.CLASS, Operation.LIST)).allowed
    assert ENGINE.authorize(P1, AccessRequest(K.ANNOUNCEMENT, Operation.LIST)).allowed


def test_mutating_roles_can_also_list():
    for kind in K:
        assert MUTATE_ACCESS[kind] <= LIST_ACCESS[kind]


def test_target_owner_id_does_not_change_the_decision():
    plain = ENGINE.authorize(T1, AccessRequest(K.RESULT, Operation.UPDATE))
    owned = ENGINE.authorize(T1, AccessRequest(K.RESULT, Operation.UPDATE, target_owner_id="s-1"))
    assert plain == owned


def test_unknown_role_is_denied_everything():
    for kind in K:
        for operation in Operation:
            decision = ENGINE.authorize(JANITOR, AccessRequest(kind, operation))
            assert not decision.allowed
            assert decision.reason == "unknown_role"


def test_require_raises_forbidden():
    with pytest.raises(Forbidden):
        ENGINE.require(S1, AccessRequest(K.CLASS, Operation.CREATE))
    ENGINE.require(ADMIN, AccessRequest(K.CLASS, Operation.CREATE))


# --- visibility ----------------------------------------------------------------


def test_admin_predicate_is_universal(repo):
    assert ENGINE.build_visibility_predicate(ADMIN, K.ANNOUNCEMENT) is ALWAYS
    for kind in K:
        assert visible_to(repo, ADMIN, kind) == set(repo.rows[kind])


def test_unknown_role_sees_nothing(repo):
    for kind in K:
        assert ENGINE.build_visibility_predicate(JANITOR, kind) is NEVER
        assert visible_to(repo, JANITOR, kind) == set()


def test_teacher_sees_announcements_of_taught_classes_and_unowned(repo):
    assert visible_to(repo, T1, K.ANNOUNCEMENT) == {1, 3}


def test_teacher_visibility_across_kinds(repo):
    assert visible_to(repo, T1, K.CLASS) == {1}
    assert visible_to(repo, T1, K.LESSON) == {1}
    assert visible_to(repo, T1, K.EXAM) == {1}
    assert visible_to(repo, T1, K.ASSIGNMENT) == {1}
    assert visible_to(repo, T1, K.ATTENDANCE) == {1}
    assert visible_to(repo, T1, K.EVENT) == {1, 2}
    assert visible_to(repo, T1, K.STUDENT) == {"s-1", "s-3"}
    assert visible_to(repo, T1, K.TEACHER) == {"t-1"}
    assert visible_to(repo, T1, K.PARENT) == {"p-1", "p-2"}
    assert visible_to(repo, T1, K.SUBJECT) == {1}


def test_teacher_sees_results_of_own_exams_and_assignments(repo):
    assert visible_to(repo, T1, K.RESULT) == {1, 3}


def test_student_sees_own_class_and_own_results(repo):
    assert visible_to(repo, S1, K.ANNOUNCEMENT) == {1, 3}
    assert visible_to(repo, S1, K.CLASS) == {1}
    assert visible_to(repo, S1, K.RESULT) == {1}


def test_parent_sees_classes_of_all_children(repo):
    assert visible_to(repo, P1, K.ANNOUNCEMENT) == {1, 3}
    assert visible_to(repo, P2, K.ANNOUNCEMENT) == {1, 2, 3, 4}
    assert visible_to(repo, P2, K.RESULT) == {2, 3}


def test_query_filters_only_narrow_visibility(repo):
    search = build_query_filters(K.ANNOUNCEMENT, {"search": "A2"})
    assert visible(repo, ENGINE.scoped(ADMIN, K.ANNOUNCEMENT, search), K.ANNOUNCEMENT) == {2}
    assert visible(repo, ENGINE.scoped(T1, K.ANNOUNCEMENT, search), K.ANNOUNCEMENT) == set()


def test_compose_without_filters_is_visibility():
    predicate = ENGINE.build_visibility_predicate(T1, K.EXAM)
    assert ENGINE.compose(predicate) == predicate


def test_every_role_has_a_rule_for_every_kind():
    for role in (Role.TEACHER, Role.STUDENT, Role.PARENT):
        principal = Principal(id="x", role=role.value)
        for kind in K:
            assert ENGINE.build_visibility_predicate(principal, kind) is not NEVER


def test_admin_counts_go_through_the_engine(repo):
    class SealedEngine(AccessPolicyEngine):
        def build_visibility_predicate(self, principal, entity_kind):
            return NEVER

    home = DashboardService(engine=SealedEngine(), repo=repo).admin_home(ADMIN)
    assert home["counts"] == {"teacher": 0, "student": 0, "parent": 0}
    assert home["students_by_sex"] == {"MALE": 0, "FEMALE": 0}
    assert home["announcements"] == []
