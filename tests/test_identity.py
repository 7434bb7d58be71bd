import pytest

from campus_vote import db
from campus_vote.authentication.identity import identity_service
from campus_vote.authentication.rbac import rbac_service
from campus_vote.database.models import Profile, Role, UserRole
from campus_vote.errors import AuthenticationError, NotFound, PermissionDenied, ValidationError
from conftest import PASSWORD, make_principal


def _role_rows(principal_id):
    return db.session.execute(
        db.select(UserRole).where(UserRole.user_id == principal_id)
    ).scalars().all()


def test_register_creates_profile_and_student_role(app):
    principal_id = make_principal("Ada@Campus.example", full_name="Ada Lovelace", student_id="S2001")

    profile = identity_service.get_profile(principal_id)
    assert profile.full_name == "Ada Lovelace"
    assert profile.student_id == "S2001"
    assert profile.account.email == "ada@campus.example"
    assert rbac_service.get_roles(principal_id) == {Role.STUDENT}


def test_login_does_not_duplicate_principal(student_id):
    for _ in range(3):
        account = identity_service.authenticate("student@campus.example", PASSWORD)

    assert account.id == student_id
    assert len(_role_rows(student_id)) == 1
    assert db.session.execute(db.select(db.func.count(Profile.id))).scalar_one() == 1


def test_bootstrap_is_idempotent(student_id):
    first = identity_service.bootstrap_principal(student_id)
    second = identity_service.bootstrap_principal(student_id, full_name="Someone Else")

    assert first.id == second.id == student_id
    assert second.full_name == "Ada Student"


@pytest.mark.parametrize("email,password", [
    ("student@campus.example", "Wrong-Password-1"),
    ("nobody@campus.example", PASSWORD),
    ("not-an-email", PASSWORD),
    (None, None),
])
def test_bad_credentials_are_rejected(student_id, email, password):
    with pytest.raises(AuthenticationError):
        identity_service.authenticate(email, password)


def test_duplicate_email_is_rejected(student_id):
    with pytest.raises(ValidationError):
        make_principal("STUDENT@campus.example")


def test_duplicate_student_id_is_rejected(student_id):
    with pytest.raises(ValidationError):
        make_principal("twin@campus.example", student_id="S1001")


def test_students_without_student_id(app):
    # Blank IDs are stored as NULL and never collide
    first = make_principal("a@campus.example", student_id="")
    second = make_principal("b@campus.example", student_id=None)

    assert identity_service.get_profile(first).student_id is None
    assert identity_service.get_profile(second).student_id is None


@pytest.mark.parametrize("data", [
    {"email": "bad", "password": PASSWORD},
    {"email": "weak@campus.example", "password": "password"},
    {"email": "id@campus.example", "password": PASSWORD, "student_id": "S 1001; DROP"},
])
def test_invalid_registration(app, data):
    with pytest.raises(ValidationError):
        identity_service.register(data)


def test_grant_and_revoke_admin(student_id):
    assert identity_service.grant_role("student@campus.example", Role.ADMIN) is True
    assert identity_service.grant_role("student@campus.example", Role.ADMIN) is False
    assert rbac_service.is_admin(student_id)

    assert identity_service.revoke_role("student@campus.example", Role.ADMIN) is True
    assert identity_service.revoke_role("student@campus.example", Role.ADMIN) is False
    assert rbac_service.get_roles(student_id) == {Role.STUDENT}


def test_grant_role_to_unknown_account(app):
    with pytest.raises(NotFound):
        identity_service.grant_role("ghost@campus.example", Role.ADMIN)


def test_only_admins_list_principals(admin_id, student_id):
    with pytest.raises(PermissionDenied):
        identity_service.list_principals(student_id)

    assert {p.id for p in identity_service.list_principals(admin_id)} == {admin_id, student_id}
