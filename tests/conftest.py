import pytest
from flask_jwt_extended import create_access_token

from campus_vote import create_app, db
from campus_vote.authentication.identity import identity_service
from campus_vote.database.models import Role
from campus_vote.elections.lifecycle import election_service
from campus_vote.encryption.password_hashing import PasswordHashingService

PASSWORD = "Ballot-Box-2025"


@pytest.fixture
def app(tmp_path):
    """Application on a throwaway SQLite file shared by every thread."""
    app = create_app(
        'campus_vote.config.TestingConfig',
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'campus_vote.db'}",
        SQLALCHEMY_ENGINE_OPTIONS={'connect_args': {'timeout': 30}},
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    # Argon2 at production cost makes every sign-up slow
    monkeypatch.setattr(identity_service, 'password_service',
                        PasswordHashingService(time_cost=1, memory_cost=1024, parallelism=1))


def make_principal(email, admin=False, full_name="Test User", student_id=None):
    account = identity_service.register({
        'email': email,
        'password': PASSWORD,
        'full_name': full_name,
        'student_id': student_id,
    })
    if admin:
        identity_service.grant_role(email, Role.ADMIN)
    return account.id


@pytest.fixture
def admin_id(app):
    return make_principal("admin@campus.example", admin=True, full_name="Election Officer")


@pytest.fixture
def student_id(app):
    return make_principal("student@campus.example", full_name="Ada Student", student_id="S1001")


@pytest.fixture
def other_student_id(app):
    return make_principal("other@campus.example", full_name="Bo Student", student_id="S1002")


@pytest.fixture
def auth_headers(app):
    def _headers(principal_id):
        return {'Authorization': f'Bearer {create_access_token(identity=principal_id)}'}
    return _headers


def make_election(admin_id, status='active', candidates=("Alice", "Bob"), **fields):
    data = {
        'title': fields.pop('title', 'Student Union President 2025'),
        'description': 'Annual union election',
        'status': status,
        'start_date': '2025-03-01T08:00:00Z',
        'end_date': '2025-03-02T18:00:00Z',
    }
    data.update(fields)
    return election_service.create(admin_id, data, [{'name': name} for name in candidates])


@pytest.fixture
def election(admin_id):
    return make_election(admin_id)


@pytest.fixture
def candidates(election):
    by_name = {c.name: c.id for c in election.candidates}
    return by_name
