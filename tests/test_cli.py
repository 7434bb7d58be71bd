from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from campus_vote.authentication.identity import identity_service
from campus_vote.authentication.rbac import rbac_service
from conftest import PASSWORD, make_election, make_principal


def test_create_user_and_grant_admin(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['create-user', 'officer@campus.example', '--password', PASSWORD,
                                 '--full-name', 'Election Officer'])
    assert result.exit_code == 0, result.output
    account = identity_service.find_account('officer@campus.example')
    assert account is not None
    assert not rbac_service.is_admin(account.id)

    result = runner.invoke(args=['grant-admin', 'officer@campus.example'])
    assert result.exit_code == 0
    assert 'is now an admin' in result.output
    assert rbac_service.is_admin(account.id)

    result = runner.invoke(args=['grant-admin', 'officer@campus.example'])
    assert 'already is an admin' in result.output

    result = runner.invoke(args=['revoke-admin', 'officer@campus.example'])
    assert result.exit_code == 0
    assert not rbac_service.is_admin(account.id)


def test_create_user_with_weak_password(app):
    result = app.test_cli_runner().invoke(args=['create-user', 'weak@campus.example', '--password', 'weak'])

    assert result.exit_code != 0
    assert 'Password must be at least 8 characters' in result.output


def test_grant_admin_unknown_email(app):
    result = app.test_cli_runner().invoke(args=['grant-admin', 'ghost@campus.example'])

    assert result.exit_code != 0
    assert 'No account with this email' in result.output


def _pem():
    return Ed25519PrivateKey.generate().private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption(),
    ).decode()


def _use_signing_key(app, pem):
    app.config['AUDIT_SIGNING_KEY'] = pem
    app.extensions.pop('audit_logger', None)


def test_verify_audit_log(app):
    _use_signing_key(app, _pem())
    make_election(make_principal("officer@campus.example", admin=True))
    runner = app.test_cli_runner()

    result = runner.invoke(args=['verify-audit-log'])
    assert result.exit_code == 0, result.output
    assert 'integrity verified' in result.output

    # A different signing key cannot vouch for the stored entries
    _use_signing_key(app, _pem())
    result = runner.invoke(args=['verify-audit-log'])
    assert result.exit_code != 0
    assert 'FAILED' in result.output


def test_verify_audit_log_needs_signing_key(app):
    _use_signing_key(app, None)

    result = app.test_cli_runner().invoke(args=['verify-audit-log'])

    assert result.exit_code != 0
    assert 'AUDIT_SIGNING_KEY is required' in result.output
