import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from domyjob.app.db.database import Base
from domyjob.app.models import email_model, user_model, workspace_model  # noqa: F401
from domyjob.app.models.email_model import EmailSettings
from domyjob.app.scripts.rotate_key import rotate_credentials
from domyjob.app.security.vault import CredentialVault, DecryptionError, rotate_blob


def test_roundtrip_and_format(vault):
    blob = vault.encrypt('{"password": "hunter2"}')
    iv_hex, ct_hex = blob.split(':')
    assert len(iv_hex) == 32
    assert len(bytes.fromhex(ct_hex)) % 16 == 0
    assert vault.decrypt(blob) == '{"password": "hunter2"}'


def test_fresh_iv_per_encryption(vault):
    a = vault.encrypt('same')
    b = vault.encrypt('same')
    assert a != b
    assert vault.decrypt(a) == vault.decrypt(b) == 'same'


def test_wrong_key_raises(vault):
    blob = vault.encrypt('secret')
    with pytest.raises(DecryptionError):
        CredentialVault('another-key').decrypt(blob)


def test_tampered_iv_raises(vault):
    blob = vault.encrypt('secret')
    iv_hex, ct_hex = blob.split(':')
    flipped = ('0' if iv_hex[0] != '0' else '1') + iv_hex[1:]
    with pytest.raises(DecryptionError):
        vault.decrypt(f'{flipped}:{ct_hex}')


@pytest.mark.parametrize('blob', ['', 'no-separator', 'zz:zz', 'abcd:abcd'])
def test_malformed_blob_raises(vault, blob):
    with pytest.raises(DecryptionError):
        vault.decrypt(blob)


def test_credentials_dict(vault):
    creds = {'password': 'p', 'host': 'imap.example.com', 'port': 993, 'tls': True}
    assert vault.decrypt_credentials(vault.encrypt_credentials(creds)) == creds


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        CredentialVault('')


def test_rotate_blob(vault):
    new = CredentialVault('rotated-key')
    blob = rotate_blob(vault.encrypt('secret'), vault, new)
    assert new.decrypt(blob) == 'secret'
    with pytest.raises(DecryptionError):
        vault.decrypt(blob)


def test_rotate_credentials_reencrypts_rows(vault):
    engine = create_engine('sqlite://')
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine)()
    new = CredentialVault('rotated-key')
    session.add_all([
        EmailSettings(user_id=1, email_provider='gmail', email='a@example.com',
                      credentials=vault.encrypt_credentials({'password': 'a'})),
        EmailSettings(user_id=2, email_provider='gmail', email='b@example.com',
                      credentials=CredentialVault('unknown').encrypt_credentials({'password': 'b'})),
        EmailSettings(user_id=3, email_provider='custom', email='c@example.com', credentials=''),
    ])
    session.commit()

    summary = rotate_credentials(session, vault, new)

    assert summary == {'rotated': 1, 'failed': 1, 'empty': 1}
    row = session.query(EmailSettings).filter_by(user_id=1).one()
    assert new.decrypt_credentials(row.credentials) == {'password': 'a'}
    session.close()
