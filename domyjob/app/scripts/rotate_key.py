"""CLI utility to re-encrypt every stored mailbox credential under a new ENCRYPTION_KEY.

Usage:
  python -m domyjob.app.scripts.rotate_key --old-key OLD --new-key NEW

Rows that do not decrypt with the old key are left untouched and reported.
Run it with the server stopped, then restart with the new key configured.
"""
import argparse
import os
from typing import Dict

from sqlalchemy.orm import Session

from ..db.database import SessionLocal, ensure_schema  # type: ignore
from ..models.email_model import EmailSettings
from ..security.vault import CredentialVault, DecryptionError, rotate_blob


def rotate_credentials(session: Session, old: CredentialVault, new: CredentialVault) -> Dict[str, int]:
    summary = {"rotated": 0, "failed": 0, "empty": 0}
    for settings in session.query(EmailSettings).all():
        if not settings.credentials:
            summary["empty"] += 1
            continue
        try:
            settings.credentials = rotate_blob(settings.credentials, old, new)
        except DecryptionError:
            summary["failed"] += 1
            continue
        summary["rotated"] += 1
    session.commit()
    return summary


def main():
    parser = argparse.ArgumentParser(description="Re-encrypt stored email credentials")
    parser.add_argument("--old-key", dest="old_key", default=os.getenv("ENCRYPTION_KEY"), help="Key the credentials are encrypted with now")
    parser.add_argument("--new-key", dest="new_key", required=True, help="Key to encrypt the credentials with")
    args = parser.parse_args()

    if not args.old_key:
        raise SystemExit("--old-key is required when ENCRYPTION_KEY is not set")
    if args.old_key == args.new_key:
        raise SystemExit("Old and new keys are identical; nothing to do")

    ensure_schema()
    session = SessionLocal()
    try:
        summary = rotate_credentials(session, CredentialVault(args.old_key), CredentialVault(args.new_key))
        print("Key rotation summary:")
        for k, v in summary.items():
            print(f"  {k}: {v}")
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover
    main()
