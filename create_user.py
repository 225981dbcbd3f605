#!/usr/bin/env python3
"""
Create the tables (if missing) and a dashboard login.
Run with: python create_user.py admin@clinic.com "Clinic Admin" --role admin
The password is read from CLINIC_USER_PASSWORD or prompted for.
"""
import argparse
import getpass
import os

from clinic_api import create_app
from clinic_api.extensions import db
from clinic_api.models import User

ROLES = ('admin', 'staff')


def create_user(email, name, role, password):
    """Create one user; existing emails are left untouched"""
    app = create_app()

    with app.app_context():
        db.create_all()

        print("=" * 60)
        print("Initializing Dashboard User")
        print("=" * 60)

        existing = User.query.filter_by(email=email.lower()).first()
        if existing:
            print(f"  - User '{email}' already exists (skipping)")
            return existing

        user = User(email=email.lower(), name=name, role=role, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()

        print(f"  ✓ Created: {email} ({role})")
        print("=" * 60)
        return user


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('email')
    parser.add_argument('name')
    parser.add_argument('--role', choices=ROLES, default='staff')
    args = parser.parse_args()

    password = os.getenv('CLINIC_USER_PASSWORD') or getpass.getpass('Password: ')
    if len(password) < 6:
        parser.error('password must be at least 6 characters')

    create_user(args.email, args.name, args.role, password)


if __name__ == '__main__':
    main()
