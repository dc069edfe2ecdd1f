#!/usr/bin/env python3
"""
Initialize default staff accounts for the gateway.
Run with: python3 init_admin.py
"""
from app import create_app
from app.extensions import db
from app.models import User

# Default users to create
DEFAULT_USERS = [
    {
        'email': 'admin@medcare.clinic',
        'password': 'admin123',
        'first_name': 'System',
        'last_name': 'Admin',
        'role': 'admin',
        'phone': '+91-9000000001'
    },
    {
        'email': 'dr.smith@medcare.clinic',
        'password': 'doctor123',
        'first_name': 'John',
        'last_name': 'Smith',
        'role': 'doctor',
        'phone': '+91-9000000002',
        'specialization': 'General Medicine',
        'qualification': 'MBBS, MD',
        'license_number': 'MED-10001',
        'consultation_fee': 500
    },
    {
        'email': 'reception@medcare.clinic',
        'password': 'recep123',
        'first_name': 'Priya',
        'last_name': 'Sharma',
        'role': 'receptionist',
        'phone': '+91-9000000003'
    },
    {
        'email': 'pharmacy@medcare.clinic',
        'password': 'pharma123',
        'first_name': 'Ravi',
        'last_name': 'Kumar',
        'role': 'pharmacist',
        'phone': '+91-9000000004'
    }
]

EXTRA_FIELDS = ('specialization', 'qualification', 'license_number', 'consultation_fee')


def create_users():
    """Create default users"""
    app = create_app()

    with app.app_context():
        db.create_all()

        print("=" * 60)
        print("Initializing Users")
        print("=" * 60)
        print()

        created_count = 0

        for user_data in DEFAULT_USERS:
            email = user_data['email']

            if User.query.filter_by(email=email).first():
                print(f"  - User '{email}' already exists (skipping)")
                continue

            user = User(
                email=email,
                first_name=user_data['first_name'],
                last_name=user_data['last_name'],
                role=user_data['role'],
                phone=user_data.get('phone'),
                is_active=True,
                **{field: user_data[field] for field in EXTRA_FIELDS if field in user_data}
            )
            user.set_password(user_data['password'])

            db.session.add(user)
            created_count += 1
            print(f"  ✓ Created: {email} ({user_data['role']}) - Password: {user_data['password']}")

        db.session.commit()

        print()
        print("=" * 60)
        print(f"✅ Created {created_count} new user(s)")
        print("=" * 60)
        print("\n⚠️  IMPORTANT: Change passwords after first login!")


if __name__ == '__main__':
    create_users()
