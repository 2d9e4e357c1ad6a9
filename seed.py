"""
Seed script for a fresh database.

1. Creates every table defined in models.py.
2. Creates the default roles (Admin, Investor, Finance).
3. Creates the super admin from ADMIN_EMAIL / ADMIN_PASSWORD.
"""

import os
from app import create_app
from extensions import db
from models import Role, User
from werkzeug.security import generate_password_hash
from datetime import datetime

app = create_app(os.environ.get('FLASK_CONFIG', 'development'))

ROLES = {
    'Admin': ('Super Administrator', ''),
    'Investor': ('Standard User', ''),
    'Finance': ('Withdrawal and payout operator', 'manage_withdrawals,manage_profits,view_logs'),
}

def seed_database():
    with app.app_context():
        db.create_all()
        print("Database tables created.")

        # ==========================================
        # Roles
        # ==========================================
        for role_name, (role_desc, permissions) in ROLES.items():
            if not Role.query.filter_by(name=role_name).first():
                db.session.add(Role(name=role_name, description=role_desc, permissions=permissions))
                print(f"   Role created: {role_name}")
        db.session.commit()

        # ==========================================
        # Super admin
        # ==========================================
        admin_email = os.environ.get('ADMIN_EMAIL', 'admin@example.com')
        admin_pass = os.environ.get('ADMIN_PASSWORD')

        if not admin_pass:
            print("Warning: ADMIN_PASSWORD is not set. Admin user was not created.")
        elif not User.query.filter_by(email=admin_email).first():
            admin = User(
                email=admin_email,
                password=generate_password_hash(admin_pass, method='pbkdf2:sha256'),
                full_name='Super Admin',
                role=Role.query.filter_by(name='Admin').first(),
                created_at=datetime.utcnow()
            )
            db.session.add(admin)
            print(f"Super Admin created: {admin_email}")

        db.session.commit()
        print("\nDatabase seeding completed successfully!")

if __name__ == '__main__':
    seed_database()
