#creating admin.py
import os
from app import app, db
from auth import normalize_email
from models import Role, User

with app.app_context():
    db.create_all()

    #configure admin user details (override through the environment)
    admin_name = os.getenv('ADMIN_NAME', 'Administrator')
    admin_email = normalize_email(os.getenv('ADMIN_EMAIL', 'admin@example.com'))
    admin_password = os.getenv('ADMIN_PASSWORD', 'adminpassword')

    #check if admin user already exists
    admin = User.query.filter_by(email=admin_email).first()

    if not admin:
        print("Creating admin user...")
        #create new admin user
        admin_user = User(
            name=admin_name,
            email=admin_email,
            role=Role.ADMIN
        )

        #setting the password securely
        admin_user.set_password(admin_password)

        #Add to the database session and commit
        db.session.add(admin_user)
        db.session.commit()

        print("Admin user created successfully.")
        print(f"Email: {admin_email}")
    elif admin.role != Role.ADMIN:
        admin.role = Role.ADMIN
        db.session.commit()
        print(f"Existing user '{admin_email}' promoted to Admin.")
    else:
        print(f"Admin user '{admin_email}' already exists.")
