"""Create a local test user with reminder settings for manual testing."""
import os

from taskx.database import SessionLocal, create_tables
from taskx.models import NotificationType, User
from taskx.routers.auth import get_password_hash

# Create tables if not exist
create_tables()

# Create a session
db = SessionLocal()

email = os.getenv("TEST_USER_EMAIL", "test@example.com")
password = os.getenv("TEST_USER_PASSWORD", "password")
phone = os.getenv("TEST_USER_PHONE")

# Check if user already exists
existing_user = db.query(User).filter(User.email == email).first()
if existing_user:
    print("User already exists")
else:
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        phone_number=phone,
        notification_type=NotificationType.BOTH if phone else NotificationType.EMAIL,
    )
    db.add(user)
    db.commit()
    print(f"Test user created: {email} / {password}")

db.close()
