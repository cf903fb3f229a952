# ctf_teams/initial_data.py

import logging
import os
from sqlalchemy.orm import Session
from ctf_teams.database import SessionLocal, engine
from ctf_teams.models import Base
from ctf_teams.crud.user import create_user as crud_create_user, get_user_by_username
from ctf_teams.core.exceptions import TeamLifecycleError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("CTFTeams.InitialData")

def create_initial_admin_user(db: Session, username: str, email: str) -> None:
    logger.info("Checking if initial admin user needs to be created...")
    if get_user_by_username(db, username=username):
        logger.info(f"Admin user '{username}' already exists. No action taken.")
        return
    logger.info(f"Admin user '{username}' not found. Creating...")
    try:
        crud_create_user(db=db, data={
            "username": username,
            "email": email,
            "full_name": "Admin User",
            "is_active": True,
            "is_superuser": True,
        })
        logger.info(f"Admin user '{username}' created successfully.")
    except TeamLifecycleError as e:
        logger.error(f"Failed to create admin user: {e}")

def main() -> None:
    logger.info("Creating tables...")
    Base.metadata.create_all(bind=engine)
    username = os.getenv("FIRST_SUPERUSER_USERNAME")
    email = os.getenv("FIRST_SUPERUSER_EMAIL")
    if username and email:
        db = SessionLocal()
        try:
            create_initial_admin_user(db, username, email)
        finally:
            db.close()
    logger.info("Finished initial data setup.")

if __name__ == "__main__":
    from dotenv import load_dotenv
    load_dotenv()
    main()
