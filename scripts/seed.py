import os

from sqlalchemy import select
from sqlalchemy.orm import Session

from aslam_catalog import models
from aslam_catalog.db import SessionLocal
from aslam_catalog.domain.catalog.slug import generate_slug
from aslam_catalog.security import hash_password

DEFAULT_CATEGORIES = [
    "Kertas Bouquet",
    "Pita & Ribbon",
    "Aksesoris Dekorasi",
    "Wrapping Material",
]


def get_or_create_category(db: Session, name: str) -> models.Category:
    category = db.scalar(select(models.Category).where(models.Category.name == name))
    if category:
        return category
    category = models.Category(name=name, slug=generate_slug(name))
    db.add(category)
    db.flush()
    return category


def ensure_admin(db: Session, username: str, password: str) -> models.Admin:
    normalized = username.strip()
    admin = db.scalar(select(models.Admin).where(models.Admin.username == normalized))
    if admin:
        return admin
    admin = models.Admin(username=normalized, password_hash=hash_password(password))
    db.add(admin)
    db.flush()
    return admin


def main() -> None:
    db: Session = SessionLocal()
    try:
        for name in DEFAULT_CATEGORIES:
            get_or_create_category(db, name)

        admin_username = os.getenv("DEFAULT_ADMIN_USERNAME")
        admin_password = os.getenv("DEFAULT_ADMIN_PASSWORD")
        if admin_username and admin_password:
            ensure_admin(db, admin_username, admin_password)

        db.commit()
        print("Seed OK")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
