#!/usr/bin/env python3
"""Script to create the tables and load the initial tiers, users and rooms."""
from decimal import Decimal

from sqlalchemy.orm import Session

from office_common.auth import get_password_hash
from office_common.database import Base, SessionLocal, engine
from office_common.models import UNLIMITED_WEEKLY_HOURS, RoleEnum, Room, User, UserType

USER_TYPES = [
    {"name": "Basic", "weekly_hours_limit": 4, "description": "Basic membership with 4 hours per week"},
    {"name": "Premium", "weekly_hours_limit": 10, "description": "Premium membership with 10 hours per week"},
    {"name": "VIP", "weekly_hours_limit": 20, "description": "VIP membership with 20 hours per week"},
    {"name": "Unlimited", "weekly_hours_limit": UNLIMITED_WEEKLY_HOURS, "description": "Unlimited access for special members"},
]

ROOMS = [
    {
        "name": "Sala Ejecutiva",
        "description": "Sala moderna para reuniones ejecutivas",
        "capacity": 8,
        "equipment": ["Proyector", 'TV 65"', "Pizarra", "WiFi"],
    },
    {
        "name": "Sala Creativa",
        "description": "Espacio abierto para sesiones de brainstorming",
        "capacity": 12,
        "equipment": ["Pizarra grande", "Materiales de arte", "WiFi", "Sonido"],
    },
    {
        "name": "Sala Privada",
        "description": "Sala pequeña para reuniones confidenciales",
        "capacity": 4,
        "equipment": ["WiFi", "Teléfono"],
    },
    {
        "name": "Auditorio",
        "description": "Espacio grande para presentaciones",
        "capacity": 50,
        "equipment": ["Proyector", "Sistema de sonido", "Micrófono", "WiFi"],
    },
]


def seed_user_types(db: Session) -> None:
    if db.query(UserType).count():
        print("User types already present, skipping.")
        return
    db.add_all(UserType(**data) for data in USER_TYPES)
    db.commit()


def seed_users(db: Session) -> None:
    if db.query(User).count():
        print("Users already present, skipping.")
        return
    unlimited = db.query(UserType).filter(UserType.name == "Unlimited").first()
    premium = db.query(UserType).filter(UserType.name == "Premium").first()
    if not unlimited or not premium:
        raise RuntimeError("User types must be seeded before users")
    db.add_all(
        [
            User(
                name="Admin User",
                username="admin",
                email="admin@coworking.com",
                hashed_password=get_password_hash("admin123"),
                role=RoleEnum.ADMIN,
                user_type_id=unlimited.id,
            ),
            User(
                name="John Doe",
                username="john",
                email="user@coworking.com",
                hashed_password=get_password_hash("user1234"),
                role=RoleEnum.USER,
                user_type_id=premium.id,
            ),
        ]
    )
    db.commit()


def seed_rooms(db: Session) -> None:
    if db.query(Room).count():
        print("Rooms already present, skipping.")
        return
    db.add_all(Room(hourly_rate=Decimal("0"), is_active=True, **data) for data in ROOMS)
    db.commit()


def run_seeds() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_user_types(db)
        seed_users(db)
        seed_rooms(db)
    finally:
        db.close()
    print("Seed data loaded successfully.")


if __name__ == "__main__":
    run_seeds()
