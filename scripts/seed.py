#!/usr/bin/env python3
# scripts/seed.py
"""Load demo offices, categories, users and assets.

Run from the project root: ``python -m scripts.seed``. Every user gets the
password ``password123``.
"""
import argparse
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

import crud
from config import load_settings
from db import Database
from models import AssetIn, CategoryIn, CategoryType, OfficeIn, Role, UserIn
from orm import UserORM

logger = logging.getLogger("seed")

DEMO_PASSWORD = "password123"

OFFICES = [
    ("Kantor Telkom Bojonegoro Pusat", "Jl. Ahmad Yani No. 1, Bojonegoro"),
    ("Kantor Telkom Bojonegoro Timur", "Jl. Veteran No. 15, Bojonegoro"),
    ("Kantor Telkom Bojonegoro Barat", "Jl. Diponegoro No. 20, Bojonegoro"),
    ("Kantor Telkom Bojonegoro Utara", "Jl. Sudirman No. 25, Bojonegoro"),
    ("Kantor Telkom Bojonegoro Selatan", "Jl. Gajah Mada No. 30, Bojonegoro"),
]

CATEGORIES = [
    ("Kendaraan Operasional", CategoryType.VEHICLE, "Kendaraan untuk keperluan operasional sehari-hari"),
    ("Kendaraan Dinas", CategoryType.VEHICLE, "Kendaraan untuk keperluan dinas resmi"),
    ("Kunci Ruang Server", CategoryType.ROOM_KEY, "Kunci untuk ruang server dan teknis"),
    ("Kunci Ruang Kantor", CategoryType.ROOM_KEY, "Kunci untuk ruang kantor dan meeting"),
]

# (nik, username, full name, role, office index or None)
USERS = [
    ("0000000001", "admin", "Administrator Sistem", Role.ADMIN, None),
    ("0000000002", "manager", "Manajer Operasional", Role.MANAGEMENT, 0),
    ("0000000003", "satpam_pusat", "Satpam Kantor Pusat", Role.SECURITY_GUARD, 0),
    ("0000000004", "satpam_timur", "Satpam Kantor Timur", Role.SECURITY_GUARD, 1),
    ("0000000005", "satpam_barat", "Satpam Kantor Barat", Role.SECURITY_GUARD, 2),
    ("0000000006", "satpam_utara", "Satpam Kantor Utara", Role.SECURITY_GUARD, 3),
    ("0000000007", "satpam_selatan", "Satpam Kantor Selatan", Role.SECURITY_GUARD, 4),
]

# (name, code, description, category index, office index)
ASSETS = [
    ("Toyota Avanza", "L 1234 AB", "Mobil operasional kantor pusat", 0, 0),
    ("Honda Beat", "L 5678 CD", "Motor untuk keperluan cepat", 0, 0),
    ("Kunci Server Room A", "SRV-A-001", "Kunci ruang server utama", 2, 0),
    ("Kunci Meeting Room 1", "MTG-1-001", "Kunci ruang meeting lantai 1", 3, 0),
]


def already_seeded(db: Session) -> bool:
    return db.execute(select(UserORM.id).where(UserORM.username == "admin")).first() is not None


def seed_demo(db: Session) -> dict[str, int]:
    """Insert the demo data in one transaction; returns row counts."""
    try:
        offices = [crud.create_office(db, OfficeIn(name=n, address=a), commit=False) for n, a in OFFICES]
        categories = [
            crud.create_category(db, CategoryIn(name=n, type=t, description=d), commit=False)
            for n, t, d in CATEGORIES
        ]
        for nik, username, full_name, role, office_idx in USERS:
            crud.create_user(
                db,
                UserIn(
                    nik=nik,
                    username=username,
                    password=DEMO_PASSWORD,
                    full_name=full_name,
                    role=role,
                    office_id=offices[office_idx].id if office_idx is not None else None,
                ),
                commit=False,
            )
        for name, code, description, cat_idx, office_idx in ASSETS:
            crud.create_asset(
                db,
                AssetIn(
                    name=name,
                    code=code,
                    description=description,
                    category_id=categories[cat_idx].id,
                    office_id=offices[office_idx].id,
                ),
                commit=False,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {"offices": len(OFFICES), "categories": len(CATEGORIES), "users": len(USERS), "assets": len(ASSETS)}


def main() -> None:
    ap = argparse.ArgumentParser(description="Load demo data into the loan tracker database.")
    ap.add_argument("--database-url", default=None, help="SQLAlchemy URL (default: from APP_DB_PATH / DATABASE_URL)")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    url = args.database_url or load_settings().database_url
    database = Database(url).open()
    try:
        with database.session_scope() as db:
            if already_seeded(db):
                logger.info("demo data already present; nothing to do")
                return
            counts = seed_demo(db)
        logger.info("seed complete %s", " ".join(f"{k}={v}" for k, v in counts.items()))
        logger.info("login with admin / manager / satpam_pusat and password %s", DEMO_PASSWORD)
    finally:
        database.close()


if __name__ == "__main__":
    main()
