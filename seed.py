# seed.py
"""
Loads the building's room list and normalizes unit prices on every tariff.

This rewrites operator-entered electricity/water prices, so it only runs when
invoked by hand. Safe to run repeatedly.

Usage:
  python seed.py           # upsert rooms P201..P404 and their tariffs
  python seed.py --demo    # also invent tenants and last month's readings
"""
import argparse
import random

from faker import Faker
from app import create_app
from billing import current_yyyymm, prev_yyyymm
from models import db, Room, Tariff, MeterReading
from occupancy import active_tenant, start_tenant

UNIT_ELEC = 4500
UNIT_WATER = 35000

# name, rent, cleaning_fee, internet_fee, note
ROOMS = [
    ("P201", 3500000, 20000, 100000, "1 người"),
    ("P202", 3200000, 60000, 100000, "3 người"),
    ("P203", 3200000, 20000, 100000, "1 người"),
    ("P204", 3200000, 60000, 100000, "3 người"),
    ("P301", 3500000, 60000, 100000, "3 người"),
    ("P302", 3200000, 40000, 0, "2 người - không dùng mạng"),
    ("P303", 3200000, 40000, 100000, "2 người"),
    ("P304", 3200000, 20000, 100000, "1 người"),
    ("P401", 3200000, 60000, 100000, "3 người"),
    ("P402", 3200000, 40000, 100000, "2 người"),
    ("P403", 3200000, 40000, 100000, "2 người"),
    ("P404", 3200000, 60000, 100000, "3 người"),
]


def normalize_unit_prices():
    return Tariff.query.update(
        {Tariff.electricity_price: UNIT_ELEC, Tariff.water_price: UNIT_WATER},
        synchronize_session=False,
    )


def upsert_rooms():
    rooms = []
    for name, rent, cleaning, internet, note in ROOMS:
        room = Room.query.filter_by(name=name).first()
        if room is None:
            room = Room(name=name)
            db.session.add(room)
        room.note = note
        db.session.flush()

        tariff = Tariff.query.filter_by(room_id=room.id).first()
        if tariff is None:
            tariff = Tariff(room_id=room.id)
            db.session.add(tariff)
        tariff.rent = rent
        tariff.internet_fee = internet
        tariff.cleaning_fee = cleaning
        tariff.electricity_price = UNIT_ELEC
        tariff.water_price = UNIT_WATER
        rooms.append(room)
    return rooms


def add_demo_data(rooms, fake):
    last_month = prev_yyyymm(current_yyyymm())
    for room in rooms:
        if active_tenant(room.id) is None:
            start_tenant(room.id, fake.name(), phone=fake.phone_number())

        if MeterReading.query.filter_by(room_id=room.id, yyyymm=last_month).first() is None:
            elec_start = float(random.randint(100, 2000))
            water_start = float(random.randint(10, 200))
            db.session.add(
                MeterReading(
                    room_id=room.id,
                    yyyymm=last_month,
                    elec_start=elec_start,
                    elec_end=elec_start + random.randint(40, 250),
                    water_start=water_start,
                    water_end=water_start + random.randint(2, 12),
                )
            )
    db.session.commit()


def run(demo=False):
    app = create_app()
    with app.app_context():
        updated = normalize_unit_prices()
        print(f"Normalized unit prices on {updated} existing tariffs.")

        rooms = upsert_rooms()
        db.session.commit()
        print(f"Seed complete. Upserted {len(rooms)} rooms with tariffs.")

        if demo:
            add_demo_data(rooms, Faker("vi_VN"))
            print("Added demo tenants and last month's readings.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--demo", action="store_true", help="add fake tenants and meter readings")
    args = parser.parse_args()
    run(demo=args.demo)
