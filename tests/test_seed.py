from faker import Faker

from billing import current_yyyymm, prev_yyyymm
from models import db, MeterReading, Room, Tariff, Tenant
from occupancy import active_tenant
from seed import ROOMS, UNIT_ELEC, UNIT_WATER, add_demo_data, normalize_unit_prices, upsert_rooms


class TestSeed:
    def test_normalize_overwrites_unit_prices(self, ctx, room_id):
        tariff = Tariff.query.filter_by(room_id=room_id).one()
        tariff.electricity_price = 3000
        tariff.water_price = 20000
        tariff.rent = 2900000
        db.session.commit()

        assert normalize_unit_prices() == 1
        db.session.commit()

        db.session.expire_all()
        tariff = Tariff.query.filter_by(room_id=room_id).one()
        assert (tariff.electricity_price, tariff.water_price) == (UNIT_ELEC, UNIT_WATER)
        assert tariff.rent == 2900000

    def test_upsert_rooms_is_idempotent(self, ctx):
        upsert_rooms()
        db.session.commit()
        upsert_rooms()
        db.session.commit()

        assert Room.query.count() == len(ROOMS) == 12
        assert Tariff.query.count() == 12

    def test_upsert_updates_existing_room(self, ctx, room_id):
        upsert_rooms()
        db.session.commit()

        room = db.session.get(Room, room_id)
        assert room.name == "P201"
        assert room.tariff.rent == 3500000
        assert room.tariff.cleaning_fee == 20000
        assert room.tariff.internet_fee == 100000
        assert Room.query.count() == 12

    def test_room_without_internet(self, ctx):
        upsert_rooms()
        db.session.commit()

        room = Room.query.filter_by(name="P302").one()
        assert room.tariff.internet_fee == 0
        assert room.tariff.cleaning_fee == 40000
        assert room.note == "2 người - không dùng mạng"

    def test_demo_data(self, ctx):
        rooms = upsert_rooms()
        db.session.commit()
        add_demo_data(rooms, Faker("vi_VN"))
        add_demo_data(rooms, Faker("vi_VN"))

        last_month = prev_yyyymm(current_yyyymm())
        for room in rooms:
            assert active_tenant(room.id) is not None
            reading = MeterReading.query.filter_by(room_id=room.id, yyyymm=last_month).one()
            assert reading.elec_end >= reading.elec_start
            assert reading.water_end >= reading.water_start
        assert Tenant.query.count() == 12
