from datetime import date

from models import db, Tenant
from occupancy import active_tenant, end_tenant, start_tenant


class TestOccupancy:
    def test_empty_room_has_no_active_tenant(self, ctx, room_id):
        assert active_tenant(room_id) is None

    def test_start_defaults_to_today(self, ctx, room_id):
        tenant = start_tenant(room_id, "  Nguyễn Văn A ", phone="0901234567", today=date(2024, 3, 1))
        assert tenant.full_name == "Nguyễn Văn A"
        assert tenant.started_at == date(2024, 3, 1)
        assert tenant.ended_at is None

    def test_new_tenant_closes_previous(self, ctx, room_id):
        old = start_tenant(room_id, "Old Tenant", started_at=date(2023, 1, 1))
        new = start_tenant(room_id, "New Tenant", today=date(2024, 3, 10))

        assert old.ended_at == date(2024, 3, 10)
        assert active_tenant(room_id).id == new.id
        assert Tenant.query.filter_by(room_id=room_id, ended_at=None).count() == 1

    def test_end_closes_active_tenant(self, ctx, room_id):
        start_tenant(room_id, "Tenant", started_at=date(2024, 1, 1))
        ended = end_tenant(room_id, today=date(2024, 6, 30))
        assert ended.ended_at == date(2024, 6, 30)
        assert active_tenant(room_id) is None

    def test_end_without_tenant_is_noop(self, ctx, room_id):
        assert end_tenant(room_id) is None
        assert Tenant.query.count() == 0

    def test_active_is_latest_open_tenancy(self, ctx, room_id):
        # rows inserted directly can leave two open tenancies behind
        db.session.add(Tenant(room_id=room_id, full_name="Earlier", started_at=date(2023, 1, 1)))
        db.session.add(Tenant(room_id=room_id, full_name="Later", started_at=date(2024, 1, 1)))
        db.session.add(Tenant(room_id=room_id, full_name="Gone", started_at=date(2025, 1, 1), ended_at=date(2025, 2, 1)))
        db.session.commit()
        assert active_tenant(room_id).full_name == "Later"
