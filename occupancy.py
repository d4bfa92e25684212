# occupancy.py
from datetime import date
from typing import Optional

from models import db, Tenant


def active_tenant(room_id: int) -> Optional[Tenant]:
    return (
        Tenant.query.filter_by(room_id=room_id, ended_at=None)
        .order_by(Tenant.started_at.desc())
        .first()
    )


def end_tenant(room_id: int, today: Optional[date] = None) -> Optional[Tenant]:
    current = active_tenant(room_id)
    if current is not None:
        current.ended_at = today or date.today()
        db.session.commit()
    return current


def start_tenant(room_id: int, full_name: str, phone=None, started_at=None, today: Optional[date] = None) -> Tenant:
    """Move a new tenant in, closing out whoever currently occupies the room."""
    today = today or date.today()
    current = active_tenant(room_id)
    if current is not None:
        current.ended_at = today

    tenant = Tenant(
        room_id=room_id,
        full_name=full_name.strip(),
        phone=phone or None,
        started_at=started_at or today,
        ended_at=None,
    )
    db.session.add(tenant)
    db.session.commit()
    return tenant
