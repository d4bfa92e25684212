# models.py
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

SETTINGS_ID = 1


class Room(db.Model):
    __tablename__ = "rooms"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.Text, nullable=False, unique=True)
    note = db.Column(db.Text, nullable=True)

    tariff = db.relationship("Tariff", backref="room", uselist=False, cascade="all, delete-orphan")
    tenants = db.relationship("Tenant", backref="room", lazy=True, cascade="all, delete-orphan")
    readings = db.relationship("MeterReading", backref="room", lazy=True, cascade="all, delete-orphan")
    invoices = db.relationship("Invoice", backref="room", lazy=True, cascade="all, delete-orphan")


class Tenant(db.Model):
    __tablename__ = "tenants"
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)

    full_name = db.Column(db.Text, nullable=False)
    phone = db.Column(db.Text, nullable=True)
    started_at = db.Column(db.Date, nullable=True)
    # NULL while the tenant still occupies the room
    ended_at = db.Column(db.Date, nullable=True)


class Tariff(db.Model):
    __tablename__ = "tariffs"
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, unique=True)

    rent = db.Column(db.Integer, nullable=False)
    internet_fee = db.Column(db.Integer, nullable=False, default=0)
    cleaning_fee = db.Column(db.Integer, nullable=False, default=0)
    electricity_price = db.Column(db.Integer, nullable=False)
    water_price = db.Column(db.Integer, nullable=False)


class MeterReading(db.Model):
    __tablename__ = "meter_readings"
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    yyyymm = db.Column(db.String(6), nullable=False)

    elec_start = db.Column(db.Float, nullable=False)
    elec_end = db.Column(db.Float, nullable=False)
    water_start = db.Column(db.Float, nullable=False)
    water_end = db.Column(db.Float, nullable=False)

    __table_args__ = (db.UniqueConstraint("room_id", "yyyymm", name="uq_meter_room_period"),)


class Invoice(db.Model):
    """Cached result of applying the room's tariff to its reading for one period.

    Rows are overwritten every time the invoice is viewed or its inputs change,
    so they always mirror the current tariff rather than the rates in force when
    the reading was taken.
    """

    __tablename__ = "invoices"
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    yyyymm = db.Column(db.String(6), nullable=False)

    subtotal_electricity = db.Column(db.Integer, nullable=False)
    subtotal_water = db.Column(db.Integer, nullable=False)
    rent = db.Column(db.Integer, nullable=False)
    internet_fee = db.Column(db.Integer, nullable=False)
    cleaning_fee = db.Column(db.Integer, nullable=False)
    total = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (db.UniqueConstraint("room_id", "yyyymm", name="uq_invoice_room_period"),)


class LandlordSettings(db.Model):
    __tablename__ = "landlord_settings"
    id = db.Column(db.Integer, primary_key=True)
    owner_name = db.Column(db.Text, nullable=True)
    phone = db.Column(db.Text, nullable=True)
    address = db.Column(db.Text, nullable=True)
    bank_name = db.Column(db.Text, nullable=True)
    bank_account = db.Column(db.Text, nullable=True)


def init_db():
    """Create missing tables and make sure the settings row exists."""
    db.create_all()
    if db.session.get(LandlordSettings, SETTINGS_ID) is None:
        db.session.add(
            LandlordSettings(id=SETTINGS_ID, owner_name="Chủ trọ", phone="", address="", bank_name="", bank_account="")
        )
        db.session.commit()
