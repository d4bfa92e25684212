# billing.py
import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple, Optional

from flask import current_app

from errors import BillingError, InvalidPeriodError, MissingStartReadingError, ReadingDecreasedError
from models import db, Invoice, MeterReading, Tariff

_PERIOD_RE = re.compile(r"^[0-9]{4}(0[1-9]|1[0-2])$")


class InvoiceFigures(NamedTuple):
    elec_usage: float
    water_usage: float
    subtotal_electricity: int
    subtotal_water: int
    rent: int
    internet_fee: int
    cleaning_fee: int
    total: int


class Recalculation(NamedTuple):
    invoice: Invoice
    figures: InvoiceFigures
    tariff: Tariff


# --------------------
# Period keys
# --------------------

def is_period_key(value) -> bool:
    return bool(value) and bool(_PERIOD_RE.match(str(value)))


def current_yyyymm(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{today.year:04d}{today.month:02d}"


def prev_yyyymm(yyyymm: str) -> str:
    if not is_period_key(yyyymm):
        raise InvalidPeriodError()
    year, month = int(yyyymm[:4]), int(yyyymm[4:])
    if month == 1:
        return f"{year - 1:04d}12"
    return f"{year:04d}{month - 1:02d}"


# --------------------
# Computation
# --------------------

def _round_half_up(value: float, places: str = "1") -> Decimal:
    return Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def compute_invoice(tariff, reading) -> InvoiceFigures:
    """
    Apply a tariff to one month of meter readings.
    - usage is end minus start, kept to 2 decimal places
    - utility subtotals are rounded to whole currency units
    - flat fees are copied from the tariff as they stand now
    """
    elec_usage = float(_round_half_up(reading.elec_end - reading.elec_start, "0.01"))
    water_usage = float(_round_half_up(reading.water_end - reading.water_start, "0.01"))

    subtotal_electricity = int(_round_half_up(elec_usage * tariff.electricity_price))
    subtotal_water = int(_round_half_up(water_usage * tariff.water_price))

    total = tariff.rent + tariff.internet_fee + tariff.cleaning_fee + subtotal_electricity + subtotal_water

    return InvoiceFigures(
        elec_usage=elec_usage,
        water_usage=water_usage,
        subtotal_electricity=subtotal_electricity,
        subtotal_water=subtotal_water,
        rent=tariff.rent,
        internet_fee=tariff.internet_fee,
        cleaning_fee=tariff.cleaning_fee,
        total=total,
    )


def get_reading(room_id: int, yyyymm: str) -> Optional[MeterReading]:
    return MeterReading.query.filter_by(room_id=room_id, yyyymm=yyyymm).first()


def recalc_invoice(room_id: int, yyyymm: str) -> Optional[Recalculation]:
    """Recompute and upsert the invoice for a room/period.

    Returns None without touching the invoices table when the room has no
    tariff or no reading for that period.
    """
    tariff = Tariff.query.filter_by(room_id=room_id).first()
    reading = get_reading(room_id, yyyymm)
    if tariff is None or reading is None:
        current_app.logger.info("Invoice %s/%s not computable yet (tariff=%s, reading=%s)",
                                room_id, yyyymm, tariff is not None, reading is not None)
        return None

    figures = compute_invoice(tariff, reading)

    invoice = Invoice.query.filter_by(room_id=room_id, yyyymm=yyyymm).first()
    if invoice is None:
        invoice = Invoice(room_id=room_id, yyyymm=yyyymm)
        db.session.add(invoice)

    invoice.subtotal_electricity = figures.subtotal_electricity
    invoice.subtotal_water = figures.subtotal_water
    invoice.rent = figures.rent
    invoice.internet_fee = figures.internet_fee
    invoice.cleaning_fee = figures.cleaning_fee
    invoice.total = figures.total
    invoice.created_at = datetime.utcnow()

    db.session.commit()
    current_app.logger.info("Invoice %s/%s recalculated: total=%s", room_id, yyyymm, figures.total)
    return Recalculation(invoice=invoice, figures=figures, tariff=tariff)


# --------------------
# Meter readings
# --------------------

def previous_closing(room_id: int, yyyymm: str) -> Optional[dict]:
    prev = get_reading(room_id, prev_yyyymm(yyyymm))
    if prev is None:
        return None
    return {"elec_start": prev.elec_end, "water_start": prev.water_end}


def prefill_starts(room_id: int, yyyymm: str, elec_start, water_start):
    """Fill blank (None) start values from the previous month's end values."""
    if elec_start is None or water_start is None:
        closing = previous_closing(room_id, yyyymm)
        if closing:
            if elec_start is None:
                elec_start = closing["elec_start"]
            if water_start is None:
                water_start = closing["water_start"]
    return elec_start, water_start


def reading_is_complete(reading) -> bool:
    return bool(
        reading
        and reading.elec_end >= reading.elec_start
        and reading.water_end >= reading.water_start
    )


def save_meter_reading(room_id: int, yyyymm: str, elec_start, elec_end, water_start, water_end) -> MeterReading:
    if not is_period_key(yyyymm):
        raise InvalidPeriodError()

    elec_start, water_start = prefill_starts(room_id, yyyymm, elec_start, water_start)

    if elec_start is None or water_start is None:
        raise MissingStartReadingError()
    if elec_end is None or water_end is None:
        raise BillingError("End readings are required")
    if not all(math.isfinite(v) for v in (elec_start, elec_end, water_start, water_end)):
        raise BillingError("Meter readings must be finite numbers")
    if elec_end < elec_start or water_end < water_start:
        current_app.logger.warning("Rejected reading for %s/%s: elec %s->%s, water %s->%s",
                                   room_id, yyyymm, elec_start, elec_end, water_start, water_end)
        raise ReadingDecreasedError()

    reading = get_reading(room_id, yyyymm)
    if reading is None:
        reading = MeterReading(room_id=room_id, yyyymm=yyyymm)
        db.session.add(reading)

    reading.elec_start = elec_start
    reading.elec_end = elec_end
    reading.water_start = water_start
    reading.water_end = water_end
    db.session.commit()

    recalc_invoice(room_id, yyyymm)
    return reading
