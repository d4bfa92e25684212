# app.py
import os
import io
import csv
import math
from datetime import date
from urllib.parse import parse_qs

from flask import Flask, render_template, request, redirect, url_for, flash, send_file
from sqlalchemy.exc import IntegrityError

from billing import (
    current_yyyymm,
    get_reading,
    is_period_key,
    prev_yyyymm,
    previous_closing,
    reading_is_complete,
    recalc_invoice,
    save_meter_reading,
)
from errors import BillingError, InsufficientDataError, register_error_handlers
from models import db, init_db, Room, Tariff, Invoice, LandlordSettings, SETTINGS_ID
from occupancy import active_tenant, end_tenant, start_tenant

TARIFF_FIELDS = ("rent", "internet_fee", "cleaning_fee", "electricity_price", "water_price")
SETTINGS_FIELDS = ("owner_name", "phone", "address", "bank_name", "bank_account")


class MethodOverrideMiddleware:
    """Lets HTML forms reach PUT routes by posting to ``...?_method=PUT``."""

    allowed_methods = frozenset(["PUT", "PATCH", "DELETE"])

    def __init__(self, wsgi_app):
        self.wsgi_app = wsgi_app

    def __call__(self, environ, start_response):
        if environ.get("REQUEST_METHOD") == "POST":
            args = parse_qs(environ.get("QUERY_STRING", ""))
            method = (args.get("_method") or [""])[0].upper()
            if method in self.allowed_methods:
                environ["REQUEST_METHOD"] = method
        return self.wsgi_app(environ, start_response)


def database_url() -> str:
    url = os.getenv("DATABASE_URL", "sqlite:///rooms.db")
    # Render hands out postgres:// URLs, SQLAlchemy only accepts postgresql://
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def format_vnd(value) -> str:
    if value is None:
        return ""
    return f"{int(round(value)):,}".replace(",", ".") + " đ"


# --------------------
# Form parsing
# --------------------

class FormError(ValueError):
    pass


def _text(name):
    return (request.form.get(name) or "").strip()


def _money(name) -> int:
    raw = _text(name)
    if not raw:
        raise FormError(f"{name.replace('_', ' ').capitalize()} is required.")
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        raise FormError(f"{name.replace('_', ' ').capitalize()} must be a number.")


def _reading(name):
    raw = _text(name)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise BillingError(f"{name} must be a number")
    if not math.isfinite(value):
        raise BillingError(f"{name} must be a number")
    return value


def _date(name):
    raw = _text(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise FormError(f"{name.replace('_', ' ').capitalize()} must be a date (YYYY-MM-DD).")


def create_app(test_config=None):
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev-secret-change-me")

    # Render: set DATABASE_URL in dashboard (Render Postgres)
    # Local dev fallback: SQLite
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url()
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    if "render.com" in app.config["SQLALCHEMY_DATABASE_URI"]:
        # Render's managed Postgres: encrypted, certificate not verified
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {"connect_args": {"sslmode": "require"}}

    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

    app.wsgi_app = MethodOverrideMiddleware(app.wsgi_app)
    app.jinja_env.filters["vnd"] = format_vnd

    db.init_app(app)
    register_error_handlers(app)

    with app.app_context():
        try:
            init_db()
        except Exception:
            app.logger.exception("Database migration failed")
            raise SystemExit(1)
        app.logger.info("Database schema ready")

    # --------------------
    # Home / Rooms
    # --------------------

    @app.get("/")
    def home():
        rooms = Room.query.order_by(Room.id.asc()).all()
        rows = []
        for room in rooms:
            tenant = active_tenant(room.id)
            rows.append({"room": room, "tenant": tenant.full_name if tenant else None})
        return render_template("index.html", rooms=rows)

    # --------------------
    # Landlord settings
    # --------------------

    @app.get("/settings")
    def settings():
        current = db.session.get(LandlordSettings, SETTINGS_ID)
        return render_template("settings.html", settings=current)

    @app.post("/settings")
    def update_settings():
        current = db.session.get(LandlordSettings, SETTINGS_ID)
        if current is None:
            current = LandlordSettings(id=SETTINGS_ID)
            db.session.add(current)
        for field in SETTINGS_FIELDS:
            setattr(current, field, _text(field))
        db.session.commit()
        flash("Settings saved.")
        return redirect(url_for("settings"))

    # --------------------
    # Create room
    # --------------------

    @app.get("/rooms/new")
    def new_room():
        return render_template("room_new.html", today=date.today().isoformat())

    @app.post("/rooms")
    def create_room():
        try:
            name = _text("name")
            if not name:
                raise FormError("Room name is required.")
            rates = {field: _money(field) for field in TARIFF_FIELDS}
            tenant_started_at = _date("tenant_started_at")

            room = Room(name=name, note=_text("note") or None)
            db.session.add(room)
            db.session.flush()

            db.session.add(Tariff(room_id=room.id, **rates))
            db.session.commit()
        except FormError as e:
            db.session.rollback()
            flash(str(e))
            return redirect(url_for("new_room"))
        except IntegrityError:
            db.session.rollback()
            flash(f"A room named {name} already exists.")
            return redirect(url_for("new_room"))

        tenant_name = _text("tenant_full_name")
        if tenant_name:
            start_tenant(room.id, tenant_name, phone=_text("tenant_phone"), started_at=tenant_started_at)

        app.logger.info("Created room %s (%s)", room.id, room.name)
        return redirect(url_for("room_detail", room_id=room.id))

    # --------------------
    # Edit room
    # --------------------

    @app.get("/rooms/<int:room_id>/edit")
    def edit_room(room_id: int):
        room = db.get_or_404(Room, room_id, description="Room not found")
        yyyymm = request.args.get("yyyymm")
        return render_template(
            "room_edit.html",
            room=room,
            tariff=room.tariff,
            yyyymm=yyyymm if is_period_key(yyyymm) else None,
        )

    @app.put("/rooms/<int:room_id>")
    def update_room(room_id: int):
        room = db.get_or_404(Room, room_id, description="Room not found")
        yyyymm = request.args.get("yyyymm")

        try:
            name = _text("name")
            if not name:
                raise FormError("Room name is required.")
            rates = {field: _money(field) for field in TARIFF_FIELDS}

            room.name = name
            room.note = _text("note") or None

            tariff = room.tariff
            if tariff is None:
                tariff = Tariff(room_id=room.id)
                db.session.add(tariff)
            for field, value in rates.items():
                setattr(tariff, field, value)
            db.session.commit()
        except FormError as e:
            db.session.rollback()
            flash(str(e))
            return redirect(url_for("edit_room", room_id=room_id, yyyymm=yyyymm))
        except IntegrityError:
            db.session.rollback()
            flash("Another room already uses that name.")
            return redirect(url_for("edit_room", room_id=room_id, yyyymm=yyyymm))

        # Refresh the invoice of the month being viewed so it shows the new rates
        if is_period_key(yyyymm):
            recalc_invoice(room_id, yyyymm)
            return redirect(url_for("room_detail", room_id=room_id, yyyymm=yyyymm))

        return redirect(url_for("room_detail", room_id=room_id))

    # --------------------
    # Room detail
    # --------------------

    @app.get("/rooms/<int:room_id>")
    def room_detail(room_id: int):
        room = db.get_or_404(Room, room_id, description="Room not found")

        yyyymm = request.args.get("yyyymm")
        if not is_period_key(yyyymm):
            yyyymm = current_yyyymm()

        meter = get_reading(room_id, yyyymm)
        prefill, prev_key = None, None
        if meter is None:
            prev_key = prev_yyyymm(yyyymm)
            prefill = previous_closing(room_id, yyyymm)

        invoices = (
            Invoice.query.filter_by(room_id=room_id)
            .order_by(Invoice.yyyymm.desc())
            .all()
        )

        return render_template(
            "room.html",
            room=room,
            tenant=active_tenant(room_id),
            tariff=room.tariff,
            yyyymm=yyyymm,
            meter=meter,
            invoices=invoices,
            prefill=prefill,
            prev_yyyymm=prev_key,
            has_complete_meter=reading_is_complete(meter),
        )

    # --------------------
    # Tenants
    # --------------------

    @app.post("/rooms/<int:room_id>/tenant")
    def move_in_tenant(room_id: int):
        db.get_or_404(Room, room_id, description="Room not found")
        full_name = _text("full_name")
        if not full_name:
            flash("Tenant name is required.")
            return redirect(url_for("room_detail", room_id=room_id))
        try:
            started_at = _date("started_at")
        except FormError as e:
            flash(str(e))
            return redirect(url_for("room_detail", room_id=room_id))

        start_tenant(room_id, full_name, phone=_text("phone"), started_at=started_at)
        return redirect(url_for("room_detail", room_id=room_id))

    @app.post("/rooms/<int:room_id>/tenant/end")
    def move_out_tenant(room_id: int):
        db.get_or_404(Room, room_id, description="Room not found")
        end_tenant(room_id)
        return redirect(url_for("room_detail", room_id=room_id))

    # --------------------
    # Meter readings
    # --------------------

    @app.post("/rooms/<int:room_id>/meter")
    def save_meter(room_id: int):
        db.get_or_404(Room, room_id, description="Room not found")
        yyyymm = _text("yyyymm")

        save_meter_reading(
            room_id,
            yyyymm,
            elec_start=_reading("elec_start"),
            elec_end=_reading("elec_end"),
            water_start=_reading("water_start"),
            water_end=_reading("water_end"),
        )
        return redirect(url_for("room_detail", room_id=room_id, yyyymm=yyyymm))

    # --------------------
    # Invoice
    # --------------------

    @app.get("/rooms/<int:room_id>/invoice/<yyyymm>")
    def invoice(room_id: int, yyyymm: str):
        room = db.get_or_404(Room, room_id, description="Room not found")

        # Recomputed (and upserted) every time it is opened
        recalc = recalc_invoice(room_id, yyyymm)
        if recalc is None:
            raise InsufficientDataError()

        return render_template(
            "invoice.html",
            room=room,
            tenant=active_tenant(room_id),
            yyyymm=yyyymm,
            invoice=recalc.invoice,
            figures=recalc.figures,
            tariff=recalc.tariff,
            settings=db.session.get(LandlordSettings, SETTINGS_ID),
        )

    # --------------------
    # Download CSV
    # --------------------

    @app.get("/rooms/<int:room_id>/invoices.csv")
    def download_invoices_csv(room_id: int):
        room = db.get_or_404(Room, room_id, description="Room not found")
        invoices = (
            Invoice.query.filter_by(room_id=room_id)
            .order_by(Invoice.yyyymm.asc())
            .all()
        )

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(
            [
                "room",
                "yyyymm",
                "rent",
                "internet_fee",
                "cleaning_fee",
                "subtotal_electricity",
                "subtotal_water",
                "total",
                "created_at",
            ]
        )
        for inv in invoices:
            writer.writerow(
                [
                    room.name,
                    inv.yyyymm,
                    inv.rent,
                    inv.internet_fee,
                    inv.cleaning_fee,
                    inv.subtotal_electricity,
                    inv.subtotal_water,
                    inv.total,
                    inv.created_at.isoformat(timespec="seconds"),
                ]
            )

        mem = io.BytesIO(output.getvalue().encode("utf-8"))
        filename = f"invoices_{room.name.replace(' ', '_')}.csv"

        return send_file(mem, mimetype="text/csv", as_attachment=True, download_name=filename)

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "3000")), debug=False)
