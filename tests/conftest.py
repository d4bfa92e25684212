import pytest

from app import create_app
from models import db, Room, Tariff


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test",
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
        }
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def room_id(app):
    """Room P201 with the building's standard tariff."""
    with app.app_context():
        room = Room(name="P201", note="1 người")
        db.session.add(room)
        db.session.flush()
        db.session.add(
            Tariff(
                room_id=room.id,
                rent=3500000,
                internet_fee=20000,
                cleaning_fee=100000,
                electricity_price=4500,
                water_price=35000,
            )
        )
        db.session.commit()
        return room.id
