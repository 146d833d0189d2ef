import datetime
import os
from types import SimpleNamespace

# Must be set before the app module is imported: the engine is built at import
os.environ['APP_CONFIG'] = 'config.TestingConfig'

import pytest  # noqa: E402

import payments  # noqa: E402
from app import app as flask_app  # noqa: E402
from database import db  # noqa: E402
from models import Car, CarAvailability, Role, User, utcnow  # noqa: E402

PASSWORD = 'secret123'


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setitem(flask_app.config, 'UPLOAD_FOLDER', str(tmp_path / 'assets'))
    monkeypatch.setattr(payments, '_razorpay_client', None)
    with flask_app.app_context():
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def create_user(app):
    def _create(email, name='Test User', role=Role.CUSTOMER, password=PASSWORD):
        with app.app_context():
            user = User(name=name, email=email, role=role)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _create


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        resp = client.post('/api/auth/login', json={'email': email, 'password': password})
        assert resp.status_code == 200, resp.get_json()
        return {'Authorization': f"Bearer {resp.get_json()['token']}"}
    return _login


@pytest.fixture
def account(create_user, login):
    def _account(email, role=Role.CUSTOMER, name='Test User'):
        user_id = create_user(email, name=name, role=role)
        return SimpleNamespace(id=user_id, email=email, name=name, headers=login(email))
    return _account


@pytest.fixture
def customer(account):
    return account('customer@example.com', name='Asha Customer')


@pytest.fixture
def other_customer(account):
    return account('other@example.com', name='Ravi Other')


@pytest.fixture
def manager(account):
    return account('manager@example.com', role=Role.MANAGER, name='Mira Manager')


@pytest.fixture
def admin(account):
    return account('admin@example.com', role=Role.ADMIN, name='Arun Admin')


@pytest.fixture
def create_car(app):
    def _create(price_per_hour=100.0, name='Swift Dzire', car_type='Sedan', location='Mumbai',
                discount_percent=None, availability=None, description='Comfortable city sedan'):
        now = utcnow()
        windows = availability or [(now - datetime.timedelta(days=1), now + datetime.timedelta(days=365))]
        with app.app_context():
            car = Car(
                name=name,
                car_type=car_type,
                description=description,
                long_description='',
                price_per_hour=price_per_hour,
                discount_percent=discount_percent,
                image_urls=['/assets/images/car.png'],
                features=['Air Conditioning'],
                seats=5,
                engine='1.2L Petrol',
                transmission='Manual',
                fuel_type='Gasoline',
                location=location,
                booking_version=0,
            )
            car.availability = [CarAvailability(start_date=s, end_date=e) for s, e in windows]
            db.session.add(car)
            db.session.commit()
            return car.id
    return _create


def day_at(hours, days=2):
    """A naive-UTC instant `hours` after midnight, `days` from today."""
    midnight = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + datetime.timedelta(days=days, hours=hours)


@pytest.fixture
def window():
    """window(10, 13) -> {'startDate': ..., 'endDate': ...} two days from now."""
    def _window(start_hour, end_hour, days=2):
        return {
            'startDate': day_at(start_hour, days).isoformat() + 'Z',
            'endDate': day_at(end_hour, days).isoformat() + 'Z',
        }
    return _window


@pytest.fixture
def at():
    return day_at
