import datetime

import pytest
from sqlalchemy import text

import bookings
from app import mail
from database import db
from errors import Conflict
from models import Booking, BookingStatus, User, utcnow


def book(client, headers, car_id, window, **extra):
    return client.post('/api/bookings', json={'carId': str(car_id), **window, **extra}, headers=headers)


def test_price_and_overlap_scenario(client, customer, other_customer, create_car, window):
    car_id = create_car(price_per_hour=100)

    first = book(client, customer.headers, car_id, window(10, 13))
    assert first.status_code == 201
    body = first.get_json()
    assert body['totalPrice'] == 300
    assert body['status'] == 'Confirmed'
    assert body['carName'] == 'Swift Dzire'
    assert body['userName'] == 'Asha Customer'

    overlapping = book(client, other_customer.headers, car_id, window(12, 14))
    assert overlapping.status_code == 409
    assert overlapping.get_json()['message'] == 'Car is not available for the selected dates.'

    adjacent = book(client, other_customer.headers, car_id, window(13, 14))
    assert adjacent.status_code == 201


def test_global_discount_applies_without_car_discount(client, admin, customer, create_car, window):
    resp = client.put('/api/admin/settings', json={'globalDiscountPercent': 10}, headers=admin.headers)
    assert resp.status_code == 200
    car_id = create_car(price_per_hour=50)

    resp = book(client, customer.headers, car_id, window(9, 11))
    assert resp.status_code == 201
    assert resp.get_json()['totalPrice'] == 90


def test_car_discount_overrides_global_discount(client, admin, customer, create_car, window):
    client.put('/api/admin/settings', json={'globalDiscountPercent': 10}, headers=admin.headers)
    car_id = create_car(price_per_hour=50, discount_percent=20)

    resp = book(client, customer.headers, car_id, window(9, 11))
    assert resp.get_json()['totalPrice'] == 80


def test_partial_hours_are_rounded_down(client, customer, create_car, window):
    car_id = create_car(price_per_hour=100)
    resp = book(client, customer.headers, car_id, window(10, 12.75))
    assert resp.status_code == 201
    assert resp.get_json()['totalPrice'] == 200


def test_quote_matches_booking_price_without_writing(client, app, create_car, window):
    car_id = create_car(price_per_hour=100, discount_percent=15)
    resp = client.get(f'/api/cars/{car_id}/quote', query_string=window(10, 13))
    assert resp.status_code == 200
    assert resp.get_json() == {
        'carId': str(car_id), 'hours': 3, 'pricePerHour': 100.0, 'discountPercent': 15.0, 'totalPrice': 255.0,
    }
    with app.app_context():
        assert Booking.query.count() == 0


@pytest.mark.parametrize('start_hour, end_hour', [(10, 10.5), (13, 10)])
def test_too_short_or_inverted_window_is_400(client, customer, create_car, window, start_hour, end_hour):
    car_id = create_car()
    resp = book(client, customer.headers, car_id, window(start_hour, end_hour))
    assert resp.status_code == 400


def test_customer_cannot_book_in_the_past(client, customer, create_car, window):
    car_id = create_car()
    resp = book(client, customer.headers, car_id, window(10, 12, days=-1))
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Start date must be in the future.'


def test_admin_can_backdate_and_choose_pending(client, admin, create_car, window):
    car_id = create_car()
    resp = book(client, admin.headers, car_id, window(10, 12, days=-1), status='Pending')
    assert resp.status_code == 201
    assert resp.get_json()['status'] == 'Pending'


def test_customer_status_choice_is_ignored(client, customer, create_car, window):
    car_id = create_car()
    resp = book(client, customer.headers, car_id, window(10, 12), status='Pending')
    assert resp.get_json()['status'] == 'Confirmed'


def test_pending_booking_blocks_the_car(client, admin, customer, create_car, window):
    car_id = create_car()
    book(client, admin.headers, car_id, window(10, 12), status='Pending')
    resp = book(client, customer.headers, car_id, window(11, 13))
    assert resp.status_code == 409


def test_cancelled_booking_releases_the_car(client, app, admin, customer, create_car, window):
    car_id = create_car()
    booking_id = book(client, customer.headers, car_id, window(10, 12)).get_json()['id']
    client.put(f'/api/admin/bookings/{booking_id}/status', json={'status': 'Cancelled'}, headers=admin.headers)

    resp = book(client, customer.headers, car_id, window(10, 12))
    assert resp.status_code == 201


def test_unknown_car_is_404(client, customer, window):
    resp = book(client, customer.headers, 999, window(10, 12))
    assert resp.status_code == 404


def test_booking_sends_confirmation_email(client, customer, create_car, window):
    car_id = create_car()
    with mail.record_messages() as outbox:
        resp = book(client, customer.headers, car_id, window(10, 12))
    assert resp.status_code == 201
    assert len(outbox) == 1
    assert outbox[0].recipients == [customer.email]
    assert 'confirmed' in outbox[0].subject


def test_booking_bumps_car_version(app, create_car, create_user, at):
    car_id = create_car()
    user_id = create_user('asha@example.com')
    with app.app_context():
        user = db.session.get(User, user_id)
        bookings.create_booking(car_id, at(10), at(12), user)
        bookings.create_booking(car_id, at(12), at(14), user)
        version = db.session.execute(text('SELECT booking_version FROM cars WHERE id = :id'), {'id': car_id}).scalar()
    assert version == 2


def test_stale_booking_version_is_rejected(app, create_car, create_user, at):
    car_id = create_car()
    user_id = create_user('asha@example.com')
    with app.app_context():
        user = db.session.get(User, user_id)
        car = bookings.get_car(car_id)
        assert car.booking_version == 0
        # Another writer commits a booking for this car after we loaded it
        db.session.execute(text('UPDATE cars SET booking_version = booking_version + 1 WHERE id = :id'),
                           {'id': car_id})

        with pytest.raises(Conflict):
            bookings.create_booking(car_id, at(10), at(12), user)
        assert Booking.query.count() == 0


def test_expired_payment_holds_are_cancelled(app, create_car, create_user, at):
    from tasks import expire_pending_bookings

    car_id = create_car()
    user_id = create_user('asha@example.com')
    with app.app_context():
        user = db.session.get(User, user_id)
        stale = bookings.create_booking(car_id, at(10), at(12), user, status=BookingStatus.AWAITING_PAYMENT)
        fresh = bookings.create_booking(car_id, at(14), at(16), user, status=BookingStatus.AWAITING_PAYMENT)
        stale.created_at = utcnow() - datetime.timedelta(minutes=45)
        db.session.commit()
        stale_id, fresh_id = stale.id, fresh.id

    result = expire_pending_bookings.delay().get()
    assert result == 'Expired 1 unpaid bookings.'

    with app.app_context():
        assert db.session.get(Booking, stale_id).status == BookingStatus.CANCELLED
        assert db.session.get(Booking, fresh_id).status == BookingStatus.AWAITING_PAYMENT
