import pytest

from database import db
from models import Car


def car_payload(**overrides):
    payload = {
        'name': 'Hyundai Creta',
        'type': 'SUV',
        'description': 'Roomy family SUV',
        'longDescription': 'Five seats, large boot and a smooth automatic gearbox.',
        'pricePerHour': 150,
        'minNegotiablePrice': 120,
        'maxNegotiablePrice': 180,
        'imageUrls': ['/assets/images/creta.png'],
        'features': ['Air Conditioning', 'GPS'],
        'availability': [{'startDate': '2030-01-01T00:00:00Z', 'endDate': '2030-12-31T00:00:00Z'}],
        'seats': 5,
        'engine': '1.5L Diesel',
        'transmission': 'Automatic',
        'fuelType': 'Diesel',
        'location': 'Pune',
        'aiHint': 'white suv',
    }
    payload.update(overrides)
    return payload


def names(resp):
    return [c['name'] for c in resp.get_json()['data']]


# ==========================================
# PUBLIC SEARCH
# ==========================================

def test_search_filters(client, create_car):
    create_car(name='Swift Dzire', car_type='Sedan', price_per_hour=80, location='Mumbai')
    create_car(name='Mahindra Thar', car_type='SUV', price_per_hour=200, location='Goa',
               description='Open top adventure')
    create_car(name='Tata Nexon EV', car_type='SUV', price_per_hour=120, location='Mumbai')

    assert names(client.get('/api/cars', query_string={'type': 'SUV'})) == ['Mahindra Thar', 'Tata Nexon EV']
    assert names(client.get('/api/cars', query_string={'location': 'mumbai'})) == ['Swift Dzire', 'Tata Nexon EV']
    assert names(client.get('/api/cars', query_string={'q': 'adventure'})) == ['Mahindra Thar']
    assert names(client.get('/api/cars', query_string={'minPrice': 100, 'maxPrice': 150})) == ['Tata Nexon EV']


@pytest.mark.parametrize('query', [{'q': '_'}, {'q': '%'}, {'location': '%'}, {'location': 'M_mbai'}])
def test_search_wildcards_are_literal(client, create_car, query):
    create_car(name='Swift Dzire', location='Mumbai')
    resp = client.get('/api/cars', query_string=query)
    assert resp.status_code == 200
    assert resp.get_json()['totalItems'] == 0


def test_search_paginates(client, create_car):
    for i in range(5):
        create_car(name=f'Car {i}')

    resp = client.get('/api/cars', query_string={'page': 2, 'limit': 2})
    body = resp.get_json()
    assert resp.status_code == 200
    assert names(resp) == ['Car 2', 'Car 3']
    assert body['totalItems'] == 5
    assert body['totalPages'] == 3
    assert body['currentPage'] == 2


def test_search_by_window_excludes_busy_and_unlisted_cars(client, customer, create_car, window, at):
    create_car(name='Free Car')
    busy_id = create_car(name='Busy Car')
    create_car(name='Off Season Car', availability=[(at(0, days=30), at(0, days=60))])

    resp = client.post('/api/bookings', json={'carId': str(busy_id), **window(10, 13)}, headers=customer.headers)
    assert resp.status_code == 201

    resp = client.get('/api/cars', query_string=window(12, 14))
    assert names(resp) == ['Free Car']
    assert resp.get_json()['totalItems'] == 1

    # Back to back with the booking is fine
    assert names(client.get('/api/cars', query_string=window(13, 15))) == ['Free Car', 'Busy Car']


def test_search_needs_both_window_ends(client, window):
    resp = client.get('/api/cars', query_string={'startDate': window(10, 12)['startDate']})
    assert resp.status_code == 400


def test_car_details_and_missing_car(client, create_car):
    car_id = create_car(name='Swift Dzire')
    resp = client.get(f'/api/cars/{car_id}')
    assert resp.status_code == 200
    assert resp.get_json()['id'] == str(car_id)
    assert resp.get_json()['availability'][0]['startDate'].endswith('Z')

    assert client.get('/api/cars/999').status_code == 404


# ==========================================
# ADMIN CRUD
# ==========================================

def test_admin_creates_car(client, app, admin):
    resp = client.post('/api/admin/cars', json=car_payload(), headers=admin.headers)
    assert resp.status_code == 201
    car = resp.get_json()['car']
    assert car['name'] == 'Hyundai Creta'
    assert car['availability'] == [{'startDate': '2030-01-01T00:00:00.000Z', 'endDate': '2030-12-31T00:00:00.000Z'}]

    with app.app_context():
        assert db.session.get(Car, int(car['id'])).booking_version == 0


@pytest.mark.parametrize('overrides', [
    {'minNegotiablePrice': 160},
    {'maxNegotiablePrice': 140},
    {'type': 'Spaceship'},
    {'imageUrls': []},
    {'availability': [{'startDate': '2030-02-01T00:00:00Z', 'endDate': '2030-01-01T00:00:00Z'}]},
])
def test_admin_create_rejects_invalid_car(client, admin, overrides):
    resp = client.post('/api/admin/cars', json=car_payload(**overrides), headers=admin.headers)
    assert resp.status_code == 400
    assert resp.get_json()['errors']


def test_partial_update_is_validated_against_stored_car(client, admin):
    car_id = client.post('/api/admin/cars', json=car_payload(), headers=admin.headers).get_json()['car']['id']

    ok = client.put(f'/api/admin/cars/{car_id}', json={'pricePerHour': 160, 'location': 'Nagpur'},
                    headers=admin.headers)
    assert ok.status_code == 200
    assert ok.get_json()['car']['location'] == 'Nagpur'
    assert ok.get_json()['car']['minNegotiablePrice'] == 120

    # 190 on its own is a valid number but exceeds the stored hourly price
    bad = client.put(f'/api/admin/cars/{car_id}', json={'minNegotiablePrice': 190}, headers=admin.headers)
    assert bad.status_code == 400


def test_update_accepts_field_names(client, admin):
    car_id = client.post('/api/admin/cars', json=car_payload(), headers=admin.headers).get_json()['car']['id']

    resp = client.put(f'/api/admin/cars/{car_id}', json={'price_per_hour': 170, 'fuel_type': 'Hybrid'},
                      headers=admin.headers)
    assert resp.status_code == 200
    assert resp.get_json()['car']['pricePerHour'] == 170
    assert resp.get_json()['car']['fuelType'] == 'Hybrid'
    assert client.get(f'/api/cars/{car_id}').get_json()['pricePerHour'] == 170


def test_car_with_active_booking_cannot_be_deleted(client, admin, customer, create_car, window):
    car_id = create_car()
    booking_id = client.post('/api/bookings', json={'carId': str(car_id), **window(10, 12)},
                             headers=customer.headers).get_json()['id']

    assert client.delete(f'/api/admin/cars/{car_id}', headers=admin.headers).status_code == 409

    client.put(f'/api/admin/bookings/{booking_id}/status', json={'status': 'Cancelled'}, headers=admin.headers)
    assert client.delete(f'/api/admin/cars/{car_id}', headers=admin.headers).status_code == 200
    assert client.get(f'/api/cars/{car_id}').status_code == 404

    # History survives the car
    resp = client.get('/api/profile/bookings', headers=customer.headers)
    assert resp.get_json()[0]['carName'] == 'Swift Dzire'


def test_manager_can_view_but_not_edit_cars(client, manager, create_car):
    create_car()
    assert client.get('/api/admin/cars', headers=manager.headers).status_code == 200
    assert client.post('/api/admin/cars', json=car_payload(), headers=manager.headers).status_code == 403


def test_customer_cannot_use_admin_catalog(client, customer):
    assert client.get('/api/admin/cars', headers=customer.headers).status_code == 403
