from database import db
from werkzeug.security import generate_password_hash, check_password_hash
import datetime

# This file contains the schema for the rental database.
# I am using SQLAlchemy ORM to map Python classes to SQL tables.
# All timestamps are stored as naive UTC.

SETTINGS_DOC_ID = 'main_settings'


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def iso(value):
    """Renders a stored naive-UTC timestamp as an ISO instant."""
    if value is None:
        return None
    return value.isoformat(timespec='milliseconds') + 'Z'


class Role:
    CUSTOMER = 'Customer'
    MANAGER = 'Manager'
    ADMIN = 'Admin'

    ALL = (CUSTOMER, MANAGER, ADMIN)
    # Older registration path
    LEGACY_USER = 'User'


class BookingStatus:
    PENDING = 'Pending'
    AWAITING_PAYMENT = 'Awaiting Payment'
    CONFIRMED = 'Confirmed'
    CANCELLED = 'Cancelled'
    COMPLETED = 'Completed'
    CANCELLATION_REQUESTED = 'Cancellation Requested'

    ALL = (PENDING, AWAITING_PAYMENT, CONFIRMED, CANCELLED, COMPLETED, CANCELLATION_REQUESTED)
    # Statuses that reserve the car for the booking's interval
    BLOCKING = (PENDING, AWAITING_PAYMENT, CONFIRMED, CANCELLATION_REQUESTED)


class DocumentType:
    PHOTO_ID = 'PhotoID'
    DRIVING_LICENSE = 'DrivingLicense'

    ALL = (PHOTO_ID, DRIVING_LICENSE)


class DocumentStatus:
    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'


# Many-to-many link; the composite primary key gives set semantics
user_favorites = db.Table(
    'user_favorites',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('car_id', db.Integer, db.ForeignKey('cars.id', ondelete='CASCADE'), primary_key=True),
)


class User(db.Model):
    """
    Accounts, their role and profile data.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=Role.CUSTOMER)
    phone_number = db.Column(db.String(32), nullable=True)
    address = db.Column(db.JSON, nullable=True)
    location = db.Column(db.String(120), nullable=True)

    reset_password_token = db.Column(db.String(64), nullable=True, index=True)
    reset_password_expires = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utcnow)

    documents = db.relationship('UserDocument', backref='user', lazy=True,
                                cascade='all, delete-orphan', order_by='UserDocument.doc_type')
    favorite_cars = db.relationship('Car', secondary=user_favorites, lazy=True, backref='favorited_by')
    bookings = db.relationship('Booking', backref='user', lazy=True)

    def set_password(self, password):
        # Hashes the password before storing it for security reasons
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        # Compares the provided password with the stored hash during login
        return check_password_hash(self.password_hash, password)

    def to_dict(self, with_documents=True):
        data = {
            'id': str(self.id),
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'phoneNumber': self.phone_number,
            'address': self.address,
            'location': self.location,
            'favoriteCarIds': [str(c.id) for c in self.favorite_cars],
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }
        if with_documents:
            data['documents'] = [d.to_dict() for d in self.documents]
        return data


class UserDocument(db.Model):
    """
    Verification documents uploaded by a user. One row per (user, type):
    a new upload of the same type replaces the old row.
    """
    __tablename__ = 'user_documents'
    __table_args__ = (db.UniqueConstraint('user_id', 'doc_type', name='uq_user_document_type'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    doc_type = db.Column(db.String(32), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=DocumentStatus.PENDING)
    uploaded_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    verified_at = db.Column(db.DateTime, nullable=True)
    verified_by = db.Column(db.Integer, nullable=True)
    admin_comments = db.Column(db.String(500), nullable=True)

    def to_dict(self):
        return {
            'type': self.doc_type,
            'fileName': self.file_name,
            'filePath': self.file_path,
            'status': self.status,
            'uploadedAt': iso(self.uploaded_at),
            'verifiedAt': iso(self.verified_at),
            'verifiedBy': str(self.verified_by) if self.verified_by else None,
            'adminComments': self.admin_comments,
        }


class Car(db.Model):
    """
    A rentable car listing. booking_version is bumped on every booking insert
    and used as a compare-and-swap guard against double booking.
    """
    __tablename__ = 'cars'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, index=True)
    car_type = db.Column('type', db.String(20), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    long_description = db.Column(db.Text, nullable=False, default='')
    price_per_hour = db.Column(db.Float, nullable=False)
    min_negotiable_price = db.Column(db.Float, nullable=True)
    max_negotiable_price = db.Column(db.Float, nullable=True)
    discount_percent = db.Column(db.Float, nullable=True)
    image_urls = db.Column(db.JSON, nullable=False, default=list)
    features = db.Column(db.JSON, nullable=False, default=list)
    seats = db.Column(db.Integer, nullable=False)
    engine = db.Column(db.String(120), nullable=False)
    transmission = db.Column(db.String(20), nullable=False)
    fuel_type = db.Column(db.String(20), nullable=False)
    rating = db.Column(db.Float, nullable=False, default=0)
    reviews = db.Column(db.Integer, nullable=False, default=0)
    location = db.Column(db.String(120), nullable=False)
    ai_hint = db.Column(db.String(50), nullable=True)

    booking_version = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utcnow)

    # If a car is deleted, its availability windows go with it (cascade delete)
    availability = db.relationship('CarAvailability', backref='car', lazy=True,
                                   cascade='all, delete-orphan', order_by='CarAvailability.start_date')
    bookings = db.relationship('Booking', backref='car', lazy=True)

    @property
    def primary_image_url(self):
        return self.image_urls[0] if self.image_urls else None

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'type': self.car_type,
            'description': self.description,
            'longDescription': self.long_description,
            'pricePerHour': self.price_per_hour,
            'minNegotiablePrice': self.min_negotiable_price,
            'maxNegotiablePrice': self.max_negotiable_price,
            'discountPercent': self.discount_percent,
            'imageUrls': list(self.image_urls or []),
            'features': list(self.features or []),
            'availability': [a.to_dict() for a in self.availability],
            'seats': self.seats,
            'engine': self.engine,
            'transmission': self.transmission,
            'fuelType': self.fuel_type,
            'rating': self.rating,
            'reviews': self.reviews,
            'location': self.location,
            'aiHint': self.ai_hint,
        }


class CarAvailability(db.Model):
    """
    A general availability window of a car, independent of bookings.
    """
    __tablename__ = 'car_availability'

    id = db.Column(db.Integer, primary_key=True)
    car_id = db.Column(db.Integer, db.ForeignKey('cars.id'), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)

    def covers(self, start, end):
        return self.start_date <= start and end <= self.end_date

    def to_dict(self):
        return {'startDate': iso(self.start_date), 'endDate': iso(self.end_date)}


class Booking(db.Model):
    """
    Records who rented which car and when. Car and user display fields are
    copied at creation time so history stays readable after edits.
    """
    __tablename__ = 'bookings'
    __table_args__ = (db.Index('ix_bookings_car_status', 'car_id', 'status'),)

    id = db.Column(db.Integer, primary_key=True)
    car_id = db.Column(db.Integer, db.ForeignKey('cars.id'), nullable=True)
    car_name = db.Column(db.String(120), nullable=False)
    car_image_url = db.Column(db.String(500), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    user_name = db.Column(db.String(120), nullable=False)

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    total_price = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(32), nullable=False, default=BookingStatus.CONFIRMED)

    # External payment references
    payment_provider = db.Column(db.String(20), nullable=True)
    razorpay_order_id = db.Column(db.String(64), nullable=True, index=True)
    razorpay_payment_id = db.Column(db.String(64), nullable=True)
    stripe_session_id = db.Column(db.String(255), nullable=True, index=True)
    stripe_payment_intent_id = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @classmethod
    def blocking_overlaps(cls, start, end, car_id=None):
        # [a, b) and [c, d) overlap iff a < d and c < b
        query = cls.query.filter(
            cls.status.in_(BookingStatus.BLOCKING),
            cls.start_date < end,
            cls.end_date > start,
        )
        if car_id is not None:
            query = query.filter(cls.car_id == car_id)
        return query

    def to_dict(self):
        return {
            'id': str(self.id),
            'carId': str(self.car_id) if self.car_id else None,
            'carName': self.car_name,
            'carImageUrl': self.car_image_url,
            'userId': str(self.user_id) if self.user_id else None,
            'userName': self.user_name,
            'startDate': iso(self.start_date),
            'endDate': iso(self.end_date),
            'totalPrice': self.total_price,
            'status': self.status,
            'paymentProvider': self.payment_provider,
            'razorpayOrderId': self.razorpay_order_id,
            'razorpayPaymentId': self.razorpay_payment_id,
            'stripeSessionId': self.stripe_session_id,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }


class SiteSettings(db.Model):
    """
    Singleton row holding the global site configuration.
    """
    __tablename__ = 'site_settings'

    id = db.Column(db.String(32), primary_key=True, default=SETTINGS_DOC_ID)
    site_title = db.Column(db.String(120), nullable=False, default='Travel Yatra')
    default_currency = db.Column(db.String(3), nullable=False, default='INR')
    maintenance_mode = db.Column(db.Boolean, nullable=False, default=False)
    session_timeout_minutes = db.Column(db.Integer, nullable=False, default=60)
    global_discount_percent = db.Column(db.Float, nullable=False, default=0)

    smtp_host = db.Column(db.String(255), nullable=True)
    smtp_port = db.Column(db.Integer, nullable=True)
    smtp_user = db.Column(db.String(255), nullable=True)
    smtp_pass = db.Column(db.String(255), nullable=True)
    smtp_secure = db.Column(db.Boolean, nullable=True)
    email_from = db.Column(db.String(255), nullable=True)

    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utcnow)
