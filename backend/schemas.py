"""
Request and response schemas.

JSON bodies use camelCase keys; the Python side uses snake_case. Every model
accepts either spelling.
"""

import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import (AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field,
                      model_validator)
from pydantic.alias_generators import to_camel

from models import Role


def _to_naive_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


def _normalize_role(value):
    if value == Role.LEGACY_USER:
        return Role.CUSTOMER
    return value


UtcDatetime = Annotated[datetime.datetime, AfterValidator(_to_naive_utc)]
RoleName = Annotated[Literal['Customer', 'Manager', 'Admin'], BeforeValidator(_normalize_role)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


# --- Auth ---

class RegisterIn(CamelModel):
    full_name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    phone_number: Optional[str] = None


class LoginIn(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ForgotPasswordIn(CamelModel):
    email: str = Field(min_length=1)


class ResetPasswordIn(CamelModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6)


# --- Profile ---

class AddressIn(CamelModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip: str = Field(min_length=1)
    country: str = Field(min_length=1)


class ProfileUpdateIn(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    address: Optional[AddressIn] = None
    location: Optional[str] = Field(default=None, min_length=1)

    @model_validator(mode='after')
    def at_least_one_field(self):
        if self.name is None and self.address is None and self.location is None:
            raise ValueError('At least one field must be provided for update.')
        return self


class FavoriteIn(CamelModel):
    car_id: str = Field(min_length=1)


# --- Cars ---

class AvailabilityWindow(CamelModel):
    start_date: UtcDatetime
    end_date: UtcDatetime

    @model_validator(mode='after')
    def end_after_start(self):
        if self.end_date <= self.start_date:
            raise ValueError('Availability end date must be after start date.')
        return self


class CarIn(CamelModel):
    name: str = Field(min_length=1)
    type: Literal['Sedan', 'SUV', 'Hatchback', 'Truck', 'Van', 'Convertible', 'Coupe']
    price_per_hour: float = Field(gt=0)
    min_negotiable_price: Optional[float] = Field(default=None, gt=0)
    max_negotiable_price: Optional[float] = Field(default=None, gt=0)
    discount_percent: Optional[float] = Field(default=None, ge=0, le=100)
    image_urls: List[str] = Field(min_length=1)
    description: str = ''
    long_description: str = ''
    features: List[str] = Field(min_length=1)
    availability: List[AvailabilityWindow] = Field(min_length=1)
    seats: int = Field(ge=1)
    engine: str = Field(min_length=1)
    transmission: Literal['Automatic', 'Manual']
    fuel_type: Literal['Gasoline', 'Diesel', 'Electric', 'Hybrid']
    rating: float = Field(default=0, ge=0, le=5)
    reviews: int = Field(default=0, ge=0)
    location: str = Field(min_length=1)
    ai_hint: Optional[str] = Field(default=None, max_length=50)

    @model_validator(mode='after')
    def negotiable_bounds(self):
        low, high = self.min_negotiable_price, self.max_negotiable_price
        if low is not None and low > self.price_per_hour:
            raise ValueError('Minimum negotiable price cannot be greater than the hourly price.')
        if high is not None and high < self.price_per_hour:
            raise ValueError('Maximum negotiable price cannot be less than the hourly price.')
        if low is not None and high is not None and low > high:
            raise ValueError('Minimum negotiable price cannot be greater than maximum negotiable price.')
        return self


class CarSearchParams(CamelModel):
    q: Optional[str] = None
    type: Optional[str] = None
    min_price: Optional[float] = Field(default=None, ge=0)
    max_price: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=9, ge=1, le=100)

    @model_validator(mode='after')
    def window_is_complete(self):
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError('Both startDate and endDate are required to filter by availability.')
        if self.start_date is not None and self.end_date <= self.start_date:
            raise ValueError('End date must be after start date.')
        return self


# --- Bookings & checkout ---

class BookingIn(CamelModel):
    car_id: str = Field(min_length=1)
    start_date: UtcDatetime
    end_date: UtcDatetime
    # Only honored for staff allowed to backdate bookings
    status: Optional[Literal['Pending', 'Confirmed']] = None


class CheckoutIn(CamelModel):
    car_id: str = Field(min_length=1)
    start_date: UtcDatetime
    end_date: UtcDatetime


class RazorpayVerifyIn(CamelModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    booking_id: str = Field(min_length=1)


class BookingStatusIn(CamelModel):
    status: Literal['Confirmed', 'Cancelled', 'Completed']


class PageParams(CamelModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    status: Optional[str] = None


class ReportParams(CamelModel):
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    status: Optional[str] = None

    @model_validator(mode='after')
    def ordered_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError('Start date cannot be after end date.')
        return self


# --- Admin ---

class SettingsIn(CamelModel):
    site_title: Optional[str] = Field(default=None, min_length=1)
    default_currency: Optional[Literal['USD', 'EUR', 'GBP', 'INR']] = None
    maintenance_mode: Optional[bool] = None
    session_timeout_minutes: Optional[int] = Field(default=None, ge=1, le=24 * 60)
    global_discount_percent: Optional[float] = Field(default=None, ge=0, le=100)
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = Field(default=None, ge=1, le=65535)
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    smtp_secure: Optional[bool] = None
    email_from: Optional[str] = None


class UserCreateIn(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: RoleName


class UserUpdateIn(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[RoleName] = None

    @model_validator(mode='after')
    def at_least_one_field(self):
        if self.name is None and self.role is None:
            raise ValueError('No fields to update provided.')
        return self


class DocumentReviewIn(CamelModel):
    status: Literal['Approved', 'Rejected']
    admin_comments: Optional[str] = Field(default=None, max_length=500)


# --- Negotiation ---

class NegotiationIn(CamelModel):
    car_model: str = Field(min_length=1)
    rental_hours: float = Field(gt=0)
    initial_price: float = Field(gt=0)
    min_negotiable_price: Optional[float] = Field(default=None, gt=0)
    max_negotiable_price: Optional[float] = Field(default=None, gt=0)
    user_input: str = Field(min_length=1, max_length=2000)


class NegotiationOut(CamelModel):
    response: str
    negotiated_price: float
    is_final_offer: bool
