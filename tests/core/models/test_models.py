"""Tests for core domain models - custom validators only."""

import pytest
from pydantic import ValidationError
from uuid import uuid4


def _customer_fields(**overrides):
    fields = {
        "customer_id": "C-001",
        "contact_first_name": "Thandi",
        "contact_last_name": "Nkosi",
        "email": "thandi@example.com",
        "phone_number": "0821234567",
    }
    fields.update(overrides)
    return fields


class TestCustomerCreate:
    """Tests for CustomerCreate shape rules."""

    def test_residential_requires_physical_address(self):
        """Residential customers are served at their address."""
        from core.models import CustomerCreate

        with pytest.raises(ValidationError, match="physical_address"):
            CustomerCreate(**_customer_fields())

    def test_residential_with_address(self):
        from core.models import CustomerCreate, CustomerType

        c = CustomerCreate(**_customer_fields(physical_address="12 Main Rd"))
        assert c.customer_type == CustomerType.RESIDENTIAL
        assert c.sites == []

    def test_business_requires_business_name(self):
        """Business customers need a trading name."""
        from core.models import CustomerCreate

        with pytest.raises(ValidationError, match="business_name"):
            CustomerCreate(**_customer_fields(
                customer_type="business",
                sites=[{"site_name": "HQ", "address": "1 Dock Rd"}],
            ))

    def test_business_requires_a_site(self):
        """Business customers need at least one site."""
        from core.models import CustomerCreate

        with pytest.raises(ValidationError, match="at least one site"):
            CustomerCreate(**_customer_fields(
                customer_type="business", business_name="Harbour Foods"
            ))

    def test_sites_get_ids(self):
        """Each site is assigned its own id."""
        from core.models import CustomerCreate

        c = CustomerCreate(**_customer_fields(
            customer_type="business",
            business_name="Harbour Foods",
            sites=[
                {"site_name": "HQ", "address": "1 Dock Rd"},
                {"site_name": "Depot", "address": "9 Rail St"},
            ],
        ))
        assert c.sites[0].id != c.sites[1].id

    def test_rejects_invalid_email(self):
        from core.models import CustomerCreate

        with pytest.raises(ValidationError):
            CustomerCreate(**_customer_fields(email="not-an-email", physical_address="x"))


class TestEquipmentCreate:
    """Tests for EquipmentCreate custom validators."""

    def test_other_requires_custom_type(self):
        from core.models import EquipmentCreate

        with pytest.raises(ValidationError, match="custom_type"):
            EquipmentCreate(customer=uuid4(), equipment_type="Other")

    def test_other_with_custom_type(self):
        from core.models import EquipmentCreate, EquipmentType

        e = EquipmentCreate(customer=uuid4(), equipment_type="Other", custom_type="Kiln")
        assert e.equipment_type == EquipmentType.OTHER

    def test_rejects_unknown_type(self):
        from core.models import EquipmentCreate

        with pytest.raises(ValidationError):
            EquipmentCreate(customer=uuid4(), equipment_type="Spaceship")

    def test_naive_dates_become_utc(self):
        """Date-only input is taken as UTC."""
        from core.models import EquipmentCreate

        e = EquipmentCreate(
            customer=uuid4(), equipment_type="Geyser", warranty_expiry="2030-01-01"
        )
        assert e.warranty_expiry.tzinfo is not None


class TestServiceCallCreate:

    def test_defaults(self):
        from core.models import ServiceCallCreate, ServiceCallStatus, Priority

        call = ServiceCallCreate(
            customer=uuid4(), title="Geyser leak", description="Dripping", service_type="Plumbing"
        )
        assert call.status == ServiceCallStatus.OPEN
        assert call.priority == Priority.MEDIUM
        assert call.parts_used == []

    def test_rejects_negative_duration(self):
        from core.models import ServiceCallCreate

        with pytest.raises(ValidationError):
            ServiceCallCreate(
                customer=uuid4(), title="t", description="d", service_type="s",
                estimated_duration=-5,
            )


class TestRatingSubmission:

    @pytest.mark.parametrize("rating", [0, 6])
    def test_rating_out_of_range(self, rating):
        from core.models import RatingSubmission

        with pytest.raises(ValidationError):
            RatingSubmission(rating=rating)

    def test_valid_rating(self):
        from core.models import RatingSubmission

        assert RatingSubmission(rating=5).rating == 5


class TestQuotationCreate:

    def test_requires_line_items(self):
        """At least one line is needed to price a quotation."""
        from core.models import QuotationCreate

        with pytest.raises(ValidationError):
            QuotationCreate(customer=uuid4(), service_type="HVAC", title="Service", line_items=[])

    def test_default_vat_rate(self):
        from decimal import Decimal
        from core.models import QuotationCreate

        q = QuotationCreate(
            customer=uuid4(), service_type="HVAC", title="Service",
            line_items=[{"description": "Labour", "quantity": 1, "unit_price": 100}],
        )
        assert q.vat_rate == Decimal("15")

    def test_vat_rate_bounded(self):
        from core.models import QuotationCreate

        with pytest.raises(ValidationError):
            QuotationCreate(
                customer=uuid4(), service_type="HVAC", title="Service", vat_rate=101,
                line_items=[{"description": "Labour", "quantity": 1, "unit_price": 100}],
            )


class TestLineItem:

    def test_rejects_negative_quantity(self):
        from core.models import LineItem

        with pytest.raises(ValidationError):
            LineItem(description="Pipe", quantity=-1, unit_price=10)


class TestUserCreate:

    def _fields(self, **overrides):
        fields = {
            "user_name": "coolfix",
            "email": "owner@coolfix.co.za",
            "password": "secret1",
            "business_name": "CoolFix",
            "business_registration_number": "2020/123456/07",
            "tax_number": "9012345678",
            "vat_number": "4123456789",
            "phone_number": "0211234567",
            "physical_address": "3 Long St",
        }
        fields.update(overrides)
        return fields

    def test_short_password_rejected(self):
        from core.models import UserCreate

        with pytest.raises(ValidationError):
            UserCreate(**self._fields(password="12345"))

    def test_short_user_name_rejected(self):
        from core.models import UserCreate

        with pytest.raises(ValidationError):
            UserCreate(**self._fields(user_name="ab"))

    def test_public_view_hides_hash(self):
        """The stored credential never appears in the JSON view."""
        from core.models import User
        from utils.timezone import now_utc

        now = now_utc()
        user = User(
            id=uuid4(), password_hash="$2b$12$hash",
            **{k: v for k, v in self._fields().items() if k != "password"},
            created_at=now, updated_at=now,
        )
        assert "password_hash" not in user.public()
