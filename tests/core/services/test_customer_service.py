"""Tests for CustomerService."""

import pytest
from uuid import uuid4


class TestCustomerCreate:
    """Tests for CustomerService.create."""

    def test_creates_residential(self, make_residential, test_user_id):
        customer = make_residential(contact_first_name="Alice")

        assert customer.contact_first_name == "Alice"
        assert customer.created_by == test_user_id
        assert customer.display_name == "Alice Nkosi"

    def test_creates_business_with_sites(self, make_business):
        customer = make_business(business_name="Acme Corp")

        assert customer.display_name == "Acme Corp"
        assert len(customer.sites) == 2

    def test_duplicate_customer_id_conflicts(self, make_residential):
        from core.exceptions import ConflictError

        make_residential(customer_id="C-001")
        with pytest.raises(ConflictError, match="customer_id"):
            make_residential(customer_id="C-001")


class TestCustomerUpdate:

    def test_business_name_is_fixed(self, make_business, customer_service):
        from core.exceptions import ImmutableFieldError

        customer = make_business()
        with pytest.raises(ImmutableFieldError, match="business_name"):
            customer_service.update(customer.id, {"business_name": "Renamed"})

    def test_same_value_for_fixed_field_accepted(self, make_business, customer_service):
        customer = make_business()
        updated = customer_service.update(customer.id, {
            "business_name": customer.business_name,
            "notes": "Gate code 1234",
        })
        assert updated.notes == "Gate code 1234"

    def test_residential_cannot_lose_address(self, make_residential, customer_service):
        from core.exceptions import InvalidInputError

        customer = make_residential()
        with pytest.raises(InvalidInputError, match="physical_address"):
            customer_service.update(customer.id, {"physical_address": None})


class TestCustomerList:

    def test_filter_by_type(self, make_residential, make_business, customer_service):
        home = make_residential()
        make_business()

        results = customer_service.list_customers(customer_type="residential")
        assert [c.id for c in results] == [home.id]


class TestSites:
    """Site operations on business customers."""

    def test_list_sites(self, make_business, customer_service):
        customer = make_business()
        names = {s.site_name for s in customer_service.list_sites(customer.id)}
        assert names == {"Head Office", "Cold Store"}

    def test_residential_has_no_sites(self, make_residential, customer_service):
        from core.exceptions import InvalidInputError

        customer = make_residential()
        with pytest.raises(InvalidInputError, match="do not have sites"):
            customer_service.list_sites(customer.id)

    def test_add_site(self, make_business, customer_service):
        from core.models import SiteCreate

        customer = make_business()
        site = customer_service.add_site(
            customer.id, SiteCreate(site_name="Warehouse", address="4 Bay Rd")
        )

        assert customer_service.get_site(customer.id, site.id).address == "4 Bay Rd"
        assert len(customer_service.get_by_id(customer.id).sites) == 3

    def test_update_site(self, make_business, customer_service):
        customer = make_business()
        site_id = customer.sites[0].id

        site = customer_service.update_site(customer.id, site_id, {
            "contact_person": "Mandla",
            "id": uuid4(),
        })

        assert site.contact_person == "Mandla"
        assert site.id == site_id

    def test_update_unknown_site(self, make_business, customer_service):
        from core.exceptions import NotFoundError

        customer = make_business()
        with pytest.raises(NotFoundError):
            customer_service.update_site(customer.id, uuid4(), {"notes": "x"})

    def test_delete_site(self, make_business, customer_service):
        customer = make_business()
        customer_service.delete_site(customer.id, customer.sites[0].id)

        remaining = customer_service.list_sites(customer.id)
        assert [s.id for s in remaining] == [customer.sites[1].id]

    def test_last_site_cannot_be_deleted(self, make_business, customer_service):
        from core.exceptions import ConflictError

        customer = make_business(sites=[{"site_name": "Only", "address": "1 Dock Rd"}])
        with pytest.raises(ConflictError, match="at least one site"):
            customer_service.delete_site(customer.id, customer.sites[0].id)


class TestCustomerDelete:

    def test_delete_is_audited(self, make_residential, customer_service, audit):
        customer = make_residential()
        customer_service.delete(customer.id)

        assert customer_service.find_by_id(customer.id) is None
        actions = {e["action"] for e in audit.get_entity_history("customer", customer.id)}
        assert actions == {"create", "delete"}
