"""
Customer service for CRUD and site operations.

Business customers always keep at least one site. Residential customers
have no sites; their physical address is where work happens.
"""

import logging
from typing import Any
from uuid import UUID

from core.exceptions import ConflictError, InvalidInputError, NotFoundError
from core.models import (
    Customer, CustomerCreate, CustomerType, Site, SiteCreate, CUSTOMER_PERMISSIONS,
)
from core.services.base import OwnedRecordService

logger = logging.getLogger(__name__)

# Site fields a caller may change in place
_SITE_EDITABLE = set(SiteCreate.model_fields)


class CustomerService(OwnedRecordService[Customer]):
    """Service for customer operations."""

    collection = "customers"
    entity_type = "customer"
    model = Customer
    permissions = CUSTOMER_PERMISSIONS

    def create(self, data: CustomerCreate) -> Customer:
        """
        Create a new customer.

        Args:
            data: Customer creation data. customer_id is caller-supplied.

        Returns:
            Created customer

        Raises:
            ConflictError: If customer_id is already in use
        """
        customer = self._new_record(data.model_dump())
        self._insert(customer)
        logger.info(f"Customer created: {customer.customer_id} ({customer.customer_type.value})")
        return customer

    def list_customers(
        self,
        customer_type: str | None = None,
        account_status: str | None = None,
    ) -> list[Customer]:
        return self.list_all({"customer_type": customer_type, "account_status": account_status})

    # -------------------------------------------------------------------------
    # Sites
    # -------------------------------------------------------------------------

    def _business_customer(self, customer_id: UUID | str) -> Customer:
        customer = self.get_by_id(customer_id)
        if customer.customer_type != CustomerType.BUSINESS:
            raise InvalidInputError("Residential customers do not have sites")
        return customer

    def list_sites(self, customer_id: UUID | str) -> list[Site]:
        """Sites of a business customer."""
        return self._business_customer(customer_id).sites

    def get_site(self, customer_id: UUID | str, site_id: UUID) -> Site:
        """
        Raises:
            NotFoundError: If the site is not on this customer
        """
        site = self._business_customer(customer_id).find_site(site_id)
        if site is None:
            raise NotFoundError("site", site_id)
        return site

    def add_site(self, customer_id: UUID | str, data: SiteCreate) -> Site:
        """Append a site to a business customer."""
        current = self._business_customer(customer_id)
        updated = current.model_copy(deep=True)
        site = Site(**data.model_dump())
        updated.sites.append(site)
        self._save(current, updated)
        logger.info(f"Site added to customer {current.customer_id}: {site.site_name}")
        return site

    def update_site(self, customer_id: UUID | str, site_id: UUID, patch: dict[str, Any]) -> Site:
        """
        Change fields of one site.

        Raises:
            NotFoundError: If the site is not on this customer
            InvalidInputError: If the patched site is invalid
        """
        current = self._business_customer(customer_id)
        updated = current.model_copy(deep=True)

        for index, site in enumerate(updated.sites):
            if site.id == site_id:
                merged = site.model_dump()
                merged.update({k: v for k, v in patch.items() if k in _SITE_EDITABLE})
                updated.sites[index] = self._validate_site(merged)
                self._save(current, updated)
                return updated.sites[index]

        raise NotFoundError("site", site_id)

    def delete_site(self, customer_id: UUID | str, site_id: UUID) -> None:
        """
        Remove a site.

        Raises:
            NotFoundError: If the site is not on this customer
            ConflictError: If it is the customer's only site
        """
        current = self._business_customer(customer_id)
        if current.find_site(site_id) is None:
            raise NotFoundError("site", site_id)
        if len(current.sites) == 1:
            raise ConflictError("Business customers must keep at least one site")

        updated = current.model_copy(deep=True)
        updated.sites = [s for s in updated.sites if s.id != site_id]
        self._save(current, updated)
        logger.info(f"Site {site_id} removed from customer {current.customer_id}")

    def _validate_site(self, data: dict[str, Any]) -> Site:
        try:
            return Site.model_validate(data)
        except ValueError as e:
            raise InvalidInputError(f"Invalid site: {e}") from e
