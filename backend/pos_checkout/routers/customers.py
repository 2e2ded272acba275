"""
Customers router.
Directory search, phone lookup and quick creation from the terminal.
"""

from fastapi import APIRouter, Depends, Query, status

from shared.config.constants import Limits
from shared.config.logging import mask_phone
from shared.utils.exceptions import CustomerNotFoundError
from shared.utils.schemas import Customer
from pos_checkout.core.dependencies import get_directory
from pos_checkout.routers.schemas import CustomerCreateInput
from pos_checkout.services.domain import CustomerDirectory


router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.get("", response_model=list[Customer])
async def search_customers(
    query: str = Query("", max_length=Limits.MAX_SEARCH_TERM_LENGTH),
    directory: CustomerDirectory = Depends(get_directory),
) -> list[Customer]:
    """
    Case-insensitive match over name and phone, ordered by name.
    An empty query lists the whole directory.
    """
    return await directory.search(query)


@router.get("/by-phone", response_model=Customer)
async def find_customer_by_phone(
    phone: str = Query(..., max_length=Limits.MAX_PHONE_LENGTH),
    directory: CustomerDirectory = Depends(get_directory),
) -> Customer:
    """Exact phone lookup; 404 lets the terminal offer creation."""
    customer = await directory.find_by_phone(phone)
    if customer is None:
        raise CustomerNotFoundError(phone=mask_phone(phone))
    return customer


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
async def create_customer(
    body: CustomerCreateInput,
    directory: CustomerDirectory = Depends(get_directory),
) -> Customer:
    return await directory.create(body.name, body.phone)
