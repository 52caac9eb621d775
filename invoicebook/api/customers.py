# invoicebook/api/customers.py

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from invoicebook.api.deps import get_store
from invoicebook.db.store import Store
from invoicebook.models.customers import Customer, CustomerIn

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=List[Customer])
async def list_customers(
    q: Optional[str] = Query(
        default=None,
        description="Case-insensitive match on name, or part of a phone number",
    ),
    store: Store = Depends(get_store),
) -> List[Customer]:
    return await store.customers.search(q)


@router.post("", response_model=Customer, status_code=201)
async def create_customer(
    payload: CustomerIn, store: Store = Depends(get_store)
) -> Customer:
    return await store.customers.put(payload.to_customer())


@router.get("/{customer_id}", response_model=Customer)
async def get_customer(customer_id: str, store: Store = Depends(get_store)) -> Customer:
    customer = await store.customers.get(customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.put("/{customer_id}", response_model=Customer)
async def update_customer(
    customer_id: str, payload: CustomerIn, store: Store = Depends(get_store)
) -> Customer:
    existing = await store.customers.get(customer_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return await store.customers.put(payload.to_customer(existing))
