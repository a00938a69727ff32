"""Customer list endpoints; customers are the audience of SMS campaigns."""

import math

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewhub.api.dependencies import get_current_user, get_owned_business, load_owned_business
from reviewhub.api.models import (
    CustomerCreate,
    CustomerListResponse,
    CustomerResponse,
    CustomerUpdate,
    MessageResponse,
)
from reviewhub.db.base import utcnow
from reviewhub.db.models import Business, Customer, User
from reviewhub.db.session import get_db

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/customers", tags=["Customers"])


def _owned_customer(db: Session, customer_id: int, user: User) -> Customer:
    customer = db.scalar(
        select(Customer)
        .join(Business, Business.id == Customer.business_id)
        .where(Customer.id == customer_id)
        .where(Business.user_id == user.id)
    )
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.get("/detail/{customer_id}", response_model=CustomerResponse, summary="Customer detail")
async def get_customer(
    customer_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CustomerResponse:
    return CustomerResponse.model_validate(_owned_customer(db, customer_id, user))


@router.get("/{business_id}", response_model=CustomerListResponse, summary="List customers")
async def list_customers(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    business: Business = Depends(get_owned_business),
    db: Session = Depends(get_db),
) -> CustomerListResponse:
    """Most recent visitors first; customers who never visited come last."""
    total = db.scalar(
        select(func.count(Customer.id)).where(Customer.business_id == business.id)
    ) or 0
    customers = db.scalars(
        select(Customer)
        .where(Customer.business_id == business.id)
        .order_by(Customer.last_visit.is_(None), Customer.last_visit.desc(), Customer.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).all()
    return CustomerListResponse(
        customers=[CustomerResponse.model_validate(c) for c in customers],
        total_count=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size),
    )


@router.post("", response_model=CustomerResponse, status_code=201, summary="Add a customer")
async def create_customer(
    request: CustomerCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CustomerResponse:
    business = load_owned_business(db, request.business_id, user)
    customer = Customer(
        business_id=business.id,
        name=request.name,
        email=str(request.email) if request.email else None,
        phone_number=request.phone_number,
        notes=request.notes,
        total_visits=0,
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    logger.info("customer_created", customer_id=customer.id, business_id=business.id)
    return CustomerResponse.model_validate(customer)


@router.put("/{customer_id}", response_model=CustomerResponse, summary="Update a customer")
async def update_customer(
    customer_id: int,
    request: CustomerUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CustomerResponse:
    customer = _owned_customer(db, customer_id, user)
    for field, value in request.model_dump(exclude_none=True).items():
        setattr(customer, field, str(value) if field == "email" else value)
    db.commit()
    db.refresh(customer)
    return CustomerResponse.model_validate(customer)


@router.delete("/{customer_id}", response_model=MessageResponse, summary="Delete a customer")
async def delete_customer(
    customer_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    customer = _owned_customer(db, customer_id, user)
    db.delete(customer)
    db.commit()
    logger.info("customer_deleted", customer_id=customer_id)
    return MessageResponse(message="Customer deleted successfully")


@router.post("/{customer_id}/record-visit", response_model=CustomerResponse, summary="Record a visit")
async def record_visit(
    customer_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CustomerResponse:
    customer = _owned_customer(db, customer_id, user)
    customer.total_visits = (customer.total_visits or 0) + 1
    customer.last_visit = utcnow()
    db.commit()
    db.refresh(customer)
    return CustomerResponse.model_validate(customer)
