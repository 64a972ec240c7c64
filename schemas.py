"""
Database Schemas

Pydantic models for the repair-shop MongoDB collections and the request
bodies that write to them. These models only describe shape and types;
business rules (required text, non-negative numbers, allowed statuses)
live in validators.py so the repositories and the access policy share them.

Collections:
- Customer -> "customers"
- Repair -> "repairs"
- Product -> "products"
- Technician -> "technicians"
- User -> "users"
"""

from pydantic import BaseModel, Field, EmailStr
from typing import List, Literal, Optional


class Customer(BaseModel):
    """
    Customers collection schema
    Collection name: "customers"
    """
    name: str = Field(..., description="Full name")
    phone: str = Field(..., description="Contact phone number")
    email: Optional[str] = Field(None, description="Email address")
    address: Optional[str] = Field(None, description="Postal address")


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class Repair(BaseModel):
    """
    Repair tickets collection schema
    Collection name: "repairs"
    repair_id is generated on insert (e.g. "oct4821").
    """
    customer_id: str = Field(..., description="Customer document id")
    device_type: str = Field(..., description="Phone, laptop, console, ...")
    brand: str = Field(..., description="Device brand")
    model: str = Field(..., description="Device model")
    issue_description: Optional[str] = Field(None, description="What the customer reported")
    status: str = Field("pending", description="pending, in-progress, completed")
    cost: float = Field(0, description="Quoted cost")
    tasks: List[str] = Field(default_factory=list, description="Work items to perform")
    technician_id: Optional[str] = Field(None, description="Assigned technician document id")
    notes: Optional[str] = None
    passcode: Optional[str] = Field(None, description="Device unlock code supplied by the customer")


class RepairUpdate(BaseModel):
    customer_id: Optional[str] = None
    device_type: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    issue_description: Optional[str] = None
    status: Optional[str] = None
    cost: Optional[float] = None
    tasks: Optional[List[str]] = None
    technician_id: Optional[str] = None
    notes: Optional[str] = None
    passcode: Optional[str] = None


class Product(BaseModel):
    """
    Inventory collection schema
    Collection name: "products"
    product_id is generated on insert (e.g. "PROD-4KZ81QXA").
    """
    name: str = Field(..., description="Item name")
    category: str = Field(..., description="Repair Parts, Accessories, Tools, ...")
    quantity: int = Field(0, description="Quantity on hand")
    price: float = Field(0, description="Unit price")
    supplier: str = Field(..., description="Supplier name")
    description: Optional[str] = None
    sku: Optional[str] = Field(None, description="Stock keeping unit")


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[float] = None
    supplier: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None


class Technician(BaseModel):
    """
    Technicians collection schema
    Collection name: "technicians"
    tech_id is generated on insert (e.g. "TECH-9QF2LM").
    """
    name: str = Field(..., description="Full name")
    specialization: List[str] = Field(default_factory=list, description="Device families handled")
    availability: bool = Field(True, description="Whether the technician takes new work")
    email: Optional[str] = None
    phone: str = Field(..., description="Contact phone number")


class TechnicianUpdate(BaseModel):
    name: Optional[str] = None
    specialization: Optional[List[str]] = None
    availability: Optional[bool] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class User(BaseModel):
    """
    Users collection schema: credentials and role assignment
    Collection name: "users"
    """
    email: EmailStr = Field(..., description="Login email")
    password_hash: str = Field(..., description="Hashed password")
    role: Optional[Literal["admin", "staff"]] = Field(None, description="admin, staff, or none")
    display_name: Optional[str] = None
    is_active: bool = Field(True, description="Whether user is active")


class UserCreate(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    display_name: Optional[str] = None
    role: Optional[Literal["admin", "staff"]] = None


class Principal(BaseModel):
    """The authenticated user as seen by routes and access rules."""
    id: str
    email: EmailStr
    role: Optional[str] = None
    display_name: Optional[str] = None
    is_active: bool = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
