"""
models.py — Data Models for Checkout and Order Settlement

This module defines the data structures used across the checkout flow.
It uses Pydantic models to ensure type safety and automatic validation of incoming data.
Field names follow the persisted document layout (camelCase) so that order
history screens and the admin order list can read the same records.

Models:
    - CartLine: A single line in the shopper's cart.
    - ShippingAddress: Delivery address attached to an order.
    - Coupon: A discount code as stored in the `coupons` collection.
    - CustomerContext: Per-customer facts the coupon checks depend on.
    - CouponResolution: Outcome of evaluating a coupon against a cart.
    - Totals: Subtotal, shipping, discount and payable total.
    - PaymentIntent: Provider-side record awaiting payment.
    - OrderDraft / Order: The persisted order record.
    - PendingCheckout: What an online checkout was priced and charged at.
    - Request/response payloads of the HTTP API.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class CouponKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


class CouponScope(str, Enum):
    ALL = "all"
    CATEGORIES = "categories"
    PRODUCTS = "products"


class CouponStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


class OrderStatus(str, Enum):
    PLACED = "placed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    CANCELLATION_REQUESTED = "cancellation_requested"


class PaymentMethod(str, Enum):
    COD = "cod"
    ONLINE = "online"


class CartLine(BaseModel):
    """
    Represents a single product line in the cart.

    Attributes:
        productId (str): Catalog id of the product.
        name (str): Display name at the time it was added.
        unitPrice (float): Price per unit in major currency units. Must be greater than zero.
        quantity (int): Number of units. Must be greater than zero.
        variantLabel (str | None): Size/colour label of the chosen variant.
        imageRef (str | None): Image URL shown in order history.
        category (str | None): Catalog category, used by category-scoped coupons.
        codAvailable (bool): False when the product cannot be paid cash on delivery.
    """
    productId: str
    name: str
    unitPrice: float = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    variantLabel: Optional[str] = None
    imageRef: Optional[str] = None
    category: Optional[str] = None
    codAvailable: bool = True


class ShippingAddress(BaseModel):
    """Delivery address. Presence of every field is checked by the workflow."""
    name: str = ""
    phone: str = ""
    line1: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""

    def missing_fields(self) -> List[str]:
        return [field for field, value in self.model_dump().items() if not str(value).strip()]


class Coupon(BaseModel):
    """
    A discount code as stored in the `coupons` collection.

    `targets` holds the category names or product ids a scoped coupon applies to.
    `usageLimit == 0` means unlimited.
    """
    id: Optional[str] = None
    code: str
    kind: CouponKind
    value: float = 0
    minOrderValue: float = Field(0, ge=0)
    scope: CouponScope = CouponScope.ALL
    targets: List[str] = []
    usageLimit: int = Field(0, ge=0)
    usedCount: int = Field(0, ge=0)
    restrictToNewCustomers: bool = False
    oneUsePerCustomer: bool = False
    activeFrom: date
    activeUntil: Optional[date] = None
    status: CouponStatus = CouponStatus.ACTIVE

    @field_validator("code")
    @classmethod
    def canonical_code(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("activeFrom", "activeUntil", mode="before")
    @classmethod
    def strip_time(cls, value):
        # Firestore hands back timestamps; only the calendar day matters
        if isinstance(value, datetime):
            return value.date()
        return value


class CustomerContext(BaseModel):
    """Facts about the customer that the coupon resolver cannot look up itself."""
    isNewCustomer: bool = True
    hasRedeemedCoupon: bool = False


class CouponResolution(BaseModel):
    applicable: bool
    discountAmount: float = 0
    freeShipping: bool = False
    reason: Optional[str] = None
    code: Optional[str] = None


class Totals(BaseModel):
    subtotal: float
    shipping: float
    discount: float
    total: int


class PaymentIntent(BaseModel):
    providerIntentId: str
    amountMinorUnits: int
    currency: str


class PaymentInfo(BaseModel):
    method: PaymentMethod
    providerIntentId: Optional[str] = None
    providerPaymentId: Optional[str] = None
    isVerified: bool = False


class OrderDraft(BaseModel):
    """An order ready to be written. The writer assigns `id` and `createdAt`."""
    userId: Optional[str] = None
    items: List[CartLine]
    address: ShippingAddress
    amounts: Totals
    appliedCouponCode: Optional[str] = None
    status: OrderStatus = OrderStatus.PLACED
    payment: PaymentInfo


class Order(OrderDraft):
    id: str
    createdAt: datetime


class PendingCheckout(BaseModel):
    """
    What an online checkout priced and asked the provider to charge.

    Stored under the provider intent id when the intent is created; the paid
    order is recorded from this record, not from what the browser sends back.
    `orderId` is filled in once the order has been written.
    """
    providerIntentId: str
    amountMinorUnits: int
    currency: str
    userId: Optional[str] = None
    items: List[CartLine]
    address: ShippingAddress
    amounts: Totals
    appliedCouponCode: Optional[str] = None
    orderId: Optional[str] = None


# --- API payloads ---

class QuoteRequest(BaseModel):
    cartItems: List[CartLine]
    couponCode: Optional[str] = None
    userId: Optional[str] = None


class QuoteResponse(BaseModel):
    amounts: Totals
    coupon: Optional[CouponResolution] = None


class CheckoutRequest(BaseModel):
    cartItems: List[CartLine]
    couponCode: Optional[str] = None
    userId: Optional[str] = None
    address: Optional[ShippingAddress] = None


class CheckoutResponse(BaseModel):
    orderId: str
    amount: int
    currency: str
    discountAmount: float


class VerifyPaymentRequest(BaseModel):
    providerIntentId: str
    providerPaymentId: str
    suppliedSignature: str
    cartItems: List[CartLine]
    userId: Optional[str] = None
    couponCode: Optional[str] = None
    discountAmount: Optional[float] = None
    saveAddress: bool = False


class VerifyPaymentResponse(BaseModel):
    success: bool
    message: str
    orderId: str


class CodOrderRequest(BaseModel):
    cartItems: List[CartLine]
    address: ShippingAddress
    userId: Optional[str] = None
    couponCode: Optional[str] = None
    saveAddress: bool = False
