"""
Order data models.

Orders are owned by the upstream commerce API; this service only reads
them and issues updates. Order.from_dict() turns the upstream JSON into
typed dataclasses, keeping the original payload in ``raw`` so routes can
pass it back to the dashboard unchanged.

The order lifecycle is an explicit state machine:

    pending / unfulfilled -> processing
    processing -> ready_to_ship -> shipped -> delivered
    processing -> shipped          (seller marks shipped under own label)
    processing -> cancelled
    ready_to_ship -> cancelled     (only while no label has been bought)
    delivered, ended               terminal, reached upstream
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


OUNCES_PER_POUND = 16.0


class OrderStatus(Enum):
    """Shipping status of an order as reported by the commerce API."""

    PENDING = "pending"
    UNFULFILLED = "unfulfilled"
    PROCESSING = "processing"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPING = "shipping"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    ENDED = "ended"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "OrderStatus":
        """
        Parse an upstream status string.

        A missing status and unrecognised strings both map to UNKNOWN,
        which allows no transitions: an order is only bundled, shipped or
        cancelled when the upstream states its status.
        """
        if value in (None, ""):
            return cls.UNKNOWN
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


# Statuses a label can be bought for (bundle label validation)
LABEL_COMPATIBLE_STATUSES = frozenset({
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.UNFULFILLED,
    OrderStatus.READY_TO_SHIP,
})

# No cancellation from these, whatever the tracking state
NON_CANCELABLE_STATUSES = frozenset({
    OrderStatus.CANCELLED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.ENDED,
})

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.ENDED})

SHIPPABLE_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.READY_TO_SHIP})


# =============================================================================
# NUMERIC HELPERS
# =============================================================================

def to_float(value: Any, default: float = 0.0) -> float:
    """Parse a number that may arrive as int, float or string; junk reads as default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def weight_in_ounces(weight: Any, scale: Optional[str]) -> float:
    """
    Convert a weight to ounces.

    Weights without a scale are ounces; "lb"/"lbs" are multiplied by 16.
    Non-numeric weights read as 0.
    """
    amount = to_float(weight)
    unit = (scale or "oz").strip().lower()
    if unit in ("lb", "lbs"):
        return amount * OUNCES_PER_POUND
    return amount


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, (int, float)):
        # Epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# ORDER PARTS
# =============================================================================

@dataclass(frozen=True)
class Address:
    """Shipping address snapshot taken from the customer record."""

    street: str = ""
    city: str = ""
    state: str = ""
    zipcode: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Address"]:
        if not isinstance(data, dict):
            return None
        return cls(
            # Upstream spells the field "addrress1"
            street=str(data.get("addrress1") or data.get("address1") or ""),
            city=str(data.get("city") or ""),
            state=str(data.get("state") or ""),
            zipcode=str(data.get("zipcode") or data.get("zip") or ""),
        )

    def matches(self, other: Optional["Address"]) -> bool:
        """Same street, city, state and zip."""
        if other is None:
            return False
        return (
            self.street == other.street
            and self.city == other.city
            and self.state == other.state
            and self.zipcode == other.zipcode
        )


@dataclass(frozen=True)
class Party:
    """Customer or seller snapshot embedded in an order."""

    party_id: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    address: Optional[Address] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Party":
        if isinstance(data, str):
            return cls(party_id=data)
        if not isinstance(data, dict):
            return cls()
        return cls(
            party_id=str(data.get("_id") or data.get("id") or ""),
            first_name=str(data.get("firstName") or ""),
            last_name=str(data.get("lastName") or ""),
            email=str(data.get("email") or ""),
            address=Address.from_dict(data.get("address")),
        )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class LineItem:
    """One purchased product line of a multi-item order."""

    item_id: str = ""
    product_id: str = ""
    name: str = ""
    quantity: Optional[int] = None
    price: Optional[float] = None
    shipping_fee: Optional[float] = None
    weight: Any = None
    scale: Optional[str] = None
    length: Any = None
    width: Any = None
    height: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        product = data.get("productId")
        if isinstance(product, dict):
            product_id = str(product.get("_id") or "")
            name = str(product.get("name") or "")
        else:
            product_id = str(product or "")
            name = str(data.get("name") or "")
        quantity = data.get("quantity")
        price = data.get("price")
        shipping_fee = data.get("shipping_fee")
        return cls(
            item_id=str(data.get("_id") or ""),
            product_id=product_id,
            name=name,
            quantity=int(to_float(quantity)) if quantity is not None else None,
            price=to_float(price) if price is not None else None,
            shipping_fee=to_float(shipping_fee) if shipping_fee is not None else None,
            weight=data.get("weight"),
            scale=data.get("scale"),
            length=data.get("length"),
            width=data.get("width"),
            height=data.get("height"),
        )

    @property
    def weight_oz(self) -> float:
        return weight_in_ounces(self.weight, self.scale)


@dataclass(frozen=True)
class Giveaway:
    """
    Giveaway payload of an order won in a show.

    Mutually exclusive with line items; its weight comes from the attached
    shipping profile.
    """

    giveaway_id: str = ""
    name: str = ""
    profile_weight: Optional[float] = None
    profile_scale: Optional[str] = None
    length: Any = None
    width: Any = None
    height: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Giveaway":
        profile = data.get("shipping_profile") or {}
        weight = profile.get("weight") if isinstance(profile, dict) else None
        return cls(
            giveaway_id=str(data.get("_id") or ""),
            name=str(data.get("name") or ""),
            profile_weight=to_float(weight) if weight is not None else None,
            profile_scale=profile.get("scale") if isinstance(profile, dict) else None,
            length=data.get("length"),
            width=data.get("width"),
            height=data.get("height"),
        )

    @property
    def weight_oz(self) -> Optional[float]:
        """Profile weight in ounces, None when no profile weight is set."""
        if not self.profile_weight:
            return None
        return weight_in_ounces(self.profile_weight, self.profile_scale)


# =============================================================================
# ORDER
# =============================================================================

@dataclass
class Order:
    """
    An order as read from the commerce API.

    ``bundle_id`` is the only bundling state: orders sharing a non-null
    bundle id form one bundle. There is no bundle record anywhere.
    """

    order_id: str
    customer: Party = field(default_factory=Party)
    seller: Party = field(default_factory=Party)
    items: List[LineItem] = field(default_factory=list)
    giveaway: Optional[Giveaway] = None
    total: Optional[float] = None
    tax: Optional[float] = None
    shipping_fee: Optional[float] = None
    servicefee: Optional[float] = None
    seller_shipping_fee_pay: Optional[float] = None
    status: OrderStatus = OrderStatus.PROCESSING
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    label_url: Optional[str] = None
    rate_id: Optional[str] = None
    bundle_id: Optional[str] = None
    invoice: Optional[Any] = None
    created_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """Build an Order from an upstream order document."""
        giveaway = data.get("giveaway")

        def number(key: str) -> Optional[float]:
            value = data.get(key)
            return to_float(value) if value is not None else None

        return cls(
            order_id=str(data.get("_id") or data.get("id") or ""),
            customer=Party.from_dict(data.get("customer")),
            seller=Party.from_dict(data.get("seller")),
            items=[LineItem.from_dict(i) for i in data.get("items") or [] if isinstance(i, dict)],
            giveaway=Giveaway.from_dict(giveaway) if isinstance(giveaway, dict) else None,
            total=number("total"),
            tax=number("tax"),
            shipping_fee=number("shipping_fee"),
            servicefee=number("servicefee"),
            seller_shipping_fee_pay=number("seller_shipping_fee_pay"),
            status=OrderStatus.parse(data.get("status")),
            tracking_number=data.get("tracking_number") or None,
            tracking_url=data.get("tracking_url") or None,
            label_url=data.get("label_url") or data.get("label") or None,
            rate_id=data.get("rate_id") or None,
            bundle_id=data.get("bundleId") or None,
            invoice=data.get("invoice"),
            created_at=_parse_timestamp(data.get("createdAt") or data.get("date")),
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Upstream document, with the normalized fields written back."""
        data = dict(self.raw)
        status = self.status.value
        if self.status is OrderStatus.UNKNOWN:
            status = self.raw.get("status")
        data.update({
            "_id": self.order_id,
            "status": status,
            "bundleId": self.bundle_id,
        })
        if self.tracking_number:
            data["tracking_number"] = self.tracking_number
        if self.label_url:
            data["label_url"] = self.label_url
        return data

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def customer_id(self) -> str:
        return self.customer.party_id

    @property
    def is_bundled(self) -> bool:
        return self.bundle_id is not None

    @property
    def has_label(self) -> bool:
        """A label has been bought (tracking number or tracking URL present)."""
        return bool(self.tracking_number or self.tracking_url)

    @property
    def item_count(self) -> int:
        """1 for a giveaway, otherwise the number of line items."""
        if self.giveaway is not None:
            return 1
        return len(self.items)

    @property
    def is_multi_item(self) -> bool:
        return len(self.items) > 1

    @property
    def display_total(self) -> float:
        """Order total as shown to the seller: total + tax + shipping fee."""
        return (self.total or 0.0) + (self.tax or 0.0) + (self.shipping_fee or 0.0)

    def weight_oz(self, per_unit: bool = True) -> float:
        """
        Order weight in ounces.

        The giveaway shipping-profile weight wins when present. Otherwise
        item weights are summed; with ``per_unit=False`` each item weight
        is multiplied by its quantity (parcel weight for a label).
        """
        if self.giveaway is not None and self.giveaway.weight_oz is not None:
            return self.giveaway.weight_oz
        weight = 0.0
        for item in self.items:
            item_weight = item.weight_oz
            if not per_unit:
                item_weight *= item.quantity or 1
            weight += item_weight
        return weight

    def parcel_dimensions(self) -> Tuple[float, float, float]:
        """(length, width, height) from the giveaway, else the first item."""
        source: Any = None
        if self.giveaway is not None:
            source = self.giveaway
        elif self.items:
            source = self.items[0]
        if source is None:
            return 0.0, 0.0, 0.0
        return to_float(source.length), to_float(source.width), to_float(source.height)


# =============================================================================
# TRANSITIONS
# =============================================================================

def can_cancel(order: Order) -> bool:
    """
    An order can be cancelled unless it is already cancelled, shipped,
    delivered or ended, and as long as no label has been bought for it.
    """
    if order.status in NON_CANCELABLE_STATUSES or order.status is OrderStatus.UNKNOWN:
        return False
    return not order.has_label


def can_ship(order: Order) -> bool:
    return order.status in SHIPPABLE_STATUSES


def can_bundle(order: Order) -> bool:
    """Only processing orders can be grouped into a new bundle."""
    return order.status is OrderStatus.PROCESSING


def can_buy_label(order: Order) -> bool:
    return order.status in LABEL_COMPATIBLE_STATUSES


def can_transition(order: Order, target: OrderStatus) -> bool:
    """
    Whether this service may move ``order`` to ``target``.

    Only the transitions this service drives are checked; anything else
    (delivered, ended) is reached upstream and rejected here.
    """
    if target is OrderStatus.CANCELLED:
        return can_cancel(order)
    if target is OrderStatus.SHIPPED:
        return can_ship(order)
    if target is OrderStatus.READY_TO_SHIP:
        return can_buy_label(order)
    if target is OrderStatus.PROCESSING:
        return order.status in (
            OrderStatus.PENDING, OrderStatus.UNFULFILLED, OrderStatus.PROCESSING
        )
    return False
