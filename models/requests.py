"""
Request DTOs for the JSON endpoints.

Immutable pydantic models validating what the dashboard sends. The
dashboard mixes camelCase (``orderIds``) and the upstream snake_case
(``rate_id``); both spellings are accepted where the dashboard uses both.

parse_request() converts pydantic errors into the service's own
ValidationError so routes never leak pydantic types.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, TypeVar

import bleach
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
)

from core.exceptions import ValidationError


MAX_DESCRIPTION_LENGTH = 500

RequestT = TypeVar("RequestT", bound=BaseModel)


def sanitize_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Strip markup from free text and cap its length."""
    if not text:
        return ""
    text = bleach.clean(text.strip(), tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _non_blank_ids(values: List[str], label: str) -> List[str]:
    cleaned = [str(v).strip() for v in values]
    if any(not v for v in cleaned):
        raise ValueError(f"{label} cannot be empty")
    return cleaned


class _Request(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ---------------------------------------------------------------------------
# Orders and bundles
# ---------------------------------------------------------------------------


class CreateBundleRequest(_Request):
    """``POST /api/orders/bundle`` - group processing orders into one bundle."""

    order_ids: List[str] = Field(alias="orderIds", min_length=1)
    user_id: Optional[str] = Field(default=None, alias="userId")

    @field_validator("order_ids")
    @classmethod
    def ids_not_blank(cls, v: List[str]) -> List[str]:
        return _non_blank_ids(v, "Order ID")


class UnbundleRequest(_Request):
    """``DELETE /api/bundles/<id>`` body; no ids means every member."""

    order_ids: Optional[List[str]] = Field(default=None, alias="orderIds")

    @field_validator("order_ids")
    @classmethod
    def ids_not_blank(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return _non_blank_ids(v, "Order ID")


class UnbundleItemsRequest(_Request):
    """``POST /api/orders/unbundle`` - move line items out into new orders."""

    order_id: str = Field(alias="orderId", min_length=1)
    item_ids: List[str] = Field(alias="itemIds", min_length=1)

    @field_validator("item_ids")
    @classmethod
    def ids_not_blank(cls, v: List[str]) -> List[str]:
        return _non_blank_ids(v, "Item ID")


class UserScopedRequest(_Request):
    """Body of bundle-wide actions that need the acting seller's id."""

    user_id: str = Field(alias="userId", min_length=1)
    relist: bool = False


class UpdateOrderRequest(_Request):
    """``PUT /api/orders/<id>``; fields other than status/relist pass through."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    status: Optional[str] = None
    relist: Optional[bool] = None


class CancelOrderRequest(_Request):
    """``POST /api/orders/cancel/order``."""

    order: str = Field(min_length=1)
    relist: bool = False
    initiator: str = "buyer"
    type: str = "order"
    description: str = ""

    @field_validator("description")
    @classmethod
    def clean_description(cls, v: str) -> str:
        return sanitize_text(v, max_length=MAX_DESCRIPTION_LENGTH)


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


class LabelPurchaseRequest(_Request):
    """``POST /api/shipping/profiles/buy/label`` - one label for one order or bundle."""

    rate_id: str = Field(validation_alias=AliasChoices("rate_id", "rateId"), min_length=1)
    order: str = Field(min_length=1)
    shipping_fee: float = Field(validation_alias=AliasChoices("shipping_fee", "shippingFee"))
    servicelevel: str = Field(min_length=1)
    carrier: Optional[str] = None
    label_file_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("label_file_type", "labelFileType")
    )
    estimate_data: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("estimate_data", "estimateData")
    )

    @field_validator("order", mode="before")
    @classmethod
    def order_reference(cls, v: Any) -> Any:
        # The dashboard sometimes sends the whole order document
        if isinstance(v, dict):
            return v.get("_id") or ""
        return v


class BundleLabelRequest(_Request):
    """``POST /api/shipping/labels/bundle`` - one label for several orders."""

    order_ids: List[str] = Field(alias="orderIds", min_length=1)
    rate_id: str = Field(validation_alias=AliasChoices("rateId", "rate_id"), min_length=1)
    service: Optional[str] = None

    @field_validator("order_ids")
    @classmethod
    def ids_not_blank(cls, v: List[str]) -> List[str]:
        return _non_blank_ids(v, "Order ID")


class ApplyLabelRequest(_Request):
    """``POST /api/shipping/labels/apply`` - write an already bought label onto orders."""

    order_ids: List[str] = Field(alias="orderIds", min_length=1)
    tracking_number: str = Field(
        validation_alias=AliasChoices("trackingNumber", "tracking_number"), min_length=1
    )
    label_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("labelUrl", "label_url")
    )

    @field_validator("order_ids")
    @classmethod
    def ids_not_blank(cls, v: List[str]) -> List[str]:
        return _non_blank_ids(v, "Order ID")


class BulkLabelRequest(_Request):
    """``POST /api/shipping/bulk-labels`` - labels for operator-selected orders."""

    order_ids: List[str] = Field(alias="orderIds", min_length=1)
    label_file_type: str = Field(alias="labelFileType", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)

    @field_validator("order_ids")
    @classmethod
    def ids_not_blank(cls, v: List[str]) -> List[str]:
        return _non_blank_ids(v, "Order ID")


def parse_request(model: Type[RequestT], data: Any) -> RequestT:
    """
    Validate a JSON body against a request model.

    Raises:
        ValidationError: With one entry per offending field
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {
                "field": ".".join(str(p) for p in err["loc"]),
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        raise ValidationError("Invalid request data", errors=errors) from e
