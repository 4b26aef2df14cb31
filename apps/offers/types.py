"""Value types shared by the offer engine.

Everything here is a plain dataclass: the engine never touches the ORM. Django records are
turned into these snapshots by ``apps.menu.catalog`` and ``apps.offers.services``.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, NamedTuple

SIZE = "size"
SUPPLEMENT = "supplement"

BUNDLE = "bundle"
BUY_X_GET_Y = "buy_x_get_y"
THRESHOLD_DISCOUNT = "threshold_discount"
PROMO_CODE = "promo_code"
HAPPY_HOUR = "happy_hour"

CATEGORY_CHOICE = "category_choice"
SPECIFIC_ITEMS = "specific_items"

PERCENTAGE = "percentage"
FIXED = "fixed"

REWARD_FREE = "free"
REWARD_DISCOUNT = "discount"

ROLE_TRIGGER = "trigger"
ROLE_REWARD = "reward"


def as_number(value: Decimal | int) -> int | float:
    """JSON-friendly rendering of a config number (ints stay ints)."""
    d = Decimal(value)
    return int(d) if d == d.to_integral_value() else float(d)


class PriceKey(NamedTuple):
    """Key of a per-item option price override: an option, optionally for one size."""

    option_id: str
    size_id: str | None = None

    @classmethod
    def parse(cls, raw: str) -> PriceKey:
        option_id, _, size_id = str(raw).partition(":")
        return cls(option_id, size_id or None)

    def __str__(self) -> str:
        return self.option_id if self.size_id is None else f"{self.option_id}:{self.size_id}"


class SupplementKey(NamedTuple):
    item_id: str
    size_id: str | None = None

    @classmethod
    def parse(cls, raw: str) -> SupplementKey:
        item_id, _, size_id = str(raw).partition(":")
        return cls(item_id, size_id or None)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CatalogOption:
    id: str
    name: str
    price_modifier: int = 0
    is_available: bool = True
    is_default: bool = False


@dataclass(frozen=True)
class OptionGroup:
    id: str
    category_id: str
    name: str
    is_required: bool = False
    is_multiple: bool = False
    display_order: int = 0
    options: tuple[CatalogOption, ...] = ()
    role: str = SUPPLEMENT

    @property
    def is_size(self) -> bool:
        return self.role == SIZE

    def option(self, option_id: str) -> CatalogOption | None:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None


@dataclass(frozen=True)
class MenuItemSnapshot:
    id: str
    category_id: str | None
    name: str
    price: int
    is_available: bool = True
    is_archived: bool = False
    is_daily_special: bool = False
    allergens: tuple[str, ...] = ()
    disabled_options: frozenset[str] = frozenset()
    option_prices: dict[PriceKey, int] = field(default_factory=dict, hash=False)

    @property
    def orderable(self) -> bool:
        return self.is_available and not self.is_archived


@dataclass
class Catalog:
    items: dict[str, MenuItemSnapshot] = field(default_factory=dict)
    groups: dict[str, list[OptionGroup]] = field(default_factory=dict)
    category_names: dict[str, str] = field(default_factory=dict)

    def groups_for(self, category_id: str | None) -> list[OptionGroup]:
        return list(self.groups.get(category_id or "", []))

    def size_group(self, category_id: str | None) -> OptionGroup | None:
        for group in self.groups_for(category_id):
            if group.is_size:
                return group
        return None


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SelectedOption:
    option_id: str
    option_group_id: str
    name: str
    group_name: str = ""
    price_modifier: int = 0
    is_size_option: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "option_id": self.option_id,
            "option_group_id": self.option_group_id,
            "name": self.name,
            "group_name": self.group_name,
            "price_modifier": self.price_modifier,
            "is_size_option": self.is_size_option,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SelectedOption:
        return cls(
            option_id=str(data["option_id"]),
            option_group_id=str(data.get("option_group_id") or ""),
            name=data.get("name") or "",
            group_name=data.get("group_name") or "",
            price_modifier=int(data.get("price_modifier") or 0),
            is_size_option=bool(data.get("is_size_option")),
        )


@dataclass(frozen=True)
class BundleSelection:
    category_id: str | None
    menu_item: MenuItemSnapshot
    selected_options: tuple[SelectedOption, ...] = ()
    supplement: int = 0


@dataclass(frozen=True)
class BundleInfo:
    bundle_id: str
    bundle_name: str
    fixed_price: int
    free_options: bool = False
    selections: tuple[BundleSelection, ...] = ()

    @property
    def option_ids(self) -> list[str]:
        return [opt.option_id for sel in self.selections for opt in sel.selected_options]


@dataclass(frozen=True)
class OfferLink:
    """Tag carried by cart lines that were built through a buy-X-get-Y offer."""

    offer_id: str
    role: str


@dataclass
class CartLine:
    key: str
    menu_item: MenuItemSnapshot
    quantity: int
    selected_options: list[SelectedOption] = field(default_factory=list)
    notes: str = ""
    bundle: BundleInfo | None = None
    offer_link: OfferLink | None = None

    @property
    def is_bundle(self) -> bool:
        return self.bundle is not None

    @property
    def size_option(self) -> SelectedOption | None:
        for opt in self.selected_options:
            if opt.is_size_option:
                return opt
        return None

    @property
    def size_id(self) -> str | None:
        size = self.size_option
        return size.option_id if size else None


# ---------------------------------------------------------------------------
# Offer configuration
# ---------------------------------------------------------------------------


def _ids(raw) -> tuple[str, ...]:
    return tuple(str(x) for x in (raw or []) if str(x))


def _excluded_sizes(raw) -> dict[str, frozenset[str]]:
    return {str(k): frozenset(_ids(v)) for k, v in (raw or {}).items()}


@dataclass(frozen=True)
class Eligibility:
    """Category/exclusion filter shared by bundle slots and buy-X-get-Y sides."""

    category_ids: tuple[str, ...] = ()
    excluded_items: frozenset[str] = frozenset()
    excluded_sizes: dict[str, frozenset[str]] = field(default_factory=dict, hash=False)

    def accepts(self, category_id: str | None, item_id: str, size_id: str | None = None) -> bool:
        if category_id is None or category_id not in self.category_ids:
            return False
        if item_id in self.excluded_items:
            return False
        if size_id is not None and size_id in self.excluded_sizes.get(item_id, frozenset()):
            return False
        return True


@dataclass(frozen=True)
class BundleSlot:
    eligibility: Eligibility
    quantity: int = 1
    label: str = ""
    supplements: dict[SupplementKey, int] = field(default_factory=dict, hash=False)

    @classmethod
    def from_config(cls, raw: dict[str, Any]) -> BundleSlot:
        category_ids = _ids(raw.get("category_ids"))
        if not category_ids and raw.get("category_id"):
            category_ids = (str(raw["category_id"]),)
        return cls(
            eligibility=Eligibility(
                category_ids=category_ids,
                excluded_items=frozenset(_ids(raw.get("excluded_items"))),
                excluded_sizes=_excluded_sizes(raw.get("excluded_sizes")),
            ),
            quantity=int(raw.get("quantity") or 1),
            label=raw.get("label") or "",
            supplements={SupplementKey.parse(k): int(v or 0) for k, v in (raw.get("supplements") or {}).items()},
        )

    def supplement_for(self, item_id: str, size_id: str | None = None) -> int:
        if size_id is not None:
            sized = self.supplements.get(SupplementKey(item_id, size_id))
            if sized is not None:
                return sized
        return self.supplements.get(SupplementKey(item_id, None), 0)


@dataclass(frozen=True)
class BundleItem:
    menu_item_id: str
    quantity: int = 1


@dataclass(frozen=True)
class BundleConfig:
    type: str = SPECIFIC_ITEMS
    fixed_price: int = 0
    free_options: bool = False
    slots: tuple[BundleSlot, ...] = ()
    items: tuple[BundleItem, ...] = ()

    @classmethod
    def from_config(cls, raw: dict[str, Any], items: tuple[BundleItem, ...] = ()) -> BundleConfig:
        return cls(
            type=raw.get("type") or SPECIFIC_ITEMS,
            fixed_price=int(raw.get("fixed_price") or 0),
            free_options=bool(raw.get("free_options")),
            slots=tuple(BundleSlot.from_config(s) for s in raw.get("bundle_categories") or []),
            items=tuple(items),
        )

    @property
    def is_category_choice(self) -> bool:
        return self.type == CATEGORY_CHOICE and bool(self.slots)


@dataclass(frozen=True)
class BuyXGetYConfig:
    trigger: Eligibility
    reward: Eligibility
    trigger_quantity: int = 2
    reward_quantity: int = 1
    reward_type: str = REWARD_FREE
    reward_value: int = 0

    @classmethod
    def from_config(cls, raw: dict[str, Any]) -> BuyXGetYConfig:
        return cls(
            trigger=Eligibility(
                category_ids=_ids(raw.get("trigger_category_ids")),
                excluded_items=frozenset(_ids(raw.get("trigger_excluded_items"))),
                excluded_sizes=_excluded_sizes(raw.get("trigger_excluded_sizes")),
            ),
            reward=Eligibility(
                category_ids=_ids(raw.get("reward_category_ids")),
                excluded_items=frozenset(_ids(raw.get("reward_excluded_items"))),
                excluded_sizes=_excluded_sizes(raw.get("reward_excluded_sizes")),
            ),
            trigger_quantity=int(raw.get("trigger_quantity") or 2),
            reward_quantity=int(raw.get("reward_quantity") or 1),
            reward_type=raw.get("reward_type") or REWARD_FREE,
            reward_value=int(raw.get("reward_value") or 0),
        )


@dataclass(frozen=True)
class AmountDiscountConfig:
    """Threshold discounts and promo codes: a percentage or fixed amount off the order."""

    discount_type: str = FIXED
    discount_value: Decimal = Decimal(0)
    min_amount: int = 0
    max_discount: int | None = None
    code: str = ""

    @classmethod
    def from_config(cls, raw: dict[str, Any]) -> AmountDiscountConfig:
        max_discount = raw.get("max_discount")
        return cls(
            discount_type=raw.get("discount_type") or FIXED,
            discount_value=Decimal(str(raw.get("discount_value") or 0)),
            min_amount=int(raw.get("min_amount") or raw.get("min_order_amount") or 0),
            max_discount=int(max_discount) if max_discount else None,
            code=str(raw.get("code") or "").strip().upper(),
        )


@dataclass(frozen=True)
class HappyHourConfig:
    """Percentage or fixed amount off matching items while the offer's time window is open.

    A fixed value is taken off each matching unit, never below zero.
    """

    discount_type: str = PERCENTAGE
    discount_value: Decimal = Decimal(0)
    applies_to: str = "all"
    category_id: str | None = None
    max_discount: int | None = None

    @classmethod
    def from_config(cls, raw: dict[str, Any]) -> HappyHourConfig:
        applies_to = raw.get("applies_to") or "all"
        category_id = raw.get("category_id")
        if applies_to not in ("all", "category"):
            raise ValueError(f"unknown happy hour scope: {applies_to}")
        if applies_to == "category" and not category_id:
            raise ValueError("happy hour on a category needs a category_id")
        max_discount = raw.get("max_discount")
        return cls(
            discount_type=raw.get("discount_type") or PERCENTAGE,
            discount_value=Decimal(str(raw.get("discount_value") or 0)),
            applies_to=applies_to,
            category_id=str(category_id) if category_id else None,
            max_discount=int(max_discount) if max_discount else None,
        )

    def covers(self, category_id: str | None) -> bool:
        return self.applies_to == "all" or category_id == self.category_id


def parse_config(offer_type: str, raw: dict[str, Any] | None, items: tuple[BundleItem, ...] = ()):
    raw = raw or {}
    if offer_type == BUNDLE:
        return BundleConfig.from_config(raw, items)
    if offer_type == BUY_X_GET_Y:
        return BuyXGetYConfig.from_config(raw)
    if offer_type in (THRESHOLD_DISCOUNT, PROMO_CODE):
        return AmountDiscountConfig.from_config(raw)
    if offer_type == HAPPY_HOUR:
        return HappyHourConfig.from_config(raw)
    raise ValueError(f"unknown offer type: {offer_type}")


@dataclass(frozen=True)
class OfferSnapshot:
    id: str
    name: str
    offer_type: str
    config: Any
    description: str = ""
    is_active: bool = True
    start_date: dt.datetime | None = None
    end_date: dt.datetime | None = None
    time_start: dt.time | None = None
    time_end: dt.time | None = None
    days_of_week: tuple[int, ...] = ()
    max_uses: int | None = None
    max_uses_per_customer: int | None = None
    current_uses: int = 0
    stackable: bool = False
    display_order: int = 0

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.display_order, self.id)


@dataclass(frozen=True)
class FoodtruckSettings:
    slot_interval: int = 15
    max_orders_per_slot: int = 999
    allow_advance_orders: bool = True
    advance_order_days: int = 7
    allow_asap_orders: bool = False
    min_preparation_time: int = 15
    offers_stackable: bool = False
    promo_codes_stackable: bool = True
    show_promo_section: bool = True
    loyalty_enabled: bool = False


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SlotMatch:
    slot_index: int
    line_key: str
    menu_item_id: str
    menu_item_name: str
    category_id: str | None
    size_id: str | None
    unit_price: int
    supplement: int
    option_delta: int


@dataclass(frozen=True)
class BundleMatch:
    offer: OfferSnapshot
    slots: tuple[SlotMatch, ...]
    original_price: int
    bundle_price: int

    @property
    def savings(self) -> int:
        return self.original_price - self.bundle_price

    def to_dict(self) -> dict[str, Any]:
        return {
            "bundle_id": self.offer.id,
            "bundle_name": self.offer.name,
            "original_price": self.original_price,
            "bundle_price": self.bundle_price,
            "savings": self.savings,
            "matched_items": [
                {
                    "line_key": s.line_key,
                    "menu_item_id": s.menu_item_id,
                    "name": s.menu_item_name,
                    "size_id": s.size_id,
                    "supplement": s.supplement,
                }
                for s in self.slots
            ],
        }


@dataclass(frozen=True)
class BundleDetection:
    matches: tuple[BundleMatch, ...] = ()

    @property
    def best(self) -> BundleMatch | None:
        return self.matches[0] if self.matches else None

    @property
    def total_savings(self) -> int:
        return self.best.savings if self.best else 0


@dataclass(frozen=True)
class ConsumedItem:
    menu_item_id: str
    quantity: int


@dataclass
class AppliedOfferDetail:
    offer_id: str
    offer_name: str
    offer_type: str
    times_applied: int
    discount_amount: int
    items_consumed: list[ConsumedItem] = field(default_factory=list)
    free_item_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "offer_name": self.offer_name,
            "offer_type": self.offer_type,
            "times_applied": self.times_applied,
            "discount_amount": self.discount_amount,
            "items_consumed": [
                {"menu_item_id": c.menu_item_id, "quantity": c.quantity} for c in self.items_consumed
            ],
            "free_item_name": self.free_item_name,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppliedOfferDetail:
        return cls(
            offer_id=str(data["offer_id"]),
            offer_name=data.get("offer_name") or "",
            offer_type=data.get("offer_type") or "",
            times_applied=int(data.get("times_applied") or 0),
            discount_amount=int(data.get("discount_amount") or 0),
            items_consumed=[
                ConsumedItem(str(c["menu_item_id"]), int(c.get("quantity") or 0))
                for c in data.get("items_consumed") or []
            ],
            free_item_name=data.get("free_item_name"),
        )


@dataclass
class ApplicableOffer:
    offer_id: str
    offer_name: str
    offer_type: str
    is_applicable: bool
    calculated_discount: int = 0
    progress_current: int = 0
    progress_required: int = 0
    free_item_name: str | None = None
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "offer_name": self.offer_name,
            "offer_type": self.offer_type,
            "is_applicable": self.is_applicable,
            "calculated_discount": self.calculated_discount,
            "progress_current": self.progress_current,
            "progress_required": self.progress_required,
            "free_item_name": self.free_item_name,
            "description": self.description,
        }


@dataclass
class OfferResolution:
    applied_offers: list[AppliedOfferDetail] = field(default_factory=list)

    @property
    def total_discount(self) -> int:
        return sum(a.discount_amount for a in self.applied_offers)


@dataclass
class PromoCodeResult:
    is_valid: bool
    promo_code_id: str | None = None
    code: str = ""
    discount_type: str = ""
    discount_value: Decimal = Decimal(0)
    max_discount: int | None = None
    discount: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "promo_code_id": self.promo_code_id,
            "code": self.code,
            "discount_type": self.discount_type,
            "discount_value": as_number(self.discount_value),
            "max_discount": self.max_discount,
            "discount": self.discount,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PromoCodeResult:
        return cls(
            is_valid=bool(data.get("is_valid")),
            promo_code_id=data.get("promo_code_id"),
            code=data.get("code") or "",
            discount_type=data.get("discount_type") or "",
            discount_value=Decimal(str(data.get("discount_value") or 0)),
            max_discount=data.get("max_discount"),
            discount=int(data.get("discount") or 0),
            error=data.get("error"),
        )
