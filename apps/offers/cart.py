from __future__ import annotations

from typing import Any, Iterable

from .pricing import cart_key, line_price
from .types import (
    BundleInfo,
    BundleSelection,
    CartLine,
    MenuItemSnapshot,
    OfferLink,
    SelectedOption,
)


def bundle_line_key(info: BundleInfo) -> str:
    options = [o for sel in info.selections for o in sel.selected_options]
    items = "+".join(sorted(sel.menu_item.id for sel in info.selections))
    return f"{cart_key('', options, bundle_id=info.bundle_id)}:{items}"


def linked_line_key(base_key: str, link: OfferLink) -> str:
    return f"offer:{link.offer_id}:{link.role}:{base_key}"


def bundle_menu_item(info: BundleInfo) -> MenuItemSnapshot:
    """Synthetic item standing for a bundle line; it has no category so it never feeds a bundle."""
    return MenuItemSnapshot(
        id=f"bundle-{info.bundle_id}",
        category_id=None,
        name=info.bundle_name,
        price=int(info.fixed_price),
    )


class Cart:
    """Ordered cart lines for one foodtruck.

    Identical configurations share a key and merge their quantities; a quantity that drops
    to zero or below removes the line, so every stored line has ``quantity > 0``.
    """

    def __init__(self, foodtruck_id: str | None = None, lines: Iterable[CartLine] | None = None):
        self.foodtruck_id = foodtruck_id
        self.lines: list[CartLine] = list(lines or [])

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    def line(self, key: str) -> CartLine | None:
        for line in self.lines:
            if line.key == key:
                return line
        return None

    @property
    def regular_lines(self) -> list[CartLine]:
        return [line for line in self.lines if not line.is_bundle]

    @property
    def total(self) -> int:
        return sum(line_price(line) for line in self.lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def set_foodtruck(self, foodtruck_id: str) -> None:
        if self.foodtruck_id is not None and str(self.foodtruck_id) != str(foodtruck_id):
            self.lines = []
        self.foodtruck_id = str(foodtruck_id)

    def add_item(
        self,
        menu_item: MenuItemSnapshot,
        quantity: int = 1,
        selected_options: Iterable[SelectedOption] = (),
        notes: str = "",
        offer_link: OfferLink | None = None,
    ) -> CartLine:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        options = list(selected_options or ())
        key = cart_key(menu_item.id, options)
        if offer_link is not None:
            key = linked_line_key(key, offer_link)
        existing = self.line(key)
        if existing is not None and not existing.is_bundle:
            existing.quantity += quantity
            existing.notes = existing.notes or notes
            return existing
        line = CartLine(
            key=key,
            menu_item=menu_item,
            quantity=quantity,
            selected_options=options,
            notes=notes or "",
            offer_link=offer_link,
        )
        self.lines.append(line)
        return line

    def add_bundle(self, info: BundleInfo, quantity: int = 1) -> CartLine:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        if not info.selections:
            raise ValueError("bundle without selections")
        key = bundle_line_key(info)
        existing = self.line(key)
        if existing is not None:
            existing.quantity += quantity
            return existing
        line = CartLine(key=key, menu_item=bundle_menu_item(info), quantity=quantity, bundle=info)
        self.lines.append(line)
        return line

    def update_quantity(self, key: str, quantity: int) -> CartLine | None:
        if quantity <= 0:
            self.remove(key)
            return None
        line = self.line(key)
        if line is not None:
            line.quantity = quantity
        return line

    def decrement(self, key: str, by: int = 1) -> None:
        line = self.line(key)
        if line is not None:
            self.update_quantity(key, line.quantity - by)

    def remove(self, key: str) -> None:
        self.lines = [line for line in self.lines if line.key != key]

    def clear(self) -> None:
        self.lines = []

    def signature(self) -> str:
        """Stable summary of the regular lines: what bundle detection depends on."""
        parts = sorted(
            f"{line.menu_item.id}:{line.quantity}:{line.menu_item.category_id or ''}:{line.size_id or ''}"
            for line in self.regular_lines
        )
        return "|".join(parts)

    # -- session (de)serialization ---------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {"foodtruck_id": self.foodtruck_id, "items": [_line_to_dict(line) for line in self.lines]}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Cart:
        data = data or {}
        lines = [_line_from_dict(raw) for raw in data.get("items") or []]
        return cls(data.get("foodtruck_id"), [line for line in lines if line.quantity > 0])


def _item_to_dict(item: MenuItemSnapshot) -> dict[str, Any]:
    return {"id": item.id, "category_id": item.category_id, "name": item.name, "price": item.price}


def _item_from_dict(data: dict[str, Any]) -> MenuItemSnapshot:
    return MenuItemSnapshot(
        id=str(data["id"]),
        category_id=data.get("category_id"),
        name=data.get("name") or "",
        price=int(data.get("price") or 0),
    )


def _line_to_dict(line: CartLine) -> dict[str, Any]:
    out: dict[str, Any] = {
        "key": line.key,
        "menu_item": _item_to_dict(line.menu_item),
        "quantity": line.quantity,
        "notes": line.notes,
        "selected_options": [o.to_dict() for o in line.selected_options],
    }
    if line.bundle is not None:
        b = line.bundle
        out["bundle"] = {
            "bundle_id": b.bundle_id,
            "bundle_name": b.bundle_name,
            "fixed_price": b.fixed_price,
            "free_options": b.free_options,
            "selections": [
                {
                    "category_id": s.category_id,
                    "menu_item": _item_to_dict(s.menu_item),
                    "selected_options": [o.to_dict() for o in s.selected_options],
                    "supplement": s.supplement,
                }
                for s in b.selections
            ],
        }
    if line.offer_link is not None:
        out["offer_link"] = {"offer_id": line.offer_link.offer_id, "role": line.offer_link.role}
    return out


def _line_from_dict(data: dict[str, Any]) -> CartLine:
    bundle = None
    if data.get("bundle"):
        b = data["bundle"]
        bundle = BundleInfo(
            bundle_id=str(b["bundle_id"]),
            bundle_name=b.get("bundle_name") or "",
            fixed_price=int(b.get("fixed_price") or 0),
            free_options=bool(b.get("free_options")),
            selections=tuple(
                BundleSelection(
                    category_id=s.get("category_id"),
                    menu_item=_item_from_dict(s["menu_item"]),
                    selected_options=tuple(SelectedOption.from_dict(o) for o in s.get("selected_options") or []),
                    supplement=int(s.get("supplement") or 0),
                )
                for s in b.get("selections") or []
            ),
        )
    link = None
    if data.get("offer_link"):
        link = OfferLink(str(data["offer_link"]["offer_id"]), data["offer_link"]["role"])
    return CartLine(
        key=data["key"],
        menu_item=_item_from_dict(data["menu_item"]),
        quantity=int(data.get("quantity") or 0),
        selected_options=[SelectedOption.from_dict(o) for o in data.get("selected_options") or []],
        notes=data.get("notes") or "",
        bundle=bundle,
        offer_link=link,
    )
