from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from django.core.exceptions import ValidationError

from .cart import Cart
from .pricing import build_selection, unit_price, visible_options
from .types import (
    BUY_X_GET_Y,
    REWARD_FREE,
    ROLE_REWARD,
    ROLE_TRIGGER,
    AppliedOfferDetail,
    BuyXGetYConfig,
    CartLine,
    Catalog,
    CatalogOption,
    ConsumedItem,
    Eligibility,
    MenuItemSnapshot,
    OfferLink,
    OfferSnapshot,
    SelectedOption,
)


@dataclass(frozen=True)
class EligibleItem:
    menu_item: MenuItemSnapshot
    sizes: tuple[CatalogOption, ...] = ()
    default_size: CatalogOption | None = None


@dataclass(frozen=True)
class PickedItem:
    menu_item: MenuItemSnapshot
    selected_options: tuple[SelectedOption, ...]

    @property
    def price(self) -> int:
        return unit_price(self.menu_item, self.selected_options)


@dataclass(frozen=True)
class BuyXGetYSelection:
    offer: OfferSnapshot
    triggers: tuple[PickedItem, ...]
    rewards: tuple[PickedItem, ...]

    @property
    def reward_total(self) -> int:
        return sum(p.price for p in self.rewards)

    @property
    def discount(self) -> int:
        return reward_discount(self.offer.config, self.reward_total)


def reward_discount(config: BuyXGetYConfig, reward_total: int) -> int:
    """Free rewards cost nothing; a fixed reward never takes off more than the rewards cost."""
    if config.reward_type == REWARD_FREE:
        return reward_total
    return min(config.reward_value * config.reward_quantity, reward_total)


def eligible_items(rule: Eligibility, catalog: Catalog) -> list[EligibleItem]:
    out = []
    for item in catalog.items.values():
        if not item.orderable or item.category_id not in rule.category_ids or item.id in rule.excluded_items:
            continue
        size_group = catalog.size_group(item.category_id)
        if size_group is None:
            out.append(EligibleItem(item))
            continue
        excluded = rule.excluded_sizes.get(item.id, frozenset())
        sizes = tuple(o for o in visible_options(item, size_group) if o.id not in excluded)
        if not sizes:
            continue
        default = next((o for o in sizes if o.is_default), sizes[0])
        out.append(EligibleItem(item, sizes, default))
    return out


def _pick(rule: Eligibility, catalog: Catalog, menu_item_id: str, option_ids: Sequence[str]) -> PickedItem:
    eligible = {e.menu_item.id: e for e in eligible_items(rule, catalog)}
    entry = eligible.get(str(menu_item_id))
    if entry is None:
        raise ValidationError("Cet article ne fait pas partie de l'offre.")
    ids = [str(x) for x in option_ids or ()]
    if entry.default_size is not None and not any(s.id in ids for s in entry.sizes):
        size_group = catalog.size_group(entry.menu_item.category_id)
        if any(size_group.option(x) for x in ids):
            raise ValidationError("Cette taille ne fait pas partie de l'offre.")
        ids.append(entry.default_size.id)
    options = build_selection(entry.menu_item, catalog.groups_for(entry.menu_item.category_id), ids)
    return PickedItem(entry.menu_item, tuple(options))


def build_offer_selection(
    offer: OfferSnapshot,
    catalog: Catalog,
    trigger_picks: Sequence[tuple[str, Sequence[str]]],
    reward_picks: Sequence[tuple[str, Sequence[str]]],
) -> BuyXGetYSelection:
    """Validate a guided buy-X-get-Y build; each pick is one unit ``(menu_item_id, option_ids)``."""
    config = offer.config
    if not isinstance(config, BuyXGetYConfig):
        raise ValidationError("Offre invalide.")
    if len(trigger_picks) != config.trigger_quantity:
        raise ValidationError(f"Choisissez {config.trigger_quantity} article(s) achetés.")
    if len(reward_picks) != config.reward_quantity:
        raise ValidationError(f"Choisissez {config.reward_quantity} article(s) offerts.")
    triggers = tuple(_pick(config.trigger, catalog, i, o) for i, o in trigger_picks)
    rewards = tuple(_pick(config.reward, catalog, i, o) for i, o in reward_picks)
    return BuyXGetYSelection(offer, triggers, rewards)


def add_selection_to_cart(cart: Cart, selection: BuyXGetYSelection) -> list[CartLine]:
    lines = []
    for role, picks in ((ROLE_TRIGGER, selection.triggers), (ROLE_REWARD, selection.rewards)):
        link = OfferLink(selection.offer.id, role)
        for p in picks:
            lines.append(cart.add_item(p.menu_item, 1, p.selected_options, offer_link=link))
    return lines


def _linked(offer: OfferSnapshot, lines: Iterable[CartLine], role: str, rule: Eligibility) -> list[CartLine]:
    out = []
    for line in lines:
        link = line.offer_link
        if line.is_bundle or link is None or link.offer_id != offer.id or link.role != role:
            continue
        if rule.accepts(line.menu_item.category_id, line.menu_item.id, line.size_id):
            out.append(line)
    return out


def count_trigger_units(offer: OfferSnapshot, lines: Iterable[CartLine]) -> int:
    rule = offer.config.trigger
    return sum(
        line.quantity
        for line in lines
        if not line.is_bundle and rule.accepts(line.menu_item.category_id, line.menu_item.id, line.size_id)
    )


def resolve_linked_lines(offer: OfferSnapshot, lines: Sequence[CartLine]) -> AppliedOfferDetail | None:
    """Discount earned by the cart lines tagged with this offer.

    Complete applications are counted from the tagged trigger and reward units; rewards are
    used cheapest first. Lines whose item stopped qualifying are ignored.
    """
    config: BuyXGetYConfig = offer.config
    triggers = _linked(offer, lines, ROLE_TRIGGER, config.trigger)
    rewards = _linked(offer, lines, ROLE_REWARD, config.reward)

    trigger_units = [line for line in triggers for _ in range(line.quantity)]
    reward_units = sorted(
        (line for line in rewards for _ in range(line.quantity)),
        key=lambda line: (unit_price(line.menu_item, line.selected_options), line.key),
    )
    times = min(len(trigger_units) // config.trigger_quantity, len(reward_units) // config.reward_quantity)
    if times <= 0:
        return None

    used_rewards = reward_units[: times * config.reward_quantity]
    discount = 0
    for i in range(times):
        chunk = used_rewards[i * config.reward_quantity:(i + 1) * config.reward_quantity]
        discount += reward_discount(config, sum(unit_price(l.menu_item, l.selected_options) for l in chunk))

    consumed: dict[str, int] = {}
    for line in trigger_units[: times * config.trigger_quantity] + used_rewards:
        consumed[line.menu_item.id] = consumed.get(line.menu_item.id, 0) + 1

    free_name = used_rewards[0].menu_item.name if config.reward_type == REWARD_FREE else None
    return AppliedOfferDetail(
        offer_id=offer.id,
        offer_name=offer.name,
        offer_type=BUY_X_GET_Y,
        times_applied=times,
        discount_amount=discount,
        items_consumed=[ConsumedItem(k, v) for k, v in consumed.items()],
        free_item_name=free_name,
    )
