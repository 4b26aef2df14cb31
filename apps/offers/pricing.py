from __future__ import annotations

from typing import Iterable

from django.core.exceptions import ValidationError

from .types import (
    BundleInfo,
    CartLine,
    CatalogOption,
    MenuItemSnapshot,
    OptionGroup,
    PriceKey,
    SelectedOption,
)


def unit_price(menu_item: MenuItemSnapshot, selected_options: Iterable[SelectedOption]) -> int:
    """Unit price of an item with its options.

    A size option carries the absolute price of that size and replaces the item's base
    price; every other option is an additive delta.
    """
    base = int(menu_item.price)
    extras = 0
    for opt in selected_options or ():
        if opt.is_size_option:
            base = int(opt.price_modifier)
        else:
            extras += int(opt.price_modifier)
    return max(0, base + extras)


def bundle_unit_price(info: BundleInfo) -> int:
    price = int(info.fixed_price)
    for sel in info.selections:
        price += int(sel.supplement)
        if not info.free_options:
            price += sum(int(o.price_modifier) for o in sel.selected_options if not o.is_size_option)
    return max(0, price)


def bundle_savings(line: CartLine) -> int:
    """What a bundle line saves over buying its components one by one."""
    if line.bundle is None:
        return 0
    separately = sum(unit_price(sel.menu_item, sel.selected_options) for sel in line.bundle.selections)
    return max(0, separately - bundle_unit_price(line.bundle)) * int(line.quantity)


def line_unit_price(line: CartLine) -> int:
    if line.bundle is not None:
        return bundle_unit_price(line.bundle)
    return unit_price(line.menu_item, line.selected_options)


def line_price(line: CartLine) -> int:
    return line_unit_price(line) * int(line.quantity)


def subtotal(lines: Iterable[CartLine]) -> int:
    return sum(line_price(line) for line in lines)


def cart_key(menu_item_id: str, selected_options: Iterable[SelectedOption] = (), bundle_id: str | None = None) -> str:
    option_ids = sorted(str(o.option_id) for o in selected_options or ())
    joined = "-".join(option_ids)
    if bundle_id:
        return f"bundle:{bundle_id}:{joined}"
    if not option_ids:
        return str(menu_item_id)
    return f"{menu_item_id}:{joined}"


# ---------------------------------------------------------------------------
# Option price resolution
# ---------------------------------------------------------------------------


def resolve_option_price(
    menu_item: MenuItemSnapshot,
    option: CatalogOption,
    group: OptionGroup,
    size_id: str | None = None,
) -> int:
    """Price of ``option`` for ``menu_item``, most specific override first.

    1. item override for this option at the selected size
    2. item override for this option
    3. catalog default: absolute (base + modifier) for the size group, delta otherwise
    """
    if not group.is_size and size_id is not None:
        sized = menu_item.option_prices.get(PriceKey(option.id, size_id))
        if sized is not None:
            return int(sized)
    flat = menu_item.option_prices.get(PriceKey(option.id))
    if flat is not None:
        return int(flat)
    if group.is_size:
        return int(menu_item.price) + int(option.price_modifier)
    return int(option.price_modifier)


def select_option(
    menu_item: MenuItemSnapshot,
    group: OptionGroup,
    option: CatalogOption,
    size_id: str | None = None,
) -> SelectedOption:
    return SelectedOption(
        option_id=option.id,
        option_group_id=group.id,
        name=option.name,
        group_name=group.name,
        price_modifier=resolve_option_price(menu_item, option, group, size_id),
        is_size_option=group.is_size,
    )


def visible_options(menu_item: MenuItemSnapshot, group: OptionGroup) -> list[CatalogOption]:
    return [o for o in group.options if o.is_available and o.id not in menu_item.disabled_options]


def default_size(menu_item: MenuItemSnapshot, groups: Iterable[OptionGroup]) -> CatalogOption | None:
    for group in groups:
        if not group.is_size:
            continue
        options = visible_options(menu_item, group)
        for opt in options:
            if opt.is_default:
                return opt
        return options[0] if options else None
    return None


def default_selection(menu_item: MenuItemSnapshot, groups: Iterable[OptionGroup]) -> list[SelectedOption]:
    """Options pre-selected when an item is opened: the defaults that are still offered."""
    groups = sorted(groups, key=lambda g: g.display_order)
    chosen: list[tuple[OptionGroup, CatalogOption]] = []
    for group in groups:
        for opt in visible_options(menu_item, group):
            if opt.is_default:
                chosen.append((group, opt))
                if not group.is_multiple:
                    break
    size_id = next((o.id for g, o in chosen if g.is_size), None)
    return [select_option(menu_item, g, o, size_id) for g, o in chosen]


def build_selection(
    menu_item: MenuItemSnapshot,
    groups: Iterable[OptionGroup],
    option_ids: Iterable[str],
) -> list[SelectedOption]:
    """Turn raw option ids picked by a customer into priced ``SelectedOption`` values.

    Raises ``ValidationError`` for unknown, unavailable or disabled options, for more than
    one pick in a single-choice group and for an empty required group.
    """
    groups = sorted(groups, key=lambda g: g.display_order)
    wanted = [str(x) for x in option_ids or () if str(x)]
    wanted = list(dict.fromkeys(wanted))

    by_option: dict[str, tuple[OptionGroup, CatalogOption]] = {}
    for group in groups:
        for opt in group.options:
            by_option[opt.id] = (group, opt)

    picked: list[tuple[OptionGroup, CatalogOption]] = []
    for option_id in wanted:
        found = by_option.get(option_id)
        if found is None:
            raise ValidationError("Option inconnue.")
        group, opt = found
        if not opt.is_available or opt.id in menu_item.disabled_options:
            raise ValidationError(f"L'option {opt.name} n'est pas disponible.")
        picked.append(found)

    validate_selection(groups, [g.id for g, _ in picked])

    size_id = next((o.id for g, o in picked if g.is_size), None)
    return [select_option(menu_item, g, o, size_id) for g, o in picked]


def validate_selection(groups: Iterable[OptionGroup], picked_group_ids: list[str]) -> None:
    for group in groups:
        n = picked_group_ids.count(group.id)
        if group.is_required and n < 1:
            raise ValidationError(f"Choix obligatoire : {group.name}.")
        if not group.is_multiple and n > 1:
            raise ValidationError(f"Un seul choix possible : {group.name}.")
