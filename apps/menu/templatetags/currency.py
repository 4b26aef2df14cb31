from django import template

register = template.Library()


def format_eur(cents) -> str:
    """Integer cents as a French euro amount (1234 -> "12,34 €")."""
    euros = int(cents) / 100.0
    s = f"{euros:,.2f}"
    s = s.replace(",", " ").replace(".", ",")
    return f"{s} €"


@register.filter
def eur_cents(value):
    try:
        return format_eur(int(value))
    except (TypeError, ValueError):
        return value
