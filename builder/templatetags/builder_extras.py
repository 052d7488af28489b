from django import template

from ..sample_data import parse_timestamp

register = template.Library()


@register.filter
def timestamp(value, fmt="%d/%m/%Y %H:%M"):
    """Render an ISO timestamp from Supabase or the sample data."""
    moment = parse_timestamp(value)
    if moment is None:
        return value or "-"
    return moment.strftime(fmt)


@register.filter
def seconds(value):
    try:
        return f"{float(value):.1f}s"
    except (TypeError, ValueError):
        return "-"
