"""Small helpers shared by the domain services."""
import math
import random
import string
from typing import Optional

from django.utils import timezone
from rest_framework.exceptions import ValidationError

from core.exceptions import InvalidTransition

MAX_PAGE_SIZE = 100


def next_number(model, field: str, prefix: str, width: int = 6) -> str:
    """``<prefix><n:0width>`` where n follows the rows already carrying ``prefix``."""
    existing = model.objects.filter(**{f'{field}__startswith': prefix}).count()
    n = existing + 1
    while True:
        candidate = f'{prefix}{n:0{width}d}'
        if not model.objects.filter(**{field: candidate}).exists():
            return candidate
        n += 1


def yearly_prefix(code: str, now=None) -> str:
    now = now or timezone.now()
    return f'{code}-{now.year}-'


def random_suffix(length: int = 4) -> str:
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


def parse_page(params, default_size: int = 20) -> tuple[int, int]:
    try:
        page = max(int(params.get('page') or 1), 1)
        size = int(params.get('pageSize') or params.get('limit') or default_size)
    except (TypeError, ValueError):
        raise ValidationError({'detail': 'Invalid pagination parameters'})
    return page, min(max(size, 1), MAX_PAGE_SIZE)


def paginate(qs, params, default_size: int = 20):
    """Slice ``qs`` and return ``(rows, pagination)``."""
    page, size = parse_page(params, default_size)
    total = qs.count()
    start = (page - 1) * size
    rows = list(qs[start:start + size])
    return rows, {
        'page': page,
        'pageSize': size,
        'total': total,
        'pages': math.ceil(total / size) if total else 0,
    }


def check_transition(allowed: dict, current: str, target: str, what: str = 'status') -> None:
    if current == target:
        return
    if target not in allowed.get(current, ()):
        raise InvalidTransition(f'Cannot change {what} from {current} to {target}')


def percent(part, whole, digits: int = 1) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, digits)


def iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def get_or_404(model, pk, *, select_related=(), message: Optional[str] = None):
    from rest_framework.exceptions import NotFound
    try:
        return model.objects.select_related(*select_related).get(pk=pk)
    except (model.DoesNotExist, ValueError, TypeError):
        raise NotFound(message or f'{model.__name__} not found')
