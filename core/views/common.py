from django.http import HttpResponse
from rest_framework.response import Response

from core.services.common import paginate


def ok(data=None, status=200, **extra):
    payload = {'ok': True, 'data': data}
    payload.update(extra)
    return Response(payload, status=status)


def paged(qs, params, formatter, **extra):
    rows, pagination = paginate(qs, params)
    return ok([formatter(r) for r in rows], pagination=pagination, **extra)


def validated(serializer_class, data, *, partial=False):
    s = serializer_class(data=data, partial=partial)
    s.is_valid(raise_exception=True)
    return dict(s.validated_data)


def csv_response(content: str, filename: str) -> HttpResponse:
    resp = HttpResponse(content, content_type='text/csv')
    resp['Content-Disposition'] = f'attachment; filename="{filename}"'
    return resp
