from django.utils.deprecation import MiddlewareMixin


def _header_int(request, header):
    raw = request.headers.get(header)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class CurrentCompanyMiddleware(MiddlewareMixin):
    # Run on every request and attach the tenant context.
    # Identity is established upstream (gateway); this layer trusts
    # X-Company-Id / X-User-Id and does no authentication of its own.
    def process_request(self, request):
        request.company_id = _header_int(request, "X-Company-Id")
        request.user_id = _header_int(request, "X-User-Id")
