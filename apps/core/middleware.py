# apps/core/middleware.py


class TenantHeadersMiddleware:
    """
    Exposes the tenant of the authenticated user on every response

    Board level isolation is enforced by the views themselves
    (requires_board_access), this only tags responses.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if hasattr(request, 'user') and request.user.is_authenticated:
            response['X-Tenant'] = request.user.company
            response['X-User-Role'] = request.user.role

        return response
