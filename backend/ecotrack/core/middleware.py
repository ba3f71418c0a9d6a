from collections.abc import Sequence

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse


class MaxBodySizeMiddleware(BaseHTTPMiddleware):
    """Rejette (413) les requêtes dont le Content-Length dépasse `max_body_size`."""

    def __init__(self, app, max_body_size: int, exclude_paths: Sequence[str] = ()):
        super().__init__(app)
        self.max_body_size = max_body_size
        self.exclude_paths = exclude_paths

    async def dispatch(self, request, call_next):
        for p in self.exclude_paths:
            if request.url.path.startswith(p):
                return await call_next(request)

        cl = request.headers.get("content-length")
        if cl is not None:
            try:
                if int(cl) > self.max_body_size:
                    return JSONResponse(
                        {
                            "success": False,
                            "error": {
                                "code": "PAYLOAD_TOO_LARGE",
                                "message": f"Request body too large (>{self.max_body_size // 1024} KB).",
                            },
                        },
                        status_code=413,
                    )
            except ValueError:
                # Content-Length invalide → on laisse passer, la validation du corps tranchera
                pass
        return await call_next(request)
