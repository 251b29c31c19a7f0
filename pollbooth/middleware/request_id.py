import re
import uuid
from flask import g, request

# Client-supplied ids end up in logs and response headers
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

def init_request_id(app):
    @app.before_request
    def _assign_request_id():
        rid = request.headers.get("X-Request-Id", "")
        g.request_id = rid if _REQUEST_ID_RE.match(rid) else str(uuid.uuid4())

    @app.after_request
    def _add_request_id_header(response):
        if hasattr(g, "request_id"):
            response.headers["X-Request-Id"] = g.request_id
        return response
