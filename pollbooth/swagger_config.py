def swagger_template(app=None):
    title = "PollBooth API"
    version = "1.0.0"

    if app:
        title = app.config.get("SWAGGER_TITLE", title)
        version = app.config.get("SWAGGER_VERSION", version)

    return {
        "swagger": "2.0",
        "info": {
            "title": title,
            "version": version,
            "description": "Booths (polls) with invite codes, one vote per member, and live results.",
        },
        "securityDefinitions": {
            "BearerAuth": {
                "type": "apiKey",
                "name": "Authorization",
                "in": "header",
                "description": "JWT Authorization header: Bearer <token>"
            }
        },
        "definitions": {
            "ErrorResponse": {
                "type": "object",
                "properties": {
                    "success": {"type": "boolean", "example": False},
                    "error": {"type": "string", "example": "This booth is full"},
                    "code": {"type": "string", "example": "BOOTH_FULL"},
                    "details": {"type": "object"},
                    "request_id": {"type": "string"}
                }
            }
        }
    }
