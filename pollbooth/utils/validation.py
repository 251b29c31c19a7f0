from flask import abort
from marshmallow import ValidationError as SchemaValidationError

from ..exceptions import ValidationError

def validate_or_abort(schema, payload):
    try:
        return schema.load(payload)
    except SchemaValidationError as err:
        abort(
            400,
            description={
                "code": "VALIDATION_ERROR",
                "message": "Validation error",
                "errors": err.messages,
            },
        )

def load_or_raise(schema, payload, partial=False):
    """Service-side variant: raise the domain ValidationError instead of aborting the request."""
    try:
        return schema.load(payload or {}, partial=partial)
    except SchemaValidationError as err:
        raise ValidationError("Validation error", details=err.messages)
