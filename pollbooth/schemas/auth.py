from marshmallow import Schema, fields, validate

class RegisterSchema(Schema):
    name = fields.Str(
        required=True,
        validate=[
            validate.Length(min=2, max=50),
            validate.Regexp(r"^[a-zA-Z\s\-'\.]+$", error="Name contains invalid characters"),
        ],
    )
    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.Str(required=True, validate=validate.Length(min=8, max=128))

class LoginSchema(Schema):
    """Schema for login request"""
    email = fields.Email(required=True)
    password = fields.Str(
        required=True,
        validate=validate.Length(min=8, max=128),
    )
