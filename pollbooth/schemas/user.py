from marshmallow import Schema, fields

class UserSchema(Schema):
    id = fields.UUID()
    name = fields.Str()
    email = fields.Email()
    is_active = fields.Bool()
    is_email_verified = fields.Bool()
    max_booths = fields.Int()
    created_at = fields.DateTime()
