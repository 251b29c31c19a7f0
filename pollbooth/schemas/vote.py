from marshmallow import Schema, fields

class VoteSubmitSchema(Schema):
    # Range/type checks belong to the voting engine so they run after the window and membership checks
    candidate_index = fields.Raw(required=True, allow_none=False)

class VoteStatusSchema(Schema):
    has_voted = fields.Bool(required=True)
    candidate_index = fields.Int(allow_none=True)
    candidate_name = fields.Str(allow_none=True)
    voted_at = fields.DateTime(allow_none=True)
