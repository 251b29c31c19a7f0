from marshmallow import Schema, fields

class CandidateResultSchema(Schema):
    index = fields.Int(required=True)
    name = fields.Str(required=True)
    description = fields.Str(required=True)
    vote_count = fields.Int(required=True)
    percentage = fields.Float(required=True)

class StatisticsSchema(Schema):
    total_members = fields.Int(required=True)
    total_voted = fields.Int(required=True)
    voting_percentage = fields.Float(required=True)
    total_votes = fields.Int(required=True)
    candidates_count = fields.Int(required=True)

class VotingStatusSchema(Schema):
    allowed = fields.Bool(required=True)
    reason = fields.Str(allow_none=True)

class BoothResultsSchema(Schema):
    booth_id = fields.UUID(required=True)
    booth_name = fields.Str(required=True)
    status = fields.Str(required=True)
    total_votes = fields.Int(required=True)
    statistics = fields.Nested(StatisticsSchema, required=True)
    candidates = fields.List(fields.Nested(CandidateResultSchema), required=True)
    voting_allowed = fields.Nested(VotingStatusSchema, required=True)
    user_has_voted = fields.Bool(required=True)
    is_creator = fields.Bool(required=True)
