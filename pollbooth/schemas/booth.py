import re
from datetime import timezone
from marshmallow import (
    Schema,
    fields,
    validate,
    validates,
    validates_schema,
    pre_load,
    post_load,
    ValidationError,
)

from ..models.booth import Booth

_DOMAIN_RE = re.compile(
    r"^(?=.{1,253}$)(?!-)[a-z0-9-]{1,63}(?<!-)(\.(?!-)[a-z0-9-]{1,63}(?<!-))*\.[a-z]{2,63}$"
)


def normalize_domain(domain: str) -> str:
    return domain.strip().lower().lstrip("@")


def _naive_utc(value):
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CandidateCreateSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    description = fields.Str(required=False, load_default="", validate=validate.Length(max=200))

    @pre_load
    def accept_plain_names(self, data, **kwargs):
        if isinstance(data, str):
            return {"name": data.strip()}
        if isinstance(data, dict):
            data = dict(data)
            for key in ("name", "description"):
                if isinstance(data.get(key), str):
                    data[key] = data[key].strip()
            if data.get("description") is None:
                data.pop("description", None)
        return data


class BoothSettingsSchema(Schema):
    results_visible_to_voters = fields.Bool()
    anonymous_voting = fields.Bool()
    allow_vote_change = fields.Bool()
    show_live_results = fields.Bool()
    allow_multiple_votes = fields.Bool()

    require_email_verification = fields.Bool()
    require_approval = fields.Bool()
    public_booth = fields.Bool()
    send_notifications = fields.Bool()

    voting_start_time = fields.DateTime(allow_none=True)
    voting_end_time = fields.DateTime(allow_none=True)

    allowed_email_domains = fields.List(fields.Str(), validate=validate.Length(max=50))

    @pre_load
    def split_domain_string(self, data, **kwargs):
        # Forms send "a.edu, @b.org"; the API sends a list
        domains = data.get("allowed_email_domains") if isinstance(data, dict) else None
        if isinstance(domains, str):
            data = dict(data)
            data["allowed_email_domains"] = [d for d in domains.split(",") if d.strip()]
        return data

    @validates("allowed_email_domains")
    def validate_domains(self, value, **kwargs):
        invalid = [d for d in value if not _DOMAIN_RE.match(normalize_domain(d))]
        if invalid:
            raise ValidationError(f"Invalid email domains: {', '.join(invalid)}")

    @validates_schema
    def end_after_start(self, data, **kwargs):
        start = _naive_utc(data.get("voting_start_time"))
        end = _naive_utc(data.get("voting_end_time"))
        if start and end and start >= end:
            raise ValidationError("Voting end time must be after start time", "voting_end_time")

    @post_load
    def normalize(self, data, **kwargs):
        for key in ("voting_start_time", "voting_end_time"):
            if key in data:
                data[key] = _naive_utc(data[key])
        if "allowed_email_domains" in data:
            seen = []
            for domain in data["allowed_email_domains"]:
                clean = normalize_domain(domain)
                if clean not in seen:
                    seen.append(clean)
            data["allowed_email_domains"] = seen
        return data


class BoothCreateSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=3, max=100))
    description = fields.Str(required=True, validate=validate.Length(min=10, max=500))
    candidates = fields.List(fields.Nested(CandidateCreateSchema), required=True, validate=validate.Length(min=2))
    max_members = fields.Int(required=False, validate=validate.Range(min=Booth.MIN_MEMBERS, max=Booth.MAX_MEMBERS))
    settings = fields.Nested(BoothSettingsSchema, required=False, load_default=dict)

    @pre_load
    def strip_text(self, data, **kwargs):
        data = dict(data or {})
        for key in ("name", "description"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        if isinstance(data.get("candidates"), list):
            # Blank form rows are dropped rather than rejected
            data["candidates"] = [
                c for c in data["candidates"]
                if not (isinstance(c, str) and not c.strip())
                and not (isinstance(c, dict) and not str(c.get("name") or "").strip())
            ]
        return data

    @validates_schema
    def unique_candidate_names(self, data, **kwargs):
        names = [c["name"].lower() for c in data.get("candidates", [])]
        if len(set(names)) != len(names):
            raise ValidationError("Candidate names must be unique", "candidates")


class BoothUpdateSchema(Schema):
    name = fields.Str(required=False, validate=validate.Length(min=3, max=100))
    description = fields.Str(required=False, validate=validate.Length(min=10, max=500))
    max_members = fields.Int(required=False, validate=validate.Range(min=Booth.MIN_MEMBERS, max=Booth.MAX_MEMBERS))

    @pre_load
    def strip_text(self, data, **kwargs):
        data = dict(data or {})
        for key in ("name", "description"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        return data

    @validates_schema
    def at_least_one_field(self, data, **kwargs):
        if not data:
            raise ValidationError("At least one field must be provided")


class BoothStatusSchema(Schema):
    status = fields.Str(required=True, validate=validate.OneOf(Booth.VALID_STATUSES))


class JoinBoothSchema(Schema):
    invite_code = fields.Str(required=True, validate=validate.Length(min=1, max=16))


class CandidateReadSchema(Schema):
    index = fields.Int(attribute="position")
    name = fields.Str()
    description = fields.Str()
    vote_count = fields.Int()


class MemberReadSchema(Schema):
    user_id = fields.UUID()
    name = fields.Function(lambda m: m.user.name if m.user else None)
    joined_at = fields.DateTime()
    has_voted = fields.Bool()


class BoothSettingsReadSchema(BoothSettingsSchema):
    pass


class BoothSummarySchema(Schema):
    id = fields.UUID()
    name = fields.Str()
    description = fields.Str()
    status = fields.Str()
    creator_id = fields.UUID()
    member_count = fields.Int()
    max_members = fields.Int()
    total_votes = fields.Int()
    candidates_count = fields.Function(lambda b: len(b.candidates))
    created_at = fields.DateTime()


class BoothReadSchema(BoothSummarySchema):
    settings = fields.Nested(BoothSettingsReadSchema)
    candidates = fields.List(fields.Nested(CandidateReadSchema))
    updated_at = fields.DateTime()


class BoothCreatorReadSchema(BoothReadSchema):
    invite_code = fields.Str()
    members = fields.List(fields.Nested(MemberReadSchema))
