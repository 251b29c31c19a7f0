import pytest

from pollbooth.exceptions import (
    BoothFull,
    BoothNotAcceptingMembers,
    EmailDomainNotAllowed,
    EmailNotVerified,
    InviteCodeNotFound,
    MissingEmail,
)
from pollbooth.extensions import mail
from pollbooth.models import BoothMember, User
from pollbooth.services import booths as booth_service
from pollbooth.services import membership


def test_new_booth_has_no_members(make_booth, creator):
    booth = make_booth()
    assert booth.member_count == 0
    assert not booth.is_member(creator.id)


def test_join_adds_member(make_booth, make_user):
    booth = make_booth()
    user = make_user()

    result = membership.join_booth(booth, user)

    assert result.created is True
    assert booth.is_member(user.id)
    assert booth.member_count == 1


def test_join_is_idempotent(make_booth, make_user):
    booth = make_booth()
    user = make_user()

    membership.join_booth(booth, user)
    again = membership.join_booth(booth, user)

    assert again.created is False
    assert booth.member_count == 1
    assert BoothMember.query.filter_by(booth_id=booth.id, user_id=user.id).count() == 1


def test_capacity_admits_exactly_max_members(make_booth, make_user, join):
    booth = make_booth(max_members=2)
    first, second, third = make_user(), make_user(), make_user()

    join(booth, first, second)
    with pytest.raises(BoothFull):
        membership.join_booth(booth, third)

    assert booth.member_count == 2
    assert len(booth.members) == 2
    assert not booth.is_member(third.id)


def test_existing_member_can_rejoin_full_booth(make_booth, make_user, join):
    booth = make_booth(max_members=2)
    first, second = make_user(), make_user()
    join(booth, first, second)

    assert membership.join_booth(booth, first).created is False


def test_email_domain_restriction(make_booth, make_user):
    booth = make_booth(allowed_email_domains=["org.edu"])
    student = make_user(email="alice@org.edu")
    outsider = make_user(email="bob@gmail.com")

    membership.join_booth(booth, student)
    with pytest.raises(EmailDomainNotAllowed) as exc:
        membership.join_booth(booth, outsider)

    assert exc.value.status_code == 403
    assert "@org.edu" in exc.value.message
    assert not booth.is_member(outsider.id)


def test_email_domain_match_ignores_case(make_booth, make_user):
    booth = make_booth(allowed_email_domains=["@Org.EDU"])
    assert booth.allowed_email_domains == ["org.edu"]

    user = make_user(email="Carol@ORG.edu")
    assert membership.join_booth(booth, user).created is True


def test_email_domain_is_matched_exactly(make_booth, make_user):
    booth = make_booth(allowed_email_domains=["org.edu"])
    with pytest.raises(EmailDomainNotAllowed):
        membership.join_booth(booth, make_user(email="dave@mail.org.edu"))


def test_email_verification_required(make_booth, make_user):
    booth = make_booth(require_email_verification=True)

    with pytest.raises(EmailNotVerified):
        membership.join_booth(booth, make_user(verified=False))
    assert membership.join_booth(booth, make_user(verified=True)).created is True


def test_closed_booth_rejects_joins(make_booth, make_user, creator):
    booth = make_booth()
    booth_service.toggle_status(booth, creator.id)

    with pytest.raises(BoothNotAcceptingMembers):
        membership.join_booth(booth, make_user())


def test_unknown_invite_code(db):
    with pytest.raises(InviteCodeNotFound) as exc:
        membership.find_booth_by_invite_code("QQQQQQ")
    assert exc.value.status_code == 404


def test_invite_lookup_is_case_insensitive(make_booth):
    booth = make_booth()
    assert membership.find_booth_by_invite_code(booth.invite_code.lower()).id == booth.id


def test_preview_invite(make_booth, make_user, creator):
    booth = make_booth()
    user = make_user()

    preview = membership.preview_invite(booth.invite_code, user.id)
    assert preview["is_member"] is False
    assert preview["is_creator"] is False
    assert preview["booth"]["name"] == booth.name

    assert membership.preview_invite(booth.invite_code, creator.id)["is_creator"] is True


def test_creator_is_notified_on_join(make_booth, make_user, creator):
    booth = make_booth(send_notifications=True)

    with mail.record_messages() as outbox:
        membership.join_booth(booth, make_user(name="New Member"))

    assert len(outbox) == 1
    assert outbox[0].recipients == [creator.email]
    assert "New Member" in outbox[0].body


def test_mail_failure_does_not_fail_join(monkeypatch, make_booth, make_user):
    booth = make_booth(send_notifications=True)

    def broken(**kwargs):
        raise ConnectionError("smtp down")

    monkeypatch.setattr(membership, "send_member_joined_email", broken)
    user = make_user()

    assert membership.join_booth(booth, user).created is True
    assert booth.is_member(user.id)


def test_no_notification_when_disabled(make_booth, make_user):
    booth = make_booth()
    with mail.record_messages() as outbox:
        membership.join_booth(booth, make_user())
    assert outbox == []


def test_domain_restricted_booth_requires_an_email(db, make_booth):
    booth = make_booth(allowed_email_domains=["org.edu"])
    user = User(name="No Email", email="")
    user.set_password("Password123")
    db.session.add(user)
    db.session.commit()

    with pytest.raises(MissingEmail) as exc:
        membership.join_booth(booth, user)
    assert exc.value.status_code == 400
    assert booth.member_count == 0


def test_failed_join_leaves_no_reserved_seat(monkeypatch, make_booth, make_user):
    booth = make_booth(max_members=2)
    user = make_user()

    def broken_audit(**kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(membership, "audit_log", broken_audit)
    with pytest.raises(RuntimeError):
        membership.join_booth(booth, user)

    assert booth.member_count == 0
    assert not booth.is_member(user.id)
    assert BoothMember.query.filter_by(booth_id=booth.id).count() == 0
