import pytest

from auth import ANONYMOUS, issue_token, owner_from_authorization, resolve_owner


def test_token_round_trip():
    token = issue_token("user-42")
    owner = resolve_owner(token)
    assert owner.is_authenticated
    assert owner.user_id == "user-42"


def test_tampered_token_is_anonymous():
    token = issue_token("user-42")
    assert resolve_owner(token[:-2] + "xx") == ANONYMOUS
    assert resolve_owner("not-a-token") == ANONYMOUS
    assert resolve_owner(None) == ANONYMOUS


def test_authorization_header_requires_bearer_scheme():
    token = issue_token("user-42")
    assert owner_from_authorization(f"Bearer {token}").user_id == "user-42"
    assert owner_from_authorization(f"bearer {token}").user_id == "user-42"
    assert owner_from_authorization(f"Basic {token}") == ANONYMOUS
    assert owner_from_authorization("") == ANONYMOUS


def test_issue_token_requires_user():
    with pytest.raises(ValueError):
        issue_token("")
