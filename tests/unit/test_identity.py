"""Identity normalisation, request identity resolution and Google verification."""

import asyncio

import httpx
import pytest
from starlette.requests import Request

from jubilee_api.app.core.config import settings
from jubilee_api.app.core.exceptions import UnauthorizedError, UpstreamError
from jubilee_api.app.core.security import create_access_token, create_user_token
from jubilee_api.app.services.identity_service import (
    IDENTITY_MISSING_MESSAGE,
    GoogleTokenVerifier,
    ResolvedIdentity,
    UnresolvedIdentity,
    normalize_identity,
    resolve_request_identity,
    resolve_subject_id,
)


def make_request(headers=None, query_string=b""):
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw, "query_string": query_string})


def test_normalize_uses_first_alias_and_lowercases_email():
    identity = normalize_identity(
        {"uid": " firebase-1 ", "mail": "Person@Example.COM", "displayName": "Person", "photoURL": "http://p"}
    )
    assert identity == ResolvedIdentity(sub="firebase-1", email="person@example.com", name="Person", picture="http://p")
    assert identity.resolved is True


def test_normalize_prefers_earlier_alias_and_skips_blank_values():
    identity = normalize_identity({"sub": "  ", "uid": "u-2", "id": "ignored", "email": "x@y.io"})
    assert identity.sub == "u-2"


def test_normalize_without_email_is_unresolved():
    identity = normalize_identity({"googleId": "g-1", "name": "No Mail"})
    assert isinstance(identity, UnresolvedIdentity)
    assert identity.resolved is False
    assert identity.missing == ("email",)


def test_normalize_empty_payload_reports_both_fields():
    assert normalize_identity(None).missing == ("sub", "email")


def test_normalize_is_idempotent():
    first = normalize_identity({"user_id": 42, "user_email": "A@B.CD", "fullName": "Full"})
    assert first.sub == "42"
    assert normalize_identity(first.claims()) == first


def test_resolve_prefers_valid_user_token_over_headers():
    token = create_user_token({"sub": "token-sub", "email": "token@x.com"})
    request = make_request({"Authorization": f"Bearer {token}", "x-oauth-uid": "header-sub", "x-oauth-email": "h@x.com"})
    assert resolve_request_identity(request).sub == "token-sub"


def test_resolve_ignores_invalid_token_and_falls_back_to_headers():
    bad = create_access_token({"sub": "s", "email": "e@x.com"}, "another-secret", 60)
    request = make_request({"Authorization": f"Bearer {bad}", "x-oauth-uid": "header-sub", "x-oauth-email": "H@X.com"})
    identity = resolve_request_identity(request)
    assert (identity.sub, identity.email) == ("header-sub", "h@x.com")


def test_resolve_falls_back_to_form_fields():
    identity = resolve_request_identity(make_request(), form_uid="form-sub", form_email="f@x.com")
    assert identity.sub == "form-sub"


def test_resolve_without_identity_raises_unauthorized():
    with pytest.raises(UnauthorizedError) as excinfo:
        resolve_request_identity(make_request({"x-oauth-uid": "only-uid"}))
    assert excinfo.value.message == IDENTITY_MISSING_MESSAGE


def test_subject_id_from_query_when_no_header():
    assert resolve_subject_id(make_request(), query_uid="q-sub") == "q-sub"
    with pytest.raises(UnauthorizedError):
        resolve_subject_id(make_request())


def _verifier(handler, client_id="client-1"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleTokenVerifier(settings.google_tokeninfo_url, client_id=client_id, client=client)


def test_google_verifier_accepts_verified_token_for_our_audience():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["id_token"] = request.url.params.get("id_token")
        return httpx.Response(
            200,
            json={"sub": "g-1", "email": "Me@Gmail.com", "email_verified": "true", "aud": "client-1", "name": "Me"},
        )

    identity = asyncio.run(_verifier(handler).verify("id-token-abc"))
    assert seen["id_token"] == "id-token-abc"
    assert identity == ResolvedIdentity(sub="g-1", email="me@gmail.com", name="Me", picture="")


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "g-1", "email": "me@gmail.com", "email_verified": "true", "aud": "someone-else"},
        {"sub": "g-1", "email": "me@gmail.com", "email_verified": "false", "aud": "client-1"},
    ],
)
def test_google_verifier_rejects_wrong_audience_or_unverified_email(claims):
    verifier = _verifier(lambda request: httpx.Response(200, json=claims))
    with pytest.raises(UnauthorizedError):
        asyncio.run(verifier.verify("t"))


def test_google_verifier_rejects_token_google_refuses():
    verifier = _verifier(lambda request: httpx.Response(400, json={"error": "invalid_token"}))
    with pytest.raises(UnauthorizedError):
        asyncio.run(verifier.verify("t"))


def test_google_verifier_network_failure_is_upstream_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(UpstreamError):
        asyncio.run(_verifier(handler).verify("t"))
