"""Tests for scheduler task authentication."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from onsenbook.api import task_auth


def _request(headers: dict[str, str] | None = None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/tasks/x", "headers": raw})


@pytest.fixture
def google_transport():
    with patch.object(task_auth.google_requests, "Request"):
        yield


class TestBearerToken:
    def test_extracts_token(self):
        assert task_auth.bearer_token(_request({"Authorization": "Bearer abc"})) == "abc"

    def test_scheme_is_case_insensitive(self):
        assert task_auth.bearer_token(_request({"Authorization": "bearer abc"})) == "abc"

    @pytest.mark.parametrize("value", ["", "Basic abc", "Bearer ", "Bearer"])
    def test_rejects_other_shapes(self, value):
        assert task_auth.bearer_token(_request({"Authorization": value})) is None


class TestIsTaskRequestAuthenticated:
    def test_fails_closed_without_audience(self):
        with patch.dict(os.environ, {}, clear=True):
            assert not task_auth.is_task_request_authenticated(
                _request({"Authorization": "Bearer abc"})
            )

    def test_missing_token_rejected(self):
        with patch.dict(os.environ, {"TASKS_OIDC_AUDIENCE": "https://worker"}, clear=True):
            assert not task_auth.is_task_request_authenticated(_request())

    def test_local_secret_accepted_only_for_local_audience(self):
        headers = {task_auth.INTERNAL_SECRET_HEADER: "s3cret"}
        env = {"TASKS_OIDC_AUDIENCE": task_auth.LOCAL_DEV_AUDIENCE, "INTERNAL_TASK_SECRET": "s3cret"}
        with patch.dict(os.environ, env, clear=True):
            assert task_auth.is_task_request_authenticated(_request(headers))

        env["TASKS_OIDC_AUDIENCE"] = "https://worker"
        with patch.dict(os.environ, env, clear=True):
            assert not task_auth.is_task_request_authenticated(_request(headers))

    def test_wrong_local_secret_rejected(self):
        env = {"TASKS_OIDC_AUDIENCE": task_auth.LOCAL_DEV_AUDIENCE, "INTERNAL_TASK_SECRET": "s3cret"}
        with patch.dict(os.environ, env, clear=True):
            assert not task_auth.is_task_request_authenticated(
                _request({task_auth.INTERNAL_SECRET_HEADER: "guess"})
            )

    def test_valid_token_accepted(self, google_transport):
        with patch.dict(os.environ, {"TASKS_OIDC_AUDIENCE": "https://worker"}, clear=True), \
             patch.object(task_auth.id_token, "verify_oauth2_token", return_value={}) as verify:
            assert task_auth.is_task_request_authenticated(
                _request({"Authorization": "Bearer tok"})
            )
        assert verify.call_args.kwargs["audience"] == "https://worker"


class TestVerifyOidcToken:
    def test_invalid_token(self, google_transport):
        with patch.object(
            task_auth.id_token, "verify_oauth2_token", side_effect=ValueError("expired")
        ):
            assert not task_auth.verify_oidc_token("tok", audience="aud")

    def test_service_account_must_match(self, google_transport):
        env = {"TASKS_OIDC_SERVICE_ACCOUNT": "scheduler@proj.iam.gserviceaccount.com"}
        with patch.dict(os.environ, env, clear=True), patch.object(
            task_auth.id_token,
            "verify_oauth2_token",
            return_value={"email": "other@proj.iam.gserviceaccount.com"},
        ):
            assert not task_auth.verify_oidc_token("tok", audience="aud")

    def test_service_account_match(self, google_transport):
        env = {"TASKS_OIDC_SERVICE_ACCOUNT": "scheduler@proj.iam.gserviceaccount.com"}
        with patch.dict(os.environ, env, clear=True), patch.object(
            task_auth.id_token,
            "verify_oauth2_token",
            return_value={"email": "scheduler@proj.iam.gserviceaccount.com"},
        ):
            assert task_auth.verify_oidc_token("tok", audience="aud")


def test_require_task_auth_raises_401():
    with patch.dict(os.environ, {}, clear=True):
        with pytest.raises(HTTPException) as exc_info:
            task_auth.require_task_auth(_request())
    assert exc_info.value.status_code == 401
