"""Tests for token handling and per-user isolation."""

from uuid import UUID, uuid4

import pytest
from fastapi import HTTPException
from jose import jwt

from resumeopt.services.cache_service import cache_key

SECRET = "unit-secret"
ALGORITHM = "HS256"


def _make_token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


class TestDecodeToken:
    def test_valid_token_extracts_user(self):
        from resumeopt.core.auth import decode_token

        uid = uuid4()
        user = decode_token(_make_token({"sub": str(uid), "role": "admin"}), SECRET, ALGORITHM)
        assert user.user_id == uid
        assert user.is_admin

    def test_role_defaults_to_user(self):
        from resumeopt.core.auth import decode_token

        user = decode_token(_make_token({"sub": str(uuid4())}), SECRET, ALGORITHM)
        assert user.role == "user"
        assert not user.is_admin

    def test_invalid_token_raises_401(self):
        from resumeopt.core.auth import decode_token

        with pytest.raises(HTTPException) as exc_info:
            decode_token("invalid.jwt.token", SECRET, ALGORITHM)
        assert exc_info.value.status_code == 401

    def test_wrong_secret_raises_401(self):
        from resumeopt.core.auth import decode_token

        token = _make_token({"sub": str(uuid4())}, secret="someone-else")
        with pytest.raises(HTTPException) as exc_info:
            decode_token(token, SECRET, ALGORITHM)
        assert exc_info.value.status_code == 401

    def test_missing_sub_raises_401(self):
        from resumeopt.core.auth import decode_token

        with pytest.raises(HTTPException) as exc_info:
            decode_token(_make_token({"role": "user"}), SECRET, ALGORITHM)
        assert exc_info.value.status_code == 401

    def test_non_uuid_sub_raises_401(self):
        from resumeopt.core.auth import decode_token

        with pytest.raises(HTTPException) as exc_info:
            decode_token(_make_token({"sub": "user-1"}), SECRET, ALGORITHM)
        assert exc_info.value.status_code == 401


class TestEndpointAuth:
    async def test_missing_token_is_401(self, client):
        response = await client.get(f"/api/v1/resumes/{uuid4()}")
        assert response.status_code == 401

    async def test_admin_route_rejects_regular_user(self, client, auth):
        response = await client.patch(
            f"/api/v1/admin/review-orders/{uuid4()}",
            json={"status": "assigned"},
            headers=auth(uuid4()),
        )
        assert response.status_code == 403

    async def test_other_users_resume_is_forbidden(self, client, auth, make_user, make_resume):
        owner = await make_user()
        intruder = await make_user()
        resume = await make_resume(owner.id)

        response = await client.get(f"/api/v1/resumes/{resume.id}", headers=auth(intruder))
        assert response.status_code == 403
        assert response.json()["reason"] == "ownership"

    async def test_health_needs_no_token(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "ok"}


class TestCacheKeys:
    def test_different_resume_text_different_key(self):
        assert cache_key("detailed_ats", "v1.0", "resume A") != cache_key("detailed_ats", "v1.0", "resume B")

    def test_job_description_change_invalidates_cache(self):
        key_v1 = cache_key("job_opt", "v1.0", "resume", "Looking for a Python developer")
        key_v2 = cache_key("job_opt", "v1.0", "resume", "Looking for a Python developer with K8s experience")
        assert key_v1 != key_v2

    def test_prompt_version_is_part_of_key(self):
        key = cache_key("job_opt", "v2.3", "resume", "job")
        assert key.startswith("analysis:job_opt:v2.3:")
        assert key != cache_key("job_opt", "v1.0", "resume", "job")

    def test_part_boundaries_matter(self):
        assert cache_key("job_opt", "v1.0", "ab", "c") != cache_key("job_opt", "v1.0", "a", "bc")

    def test_key_is_stable(self):
        uid = str(UUID(int=7))
        assert cache_key("detailed_ats", "v1.0", uid) == cache_key("detailed_ats", "v1.0", uid)
