"""Utility helpers: ids, timestamps, credentials, log format"""
import json
import logging
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.domain.enums import Role
from app.domain.errors import InvalidCredentialError
from app.utils.idgen import generate_access_link, generate_correlation_id, generate_ticket_id, slugify
from app.utils.jwt import CredentialVerifier
from app.utils.logger import JsonFormatter, set_correlation_id
from app.utils.time import format_iso, parse_iso

from tests.fakes import FakePrincipalRepository, build_principal


def test_prefixed_ids():
    assert generate_ticket_id().startswith("TKT-")
    assert generate_correlation_id().startswith("COR-")
    assert generate_ticket_id() != generate_ticket_id()


def test_slugify():
    assert slugify("Acme Corp, Ltd.") == "acme-corp-ltd"
    assert len(slugify("x" * 80)) == 30


def test_access_link_shape():
    assert generate_access_link("Acme Corp").startswith("acme-corp-")
    bare = generate_access_link()
    assert len(bare) == 16
    assert generate_access_link("!!!") != generate_access_link("!!!")


def test_parse_iso_normalizes_to_utc():
    assert parse_iso("2026-03-01T10:00:00Z") == datetime(2026, 3, 1, 10, tzinfo=timezone.utc)
    assert parse_iso("2026-03-01T10:00:00").tzinfo == timezone.utc
    with pytest.raises(ValueError):
        parse_iso("last tuesday")


def test_format_iso_uses_z_suffix():
    assert format_iso(datetime(2026, 3, 1, 10, tzinfo=timezone.utc)) == "2026-03-01T10:00:00Z"


class TestCredentialVerifier:

    @pytest.fixture
    def verifier(self):
        repo = FakePrincipalRepository()
        repo.create(build_principal("A1", Role.ADMIN, enterprise_id="E1"))
        inactive = build_principal("A2", Role.ADMIN, enterprise_id="E2")
        inactive.profile.is_active = False
        repo.create(inactive)
        return CredentialVerifier(repo, secret="s3cret")

    def _token(self, sub="A1", secret="s3cret", exp_delta=timedelta(minutes=5)):
        return jwt.encode({"sub": sub, "exp": datetime.now(timezone.utc) + exp_delta}, secret, algorithm="HS256")

    def test_bearer_prefix_is_accepted(self, verifier):
        assert verifier.verify(f"Bearer {self._token()}").principal_id == "A1"

    def test_wrong_signature(self, verifier):
        with pytest.raises(InvalidCredentialError):
            verifier.verify(self._token(secret="other"))

    def test_missing_exp(self, verifier):
        token = jwt.encode({"sub": "A1"}, "s3cret", algorithm="HS256")
        with pytest.raises(InvalidCredentialError):
            verifier.decode(token)

    def test_inactive_account(self, verifier):
        with pytest.raises(InvalidCredentialError) as exc:
            verifier.verify(self._token(sub="A2"))
        assert exc.value.http_status == 401

    def test_empty_token(self, verifier):
        with pytest.raises(InvalidCredentialError):
            verifier.verify("")


def test_json_formatter_includes_context():
    set_correlation_id("COR-fmt")
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "Granted crm", None, None)
    record.principal_id = "U1"
    record.product_id = "crm"

    line = json.loads(JsonFormatter().format(record))

    assert line["message"] == "Granted crm"
    assert line["correlation_id"] == "COR-fmt"
    assert line["principal_id"] == "U1"
    assert line["product_id"] == "crm"
    assert "ticket_id" not in line
