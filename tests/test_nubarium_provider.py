"""Unit tests for the Nubarium HTTP provider."""
from __future__ import annotations

import json
import threading
from unittest.mock import MagicMock

import pytest
import requests

from app.services import metrics
from app.services.kyc_providers.credentials import Credential
from app.services.kyc_providers.nubarium import NubariumKYCProvider
from app.services.kyc_providers.results import Failure, Success


def make_response(status: int, body) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r._content = body if isinstance(body, bytes) else json.dumps(body).encode()
    r.encoding = "utf-8"
    return r


TOKEN_OK = make_response(200, {"bearer_token": "jwt-123"})


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def provider(http):
    return NubariumKYCProvider(api_key="key", api_secret="secret", timeout=5, session=http)


def sent(http, index):
    """Return (method, url, kwargs) for the n-th request issued."""
    call = http.request.call_args_list[index]
    return call.args[0], call.args[1], call.kwargs


class TestTokenGeneration:
    @pytest.mark.asyncio
    async def test_token_uses_basic_auth_and_expiry(self, provider, http):
        http.request.return_value = TOKEN_OK

        credential = await provider.generate_token()

        assert isinstance(credential, Credential)
        assert credential.token == "jwt-123"
        method, url, kwargs = sent(http, 0)
        assert method == "POST"
        assert url.endswith("/jwt/v1/generate")
        assert kwargs["auth"] == ("key", "secret")
        assert kwargs["json"] == {"expireAfter": 3600}
        assert "Authorization" not in kwargs["headers"]

    @pytest.mark.asyncio
    async def test_token_missing_field_is_failure(self, provider, http):
        http.request.return_value = make_response(200, {"mensaje": "sin token"})

        credential = await provider.generate_token()

        assert isinstance(credential, Failure)
        assert credential.status == 200

    @pytest.mark.asyncio
    async def test_token_http_error_is_failure(self, provider, http):
        http.request.return_value = make_response(401, {"error": "unauthorized"})

        credential = await provider.generate_token()

        assert isinstance(credential, Failure)
        assert credential.status == 401
        assert "unauthorized" in credential.message

    @pytest.mark.asyncio
    async def test_token_is_reused_within_a_run(self, provider, http):
        http.request.side_effect = [
            TOKEN_OK,
            make_response(200, {"estatus": "OK"}),
            make_response(200, {"estatus": "OK"}),
        ]
        ctx = provider.new_session()

        await provider.validate_curp(ctx, "ABCD800101HDFRRL09")
        await provider.check_blocklist(ctx, "JUAN", "PEREZ")

        assert http.request.call_count == 3
        for i in (1, 2):
            _, _, kwargs = sent(http, i)
            assert kwargs["headers"]["Authorization"] == "Bearer jwt-123"

    @pytest.mark.asyncio
    async def test_failed_token_blocks_later_calls(self, provider, http):
        http.request.return_value = make_response(500, b"boom")
        ctx = provider.new_session()

        first = await provider.face_match(ctx, "doc", "selfie")
        second = await provider.validate_curp(ctx, "ABCD800101HDFRRL09")

        assert isinstance(first, Failure) and first.provider == "token"
        assert second is first
        # only the token endpoint was ever hit
        assert http.request.call_count == 1


class TestCapabilities:
    @pytest.mark.asyncio
    async def test_face_match_body(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, {"estatus": "OK", "similitud": 0.98})]

        result = await provider.face_match(provider.new_session(), "doc64", "selfie64")

        assert isinstance(result, Success)
        assert result.payload["similitud"] == 0.98
        _, url, kwargs = sent(http, 1)
        assert url.endswith("/antifraude/reconocimiento_facial")
        assert kwargs["json"] == {"credencial": "doc64", "captura": "selfie64", "tipo": "imagen"}
        assert kwargs["timeout"] == 5

    @pytest.mark.asyncio
    async def test_ocr_omits_missing_back_image(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, {"estatus": "OK"})]

        await provider.extract_document_data(provider.new_session(), "front64")

        _, url, kwargs = sent(http, 1)
        assert url.endswith("/ocr/v1/obtener_datos_id")
        assert kwargs["json"] == {"id": "front64"}

    @pytest.mark.asyncio
    async def test_ocr_includes_back_image(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, {"estatus": "OK"})]

        await provider.extract_document_data(provider.new_session(), "front64", "back64")

        _, _, kwargs = sent(http, 1)
        assert kwargs["json"] == {"id": "front64", "idReverso": "back64"}

    @pytest.mark.asyncio
    async def test_curp_body(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, {"estatus": "OK"})]

        await provider.validate_curp(provider.new_session(), "ABCD800101HDFRRL09")

        _, url, kwargs = sent(http, 1)
        assert url.endswith("/renapo/v3/valida_curp")
        assert kwargs["json"] == {"curp": "ABCD800101HDFRRL09"}

    @pytest.mark.asyncio
    async def test_ine_sends_only_present_fields(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, {"estatus": "OK"})]
        ocr = {
            "estatus": "OK",
            "cic": "123456789",
            "identificadorCiudadano": "",
            "ocr": None,
            "claveElector": "PRLPJN80010109H100",
            "nombres": "JUAN",
        }

        await provider.validate_ine(provider.new_session(), ocr)

        _, url, kwargs = sent(http, 1)
        assert url.endswith("/ine/v2/valida_ine")
        assert kwargs["json"] == {"cic": "123456789", "claveElector": "PRLPJN80010109H100"}

    @pytest.mark.asyncio
    async def test_ine_validation_issued_once(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, {"estatus": "OK"})]

        await provider.validate_ine(provider.new_session(), {"cic": "1"})

        assert http.request.call_count == 2

    @pytest.mark.asyncio
    async def test_blocklist_full_name(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, {"estatus": "OK"})]

        await provider.check_blocklist(provider.new_session(), " JUAN ", "PEREZ ", None)

        _, url, kwargs = sent(http, 1)
        assert url.endswith("/blacklists/v1/consulta")
        assert kwargs["json"] == {"nombreCompleto": "JUAN PEREZ", "similitud": 100}

    @pytest.mark.asyncio
    async def test_blocklist_with_second_surname(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, {"estatus": "OK"})]

        await provider.check_blocklist(provider.new_session(), "JUAN", "PEREZ", "LOPEZ")

        _, _, kwargs = sent(http, 1)
        assert kwargs["json"]["nombreCompleto"] == "JUAN PEREZ LOPEZ"


class TestNormalization:
    @pytest.mark.asyncio
    async def test_http_error_becomes_failure(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(503, {"mensaje": "no disponible"})]

        result = await provider.validate_curp(provider.new_session(), "X")

        assert isinstance(result, Failure)
        assert result.provider == "curp"
        assert result.status == 503

    @pytest.mark.asyncio
    async def test_non_object_body_becomes_failure(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, ["not", "an", "object"])]

        result = await provider.validate_curp(provider.new_session(), "X")

        assert isinstance(result, Failure)
        assert result.status == 200
        assert result.message.startswith("Invalid response from Nubarium")

    @pytest.mark.asyncio
    async def test_unparseable_body_becomes_failure(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(200, b"<html>gateway</html>")]

        result = await provider.extract_document_data(provider.new_session(), "front")

        assert isinstance(result, Failure)
        assert "gateway" in result.message

    @pytest.mark.asyncio
    async def test_timeout_becomes_failure(self, provider, http):
        http.request.side_effect = [TOKEN_OK, requests.Timeout("read timed out")]

        result = await provider.face_match(provider.new_session(), "doc", "selfie")

        assert isinstance(result, Failure)
        assert result.status is None
        assert "Timeout" in result.message

    @pytest.mark.asyncio
    async def test_connection_error_becomes_failure(self, provider, http):
        http.request.side_effect = requests.ConnectionError("refused")

        result = await provider.face_match(provider.new_session(), "doc", "selfie")

        assert isinstance(result, Failure)
        assert result.provider == "token"


class TestMetricsAndLifecycle:
    @pytest.mark.asyncio
    async def test_metrics_recorded_on_loop_thread(self, provider, http, monkeypatch):
        recorded = []
        monkeypatch.setattr(
            "app.services.kyc_providers.nubarium.record",
            lambda name, value=1: recorded.append((name, threading.get_ident())),
        )
        http.request.side_effect = [TOKEN_OK, requests.Timeout("read timed out")]

        await provider.face_match(provider.new_session(), "doc", "selfie")

        assert [name for name, _ in recorded] == [
            "provider_calls:token",
            "provider_calls:face_match",
            "provider_failures:face_match",
        ]
        assert {ident for _, ident in recorded} == {threading.get_ident()}

    @pytest.mark.asyncio
    async def test_failure_counters(self, provider, http):
        http.request.side_effect = [TOKEN_OK, make_response(503, b"down")]

        await provider.validate_curp(provider.new_session(), "X")

        snap = metrics.snapshot()
        assert snap["provider_calls"] == {"token": 1, "curp": 1}
        assert snap["provider_failures"] == {"curp": 1}

    def test_close_releases_http_session(self, provider, http):
        provider.close()

        http.close.assert_called_once_with()
