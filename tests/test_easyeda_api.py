"""Tests for the EasyEDA API client, driven through httpx.MockTransport."""

import asyncio
import copy
import httpx
import pytest

import easyeda_api
from easyeda_api import (
    USER_AGENT, EasyedaApi, extract_identifiers, record_from_payload,
    validate_identifier,
)
from errors import ComponentNotFound, InputError, RemoteError
from models import Model3dRef


def _api(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EasyedaApi(client=client, **kwargs)


async def _fetch(api, identifier):
    try:
        return await api.get_component(identifier)
    finally:
        await api._client.aclose()


class TestIdentifiers:
    def test_valid(self):
        assert validate_identifier("C2040") == "C2040"

    @pytest.mark.parametrize("bad", ["", "C", "2040", "c2040"])
    def test_invalid(self, bad):
        with pytest.raises(InputError):
            validate_identifier(bad)

    def test_extract_from_batch_text(self):
        text = "C2040\n# resistors\nC25804, C1525\nnot-an-id\n"
        assert extract_identifiers(text) == ["C2040", "C25804", "C1525"]

    def test_extract_none(self):
        with pytest.raises(InputError):
            extract_identifiers("nothing useful here\n")


class TestRecordFromPayload:
    def test_fixture(self, api_payload):
        record = record_from_payload("C2040", api_payload)
        assert record.identifier == "C2040"
        assert record.title == "RP2040"
        assert record.prefix == "U"
        assert record.symbol_origin == (400, 300)
        assert record.footprint_origin == (4000, 3000)
        assert len(record.symbol_shapes) == 4  # the numeric entry is dropped
        assert len(record.footprint_shapes) == 4
        assert record.manufacturer == "Raspberry Pi"
        assert record.part_class == "Extended Part"
        assert record.datasheet.endswith("C2040.pdf")
        assert record.model_3d == Model3dRef(uuid="4f2a9c1e7b3d4e8f", title="LQFN-56_L7.0-W7.0-H0.9")

    def test_missing_title(self, api_payload):
        payload = copy.deepcopy(api_payload)
        del payload["result"]["title"]
        with pytest.raises(RemoteError, match="title") as exc:
            record_from_payload("C2040", payload)
        assert not isinstance(exc.value, ComponentNotFound)

    def test_missing_data_str(self, api_payload):
        payload = copy.deepcopy(api_payload)
        del payload["result"]["dataStr"]
        with pytest.raises(RemoteError, match="dataStr"):
            record_from_payload("C2040", payload)

    def test_missing_result(self):
        with pytest.raises(RemoteError, match="result"):
            record_from_payload("C2040", {"success": True})

    def test_success_false(self):
        with pytest.raises(ComponentNotFound):
            record_from_payload("C2040", {"success": False, "result": None})

    def test_optional_fields_default(self):
        payload = {"result": {"title": "Bare", "dataStr": {}}}
        record = record_from_payload("C7", payload)
        assert record.symbol_shapes == ()
        assert record.symbol_origin == (0.0, 0.0)
        assert record.footprint_shapes == ()
        assert record.footprint_origin == (0.0, 0.0)
        assert record.model_3d is None
        assert record.prefix == "U"
        assert record.manufacturer == ""
        assert record.datasheet == ""

    def test_package_detail_as_bare_array(self):
        payload = {"result": {
            "title": "Arr",
            "dataStr": {"shape": []},
            "packageDetail": ["TRACK~1~3~~0 0 10 0~gge1~0"],
        }}
        record = record_from_payload("C8", payload)
        assert record.footprint_shapes == ("TRACK~1~3~~0 0 10 0~gge1~0",)
        assert record.footprint_origin == (0.0, 0.0)


class TestGetComponent:
    def test_success(self, api_payload):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["agent"] = request.headers.get("user-agent")
            return httpx.Response(200, json=api_payload)

        record = asyncio.run(_fetch(_api(handler), "C2040"))
        assert record.title == "RP2040"
        assert seen["url"] == "https://easyeda.com/api/products/C2040/components?version=6.4.19.5"
        assert seen["agent"] == USER_AGENT

    def test_http_error_is_not_found(self):
        api = _api(lambda request: httpx.Response(404))
        with pytest.raises(ComponentNotFound):
            asyncio.run(_fetch(api, "C404"))

    def test_invalid_json(self):
        api = _api(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(RemoteError):
            asyncio.run(_fetch(api, "C1"))

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteError):
            asyncio.run(_fetch(_api(handler), "C1"))


class TestDownloads:
    def test_retries_then_succeeds(self):
        calls = []

        def handler(request):
            calls.append(str(request.url))
            if len(calls) < 3:
                return httpx.Response(500)
            return httpx.Response(200, content=b"ISO-10303-21;")

        async def go():
            api = _api(handler, backoff=0)
            try:
                return await api.download_step("abc")
            finally:
                await api._client.aclose()

        assert asyncio.run(go()) == b"ISO-10303-21;"
        assert len(calls) == 3
        assert calls[0] == "https://modules.easyeda.com/qAxj6KHrDKw4blvCG8QJPs7Y/abc"

    def test_gives_up_after_three_attempts(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        async def go():
            api = _api(handler, backoff=0)
            try:
                return await api.download_obj("abc")
            finally:
                await api._client.aclose()

        with pytest.raises(RemoteError):
            asyncio.run(go())
        assert len(calls) == 3
        assert str(calls[0].url) == "https://modules.easyeda.com/3dmodel/abc"

    def test_linear_backoff_schedule(self, monkeypatch):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr(easyeda_api.asyncio, "sleep", fake_sleep)

        async def go():
            api = _api(lambda request: httpx.Response(503))
            try:
                return await api.download_step("abc")
            finally:
                await api._client.aclose()

        with pytest.raises(RemoteError):
            asyncio.run(go())
        assert delays == [0.5, 1.0]
