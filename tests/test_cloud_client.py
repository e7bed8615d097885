"""Tests of the cloud status request/response exchange."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from shelly_ingest.cloud.client import STATUS_FIELDS, CloudClient, build_request_body
from shelly_ingest.common.errors import TransportError


def make_response(status_code=200, chunks=(b"[]",)):
    response = MagicMock()
    response.status_code = status_code
    response.iter_content = MagicMock(return_value=iter(chunks))
    return response


@pytest.fixture
def session():
    s = MagicMock(spec=requests.Session)
    s.post.return_value = make_response()
    return s


@pytest.fixture
def client(session):
    return CloudClient(
        url="https://shelly-77-eu.shelly.cloud",
        endpoint="/v2/devices/api/get",
        key="secret-key",
        max_response_bytes=64,
        session=session,
    )


def sent_body(session) -> dict:
    data = session.post.call_args.kwargs["data"]
    return json.loads(data.getvalue())


class TestRequestBody:

    def test_ids_in_order_and_fixed_pick(self):
        body = build_request_body(["c", "a", "b"])
        assert body["ids"] == ["c", "a", "b"]
        assert body["select"] == ["status"]
        assert body["pick"]["status"] == ["ts", "temperature:0", "humidity:0", "devicepower:0", "sys"]
        assert body["pick"]["settings"] == []

    def test_empty_id_list(self):
        assert build_request_body([])["ids"] == []

    def test_pick_is_not_shared(self):
        body = build_request_body(["a"])
        body["pick"]["status"].append("wifi")
        assert "wifi" not in STATUS_FIELDS


class TestFetch:

    def test_post_shape(self, client, session):
        client.fetch(["A", "B"])

        assert session.post.call_count == 1
        args, kwargs = session.post.call_args
        assert args[0] == "https://shelly-77-eu.shelly.cloud/v2/devices/api/get"
        assert kwargs["params"] == {"auth_key": "secret-key"}
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["headers"]["User-Agent"] == "shellyd-agent"
        assert kwargs["timeout"] == 10.0
        assert kwargs["stream"] is True
        assert sent_body(session)["ids"] == ["A", "B"]

    def test_accumulates_chunks(self, client, session):
        session.post.return_value = make_response(chunks=[b'[{"id":', b"", b' "A"}]'])
        assert client.fetch(["A"]) == b'[{"id": "A"}]'

    def test_non_2xx_is_transport_error(self, client, session):
        response = make_response(status_code=401, chunks=[b"unauthorized"])
        session.post.return_value = response
        with pytest.raises(TransportError, match="HTTP 401"):
            client.fetch(["A"])
        response.close.assert_called_once()

    def test_connection_failure(self, client, session):
        session.post.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(TransportError) as exc:
            client.fetch(["A"])
        assert isinstance(exc.value.__cause__, requests.ConnectionError)

    def test_auth_key_not_in_error(self, client, session):
        session.post.side_effect = requests.ConnectionError(
            "HTTPSConnectionPool(host='shelly-77-eu.shelly.cloud', port=443): Max retries exceeded "
            "with url: /v2/devices/api/get?auth_key=secret-key (Caused by NewConnectionError)"
        )
        with pytest.raises(TransportError) as exc:
            client.fetch(["A"])
        assert "secret-key" not in str(exc.value)
        assert "ConnectionError" in str(exc.value)
        assert "auth_key=***" in str(exc.value)

    def test_encoded_auth_key_not_in_error(self, session):
        client = CloudClient("https://cloud", "/get", "k+y/1=", session=session)
        response = make_response()
        response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError(
            "broken reading /get?auth_key=k%2By%2F1%3D"
        )
        session.post.return_value = response
        with pytest.raises(TransportError) as exc:
            client.fetch(["A"])
        assert "k%2By%2F1%3D" not in str(exc.value)
        assert "k+y/1=" not in str(exc.value)

    def test_timeout(self, client, session):
        session.post.side_effect = requests.Timeout("read timed out")
        with pytest.raises(TransportError):
            client.fetch(["A"])

    def test_error_while_streaming_body(self, client, session):
        response = make_response()
        response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("broken")
        session.post.return_value = response
        with pytest.raises(TransportError):
            client.fetch(["A"])

    def test_response_size_cap(self, client, session):
        session.post.return_value = make_response(chunks=[b"x" * 40, b"x" * 40])
        with pytest.raises(TransportError, match="too large"):
            client.fetch(["A"])

    def test_each_fetch_has_its_own_buffer(self, client, session):
        session.post.side_effect = [
            make_response(chunks=[b"[1]"]),
            make_response(chunks=[b"[2]"]),
        ]
        assert client.fetch(["A"]) == b"[1]"
        assert client.fetch(["A"]) == b"[2]"


class TestFromConfig:

    def test_defaults(self, config):
        client = CloudClient.from_config(config, session=MagicMock())
        assert client.request_url == "https://shelly-77-eu.shelly.cloud/v2/devices/api/get"

    def test_poller_section(self, config_data):
        from shelly_ingest.common.config import Configuration

        config_data["poller"] = {"max_response_bytes": 2, "timeout": 3}
        session = MagicMock()
        session.post.return_value = make_response(chunks=[b"[1, 2]"])
        client = CloudClient.from_config(Configuration(config_data), session=session)
        with pytest.raises(TransportError):
            client.fetch(["A"])
        assert session.post.call_args.kwargs["timeout"] == 3.0
