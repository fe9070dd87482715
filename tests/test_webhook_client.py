from unittest.mock import MagicMock

import pytest
import requests

from pallet_orders.domain.errors import ConfigurationError, UpstreamError
from pallet_orders.services import webhook_signer
from pallet_orders.services.webhook_client import WebhookClient

URL = "https://hooks.example.com/webhook/contact"
PAYLOAD = {"formType": "contact", "submissionId": "sub-1", "fields": {"fullName": "Ana"}}


def make_response(status_code=200, json_body=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if json_body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = json_body
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


def test_posts_signed_body(session):
    session.post.return_value = make_response(json_body={"received": True})
    client = WebhookClient(URL, secret="k", timeout=8, version=1, session=session)

    result = client.relay(PAYLOAD, idempotency_key="sub-1")

    assert result.status_code == 200
    assert result.upstream == {"received": True}

    args, kwargs = session.post.call_args
    assert args == (URL,)
    assert kwargs["timeout"] == 8
    assert kwargs["allow_redirects"] is False
    body = kwargs["data"]
    assert body == webhook_signer.serialize(PAYLOAD)
    assert kwargs["headers"]["X-Signature"] == webhook_signer.sign(body, "k")
    assert kwargs["headers"]["X-Idempotency-Key"] == "sub-1"
    assert kwargs["headers"]["X-Form-Version"] == "1"


def test_non_json_upstream(session):
    session.post.return_value = make_response(text="OK")
    result = WebhookClient(URL, secret="k", session=session).relay(PAYLOAD, "sub-1")
    assert result.upstream is None


def test_non_2xx_is_retryable(session):
    session.post.return_value = make_response(status_code=500, text="workflow crashed")

    with pytest.raises(UpstreamError) as exc:
        WebhookClient(URL, secret="k", session=session).relay(PAYLOAD, "sub-1")

    err = exc.value
    assert err.status_code == 502
    assert err.retryable is True
    assert err.to_dict() == {
        "error": "Failed to forward submission",
        "code": "upstream_error",
        "ok": False,
        "retryable": True,
        "details": {"status": 500, "upstream": "workflow crashed"},
    }


def test_timeout_is_retryable(session):
    session.post.side_effect = requests.Timeout("read timed out")

    with pytest.raises(UpstreamError) as exc:
        WebhookClient(URL, secret="k", session=session).relay(PAYLOAD, "sub-1")
    assert exc.value.retryable is True


@pytest.mark.parametrize("url,secret", [(None, "k"), ("", "k"), (URL, "")])
def test_missing_configuration(session, url, secret):
    with pytest.raises(ConfigurationError):
        WebhookClient(url, secret=secret, session=session).relay(PAYLOAD, "sub-1")
    session.post.assert_not_called()


@pytest.mark.parametrize("status_code", [201, 204, 299])
def test_any_2xx_is_delivered(session, status_code):
    session.post.return_value = make_response(status_code=status_code)
    assert WebhookClient(URL, secret="k", session=session).relay(PAYLOAD, "sub-1").status_code == status_code


@pytest.mark.parametrize("status_code", [199, 301, 302, 304, 307])
def test_non_2xx_below_400_is_retryable(session, status_code):
    session.post.return_value = make_response(status_code=status_code)

    with pytest.raises(UpstreamError) as exc:
        WebhookClient(URL, secret="k", session=session).relay(PAYLOAD, "sub-1")

    assert exc.value.retryable is True
    assert exc.value.details == {"status": status_code}
