import base64
import json

import pytest
import requests

from triage.classifier import (
    CLASSIFY_PROMPT,
    ClassifierClient,
    ClassifierSettings,
    SUBCATEGORY_PROMPT,
    parse_classification,
    strip_code_fences,
)
from triage.errors import ClassificationError


class FakeResponse:
    def __init__(self, status_code=200, body=None, invalid_json=False):
        self.status_code = status_code
        self._body = body
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._body


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []
        self.closed = False

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response

    def close(self):
        self.closed = True


def _reply(text):
    return FakeResponse(body={"content": [{"type": "text", "text": text}]})


def test_classify_strips_fences_and_builds_request():
    text = '```json\n{"new_filename":"stripe_invoice.png","category":"Finance","reasoning":"payment receipt"}\n```'
    session = FakeSession(_reply(text))
    client = ClassifierClient(ClassifierSettings(base_url="https://example.test"), session=session)

    reply = client.classify(b"\x89PNG", "sk-ant-secret-value", timeout=12.5)

    assert reply.new_filename == "stripe_invoice.png"
    assert reply.category == "Finance"
    assert reply.reasoning == "payment receipt"

    call = session.calls[0]
    assert call["url"] == "https://example.test/v1/messages"
    assert call["timeout"] == 12.5
    assert call["headers"]["x-api-key"] == "sk-ant-secret-value"
    assert call["headers"]["anthropic-version"] == "2023-06-01"
    assert call["json"]["model"] == "claude-opus-4-5-20251101"
    assert call["json"]["max_tokens"] == 1024
    image, prompt = call["json"]["messages"][0]["content"]
    assert image["source"]["media_type"] == "image/png"
    assert base64.b64decode(image["source"]["data"]) == b"\x89PNG"
    assert prompt == {"type": "text", "text": CLASSIFY_PROMPT}


def test_classify_uses_default_timeout():
    session = FakeSession(_reply('{"new_filename": "a.png", "category": "Code"}'))
    client = ClassifierClient(ClassifierSettings(timeout_s=7.0), session=session)

    reply = client.classify(b"x", "key")

    assert session.calls[0]["timeout"] == 7.0
    assert reply.reasoning == ""


def test_classify_rejects_invalid_json():
    client = ClassifierClient(session=FakeSession(_reply("I think this is a receipt")))

    with pytest.raises(ClassificationError) as info:
        client.classify(b"x", "key")
    assert info.value.kind == "contract"


@pytest.mark.parametrize(
    "text",
    [
        '{"category": "Finance"}',
        '{"new_filename": "", "category": "Finance"}',
        '{"new_filename": "a.png", "category": 3}',
        '["a.png", "Finance"]',
    ],
)
def test_parse_classification_requires_fields(text):
    with pytest.raises(ClassificationError):
        parse_classification(text)


def test_non_success_status_is_reported():
    client = ClassifierClient(session=FakeSession(FakeResponse(status_code=401, body={"error": "auth"})))

    with pytest.raises(ClassificationError) as info:
        client.classify(b"x", "bad-key")
    assert info.value.kind == "status"
    assert info.value.status_code == 401


def test_timeout_and_transport_failures():
    timeout_client = ClassifierClient(session=FakeSession(exc=requests.Timeout("slow")))
    with pytest.raises(ClassificationError) as info:
        timeout_client.classify(b"x", "key")
    assert info.value.kind == "timeout"

    broken_client = ClassifierClient(session=FakeSession(exc=requests.ConnectionError("refused")))
    with pytest.raises(ClassificationError) as info:
        broken_client.classify(b"x", "key")
    assert info.value.kind == "transport"


@pytest.mark.parametrize(
    "body",
    [
        {"content": []},
        {"content": [{"type": "image"}]},
        {"id": "msg_1"},
    ],
)
def test_missing_text_block_is_contract_violation(body):
    client = ClassifierClient(session=FakeSession(FakeResponse(body=body)))

    with pytest.raises(ClassificationError):
        client.classify(b"x", "key")


def test_body_that_is_not_json():
    client = ClassifierClient(session=FakeSession(FakeResponse(invalid_json=True)))

    with pytest.raises(ClassificationError, match="not JSON"):
        client.classify(b"x", "key")


def test_classify_subcategory_prompt_and_budget():
    session = FakeSession(_reply('```json\n{"subcategory": "Bank_Statements"}\n```'))
    client = ClassifierClient(session=session)

    subcategory = client.classify_subcategory(b"x", "key", "Finance")

    assert subcategory == "Bank_Statements"
    call = session.calls[0]
    assert call["json"]["max_tokens"] == 256
    text = call["json"]["messages"][0]["content"][1]["text"]
    assert text == SUBCATEGORY_PROMPT.format(parent="Finance")
    assert "'Finance'" in text
    assert '{"subcategory": "Bank_Statements"}' in text


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert json.loads(strip_code_fences('  {"a": 1}  ')) == {"a": 1}


def test_settings_from_payload():
    settings = ClassifierSettings.from_settings(
        {"triage": {"request_timeout_s": 12, "classifier": {"base_url": "http://local/", "max_tokens": 99}}}
    )

    assert settings.base_url == "http://local"
    assert settings.max_tokens == 99
    assert settings.timeout_s == 12.0


def test_close_closes_session():
    session = FakeSession()
    ClassifierClient(session=session).close()
    assert session.closed
