"""
Shared fixtures: a fake Closure Compiler service and sample source files.
"""

import json
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest
import requests
from requests.structures import CaseInsensitiveDict


def make_response(
    status_code: int = 200,
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    reason: str = "OK",
) -> requests.Response:
    """Build a real requests.Response with the given status, body and headers."""
    resp = requests.Response()
    resp.status_code = status_code
    resp.reason = reason
    resp.headers = CaseInsensitiveDict(headers or {"Content-Type": "application/json"})
    if not isinstance(body, str):
        body = json.dumps(body if body is not None else {})
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    return resp


class FakeService:
    """
    Stand-in for requests.post.

    By default it "compiles" by collapsing whitespace in js_code. Set
    `response` to a Response to return it, or to an exception to raise it.
    """

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.response: Any = None

    def __call__(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        if isinstance(self.response, Exception):
            raise self.response
        if self.response is not None:
            return self.response
        code = " ".join(data["js_code"].split())
        return make_response(200, {"compiledCode": code})


@pytest.fixture
def fake_service():
    service = FakeService()
    with patch("closure.requests.post", side_effect=service):
        yield service


@pytest.fixture
def sources(tmp_path):
    """foo.js, bar.js and baz.js, each defining a variable named after the file."""
    paths = {}
    for name in ("foo", "bar", "baz"):
        path = tmp_path / f"{name}.js"
        path.write_text(f"var {name} = 1;\n", encoding="utf-8")
        paths[name] = path
    return paths
