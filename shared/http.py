# shared/http.py
from __future__ import annotations
import json
from typing import Any, Optional
import httpx

USER_AGENT = "consumer-contract-bridge/0.1"


def make_client(base_url: str, timeout: float = 5.0) -> httpx.Client:
    return httpx.Client(
        base_url=base_url,
        timeout=timeout,
        follow_redirects=False,
        headers={"User-Agent": USER_AGENT},
    )


def decode_body(content: bytes, content_type: Optional[str] = None) -> Any:
    """JSON when it parses as JSON, text otherwise, None when empty."""
    if not content:
        return None
    text = content.decode("utf-8", errors="replace")
    if content_type is None or "json" in content_type.lower() or text.lstrip()[:1] in ("{", "["):
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text
