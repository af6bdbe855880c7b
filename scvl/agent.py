"""Client classification for the redirect path.

Two small collaborators feed page-view analytics:

- ``classify_user_agent`` turns a raw User-Agent header into the attributes a
  PageView records, and tells crawlers apart from people.
- ``resolve_client_ip`` finds the originating address behind proxies.

IP Resolution Order
===================
::
    X-Forwarded-For ──► first public address in the list
          │ none
          ▼
    X-Real-IP ──────► taken as-is
          │ missing
          ▼
    socket peer address
"""

import ipaddress
from dataclasses import dataclass

from starlette.datastructures import Headers
from user_agents import parse as parse_user_agent

__all__ = ["ClientAgent", "classify_user_agent", "resolve_client_ip"]


@dataclass(frozen=True)
class ClientAgent:
    is_bot: bool
    is_mobile: bool
    platform: str
    os: str
    browser_name: str


def classify_user_agent(raw: str | None) -> ClientAgent:
    ua = parse_user_agent(raw or "")
    return ClientAgent(
        is_bot=ua.is_bot,
        is_mobile=ua.is_mobile,
        platform=ua.device.family or "",
        os=ua.os.family or "",
        browser_name=ua.browser.family or "",
    )


def _is_public(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return ip.is_global


def resolve_client_ip(headers: Headers, peer: str | None) -> str:
    forwarded_for = headers.get("x-forwarded-for", "")
    for candidate in forwarded_for.split(","):
        candidate = candidate.strip()
        if _is_public(candidate):
            return candidate

    real_ip = headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    return peer or ""
