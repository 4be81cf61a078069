"""External ranking service client.

The resolver consults this only when the catalog has no candidate for a
match. Every request is bounded by the configured timeout and by the
unit's cancellation deadline; any failure degrades to "no suggestion" so
a slow or broken service never stalls a batch. With no URL configured the
client does no I/O at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from transmute.catalog.models import Mapping
from transmute.engine.cancellation import CancellationToken
from transmute.errors import IRValidationError
from transmute.ir.models import IdGenerator
from transmute.ir.serialization import fragment_from_dict
from transmute.patterns.models import Match

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0


class RankingUnavailable(Exception):
    """The service could not produce a usable answer for this request."""


@dataclass
class RankingRequest:
    category: str
    pattern_id: str
    target_ecosystem: str
    bindings: dict[str, str]

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "pattern": self.pattern_id,
            "target_ecosystem": self.target_ecosystem,
            "bindings": self.bindings,
        }


class RankingClient:
    """Thin wrapper around an HTTP ranking endpoint.

    Parameters
    ----------
    url : str | None
        Endpoint that accepts a POSTed :class:`RankingRequest` and answers
        ``{"mapping": {...} | null}`` in the catalog mapping shape.
    timeout : float
        Upper bound in seconds for one request.
    transport : httpx.BaseTransport | None
        Injected transport, used by tests.
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def suggest(self, match: Match, target_ecosystem: str, token: CancellationToken) -> Mapping | None:
        """Ask the service for a mapping. Returns None when not configured.

        Raises RankingUnavailable when the service was asked but could not
        answer in time or answered with something unusable.
        """
        if not self.configured:
            return None

        timeout = token.bounded(self.timeout)
        if timeout <= 0:
            raise RankingUnavailable("deadline already passed")

        request = RankingRequest(
            category=match.category,
            pattern_id=match.pattern_id,
            target_ecosystem=target_ecosystem,
            bindings=match.text_bindings(),
        )
        try:
            with httpx.Client(timeout=timeout, transport=self._transport) as client:
                resp = client.post(self.url, json=request.to_dict())
                resp.raise_for_status()
                payload = resp.json()
        except httpx.TimeoutException as e:
            raise RankingUnavailable(f"timed out after {timeout:.2f}s") from e
        except httpx.HTTPStatusError as e:
            raise RankingUnavailable(f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise RankingUnavailable(f"transport error: {e}") from e
        except ValueError as e:
            raise RankingUnavailable("response is not JSON") from e

        if not isinstance(payload, dict):
            raise RankingUnavailable("malformed response: expected a JSON object")
        data = payload.get("mapping")
        if data is None:
            logger.debug("Ranking service had no suggestion for %s", match.category)
            return None
        try:
            suggested = Mapping.from_dict(
                {
                    "source_category": match.category,
                    "target_ecosystem": target_ecosystem,
                    **data,
                },
                order=-1,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RankingUnavailable(f"malformed mapping in response: {e}") from e
        if not isinstance(suggested.template, (str, dict)) or not suggested.template:
            raise RankingUnavailable("malformed mapping in response: empty template")
        if isinstance(suggested.template, dict):
            try:
                fragment_from_dict(suggested.template, IdGenerator("check"), "mapping.template")
            except IRValidationError as e:
                raise RankingUnavailable(f"malformed mapping in response: {e}") from e
        if suggested.source_category != match.category or suggested.target_ecosystem != target_ecosystem:
            raise RankingUnavailable("suggested mapping is for a different category or target")
        return suggested
