"""Best-effort merchant/category enrichment.

The enrichment collaborator is optional: :func:`enrich_transactions` always
seeds ``merchant_canonical`` from :func:`heuristic_merchant`, then asks an
:class:`Enricher` for suggestions under a timeout. Any failure or timeout is
logged and the rows keep their heuristic values.

Implementations:

- :class:`NullEnricher`: no suggestions (tests, ``SI_ENRICHMENT=off``).
- :class:`OpenAIEnricher`: OpenAI Responses API with a strict JSON schema.
"""

from __future__ import annotations

import json
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, replace
from typing import Any, Protocol

from openai import OpenAI
from pydantic import ValidationError

from .heuristics import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    GENERIC_MERCHANT_WORDS,
    MERCHANT_CHAINS,
    MERCHANT_NOISE_RE,
    STORE_NUMBER_RE,
)
from .logging_setup import get_logger
from .models import EnrichmentSuggestion, ImportableTransaction
from .settings import ImportSettings

_logger = get_logger("statement_import.enrichment")


@dataclass(frozen=True, slots=True)
class EnrichmentEntry:
    description: str
    heuristic_merchant: str


class Enricher(Protocol):
    def classify(self, entries: Sequence[EnrichmentEntry]) -> list[EnrichmentSuggestion]:
        """Return one suggestion per entry, in input order (may be shorter)."""
        ...


class NullEnricher:
    def classify(self, entries: Sequence[EnrichmentEntry]) -> list[EnrichmentSuggestion]:
        return []


# ---------------------------------------------------------------------------
# Heuristic merchant
# ---------------------------------------------------------------------------


def heuristic_merchant(description: str) -> str:
    """Canonical merchant guess from a raw statement description.

    Known chains map to their brand name; otherwise noise tokens and store
    numbers are removed and the first non-generic word is capitalized.
    """

    for pattern, name in MERCHANT_CHAINS:
        if pattern.search(description):
            return name
    s = MERCHANT_NOISE_RE.sub(" ", description.lower())
    s = STORE_NUMBER_RE.sub(" ", s)
    tokens = "".join(ch for ch in s if ch.isalpha() or ch.isspace()).split()
    word = next((t for t in tokens if t not in GENERIC_MERCHANT_WORDS), None)
    return word.capitalize() if word else description.strip()


# ---------------------------------------------------------------------------
# OpenAI collaborator
# ---------------------------------------------------------------------------

_INSTRUCTIONS = (
    "You normalize merchants and categorize bank transactions. "
    "Return JSON with an array 'items' matching the inputs order. "
    "Each item has: merchant (canonical brand name, e.g. \"Walmart\"), "
    f"category (one of: {', '.join(CATEGORIES)}), confidence (0..1). "
    "Be conservative and avoid overfitting."
)


def build_response_format() -> dict[str, Any]:
    """Strict JSON schema for the Responses API ``text.format`` parameter."""
    return {
        "type": "json_schema",
        "name": "transaction_enrichment",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "merchant": {"type": ["string", "null"]},
                            "category": {"type": "string", "enum": list(CATEGORIES)},
                            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                        },
                        "required": ["merchant", "category", "confidence"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["items"],
            "additionalProperties": False,
        },
    }


def _extract_response_json_mapping(resp: Any) -> Mapping[str, Any]:
    """Decode the JSON mapping from a Responses API result.

    Prefers ``resp.output_text`` and falls back to
    ``resp.output[0].content[0].text``. Raises ``ValueError`` when no text is
    found or it is not valid JSON.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        output = getattr(resp, "output", None) or []
        content = getattr(output[0], "content", None) if output else None
        if content:
            candidate = getattr(content[0], "text", None)
            if isinstance(candidate, str):
                text = candidate
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError("Model output was not valid JSON per the requested schema") from e
    if not isinstance(decoded, Mapping):
        raise ValueError("Model output must be a JSON object")
    return decoded


def _create_client() -> OpenAI:
    return OpenAI()


class OpenAIEnricher:
    """Enrichment collaborator backed by the OpenAI Responses API."""

    def __init__(self, *, model: str = "gpt-4o-mini", client: OpenAI | None = None) -> None:
        self.model = model
        self._client = client

    def classify(self, entries: Sequence[EnrichmentEntry]) -> list[EnrichmentSuggestion]:
        if not entries:
            return []
        client = self._client or _create_client()
        payload = {
            "inputs": [
                {"description": e.description, "merchant": e.heuristic_merchant} for e in entries
            ]
        }
        t0 = time.perf_counter()
        resp = client.responses.create(
            model=self.model,
            instructions=_INSTRUCTIONS,
            input=json.dumps(payload, ensure_ascii=False),
            text={"format": build_response_format()},
        )
        decoded = _extract_response_json_mapping(resp)
        raw_items = decoded.get("items")
        if not isinstance(raw_items, list):
            raise ValueError("Model output is missing the 'items' array")

        out: list[EnrichmentSuggestion] = []
        for item in raw_items[: len(entries)]:
            try:
                out.append(EnrichmentSuggestion.model_validate(item))
            except ValidationError:
                out.append(EnrichmentSuggestion())
        _logger.info(
            "enrichment:openai_done entries=%d items=%d latency_ms=%.2f",
            len(entries),
            len(out),
            (time.perf_counter() - t0) * 1000.0,
        )
        return out


def build_enricher(settings: ImportSettings, *, api_key: str | None) -> Enricher:
    """Pick the collaborator for ``settings.enrichment``.

    ``auto`` uses OpenAI only when an API key is available.
    """

    if settings.enrichment == "off":
        return NullEnricher()
    if settings.enrichment == "auto" and not api_key:
        return NullEnricher()
    return OpenAIEnricher(model=settings.openai_model)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def _classify_with_timeout(
    enricher: Enricher, entries: list[EnrichmentEntry], timeout: float
) -> list[EnrichmentSuggestion]:
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="si-enrich")
    try:
        future = pool.submit(enricher.classify, entries)
        return future.result(timeout=timeout)
    finally:
        # Do not wait for a timed-out call; the worker thread finishes on its own.
        pool.shutdown(wait=False, cancel_futures=True)


def enrich_transactions(
    rows: Sequence[ImportableTransaction],
    enricher: Enricher,
    *,
    batch_limit: int = 200,
    timeout: float = 15.0,
    apply_suggested_category: bool = False,
) -> list[ImportableTransaction]:
    """Annotate rows with merchant and category suggestions.

    Unique, non-empty descriptions (first ``batch_limit`` in row order) are
    sent to ``enricher``. With ``apply_suggested_category`` a suggestion
    replaces a row's category only when it is unset or the default.
    """

    unique = list(dict.fromkeys(tx.description for tx in rows if tx.description))
    entries = [
        EnrichmentEntry(description=d, heuristic_merchant=heuristic_merchant(d))
        for d in unique[:batch_limit]
    ]

    suggestions: list[EnrichmentSuggestion] = []
    if entries:
        try:
            suggestions = _classify_with_timeout(enricher, entries, timeout)
        except FutureTimeout:
            _logger.warning(
                "enrichment:timeout entries=%d timeout_sec=%.1f", len(entries), timeout
            )
        except Exception as exc:  # noqa: BLE001 - enrichment must never fail the import
            _logger.warning("enrichment:failed entries=%d error=%s", len(entries), exc)

    by_description: dict[str, EnrichmentSuggestion] = {
        entry.description: suggestion for entry, suggestion in zip(entries, suggestions, strict=False)
    }

    out: list[ImportableTransaction] = []
    for tx in rows:
        fallback = heuristic_merchant(tx.description)
        s = by_description.get(tx.description)
        if s is None:
            out.append(replace(tx, merchant_canonical=fallback))
            continue
        category = tx.category
        if apply_suggested_category and s.category and category in (None, DEFAULT_CATEGORY):
            category = s.category
        out.append(
            replace(
                tx,
                merchant_canonical=s.merchant or fallback,
                category_suggested=s.category,
                category_confidence=s.confidence,
                category=category,
            )
        )
    return out


__all__ = [
    "EnrichmentEntry",
    "Enricher",
    "NullEnricher",
    "OpenAIEnricher",
    "heuristic_merchant",
    "build_response_format",
    "build_enricher",
    "enrich_transactions",
]
