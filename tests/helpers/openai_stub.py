"""Test helpers to stub the OpenAI Responses client used by enrichment.py.

The stub parses the JSON ``input`` payload (``{"inputs": [...]}``) and returns
one item per input. Tests provide a ``decide`` callable mapping each input
entry to a ``(merchant, category, confidence)`` tuple.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape for ``enrichment.py``.

    Parameters
    ----------
    decide:
        Receives an input entry (``{"description", "merchant"}``) and returns
        the item fields for it.
    calls_out:
        Appended with each call's kwargs for lightweight assertions.
    sleep_per_call:
        Optional delay before responding (timeout tests).
    """

    def __init__(
        self,
        decide: Callable[[dict[str, Any]], tuple[str | None, str, float]],
        calls_out: list[dict[str, Any]] | None = None,
        sleep_per_call: float = 0.0,
    ) -> None:
        self._decide = decide
        self._calls = calls_out if calls_out is not None else []
        self._sleep = sleep_per_call

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                if self._outer._sleep > 0:
                    time.sleep(self._outer._sleep)
                entries = json.loads(kwargs["input"])["inputs"]
                items = []
                for entry in entries:
                    merchant, category, confidence = self._outer._decide(entry)
                    items.append(
                        {"merchant": merchant, "category": category, "confidence": confidence}
                    )

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = json.dumps({"items": items})
                return resp

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls
