"""Test helpers to stub the OpenAI Responses client used by ai_parser.py.

The stub pulls the raw message out of the user content (between the
``BEGIN_MESSAGE``/``END_MESSAGE`` markers) and hands it to a test-supplied
``decide`` callable, which returns the JSON object the model would answer
with, or raises to simulate an SDK failure.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

BEGIN = "BEGIN_MESSAGE\n"
END = "\nEND_MESSAGE"


def extract_message(user_content: str) -> str:
    b = user_content.find(BEGIN)
    e = user_content.rfind(END)
    if b == -1 or e == -1 or e <= b:
        raise AssertionError("ai_parser: user content missing delimited message block")
    return user_content[b + len(BEGIN) : e]


class _Resp:
    def __init__(self, output_text: str) -> None:
        self.output_text = output_text


class OpenAIStub:
    """Minimal stand-in for ``openai.OpenAI`` exposing ``responses.create``.

    Parameters
    ----------
    decide:
        Receives the raw message and returns the answer mapping, or a string
        to be returned verbatim as ``output_text``.
    calls_out:
        Appended with each call's kwargs for argument assertions.
    """

    def __init__(
        self,
        decide: Callable[[str], dict[str, Any] | str],
        calls_out: list[dict[str, Any]] | None = None,
        **client_kwargs: Any,
    ) -> None:
        self._decide = decide
        self.calls = calls_out if calls_out is not None else []
        self.client_kwargs = client_kwargs

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs: Any) -> _Resp:
                self._outer.calls.append(kwargs)
                answer = self._outer._decide(extract_message(kwargs["input"]))
                text = answer if isinstance(answer, str) else json.dumps(answer)
                return _Resp(text)

        self.responses = _Responses(self)


def expense_answer(
    *,
    amount: float,
    store: str,
    confidence: float = 0.9,
    description: str | None = "Purchase",
    category: str | None = "Other",
) -> dict[str, Any]:
    return {
        "is_expense": True,
        "amount": amount,
        "store": store,
        "description": description,
        "category": category,
        "confidence": confidence,
    }


NOT_EXPENSE_ANSWER: dict[str, Any] = {
    "is_expense": False,
    "amount": None,
    "store": None,
    "description": None,
    "category": None,
    "confidence": 0.1,
}
