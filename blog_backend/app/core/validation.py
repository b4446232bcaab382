from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, MutableMapping, Sequence

from pydantic import BaseModel

# Same character set express-validator / validator.js escape() rewrites.
_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        '"': "&quot;",
        "'": "&#x27;",
        "<": "&lt;",
        ">": "&gt;",
        "/": "&#x2F;",
        "\\": "&#x5C;",
        "`": "&#96;",
    }
)

ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def escape(value: str) -> str:
    return value.translate(_ESCAPES)


def is_valid_id(value: str) -> bool:
    return bool(ID_PATTERN.match(value))


class Violation(BaseModel):
    location: Literal["body", "params"]
    field: str
    message: str
    value: str
    kind: Literal["field", "not_found"] = "field"


class Length:
    def __init__(self, min: int = 0, max: int | None = None, message: str = "Invalid value") -> None:
        self.min = min
        self.max = max
        self.message = message

    def check(self, value: str) -> str | None:
        if len(value) < self.min or (self.max is not None and len(value) > self.max):
            return self.message
        return None


class IdShape:
    """Identifier must look like a store id; stops the chain when it does not."""

    def __init__(self, message: str) -> None:
        self.message = message

    def check(self, value: str) -> str | None:
        return None if is_valid_id(value) else self.message


class Exists:
    def __init__(self, predicate: Callable[[str], Awaitable[bool]], message: str) -> None:
        self.predicate = predicate
        self.message = message

    async def check(self, value: str) -> str | None:
        return None if await self.predicate(value) else self.message


Rule = Length | IdShape | Exists


@dataclass
class FieldRules:
    name: str
    location: Literal["body", "params"] = "body"
    escape: bool = False
    rules: Sequence[Rule] = field(default_factory=list)


class Validator:
    """Runs per-field rule chains in declaration order and collects violations."""

    def __init__(self, *fields: FieldRules, only_first: bool = False) -> None:
        self.fields = fields
        self.only_first = only_first

    async def validate(self, values: MutableMapping[str, Any], only_first: bool | None = None) -> list[Violation]:
        """Validate ``values`` in place.

        ``only_first`` keeps at most one violation per field; ``None`` uses the
        validator's own setting.

        Escaped fields are rewritten in ``values`` before any rule runs, so
        callers always see the transformed text whether or not it passed.
        """
        first_only = self.only_first if only_first is None else only_first
        violations: list[Violation] = []
        for rules in self.fields:
            raw = values.get(rules.name)
            value = "" if raw is None else str(raw)
            if rules.escape:
                value = escape(value)
            values[rules.name] = value

            for rule in rules.rules:
                if isinstance(rule, Exists):
                    message = await rule.check(value)
                    kind = "not_found"
                else:
                    message = rule.check(value)
                    kind = "not_found" if isinstance(rule, IdShape) else "field"
                if message is None:
                    continue
                violations.append(
                    Violation(location=rules.location, field=rules.name, message=message, value=value, kind=kind)
                )
                if first_only or isinstance(rule, IdShape):
                    break
        return violations
