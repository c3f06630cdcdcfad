"""Flat {NAME} placeholder substitution.

No escaping, no loops, no conditionals. Blocks are rendered first and
their text is then passed as a value into the device template.
"""
import re
from typing import Any, Iterator, Mapping

PLACEHOLDER_NAME = re.compile(r"^[A-Z][A-Z0-9_]*$")
PLACEHOLDER_TOKEN = re.compile(r"\{([A-Z][A-Z0-9_]*)\}")


def render(template: str, values: Mapping[str, str]) -> str:
    """Replace every {KEY} in template with values[KEY].

    Placeholders without a value are left as they are. All keys are
    substituted in a single pass, so a value containing {OTHER} text is
    never expanded again.
    """
    if not values:
        return template

    tokens = {"{" + str(key) + "}": str(value) for key, value in values.items()}
    pattern = re.compile("|".join(re.escape(token) for token in tokens))

    def _substitute(match: re.Match) -> str:
        return tokens[match.group(0)]

    return pattern.sub(_substitute, template)


def find_placeholders(text: str) -> list[str]:
    """Names of the {NAME} tokens still present in text, in order, unique."""
    seen = []
    for name in PLACEHOLDER_TOKEN.findall(text):
        if name not in seen:
            seen.append(name)
    return seen


class TemplateValues(Mapping[str, str]):
    """Validated placeholder map.

    Usage:
        values = TemplateValues(SERVER_ID=36, VLAN_ID=101)
        values.set("LACP_CONFIG", render(blocks.lacp, role_values))
        text = render(template, values)
    """

    def __init__(self, **values: Any):
        self._values: dict[str, str] = {}
        for name, value in values.items():
            self.set(name, value)

    def set(self, name: str, value: Any) -> "TemplateValues":
        if not PLACEHOLDER_NAME.match(name):
            raise ValueError(f"Invalid placeholder name: {name!r}")
        self._values[name] = "" if value is None else str(value)
        return self

    def update(self, values: Mapping[str, Any]) -> "TemplateValues":
        for name, value in values.items():
            self.set(name, value)
        return self

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"TemplateValues({self._values!r})"
