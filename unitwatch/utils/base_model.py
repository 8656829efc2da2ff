import re
from functools import cache
from typing import Any

from pydantic import BaseModel as PydanticBaseModel


_ARGS_BLOCK = re.compile(
    r'\n\s*Args:\s*\n(.*?)(?:\n\s*\n|\n\s*[A-Z][a-z]+:|\Z)',
    re.DOTALL,
)
_ARG_LINE = re.compile(r'^\s*(\w+):\s*(.*)$')


@cache
def _docstring_arg_descriptions(model_cls: type) -> dict[str, str]:
    """Collect `name: description` pairs from the Args block of a docstring.

    Continuation lines are folded into the preceding entry.
    """
    docstring = model_cls.__doc__ or ''
    block = _ARGS_BLOCK.search(docstring)
    if not block:
        return {}

    descriptions: dict[str, list[str]] = {}
    current = None
    for line in block.group(1).split('\n'):
        match = _ARG_LINE.match(line)
        if match:
            current = match.group(1)
            descriptions[current] = [match.group(2).strip()]
        elif current and line.strip():
            descriptions[current].append(line.strip())

    return {
        name: ' '.join(part for part in parts if part)
        for name, parts in descriptions.items()
    }


class BaseModel(PydanticBaseModel):
    """Project-wide pydantic base.

    Field descriptions missing from `Field(...)` are filled in from the
    Args block of the class docstring, and `to_json_dict` gives the
    JSON-ready mapping every outer surface serializes.
    """

    def model_post_init(self, __context: Any) -> None:
        super().model_post_init(__context)
        fields = self.__class__.model_fields
        for name, text in _docstring_arg_descriptions(self.__class__).items():
            field_info = fields.get(name)
            if field_info is not None and field_info.description is None:
                field_info.description = text or None

    def to_json_dict(self) -> dict[str, Any]:
        """Dump the model with datetimes and enums rendered as JSON values.
        """
        return self.model_dump(mode='json')
