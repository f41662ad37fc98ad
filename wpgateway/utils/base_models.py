# -*- coding: utf-8 -*-
"""Location: ./wpgateway/utils/base_models.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Shared pydantic base class for wire types.

The MCP wire format uses camelCase field names (``inputSchema``,
``isError``, ``serverInfo``) while Python code uses snake_case. Models that
extend :class:`BaseModelWithConfigDict` accept either spelling on input and
emit camelCase when dumped with ``by_alias=True``.
"""

# Standard
from typing import Any, Dict

# Third-Party
from pydantic import BaseModel, ConfigDict


def to_camel_case(s: str) -> str:
    """Convert a snake_case name to camelCase.

    Args:
        s (str): A snake_case identifier.

    Returns:
        str: The camelCase identifier.

    Examples:
        >>> to_camel_case("input_schema")
        'inputSchema'
        >>> to_camel_case("is_error")
        'isError'
        >>> to_camel_case("single")
        'single'
        >>> to_camel_case("")
        ''
    """
    return "".join(word.capitalize() if i else word for i, word in enumerate(s.split("_")))


class BaseModelWithConfigDict(BaseModel):
    """Base model that serializes to camelCase.

    Examples:
        >>> class ToolListing(BaseModelWithConfigDict):
        ...     next_cursor: str = "abc"
        >>> ToolListing().model_dump(by_alias=True)
        {'nextCursor': 'abc'}
        >>> ToolListing(nextCursor="x").next_cursor
        'x'
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel_case,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    def to_dict(self, use_alias: bool = True) -> Dict[str, Any]:
        """Dump the model for the wire, dropping unset optional fields.

        Args:
            use_alias (bool): Emit camelCase names (default True).

        Returns:
            Dict[str, Any]: JSON-ready dictionary.
        """
        return self.model_dump(by_alias=use_alias, exclude_none=True)
