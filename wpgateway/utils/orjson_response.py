# -*- coding: utf-8 -*-
"""Location: ./wpgateway/utils/orjson_response.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

JSON response class backed by orjson.

Every JSON-RPC envelope the gateway returns goes through this class, so
datetimes and non-string keys produced by tool handlers serialize without a
custom encoder.
"""

# Standard
from typing import Any

# Third-Party
from fastapi.responses import JSONResponse
import orjson


class ORJSONResponse(JSONResponse):
    """JSONResponse that renders with :func:`orjson.dumps`.

    Examples:
        >>> from datetime import datetime, timezone
        >>> r = ORJSONResponse(content={"at": datetime(2025, 1, 1, tzinfo=timezone.utc), 1: "x"})
        >>> r.body
        b'{"at":"2025-01-01T00:00:00+00:00","1":"x"}'
        >>> r.media_type
        'application/json'
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        """Serialize ``content`` to JSON bytes.

        Args:
            content: Any orjson-serializable value.

        Returns:
            bytes: The encoded body.
        """
        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS)
