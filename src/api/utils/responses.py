"""JSON response class using orjson serialization.

``ORJSONResponse`` is the default response class of the application, so
every endpoint and every error handler renders through orjson, which
natively handles datetime and enum values.
"""

from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """FastAPI Response class using orjson for JSON serialization."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        """Render the content as JSON using orjson.

        Pydantic models are dumped with their aliases, so camelCase wire
        models keep their field names when returned directly.
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json", by_alias=True)

        return orjson.dumps(content, option=orjson.OPT_SORT_KEYS)
