"""
Typed response records for the HTTP endpoint.
"""
import json
from dataclasses import dataclass, asdict, fields

from ..security.errors import ProtocolError


@dataclass(frozen=True)
class HelloResponse:
    """Body of ``GET /``."""
    hello: str = "world"

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        """Serialize as compact JSON, e.g. ``{"hello":"world"}``."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, body: str) -> 'HelloResponse':
        """
        Parse a response body, rejecting anything that is not exactly this record.

        Raises:
            ProtocolError: If the body is not JSON or its keys or types differ
        """
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ProtocolError("decode response", cause=e) from e

        expected = {f.name for f in fields(cls)}
        if not isinstance(data, dict) or set(data) != expected:
            raise ProtocolError("decode response", message=f"unexpected body: {body!r}")
        if not all(isinstance(value, str) for value in data.values()):
            raise ProtocolError("decode response", message=f"unexpected value types: {body!r}")
        return cls(**data)
