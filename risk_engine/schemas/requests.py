"""
Request Metadata

Transport-neutral description of an inbound API call, as seen by the
request security gate.
"""

from typing import Optional

from pydantic import BaseModel, Field


class RequestMeta(BaseModel):
    """Credential, signature and payload of an inbound request."""
    api_key: Optional[str] = Field(
        default=None,
        description="Caller's API key",
    )
    signature: Optional[str] = Field(
        default=None,
        description="Signature header in the form t=<unix>,v1=<hex>",
    )
    method: str = Field(default="POST")
    path: str = Field(default="/")
    body: bytes = Field(default=b"")

    def signing_payload(self, timestamp: int) -> bytes:
        """Bytes covered by the signature."""
        prefix = f"{timestamp}.{self.method.upper()}.{self.path}.".encode()
        return prefix + self.body
