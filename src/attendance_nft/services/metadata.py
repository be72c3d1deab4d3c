"""Token metadata location.

Metadata content lives with an external storage service; the pipeline only
needs a URI that is stable for an (event, attendee) pair so repeated mint
attempts point at the same location.
"""


class TokenUriBuilder:
    """Deterministic token URIs of the form ``{base_uri}/{event_id}/{attendee_id}``."""

    def __init__(self, base_uri: str = "ipfs://placeholder"):
        self.base_uri = base_uri.rstrip("/")

    def build(self, event_id: str, attendee_id: str) -> str:
        return f"{self.base_uri}/{event_id}/{attendee_id}"
