"""
Well-known capability namespaces.

Capability strings are opaque to wascap; these are the conventional ones
recognized by capability providers, with friendly names for reports.
"""

MESSAGING = "wascc:messaging"
KEY_VALUE = "wascc:keyvalue"
HTTP_CLIENT = "wascc:http_client"
HTTP_SERVER = "wascc:http_server"
BLOB = "wascc:blobstore"
EVENTSTREAMS = "wascc:eventstreams"
EXTRAS = "wascc:extras"
LOGGING = "wascc:logging"

CAPABILITY_NAMES = {
    MESSAGING: "Messaging",
    KEY_VALUE: "K/V Store",
    HTTP_CLIENT: "HTTP Client",
    HTTP_SERVER: "HTTP Server",
    BLOB: "Blob Store",
    EVENTSTREAMS: "Event Streams",
    EXTRAS: "Extras",
    LOGGING: "Logging",
}


def capability_name(cap: str) -> str:
    """Friendly name for a capability, or the raw namespace if unknown."""
    return CAPABILITY_NAMES.get(cap, cap)
