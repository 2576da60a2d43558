"""Internal constants shared across the library."""

USER_AGENT = "pymotu"
DEFAULT_PORT = 80
DATASTORE_PATH = "/datastore"
HEALTH_PATH = "/apiversion"

#: Per-subscriber buffer of the update bus.
DEFAULT_UPDATE_BUFFER = 64

#: Statuses the datastore answers a successful PATCH with.
WRITE_SUCCESS_STATUSES: frozenset[int] = frozenset({200, 204})

#: Multipart form field carrying the JSON write payload.
WRITE_FORM_FIELD = "json"

#: Root segment of the bank/channel part of the datastore.
EXT_ROOT = "ext"
