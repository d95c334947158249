"""Wire-level constants for the Microsoft Graph and Azure RM backends."""

# Supported backends
BACKENDS = ("graph", "azure")

# HTTP methods the executors know how to send
READ_METHODS = ("get", "delete")
BODY_METHODS = ("post", "put", "patch")
SUPPORTED_METHODS = READ_METHODS + BODY_METHODS

# Continuation cursors and collection metadata
GRAPH_NEXT_LINK = "@odata.nextLink"
GRAPH_CONTEXT = "@odata.context"
ODATA_PREFIX = "@odata."
AZURE_NEXT_LINK = "nextLink"
COLLECTION_KEY = "value"

# Keys added by the paginator to an accumulated collection
TOTAL_COUNT_KEY = "totalCount"
FETCHED_AT_KEY = "fetchedAt"

# Graph DELETE with an empty body is normalized to this status
NO_CONTENT_STATUS = "Success (No Content)"
