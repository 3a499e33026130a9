from courier._api import arequest as arequest, get as get, post as post, request as request
from courier._cache import lookup as lookup, store as store
from courier._codec import (
    MULTIPART_BOUNDARY as MULTIPART_BOUNDARY,
    classify_binary as classify_binary,
    decode_content as decode_content,
    encode_body as encode_body,
    encode_query as encode_query,
    merge_params as merge_params,
)
from courier._config import (
    Settings as Settings,
    configure as configure,
    get_default_settings as get_default_settings,
    override as override,
    settings as settings,
)
from courier._dispatcher import Handle as Handle, normalize_request as normalize_request
from courier._exceptions import (
    Aborted as Aborted,
    CallbackError as CallbackError,
    ConnectError as ConnectError,
    CourierError as CourierError,
    DecodeError as DecodeError,
    EmptyResponseError as EmptyResponseError,
    FilterError as FilterError,
    HTTPError as HTTPError,
    RequestTimeout as RequestTimeout,
    TransportUnavailable as TransportUnavailable,
    is_timeout_like as is_timeout_like,
)
from courier._headers import Headers as Headers
from courier._keygen import cache_key as cache_key
from courier._models import (
    AbortReason as AbortReason,
    CacheEntry as CacheEntry,
    ClientConfig as ClientConfig,
    Request as Request,
    Response as Response,
)
from courier._policies import CachePolicy as CachePolicy, normalize_cache_spec as normalize_cache_spec
from courier._registry import (
    ClientRegistry as ClientRegistry,
    register_transport as register_transport,
    registry as registry,
    resolve_transport as resolve_transport,
)
from courier._serializers import (
    BaseSerializer as BaseSerializer,
    MsgpackSerializer as MsgpackSerializer,
    PickleSerializer as PickleSerializer,
)
from courier._storages import (
    BaseStore as BaseStore,
    FileStore as FileStore,
    InMemoryStore as InMemoryStore,
    default_store as default_store,
    shared_store as shared_store,
)
from courier._transports import (
    BaseTransport as BaseTransport,
    CurlOutputParser as CurlOutputParser,
    CurlTransport as CurlTransport,
    Exchange as Exchange,
    HttpxTransport as HttpxTransport,
    MockTransport as MockTransport,
)

__all__ = (
    # Call surface
    "request",
    "arequest",
    "get",
    "post",
    "Handle",
    "normalize_request",
    ## Configuration
    "Settings",
    "settings",
    "configure",
    "override",
    "get_default_settings",
    ## Models
    "AbortReason",
    "Request",
    "Response",
    "CacheEntry",
    "ClientConfig",
    "Headers",
    ## Errors
    "CourierError",
    "ConnectError",
    "EmptyResponseError",
    "HTTPError",
    "RequestTimeout",
    "FilterError",
    "DecodeError",
    "TransportUnavailable",
    "CallbackError",
    "Aborted",
    "is_timeout_like",
    # Codec
    "MULTIPART_BOUNDARY",
    "encode_query",
    "merge_params",
    "encode_body",
    "classify_binary",
    "decode_content",
    # Cache
    "CachePolicy",
    "normalize_cache_spec",
    "cache_key",
    "lookup",
    "store",
    ## Storages
    "BaseStore",
    "InMemoryStore",
    "FileStore",
    "shared_store",
    "default_store",
    ## Serializers
    "BaseSerializer",
    "PickleSerializer",
    "MsgpackSerializer",
    # Transports
    "BaseTransport",
    "Exchange",
    "HttpxTransport",
    "CurlTransport",
    "CurlOutputParser",
    "MockTransport",
    "ClientRegistry",
    "registry",
    "register_transport",
    "resolve_transport",
)

__version__ = "0.1.0"
