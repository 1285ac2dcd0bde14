import unicodedata
from collections.abc import Sequence
from datetime import datetime, UTC
from typing import Any, TypeVar

T = TypeVar("T")

COMPANY_QF = 2
COMPANY_FM = 3
SHIPPING_SKU = "WEBSHIP"
TWOSHIP_SKU = "2SHIP_DELIVERY"
ODOO_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
XID_MODULE = "__export__"
SHOPIFY_GID_PREFIX = "gid://shopify/"


class SyncError(Exception):
    pass


class ConfigurationError(SyncError):
    pass


class RemoteError(SyncError):
    def __init__(self, message: str, *, status_code: int | None = None, response_body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    def __str__(self) -> str:
        text = super().__str__()
        if self.status_code is not None:
            text += f" [HTTP {self.status_code}]"
        if self.response_body:
            text += f"\nResponse: {self.response_body}"
        return text


class OdooRpcError(RemoteError):
    pass


class MasterDataError(RemoteError):
    pass


class ShopifyApiError(RemoteError):
    def __init__(
        self,
        message: str,
        *,
        reason: str = "request",
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, response_body=response_body)
        self.reason = reason


class SearchExpectationError(SyncError):
    def __init__(self, message: str, *, model: str = "", count: int = 0) -> None:
        super().__init__(message)
        self.model = model
        self.count = count


class NotFoundError(SearchExpectationError):
    pass


class AmbiguousMatchError(SearchExpectationError):
    pass


class ValidationError(SyncError):
    pass


class InvalidXidError(ValidationError):
    pass


class InvalidSourceIdError(ValidationError):
    pass


class ModelMismatchError(SyncError):
    def __init__(self, xid: str, expected: str, found: str) -> None:
        super().__init__(f"model mismatch for xid {xid}, expected {expected}, got {found}")
        self.xid = xid
        self.expected = expected
        self.found = found


class StaleReferenceError(SyncError):
    def __init__(self, message: str, *, model: str, xid: str) -> None:
        super().__init__(message)
        self.model = model
        self.xid = xid


class RecordLookupError(SyncError, LookupError):
    pass


class PartialSyncError(SyncError):
    def __init__(self, message: str, *, record_id: int, errors: Sequence[Exception], rolled_back: bool = False) -> None:
        super().__init__(message)
        self.record_id = record_id
        self.errors = list(errors)
        self.rolled_back = rolled_back

    def __str__(self) -> str:
        text = super().__str__()
        for error in self.errors:
            text += f"\n- {error}"
        return text


class ConfirmationError(SyncError):
    pass


class CompensationError(SyncError):
    def __init__(self, message: str, *, original: Exception, compensation: Exception) -> None:
        super().__init__(message)
        self.original = original
        self.compensation = compensation

    def __str__(self) -> str:
        return f"{super().__str__()}\nOriginal error: {self.original}\nCompensation error: {self.compensation}"


class DeadlineExceededError(SyncError):
    def __init__(self, deadline: float) -> None:
        super().__init__(f"request did not finish within {deadline:g}s")
        self.deadline = deadline


class PathError(SyncError, KeyError):
    def __init__(self, path: Sequence[str | int], segment: str | int, reason: str) -> None:
        super().__init__(f"cannot traverse {list(path)!r} at {segment!r}: {reason}")
        self.path = list(path)
        self.segment = segment

    def __str__(self) -> str:
        return self.args[0]


def shopify_gid_parts(shopify_gid: str) -> tuple[str, str]:
    parts = shopify_gid.split("/")
    if len(parts) != 5:
        raise InvalidSourceIdError(f"invalid Shopify ID: {shopify_gid}")
    id_number = parts[4].split("?")[0]
    object_type = parts[3].lower()
    if not id_number or not object_type:
        raise InvalidSourceIdError(f"invalid Shopify ID: {shopify_gid}")
    return object_type, id_number


def shopify_gid_to_xid(shopify_gid: str) -> str:
    object_type, id_number = shopify_gid_parts(shopify_gid)
    return f"{XID_MODULE}.shopify_{object_type}_{id_number}"


def shopify_gid_number(shopify_gid: str) -> str:
    return shopify_gid.rsplit("/", 1)[-1]


def make_shopify_gid(object_type: str, id_number: int | str) -> str:
    return f"{SHOPIFY_GID_PREFIX}{object_type}/{id_number}"


def normalize_text(value: str | None) -> str:
    decomposed = unicodedata.normalize("NFKD", value or "")
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return " ".join(stripped.split()).casefold()


def format_odoo_datetime(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime(ODOO_DATE_FORMAT)


def utc_now() -> datetime:
    return datetime.now(UTC)


def traverse(data: Any, path: Sequence[str | int], expected_type: type[T]) -> T:
    current = data
    for segment in path:
        if isinstance(segment, int):
            if not isinstance(current, list):
                raise PathError(path, segment, f"expected a list, got {type(current).__name__}")
            if segment >= len(current) or segment < -len(current):
                raise PathError(path, segment, f"index out of range for length {len(current)}")
            current = current[segment]
        else:
            if not isinstance(current, dict):
                raise PathError(path, segment, f"expected an object, got {type(current).__name__}")
            if segment not in current:
                raise PathError(path, segment, "missing key")
            current = current[segment]
    if expected_type is int and isinstance(current, float) and current.is_integer():
        current = int(current)
    # bool is an int subclass
    if expected_type in (int, float) and isinstance(current, bool):
        raise PathError(path, path[-1] if path else "", f"expected {expected_type.__name__}, got bool")
    if expected_type is float and isinstance(current, int):
        current = float(current)
    if not isinstance(current, expected_type):
        raise PathError(path, path[-1] if path else "", f"expected {expected_type.__name__}, got {type(current).__name__}")
    return current


def traverse_or(data: Any, path: Sequence[str | int], fallback: T) -> T:
    try:
        return traverse(data, path, type(fallback))
    except PathError:
        return fallback


def many2one_id(value: Any) -> int:
    """Odoo returns many2one fields as ``[id, display_name]`` or ``False``."""
    return traverse_or(value, [0], 0)
