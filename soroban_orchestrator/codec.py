"""
codec.py
Converts native Python values to Soroban SCVals and back.

Contract arguments are declared by type name (``"u64"``, ``"string"``,
``"address"``, ...). When no type is given the type is inferred from the
Python value.
"""

from typing import Any, Callable, Dict, List, Optional

from stellar_sdk import Address, scval
from stellar_sdk import xdr as stellar_xdr


_ENCODERS: Dict[str, Callable[[Any], stellar_xdr.SCVal]] = {
    "address": scval.to_address,
    "string": scval.to_string,
    "symbol": scval.to_symbol,
    "bool": scval.to_bool,
    "u32": scval.to_uint32,
    "i32": scval.to_int32,
    "u64": scval.to_uint64,
    "i64": scval.to_int64,
    "u128": scval.to_uint128,
    "i128": scval.to_int128,
    "bytes": scval.to_bytes,
    "void": lambda value: scval.to_void(),
}

SUPPORTED_TYPES = frozenset(_ENCODERS) | {"vec"}


def _infer_type(value: Any) -> str:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "u64" if value >= 0 else "i64"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (bytes, bytearray)):
        return "bytes"
    if isinstance(value, Address):
        return "address"
    if isinstance(value, (list, tuple)):
        return "vec"
    if value is None:
        return "void"
    raise ValueError(f"cannot infer a contract type for {type(value).__name__} value {value!r}")


def encode(value: Any, type_name: Optional[str] = None) -> stellar_xdr.SCVal:
    """Encode ``value`` as an SCVal; already-encoded SCVals pass through."""
    if isinstance(value, stellar_xdr.SCVal):
        return value
    if type_name is None:
        type_name = _infer_type(value)
    if type_name == "vec":
        return scval.to_vec([encode(item) for item in value])
    encoder = _ENCODERS.get(type_name)
    if encoder is None:
        raise ValueError(f"unsupported contract type {type_name!r}; expected one of {sorted(SUPPORTED_TYPES)}")
    if type_name == "bytes" and isinstance(value, bytearray):
        value = bytes(value)
    return encoder(value)


def decode(value: Any) -> Any:
    """Decode an SCVal (or its base64 XDR) into plain Python values."""
    if value is None:
        return None
    if isinstance(value, str):
        value = stellar_xdr.SCVal.from_xdr(value)

    kind = value.type
    if kind == stellar_xdr.SCValType.SCV_VOID:
        return None
    if kind == stellar_xdr.SCValType.SCV_STRING:
        return scval.from_string(value).decode("utf-8", errors="replace")
    if kind == stellar_xdr.SCValType.SCV_ADDRESS:
        return scval.from_address(value).address
    if kind == stellar_xdr.SCValType.SCV_VEC:
        items = value.vec.sc_vec if value.vec is not None else []
        return [decode(item) for item in items]
    if kind == stellar_xdr.SCValType.SCV_MAP:
        entries = value.map.sc_map if value.map is not None else []
        return {decode(entry.key): decode(entry.val) for entry in entries}
    return scval.to_native(value)


def normalize_arguments(values: Any) -> List[Any]:
    """
    Accept no arguments, a single argument or a sequence of arguments.

    ``None`` means no arguments; lists and tuples are taken in order; any
    other value is a single argument.
    """
    if values is None:
        return []
    if isinstance(values, (list, tuple)):
        return list(values)
    return [values]


def string_to_scval(value: str) -> stellar_xdr.SCVal:
    return encode(value, "string")


def u64_to_scval(value: int) -> stellar_xdr.SCVal:
    return encode(value, "u64")


def address_to_scval(address: str) -> stellar_xdr.SCVal:
    return encode(address, "address")
