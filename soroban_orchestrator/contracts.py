"""
contracts.py
Binds a contract's function table to the orchestrator.

A ``ContractSpec`` lists each callable function with its parameter types
and an optional converter for the decoded return value. ``ContractClient``
encodes arguments by declared type, runs the call and converts the result.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from soroban_orchestrator import codec
from soroban_orchestrator.exceptions import ClassifiedError, ValidationError
from soroban_orchestrator.orchestrator import CallRequest, ContractCallOrchestrator, run_in_background
from soroban_orchestrator.status import ObserverLike


@dataclass(frozen=True)
class FunctionSignature:
    name: str
    params: Tuple[Tuple[str, str], ...] = ()
    result: Optional[Callable[[Any], Any]] = None

    def encode_arguments(self, values: Sequence[Any]) -> list:
        if len(values) != len(self.params):
            raise ValidationError(
                f"{self.name} expects {len(self.params)} argument(s), got {len(values)}",
                field=self.name,
                value=list(values),
            )
        return [codec.encode(value, type_name) for value, (_, type_name) in zip(values, self.params)]

    def convert_result(self, value: Any) -> Any:
        if self.result is None or value is None:
            return value
        return self.result(value)


def fn(name: str, *params: Tuple[str, str], result: Optional[Callable[[Any], Any]] = None) -> FunctionSignature:
    return FunctionSignature(name=name, params=tuple(params), result=result)


@dataclass(frozen=True)
class ContractSpec:
    name: str
    default_contract_id: str
    functions: Mapping[str, FunctionSignature] = field(default_factory=dict)

    @classmethod
    def of(cls, name: str, default_contract_id: str, *signatures: FunctionSignature) -> "ContractSpec":
        return cls(name, default_contract_id, {signature.name: signature for signature in signatures})

    def signature(self, function_name: str) -> FunctionSignature:
        try:
            return self.functions[function_name]
        except KeyError:
            raise ValidationError(
                f"{self.name} contract has no function {function_name!r}", field="function_name", value=function_name
            ) from None


@dataclass(frozen=True)
class ContractResult:
    value: Any
    hash: str


class ContractClient:
    """Typed front end for one deployed contract."""

    spec: ContractSpec

    def __init__(
        self,
        orchestrator: ContractCallOrchestrator,
        spec: Optional[ContractSpec] = None,
        contract_id: Optional[str] = None,
    ):
        if spec is not None:
            self.spec = spec
        self.orchestrator = orchestrator
        self.contract_id = contract_id or self.spec.default_contract_id

    def build_request(self, caller: Optional[str], function_name: str, *values: Any) -> CallRequest:
        signature = self.spec.signature(function_name)
        arguments = signature.encode_arguments(values)
        return CallRequest.create(self.contract_id, function_name, arguments, caller)

    def call(self, caller: Optional[str], function_name: str, *values: Any, observer: ObserverLike = None) -> ContractResult:
        # Encoding and result conversion both run inside the guarded call, so
        # bad input or an unexpected result shape still ends in FAILED.
        outcome = self.orchestrator.invoke_deferred(
            function_name,
            lambda: self.build_request(caller, function_name, *values),
            observer,
            convert=lambda value: self.spec.signature(function_name).convert_result(value),
        )
        return ContractResult(value=outcome.return_value, hash=outcome.transaction_hash)

    def call_in_background(
        self,
        caller: Optional[str],
        function_name: str,
        *values: Any,
        observer: ObserverLike = None,
        on_success: Optional[Callable[[ContractResult], None]] = None,
        on_error: Optional[Callable[[ClassifiedError], None]] = None,
    ) -> threading.Thread:
        """Run ``call`` on a daemon thread and report through the callbacks."""
        return run_in_background(
            f"{self.spec.name}-{function_name}",
            lambda: self.call(caller, function_name, *values, observer=observer),
            on_success,
            on_error,
        )


def as_int(value: Any) -> int:
    return int(value)


def as_int_list(value: Any) -> list:
    return [int(item) for item in value]


def as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def field_map(record: Dict[Any, Any]) -> Dict[str, Any]:
    """Struct results decode to dicts keyed by symbol; normalize keys to str."""
    return {as_text(key): value for key, value in record.items()}
