"""Domain models for the operation planner."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class OperationKind(Enum):
    STAKE = "stake"
    UNSTAKE = "unstake"
    LEND = "lend"
    WITHDRAW = "withdraw"
    ADD_LIQUIDITY = "addLiquidity"
    REMOVE_LIQUIDITY = "removeLiquidity"

    @property
    def frees_capital(self) -> bool:
        return self in (
            OperationKind.UNSTAKE,
            OperationKind.WITHDRAW,
            OperationKind.REMOVE_LIQUIDITY,
        )

    @staticmethod
    def parse(value: str) -> "OperationKind":
        normalized = value.strip().lower()
        for kind in OperationKind:
            if kind.value.lower() == normalized:
                return kind
        raise ValueError(f"Unsupported operation kind: {value}")


class ProtocolCategory(Enum):
    STAKING = "staking"
    LENDING = "lending"
    LIQUIDITY = "liquidity"
    WALLET = "wallet"


# Operation used to grow and to shrink a position, per category. A missing
# increase means the category needs no transaction to receive capital.
CATEGORY_OPERATIONS: Dict[ProtocolCategory, Tuple[Optional[OperationKind], OperationKind]] = {
    ProtocolCategory.STAKING: (OperationKind.STAKE, OperationKind.UNSTAKE),
    ProtocolCategory.LENDING: (OperationKind.LEND, OperationKind.WITHDRAW),
    ProtocolCategory.LIQUIDITY: (OperationKind.ADD_LIQUIDITY, OperationKind.REMOVE_LIQUIDITY),
    ProtocolCategory.WALLET: (None, OperationKind.WITHDRAW),
}


@dataclass(frozen=True)
class ProtocolSpec:
    name: str
    category: ProtocolCategory
    contract: str
    functions: Tuple[Tuple[OperationKind, str], ...]
    display_precision: int = 4

    def function_for(self, kind: OperationKind) -> Optional[str]:
        for candidate, function_id in self.functions:
            if candidate == kind:
                return function_id
        return None


_STAKING_FUNCTIONS = (
    (OperationKind.STAKE, "::staking::stake"),
    (OperationKind.UNSTAKE, "::staking::unstake"),
)
_STAKING_APT_FUNCTIONS = (
    (OperationKind.STAKE, "::staking::stake_apt"),
    (OperationKind.UNSTAKE, "::staking::unstake_apt"),
)
_LENDING_FUNCTIONS = (
    (OperationKind.LEND, "::lending::supply"),
    (OperationKind.WITHDRAW, "::lending::withdraw"),
)
_ROUTER_FUNCTIONS = (
    (OperationKind.ADD_LIQUIDITY, "::router::add_liquidity"),
    (OperationKind.REMOVE_LIQUIDITY, "::router::remove_liquidity"),
)


class Protocol(Enum):
    """Closed set of protocols the engine can move capital through."""

    NATIVE = ProtocolSpec(
        name="native",
        category=ProtocolCategory.WALLET,
        contract="0x1",
        functions=((OperationKind.WITHDRAW, "::coin::withdraw"),),
    )
    AMNIS = ProtocolSpec(
        name="amnis",
        category=ProtocolCategory.STAKING,
        contract="0x111ae3e5bc816a5e63c2da97d0aa3886519e0cd5e4b046659fa35796bd11542a",
        functions=_STAKING_FUNCTIONS,
    )
    THALA = ProtocolSpec(
        name="thala",
        category=ProtocolCategory.STAKING,
        contract="0xfaf4e633ae9eb31366c9ca24214231760926576c7b625313b3688b5e900731f6",
        functions=_STAKING_APT_FUNCTIONS,
    )
    TORTUGA = ProtocolSpec(
        name="tortuga",
        category=ProtocolCategory.STAKING,
        contract="0x952c1b1fc8eb75ee80f432c9d0a84fcda1d5c7481501a7eca9199f1596a60b53",
        functions=_STAKING_APT_FUNCTIONS,
    )
    DITTO = ProtocolSpec(
        name="ditto",
        category=ProtocolCategory.STAKING,
        contract="0xd11107bdf0d6d7040c6c0bfbdecb6545191fdf13e8d8d259952f53e1713f61b5",
        functions=_STAKING_FUNCTIONS,
    )
    ARIES = ProtocolSpec(
        name="aries",
        category=ProtocolCategory.LENDING,
        contract="0x9770fa9c725cbd97eb50b2be5f7416efdfd1f1554beb0750d4dae4c64e860da3",
        functions=_LENDING_FUNCTIONS,
    )
    ECHELON = ProtocolSpec(
        name="echelon",
        category=ProtocolCategory.LENDING,
        contract="0xf8197c9fa1a397568a47b7a6c5a9b09fa97c8f29f9dcc347232c22e3b24b1f09",
        functions=_LENDING_FUNCTIONS,
    )
    ECHO = ProtocolSpec(
        name="echo",
        category=ProtocolCategory.LENDING,
        contract="0xeab7ea4d635b6b6add79d5045c4a45d8148d88287b1cfa1c3b6a4b56f46839ed",
        functions=_LENDING_FUNCTIONS,
    )
    PANCAKESWAP = ProtocolSpec(
        name="pancakeswap",
        category=ProtocolCategory.LIQUIDITY,
        contract="0xc7efb4076dbe143cbcd98cfaaa929ecfc8f299203dfff63b95ccb6bfe19850fa",
        functions=_ROUTER_FUNCTIONS,
    )
    LIQUIDSWAP = ProtocolSpec(
        name="liquidswap",
        category=ProtocolCategory.LIQUIDITY,
        contract="0x190d44266241744264b964a37b8f09863167a12d3e70cda39376cfb4e3561e12",
        functions=_ROUTER_FUNCTIONS,
    )
    CETUS = ProtocolSpec(
        name="cetus",
        category=ProtocolCategory.LIQUIDITY,
        contract="0x27156bd56eb5637b9adde4d915b596f92d2f28f0ade2eaef48fa73e360e4e8a6",
        functions=(
            (OperationKind.ADD_LIQUIDITY, "::pool::add_liquidity"),
            (OperationKind.REMOVE_LIQUIDITY, "::pool::remove_liquidity"),
        ),
    )

    @property
    def spec(self) -> ProtocolSpec:
        return self.value

    @property
    def category(self) -> ProtocolCategory:
        return self.value.category

    @property
    def is_staking(self) -> bool:
        return self.value.category == ProtocolCategory.STAKING

    @staticmethod
    def lookup(name: str) -> Optional["Protocol"]:
        normalized = name.strip().lower()
        for protocol in Protocol:
            if protocol.value.name == normalized:
                return protocol
        return None


@dataclass(frozen=True)
class Operation:
    sequence: int
    protocol: str
    kind: OperationKind
    amount: float
    target_contract: str
    function_id: str
    amount_in_quote: float = 0.0
    drift_pct: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "sequence": self.sequence,
            "protocol": self.protocol,
            "kind": self.kind.value,
            "amount": self.amount,
            "target_contract": self.target_contract,
            "function_id": self.function_id,
            "amount_in_quote": self.amount_in_quote,
            "drift_pct": self.drift_pct,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Operation":
        return Operation(
            sequence=int(data["sequence"]),
            protocol=str(data["protocol"]),
            kind=OperationKind.parse(str(data["kind"])),
            amount=float(data["amount"]),
            target_contract=str(data.get("target_contract", "")),
            function_id=str(data.get("function_id", "")),
            amount_in_quote=float(data.get("amount_in_quote", 0.0)),
            drift_pct=float(data.get("drift_pct", 0.0)),
        )


@dataclass(frozen=True)
class PlanningIssue:
    protocol: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"protocol": self.protocol, "reason": self.reason}


@dataclass(frozen=True)
class OperationPlan:
    """Ordered operations plus every protocol the planner left out."""

    operations: Tuple[Operation, ...]
    errors: Tuple[PlanningIssue, ...] = ()
    dropped: Tuple[str, ...] = ()
    deferred: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            "operations": [operation.to_dict() for operation in self.operations],
            "errors": [issue.to_dict() for issue in self.errors],
            "dropped": list(self.dropped),
            "deferred": list(self.deferred),
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "OperationPlan":
        return OperationPlan(
            operations=tuple(Operation.from_dict(item) for item in data.get("operations", [])),
            errors=tuple(
                PlanningIssue(protocol=item["protocol"], reason=item["reason"])
                for item in data.get("errors", [])
            ),
            dropped=tuple(data.get("dropped", [])),
            deferred=tuple(data.get("deferred", [])),
        )
