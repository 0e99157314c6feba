'''
Heuristic gas profiling for compiled contracts.

This is an estimator, not an interpreter: the instruction stream is
synthesized from the artifact size and priced from a fixed cost table.
Real bytecode decoding would replace ``synthesize_operations`` only; the
cost table and aggregation stay the same. Results are advisory.
'''
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..config.settings import Settings, settings as default_settings

# Approximate gas per WASM operation
GAS_COSTS: Dict[str, int] = {
    # Storage operations
    'storage.load': 2100,
    'storage.store': 20000,
    'storage.set': 20000,

    # Memory operations
    'memory.grow': 512,
    'memory.size': 2,
    'memory.copy': 3,
    'memory.fill': 3,

    # Computation
    'i32.add': 3,
    'i32.sub': 3,
    'i32.mul': 5,
    'i32.div': 10,
    'i64.add': 3,
    'i64.sub': 3,
    'i64.mul': 5,
    'i64.div': 10,

    # Comparison
    'i32.eq': 3,
    'i32.ne': 3,
    'i32.lt': 3,
    'i32.gt': 3,

    # Control flow
    'call': 100,
    'call_indirect': 150,
    'br': 10,
    'br_if': 10,
    'return': 0,

    # Events
    'event.emit': 375,
    'log0': 375,
    'log1': 750,
    'log2': 1125,
}
DEFAULT_GAS_COST = 2

FRIENDLY_NAMES = {
    'storage.load': 'Storage Read',
    'storage.store': 'Storage Write',
    'storage.set': 'Storage Update',
    'memory.grow': 'Memory Allocation',
    'memory.copy': 'Memory Copy',
    'memory.fill': 'Memory Fill',
    'call': 'Function Call',
    'call_indirect': 'Dynamic Call',
    'i32.add': 'Integer Addition',
    'i32.sub': 'Integer Subtraction',
    'i32.mul': 'Integer Multiplication',
    'i32.div': 'Integer Division',
    'i32.eq': 'Integer Comparison',
    'i64.add': 'Long Addition',
    'i64.mul': 'Long Multiplication',
    'i64.div': 'Long Division',
    'log0': 'Event Emission',
    'log1': 'Indexed Event',
    'log2': 'Multi-Indexed Event',
}

EVENT_SIZE_THRESHOLD = 500
GAS_CEILING = 100000
GWEI_PER_ETH = 1e9

ECOSYSTEM_TIP = (
    "Stylus contracts benefit from Rust's zero-cost abstractions. "
    "Use iterators and avoid unnecessary allocations."
)


@dataclass
class OperationCost:
    name: str
    opcode: str
    gas_used: int
    percentage_of_total: float
    occurrence_count: int
    category: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "opcode": self.opcode,
            "gasUsed": self.gas_used,
            "percentageOfTotal": self.percentage_of_total,
            "occurrenceCount": self.occurrence_count,
            "category": self.category,
        }


@dataclass
class GasProfile:
    total_gas_units: int
    operations: List[OperationCost] = field(default_factory=list)
    estimated_cost_eth: float = 0.0
    optimization_suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalGasUnits": self.total_gas_units,
            "operations": [op.to_dict() for op in self.operations],
            "estimatedCostEth": self.estimated_cost_eth,
            "optimizationSuggestions": list(self.optimization_suggestions),
        }


def categorize_operation(opcode: str) -> str:
    if 'storage' in opcode or 'store' in opcode or 'load' in opcode:
        return 'storage'
    if 'memory' in opcode or 'grow' in opcode:
        return 'memory'
    if 'call' in opcode:
        return 'call'
    if 'log' in opcode or 'event' in opcode:
        return 'event'
    return 'computation'


def friendly_name(opcode: str) -> str:
    if opcode in FRIENDLY_NAMES:
        return FRIENDLY_NAMES[opcode]
    return re.sub(r'\b\w', lambda m: m.group(0).upper(), opcode.replace('_', ' '))


def synthesize_operations(size: int) -> List[str]:
    """Guess an instruction stream from the artifact size."""
    operations = ['call']  # constructor

    for i in range(size // 100):
        operations.append('storage.load' if i % 2 == 0 else 'storage.store')

    for i in range(size // 50):
        operations.append('memory.grow' if i % 3 == 0 else 'memory.copy')

    compute = ('i32.add', 'i32.mul', 'i32.eq', 'i64.add')
    for i in range(size // 20):
        operations.append(compute[i % len(compute)])

    operations.extend(['call'] * (size // 200))

    if size > EVENT_SIZE_THRESHOLD:
        operations.append('log1')

    return operations


class GasEstimator:
    """Builds a GasProfile from a compiled artifact."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        gas_costs: Optional[Dict[str, int]] = None,
        synthesizer: Callable[[int], List[str]] = synthesize_operations,
    ):
        self.settings = settings or default_settings
        self.gas_costs = gas_costs if gas_costs is not None else GAS_COSTS
        self.synthesizer = synthesizer

    def gas_cost(self, opcode: str) -> int:
        return self.gas_costs.get(opcode, DEFAULT_GAS_COST)

    def estimate(self, artifact_bytes: bytes) -> GasProfile:
        opcodes = self.synthesizer(len(artifact_bytes))

        totals: Dict[str, List[int]] = {}
        for opcode in opcodes:
            entry = totals.setdefault(opcode, [0, 0])
            entry[0] += self.gas_cost(opcode)
            entry[1] += 1

        total_gas = sum(gas for gas, _ in totals.values())
        operations = [
            OperationCost(
                name=friendly_name(opcode),
                opcode=opcode,
                gas_used=gas,
                percentage_of_total=(gas / total_gas * 100) if total_gas else 0.0,
                occurrence_count=count,
                category=categorize_operation(opcode),
            )
            for opcode, (gas, count) in totals.items()
        ]

        return GasProfile(
            total_gas_units=total_gas,
            operations=operations,
            estimated_cost_eth=self.cost_in_eth(total_gas),
            optimization_suggestions=suggest_optimizations(operations, total_gas),
        )

    def cost_in_eth(self, total_gas: int) -> float:
        return total_gas * self.settings.gas_price_gwei * self.settings.eth_price_usd / GWEI_PER_ETH


def _category_gas(operations: List[OperationCost], category: str) -> int:
    return sum(op.gas_used for op in operations if op.category == category)


def suggest_optimizations(operations: List[OperationCost], total_gas: int) -> List[str]:
    """Rules are evaluated in order; the ecosystem tip is always last."""
    suggestions = []

    if _category_gas(operations, 'storage') > total_gas * 0.5:
        suggestions.append(
            'Storage operations account for over 50% of gas usage. Consider batching '
            'storage writes or using memory for temporary data.'
        )

    repeated = [op for op in operations if op.occurrence_count > 10]
    if repeated:
        worst = max(repeated, key=lambda op: op.occurrence_count)
        suggestions.append(
            f'Operation "{worst.name}" is called {worst.occurrence_count} times. '
            f'Consider caching results or optimizing the loop.'
        )

    if _category_gas(operations, 'call') > total_gas * 0.3:
        suggestions.append(
            'Function calls are expensive. Consider inlining small functions or reducing call depth.'
        )

    if total_gas > GAS_CEILING:
        suggestions.append(
            'Consider using more efficient data structures like packed storage or bit '
            'manipulation to reduce gas costs.'
        )

    if any('div' in op.opcode for op in operations):
        suggestions.append(
            'Integer division is expensive. If dividing by powers of 2, use bit shifting '
            '(>> operator) instead.'
        )

    suggestions.append(ECOSYSTEM_TIP)
    return suggestions


@dataclass
class DeploymentQuote:
    """Source-based deployment gas quote against an equivalent EVM contract."""
    gas_estimate: int
    evm_equivalent_gas: int
    savings_percent: int

    @property
    def gas_estimate_gwei(self) -> str:
        return f"{self.gas_estimate / 1e9:.4f}"

    def to_dict(self) -> dict:
        return {
            "gasEstimate": str(self.gas_estimate),
            "gasEstimateGwei": self.gas_estimate_gwei,
            "comparisonSolidity": str(self.evm_equivalent_gas),
            "savings": f"{self.savings_percent}%",
        }


BASE_DEPLOYMENT_GAS = 21000
GAS_PER_SOURCE_CHAR = 10
GAS_PER_CONSTRUCT = 500
WASM_MULTIPLIER = 0.01
CONSTRUCT_RE = re.compile(r'fn|struct|impl|let|match')


def estimate_deployment_gas(source_text: str) -> DeploymentQuote:
    """Quote deployment gas from source complexity alone, before compiling."""
    constructs = len(CONSTRUCT_RE.findall(source_text))
    evm_gas = (
        BASE_DEPLOYMENT_GAS
        + len(source_text) * GAS_PER_SOURCE_CHAR
        + constructs * GAS_PER_CONSTRUCT
    )
    return DeploymentQuote(
        gas_estimate=int(evm_gas * WASM_MULTIPLIER),
        evm_equivalent_gas=evm_gas,
        savings_percent=round((1 - WASM_MULTIPLIER) * 100),
    )
