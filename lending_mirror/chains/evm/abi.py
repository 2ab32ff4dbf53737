"""ABI fragments for the lending contracts (only the members we read)."""


def _view(name: str, inputs: list[tuple[str, str]], outputs: list[tuple[str, str]]) -> dict:
    return {
        "inputs": [{"internalType": t, "name": n, "type": t} for n, t in inputs],
        "name": name,
        "outputs": [{"internalType": t, "name": n, "type": t} for n, t in outputs],
        "stateMutability": "view",
        "type": "function",
    }


def _event(name: str, fields: list[tuple[str, str, bool]]) -> dict:
    return {
        "anonymous": False,
        "inputs": [
            {"indexed": indexed, "internalType": t, "name": n, "type": t}
            for n, t, indexed in fields
        ],
        "name": name,
        "type": "event",
    }


LENDING_POOL_ABI = [
    _view("totalCollateral", [], [("", "uint256")]),
    _view("totalBorrows", [], [("", "uint256")]),
    _view("borrowIndex", [], [("", "uint256")]),
    _view("liquidationThreshold", [], [("", "uint256")]),
    _view("minBorrow", [], [("", "uint256")]),
    _view("borrowToken", [], [("", "address")]),
    _view(
        "userBorrows",
        [("user", "address")],
        [("principal", "uint256"), ("interestIndex", "uint256")],
    ),
    _event("Deposit", [("user", "address", True), ("amount", "uint256", False), ("shares", "uint256", False)]),
    _event("Withdraw", [("user", "address", True), ("shares", "uint256", False), ("amount", "uint256", False)]),
    _event("Borrow", [("user", "address", True), ("amount", "uint256", False)]),
    _event("Repay", [("user", "address", True), ("amount", "uint256", False)]),
]

ERC20_ABI = [
    _view("balanceOf", [("account", "address")], [("", "uint256")]),
    _view("totalSupply", [], [("", "uint256")]),
]

INTEREST_RATE_MODEL_ABI = [
    _view(
        "getBorrowRatePerSecond",
        [("cash", "uint256"), ("borrows", "uint256")],
        [("", "uint256")],
    ),
]

PRICE_ORACLE_ABI = [
    _view("getPrice", [("asset", "address")], [("", "uint256")]),
]
