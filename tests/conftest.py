"""Shared test fixtures and sample data."""
from __future__ import annotations

import asyncio
import textwrap
from datetime import datetime, timezone
from pathlib import Path

import pytest

from lending_mirror.config import (
    AccountConfig,
    AppConfig,
    ChainConfig,
    ContractsConfig,
    MonitorConfig,
    NotificationsConfig,
    TelegramConfig,
    TokensConfig,
)
from lending_mirror.errors import ReadFailure
from lending_mirror.models import (
    InterestSample,
    PoolState,
    PriceQuote,
    ScaledValue,
    UserPosition,
)

WAD = 10**18
USDC = 10**6

ACCOUNT = "0x1111111111111111111111111111111111111111"
OTHER_ACCOUNT = "0x2222222222222222222222222222222222222222"

# Roughly 5% APR expressed per second in WAD.
RATE_PER_SECOND = 1_585_489_599


def wad(value: int | str) -> ScaledValue:
    return ScaledValue.parse(str(value), 18)


def usdc(value: int | str) -> ScaledValue:
    return ScaledValue.parse(str(value), 6)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        name="sepolia",
        chain_id=11155111,
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
    )


@pytest.fixture()
def sample_contracts_config() -> ContractsConfig:
    return ContractsConfig(
        lending_pool="0xb2Feb95eDFCD70CEC44C418F91D80483eAA77167",
        collateral_token="0xe1E89291bdC7777F0C9aB1C6a79B086dc4dCC9f3",
        interest_rate_model="0x00e61243808f6451151017BbD079eeAE8b448557",
        price_oracle="0xFD128c0CBab5AE28299360864F7f60eE0978F2B9",
        collateral_asset="0x98fBe6687dF5843143Ec1CdC7Ff37C714F0B6963",
        borrow_asset="0x82903D8934c2DDD78Ea403e53608E67d3E1a7070",
    )


@pytest.fixture()
def sample_app_config(
    sample_chain_config: ChainConfig,
    sample_contracts_config: ContractsConfig,
) -> AppConfig:
    return AppConfig(
        monitor=MonitorConfig(refresh_interval_seconds=15, event_poll_seconds=5),
        accounts=(
            AccountConfig(label="main", address=ACCOUNT),
            AccountConfig(label="alt", address=OTHER_ACCOUNT),
        ),
        chain=sample_chain_config,
        contracts=sample_contracts_config,
        tokens=TokensConfig(),
        notifications=NotificationsConfig(
            telegram=TelegramConfig(
                enabled=True,
                alert_bot_token="fake-alert-token",
                log_bot_token="fake-log-token",
                chat_id="12345",
            ),
        ),
    )


SAMPLE_YAML = textwrap.dedent(f"""\
    monitor:
      refresh_interval_seconds: 20
      event_poll_seconds: 3
    accounts:
      - label: main
        address: "{ACCOUNT}"
    chain:
      name: sepolia
      chain_id: 11155111
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
    contracts:
      lending_pool: "0xb2Feb95eDFCD70CEC44C418F91D80483eAA77167"
      collateral_token: "0xe1E89291bdC7777F0C9aB1C6a79B086dc4dCC9f3"
      interest_rate_model: "0x00e61243808f6451151017BbD079eeAE8b448557"
      price_oracle: "0xFD128c0CBab5AE28299360864F7f60eE0978F2B9"
      collateral_asset: "0x98fBe6687dF5843143Ec1CdC7Ff37C714F0B6963"
      borrow_asset: "0x82903D8934c2DDD78Ea403e53608E67d3E1a7070"
    tokens:
      collateral_symbol: DAI
      collateral_decimals: 18
      share_decimals: 18
      borrow_symbol: USDC
      borrow_decimals: 6
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: "999"
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Ledger state fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_pool() -> PoolState:
    """1000 shares backed by 2000 DAI; borrow index at 1.10."""
    return PoolState(
        total_collateral_underlying=wad(2000),
        total_collateral_shares=wad(1000),
        total_borrows=usdc(500),
        borrow_index=wad("1.10"),
        cash=usdc(1000),
        liquidation_threshold=wad("0.8"),
        min_borrow=usdc(10),
    )


@pytest.fixture()
def sample_user() -> UserPosition:
    """250 shares, 100 USDC borrowed at index 1.00."""
    return UserPosition(
        share_balance=wad(250),
        principal_borrow=usdc(100),
        user_borrow_index=wad(1),
    )


@pytest.fixture()
def sample_prices() -> PriceQuote:
    return PriceQuote(collateral_price=wad(1), borrow_price=wad(1))


@pytest.fixture()
def sample_interest() -> InterestSample:
    return InterestSample(rate_per_second=ScaledValue(RATE_PER_SECOND, 18))


class FakeLedger:
    """In-memory LedgerReader with switchable failures and a gate to hold reads."""

    def __init__(
        self,
        pool: PoolState,
        user: UserPosition,
        prices: PriceQuote,
        interest: InterestSample,
        block: int = 100,
    ) -> None:
        self.pool = pool
        self.users: dict[str, UserPosition] = {ACCOUNT.lower(): user}
        self.prices = prices
        self.interest = interest
        self.block = block
        self.fail_on: set[str] = set()
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, int]] = []

    async def _enter(self, name: str, block: int) -> None:
        self.calls.append((name, block))
        if self.gate is not None:
            await self.gate.wait()
        if name in self.fail_on:
            raise ReadFailure(f"{name} timed out")

    async def block_number(self) -> int:
        self.calls.append(("block_number", self.block))
        if "block_number" in self.fail_on:
            raise ReadFailure("block_number timed out")
        return self.block

    async def read_pool_state(self, block: int) -> PoolState:
        await self._enter("pool", block)
        return self.pool

    async def read_user_position(self, account: str, block: int) -> UserPosition:
        await self._enter("user", block)
        return self.users[account.lower()]

    async def read_prices(self, block: int) -> PriceQuote:
        await self._enter("prices", block)
        return self.prices

    async def read_interest_sample(self, pool: PoolState, block: int) -> InterestSample:
        await self._enter("interest", block)
        return self.interest

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


@pytest.fixture()
def fake_ledger(
    sample_pool: PoolState,
    sample_user: UserPosition,
    sample_prices: PriceQuote,
    sample_interest: InterestSample,
) -> FakeLedger:
    return FakeLedger(sample_pool, sample_user, sample_prices, sample_interest)


@pytest.fixture()
def fixed_clock():
    moment = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    return lambda: moment


@pytest.fixture()
def account() -> str:
    return ACCOUNT


@pytest.fixture()
def other_account() -> str:
    return OTHER_ACCOUNT


@pytest.fixture()
def snapshot_factory(
    sample_pool: PoolState,
    sample_user: UserPosition,
    sample_prices: PriceQuote,
    sample_interest: InterestSample,
    fixed_clock,
):
    """Build snapshots through the real compute path with a chosen sequence."""
    from lending_mirror.services.snapshot_service import PositionSnapshotService

    def make(sequence: int, account: str = ACCOUNT, block: int = 100):
        service = PositionSnapshotService(None, clock=fixed_clock)
        return service.compute(
            sequence,
            account,
            block,
            sample_pool,
            sample_user,
            sample_prices,
            sample_interest,
        )

    return make
