"""EVM lending-pool reader with RPC endpoint fallback."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import MismatchedABI

from ...config import ChainConfig, ContractsConfig, TokensConfig
from ...errors import ReadFailure
from ...models import (
    WAD_DECIMALS,
    InterestSample,
    LedgerEvent,
    LedgerEventKind,
    PoolState,
    PriceQuote,
    ScaledValue,
    UserPosition,
)
from .abi import ERC20_ABI, INTEREST_RATE_MODEL_ABI, LENDING_POOL_ABI, PRICE_ORACLE_ABI

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRICE_DECIMALS = 18


class EvmLedgerClient:
    """Read-only client for the lending pool, share token, rate model and oracle.

    Each public read is retried across the configured RPC endpoints, starting
    from the last endpoint that worked. When every endpoint fails the read
    raises ``ReadFailure``.
    """

    def __init__(
        self,
        chain: ChainConfig,
        contracts: ContractsConfig,
        tokens: TokensConfig,
    ) -> None:
        self.endpoints = list(chain.rpc_endpoints)
        self.timeout = chain.rpc_timeout
        self.current_rpc_index = 0
        self._contracts = contracts
        self._tokens = tokens
        self._web3_by_url: dict[str, AsyncWeb3] = {}
        self._borrow_asset_address: str | None = contracts.borrow_asset or None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _web3(self, rpc_url: str) -> AsyncWeb3:
        w3 = self._web3_by_url.get(rpc_url)
        if w3 is None:
            w3 = AsyncWeb3(
                AsyncHTTPProvider(
                    rpc_url,
                    request_kwargs={"timeout": aiohttp.ClientTimeout(total=self.timeout)},
                )
            )
            self._web3_by_url[rpc_url] = w3
        return w3

    @staticmethod
    def _contract(w3: AsyncWeb3, address: str, abi: list[dict[str, Any]]) -> Any:
        return w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)

    async def _borrow_asset(self, w3: AsyncWeb3) -> str:
        """Configured borrow asset, else the pool's ``borrowToken()``, cached."""
        if self._borrow_asset_address is None:
            pool = self._contract(w3, self._contracts.lending_pool, LENDING_POOL_ABI)
            self._borrow_asset_address = await pool.functions.borrowToken().call()
            logger.info("Borrow asset read from pool: %s", self._borrow_asset_address)
        return self._borrow_asset_address

    async def _with_fallback(
        self, label: str, read: Callable[[AsyncWeb3], Awaitable[T]]
    ) -> T:
        """Run ``read`` against each endpoint in turn until one succeeds."""
        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                result = await read(self._web3(rpc_url))
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed reading %s: %s", rpc_url, label, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

            if rpc_index != self.current_rpc_index:
                logger.info("Switched to RPC endpoint: %s", rpc_url)
                self.current_rpc_index = rpc_index
            return result

        raise ReadFailure(
            f"All RPC endpoints failed reading {label}. Last error: {last_error}"
        )

    # ------------------------------------------------------------------
    # LedgerReader
    # ------------------------------------------------------------------

    async def block_number(self) -> int:
        async def read(w3: AsyncWeb3) -> int:
            return int(await w3.eth.block_number)

        return await self._with_fallback("block number", read)

    async def read_pool_state(self, block: int) -> PoolState:
        tokens = self._tokens
        contracts = self._contracts

        async def read(w3: AsyncWeb3) -> PoolState:
            pool = self._contract(w3, contracts.lending_pool, LENDING_POOL_ABI)
            shares = self._contract(w3, contracts.collateral_token, ERC20_ABI)
            borrow_token = self._contract(w3, await self._borrow_asset(w3), ERC20_ABI)

            (
                total_collateral,
                total_borrows,
                borrow_index,
                threshold,
                min_borrow,
                total_shares,
                cash,
            ) = await asyncio.gather(
                pool.functions.totalCollateral().call(block_identifier=block),
                pool.functions.totalBorrows().call(block_identifier=block),
                pool.functions.borrowIndex().call(block_identifier=block),
                pool.functions.liquidationThreshold().call(block_identifier=block),
                pool.functions.minBorrow().call(block_identifier=block),
                shares.functions.totalSupply().call(block_identifier=block),
                borrow_token.functions.balanceOf(pool.address).call(block_identifier=block),
            )

            return PoolState(
                total_collateral_underlying=ScaledValue(total_collateral, tokens.collateral_decimals),
                total_collateral_shares=ScaledValue(total_shares, tokens.share_decimals),
                total_borrows=ScaledValue(total_borrows, tokens.borrow_decimals),
                borrow_index=ScaledValue(borrow_index, WAD_DECIMALS),
                cash=ScaledValue(cash, tokens.borrow_decimals),
                liquidation_threshold=ScaledValue(threshold, WAD_DECIMALS),
                min_borrow=ScaledValue(min_borrow, tokens.borrow_decimals),
            )

        return await self._with_fallback("pool state", read)

    async def read_user_position(self, account: str, block: int) -> UserPosition:
        tokens = self._tokens
        contracts = self._contracts
        user = AsyncWeb3.to_checksum_address(account)

        async def read(w3: AsyncWeb3) -> UserPosition:
            pool = self._contract(w3, contracts.lending_pool, LENDING_POOL_ABI)
            shares = self._contract(w3, contracts.collateral_token, ERC20_ABI)

            share_balance, (principal, user_index) = await asyncio.gather(
                shares.functions.balanceOf(user).call(block_identifier=block),
                pool.functions.userBorrows(user).call(block_identifier=block),
            )

            return UserPosition(
                share_balance=ScaledValue(share_balance, tokens.share_decimals),
                principal_borrow=ScaledValue(principal, tokens.borrow_decimals),
                user_borrow_index=ScaledValue(user_index, WAD_DECIMALS),
            )

        return await self._with_fallback(f"position of {account}", read)

    async def read_prices(self, block: int) -> PriceQuote:
        contracts = self._contracts

        async def read(w3: AsyncWeb3) -> PriceQuote:
            oracle = self._contract(w3, contracts.price_oracle, PRICE_ORACLE_ABI)
            borrow_asset = await self._borrow_asset(w3)
            collateral_price, borrow_price = await asyncio.gather(
                oracle.functions.getPrice(
                    AsyncWeb3.to_checksum_address(contracts.collateral_asset)
                ).call(block_identifier=block),
                oracle.functions.getPrice(
                    AsyncWeb3.to_checksum_address(borrow_asset)
                ).call(block_identifier=block),
            )
            return PriceQuote(
                collateral_price=ScaledValue(collateral_price, PRICE_DECIMALS),
                borrow_price=ScaledValue(borrow_price, PRICE_DECIMALS),
            )

        return await self._with_fallback("oracle prices", read)

    async def read_interest_sample(self, pool: PoolState, block: int) -> InterestSample:
        contracts = self._contracts

        async def read(w3: AsyncWeb3) -> InterestSample:
            irm = self._contract(w3, contracts.interest_rate_model, INTEREST_RATE_MODEL_ABI)
            rate = await irm.functions.getBorrowRatePerSecond(
                pool.cash.raw, pool.total_borrows.raw
            ).call(block_identifier=block)
            return InterestSample(rate_per_second=ScaledValue(rate, WAD_DECIMALS))

        return await self._with_fallback("borrow rate", read)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def fetch_events(self, from_block: int, to_block: int) -> list[LedgerEvent]:
        """Decode pool Deposit/Withdraw/Borrow/Repay logs in a block range."""
        contracts = self._contracts

        async def read(w3: AsyncWeb3) -> list[LedgerEvent]:
            pool = self._contract(w3, contracts.lending_pool, LENDING_POOL_ABI)
            factories = [getattr(pool.events, kind.value)() for kind in LedgerEventKind]
            logs = await w3.eth.get_logs(
                {
                    "address": pool.address,
                    "fromBlock": from_block,
                    "toBlock": to_block,
                    "topics": [[factory.topic for factory in factories]],
                }
            )

            events: list[LedgerEvent] = []
            for log in logs:
                decoded = None
                for factory in factories:
                    try:
                        decoded = factory.process_log(log)
                        break
                    except MismatchedABI:
                        continue
                if decoded is None:
                    logger.debug("Skipping undecodable pool log %s", log)
                    continue

                events.append(
                    LedgerEvent(
                        kind=LedgerEventKind(decoded.event),
                        account=decoded.args["user"],
                        block_number=decoded.blockNumber,
                        tx_hash=decoded.transactionHash.hex(),
                    )
                )
            return events

        return await self._with_fallback(f"events {from_block}-{to_block}", read)
