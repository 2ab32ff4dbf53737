"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")

# Read from the pool when left blank.
_OPTIONAL_CONTRACTS = {"borrow_asset"}

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonitorConfig:
    refresh_interval_seconds: int = 15
    event_poll_seconds: int = 5
    event_lookback_blocks: int = 0


@dataclass(frozen=True)
class AccountConfig:
    label: str = ""
    address: str = ""


@dataclass(frozen=True)
class ChainConfig:
    name: str = ""
    chain_id: int = 0
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30


@dataclass(frozen=True)
class ContractsConfig:
    lending_pool: str = ""
    collateral_token: str = ""
    interest_rate_model: str = ""
    price_oracle: str = ""
    collateral_asset: str = ""
    borrow_asset: str = ""


@dataclass(frozen=True)
class TokensConfig:
    collateral_symbol: str = "DAI"
    collateral_decimals: int = 18
    share_decimals: int = 18
    borrow_symbol: str = "USDC"
    borrow_decimals: int = 6


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


@dataclass(frozen=True)
class AppConfig:
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    accounts: tuple[AccountConfig, ...] = ()
    chain: ChainConfig = field(default_factory=ChainConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    tokens: TokensConfig = field(default_factory=TokensConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)

    def account(self, label: str | None = None) -> AccountConfig:
        """Return the account with ``label``, or the first configured one."""
        if label is None:
            return self.accounts[0]
        for account in self.accounts:
            if account.label == label:
                return account
        raise ValueError(f"Unknown account '{label}'")


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_monitor(raw: dict[str, Any]) -> MonitorConfig:
    return MonitorConfig(
        refresh_interval_seconds=int(raw.get("refresh_interval_seconds", 15)),
        event_poll_seconds=int(raw.get("event_poll_seconds", 5)),
        event_lookback_blocks=int(raw.get("event_lookback_blocks", 0)),
    )


def _build_accounts(raw: list[dict[str, Any]]) -> tuple[AccountConfig, ...]:
    return tuple(
        AccountConfig(label=a.get("label", ""), address=a.get("address", ""))
        for a in raw
    )


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        name=raw.get("name", ""),
        chain_id=int(raw.get("chain_id", 0) or 0),
        rpc_endpoints=tuple(url for url in raw.get("rpc_endpoints", []) if url),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
    )


def _build_contracts(raw: dict[str, Any]) -> ContractsConfig:
    return ContractsConfig(
        lending_pool=raw.get("lending_pool", ""),
        collateral_token=raw.get("collateral_token", ""),
        interest_rate_model=raw.get("interest_rate_model", ""),
        price_oracle=raw.get("price_oracle", ""),
        collateral_asset=raw.get("collateral_asset", ""),
        borrow_asset=raw.get("borrow_asset", ""),
    )


def _build_tokens(raw: dict[str, Any]) -> TokensConfig:
    return TokensConfig(
        collateral_symbol=raw.get("collateral_symbol", "DAI"),
        collateral_decimals=int(raw.get("collateral_decimals", 18)),
        share_decimals=int(raw.get("share_decimals", 18)),
        borrow_symbol=raw.get("borrow_symbol", "USDC"),
        borrow_decimals=int(raw.get("borrow_decimals", 6)),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {})
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        monitor=_build_monitor(raw.get("monitor", {})),
        accounts=_build_accounts(raw.get("accounts", [])),
        chain=_build_chain(raw.get("chain", {})),
        contracts=_build_contracts(raw.get("contracts", {})),
        tokens=_build_tokens(raw.get("tokens", {})),
        notifications=_build_notifications(raw.get("notifications", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.accounts:
        raise ValueError("At least one account must be configured")

    for account in cfg.accounts:
        if not account.address:
            raise ValueError(f"Account '{account.label}' has no address")
        if not _ADDRESS_RE.fullmatch(account.address):
            raise ValueError(
                f"Account '{account.label}' has an invalid address '{account.address}'"
            )

    if not cfg.chain.rpc_endpoints:
        raise ValueError("At least one RPC endpoint must be configured")

    for name, address in vars(cfg.contracts).items():
        if not address and name in _OPTIONAL_CONTRACTS:
            continue
        if not address:
            raise ValueError(f"Contract address '{name}' is not configured")
        if not _ADDRESS_RE.fullmatch(address):
            raise ValueError(f"Contract '{name}' has an invalid address '{address}'")

    if cfg.monitor.refresh_interval_seconds <= 0:
        raise ValueError("refresh_interval_seconds must be positive")
