from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass
from typing import Literal

from eth_account import Account

logger = logging.getLogger(__name__)

NetworkName = Literal["avalancheFuji", "ethereumSepolia", "arbitrumSepolia"]
SUPPORTED_NETWORKS: tuple[str, ...] = ("avalancheFuji", "ethereumSepolia", "arbitrumSepolia")

DEFAULT_NETWORK = "avalancheFuji"
DEFAULT_API_URL = "https://asetta.xyz"
TOKENIZATION_MODE = "tokenization"

# Fuji deployment of the RWA coordinator/manager contract.
FUJI_RWA_MANAGER = "0x3a45eE7f3A7e81624DDac9b413D5541a0934E263"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class ConfigError(RuntimeError):
    """Invalid CLI flags, environment, or missing contract addresses."""

    pass


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    rpc_url: str
    block_explorer: str
    chain_id: int
    native_currency: str


@dataclass(frozen=True)
class ChainlinkNetworkConfig:
    chain_id: int
    chain_selector: str
    router: str
    link_token: str
    rmn_proxy: str
    registry_module_owner_custom: str
    token_admin_registry: str


@dataclass(frozen=True)
class ContractAddresses:
    mock_usdc: str | None = None
    rwa_manager: str | None = None
    token_factory: str | None = None
    primary_distribution: str | None = None
    rfq: str | None = None


_NETWORK_DEFAULTS: dict[str, NetworkConfig] = {
    "avalancheFuji": NetworkConfig(
        name="avalancheFuji",
        rpc_url="https://avalanche-fuji.drpc.org",
        block_explorer="https://testnet.snowtrace.io",
        chain_id=43113,
        native_currency="AVAX",
    ),
    "ethereumSepolia": NetworkConfig(
        name="ethereumSepolia",
        rpc_url="https://sepolia.drpc.org",
        block_explorer="https://sepolia.etherscan.io",
        chain_id=11155111,
        native_currency="ETH",
    ),
    "arbitrumSepolia": NetworkConfig(
        name="arbitrumSepolia",
        rpc_url="https://arbitrum-sepolia.drpc.org",
        block_explorer="https://sepolia.arbiscan.io",
        chain_id=421614,
        native_currency="ETH",
    ),
}

CHAINLINK_NETWORKS: dict[str, ChainlinkNetworkConfig] = {
    "ethereumSepolia": ChainlinkNetworkConfig(
        chain_id=11155111,
        chain_selector="16015286601757825753",
        router="0x0BF3dE8c5D3e8A2B34D2BEeB17ABfCeBaf363A59",
        link_token="0x779877A7B0D9E8603169DdbD7836e478b4624789",
        rmn_proxy="0xba3f6251de62dED61Ff98590cB2fDf6871FbB991",
        registry_module_owner_custom="0x62e731218d0D47305aba2BE3751E7EE9E5520790",
        token_admin_registry="0x95F29FEE11c5C55d26cCcf1DB6772DE953B37B82",
    ),
    "arbitrumSepolia": ChainlinkNetworkConfig(
        chain_id=421614,
        chain_selector="3478487238524512106",
        router="0x2a9C5afB0d0e4BAb2BCdaE109EC4b0c4Be15a165",
        link_token="0xb1D4538B4571d411F07960EF2838Ce337FE1E80E",
        rmn_proxy="0x9527E2d01A3064ef6b50c1Da1C0cC523803BCFF2",
        registry_module_owner_custom="0xE625f0b8b0Ac86946035a7729Aba124c8A64cf69",
        token_admin_registry="0x8126bE56454B628a88C17849B9ED99dd5a11Bd2f",
    ),
    "avalancheFuji": ChainlinkNetworkConfig(
        chain_id=43113,
        chain_selector="14767482510784806043",
        router="0xF694E193200268f9a4868e4Aa017A0118C9a8177",
        link_token="0x0b9d5D9136855f6FEc3c0993feE6E9CE8a297846",
        rmn_proxy="0xAc8CFc3762a979628334a0E4C1026244498E821b",
        registry_module_owner_custom="0x97300785aF1edE1343DB6d90706A35CF14aA3d81",
        token_admin_registry="0xA92053a4a3922084d992fD2835bdBa4caC6877e6",
    ),
}

DEFAULT_RATE_LIMIT_CONFIG = {"is_enabled": True, "capacity": 100000, "rate": 167}

_CONTRACT_DEFAULTS: dict[str, ContractAddresses] = {
    "avalancheFuji": ContractAddresses(rwa_manager=FUJI_RWA_MANAGER),
    "ethereumSepolia": ContractAddresses(),
    "arbitrumSepolia": ContractAddresses(),
}


def _env_prefix(network: str) -> str:
    """avalancheFuji -> AVALANCHE_FUJI"""
    out = []
    for ch in network:
        if ch.isupper():
            out.append("_")
        out.append(ch.upper())
    return "".join(out)


def validate_network(network: str) -> str:
    if network not in SUPPORTED_NETWORKS:
        raise ConfigError(
            f"Unsupported network: {network}. "
            f"Supported networks: {', '.join(SUPPORTED_NETWORKS)}"
        )
    return network


def get_network_config(network: str) -> NetworkConfig:
    base = _NETWORK_DEFAULTS[validate_network(network)]
    rpc_url = os.getenv(f"{_env_prefix(network)}_RPC_URL")
    if rpc_url:
        return NetworkConfig(
            name=base.name,
            rpc_url=rpc_url,
            block_explorer=base.block_explorer,
            chain_id=base.chain_id,
            native_currency=base.native_currency,
        )
    return base


def get_chainlink_config(network: str) -> ChainlinkNetworkConfig:
    return CHAINLINK_NETWORKS[validate_network(network)]


def get_contract_addresses(network: str) -> ContractAddresses:
    """
    Resolve per-network contract addresses.

    Each field may be overridden with ASETTA_<NETWORK>_<FIELD>, e.g.
    ASETTA_AVALANCHE_FUJI_MOCK_USDC or ASETTA_ETHEREUM_SEPOLIA_RWA_MANAGER.
    """
    defaults = _CONTRACT_DEFAULTS[validate_network(network)]
    prefix = f"ASETTA_{_env_prefix(network)}"
    return ContractAddresses(
        mock_usdc=os.getenv(f"{prefix}_MOCK_USDC") or defaults.mock_usdc,
        rwa_manager=os.getenv(f"{prefix}_RWA_MANAGER") or defaults.rwa_manager,
        token_factory=os.getenv(f"{prefix}_TOKEN_FACTORY") or defaults.token_factory,
        primary_distribution=os.getenv(f"{prefix}_PRIMARY_DISTRIBUTION")
        or defaults.primary_distribution,
        rfq=os.getenv(f"{prefix}_RFQ") or defaults.rfq,
    )


def require_contract_address(network: str, field_name: str) -> str:
    address = getattr(get_contract_addresses(network), field_name)
    if not address:
        raise ConfigError(
            f"No {field_name} contract configured for {network}. "
            f"Set ASETTA_{_env_prefix(network)}_{field_name.upper()}."
        )
    return address


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asetta-mcp",
        description="MCP server for Asetta RWA tokenization and Chainlink CCIP tooling.",
    )
    parser.add_argument("--network", default=None, help="avalancheFuji, ethereumSepolia or arbitrumSepolia")
    parser.add_argument("--wallet_private_key", default=None, help="hex private key, 0x prefix optional")
    parser.add_argument("--agent_mode", default=None, help="'tokenization' for wallet tools, otherwise API tools")
    parser.add_argument("--access_key", default=None, help="Asetta API access key")
    return parser


@dataclass
class AsettaConfig:
    """
    Process-wide configuration for the Asetta MCP server.

    Values come from CLI flags first and environment variables (or a .env
    file) second:
    - --network / ASETTA_NETWORK: one of SUPPORTED_NETWORKS (default avalancheFuji).
    - --wallet_private_key / WALLET_PRIVATE_KEY: hex key, 0x prefix optional.
      When absent an ephemeral key is generated for the lifetime of the process.
    - --agent_mode / ASETTA_AGENT_MODE: "tokenization" exposes the on-chain
      tool set; anything else exposes the REST API tools.
    - --access_key / ASETTA_ACCESS_KEY: default key for REST API calls.
    - ASETTA_API_URL: base URL of the Asetta backend.
    """

    network: str
    private_key: str
    agent_mode: str
    access_key: str | None = None
    api_base_url: str = DEFAULT_API_URL
    ephemeral_key: bool = False

    @classmethod
    def from_args(cls, argv: list[str] | None = None) -> AsettaConfig:
        args, _unknown = _build_arg_parser().parse_known_args(argv)

        network = validate_network(args.network or os.getenv("ASETTA_NETWORK") or DEFAULT_NETWORK)

        raw_key = args.wallet_private_key or os.getenv("WALLET_PRIVATE_KEY")
        ephemeral = False
        if raw_key:
            private_key = raw_key if raw_key.startswith("0x") else f"0x{raw_key}"
        else:
            private_key = Account.create().key.hex()
            if not private_key.startswith("0x"):
                private_key = f"0x{private_key}"
            ephemeral = True
            logger.warning(
                "No wallet private key provided; generated an ephemeral wallet for this session."
            )

        return cls(
            network=network,
            private_key=private_key,
            agent_mode=(args.agent_mode or os.getenv("ASETTA_AGENT_MODE") or "legal"),
            access_key=args.access_key or os.getenv("ASETTA_ACCESS_KEY") or None,
            api_base_url=(os.getenv("ASETTA_API_URL") or DEFAULT_API_URL).rstrip("/"),
            ephemeral_key=ephemeral,
        )

    @property
    def is_tokenization(self) -> bool:
        return self.agent_mode == TOKENIZATION_MODE

    @property
    def wallet_address(self) -> str:
        return Account.from_key(self.private_key).address


def validate_environment(cfg: AsettaConfig) -> None:
    """Log the resolved runtime configuration (secrets masked)."""
    net = get_network_config(cfg.network)
    logger.info("Agent mode: %s", "tokenization" if cfg.is_tokenization else "api")
    logger.info("Network: %s (chain id %s, rpc %s)", net.name, net.chain_id, net.rpc_url)
    logger.info("Wallet address: %s%s", cfg.wallet_address, " (ephemeral)" if cfg.ephemeral_key else "")
    if cfg.access_key:
        logger.info("Access key: %s***", cfg.access_key[:4])
    else:
        logger.info("Access key: not set (must be passed per call)")
