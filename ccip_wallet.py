"""
Chainlink CCIP operations for RWA tokens.

Implements:
- BurnMintTokenPool deployment, role/admin configuration, chain
  connection and setup validation
- Static setup guide and chain selector reference
- Cross-chain fee quotes, transfers and router approvals
- RWA token minting

Pool setup tools never raise on chain errors: they return an envelope whose
``status`` is ``success``, ``partial``, ``warning`` or ``error`` so an agent
can see which step failed. Nothing is rolled back.
"""

from __future__ import annotations

import logging
from typing import Any

from eth_abi import encode
from web3 import Web3

from asetta_config import (
    CHAINLINK_NETWORKS,
    DEFAULT_RATE_LIMIT_CONFIG,
    ZERO_ADDRESS,
    ChainlinkNetworkConfig,
    get_chainlink_config,
)
from contract_abis import (
    BURN_MINT_TOKEN_POOL_ABI,
    CCIP_ROUTER_ABI,
    ERC20_ABI,
    REGISTRY_MODULE_OWNER_CUSTOM_ABI,
    RWA_TOKEN_ABI,
    TOKEN_ADMIN_REGISTRY_ABI,
    load_pool_bytecode,
)
from evm_wallet import WalletAgent, format_units, hexstr, parse_units, to_checksum

logger = logging.getLogger(__name__)

TOKEN_DECIMALS = 18
MINTER_ROLE = Web3.keccak(text="MINTER_ROLE")
BURNER_ROLE = Web3.keccak(text="BURNER_ROLE")
# bytes4(keccak256("CCIP EVMExtraArgsV1"))
EVM_EXTRA_ARGS_V1_TAG = bytes.fromhex("97a657c9")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _network_for_selector(selector: str) -> str | None:
    for name, cl in CHAINLINK_NETWORKS.items():
        if cl.chain_selector == str(selector):
            return name
    return None


def _parse_selector(selector: str) -> int:
    text = str(selector).strip()
    if not text.isdigit():
        raise ValueError(f"Invalid chain selector: {selector!r}")
    return int(text)


def encode_extra_args(gas_limit: int) -> bytes:
    """Empty extraArgs lets the router apply its default gas limit."""
    if not gas_limit:
        return b""
    return EVM_EXTRA_ARGS_V1_TAG + encode(["uint256"], [int(gas_limit)])


def resolve_fee_token(
    cl: ChainlinkNetworkConfig,
    use_native_fee: bool = True,
    fee_token_address: str | None = None,
) -> str:
    if fee_token_address:
        return to_checksum(fee_token_address, "fee token address")
    if use_native_fee:
        return ZERO_ADDRESS
    return cl.link_token


def build_ccip_message(
    token: str,
    amount_wei: int,
    receiver: str,
    fee_token: str,
    gas_limit: int = 0,
) -> tuple:
    """EVM2AnyMessage(receiver, data, tokenAmounts, feeToken, extraArgs)"""
    return (
        encode(["address"], [to_checksum(receiver, "receiver address")]),
        b"",
        [(to_checksum(token, "token address"), amount_wei)],
        fee_token,
        encode_extra_args(gas_limit),
    )


def _fee_label(agent: WalletAgent, fee_token: str, cl: ChainlinkNetworkConfig) -> str:
    if fee_token == ZERO_ADDRESS:
        return agent.network_config.native_currency
    if fee_token.lower() == cl.link_token.lower():
        return "LINK"
    return fee_token


# ---------------------------------------------------------------------------
# Guides and references
# ---------------------------------------------------------------------------


def configure_ccip_guide(
    network: str,
    project_id: str | None = None,
    source_chain: str | None = None,
    destination_chains: list[str] | None = None,
) -> dict[str, Any]:
    source = source_chain or network
    destinations = destination_chains or [n for n in CHAINLINK_NETWORKS if n != source]
    return {
        "status": "instructions",
        "message": "CCIP configuration guide for cross-chain RWA tokens",
        "project_id": project_id,
        "source_chain": source,
        "destination_chains": destinations,
        "steps": [
            {
                "step": 1,
                "title": "Deploy the RWA token on every chain",
                "details": "Use asetta_create_rwa_token on the home chain and deploy matching tokens on each destination",
            },
            {
                "step": 2,
                "title": "Deploy a BurnMintTokenPool per chain",
                "tool": "asetta_deploy_ccip_pool",
            },
            {
                "step": 3,
                "title": "Grant pool roles and register it with the TokenAdminRegistry",
                "tool": "asetta_configure_ccip_roles",
            },
            {
                "step": 4,
                "title": "Connect every pool to its remote pools",
                "tool": "asetta_connect_ccip_chains",
                "details": "Run once per source chain with the pool and token addresses of all chains",
            },
            {
                "step": 5,
                "title": "Validate the setup",
                "tool": "asetta_validate_ccip_setup",
            },
            {
                "step": 6,
                "title": "Mark the project CCIP configured",
                "tool": "asetta_mark_ccip_configured",
            },
        ],
        "networks": {
            name: {"chain_selector": cl.chain_selector, "router": cl.router}
            for name, cl in CHAINLINK_NETWORKS.items()
            if name == source or name in destinations
        },
        "notes": [
            "Pools must be configured symmetrically: every chain needs connections to every other chain",
            "The wallet must hold native gas on every chain involved",
        ],
    }


def get_chain_selectors() -> dict[str, Any]:
    chains = [
        {
            "network": name,
            "chain_id": cl.chain_id,
            "chain_selector": cl.chain_selector,
            "router": cl.router,
            "link_token": cl.link_token,
        }
        for name, cl in CHAINLINK_NETWORKS.items()
    ]
    return {
        "status": "success",
        "message": "CCIP chain selectors for supported testnets",
        "chains": chains,
        "usage_examples": [
            {
                "tool": "asetta_get_cross_chain_fee",
                "destination_chain_selector": CHAINLINK_NETWORKS["ethereumSepolia"].chain_selector,
                "description": "Quote a transfer to Ethereum Sepolia",
            },
            {
                "tool": "asetta_transfer_rwa_cross_chain",
                "destination_chain_selector": CHAINLINK_NETWORKS["arbitrumSepolia"].chain_selector,
                "description": "Send tokens to Arbitrum Sepolia",
            },
        ],
    }


# ---------------------------------------------------------------------------
# Pool setup
# ---------------------------------------------------------------------------


def deploy_ccip_pool(
    agent: WalletAgent,
    rwa_token_address: str,
    allowlist: list[str] | None = None,
) -> dict[str, Any]:
    try:
        agent.connect()
        cl = get_chainlink_config(agent.network)
        token = to_checksum(rwa_token_address, "token address")
        allowed = [to_checksum(a, "allowlist address") for a in (allowlist or [])]
        bytecode = load_pool_bytecode()
        result = agent.deploy(
            BURN_MINT_TOKEN_POOL_ABI,
            bytecode,
            token,
            TOKEN_DECIMALS,
            allowed,
            cl.rmn_proxy,
            cl.router,
        )
        if not result.contract_address:
            raise RuntimeError(f"No contract address in receipt {result.tx_hash}")
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to deploy CCIP pool on %s: %s", agent.network, exc)
        return {
            "status": "error",
            "message": f"Failed to deploy BurnMintTokenPool on {agent.network}",
            "error": str(exc),
            "rwa_token_address": rwa_token_address,
            "network": agent.network,
        }

    logger.info("Deployed BurnMintTokenPool %s on %s", result.contract_address, agent.network)
    return {
        "status": "success",
        "message": f"BurnMintTokenPool deployed on {agent.network}",
        "pool_address": result.contract_address,
        "rwa_token_address": token,
        "network": agent.network,
        "transaction_hash": result.tx_hash,
        "block_number": result.block_number,
        "gas_used": str(result.gas_used),
        "configuration": {
            "decimals": TOKEN_DECIMALS,
            "allowlist": allowed,
            "rmn_proxy": cl.rmn_proxy,
            "router": cl.router,
        },
        "explorer_url": agent.address_url(result.contract_address),
        "next_steps": [
            "Grant roles and register the pool with asetta_configure_ccip_roles",
            "Connect remote chains with asetta_connect_ccip_chains",
        ],
    }


def configure_ccip_roles(
    agent: WalletAgent,
    rwa_token_address: str,
    pool_address: str,
) -> dict[str, Any]:
    try:
        agent.connect()
        cl = get_chainlink_config(agent.network)
        token = to_checksum(rwa_token_address, "token address")
        pool = to_checksum(pool_address, "pool address")
    except Exception as exc:  # noqa: BLE001
        return {
            "status": "error",
            "message": "Failed to configure CCIP roles",
            "error": str(exc),
        }

    plan = [
        ("grant_minter_role", "Grant MINTER_ROLE to pool", token, RWA_TOKEN_ABI, "grantRole", (MINTER_ROLE, pool)),
        ("grant_burner_role", "Grant BURNER_ROLE to pool", token, RWA_TOKEN_ABI, "grantRole", (BURNER_ROLE, pool)),
        (
            "register_admin",
            "Register CCIP admin via getCCIPAdmin",
            cl.registry_module_owner_custom,
            REGISTRY_MODULE_OWNER_CUSTOM_ABI,
            "registerAdminViaGetCCIPAdmin",
            (token,),
        ),
        (
            "accept_admin_role",
            "Accept admin role in TokenAdminRegistry",
            cl.token_admin_registry,
            TOKEN_ADMIN_REGISTRY_ABI,
            "acceptAdminRole",
            (token,),
        ),
        (
            "set_pool",
            "Link token to pool in TokenAdminRegistry",
            cl.token_admin_registry,
            TOKEN_ADMIN_REGISTRY_ABI,
            "setPool",
            (token, pool),
        ),
    ]

    steps: list[dict[str, Any]] = []
    for step_id, description, address, abi, fn_name, args in plan:
        try:
            result = agent.transact(address, abi, fn_name, *args)
            steps.append(
                {
                    "step": step_id,
                    "description": description,
                    "success": True,
                    "transaction_hash": result.tx_hash,
                }
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("CCIP role step %s failed: %s", step_id, exc)
            steps.append(
                {
                    "step": step_id,
                    "description": description,
                    "success": False,
                    "error": str(exc),
                }
            )

    succeeded = sum(1 for s in steps if s["success"])
    all_ok = succeeded == len(steps)
    return {
        "status": "success" if all_ok else "partial",
        "message": (
            f"CCIP roles configured on {agent.network}"
            if all_ok
            else f"{succeeded}/{len(steps)} CCIP configuration steps succeeded on {agent.network}"
        ),
        "rwa_token_address": token,
        "pool_address": pool,
        "network": agent.network,
        "steps": steps,
        "next_steps": (
            ["Connect remote chains with asetta_connect_ccip_chains"]
            if all_ok
            else ["Review the failed steps; the token must expose getCCIPAdmin() returning this wallet"]
        ),
    }


def connect_ccip_chains(
    agent: WalletAgent,
    source_chain: str,
    target_chains: list[str],
    pool_addresses: dict[str, str],
    token_addresses: dict[str, str],
    rate_limit_config: dict[str, int] | None = None,
) -> dict[str, Any]:
    """
    Add every target chain to the source pool in a single applyChainUpdates.

    ``agent`` must be bound to ``source_chain``.
    """
    limits = {**DEFAULT_RATE_LIMIT_CONFIG, **(rate_limit_config or {})}
    limiter = (bool(limits["is_enabled"]), int(limits["capacity"]), int(limits["rate"]))

    source_pool = pool_addresses.get(source_chain)
    if not source_pool:
        return {
            "status": "error",
            "message": "Failed to connect CCIP chains",
            "error": f"Pool address not provided for source chain: {source_chain}",
        }

    connections: list[dict[str, Any]] = []
    updates = []
    prepared: list[str] = []
    for target in target_chains:
        entry: dict[str, Any] = {"source_chain": source_chain, "target_chain": target, "connected": False}
        if target == source_chain:
            entry["error"] = "Cannot connect a chain to itself"
            connections.append(entry)
            continue
        remote_pool = pool_addresses.get(target)
        remote_token = token_addresses.get(target)
        if not remote_pool or not remote_token:
            entry["error"] = f"Missing pool or token address for {target}"
            connections.append(entry)
            continue
        try:
            cl = get_chainlink_config(target)
            updates.append(
                (
                    int(cl.chain_selector),
                    [encode(["address"], [to_checksum(remote_pool, "pool address")])],
                    encode(["address"], [to_checksum(remote_token, "token address")]),
                    limiter,
                    limiter,
                )
            )
        except Exception as exc:  # noqa: BLE001
            entry["error"] = str(exc)
            connections.append(entry)
            continue
        prepared.append(target)

    tx_hash = None
    if updates:
        try:
            agent.connect()
            result = agent.transact(source_pool, BURN_MINT_TOKEN_POOL_ABI, "applyChainUpdates", [], updates)
            tx_hash = result.tx_hash
            connections.extend(
                {"source_chain": source_chain, "target_chain": t, "connected": True, "transaction_hash": tx_hash}
                for t in prepared
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("applyChainUpdates failed on %s: %s", source_chain, exc)
            connections.extend(
                {"source_chain": source_chain, "target_chain": t, "connected": False, "error": str(exc)}
                for t in prepared
            )

    connected = [c for c in connections if c["connected"]]
    if connected and len(connected) == len(target_chains):
        status = "success"
    elif connected:
        status = "partial"
    else:
        status = "error"
    return {
        "status": status,
        "message": f"Connected {len(connected)}/{len(target_chains)} chains from {source_chain}",
        "source_chain": source_chain,
        "source_pool": source_pool,
        "transaction_hash": tx_hash,
        "connections": connections,
        "rate_limit_config": {"is_enabled": limiter[0], "capacity": limiter[1], "rate": limiter[2]},
        "next_steps": [
            "Repeat from every other chain so connections are bidirectional",
            "Verify with asetta_validate_ccip_setup",
        ],
    }


def validate_ccip_setup(
    agent: WalletAgent,
    rwa_token_address: str,
    pool_address: str,
    expected_remote_chains: list[str] | None = None,
) -> dict[str, Any]:
    try:
        agent.connect()
        cl = get_chainlink_config(agent.network)
        token = to_checksum(rwa_token_address, "token address")
        pool = to_checksum(pool_address, "pool address")
    except Exception as exc:  # noqa: BLE001
        return {"status": "error", "message": "Failed to validate CCIP setup", "error": str(exc)}

    checks: list[dict[str, Any]] = []

    def check(name: str, fn) -> None:
        try:
            passed, details = fn()
            checks.append({"check": name, "passed": bool(passed), "details": details})
        except Exception as exc:  # noqa: BLE001
            checks.append({"check": name, "passed": False, "details": f"Error: {exc}"})

    def has_role(role: bytes, label: str):
        ok = agent.call(token, RWA_TOKEN_ABI, "hasRole", role, pool)
        return ok, f"Pool {'has' if ok else 'is missing'} {label}"

    def registry_pool():
        registered = agent.call(cl.token_admin_registry, TOKEN_ADMIN_REGISTRY_ABI, "getPool", token)
        ok = registered.lower() == pool.lower()
        return ok, f"Registry pool: {registered}"

    def pool_token():
        actual = agent.call(pool, BURN_MINT_TOKEN_POOL_ABI, "getToken")
        return actual.lower() == token.lower(), f"Pool token: {actual}"

    def remote_chains():
        supported = {str(s) for s in agent.call(pool, BURN_MINT_TOKEN_POOL_ABI, "getSupportedChains")}
        expected = {get_chainlink_config(n).chain_selector: n for n in (expected_remote_chains or [])}
        missing = [name for sel, name in expected.items() if sel not in supported]
        names = [_network_for_selector(s) or s for s in sorted(supported)]
        if missing:
            return False, f"Missing remote chains: {', '.join(missing)} (connected: {', '.join(names) or 'none'})"
        return bool(supported), f"Connected chains: {', '.join(names) or 'none'}"

    def router():
        actual = agent.call(pool, BURN_MINT_TOKEN_POOL_ABI, "getRouter")
        return actual.lower() == cl.router.lower(), f"Pool router: {actual}"

    check("minter_role", lambda: has_role(MINTER_ROLE, "MINTER_ROLE"))
    check("burner_role", lambda: has_role(BURNER_ROLE, "BURNER_ROLE"))
    check("token_admin_registry", registry_pool)
    check("pool_token", pool_token)
    check("remote_chains", remote_chains)
    check("router", router)

    passed = sum(1 for c in checks if c["passed"])
    all_ok = passed == len(checks)
    return {
        "status": "success" if all_ok else "warning",
        "message": f"{passed}/{len(checks)} CCIP checks passed on {agent.network}",
        "network": agent.network,
        "rwa_token_address": token,
        "pool_address": pool,
        "checks": checks,
        "ready_for_transfers": all_ok,
    }


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------


def get_cross_chain_fee(
    agent: WalletAgent,
    token_address: str,
    amount: str,
    destination_account: str,
    destination_chain_selector: str,
    use_native_fee: bool = True,
    fee_token_address: str | None = None,
    gas_limit: int = 0,
) -> dict[str, Any]:
    agent.connect()
    cl = get_chainlink_config(agent.network)
    selector = _parse_selector(destination_chain_selector)
    fee_token = resolve_fee_token(cl, use_native_fee, fee_token_address)
    message = build_ccip_message(
        token_address, parse_units(amount, TOKEN_DECIMALS), destination_account, fee_token, gas_limit
    )
    fee = agent.call(cl.router, CCIP_ROUTER_ABI, "getFee", selector, message)
    label = _fee_label(agent, fee_token, cl)
    return {
        "status": "success",
        "message": f"CCIP fee: {format_units(fee, TOKEN_DECIMALS)} {label}",
        "fee": format_units(fee, TOKEN_DECIMALS),
        "fee_wei": str(fee),
        "fee_token": fee_token,
        "fee_token_symbol": label,
        "source_network": agent.network,
        "destination_chain_selector": str(selector),
        "destination_network": _network_for_selector(str(selector)),
        "token_address": to_checksum(token_address, "token address"),
        "amount": str(amount),
        "destination_account": to_checksum(destination_account, "destination account"),
        "router": cl.router,
    }


def transfer_rwa_cross_chain(
    agent: WalletAgent,
    token_address: str,
    to: str,
    amount: str,
    destination_chain_selector: str,
    use_native_fee: bool = True,
    fee_token_address: str | None = None,
    gas_limit: int = 0,
) -> dict[str, Any]:
    agent.connect()
    cl = get_chainlink_config(agent.network)
    token = to_checksum(token_address, "token address")
    selector = _parse_selector(destination_chain_selector)
    amount_wei = parse_units(amount, TOKEN_DECIMALS)
    fee_token = resolve_fee_token(cl, use_native_fee, fee_token_address)
    pays_native = fee_token == ZERO_ADDRESS

    balance = agent.call(token, ERC20_ABI, "balanceOf", agent.address)
    if balance < amount_wei:
        raise RuntimeError(
            f"Insufficient token balance: have {format_units(balance, TOKEN_DECIMALS)}, need {amount}"
        )
    allowance = agent.call(token, ERC20_ABI, "allowance", agent.address, cl.router)
    if allowance < amount_wei:
        raise RuntimeError("Router allowance too low; run asetta_approve_ccip_router first")

    message = build_ccip_message(token, amount_wei, to, fee_token, gas_limit)
    fee = agent.call(cl.router, CCIP_ROUTER_ABI, "getFee", selector, message)
    if pays_native and agent.get_balance() < fee:
        raise RuntimeError(
            f"Insufficient {agent.network_config.native_currency} for CCIP fee of "
            f"{format_units(fee, TOKEN_DECIMALS)}"
        )

    result = agent.transact(
        cl.router,
        CCIP_ROUTER_ABI,
        "ccipSend",
        selector,
        message,
        value=fee if pays_native else 0,
        simulate=True,
    )
    if result.return_value:
        message_id = hexstr(result.return_value)
    elif result.logs and len(result.logs[0]["topics"]) > 1:
        message_id = result.logs[0]["topics"][1]
    else:
        message_id = None
    logger.info("CCIP message %s sent from %s", message_id, agent.network)

    return {
        "status": "success",
        "message": f"Sent {amount} tokens cross-chain",
        "message_id": message_id,
        "transaction_hash": result.tx_hash,
        "block_number": result.block_number,
        "source_network": agent.network,
        "destination_chain_selector": str(selector),
        "destination_network": _network_for_selector(str(selector)),
        "token_address": token,
        "recipient": to_checksum(to, "recipient address"),
        "amount": str(amount),
        "fee": format_units(fee, TOKEN_DECIMALS),
        "fee_token_symbol": _fee_label(agent, fee_token, cl),
        "explorer_url": agent.tx_url(result.tx_hash),
        "ccip_explorer_url": f"https://ccip.chain.link/msg/{message_id}" if message_id else None,
    }


def approve_ccip_router(
    agent: WalletAgent,
    token_address: str,
    amount: str,
    approve_link_for_fees: bool = False,
    link_fee_amount: str = "100",
) -> dict[str, Any]:
    agent.connect()
    cl = get_chainlink_config(agent.network)
    token = to_checksum(token_address, "token address")

    approvals: list[dict[str, Any]] = []
    result = agent.transact(
        token, ERC20_ABI, "approve", cl.router, parse_units(amount, TOKEN_DECIMALS), simulate=True
    )
    approvals.append(
        {"token": token, "amount": str(amount), "success": True, "transaction_hash": result.tx_hash}
    )

    if approve_link_for_fees:
        try:
            link_result = agent.transact(
                cl.link_token,
                ERC20_ABI,
                "approve",
                cl.router,
                parse_units(link_fee_amount, TOKEN_DECIMALS),
            )
            approvals.append(
                {
                    "token": cl.link_token,
                    "symbol": "LINK",
                    "amount": str(link_fee_amount),
                    "success": True,
                    "transaction_hash": link_result.tx_hash,
                }
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("LINK approval failed: %s", exc)
            approvals.append(
                {
                    "token": cl.link_token,
                    "symbol": "LINK",
                    "amount": str(link_fee_amount),
                    "success": False,
                    "error": str(exc),
                }
            )

    return {
        "status": "success",
        "message": f"Router approved on {agent.network}",
        "router": cl.router,
        "network": agent.network,
        "approvals": approvals,
    }


def mint_rwa_token(agent: WalletAgent, token_address: str, to: str, amount: str) -> dict[str, Any]:
    agent.connect()
    token = to_checksum(token_address, "token address")
    recipient = to_checksum(to, "recipient address")
    result = agent.transact(
        token, RWA_TOKEN_ABI, "mint", recipient, parse_units(amount, TOKEN_DECIMALS), simulate=True
    )
    return {
        "status": "success",
        "message": f"Minted {amount} tokens to {recipient}",
        "transaction_hash": result.tx_hash,
        "block_number": result.block_number,
        "token_address": token,
        "recipient": recipient,
        "amount": str(amount),
        "network": agent.network,
        "explorer_url": agent.tx_url(result.tx_hash),
    }
