#!/usr/bin/env python3
"""
MCP server for Asetta RWA tokenization.

Exposes the REST API tools (default "legal" mode) or the wallet, RWA
manager and Chainlink CCIP tools (--agent_mode=tokenization) over stdio.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, List

from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import ValidationError

SERVER_DIR = Path(__file__).resolve().parent
load_dotenv(SERVER_DIR / ".env")

from asetta_api import (  # noqa: E402
    create_rwa_project,
    get_profile,
    get_rwa_projects,
    update_project_status,
)
from asetta_config import AsettaConfig, validate_environment  # noqa: E402
from ccip_wallet import (  # noqa: E402
    approve_ccip_router,
    configure_ccip_guide,
    configure_ccip_roles,
    connect_ccip_chains,
    deploy_ccip_pool,
    get_chain_selectors,
    get_cross_chain_fee,
    mint_rwa_token,
    transfer_rwa_cross_chain,
    validate_ccip_setup,
)
from erc20_wallet import (  # noqa: E402
    approve_token,
    check_allowance,
    get_account_balances,
    get_token_info,
    get_transaction_history,
    get_usdc_balance,
    get_wallet_info,
    mint_usdc,
    send_native,
    send_token,
)
from evm_wallet import WalletAgent  # noqa: E402
from rwa_manager import (  # noqa: E402
    activate_primary_sales,
    create_rwa_token,
    get_rwa_project,
    mark_ccip_configured,
    register_primary_sales,
)
from tool_schemas import (  # noqa: E402
    ActivatePrimarySalesInput,
    ApproveCcipRouterInput,
    ApproveTokenInput,
    CheckAllowanceInput,
    ConfigureCcipInput,
    ConfigureCcipRolesInput,
    ConnectCcipChainsInput,
    CreateRwaProjectInput,
    CreateRwaTokenInput,
    DeployCcipPoolInput,
    GetAccountBalancesInput,
    GetChainSelectorsInput,
    GetCrossChainFeeInput,
    GetProfileInput,
    GetRwaProjectInput,
    GetRwaProjectsInput,
    GetTokenInfoInput,
    GetTransactionHistoryInput,
    GetUsdcBalanceInput,
    GetWalletInfoInput,
    MarkCcipConfiguredInput,
    MintRwaTokenInput,
    MintUsdcInput,
    RegisterPrimarySalesInput,
    SendNativeInput,
    SendTokenInput,
    ToolInput,
    TransferRwaCrossChainInput,
    UpdateProjectStatusInput,
    ValidateCcipSetupInput,
)

logger = logging.getLogger("asetta_mcp")

app = Server("asetta-mcp")

_CONFIG: AsettaConfig | None = None


def _get_config() -> AsettaConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = AsettaConfig.from_args(sys.argv[1:])
    return _CONFIG


def _ok_response(data: dict[str, Any]) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps(data, indent=2, default=str))]


def _amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _validate(model: type[ToolInput], arguments: dict[str, Any]) -> ToolInput:
    try:
        return model.model_validate(arguments)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in exc.errors()
        )
        raise ValueError(f"Invalid arguments: {problems}") from exc


async def _run_wallet(action: str, network: str | None, fn: Callable[..., dict], *args: Any) -> List[TextContent]:
    """Run ``fn(agent, *args)`` on a fresh agent for ``network`` in a worker thread."""
    cfg = _get_config()
    agent = None
    try:
        agent = await asyncio.to_thread(WalletAgent, cfg, network)
        result = await asyncio.to_thread(fn, agent, *args)
    except Exception as exc:
        raise RuntimeError(f"Failed to {action}: {exc}") from exc
    finally:
        if agent is not None:
            agent.disconnect()
    return _ok_response(result)


async def _run_api(action: str, fn: Callable[..., dict], *args: Any) -> List[TextContent]:
    cfg = _get_config()
    try:
        result = await asyncio.to_thread(fn, cfg, *args)
    except Exception as exc:
        raise RuntimeError(f"Failed to {action}: {exc}") from exc
    return _ok_response(result)


# ---------------------------------------------------------------------------
# REST API handlers
# ---------------------------------------------------------------------------


async def _handle_get_profile(params: GetProfileInput) -> List[TextContent]:
    return await _run_api("get profile", get_profile, params.access_key)


async def _handle_create_rwa_project(params: CreateRwaProjectInput) -> List[TextContent]:
    fields = params.model_dump(exclude={"access_key"}, exclude_none=True)
    return await _run_api("create RWA project", create_rwa_project, fields, params.access_key)


async def _handle_get_rwa_projects(params: GetRwaProjectsInput) -> List[TextContent]:
    return await _run_api("get RWA projects", get_rwa_projects, params.project_id, params.access_key)


async def _handle_update_project_status(params: UpdateProjectStatusInput) -> List[TextContent]:
    links = params.model_dump(exclude={"access_key", "project_id", "status"}, exclude_none=True)
    return await _run_api(
        "update project status",
        update_project_status,
        params.project_id,
        params.status,
        links,
        params.access_key,
    )


# ---------------------------------------------------------------------------
# Wallet handlers
# ---------------------------------------------------------------------------


async def _handle_get_wallet_info(params: GetWalletInfoInput) -> List[TextContent]:
    return await _run_wallet("get wallet info", params.network, get_wallet_info)


async def _handle_get_account_balances(params: GetAccountBalancesInput) -> List[TextContent]:
    return await _run_wallet(
        "get account balances", params.network, get_account_balances, params.account_address
    )


async def _handle_get_transaction_history(params: GetTransactionHistoryInput) -> List[TextContent]:
    return await _run_wallet(
        "get transaction history",
        params.network,
        get_transaction_history,
        params.account_address,
        params.limit,
    )


async def _handle_send_native(params: SendNativeInput) -> List[TextContent]:
    return await _run_wallet(
        "send native currency",
        params.network,
        send_native,
        params.destination,
        _amount(params.amount),
        params.memo,
    )


async def _handle_send_token(params: SendTokenInput) -> List[TextContent]:
    return await _run_wallet(
        "send tokens",
        params.network,
        send_token,
        params.token_address,
        params.destination,
        _amount(params.amount),
        params.memo,
    )


async def _handle_approve_token(params: ApproveTokenInput) -> List[TextContent]:
    amount = _amount(params.amount) if params.amount is not None else None
    return await _run_wallet(
        "approve token",
        params.network,
        approve_token,
        params.token_address,
        params.spender,
        amount,
        params.unlimited,
    )


async def _handle_check_allowance(params: CheckAllowanceInput) -> List[TextContent]:
    return await _run_wallet(
        "check allowance",
        params.network,
        check_allowance,
        params.token_address,
        params.spender,
        params.owner,
    )


async def _handle_get_token_info(params: GetTokenInfoInput) -> List[TextContent]:
    return await _run_wallet(
        "get token info", params.network, get_token_info, params.token_address, params.account_address
    )


async def _handle_mint_usdc(params: MintUsdcInput) -> List[TextContent]:
    return await _run_wallet(
        "mint USDC", params.network, mint_usdc, _amount(params.amount), params.recipient
    )


async def _handle_get_usdc_balance(params: GetUsdcBalanceInput) -> List[TextContent]:
    return await _run_wallet(
        "get USDC balance", params.network, get_usdc_balance, params.account_address
    )


# ---------------------------------------------------------------------------
# RWA manager handlers
# ---------------------------------------------------------------------------


async def _handle_create_rwa_token(params: CreateRwaTokenInput) -> List[TextContent]:
    return await _run_wallet(
        "create RWA token",
        None,
        create_rwa_token,
        params.name,
        params.symbol,
        params.assetType,
        params.description,
        params.totalValue,
        params.url,
        params.projectWallet,
        params.projectAllocationPercent,
        params.pricePerTokenAVAX,
    )


async def _handle_get_rwa_project(params: GetRwaProjectInput) -> List[TextContent]:
    return await _run_wallet("get RWA project", None, get_rwa_project, int(params.projectId))


async def _handle_mark_ccip_configured(params: MarkCcipConfiguredInput) -> List[TextContent]:
    return await _run_wallet(
        "mark CCIP configured",
        params.network,
        mark_ccip_configured,
        int(params.project_id),
        params.total_supply,
    )


async def _handle_register_primary_sales(params: RegisterPrimarySalesInput) -> List[TextContent]:
    return await _run_wallet(
        "register primary sales",
        params.network,
        register_primary_sales,
        int(params.project_id),
        params.project_wallet,
        params.project_allocation_percent,
        params.price_per_token_usdc,
        params.min_purchase_usdc,
        params.max_purchase_usdc,
    )


async def _handle_activate_primary_sales(params: ActivatePrimarySalesInput) -> List[TextContent]:
    return await _run_wallet(
        "activate primary sales", params.network, activate_primary_sales, int(params.project_id)
    )


# ---------------------------------------------------------------------------
# CCIP handlers
# ---------------------------------------------------------------------------


async def _handle_configure_ccip(params: ConfigureCcipInput) -> List[TextContent]:
    network = params.network or _get_config().network
    return _ok_response(
        configure_ccip_guide(network, params.project_id, params.source_chain, params.destination_chains)
    )


async def _handle_deploy_ccip_pool(params: DeployCcipPoolInput) -> List[TextContent]:
    return await _run_wallet(
        "deploy CCIP pool", params.network, deploy_ccip_pool, params.rwaTokenAddress, params.allowlist
    )


async def _handle_configure_ccip_roles(params: ConfigureCcipRolesInput) -> List[TextContent]:
    return await _run_wallet(
        "configure CCIP roles",
        params.network,
        configure_ccip_roles,
        params.rwaTokenAddress,
        params.poolAddress,
    )


async def _handle_connect_ccip_chains(params: ConnectCcipChainsInput) -> List[TextContent]:
    rate_limit = params.rateLimitConfig.model_dump() if params.rateLimitConfig else None
    return await _run_wallet(
        "connect CCIP chains",
        params.sourceChain,
        connect_ccip_chains,
        params.sourceChain,
        list(params.targetChains),
        dict(params.poolAddresses),
        dict(params.tokenAddresses),
        rate_limit,
    )


async def _handle_validate_ccip_setup(params: ValidateCcipSetupInput) -> List[TextContent]:
    return await _run_wallet(
        "validate CCIP setup",
        params.network,
        validate_ccip_setup,
        params.rwaTokenAddress,
        params.poolAddress,
        params.expectedRemoteChains,
    )


async def _handle_get_chain_selectors(params: GetChainSelectorsInput) -> List[TextContent]:
    return _ok_response(get_chain_selectors())


async def _handle_get_cross_chain_fee(params: GetCrossChainFeeInput) -> List[TextContent]:
    return await _run_wallet(
        "get cross-chain fee",
        params.network,
        get_cross_chain_fee,
        params.token_address,
        _amount(params.amount),
        params.destination_account,
        params.destination_chain_selector,
        params.use_native_fee,
        params.fee_token_address,
        params.gas_limit,
    )


async def _handle_transfer_rwa_cross_chain(params: TransferRwaCrossChainInput) -> List[TextContent]:
    return await _run_wallet(
        "transfer RWA tokens cross-chain",
        params.network,
        transfer_rwa_cross_chain,
        params.token_address,
        params.to,
        _amount(params.amount),
        params.destination_chain_selector,
        params.use_native_fee,
        params.fee_token_address,
        params.gas_limit,
    )


async def _handle_approve_ccip_router(params: ApproveCcipRouterInput) -> List[TextContent]:
    return await _run_wallet(
        "approve CCIP router",
        params.network,
        approve_ccip_router,
        params.token_address,
        _amount(params.amount),
        params.approve_link_for_fees,
        _amount(params.link_fee_amount),
    )


async def _handle_mint_rwa_token(params: MintRwaTokenInput) -> List[TextContent]:
    return await _run_wallet(
        "mint RWA tokens",
        params.network,
        mint_rwa_token,
        params.token_address,
        params.to,
        _amount(params.amount),
    )


# ---------------------------------------------------------------------------
# Tool registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolSpec:
    model: type[ToolInput]
    description: str
    handler: Callable[[Any], Awaitable[List[TextContent]]]


_UPDATE_STATUS = ToolSpec(
    UpdateProjectStatusInput,
    "Update an RWA project's status and record its deployed contract addresses.",
    _handle_update_project_status,
)

API_TOOLS: dict[str, ToolSpec] = {
    "asetta_get_profile": ToolSpec(
        GetProfileInput, "Get the Asetta user profile for the access key.", _handle_get_profile
    ),
    "asetta_create_rwa_project": ToolSpec(
        CreateRwaProjectInput,
        "Create an RWA project record (real estate, bonds, commodities) in the Asetta backend.",
        _handle_create_rwa_project,
    ),
    "asetta_get_rwa_projects": ToolSpec(
        GetRwaProjectsInput,
        "List the user's RWA projects, or fetch one by project_id.",
        _handle_get_rwa_projects,
    ),
    "asetta_update_project_status": _UPDATE_STATUS,
}

TOKENIZATION_TOOLS: dict[str, ToolSpec] = {
    "asetta_get_wallet_info": ToolSpec(
        GetWalletInfoInput,
        "Show the wallet address, native balance and readiness for RWA operations.",
        _handle_get_wallet_info,
    ),
    "asetta_get_account_balances": ToolSpec(
        GetAccountBalancesInput, "Get the native balance of an address.", _handle_get_account_balances
    ),
    "asetta_get_transaction_history": ToolSpec(
        GetTransactionHistoryInput,
        "List recent transactions sent from or to an address by scanning recent blocks.",
        _handle_get_transaction_history,
    ),
    "asetta_send_native": ToolSpec(
        SendNativeInput, "Send native currency (AVAX/ETH) to an address.", _handle_send_native
    ),
    "asetta_send_token": ToolSpec(SendTokenInput, "Transfer ERC20 tokens.", _handle_send_token),
    "asetta_approve_token": ToolSpec(
        ApproveTokenInput,
        "Approve a spender for an ERC20 token (unlimited by default).",
        _handle_approve_token,
    ),
    "asetta_check_allowance": ToolSpec(
        CheckAllowanceInput, "Check an ERC20 allowance against the owner's balance.", _handle_check_allowance
    ),
    "asetta_get_token_info": ToolSpec(
        GetTokenInfoInput, "Get ERC20 metadata, supply and a holder's balance.", _handle_get_token_info
    ),
    "asetta_mint_usdc": ToolSpec(MintUsdcInput, "Mint test USDC.", _handle_mint_usdc),
    "asetta_get_usdc_balance": ToolSpec(
        GetUsdcBalanceInput, "Get the test USDC balance of an address.", _handle_get_usdc_balance
    ),
    "asetta_create_rwa_token": ToolSpec(
        CreateRwaTokenInput,
        "Create an RWA token through the RWA manager (workflow step 1/4).",
        _handle_create_rwa_token,
    ),
    "asetta_get_rwa_project": ToolSpec(
        GetRwaProjectInput, "Read an on-chain RWA project by id.", _handle_get_rwa_project
    ),
    "asetta_mark_ccip_configured": ToolSpec(
        MarkCcipConfiguredInput,
        "Mark a project as CCIP configured (workflow step 2/4).",
        _handle_mark_ccip_configured,
    ),
    "asetta_register_primary_sales": ToolSpec(
        RegisterPrimarySalesInput,
        "Register a project for USDC primary sales (workflow step 3/4).",
        _handle_register_primary_sales,
    ),
    "asetta_activate_primary_sales": ToolSpec(
        ActivatePrimarySalesInput,
        "Activate primary sales for a project (workflow step 4/4).",
        _handle_activate_primary_sales,
    ),
    "asetta_configure_ccip": ToolSpec(
        ConfigureCcipInput, "Step-by-step guide for CCIP cross-chain setup.", _handle_configure_ccip
    ),
    "asetta_deploy_ccip_pool": ToolSpec(
        DeployCcipPoolInput, "Deploy a BurnMintTokenPool for an RWA token.", _handle_deploy_ccip_pool
    ),
    "asetta_configure_ccip_roles": ToolSpec(
        ConfigureCcipRolesInput,
        "Grant mint/burn roles to a pool and register it in the TokenAdminRegistry.",
        _handle_configure_ccip_roles,
    ),
    "asetta_connect_ccip_chains": ToolSpec(
        ConnectCcipChainsInput,
        "Connect a source pool to remote pools on other chains.",
        _handle_connect_ccip_chains,
    ),
    "asetta_validate_ccip_setup": ToolSpec(
        ValidateCcipSetupInput,
        "Check roles, registry, router and remote chains of a CCIP pool.",
        _handle_validate_ccip_setup,
    ),
    "asetta_get_chain_selectors": ToolSpec(
        GetChainSelectorsInput, "List CCIP chain selectors and routers.", _handle_get_chain_selectors
    ),
    "asetta_get_cross_chain_fee": ToolSpec(
        GetCrossChainFeeInput, "Quote the CCIP fee for a token transfer.", _handle_get_cross_chain_fee
    ),
    "asetta_transfer_rwa_cross_chain": ToolSpec(
        TransferRwaCrossChainInput,
        "Send RWA tokens to another chain through CCIP.",
        _handle_transfer_rwa_cross_chain,
    ),
    "asetta_approve_ccip_router": ToolSpec(
        ApproveCcipRouterInput,
        "Approve the CCIP router to spend RWA tokens (and optionally LINK).",
        _handle_approve_ccip_router,
    ),
    "asetta_mint_rwa_token": ToolSpec(
        MintRwaTokenInput, "Mint RWA tokens (caller needs MINTER_ROLE).", _handle_mint_rwa_token
    ),
    "asetta_update_project_status": _UPDATE_STATUS,
}


def tools_for_mode(cfg: AsettaConfig) -> dict[str, ToolSpec]:
    return TOKENIZATION_TOOLS if cfg.is_tokenization else API_TOOLS


@app.list_tools()
async def list_tools() -> List[Tool]:
    return [
        Tool(name=name, description=tool.description, inputSchema=tool.model.model_json_schema())
        for name, tool in tools_for_mode(_get_config()).items()
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> List[TextContent]:
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ValueError("Invalid arguments. Expected an object.")
    tool = tools_for_mode(_get_config()).get(name)
    if tool is None:
        raise ValueError(f"Unknown tool: {name}")
    params = _validate(tool.model, arguments)
    return await tool.handler(params)


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("ASETTA_LOG_LEVEL", "INFO").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def main() -> None:
    global _CONFIG
    _configure_logging()
    _CONFIG = AsettaConfig.from_args(sys.argv[1:])
    validate_environment(_CONFIG)
    logger.info("Starting asetta-mcp with %d tools", len(tools_for_mode(_CONFIG)))
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
