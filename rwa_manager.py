"""
RWA manager contract operations.

The tokenization workflow is:
1. create the RWA token (asetta_create_rwa_token)
2. mark CCIP configured once pools are deployed and connected
3. register the project for primary sales
4. activate primary sales

Steps 2-4 report failures as ``status: "error"`` envelopes with
troubleshooting hints rather than raising.
"""

from __future__ import annotations

import logging
from typing import Any

from asetta_config import ZERO_ADDRESS, require_contract_address
from contract_abis import RWA_MANAGER_ABI
from evm_wallet import WalletAgent, format_units, parse_units, to_checksum

logger = logging.getLogger(__name__)

TOTAL_VALUE_DECIMALS = 8
USDC_DECIMALS = 6
TOKEN_DECIMALS = 18
CREATE_CONFIRMATIONS = 2
# Topic 0 of RWAManager's ProjectCreated event.
PROJECT_CREATED_TOPIC = 0x808C10407F796034C5DA8D075C2DE0412DFAD2B0A3AB5B9B2C5D1B7C8EEE1C2


def _manager(agent: WalletAgent) -> str:
    return require_contract_address(agent.network, "rwa_manager")


def _project_id_from_logs(logs: list[dict[str, Any]], manager: str) -> int | None:
    """Read the project id from the first 32 bytes of the manager's ProjectCreated event."""
    for log in logs:
        if log["address"].lower() != manager.lower():
            continue
        topics = log["topics"]
        if not topics or int(topics[0], 16) != PROJECT_CREATED_TOPIC:
            continue
        data = log.get("data") or "0x"
        if len(data) >= 66:
            return int(data[2:66], 16)
    return None


def _token_address(agent: WalletAgent, manager: str, project_id: int) -> str | None:
    # Runs after the create transaction is mined; must not raise.
    try:
        rwa_token = agent.call(manager, RWA_MANAGER_ABI, "getProject", project_id)[0]
    except Exception as exc:
        logger.warning("Could not read token address for project %s: %s", project_id, exc)
        return None
    return None if rwa_token == ZERO_ADDRESS else rwa_token


def _error_envelope(
    action: str,
    exc: Exception,
    input_received: dict[str, Any],
    troubleshooting: list[str],
) -> dict[str, Any]:
    logger.warning("Failed to %s: %s", action, exc)
    return {
        "status": "error",
        "message": f"Failed to {action}",
        "error": str(exc),
        "input_received": input_received,
        "troubleshooting": troubleshooting,
    }


def create_rwa_token(
    agent: WalletAgent,
    name: str,
    symbol: str,
    asset_type: str,
    description: str,
    total_value: str,
    url: str,
    project_wallet: str,
    project_allocation_percent: int,
    price_per_token: str,
) -> dict[str, Any]:
    agent.connect()
    manager = _manager(agent)
    if not 0 <= project_allocation_percent <= 100:
        raise ValueError("project_allocation_percent must be between 0 and 100")
    wallet = to_checksum(project_wallet, "project wallet")
    metadata = (asset_type, description, parse_units(total_value, TOTAL_VALUE_DECIMALS), url, 0)
    logger.info(
        "Creating RWA project %s (%s): value $%s, %s%% to project, %s %s per token",
        name,
        symbol,
        total_value,
        project_allocation_percent,
        price_per_token,
        agent.network_config.native_currency,
    )

    result = agent.transact(
        manager,
        RWA_MANAGER_ABI,
        "createRWAProject",
        name,
        symbol,
        metadata,
        wallet,
        int(project_allocation_percent),
        parse_units(price_per_token, TOKEN_DECIMALS),
        confirmations=CREATE_CONFIRMATIONS,
        simulate=True,
    )

    project_id = result.return_value
    if project_id is None:
        project_id = _project_id_from_logs(result.logs, manager)
    token_address = _token_address(agent, manager, project_id) if project_id is not None else None
    logger.info("Created RWA token %s (project %s)", symbol, project_id)

    return {
        "status": "success",
        "message": f"RWA token {name} ({symbol}) created",
        "project_id": str(project_id) if project_id is not None else None,
        "token_address": token_address,
        "transaction_hash": result.tx_hash,
        "block_number": result.block_number,
        "gas_used": str(result.gas_used),
        "rwa_manager": manager,
        "asset": {
            "type": asset_type,
            "description": description,
            "total_value_usd": total_value,
            "url": url,
        },
        "token_details": {
            "project_wallet": wallet,
            "project_allocation_percent": project_allocation_percent,
            "price_per_token": price_per_token,
            "price_currency": agent.network_config.native_currency,
        },
        "explorer_url": agent.tx_url(result.tx_hash),
        "workflow_progress": {
            "current_step": "1/4",
            "completed": "RWA token created",
            "next_steps": [
                "Deploy and connect CCIP pools (asetta_deploy_ccip_pool, asetta_configure_ccip_roles, asetta_connect_ccip_chains)",
                "Mark CCIP configured (asetta_mark_ccip_configured)",
            ],
        },
    }


def get_rwa_project(agent: WalletAgent, project_id: int) -> dict[str, Any]:
    agent.connect()
    manager = _manager(agent)
    rwa_token, primary_sales, rfq, vault, creator, is_active, created_at = agent.call(
        manager, RWA_MANAGER_ABI, "getProject", int(project_id)
    )
    if creator == ZERO_ADDRESS:
        raise RuntimeError(f"Project {project_id} not found")
    return {
        "status": "success",
        "message": f"Project {project_id} retrieved",
        "project_id": str(project_id),
        "project": {
            "rwa_token": rwa_token,
            "primary_sales": primary_sales,
            "rfq": rfq,
            "vault": vault,
            "creator": creator,
            "is_active": is_active,
            "created_at": int(created_at),
        },
        "rwa_manager": manager,
        "explorer_url": agent.address_url(rwa_token),
    }


def mark_ccip_configured(agent: WalletAgent, project_id: int, total_supply: str) -> dict[str, Any]:
    received = {"project_id": project_id, "total_supply": total_supply}
    try:
        agent.connect()
        manager = _manager(agent)
        supply = parse_units(total_supply, TOKEN_DECIMALS)
        result = agent.transact(
            manager, RWA_MANAGER_ABI, "markCCIPConfigured", int(project_id), supply, simulate=True
        )
    except Exception as exc:  # noqa: BLE001
        return _error_envelope(
            "mark project as CCIP configured",
            exc,
            received,
            [
                "Verify the project id returned by asetta_create_rwa_token",
                "Verify the project is still in CREATED status",
                "Only the project creator can mark CCIP configured",
                "Check that the wallet has gas on this network",
            ],
        )
    return {
        "status": "success",
        "message": f"Project {project_id} marked as CCIP configured",
        "transaction_hash": result.tx_hash,
        "block_number": result.block_number,
        "total_supply": total_supply,
        "explorer_url": agent.tx_url(result.tx_hash),
        "workflow_progress": {
            "current_step": "2/4",
            "completed": "CCIP configured",
            "next_step": "Register for primary sales with asetta_register_primary_sales",
        },
    }


def register_primary_sales(
    agent: WalletAgent,
    project_id: int,
    project_wallet: str,
    project_allocation_percent: int,
    price_per_token: str,
    min_purchase: str,
    max_purchase: str,
) -> dict[str, Any]:
    received = {
        "project_id": project_id,
        "project_wallet": project_wallet,
        "project_allocation_percent": project_allocation_percent,
        "price_per_token": price_per_token,
        "min_purchase": min_purchase,
        "max_purchase": max_purchase,
    }
    try:
        if not 0 <= int(project_allocation_percent) <= 100:
            raise ValueError("project_allocation_percent must be between 0 and 100")
        wallet = to_checksum(project_wallet, "project wallet")
        price = parse_units(price_per_token, USDC_DECIMALS)
        minimum = parse_units(min_purchase, USDC_DECIMALS)
        maximum = parse_units(max_purchase, USDC_DECIMALS)
        if maximum < minimum:
            raise ValueError("max_purchase must not be below min_purchase")
        agent.connect()
        manager = _manager(agent)
        result = agent.transact(
            manager,
            RWA_MANAGER_ABI,
            "registerForPrimarySales",
            int(project_id),
            wallet,
            int(project_allocation_percent),
            price,
            minimum,
            maximum,
            simulate=True,
        )
    except Exception as exc:  # noqa: BLE001
        return _error_envelope(
            "register for primary sales",
            exc,
            received,
            [
                "The project must be marked CCIP configured first",
                "Prices and purchase limits are USDC amounts (6 decimals)",
                "Allocation percent must be between 0 and 100",
            ],
        )
    return {
        "status": "success",
        "message": f"Project {project_id} registered for primary sales",
        "transaction_hash": result.tx_hash,
        "block_number": result.block_number,
        "sales_configuration": {
            "project_wallet": wallet,
            "project_allocation_percent": int(project_allocation_percent),
            "primary_sales_percent": 100 - int(project_allocation_percent),
            "price_per_token_usdc": format_units(price, USDC_DECIMALS),
            "min_purchase_usdc": format_units(minimum, USDC_DECIMALS),
            "max_purchase_usdc": format_units(maximum, USDC_DECIMALS),
        },
        "explorer_url": agent.tx_url(result.tx_hash),
        "workflow_progress": {
            "current_step": "3/4",
            "completed": "Registered for primary sales",
            "next_step": "Activate primary sales with asetta_activate_primary_sales",
        },
    }


def activate_primary_sales(agent: WalletAgent, project_id: int) -> dict[str, Any]:
    received = {"project_id": project_id}
    try:
        agent.connect()
        manager = _manager(agent)
        result = agent.transact(
            manager, RWA_MANAGER_ABI, "activatePrimarySales", int(project_id), simulate=True
        )
    except Exception as exc:  # noqa: BLE001
        return _error_envelope(
            "activate primary sales",
            exc,
            received,
            [
                "The project must be registered for primary sales first",
                "Only the project creator can activate sales",
            ],
        )
    return {
        "status": "success",
        "message": f"Primary sales activated for project {project_id}",
        "transaction_hash": result.tx_hash,
        "block_number": result.block_number,
        "explorer_url": agent.tx_url(result.tx_hash),
        "workflow_progress": {
            "current_step": "4/4",
            "completed": "Primary sales active",
            "next_step": "Investors can now purchase tokens with USDC",
        },
    }
