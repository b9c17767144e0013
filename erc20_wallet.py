"""
EVM wallet and ERC20 operations for the tokenization agent.

Implements:
- Wallet info, native balances and recent transaction history
- Native and ERC20 transfers
- ERC20 approvals, allowance checks and token metadata
- Mock USDC minting and balances (6 decimals)
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any

from asetta_config import require_contract_address
from contract_abis import ERC20_ABI, MOCK_USDC_ABI
from evm_wallet import MAX_UINT256, WalletAgent, format_units, hexstr, parse_units, to_checksum

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18
USDC_DECIMALS = 6
MIN_BALANCE_FOR_RWA = parse_units("0.01", NATIVE_DECIMALS)
MIN_BALANCE_FOR_GAS = parse_units("0.001", NATIVE_DECIMALS)
MAX_HISTORY_BLOCKS = 1000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fixed(value: int, decimals: int, places: int = 6) -> str:
    return f"{Decimal(format_units(value, decimals)):.{places}f}"


def _token_metadata(agent: WalletAgent, token: str) -> tuple[str, str, int]:
    name = agent.call(token, ERC20_ABI, "name")
    symbol = agent.call(token, ERC20_ABI, "symbol")
    decimals = int(agent.call(token, ERC20_ABI, "decimals"))
    return name, symbol, decimals


def _age(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def _has_calldata(data: Any) -> bool:
    if data is None:
        return False
    if isinstance(data, (bytes, bytearray)):
        return len(data) > 0
    return str(data) not in ("", "0x")


# ---------------------------------------------------------------------------
# Native currency
# ---------------------------------------------------------------------------


def get_wallet_info(agent: WalletAgent) -> dict[str, Any]:
    chain_id = agent.connect()
    net = agent.network_config
    balance = agent.get_balance()
    can_register = balance >= MIN_BALANCE_FOR_RWA
    ready = balance >= MIN_BALANCE_FOR_GAS

    recommendations = []
    if not ready:
        recommendations.append(
            f"Fund the wallet with {net.native_currency} from a {net.name} faucet before sending transactions"
        )
    elif not can_register:
        recommendations.append(
            f"At least 0.01 {net.native_currency} is recommended before creating RWA tokens"
        )
    else:
        recommendations.append("Wallet is funded for RWA tokenization and CCIP operations")

    return {
        "status": "success",
        "message": "Wallet information retrieved successfully",
        "wallet_address": agent.address,
        "balance": _fixed(balance, NATIVE_DECIMALS),
        "balance_wei": str(balance),
        "native_currency": net.native_currency,
        "network": net.name,
        "chain_id": chain_id,
        "block_explorer": agent.address_url(agent.address),
        "can_register_rwa": can_register,
        "ready_for_operations": ready,
        "recommendations": recommendations,
    }


def get_account_balances(agent: WalletAgent, address: str | None = None) -> dict[str, Any]:
    agent.connect()
    target = to_checksum(address) if address else agent.address
    balance = agent.get_balance(target)
    return {
        "status": "success",
        "message": "Balance retrieved successfully",
        "address": target,
        "is_own_wallet": target.lower() == agent.address.lower(),
        "native_balance": _fixed(balance, NATIVE_DECIMALS),
        "native_balance_wei": str(balance),
        "native_currency": agent.network_config.native_currency,
        "network": agent.network,
        "can_pay_gas": balance > MIN_BALANCE_FOR_GAS,
        "explorer_url": agent.address_url(target),
    }


def get_transaction_history(
    agent: WalletAgent,
    address: str | None = None,
    limit: int = 20,
) -> dict[str, Any]:
    """
    Scan recent blocks for transactions sent from or to ``address``.

    At most ``min(limit * 5, 1000)`` blocks are fetched, newest first.
    """
    agent.connect()
    target = to_checksum(address) if address else agent.address
    target_lower = target.lower()
    latest = agent.block_number()
    blocks_to_scan = min(limit * 5, MAX_HISTORY_BLOCKS)
    now = int(time.time())

    transactions: list[dict[str, Any]] = []
    total_sent = 0
    total_received = 0
    blocks_scanned = 0
    for number in range(latest, max(latest - blocks_to_scan, -1), -1):
        if len(transactions) >= limit:
            break
        block = agent.get_block(number, full_transactions=True)
        blocks_scanned += 1
        for tx in block["transactions"]:
            sender = (tx.get("from") or "").lower()
            recipient = (tx.get("to") or "").lower()
            if target_lower not in (sender, recipient):
                continue
            tx_hash = hexstr(tx["hash"])
            receipt = agent.get_receipt(tx_hash)
            direction = "sent" if sender == target_lower else "received"
            value = int(tx.get("value", 0))
            if direction == "sent":
                total_sent += value
            else:
                total_received += value
            timestamp = int(block["timestamp"])
            transactions.append(
                {
                    "hash": tx_hash,
                    "block_number": number,
                    "from": tx.get("from"),
                    "to": tx.get("to"),
                    "value": format_units(value, NATIVE_DECIMALS),
                    "direction": direction,
                    "status": "success" if receipt["status"] == 1 else "failed",
                    "gas_used": str(receipt["gasUsed"]),
                    "is_contract_interaction": _has_calldata(tx.get("input")),
                    "timestamp": timestamp,
                    "age": _age(max(now - timestamp, 0)),
                    "explorer_url": agent.tx_url(tx_hash),
                }
            )
            if len(transactions) >= limit:
                break

    currency = agent.network_config.native_currency
    net = total_received - total_sent
    return {
        "status": "success",
        "message": f"Found {len(transactions)} transactions in the last {blocks_scanned} blocks",
        "address": target,
        "network": agent.network,
        "transactions": transactions,
        "summary": {
            "total_transactions": len(transactions),
            "sent": sum(1 for t in transactions if t["direction"] == "sent"),
            "received": sum(1 for t in transactions if t["direction"] == "received"),
            "contract_interactions": sum(1 for t in transactions if t["is_contract_interaction"]),
            "total_sent": f"{format_units(total_sent, NATIVE_DECIMALS)} {currency}",
            "total_received": f"{format_units(total_received, NATIVE_DECIMALS)} {currency}",
            "net_flow": f"{'-' if net < 0 else ''}{format_units(abs(net), NATIVE_DECIMALS)} {currency}",
            "blocks_scanned": blocks_scanned,
        },
    }


def send_native(
    agent: WalletAgent,
    to_address: str,
    amount: str,
    memo: str | None = None,
) -> dict[str, Any]:
    agent.connect()
    recipient = to_checksum(to_address, "recipient address")
    value = parse_units(amount, NATIVE_DECIMALS)
    if value <= 0:
        raise ValueError("Amount must be greater than zero")
    currency = agent.network_config.native_currency

    balance = agent.get_balance()
    if balance < value:
        raise RuntimeError(
            f"Insufficient balance: have {format_units(balance, NATIVE_DECIMALS)} {currency}, "
            f"need {amount} {currency}"
        )
    gas = agent.estimate_gas({"to": recipient, "value": value})
    gas_price = agent.gas_price()
    gas_cost = gas * gas_price
    if balance < value + gas_cost:
        raise RuntimeError(
            f"Insufficient balance for amount plus gas: need "
            f"{format_units(value + gas_cost, NATIVE_DECIMALS)} {currency}"
        )

    result = agent.send_native(recipient, value, gas)
    return {
        "status": "success",
        "message": f"Sent {amount} {currency} to {recipient}",
        "transaction_hash": result.tx_hash,
        "from": agent.address,
        "to": recipient,
        "amount": amount,
        "currency": currency,
        "memo": memo,
        "gas_used": str(result.gas_used),
        "gas_cost": format_units(result.gas_used * gas_price, NATIVE_DECIMALS),
        "block_number": result.block_number,
        "explorer_url": agent.tx_url(result.tx_hash),
    }


# ---------------------------------------------------------------------------
# ERC20
# ---------------------------------------------------------------------------


def send_token(
    agent: WalletAgent,
    token_address: str,
    to_address: str,
    amount: str,
    memo: str | None = None,
) -> dict[str, Any]:
    agent.connect()
    token = to_checksum(token_address, "token address")
    recipient = to_checksum(to_address, "recipient address")
    _name, symbol, decimals = _token_metadata(agent, token)
    value = parse_units(amount, decimals)

    balance = agent.call(token, ERC20_ABI, "balanceOf", agent.address)
    if balance < value:
        raise RuntimeError(
            f"Insufficient {symbol} balance: have {format_units(balance, decimals)}, need {amount}"
        )

    result = agent.transact(token, ERC20_ABI, "transfer", recipient, value, simulate=True)
    return {
        "status": "success",
        "message": f"Sent {amount} {symbol} to {recipient}",
        "transaction_hash": result.tx_hash,
        "token_address": token,
        "token_symbol": symbol,
        "from": agent.address,
        "to": recipient,
        "amount": amount,
        "memo": memo,
        "gas_used": str(result.gas_used),
        "block_number": result.block_number,
        "explorer_url": agent.tx_url(result.tx_hash),
    }


def approve_token(
    agent: WalletAgent,
    token_address: str,
    spender_address: str,
    amount: str | None = None,
    unlimited: bool = True,
) -> dict[str, Any]:
    agent.connect()
    token = to_checksum(token_address, "token address")
    spender = to_checksum(spender_address, "spender address")
    _name, symbol, decimals = _token_metadata(agent, token)

    if unlimited or not amount:
        value = MAX_UINT256
        display_amount = "unlimited"
    else:
        value = parse_units(amount, decimals)
        display_amount = amount

    current = agent.call(token, ERC20_ABI, "allowance", agent.address, spender)
    if value != MAX_UINT256 and current >= value:
        return {
            "status": "success",
            "message": f"Existing allowance already covers {display_amount} {symbol}; no transaction sent",
            "token_address": token,
            "spender": spender,
            "current_allowance": format_units(current, decimals),
            "approval_needed": False,
        }

    result = agent.transact(token, ERC20_ABI, "approve", spender, value, simulate=True)
    new_allowance = agent.call(token, ERC20_ABI, "allowance", agent.address, spender)
    return {
        "status": "success",
        "message": f"Approved {display_amount} {symbol} for {spender}",
        "transaction_hash": result.tx_hash,
        "token_address": token,
        "token_symbol": symbol,
        "spender": spender,
        "approved_amount": display_amount,
        "previous_allowance": format_units(current, decimals),
        "new_allowance": "unlimited" if new_allowance >= MAX_UINT256 // 2 else format_units(new_allowance, decimals),
        "gas_used": str(result.gas_used),
        "block_number": result.block_number,
        "explorer_url": agent.tx_url(result.tx_hash),
    }


def check_allowance(
    agent: WalletAgent,
    token_address: str,
    spender_address: str,
    owner_address: str | None = None,
) -> dict[str, Any]:
    agent.connect()
    token = to_checksum(token_address, "token address")
    spender = to_checksum(spender_address, "spender address")
    owner = to_checksum(owner_address, "owner address") if owner_address else agent.address
    _name, symbol, decimals = _token_metadata(agent, token)

    allowance = agent.call(token, ERC20_ABI, "allowance", owner, spender)
    balance = agent.call(token, ERC20_ABI, "balanceOf", owner)
    is_unlimited = allowance >= MAX_UINT256 // 2

    if allowance == 0:
        recommendation = f"No allowance set. Approve {spender} before it can move {symbol}"
    elif is_unlimited:
        recommendation = "Unlimited allowance granted; revoke it if the spender is no longer trusted"
    elif allowance < balance:
        recommendation = "Allowance is below the token balance; increase it to use the full balance"
    else:
        recommendation = "Allowance covers the full token balance"

    return {
        "status": "success",
        "message": f"Allowance for {symbol} retrieved",
        "token_address": token,
        "token_symbol": symbol,
        "owner": owner,
        "spender": spender,
        "allowance": "unlimited" if is_unlimited else format_units(allowance, decimals),
        "allowance_raw": str(allowance),
        "is_unlimited": is_unlimited,
        "balance": format_units(balance, decimals),
        "can_spend_full_balance": allowance >= balance,
        "recommendation": recommendation,
    }


def get_token_info(
    agent: WalletAgent,
    token_address: str,
    holder_address: str | None = None,
) -> dict[str, Any]:
    agent.connect()
    token = to_checksum(token_address, "token address")
    holder = to_checksum(holder_address, "holder address") if holder_address else agent.address

    code = agent.get_code(token)
    if not code:
        raise RuntimeError(f"No contract deployed at {token} on {agent.network}")

    name, symbol, decimals = _token_metadata(agent, token)
    total_supply = agent.call(token, ERC20_ABI, "totalSupply")
    balance = agent.call(token, ERC20_ABI, "balanceOf", holder)
    share = (Decimal(balance) / Decimal(total_supply) * 100) if total_supply else Decimal(0)

    if share >= 50:
        holder_class = "majority holder"
    elif share >= 10:
        holder_class = "major holder"
    elif share > 0:
        holder_class = "holder"
    else:
        holder_class = "no holdings"

    return {
        "status": "success",
        "message": f"Token information for {symbol} retrieved",
        "token_address": token,
        "name": name,
        "symbol": symbol,
        "decimals": decimals,
        "total_supply": format_units(total_supply, decimals),
        "holder": holder,
        "balance": format_units(balance, decimals),
        "share_of_supply_percent": f"{share:.4f}",
        "holder_class": holder_class,
        "is_contract": True,
        "explorer_url": agent.address_url(token),
    }


# ---------------------------------------------------------------------------
# Mock USDC
# ---------------------------------------------------------------------------


def mint_usdc(agent: WalletAgent, amount: str, recipient: str | None = None) -> dict[str, Any]:
    agent.connect()
    usdc = require_contract_address(agent.network, "mock_usdc")
    to = to_checksum(recipient, "recipient address") if recipient else agent.address
    value = parse_units(amount, USDC_DECIMALS)
    if value <= 0:
        raise ValueError("Amount must be greater than zero")

    before = agent.call(usdc, MOCK_USDC_ABI, "balanceOf", to)
    result = agent.transact(usdc, MOCK_USDC_ABI, "mint", to, value, simulate=True)
    after = agent.call(usdc, MOCK_USDC_ABI, "balanceOf", to)
    return {
        "status": "success",
        "message": f"Minted {amount} USDC to {to}",
        "transaction_hash": result.tx_hash,
        "usdc_address": usdc,
        "recipient": to,
        "amount": amount,
        "balance_before": _fixed(before, USDC_DECIMALS),
        "balance_after": _fixed(after, USDC_DECIMALS),
        "block_number": result.block_number,
        "explorer_url": agent.tx_url(result.tx_hash),
    }


def get_usdc_balance(agent: WalletAgent, address: str | None = None) -> dict[str, Any]:
    agent.connect()
    usdc = require_contract_address(agent.network, "mock_usdc")
    owner = to_checksum(address) if address else agent.address
    decimals = int(agent.call(usdc, MOCK_USDC_ABI, "decimals"))
    balance = agent.call(usdc, MOCK_USDC_ABI, "balanceOf", owner)
    return {
        "status": "success",
        "message": "USDC balance retrieved",
        "address": owner,
        "usdc_address": usdc,
        "balance": _fixed(balance, decimals),
        "balance_raw": str(balance),
        "has_usdc": balance > 0,
        "usage": [
            "USDC pays for primary-sale token purchases",
            "Use asetta_mint_usdc to mint test USDC on testnets",
        ],
    }
