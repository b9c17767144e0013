"""Minimal ABI fragments for the contracts the Asetta tools talk to."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


def _param(name: str, typ: str, components: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    entry: dict[str, Any] = {"name": name, "type": typ}
    if components is not None:
        entry["components"] = components
    return entry


def _fn(
    name: str,
    inputs: list[dict[str, Any]],
    outputs: list[dict[str, Any]] | None = None,
    mutability: str = "view",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": inputs,
        "outputs": outputs or [],
        "stateMutability": mutability,
    }


ERC20_ABI = [
    _fn("name", [], [_param("", "string")]),
    _fn("symbol", [], [_param("", "string")]),
    _fn("decimals", [], [_param("", "uint8")]),
    _fn("totalSupply", [], [_param("", "uint256")]),
    _fn("balanceOf", [_param("account", "address")], [_param("", "uint256")]),
    _fn(
        "allowance",
        [_param("owner", "address"), _param("spender", "address")],
        [_param("", "uint256")],
    ),
    _fn(
        "approve",
        [_param("spender", "address"), _param("amount", "uint256")],
        [_param("", "bool")],
        "nonpayable",
    ),
    _fn(
        "transfer",
        [_param("to", "address"), _param("amount", "uint256")],
        [_param("", "bool")],
        "nonpayable",
    ),
]

MOCK_USDC_ABI = ERC20_ABI + [
    _fn("mint", [_param("to", "address"), _param("amount", "uint256")], [], "nonpayable"),
]

RWA_TOKEN_ABI = ERC20_ABI + [
    _fn("mint", [_param("account", "address"), _param("amount", "uint256")], [], "nonpayable"),
    _fn(
        "grantRole",
        [_param("role", "bytes32"), _param("account", "address")],
        [],
        "nonpayable",
    ),
    _fn(
        "hasRole",
        [_param("role", "bytes32"), _param("account", "address")],
        [_param("", "bool")],
    ),
    _fn("getCCIPAdmin", [], [_param("", "address")]),
]

_ASSET_METADATA = [
    _param("assetType", "string"),
    _param("description", "string"),
    _param("totalValue", "uint256"),
    _param("url", "string"),
    _param("createdAt", "uint256"),
]

RWA_MANAGER_ABI = [
    _fn(
        "createRWAProject",
        [
            _param("name", "string"),
            _param("symbol", "string"),
            _param("metadata", "tuple", _ASSET_METADATA),
            _param("projectWallet", "address"),
            _param("projectAllocationPercent", "uint256"),
            _param("pricePerTokenETH", "uint256"),
        ],
        [_param("projectId", "uint256")],
        "nonpayable",
    ),
    _fn(
        "getProject",
        [_param("projectId", "uint256")],
        [
            _param(
                "",
                "tuple",
                [
                    _param("rwaToken", "address"),
                    _param("primarySales", "address"),
                    _param("rfq", "address"),
                    _param("vault", "address"),
                    _param("creator", "address"),
                    _param("isActive", "bool"),
                    _param("createdAt", "uint256"),
                ],
            )
        ],
    ),
    _fn(
        "markCCIPConfigured",
        [_param("projectId", "uint256"), _param("totalSupply", "uint256")],
        [],
        "nonpayable",
    ),
    _fn(
        "registerForPrimarySales",
        [
            _param("projectId", "uint256"),
            _param("projectWallet", "address"),
            _param("projectAllocationPercent", "uint256"),
            _param("pricePerToken", "uint256"),
            _param("minPurchase", "uint256"),
            _param("maxPurchase", "uint256"),
        ],
        [],
        "nonpayable",
    ),
    _fn("activatePrimarySales", [_param("projectId", "uint256")], [], "nonpayable"),
]

_RATE_LIMIT_CONFIG = [
    _param("isEnabled", "bool"),
    _param("capacity", "uint128"),
    _param("rate", "uint128"),
]

BURN_MINT_TOKEN_POOL_ABI = [
    {
        "type": "constructor",
        "inputs": [
            _param("token", "address"),
            _param("localTokenDecimals", "uint8"),
            _param("allowlist", "address[]"),
            _param("rmnProxy", "address"),
            _param("router", "address"),
        ],
        "stateMutability": "nonpayable",
    },
    _fn(
        "applyChainUpdates",
        [
            _param("remoteChainSelectorsToRemove", "uint64[]"),
            _param(
                "chainsToAdd",
                "tuple[]",
                [
                    _param("remoteChainSelector", "uint64"),
                    _param("remotePoolAddresses", "bytes[]"),
                    _param("remoteTokenAddress", "bytes"),
                    _param("outboundRateLimiterConfig", "tuple", _RATE_LIMIT_CONFIG),
                    _param("inboundRateLimiterConfig", "tuple", _RATE_LIMIT_CONFIG),
                ],
            ),
        ],
        [],
        "nonpayable",
    ),
    _fn("getToken", [], [_param("", "address")]),
    _fn("getRouter", [], [_param("", "address")]),
    _fn("getSupportedChains", [], [_param("", "uint64[]")]),
]

TOKEN_ADMIN_REGISTRY_ABI = [
    _fn("acceptAdminRole", [_param("localToken", "address")], [], "nonpayable"),
    _fn(
        "setPool",
        [_param("localToken", "address"), _param("pool", "address")],
        [],
        "nonpayable",
    ),
    _fn("getPool", [_param("token", "address")], [_param("", "address")]),
]

REGISTRY_MODULE_OWNER_CUSTOM_ABI = [
    _fn("registerAdminViaGetCCIPAdmin", [_param("token", "address")], [], "nonpayable"),
]

_EVM2ANY_MESSAGE = [
    _param("receiver", "bytes"),
    _param("data", "bytes"),
    _param(
        "tokenAmounts",
        "tuple[]",
        [_param("token", "address"), _param("amount", "uint256")],
    ),
    _param("feeToken", "address"),
    _param("extraArgs", "bytes"),
]

CCIP_ROUTER_ABI = [
    _fn(
        "getFee",
        [
            _param("destinationChainSelector", "uint64"),
            _param("message", "tuple", _EVM2ANY_MESSAGE),
        ],
        [_param("fee", "uint256")],
    ),
    _fn(
        "ccipSend",
        [
            _param("destinationChainSelector", "uint64"),
            _param("message", "tuple", _EVM2ANY_MESSAGE),
        ],
        [_param("", "bytes32")],
        "payable",
    ),
]


def load_pool_bytecode(path: str | None = None) -> str:
    """
    Return the creation bytecode for BurnMintTokenPool.

    Reads a compiled Foundry or Hardhat artifact from ``path`` or the
    ASETTA_POOL_ARTIFACT environment variable. Foundry stores the code under
    ``bytecode.object``; Hardhat stores it as a plain ``bytecode`` string.
    """
    artifact_path = path or os.getenv("ASETTA_POOL_ARTIFACT")
    if not artifact_path:
        raise RuntimeError(
            "BurnMintTokenPool artifact not configured. Set ASETTA_POOL_ARTIFACT "
            "to the compiled contract JSON."
        )
    data = json.loads(Path(artifact_path).read_text())
    bytecode = data.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    if not isinstance(bytecode, str) or len(bytecode) <= 2:
        raise RuntimeError(f"No deployable bytecode found in {artifact_path}")
    return bytecode if bytecode.startswith("0x") else f"0x{bytecode}"
