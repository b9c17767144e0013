"""
Asetta backend REST operations.

Implements:
- Fetch the caller's profile
- Create an RWA project record
- List projects or fetch one by id
- Update a project's status and linked on-chain addresses
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from asetta_config import AsettaConfig

logger = logging.getLogger(__name__)

API_TIMEOUT_SECONDS = 30

# snake_case tool argument -> backend camelCase field
_UPDATE_FIELD_MAP = {
    "smart_contract_id": "smartContractId",
    "token_address": "tokenAddress",
    "primary_sales_address": "primarySalesAddress",
    "vault_address": "vaultAddress",
    "rfq_address": "rfqAddress",
    "coordinator_address": "coordinatorAddress",
    "network": "network",
    "blockchain_tx_hash": "blockchainTxHash",
    "block_number": "blockNumber",
    "deployed_at": "deployedAt",
}


class AsettaApiError(RuntimeError):
    """Non-2xx response from the Asetta backend."""

    def __init__(self, status_code: int, error: str) -> None:
        super().__init__(f"API request failed with status {status_code}: {error}")
        self.status_code = status_code
        self.error = error


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _resolve_access_key(cfg: AsettaConfig, access_key: str | None) -> str:
    key = access_key or cfg.access_key
    if not key:
        raise ValueError(
            "Access key is required. Provide it as a parameter or start the "
            "server with --access_key."
        )
    return key


def _request(
    method: str,
    url: str,
    params: dict[str, Any] | None = None,
    body: dict[str, Any] | None = None,
) -> Any:
    resp = requests.request(
        method,
        url,
        params=params,
        json=body,
        headers={"Content-Type": "application/json"},
        timeout=API_TIMEOUT_SECONDS,
    )
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if not resp.ok:
        error = payload.get("error") if isinstance(payload, dict) else None
        raise AsettaApiError(resp.status_code, error or resp.reason or "Unknown error")
    return payload if payload is not None else {}


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def get_profile(cfg: AsettaConfig, access_key: str | None = None) -> dict[str, Any]:
    key = _resolve_access_key(cfg, access_key)
    endpoint = f"{cfg.api_base_url}/api/profile"
    data = _request("GET", endpoint, params={"access_key": key})
    return {
        "status": "success",
        "message": "Profile retrieved successfully",
        "profile_data": data,
        "api_endpoint": endpoint,
    }


def create_rwa_project(
    cfg: AsettaConfig,
    fields: dict[str, Any],
    access_key: str | None = None,
) -> dict[str, Any]:
    key = _resolve_access_key(cfg, access_key)
    endpoint = f"{cfg.api_base_url}/api/project"
    body = {"accessKey": key, **{k: v for k, v in fields.items() if v is not None}}
    data = _request("POST", endpoint, body=body)
    logger.info("Created RWA project %r", fields.get("name"))
    return {
        "status": "success",
        "message": f"RWA project '{fields.get('name')}' created successfully",
        "project_data": data.get("project", data) if isinstance(data, dict) else data,
        "api_endpoint": endpoint,
    }


def get_rwa_projects(
    cfg: AsettaConfig,
    project_id: str | None = None,
    access_key: str | None = None,
) -> dict[str, Any]:
    key = _resolve_access_key(cfg, access_key)
    endpoint = f"{cfg.api_base_url}/api/project"
    params = {"access_key": key}
    if project_id:
        params["project_id"] = project_id
    data = _request("GET", endpoint, params=params)
    projects = data.get("data") if isinstance(data, dict) else data
    if isinstance(projects, list):
        total = len(projects)
    else:
        total = 1 if projects else 0
    return {
        "status": "success",
        "message": (
            f"Project {project_id} retrieved successfully"
            if project_id
            else f"Retrieved {total} projects"
        ),
        "projects_data": projects,
        "total_projects": total,
        "api_endpoint": endpoint,
    }


def update_project_status(
    cfg: AsettaConfig,
    project_id: str,
    status: str,
    links: dict[str, Any] | None = None,
    access_key: str | None = None,
) -> dict[str, Any]:
    key = _resolve_access_key(cfg, access_key)
    endpoint = f"{cfg.api_base_url}/api/project/{project_id}"
    body: dict[str, Any] = {"accessKey": key, "status": status}
    for arg_name, value in (links or {}).items():
        if value is None:
            continue
        if arg_name not in _UPDATE_FIELD_MAP:
            raise ValueError(f"Unknown project field: {arg_name}")
        body[_UPDATE_FIELD_MAP[arg_name]] = value
    data = _request("PUT", endpoint, body=body)
    return {
        "status": "success",
        "message": f"Project {project_id} updated to {status}",
        "project_data": data.get("project", data) if isinstance(data, dict) else data,
        "updated_fields": [k for k in body if k != "accessKey"],
        "api_endpoint": endpoint,
    }
