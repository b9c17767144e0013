import json

import pytest
from eth_abi import decode, encode

import ccip_wallet
from asetta_config import CHAINLINK_NETWORKS, ZERO_ADDRESS
from conftest import OTHER, POOL, TOKEN, WALLET, FakeAgent

FUJI = CHAINLINK_NETWORKS["avalancheFuji"]
SEPOLIA = CHAINLINK_NETWORKS["ethereumSepolia"]
ARBITRUM = CHAINLINK_NETWORKS["arbitrumSepolia"]
ETHER = 10**18

REMOTE_POOL = "0x7777777777777777777777777777777777777777"
REMOTE_TOKEN = "0x8888888888888888888888888888888888888888"


@pytest.fixture
def pool_artifact(tmp_path, monkeypatch):
    path = tmp_path / "BurnMintTokenPool.json"
    path.write_text(json.dumps({"abi": [], "bytecode": {"object": "0x6080604052"}}))
    monkeypatch.setenv("ASETTA_POOL_ARTIFACT", str(path))
    return path


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------


def test_extra_args_empty_without_gas_limit():
    assert ccip_wallet.encode_extra_args(0) == b""


def test_extra_args_v1_tag_and_gas_limit():
    data = ccip_wallet.encode_extra_args(200_000)
    assert data[:4] == bytes.fromhex("97a657c9")
    assert decode(["uint256"], data[4:]) == (200_000,)


def test_resolve_fee_token_precedence():
    assert ccip_wallet.resolve_fee_token(FUJI, True, None) == ZERO_ADDRESS
    assert ccip_wallet.resolve_fee_token(FUJI, False, None) == FUJI.link_token
    assert ccip_wallet.resolve_fee_token(FUJI, True, OTHER) == OTHER


def test_build_message_shape():
    receiver, data, token_amounts, fee_token, extra = ccip_wallet.build_ccip_message(
        TOKEN, 5 * ETHER, OTHER, ZERO_ADDRESS
    )
    assert receiver == encode(["address"], [OTHER])
    assert data == b""
    assert token_amounts == [(TOKEN, 5 * ETHER)]
    assert fee_token == ZERO_ADDRESS
    assert extra == b""


# ---------------------------------------------------------------------------
# Static tools
# ---------------------------------------------------------------------------


def test_chain_selectors_lists_all_networks():
    result = ccip_wallet.get_chain_selectors()
    selectors = {c["network"]: c["chain_selector"] for c in result["chains"]}
    assert selectors == {
        "ethereumSepolia": "16015286601757825753",
        "arbitrumSepolia": "3478487238524512106",
        "avalancheFuji": "14767482510784806043",
    }


def test_configure_guide_defaults_destinations():
    result = ccip_wallet.configure_ccip_guide("avalancheFuji", project_id="7")
    assert result["status"] == "instructions"
    assert result["source_chain"] == "avalancheFuji"
    assert result["destination_chains"] == ["ethereumSepolia", "arbitrumSepolia"]
    assert [s["step"] for s in result["steps"]] == [1, 2, 3, 4, 5, 6]


# ---------------------------------------------------------------------------
# Pool setup
# ---------------------------------------------------------------------------


def test_deploy_pool_uses_network_addresses(agent, pool_artifact):
    result = ccip_wallet.deploy_ccip_pool(agent, TOKEN, [OTHER])
    deployment = agent.deployments[0]
    assert deployment["bytecode"] == "0x6080604052"
    assert deployment["args"] == (TOKEN, 18, [OTHER], FUJI.rmn_proxy, FUJI.router)
    assert result["status"] == "success"
    assert result["pool_address"] == POOL


def test_deploy_pool_without_artifact_returns_error(agent, monkeypatch):
    monkeypatch.delenv("ASETTA_POOL_ARTIFACT", raising=False)
    result = ccip_wallet.deploy_ccip_pool(agent, TOKEN)
    assert result["status"] == "error"
    assert "ASETTA_POOL_ARTIFACT" in result["error"]
    assert agent.deployments == []


def test_configure_roles_all_steps(agent):
    result = ccip_wallet.configure_ccip_roles(agent, TOKEN, POOL)
    calls = [(t["address"], t["fn"], t["args"]) for t in agent.transactions]
    assert calls == [
        (TOKEN, "grantRole", (ccip_wallet.MINTER_ROLE, POOL)),
        (TOKEN, "grantRole", (ccip_wallet.BURNER_ROLE, POOL)),
        (FUJI.registry_module_owner_custom, "registerAdminViaGetCCIPAdmin", (TOKEN,)),
        (FUJI.token_admin_registry, "acceptAdminRole", (TOKEN,)),
        (FUJI.token_admin_registry, "setPool", (TOKEN, POOL)),
    ]
    assert result["status"] == "success"
    assert all(s["success"] for s in result["steps"])


def test_configure_roles_continues_after_failure(agent):
    agent.failures["registerAdminViaGetCCIPAdmin"] = RuntimeError("not admin")
    result = ccip_wallet.configure_ccip_roles(agent, TOKEN, POOL)
    assert result["status"] == "partial"
    failed = [s for s in result["steps"] if not s["success"]]
    assert [s["step"] for s in failed] == ["register_admin"]
    assert failed[0]["error"] == "not admin"
    assert len(agent.transactions) == 4


def test_connect_chains_builds_updates(agent):
    result = ccip_wallet.connect_ccip_chains(
        agent,
        "avalancheFuji",
        ["ethereumSepolia", "avalancheFuji", "arbitrumSepolia"],
        {"avalancheFuji": POOL, "ethereumSepolia": REMOTE_POOL},
        {"avalancheFuji": TOKEN, "ethereumSepolia": REMOTE_TOKEN},
    )
    tx = agent.transactions[0]
    assert tx["address"] == POOL
    assert tx["fn"] == "applyChainUpdates"
    removes, updates = tx["args"]
    assert removes == []
    assert updates == [
        (
            int(SEPOLIA.chain_selector),
            [encode(["address"], [REMOTE_POOL])],
            encode(["address"], [REMOTE_TOKEN]),
            (True, 100000, 167),
            (True, 100000, 167),
        )
    ]
    assert result["status"] == "partial"
    by_target = {c["target_chain"]: c for c in result["connections"]}
    assert by_target["ethereumSepolia"]["connected"] is True
    assert "itself" in by_target["avalancheFuji"]["error"]
    assert "Missing" in by_target["arbitrumSepolia"]["error"]


def test_connect_chains_custom_rate_limit(agent):
    result = ccip_wallet.connect_ccip_chains(
        agent,
        "avalancheFuji",
        ["ethereumSepolia"],
        {"avalancheFuji": POOL, "ethereumSepolia": REMOTE_POOL},
        {"ethereumSepolia": REMOTE_TOKEN},
        {"capacity": 500, "rate": 5},
    )
    assert result["status"] == "success"
    update = agent.transactions[0]["args"][1][0]
    assert update[3] == (True, 500, 5)


def test_connect_chains_missing_source_pool(agent):
    result = ccip_wallet.connect_ccip_chains(agent, "avalancheFuji", ["ethereumSepolia"], {}, {})
    assert result["status"] == "error"
    assert "source chain" in result["error"]


def test_connect_chains_transaction_failure(agent):
    agent.failures["applyChainUpdates"] = RuntimeError("only owner")
    result = ccip_wallet.connect_ccip_chains(
        agent,
        "avalancheFuji",
        ["ethereumSepolia"],
        {"avalancheFuji": POOL, "ethereumSepolia": REMOTE_POOL},
        {"ethereumSepolia": REMOTE_TOKEN},
    )
    assert result["status"] == "error"
    assert result["connections"][0]["error"] == "only owner"


def _healthy_pool(agent):
    agent.reads.update(
        {
            "hasRole": True,
            "getPool": POOL,
            "getToken": TOKEN,
            "getRouter": FUJI.router,
            "getSupportedChains": [int(SEPOLIA.chain_selector)],
        }
    )


def test_validate_setup_success(agent):
    _healthy_pool(agent)
    result = ccip_wallet.validate_ccip_setup(agent, TOKEN, POOL, ["ethereumSepolia"])
    assert result["status"] == "success"
    assert result["ready_for_transfers"] is True
    assert [c["check"] for c in result["checks"]] == [
        "minter_role",
        "burner_role",
        "token_admin_registry",
        "pool_token",
        "remote_chains",
        "router",
    ]


def test_validate_setup_reports_warnings(agent):
    _healthy_pool(agent)
    agent.reads["hasRole"] = lambda role, account: role == ccip_wallet.MINTER_ROLE
    agent.reads["getRouter"] = RuntimeError("call reverted")
    result = ccip_wallet.validate_ccip_setup(agent, TOKEN, POOL, ["ethereumSepolia", "arbitrumSepolia"])
    assert result["status"] == "warning"
    checks = {c["check"]: c for c in result["checks"]}
    assert checks["minter_role"]["passed"] is True
    assert checks["burner_role"]["passed"] is False
    assert "arbitrumSepolia" in checks["remote_chains"]["details"]
    assert checks["router"]["details"].startswith("Error:")


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------


def test_cross_chain_fee_native(agent):
    agent.reads["getFee"] = 3 * 10**16
    result = ccip_wallet.get_cross_chain_fee(agent, TOKEN, "10", OTHER, SEPOLIA.chain_selector)
    address, fn, (selector, message) = agent.calls[0]
    assert address == FUJI.router
    assert fn == "getFee"
    assert selector == int(SEPOLIA.chain_selector)
    assert message[2] == [(TOKEN, 10 * ETHER)]
    assert message[3] == ZERO_ADDRESS
    assert result["fee"] == "0.03"
    assert result["fee_token_symbol"] == "AVAX"
    assert result["destination_network"] == "ethereumSepolia"


def test_cross_chain_fee_link(agent):
    agent.reads["getFee"] = ETHER
    result = ccip_wallet.get_cross_chain_fee(
        agent, TOKEN, "1", OTHER, ARBITRUM.chain_selector, use_native_fee=False, gas_limit=300000
    )
    message = agent.calls[0][2][1]
    assert message[3] == FUJI.link_token
    assert message[4][:4] == bytes.fromhex("97a657c9")
    assert result["fee_token_symbol"] == "LINK"


def test_cross_chain_fee_rejects_bad_selector(agent):
    with pytest.raises(ValueError, match="chain selector"):
        ccip_wallet.get_cross_chain_fee(agent, TOKEN, "1", OTHER, "sepolia")


def _transfer_ready(agent, fee=10**16):
    agent.reads.update({"balanceOf": 100 * ETHER, "allowance": 100 * ETHER, "getFee": fee})


def test_transfer_pays_native_fee(agent):
    _transfer_ready(agent)
    agent.return_values["ccipSend"] = b"\xab" * 32
    result = ccip_wallet.transfer_rwa_cross_chain(agent, TOKEN, OTHER, "5", SEPOLIA.chain_selector)
    tx = agent.transactions[0]
    assert tx["address"] == FUJI.router
    assert tx["fn"] == "ccipSend"
    assert tx["value"] == 10**16
    assert result["message_id"] == "0x" + "ab" * 32
    assert result["ccip_explorer_url"].endswith("ab" * 32)


def test_transfer_with_link_sends_no_value(agent):
    _transfer_ready(agent)
    agent.logs["ccipSend"] = [{"address": FUJI.router, "topics": ["0x01", "0x" + "cd" * 32], "data": "0x"}]
    result = ccip_wallet.transfer_rwa_cross_chain(
        agent, TOKEN, OTHER, "5", SEPOLIA.chain_selector, use_native_fee=False
    )
    assert agent.transactions[0]["value"] == 0
    assert result["message_id"] == "0x" + "cd" * 32


def test_transfer_requires_router_allowance(agent):
    _transfer_ready(agent)
    agent.reads["allowance"] = 0
    with pytest.raises(RuntimeError, match="asetta_approve_ccip_router"):
        ccip_wallet.transfer_rwa_cross_chain(agent, TOKEN, OTHER, "5", SEPOLIA.chain_selector)
    assert agent.transactions == []


def test_transfer_requires_native_fee_balance(agent):
    _transfer_ready(agent, fee=2 * ETHER)
    agent.default_balance = ETHER
    with pytest.raises(RuntimeError, match="CCIP fee"):
        ccip_wallet.transfer_rwa_cross_chain(agent, TOKEN, OTHER, "5", SEPOLIA.chain_selector)


def test_approve_router_with_link_failure_is_recorded(agent):
    calls = []

    real_transact = agent.transact

    def transact(address, abi, fn_name, *args, **kwargs):
        calls.append(address)
        if address == FUJI.link_token:
            raise RuntimeError("LINK balance too low")
        return real_transact(address, abi, fn_name, *args, **kwargs)

    agent.transact = transact
    result = ccip_wallet.approve_ccip_router(agent, TOKEN, "50", approve_link_for_fees=True)
    assert calls == [TOKEN, FUJI.link_token]
    assert result["status"] == "success"
    assert result["approvals"][0]["success"] is True
    assert result["approvals"][1] == {
        "token": FUJI.link_token,
        "symbol": "LINK",
        "amount": "100",
        "success": False,
        "error": "LINK balance too low",
    }


def test_approve_router_token_only(agent):
    result = ccip_wallet.approve_ccip_router(agent, TOKEN, "50")
    assert agent.transactions[0]["args"] == (FUJI.router, 50 * ETHER)
    assert len(result["approvals"]) == 1


def test_mint_rwa_token(agent):
    result = ccip_wallet.mint_rwa_token(agent, TOKEN, WALLET, "250")
    tx = agent.transactions[0]
    assert tx["fn"] == "mint"
    assert tx["args"] == (WALLET, 250 * ETHER)
    assert result["network"] == "avalancheFuji"


def test_agent_on_other_network_uses_its_router():
    agent = FakeAgent(network="ethereumSepolia")
    agent.reads["getFee"] = 1
    ccip_wallet.get_cross_chain_fee(agent, TOKEN, "1", OTHER, FUJI.chain_selector)
    assert agent.calls[0][0] == SEPOLIA.router
