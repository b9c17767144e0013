import pytest

import erc20_wallet
from conftest import OTHER, TOKEN, USDC, WALLET
from evm_wallet import MAX_UINT256

ETHER = 10**18


def _seq(*values):
    it = iter(values)
    return lambda *_args: next(it)


def _token(agent, decimals=18, balance=100 * ETHER, allowance=0, supply=1000 * ETHER):
    agent.reads.update(
        {
            "name": "Tokyo Tower",
            "symbol": "TTT",
            "decimals": decimals,
            "balanceOf": balance,
            "allowance": allowance,
            "totalSupply": supply,
        }
    )


# ---------------------------------------------------------------------------
# Native currency
# ---------------------------------------------------------------------------


def test_wallet_info_ready(agent):
    agent.default_balance = ETHER
    result = erc20_wallet.get_wallet_info(agent)
    assert result["wallet_address"] == WALLET
    assert result["balance"] == "1.000000"
    assert result["chain_id"] == 43113
    assert result["native_currency"] == "AVAX"
    assert result["can_register_rwa"] is True
    assert result["ready_for_operations"] is True
    assert result["block_explorer"] == f"https://testnet.snowtrace.io/address/{WALLET}"


def test_wallet_info_thresholds(agent):
    agent.default_balance = 5 * 10**15  # 0.005
    result = erc20_wallet.get_wallet_info(agent)
    assert result["can_register_rwa"] is False
    assert result["ready_for_operations"] is True
    assert "0.01" in result["recommendations"][0]

    agent.default_balance = 0
    result = erc20_wallet.get_wallet_info(agent)
    assert result["ready_for_operations"] is False
    assert "faucet" in result["recommendations"][0]


def test_account_balances_for_other_address(agent):
    agent.balances[OTHER] = 2 * 10**15
    result = erc20_wallet.get_account_balances(agent, OTHER)
    assert result["is_own_wallet"] is False
    assert result["native_balance"] == "0.002000"
    assert result["can_pay_gas"] is True


def test_transaction_history_filters_and_summarizes(agent, monkeypatch):
    monkeypatch.setattr(erc20_wallet.time, "time", lambda: 10_000)
    agent.latest_block = 5
    agent.blocks[5] = {
        "timestamp": 9_990,
        "transactions": [
            {"hash": b"\x01" * 32, "from": WALLET, "to": OTHER, "value": 2 * ETHER, "input": b""},
            {"hash": b"\x02" * 32, "from": OTHER, "to": TOKEN, "value": 0, "input": b"\xa9"},
        ],
    }
    agent.blocks[4] = {
        "timestamp": 6_000,
        "transactions": [
            {"hash": b"\x03" * 32, "from": OTHER, "to": WALLET.lower(), "value": 3 * ETHER, "input": "0x"},
        ],
    }
    result = erc20_wallet.get_transaction_history(agent, limit=10)
    txs = result["transactions"]
    assert [t["direction"] for t in txs] == ["sent", "received"]
    assert txs[0]["hash"] == "0x" + "01" * 32
    assert txs[0]["age"] == "10s ago"
    assert txs[1]["age"] == "1h ago"
    assert txs[0]["is_contract_interaction"] is False
    summary = result["summary"]
    assert summary["total_sent"] == "2 AVAX"
    assert summary["total_received"] == "3 AVAX"
    assert summary["net_flow"] == "1 AVAX"
    assert summary["blocks_scanned"] == 6


def test_transaction_history_stops_at_limit(agent):
    agent.latest_block = 2000
    tx = {"hash": b"\x05" * 32, "from": WALLET, "to": OTHER, "value": 1, "input": b""}
    for n in range(1990, 2001):
        agent.blocks[n] = {"timestamp": 0, "transactions": [tx]}
    result = erc20_wallet.get_transaction_history(agent, limit=3)
    assert len(result["transactions"]) == 3
    assert result["summary"]["blocks_scanned"] == 3


def test_send_native_checks_gas(agent):
    agent.default_balance = ETHER
    agent.gas = 21000
    agent.price = 10**12
    result = erc20_wallet.send_native(agent, OTHER, "0.5")
    assert agent.native_sends == [{"to": OTHER, "value": ETHER // 2, "gas": 21000}]
    assert result["currency"] == "AVAX"
    assert result["memo"] is None
    assert result["explorer_url"].startswith("https://testnet.snowtrace.io/tx/0x")


def test_send_native_insufficient_for_gas(agent):
    agent.default_balance = ETHER
    agent.price = 10**14  # 21000 * 1e14 = 2.1 ETH of gas
    with pytest.raises(RuntimeError, match="plus gas"):
        erc20_wallet.send_native(agent, OTHER, "0.5")
    assert agent.native_sends == []


def test_send_native_insufficient_balance(agent):
    agent.default_balance = 10
    with pytest.raises(RuntimeError, match="Insufficient balance"):
        erc20_wallet.send_native(agent, OTHER, "1")


# ---------------------------------------------------------------------------
# ERC20
# ---------------------------------------------------------------------------


def test_send_token_uses_token_decimals(agent):
    _token(agent, decimals=6, balance=50 * 10**6)
    result = erc20_wallet.send_token(agent, TOKEN, OTHER, "12.5", memo="invoice 17")
    tx = agent.transactions[0]
    assert tx["fn"] == "transfer"
    assert tx["args"] == (OTHER, 12_500_000)
    assert result["token_symbol"] == "TTT"
    assert result["memo"] == "invoice 17"


def test_send_token_insufficient_balance(agent):
    _token(agent, balance=ETHER)
    with pytest.raises(RuntimeError, match="Insufficient TTT balance"):
        erc20_wallet.send_token(agent, TOKEN, OTHER, "2")
    assert agent.transactions == []


def test_approve_unlimited_by_default(agent):
    _token(agent, allowance=0)
    agent.reads["allowance"] = _seq(0, MAX_UINT256)
    result = erc20_wallet.approve_token(agent, TOKEN, OTHER, amount="5")
    assert agent.transactions[0]["args"] == (OTHER, MAX_UINT256)
    assert result["approved_amount"] == "unlimited"
    assert result["new_allowance"] == "unlimited"


def test_approve_skips_when_allowance_sufficient(agent):
    _token(agent, allowance=10 * ETHER)
    result = erc20_wallet.approve_token(agent, TOKEN, OTHER, amount="5", unlimited=False)
    assert result["approval_needed"] is False
    assert agent.transactions == []


def test_approve_exact_amount(agent):
    _token(agent, allowance=ETHER)
    result = erc20_wallet.approve_token(agent, TOKEN, OTHER, amount="5", unlimited=False)
    assert agent.transactions[0]["args"] == (OTHER, 5 * ETHER)
    assert result["previous_allowance"] == "1"


@pytest.mark.parametrize(
    "allowance,expected_unlimited,fragment",
    [
        (0, False, "No allowance"),
        (MAX_UINT256, True, "Unlimited"),
        (ETHER, False, "below the token balance"),
        (200 * ETHER, False, "covers the full"),
    ],
)
def test_check_allowance_recommendations(agent, allowance, expected_unlimited, fragment):
    _token(agent, allowance=allowance, balance=100 * ETHER)
    result = erc20_wallet.check_allowance(agent, TOKEN, OTHER)
    assert result["is_unlimited"] is expected_unlimited
    assert fragment in result["recommendation"]
    assert result["owner"] == WALLET


def test_token_info_share_and_class(agent):
    _token(agent, balance=600 * ETHER, supply=1000 * ETHER)
    result = erc20_wallet.get_token_info(agent, TOKEN)
    assert result["share_of_supply_percent"] == "60.0000"
    assert result["holder_class"] == "majority holder"
    assert result["total_supply"] == "1000"


def test_token_info_requires_contract(agent):
    agent.code = b""
    with pytest.raises(RuntimeError, match="No contract deployed"):
        erc20_wallet.get_token_info(agent, TOKEN)


# ---------------------------------------------------------------------------
# Mock USDC
# ---------------------------------------------------------------------------


def test_mint_usdc_six_decimals(agent, contracts):
    agent.reads["balanceOf"] = _seq(0, 1000 * 10**6)
    result = erc20_wallet.mint_usdc(agent, "1000")
    tx = agent.transactions[0]
    assert tx["address"] == USDC
    assert tx["fn"] == "mint"
    assert tx["args"] == (WALLET, 1_000_000_000)
    assert result["balance_before"] == "0.000000"
    assert result["balance_after"] == "1000.000000"


def test_mint_usdc_requires_configured_contract(agent, monkeypatch):
    monkeypatch.delenv("ASETTA_AVALANCHE_FUJI_MOCK_USDC", raising=False)
    with pytest.raises(RuntimeError, match="ASETTA_AVALANCHE_FUJI_MOCK_USDC"):
        erc20_wallet.mint_usdc(agent, "10")


def test_usdc_balance(agent, contracts):
    agent.reads.update({"decimals": 6, "balanceOf": 2_500_000})
    result = erc20_wallet.get_usdc_balance(agent, OTHER)
    assert result["balance"] == "2.500000"
    assert result["has_usdc"] is True
    assert result["address"] == OTHER
