import json

import pytest
from eth_account import Account

import contract_abis
import generate_wallet


def test_generate_wallet_writes_new_env(tmp_path):
    env_path = tmp_path / ".env"
    result = generate_wallet.generate_wallet(env_path)
    content = env_path.read_text()
    key = content.strip().split("=", 1)[1]
    assert content.startswith("WALLET_PRIVATE_KEY=0x")
    assert Account.from_key(key).address == result["address"]
    assert result["backup_path"] is None


def test_generate_wallet_backs_up_and_replaces_key(tmp_path):
    env_path = tmp_path / ".env"
    env_path.write_text("ASETTA_ACCESS_KEY=abc\nWALLET_PRIVATE_KEY=0xold\n")
    result = generate_wallet.generate_wallet(env_path)

    backup = tmp_path / ".env.backup"
    assert result["backup_path"] == str(backup)
    assert backup.read_text() == "ASETTA_ACCESS_KEY=abc\nWALLET_PRIVATE_KEY=0xold\n"
    lines = env_path.read_text().splitlines()
    assert lines[0] == "ASETTA_ACCESS_KEY=abc"
    assert len([l for l in lines if l.startswith("WALLET_PRIVATE_KEY=")]) == 1
    assert "0xold" not in env_path.read_text()


def test_load_pool_bytecode_foundry_and_hardhat(tmp_path):
    foundry = tmp_path / "foundry.json"
    foundry.write_text(json.dumps({"bytecode": {"object": "0x6080"}}))
    assert contract_abis.load_pool_bytecode(str(foundry)) == "0x6080"

    hardhat = tmp_path / "hardhat.json"
    hardhat.write_text(json.dumps({"bytecode": "6080"}))
    assert contract_abis.load_pool_bytecode(str(hardhat)) == "0x6080"


def test_load_pool_bytecode_rejects_empty(tmp_path, monkeypatch):
    empty = tmp_path / "empty.json"
    empty.write_text(json.dumps({"bytecode": "0x"}))
    with pytest.raises(RuntimeError, match="No deployable bytecode"):
        contract_abis.load_pool_bytecode(str(empty))

    monkeypatch.delenv("ASETTA_POOL_ARTIFACT", raising=False)
    with pytest.raises(RuntimeError, match="ASETTA_POOL_ARTIFACT"):
        contract_abis.load_pool_bytecode()
