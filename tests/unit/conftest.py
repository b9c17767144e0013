import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

from asetta_config import get_network_config  # noqa: E402
from evm_wallet import TxResult, WalletAgent  # noqa: E402

WALLET = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
TOKEN = "0x3333333333333333333333333333333333333333"
POOL = "0x4444444444444444444444444444444444444444"
MANAGER = "0x5555555555555555555555555555555555555555"
USDC = "0x6666666666666666666666666666666666666666"


class FakeAgent:
    """In-memory stand-in for WalletAgent.

    ``reads`` maps a contract function name (or ``(address, name)``) to a
    value, a callable taking the call args, or an exception to raise.
    ``failures`` maps a write function name to an exception.
    """

    tx_url = WalletAgent.tx_url
    address_url = WalletAgent.address_url

    def __init__(self, network="avalancheFuji", balance=10**18):
        self.network = network
        self.network_config = get_network_config(network)
        self.address = WALLET
        self.balances = {}
        self.default_balance = balance
        self.reads = {}
        self.failures = {}
        self.return_values = {}
        self.logs = {}
        self.calls = []
        self.transactions = []
        self.deployments = []
        self.native_sends = []
        self.code = b"\x60\x80"
        self.latest_block = 0
        self.blocks = {}
        self.receipts = {}
        self.gas = 21000
        self.price = 25 * 10**9
        self.connected = 0
        self.disconnected = 0

    def connect(self):
        self.connected += 1
        return self.network_config.chain_id

    def disconnect(self):
        self.disconnected += 1

    def get_balance(self, address=None):
        return self.balances.get(address or self.address, self.default_balance)

    def get_code(self, address):
        return self.code

    def block_number(self):
        return self.latest_block

    def get_block(self, number, full_transactions=True):
        return self.blocks.get(number, {"timestamp": 0, "transactions": []})

    def get_receipt(self, tx_hash):
        return self.receipts.get(tx_hash, {"status": 1, "gasUsed": 21000})

    def gas_price(self):
        return self.price

    def estimate_gas(self, tx):
        return self.gas

    def call(self, address, abi, fn_name, *args):
        self.calls.append((address, fn_name, args))
        value = self.reads.get((address, fn_name), self.reads.get(fn_name))
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(*args)
        return value

    def _result(self, fn_name):
        n = len(self.transactions) + len(self.deployments) + len(self.native_sends)
        return TxResult(
            tx_hash=f"0x{n:064x}",
            block_number=100 + n,
            gas_used=50000,
            status=True,
            logs=self.logs.get(fn_name, []),
            return_value=self.return_values.get(fn_name),
        )

    def transact(self, address, abi, fn_name, *args, value=0, confirmations=1, simulate=False):
        if fn_name in self.failures:
            raise self.failures[fn_name]
        result = self._result(fn_name)
        self.transactions.append(
            {"address": address, "fn": fn_name, "args": args, "value": value, "confirmations": confirmations}
        )
        return result

    def send_native(self, to, value, gas=None):
        result = self._result("send_native")
        self.native_sends.append({"to": to, "value": value, "gas": gas})
        return result

    def deploy(self, abi, bytecode, *args):
        if "deploy" in self.failures:
            raise self.failures["deploy"]
        result = self._result("deploy")
        result.contract_address = POOL
        self.deployments.append({"bytecode": bytecode, "args": args})
        return result


@pytest.fixture
def agent():
    return FakeAgent()


@pytest.fixture
def contracts(monkeypatch):
    monkeypatch.setenv("ASETTA_AVALANCHE_FUJI_RWA_MANAGER", MANAGER)
    monkeypatch.setenv("ASETTA_AVALANCHE_FUJI_MOCK_USDC", USDC)
