from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any

from eth_account import Account
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from asetta_config import AsettaConfig, NetworkConfig, get_network_config, validate_network

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1
RPC_TIMEOUT_SECONDS = 30
CONFIRMATION_TIMEOUT_SECONDS = 180


@dataclass
class TxResult:
    """Normalized view of a mined transaction."""

    tx_hash: str
    block_number: int
    gas_used: int
    status: bool
    contract_address: str | None = None
    logs: list[dict[str, Any]] = field(default_factory=list)
    # Value returned by a pre-flight eth_call of the same function, if any.
    return_value: Any = None


def to_checksum(address: str, label: str = "address") -> str:
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ValueError(f"Invalid {label}: {address!r}")
    return Web3.to_checksum_address(address)


def hexstr(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else f"0x{value}"
    return Web3.to_hex(value)


def parse_units(amount: Any, decimals: int) -> int:
    """'1.5', 18 -> 1500000000000000000"""
    with localcontext() as ctx:
        ctx.prec = 90
        try:
            value = Decimal(str(amount))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {amount!r}") from exc
        if not value.is_finite() or value < 0:
            raise ValueError(f"Invalid amount: {amount!r}")
        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Amount {amount} has more than {decimals} decimal places")
        return int(scaled)


def format_units(value: int, decimals: int) -> str:
    """1500000000000000000, 18 -> '1.5'"""
    with localcontext() as ctx:
        ctx.prec = 90
        text = f"{Decimal(int(value)).scaleb(-decimals):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


class WalletAgent:
    """
    Signing web3 client bound to a single network.

    One instance is created per tool call; passing ``network`` switches the
    RPC endpoint while keeping the process-wide key.
    """

    def __init__(self, cfg: AsettaConfig, network: str | None = None) -> None:
        self.network = validate_network(network or cfg.network)
        self.network_config: NetworkConfig = get_network_config(self.network)
        self.web3 = Web3(
            Web3.HTTPProvider(
                self.network_config.rpc_url,
                request_kwargs={"timeout": RPC_TIMEOUT_SECONDS},
            )
        )
        # Avalanche C-Chain headers carry more extraData than geth allows.
        self.web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        self.account = Account.from_key(cfg.private_key)

    @property
    def address(self) -> str:
        return self.account.address

    def connect(self) -> int:
        chain_id = self.web3.eth.chain_id
        logger.info("Connected to %s (chain id %s) as %s", self.network, chain_id, self.address)
        return chain_id

    def disconnect(self) -> None:
        logger.debug("Released wallet agent for %s", self.network)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_balance(self, address: str | None = None) -> int:
        return self.web3.eth.get_balance(to_checksum(address) if address else self.address)

    def get_code(self, address: str) -> bytes:
        return bytes(self.web3.eth.get_code(to_checksum(address)))

    def block_number(self) -> int:
        return self.web3.eth.block_number

    def get_block(self, number: int, full_transactions: bool = True) -> Any:
        return self.web3.eth.get_block(number, full_transactions=full_transactions)

    def get_receipt(self, tx_hash: str) -> Any:
        return self.web3.eth.get_transaction_receipt(tx_hash)

    def gas_price(self) -> int:
        return self.web3.eth.gas_price

    def estimate_gas(self, tx: dict[str, Any]) -> int:
        return self.web3.eth.estimate_gas({"from": self.address, **tx})

    def call(self, address: str, abi: list[dict[str, Any]], fn_name: str, *args: Any) -> Any:
        contract = self.web3.eth.contract(address=to_checksum(address), abi=abi)
        return contract.functions[fn_name](*args).call({"from": self.address})

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def transact(
        self,
        address: str,
        abi: list[dict[str, Any]],
        fn_name: str,
        *args: Any,
        value: int = 0,
        confirmations: int = 1,
        simulate: bool = False,
    ) -> TxResult:
        contract = self.web3.eth.contract(address=to_checksum(address), abi=abi)
        fn = contract.functions[fn_name](*args)
        return_value = None
        if simulate:
            # Surface revert reasons before paying gas.
            return_value = fn.call({"from": self.address, "value": value})
        tx = fn.build_transaction(
            {
                "from": self.address,
                "nonce": self.web3.eth.get_transaction_count(self.address, "pending"),
                "value": value,
            }
        )
        result = self._sign_and_send(tx, confirmations)
        result.return_value = return_value
        return result

    def send_native(self, to: str, value: int, gas: int | None = None) -> TxResult:
        tx: dict[str, Any] = {
            "from": self.address,
            "to": to_checksum(to),
            "value": value,
            "nonce": self.web3.eth.get_transaction_count(self.address, "pending"),
            "chainId": self.network_config.chain_id,
            "gasPrice": self.web3.eth.gas_price,
        }
        tx["gas"] = gas or self.web3.eth.estimate_gas({"from": self.address, "to": tx["to"], "value": value})
        return self._sign_and_send(tx, confirmations=1)

    def deploy(self, abi: list[dict[str, Any]], bytecode: str, *args: Any) -> TxResult:
        contract = self.web3.eth.contract(abi=abi, bytecode=bytecode)
        tx = contract.constructor(*args).build_transaction(
            {
                "from": self.address,
                "nonce": self.web3.eth.get_transaction_count(self.address, "pending"),
            }
        )
        return self._sign_and_send(tx, confirmations=1)

    def _sign_and_send(self, tx: dict[str, Any], confirmations: int) -> TxResult:
        signed = self.account.sign_transaction(tx)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hex = hexstr(tx_hash)
        logger.info("Submitted transaction %s on %s", tx_hex, self.network)
        receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash)
        if confirmations > 1:
            self._wait_for_confirmations(receipt["blockNumber"], confirmations)
        if receipt["status"] != 1:
            raise RuntimeError(f"Transaction {tx_hex} reverted")
        return TxResult(
            tx_hash=tx_hex,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            status=True,
            contract_address=receipt.get("contractAddress"),
            logs=[
                {
                    "address": log["address"],
                    "topics": [hexstr(topic) for topic in log["topics"]],
                    "data": hexstr(log["data"]),
                }
                for log in receipt["logs"]
            ],
        )

    def _wait_for_confirmations(self, mined_block: int, confirmations: int) -> None:
        target = mined_block + confirmations - 1
        deadline = time.monotonic() + CONFIRMATION_TIMEOUT_SECONDS
        while self.web3.eth.block_number < target:
            if time.monotonic() > deadline:
                raise RuntimeError(
                    f"Timed out waiting for {confirmations} confirmations of block {mined_block}"
                )
            time.sleep(1)

    # ------------------------------------------------------------------
    # Explorer links
    # ------------------------------------------------------------------

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.network_config.block_explorer}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.network_config.block_explorer}/address/{address}"
