"""Chain minting gateway for attendance NFTs.

Wraps the single contract write the pipeline performs: submit a mint signed by
the minter key, wait (bounded) for inclusion, and report the token id emitted
by the contract's Mint event.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound
from web3.logs import DISCARD

from attendance_nft.abi import get_contract_abi
from attendance_nft.services.exceptions import (
    ChainRejected,
    ChainUnconfirmed,
    GatewayNotInitializedError,
    NotAuthorizedError,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class EventMetadata:
    """Event details written into the token on mint."""

    event_id: str
    name: str
    date: str
    location: str
    token_uri: str


@dataclass(frozen=True)
class MintResult:
    """Outcome of a confirmed mint."""

    token_id: int
    tx_hash: str
    block_number: int


class ChainMintingGateway:
    """Submit attendance NFT mints and classify their outcome.

    Outcomes:
    - MintResult: transaction included and Mint event decoded
    - ChainRejected: simulation reverted, receipt status 0, or no Mint event
    - ChainUnconfirmed: submission failed or inclusion not observed before the deadline
    - GatewayNotInitializedError: initialize() has not succeeded
    """

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        minter_private_key: str,
        transaction_timeout: float = 120,
        poll_interval: float = 2.0,
        confirmations: int = 0,
        wait_for_finality: bool = False,
        gas_buffer_percentage: float = 0.20,
    ):
        """
        Initialize minting gateway.

        Args:
            w3: Web3 instance connected to the chain hosting the contract
            contract_address: AttendanceNFT contract address
            minter_private_key: Private key of the minting account (0x-prefixed hex)
            transaction_timeout: Max seconds to wait for inclusion (and confirmations)
            poll_interval: Seconds between receipt polls
            confirmations: Extra blocks required on top of the inclusion block
            wait_for_finality: Wait until the inclusion block is finalized instead
            gas_buffer_percentage: Safety buffer for gas estimation (0.20 = 20%)
        """
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.minter_private_key = minter_private_key
        self.transaction_timeout = transaction_timeout
        self.poll_interval = poll_interval
        self.confirmations = confirmations
        self.wait_for_finality = wait_for_finality
        self.gas_buffer = 1.0 + gas_buffer_percentage

        self.contract = self.w3.eth.contract(
            address=self.contract_address, abi=get_contract_abi()
        )

        self.minter_address = Account.from_key(minter_private_key).address

        self._initialized = False
        # Nonce allocation and broadcast must not interleave for one signing key.
        self._submit_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def get_status(self) -> dict[str, Any]:
        return {
            "initialized": self._initialized,
            "minter_address": self.minter_address,
            "contract_address": self.contract_address,
        }

    async def initialize(self) -> None:
        """Verify the minter account may mint on the contract.

        Raises:
            NotAuthorizedError: Account not authorized, or the check itself failed
        """
        try:
            authorized = await asyncio.to_thread(
                self.contract.functions.isAuthorizedMinter(self.minter_address).call
            )
        except Exception as e:
            logger.error(
                "gateway.authorization_check_failed",
                minter_address=self.minter_address,
                contract_address=self.contract_address,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise NotAuthorizedError(
                f"Could not verify minting authorization for {self.minter_address} "
                f"on {self.contract_address}: {e}"
            ) from e

        if not authorized:
            logger.error(
                "gateway.minter_not_authorized",
                minter_address=self.minter_address,
                contract_address=self.contract_address,
            )
            raise NotAuthorizedError(
                f"Account {self.minter_address} is not authorized to mint on "
                f"{self.contract_address}. Register it as a minter on the contract."
            )

        self._initialized = True
        logger.info(
            "gateway.initialized",
            minter_address=self.minter_address,
            contract_address=self.contract_address,
            timeout=self.transaction_timeout,
            confirmations=self.confirmations,
            wait_for_finality=self.wait_for_finality,
        )

    async def mint(self, wallet_address: str, metadata: EventMetadata) -> MintResult:
        """
        Mint one attendance NFT and wait for it to be included.

        Submits at most one transaction per call.

        Args:
            wallet_address: Recipient wallet
            metadata: Event details and token URI

        Returns:
            MintResult with the token id emitted by the contract

        Raises:
            GatewayNotInitializedError: initialize() has not succeeded
            ChainRejected: The chain rejected the mint
            ChainUnconfirmed: Outcome unknown (submission error or wait deadline exceeded)
        """
        if not self._initialized:
            raise GatewayNotInitializedError(
                "Minting gateway used before minter authorization was verified"
            )

        recipient = Web3.to_checksum_address(wallet_address)
        mint_call = self.contract.functions.mintAttendanceNft(
            recipient,
            metadata.name,
            metadata.date,
            metadata.location,
            metadata.event_id,
            metadata.token_uri,
        )

        async with self._submit_lock:
            tx_hash_hex = await asyncio.to_thread(self._submit, mint_call, metadata.event_id)

        receipt = await self._wait_for_receipt(tx_hash_hex)

        if receipt["status"] == 0:
            logger.error(
                "gateway.transaction_reverted",
                tx_hash=tx_hash_hex,
                block_number=receipt["blockNumber"],
                gas_used=receipt["gasUsed"],
                event_id=metadata.event_id,
                recipient=recipient,
            )
            raise ChainRejected(f"Mint transaction reverted: {tx_hash_hex}", tx_hash=tx_hash_hex)

        token_id = self._extract_token_id(receipt, tx_hash_hex)

        logger.info(
            "gateway.mint_confirmed",
            tx_hash=tx_hash_hex,
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            token_id=token_id,
            event_id=metadata.event_id,
            recipient=recipient,
        )

        return MintResult(
            token_id=token_id, tx_hash=tx_hash_hex, block_number=receipt["blockNumber"]
        )

    def _submit(self, mint_call, event_id: str) -> str:
        """Estimate, sign and broadcast the mint transaction (blocking)."""
        try:
            estimated_gas = mint_call.estimate_gas({"from": self.minter_address})
        except ContractLogicError as e:
            logger.error("gateway.simulation_reverted", error=str(e), event_id=event_id)
            raise ChainRejected(f"Mint simulation reverted: {e}") from e
        except Exception as e:
            error_msg = str(e)
            logger.error("gateway.gas_estimation_failed", error=error_msg, event_id=event_id)
            if "execution reverted" in error_msg.lower():
                raise ChainRejected(f"Mint simulation reverted: {error_msg}") from e
            if "insufficient funds" in error_msg.lower():
                raise ChainRejected(
                    f"Minter wallet {self.minter_address} has insufficient balance for gas"
                ) from e
            raise ChainUnconfirmed(f"Gas estimation failed: {error_msg}") from e

        try:
            gas_limit = int(estimated_gas * self.gas_buffer)
            max_priority_fee = self.w3.eth.max_priority_fee
            latest_block = self.w3.eth.get_block("latest")
            base_fee = latest_block.get("baseFeePerGas", 0)  # type: ignore[arg-type]
            max_priority_fee_buffered = int(max_priority_fee * self.gas_buffer)
            max_fee_per_gas = int((base_fee * 2) + max_priority_fee_buffered)

            nonce = self.w3.eth.get_transaction_count(self.minter_address, "pending")
            transaction = mint_call.build_transaction(
                {
                    "from": self.minter_address,
                    "nonce": nonce,
                    "gas": gas_limit,
                    "maxFeePerGas": max_fee_per_gas,
                    "maxPriorityFeePerGas": max_priority_fee_buffered,
                    "chainId": self.w3.eth.chain_id,
                }  # type: ignore[arg-type]
            )
            signed_txn = self.w3.eth.account.sign_transaction(
                transaction, private_key=self.minter_private_key
            )
            tx_hash = self.w3.eth.send_raw_transaction(signed_txn.raw_transaction)
        except Exception as e:
            logger.error(
                "gateway.transaction_submission_failed",
                error=str(e),
                error_type=type(e).__name__,
                event_id=event_id,
            )
            raise ChainUnconfirmed(f"Mint transaction submission failed: {e}") from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(
            "gateway.transaction_submitted",
            tx_hash=tx_hash_hex,
            nonce=nonce,
            gas_limit=gas_limit,
            event_id=event_id,
        )
        return tx_hash_hex

    async def _wait_for_receipt(self, tx_hash_hex: str):
        """Poll for the receipt until it is settled or the deadline passes."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.transaction_timeout

        while True:
            receipt = await asyncio.to_thread(self._fetch_receipt, tx_hash_hex)
            if receipt is not None and await asyncio.to_thread(self._is_settled, receipt):
                return receipt

            if loop.time() >= deadline:
                logger.warning(
                    "gateway.transaction_timeout",
                    tx_hash=tx_hash_hex,
                    timeout=self.transaction_timeout,
                    included=receipt is not None,
                )
                raise ChainUnconfirmed(
                    f"Mint transaction not confirmed within {self.transaction_timeout}s: "
                    f"{tx_hash_hex}",
                    tx_hash=tx_hash_hex,
                )

            await asyncio.sleep(self.poll_interval)

    def _fetch_receipt(self, tx_hash_hex: str):
        try:
            return self.w3.eth.get_transaction_receipt(tx_hash_hex)  # type: ignore[arg-type]
        except TransactionNotFound:
            return None
        except Exception as e:
            # RPC hiccup while polling; the deadline still bounds the wait
            logger.warning("gateway.receipt_poll_failed", tx_hash=tx_hash_hex, error=str(e))
            return None

    def _is_settled(self, receipt) -> bool:
        """Whether an included transaction meets the configured confirmation policy."""
        if receipt["status"] == 0:
            return True

        block_number = receipt["blockNumber"]
        try:
            if self.wait_for_finality:
                finalized = self.w3.eth.get_block("finalized")
                return finalized["number"] >= block_number
            if self.confirmations > 0:
                return self.w3.eth.block_number - block_number >= self.confirmations
        except Exception as e:
            logger.warning("gateway.confirmation_check_failed", error=str(e))
            return False
        return True

    def _extract_token_id(self, receipt, tx_hash_hex: str) -> int:
        """Decode the token id from the contract's Mint event in the receipt."""
        events = self.contract.events.Mint().process_receipt(receipt, errors=DISCARD)
        for event in events:
            if Web3.to_checksum_address(event["address"]) != self.contract_address:
                continue
            return int(event["args"]["tokenId"])

        logger.error("gateway.mint_event_missing", tx_hash=tx_hash_hex)
        raise ChainRejected(f"Mint event not found in transaction {tx_hash_hex}", tx_hash=tx_hash_hex)

