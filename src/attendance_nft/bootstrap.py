"""Construction of the check-in pipeline from settings.

Shared by the HTTP application lifespan and the command-line check-in tool so
both run the exact same wiring.
"""

from dataclasses import dataclass

import structlog
from web3 import Web3

from attendance_nft.core.config import Settings
from attendance_nft.services.blockchain.minting_gateway import ChainMintingGateway
from attendance_nft.services.checkin.orchestrator import CheckInOrchestrator
from attendance_nft.services.events import EventCatalog
from attendance_nft.services.ledger import MintLedger
from attendance_nft.services.luma.client import LumaClient
from attendance_nft.services.metadata import TokenUriBuilder
from attendance_nft.services.wallet.resolver import EthAccountWalletGenerator, WalletResolver
from attendance_nft.uow import UnitOfWorkFactory

logger = structlog.get_logger()


@dataclass
class Pipeline:
    gateway: ChainMintingGateway
    ledger: MintLedger
    orchestrator: CheckInOrchestrator


def create_gateway(settings: Settings) -> ChainMintingGateway:
    w3 = Web3(Web3.HTTPProvider(settings.rpc_url))
    return ChainMintingGateway(
        w3=w3,
        contract_address=settings.attendance_nft_contract_address,
        minter_private_key=settings.minter_private_key,
        transaction_timeout=settings.transaction_timeout_seconds,
        poll_interval=settings.transaction_poll_interval_seconds,
        confirmations=settings.confirmation_blocks,
        wait_for_finality=settings.wait_for_finality,
        gas_buffer_percentage=settings.mint_gas_buffer,
    )


async def build_pipeline(settings: Settings, uow_factory: UnitOfWorkFactory) -> Pipeline:
    """Create and initialize every pipeline component.

    Raises:
        NotAuthorizedError: The minter account cannot mint on the contract
    """
    gateway = create_gateway(settings)
    await gateway.initialize()

    ledger = MintLedger(uow_factory)
    orchestrator = CheckInOrchestrator(
        events=EventCatalog(uow_factory),
        attendees=LumaClient(
            api_key=settings.luma_api_key,
            base_url=settings.luma_api_url,
            timeout=settings.luma_timeout_seconds,
        ),
        wallets=WalletResolver(
            uow_factory, EthAccountWalletGenerator(settings.wallet_keystore_password)
        ),
        ledger=ledger,
        gateway=gateway,
        token_uris=TokenUriBuilder(settings.metadata_base_uri),
    )

    logger.info("pipeline.ready", **gateway.get_status())
    return Pipeline(gateway=gateway, ledger=ledger, orchestrator=orchestrator)
