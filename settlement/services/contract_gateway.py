"""
Contract gateway.

Deploys Cashback contracts, binds contract types to addresses and
dispatches typed read/write commands.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from pathlib import Path
from typing import Any

from loguru import logger
from web3 import Web3
from web3.exceptions import MismatchedABI, Web3ValidationError

from settlement.contracts.interfaces import (
    CashbackManagerMethod,
    ContractInterface,
    ContractMethod,
    get_interface,
    load_deployable_interface,
)
from settlement.models.blockchain_event import BlockchainEvent
from settlement.models.blockchain_transaction import BlockchainTransaction
from settlement.models.enums import ContractType, TransactionStatus
from settlement.models.smart_contract import SmartContract
from settlement.repositories.unit_of_work import UnitOfWork
from settlement.services.blockchain.client import BlockchainClient
from settlement.services.blockchain.error_mapping import translate_rpc_error
from settlement.services.blockchain.network_registry import NetworkHandle
from settlement.services.blockchain.rpc_wrapper import with_timeout
from settlement.services.blockchain.types import ConfirmedTransaction, OnSigned
from settlement.utils.exceptions import (
    ContractDeploymentError,
    ContractInteractionError,
    TransactionFailedError,
    TransactionRevertedError,
    UnsupportedNetworkError,
)
from settlement.utils.security import mask_address

CONTRACT_VERSION = "1.0.0"


@dataclass(frozen=True)
class ContractDeployment:
    contract_id: int
    contract_type: ContractType
    name: str
    network: str
    network_id: int
    address: str
    deployer_address: str
    tx_hash: str
    block_number: int
    gas_fee: Decimal


class ContractGateway:
    """
    Gateway to the Cashback contract suite.

    Features:
    - Deployment with metadata persisted in the same transaction
    - Typed read (call) and write (execute) dispatch
    - Verification flag management
    """

    def __init__(
        self,
        uow: UnitOfWork,
        client: BlockchainClient,
        artifacts_dir: str | Path,
    ) -> None:
        self.uow = uow
        self.client = client
        self.artifacts_dir = Path(artifacts_dir)

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    async def deploy(
        self,
        contract_type: ContractType | str,
        network_id: int,
        constructor_args: Sequence[Any],
        handle: NetworkHandle,
    ) -> ContractDeployment:
        """
        Deploy a contract and persist its metadata.

        The creation transaction is confirmed inside the database transaction
        that writes the SmartContract and BlockchainTransaction rows, so any
        failure leaves no partial row. A broadcast deployment cannot be
        undone on chain.

        Args:
            contract_type: Contract type to deploy
            network_id: BlockchainNetwork ID
            constructor_args: Constructor arguments
            handle: Signer handle of the same network

        Returns:
            ContractDeployment

        Raises:
            ContractDeploymentError: On any failure
        """
        type_label = str(contract_type)
        try:
            contract_type = ContractType(contract_type)
            async with self.uow.transaction() as tx:
                network = await tx.blockchain_networks.get_by_id(network_id)
                if network is None:
                    raise UnsupportedNetworkError(str(network_id), "no stored network")
                if network.type != handle.name:
                    raise UnsupportedNetworkError(
                        network.type, f"signer is bound to {handle.name}"
                    )

                interface = load_deployable_interface(contract_type, self.artifacts_dir)
                factory = handle.web3.eth.contract(abi=interface.abi, bytecode=interface.bytecode)
                constructor = factory.constructor(*constructor_args)

                logger.info(
                    f"Deploying {interface.name} to {network.type} "
                    f"from {mask_address(handle.address)}"
                )
                confirmed = await self.client.submit(
                    handle,
                    constructor.build_transaction,
                    to_address=None,
                    estimate=lambda: constructor.estimate_gas({"from": handle.address}),
                    label=f"{interface.name} deployment",
                )
                if not confirmed.contract_address:
                    raise TransactionFailedError(
                        f"Receipt of {confirmed.tx_hash} carries no contract address"
                    )

                contract = await tx.smart_contracts.create(
                    name=interface.name,
                    type=contract_type.value,
                    network_id=network.id,
                    address=confirmed.contract_address,
                    abi=interface.abi,
                    deployer_address=confirmed.from_address,
                    deployment_tx_hash=confirmed.tx_hash,
                    version=CONTRACT_VERSION,
                    verified=False,
                    is_active=True,
                )
                await tx.blockchain_transactions.create(
                    tx_hash=confirmed.tx_hash,
                    network_id=network.id,
                    contract_id=contract.id,
                    from_address=confirmed.from_address,
                    to_address=confirmed.contract_address,
                    value="0",
                    nonce=confirmed.nonce,
                    status=TransactionStatus.CONFIRMED.value,
                    block_number=confirmed.block_number,
                    block_hash=confirmed.block_hash,
                    gas_used=confirmed.gas_used,
                    gas_price=str(confirmed.effective_gas_price),
                    gas_fee=confirmed.gas_fee,
                    confirmed_at=contract.deployed_at,
                )
        except Exception as e:
            logger.error(f"Deployment of {type_label} on network {network_id} failed: {e}")
            raise ContractDeploymentError(str(e), type_label, network_id) from e

        logger.success(
            f"{interface.name} deployed to {confirmed.contract_address} on {network.type}"
        )
        return ContractDeployment(
            contract_id=contract.id,
            contract_type=contract_type,
            name=interface.name,
            network=network.type,
            network_id=network.id,
            address=confirmed.contract_address,
            deployer_address=confirmed.from_address,
            tx_hash=confirmed.tx_hash,
            block_number=confirmed.block_number,
            gas_fee=confirmed.gas_fee,
        )

    async def verify(
        self,
        network_id: int,
        address: str,
        constructor_args: Sequence[Any] | None = None,
    ) -> bool:
        """
        Mark a deployed contract as verified.

        Explorer verification happens outside the service; this only
        records the outcome.

        Raises:
            ContractDeploymentError: If the contract is unknown
        """
        async with self.uow.transaction() as tx:
            contract = await tx.smart_contracts.find_by_address(network_id, address)
            if contract is None:
                raise ContractDeploymentError(
                    f"No contract at {address}", "UNKNOWN", network_id
                )
            await tx.smart_contracts.mark_verified(network_id, address)

        logger.info(
            f"Contract {contract.name} at {mask_address(address)} marked verified "
            f"(constructor args: {list(constructor_args or [])})"
        )
        return True

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def call(
        self,
        address: str,
        contract_type: ContractType | str,
        method: ContractMethod | str,
        args: Sequence[Any],
        handle: NetworkHandle,
    ) -> Any:
        """
        Call a read-only contract method.

        Raises:
            ContractInteractionError: Method missing, not read-only, or reverted
        """
        interface, method_name = self._resolve(address, contract_type, method)
        if not interface.is_read_only(method_name):
            raise ContractInteractionError("method is not read-only, use execute", address, method_name)

        contract = self._bind(handle, address, interface)
        try:
            return await with_timeout(
                contract.functions[method_name](*args).call(),
                operation_name=f"{interface.name}.{method_name}",
                network=handle.name,
            )
        except Exception as e:
            raise self._interaction_error(e, address, method_name, handle) from e

    async def execute(
        self,
        address: str,
        contract_type: ContractType | str,
        method: ContractMethod | str,
        args: Sequence[Any],
        handle: NetworkHandle,
        on_signed: OnSigned | None = None,
    ) -> ConfirmedTransaction:
        """
        Submit a state-changing contract call and wait for its receipt.

        Raises:
            ContractInteractionError: Method missing, read-only, or reverted
            SettlementError: Network, nonce and funding errors pass through typed
        """
        interface, method_name = self._resolve(address, contract_type, method)
        if interface.is_read_only(method_name):
            raise ContractInteractionError("method is read-only, use call", address, method_name)

        contract = self._bind(handle, address, interface)
        try:
            function = contract.functions[method_name](*args)
            return await self.client.submit(
                handle,
                function.build_transaction,
                to_address=contract.address,
                estimate=lambda: function.estimate_gas({"from": handle.address}),
                on_signed=on_signed,
                label=f"{interface.name}.{method_name}",
            )
        except Exception as e:
            raise self._interaction_error(e, address, method_name, handle) from e

    async def allocate_cashback(
        self,
        manager_address: str,
        user_address: str,
        amount_wei: int,
        campaign_id: int,
        handle: NetworkHandle,
        on_signed: OnSigned | None = None,
    ) -> ConfirmedTransaction:
        """CashbackManager.allocateCashback(user, amount, campaignId)."""
        return await self.execute(
            manager_address,
            ContractType.CASHBACK_MANAGER,
            CashbackManagerMethod.ALLOCATE_CASHBACK,
            [Web3.to_checksum_address(user_address), amount_wei, campaign_id],
            handle,
            on_signed=on_signed,
        )

    async def claim_cashback_for(
        self,
        manager_address: str,
        user_address: str,
        handle: NetworkHandle,
        on_signed: OnSigned | None = None,
    ) -> ConfirmedTransaction:
        """CashbackManager.claimCashbackFor(user), paid by the network signer."""
        return await self.execute(
            manager_address,
            ContractType.CASHBACK_MANAGER,
            CashbackManagerMethod.CLAIM_CASHBACK_FOR,
            [Web3.to_checksum_address(user_address)],
            handle,
            on_signed=on_signed,
        )

    async def get_claimable_balance(
        self, manager_address: str, user_address: str, handle: NetworkHandle
    ) -> int:
        """CashbackManager.getClaimableBalance(user) in base units."""
        return await self.call(
            manager_address,
            ContractType.CASHBACK_MANAGER,
            CashbackManagerMethod.GET_CLAIMABLE_BALANCE,
            [Web3.to_checksum_address(user_address)],
            handle,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_contract_by_type(
        self, contract_type: ContractType | str, network_id: int
    ) -> SmartContract | None:
        async with self.uow.transaction() as tx:
            return await tx.smart_contracts.find_active_by_type(
                ContractType(contract_type).value, network_id
            )

    async def get_contracts_by_network(self, network_id: int) -> list[SmartContract]:
        async with self.uow.transaction() as tx:
            return await tx.smart_contracts.find_by_network(network_id)

    async def get_contract_events(self, contract_id: int, limit: int = 100) -> list[BlockchainEvent]:
        async with self.uow.transaction() as tx:
            return await tx.blockchain_events.find_by_contract(contract_id, limit)

    async def get_contract_transactions(
        self, contract_id: int, limit: int = 100
    ) -> list[BlockchainTransaction]:
        async with self.uow.transaction() as tx:
            return await tx.blockchain_transactions.find_by_contract(contract_id, limit)

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve(
        address: str,
        contract_type: ContractType | str,
        method: ContractMethod | str,
    ) -> tuple[ContractInterface, str]:
        method_name = str(method)
        try:
            interface = get_interface(contract_type)
        except ValueError as e:
            raise ContractInteractionError(
                f"unknown contract type {contract_type}", address, method_name
            ) from e

        if isinstance(method, StrEnum) and not isinstance(method, interface.methods):
            raise ContractInteractionError(
                f"{type(method).__name__} is not a {interface.name} command", address, method_name
            )
        if interface.function_entry(method_name) is None:
            raise ContractInteractionError(
                f"method not in {interface.name} interface", address, method_name
            )
        return interface, method_name

    @staticmethod
    def _bind(handle: NetworkHandle, address: str, interface: ContractInterface) -> Any:
        try:
            checksum_address = Web3.to_checksum_address(address)
        except ValueError as e:
            raise ContractInteractionError("invalid contract address", address, interface.name) from e
        return handle.web3.eth.contract(address=checksum_address, abi=interface.abi)

    @staticmethod
    def _interaction_error(
        exc: Exception, address: str, method: str, handle: NetworkHandle
    ) -> Exception:
        if isinstance(exc, (MismatchedABI, Web3ValidationError)):
            return ContractInteractionError(f"arguments do not match the ABI: {exc}", address, method)
        error = translate_rpc_error(exc, handle.name)
        if isinstance(error, TransactionRevertedError):
            return ContractInteractionError(str(error), address, method, tx_hash=error.tx_hash)
        return error
