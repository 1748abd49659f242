"""Signing and submission through ``substrate-interface``.

:class:`ChainClient` owns the metadata-aware :class:`SubstrateInterface`
connection. It turns :class:`~creditcoin_cli.extrinsics.CallSpec` descriptions
into SCALE calls, signs them, and hands the encoded extrinsic to
:func:`~creditcoin_cli.subscription.open_status_subscription`. Blocks reported
by the status stream are wrapped in :class:`TxInBlock`, which reads the
extrinsic's execution result back from the chain. Storage map counting also
goes through this connection because it needs the runtime metadata.
"""

from __future__ import annotations

import logging
from typing import Any, List

from substrateinterface import ExtrinsicReceipt, Keypair, SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException

from .config import NodeConfig
from .extrinsics import CallSpec
from .model import ChainEvent, ExtrinsicFailedError
from .rpc_client import RPCTransportError
from .subscription import StatusSubscription, open_status_subscription

logger = logging.getLogger(__name__)

STORAGE_PAGE_SIZE = 512


class KeypairError(ValueError):
    """Raised when a secret URI cannot be turned into a signing keypair."""


class CallCompositionError(ValueError):
    """Raised when the runtime metadata rejects a call or its parameters."""


class StorageItemError(ValueError):
    """Raised when a storage item is missing from the metadata or is not a map."""


def load_keypair(suri: str, ss58_format: int) -> Keypair:
    """Create an sr25519 keypair from a secret URI such as ``//Alice``."""

    try:
        return Keypair.create_from_uri(suri, ss58_format=ss58_format)
    except (ValueError, TypeError) as exc:
        raise KeypairError(f"Invalid secret URI: {exc}") from exc


class TxInBlock:
    """A block reported to contain the submitted extrinsic."""

    def __init__(self, client: "ChainClient", block_hash: str, extrinsic_hash: str) -> None:
        self.client = client
        self.block_hash = block_hash
        self.extrinsic_hash = extrinsic_hash

    def __repr__(self) -> str:
        return f"TxInBlock(block_hash={self.block_hash!r}, extrinsic_hash={self.extrinsic_hash!r})"

    def wait_for_success(self) -> List[ChainEvent]:
        """Fetch the extrinsic's events, raising if its dispatch failed."""

        receipt = ExtrinsicReceipt(
            self.client.substrate,
            extrinsic_hash=self.extrinsic_hash,
            block_hash=self.block_hash,
        )
        if not receipt.is_success:
            logger.error(
                "Extrinsic %s failed in block %s", self.extrinsic_hash, self.block_hash
            )
            raise ExtrinsicFailedError(receipt.error_message)
        events = [ChainEvent.from_record(record) for record in receipt.triggered_events]
        logger.info(
            "Extrinsic %s succeeded in block %s with %d events",
            self.extrinsic_hash,
            self.block_hash,
            len(events),
        )
        return events


class ChainClient:
    """Metadata-aware client used for building and submitting extrinsics."""

    def __init__(self, config: NodeConfig, substrate: SubstrateInterface) -> None:
        self.config = config
        self.substrate = substrate

    @classmethod
    def connect(cls, config: NodeConfig) -> "ChainClient":
        logger.debug("Connecting to %s", config.endpoint)
        try:
            substrate = SubstrateInterface(url=config.endpoint, ss58_format=config.ss58_format)
        except (OSError, SubstrateRequestException) as exc:
            logger.error(
                "Node connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"Could not connect to {config.endpoint}. Ensure the node is running and --endpoint is correct."
            ) from exc
        return cls(config, substrate)

    def compose(self, call: CallSpec) -> Any:
        """Compose a (possibly nested) call description into a ``GenericCall``."""

        params = {key: self._compose_param(value) for key, value in call.params.items()}
        try:
            return self.substrate.compose_call(
                call_module=call.module,
                call_function=call.function,
                call_params=params,
            )
        except ValueError as exc:
            raise CallCompositionError(
                f"Runtime at {self.config.endpoint} rejected {call.name}: {exc}"
            ) from exc

    def _compose_param(self, value: Any) -> Any:
        if isinstance(value, CallSpec):
            return self.compose(value).value
        return value

    def submit_and_watch(self, call: CallSpec, signer: Keypair) -> StatusSubscription:
        extrinsic = self.substrate.create_signed_extrinsic(call=self.compose(call), keypair=signer)
        extrinsic_hash = "0x" + extrinsic.extrinsic_hash.hex()
        logger.info(
            "Submitting %s signed by %s (extrinsic %s)",
            call.describe(),
            signer.ss58_address,
            extrinsic_hash,
        )

        def on_in_block(block_hash: str) -> TxInBlock:
            return TxInBlock(self, block_hash, extrinsic_hash)

        return open_status_subscription(
            self.config.endpoint,
            str(extrinsic.data),
            on_in_block,
            timeout=self.config.timeout,
        )

    def count_storage_items(
        self, module: str, name: str, page_size: int = STORAGE_PAGE_SIZE
    ) -> int:
        """Count the entries of the storage map ``module.name`` at the chain head.

        The item is looked up in the runtime metadata first, so a misspelt
        pallet or storage name is an error rather than an empty count. Entries
        are fetched ``page_size`` at a time, all pinned to the same block.
        """

        block_hash = self.substrate.get_chain_head()
        storage_function = self.substrate.get_metadata_storage_function(
            module, name, block_hash=block_hash
        )
        if storage_function is None:
            raise StorageItemError(f"Storage item {module}.{name} not found in runtime metadata")
        try:
            entries = self.substrate.query_map(
                module, name, block_hash=block_hash, page_size=page_size
            )
        except ValueError as exc:
            raise StorageItemError(f"Cannot iterate {module}.{name}: {exc}") from exc
        count = 0
        for _ in entries:
            count += 1
        logger.debug("Counted %d entries of %s.%s at %s", count, module, name, block_hash)
        return count

    def close(self) -> None:
        self.substrate.close()
