"""Chain endpoints (Ethereum, Solana, dry-run)."""

from nijawallet.chain.base import ChainEndpoint
from nijawallet.chain.client import RpcClient
from nijawallet.chain.dryrun import DryRunEndpoint
from nijawallet.chain.eth import EthereumEndpoint
from nijawallet.chain.sol import SolanaEndpoint
from nijawallet.config import Settings
from nijawallet.hdwallet.base import ChainTag


def create_endpoints(settings: Settings) -> dict[ChainTag, ChainEndpoint]:
    """Build one endpoint per chain from settings (dry-run unless disabled)."""
    eth_chain_id = int(settings.default_chain_id, 16)
    if settings.dry_run:
        return {
            ChainTag.ETH: DryRunEndpoint(ChainTag.ETH, chain_id=eth_chain_id),
            ChainTag.SOL: DryRunEndpoint(ChainTag.SOL),
        }

    def rpc(chain: ChainTag) -> RpcClient:
        return RpcClient(
            settings.get_rpc_url(chain.value),
            timeout=settings.rpc_timeout,
            max_retries=settings.rpc_max_retries,
            backoff_base=settings.rpc_backoff_base,
        )

    return {
        ChainTag.ETH: EthereumEndpoint(rpc(ChainTag.ETH), chain_id=eth_chain_id),
        ChainTag.SOL: SolanaEndpoint(rpc(ChainTag.SOL)),
    }


__all__ = [
    "ChainEndpoint",
    "DryRunEndpoint",
    "EthereumEndpoint",
    "RpcClient",
    "SolanaEndpoint",
    "create_endpoints",
]
