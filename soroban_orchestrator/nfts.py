"""
nfts.py
Function table and typed client for the NFT minter contract.
"""

from dataclasses import dataclass
from typing import List

from soroban_orchestrator.contracts import (
    ContractClient,
    ContractSpec,
    as_int,
    as_int_list,
    as_text,
    field_map,
    fn,
)
from soroban_orchestrator.status import ObserverLike

NFT_CONTRACT_ID = "CAGXJUI4GWABBGDQK5XWCYMLBOW77ABCBAAZWI5KXBLQ73FPCD7BDGMG"


@dataclass(frozen=True)
class NftMetadata:
    id: int
    name: str
    description: str
    image_url: str
    owner: str

    @classmethod
    def from_native(cls, value) -> "NftMetadata":
        record = field_map(value)
        return cls(
            id=int(record["id"]),
            name=as_text(record["name"]),
            description=as_text(record["description"]),
            image_url=as_text(record["image_url"]),
            owner=as_text(record["owner"]),
        )


NFT_MINTER = ContractSpec.of(
    "nft_minter",
    NFT_CONTRACT_ID,
    fn(
        "mint",
        ("minter", "address"),
        ("name", "string"),
        ("description", "string"),
        ("image_url", "string"),
        result=as_int,
    ),
    fn("get_nft", ("nft_id", "u64"), result=NftMetadata.from_native),
    fn("get_owner", ("nft_id", "u64"), result=as_text),
    fn("get_nfts_by_owner", ("owner", "address"), result=as_int_list),
    fn("transfer", ("from", "address"), ("to", "address"), ("nft_id", "u64")),
    fn("get_total_count", result=as_int),
)


class NftMinterClient(ContractClient):
    spec = NFT_MINTER

    def mint(self, caller: str, name: str, description: str, image_url: str, observer: ObserverLike = None):
        """Mint an NFT to ``caller``. Returns ``(nft_id, hash)``."""
        result = self.call(caller, "mint", caller, name, description, image_url, observer=observer)
        return result.value, result.hash

    def get_nft(self, caller: str, nft_id: int, observer: ObserverLike = None) -> NftMetadata:
        return self.call(caller, "get_nft", nft_id, observer=observer).value

    def get_owner(self, caller: str, nft_id: int, observer: ObserverLike = None) -> str:
        return self.call(caller, "get_owner", nft_id, observer=observer).value

    def get_nfts_by_owner(self, caller: str, owner_address: str, observer: ObserverLike = None) -> List[int]:
        return self.call(caller, "get_nfts_by_owner", owner_address, observer=observer).value or []

    def transfer(self, caller: str, to_address: str, nft_id: int, observer: ObserverLike = None) -> str:
        """Transfer ``nft_id`` from ``caller``. Returns the transaction hash."""
        return self.call(caller, "transfer", caller, to_address, nft_id, observer=observer).hash

    def get_total_count(self, caller: str, observer: ObserverLike = None) -> int:
        return self.call(caller, "get_total_count", observer=observer).value or 0
