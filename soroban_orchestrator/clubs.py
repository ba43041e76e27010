"""
clubs.py
Function table and typed client for the FIFA game contract.

The game contract mints clubs through the club-minter contract, keeps each
player's club list and plays matches between registered clubs.
"""

from dataclasses import dataclass
from typing import List, Optional

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

GAME_CONTRACT_ID = "CAJ6DMM56A3EMMRE4SUFEZDUIUSR6FIIOVQTNCLC5H65QQOJC324WB4B"


@dataclass(frozen=True)
class ClubStats:
    attack: int
    defense: int
    midfield: int
    goalkeeping: int
    speed: int
    overall: int

    @classmethod
    def from_native(cls, value) -> "ClubStats":
        record = field_map(value)
        return cls(
            attack=int(record["attack"]),
            defense=int(record["defense"]),
            midfield=int(record["midfield"]),
            goalkeeping=int(record["goalkeeping"]),
            speed=int(record["speed"]),
            overall=int(record["overall"]),
        )


@dataclass(frozen=True)
class ClubInfo:
    id: int
    name: str
    logo_url: str
    owner: str
    stats: ClubStats
    wins: int
    losses: int
    draws: int

    @classmethod
    def from_native(cls, value) -> "ClubInfo":
        record = field_map(value)
        return cls(
            id=int(record["id"]),
            name=as_text(record["name"]),
            logo_url=as_text(record["logo_url"]),
            owner=as_text(record["owner"]),
            stats=ClubStats.from_native(record["stats"]),
            wins=int(record["wins"]),
            losses=int(record["losses"]),
            draws=int(record["draws"]),
        )


@dataclass(frozen=True)
class MatchResult:
    winner: int
    loser: int
    hash: Optional[str] = None

    @property
    def is_draw(self) -> bool:
        return self.winner == 0 and self.loser == 0


def _match_pair(value) -> MatchResult:
    winner, loser = value
    return MatchResult(winner=int(winner), loser=int(loser))


FIFA_GAME = ContractSpec.of(
    "fifa_game",
    GAME_CONTRACT_ID,
    fn("register_club", ("owner", "address"), ("name", "string"), ("logo_url", "string"), result=as_int),
    fn("get_club_info", ("club_id", "u64"), result=ClubInfo.from_native),
    fn("query_club_stats", ("club_id", "u64"), result=ClubStats.from_native),
    fn("get_player_clubs", ("player", "address"), result=as_int_list),
    fn("is_club_registered", ("club_id", "u64"), result=bool),
    fn("get_club_contract", result=as_text),
    fn("simulate_match", ("club1_id", "u64"), ("club2_id", "u64"), result=_match_pair),
)


class FifaGameClient(ContractClient):
    spec = FIFA_GAME

    def register_club(self, caller: str, name: str, logo_url: str, observer: ObserverLike = None):
        """Mint and register a club owned by ``caller``. Returns ``(club_id, hash)``."""
        result = self.call(caller, "register_club", caller, name, logo_url, observer=observer)
        return result.value, result.hash

    def get_club_info(self, caller: str, club_id: int, observer: ObserverLike = None) -> ClubInfo:
        return self.call(caller, "get_club_info", club_id, observer=observer).value

    def get_club_stats(self, caller: str, club_id: int, observer: ObserverLike = None) -> ClubStats:
        return self.call(caller, "query_club_stats", club_id, observer=observer).value

    def get_player_clubs(self, caller: str, player_address: str, observer: ObserverLike = None) -> List[int]:
        return self.call(caller, "get_player_clubs", player_address, observer=observer).value or []

    def is_club_registered(self, caller: str, club_id: int, observer: ObserverLike = None) -> bool:
        return bool(self.call(caller, "is_club_registered", club_id, observer=observer).value)

    def get_club_contract(self, caller: str, observer: ObserverLike = None) -> str:
        return self.call(caller, "get_club_contract", observer=observer).value

    def simulate_match(self, caller: str, club1_id: int, club2_id: int, observer: ObserverLike = None) -> MatchResult:
        result = self.call(caller, "simulate_match", club1_id, club2_id, observer=observer)
        return MatchResult(winner=result.value.winner, loser=result.value.loser, hash=result.hash)
