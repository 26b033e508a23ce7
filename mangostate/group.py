"""Group-level configuration: tokens, spot and perp markets, oracles."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from mangostate.fixed import ONE, ZERO, I80F48

MAX_TOKENS = 16
MAX_PAIRS = MAX_TOKENS - 1
MAX_NODE_BANKS = 8
QUOTE_INDEX = MAX_TOKENS - 1
INFO_LEN = 32
MAX_PERP_OPEN_ORDERS = 64
FREE_ORDER_SLOT = 255
MAX_NUM_IN_MARGIN_BASKET = 9

DAY = I80F48.from_num(86400)
YEAR = I80F48.from_num(31536000)
DUST_THRESHOLD = I80F48.from_num("0.000001")
INDEX_START = I80F48.from_num(1_000_000)

PUBKEY_LEN = 32
DEFAULT_PUBKEY = bytes(PUBKEY_LEN)


class DataType(IntEnum):
    MANGO_GROUP = 0
    MANGO_ACCOUNT = 1
    ROOT_BANK = 2
    NODE_BANK = 3
    PERP_MARKET = 4
    BIDS = 5
    ASKS = 6
    MANGO_CACHE = 7
    EVENT_QUEUE = 8
    ADVANCED_ORDERS = 9


class HealthType(IntEnum):
    MAINT = 0
    INIT = 1


class AssetType(IntEnum):
    TOKEN = 0
    PERP = 1


@dataclass
class MetaData:
    """Type tag, version and initialisation flag stored with every account."""

    data_type: DataType = DataType.MANGO_GROUP
    version: int = 0
    is_initialized: bool = False
    extra_info: bytes = bytes(5)

    def __post_init__(self) -> None:
        self.data_type = DataType(self.data_type)
        self.extra_info = bytes(self.extra_info)
        if len(self.extra_info) != 5:
            raise ValueError("extra_info must be exactly 5 bytes")
        if not 0 <= self.version <= 255:
            raise ValueError("version must fit in one byte")


@dataclass
class TokenInfo:
    mint: bytes = DEFAULT_PUBKEY
    root_bank: bytes = DEFAULT_PUBKEY
    decimals: int = 0

    def is_empty(self) -> bool:
        return self.mint == DEFAULT_PUBKEY


@dataclass
class SpotMarketInfo:
    spot_market: bytes = DEFAULT_PUBKEY
    maint_asset_weight: I80F48 = ZERO
    init_asset_weight: I80F48 = ZERO
    maint_liab_weight: I80F48 = ZERO
    init_liab_weight: I80F48 = ZERO
    liquidation_fee: I80F48 = ZERO

    def is_empty(self) -> bool:
        return self.spot_market == DEFAULT_PUBKEY


@dataclass
class PerpMarketInfo:
    perp_market: bytes = DEFAULT_PUBKEY
    maint_asset_weight: I80F48 = ZERO
    init_asset_weight: I80F48 = ZERO
    maint_liab_weight: I80F48 = ZERO
    init_liab_weight: I80F48 = ZERO
    liquidation_fee: I80F48 = ZERO
    maker_fee: I80F48 = ZERO
    taker_fee: I80F48 = ZERO
    base_lot_size: int = 0
    quote_lot_size: int = 0

    def is_empty(self) -> bool:
        return self.perp_market == DEFAULT_PUBKEY


def _group_meta() -> MetaData:
    return MetaData(DataType.MANGO_GROUP, 0, True)


@dataclass
class MangoGroup:
    """Top-level configuration shared by every account of a group."""

    meta_data: MetaData = field(default_factory=_group_meta)
    num_oracles: int = 0
    tokens: list[TokenInfo] = field(
        default_factory=lambda: [TokenInfo() for _ in range(MAX_TOKENS)]
    )
    spot_markets: list[SpotMarketInfo] = field(
        default_factory=lambda: [SpotMarketInfo() for _ in range(MAX_PAIRS)]
    )
    perp_markets: list[PerpMarketInfo] = field(
        default_factory=lambda: [PerpMarketInfo() for _ in range(MAX_PAIRS)]
    )
    oracles: list[bytes] = field(default_factory=lambda: [DEFAULT_PUBKEY] * MAX_PAIRS)
    signer_nonce: int = 0
    signer_key: bytes = DEFAULT_PUBKEY
    admin: bytes = DEFAULT_PUBKEY
    dex_program_id: bytes = DEFAULT_PUBKEY
    mango_cache: bytes = DEFAULT_PUBKEY
    valid_interval: int = 0
    insurance_vault: bytes = DEFAULT_PUBKEY
    srm_vault: bytes = DEFAULT_PUBKEY
    msrm_vault: bytes = DEFAULT_PUBKEY
    fees_vault: bytes = DEFAULT_PUBKEY

    def __post_init__(self) -> None:
        for name, expected in (
            ("tokens", MAX_TOKENS),
            ("spot_markets", MAX_PAIRS),
            ("perp_markets", MAX_PAIRS),
            ("oracles", MAX_PAIRS),
        ):
            if len(getattr(self, name)) != expected:
                raise ValueError(f"{name} must hold exactly {expected} entries")
        if not 0 <= self.num_oracles <= MAX_PAIRS:
            raise ValueError(f"num_oracles must be in 0..={MAX_PAIRS}")

    @staticmethod
    def _position(items, predicate) -> int | None:
        return next((i for i, item in enumerate(items) if predicate(item)), None)

    def find_oracle_index(self, oracle_pk: bytes) -> int | None:
        return self._position(self.oracles, lambda pk: pk == oracle_pk)

    def find_root_bank_index(self, root_bank_pk: bytes) -> int | None:
        return self._position(self.tokens, lambda info: info.root_bank == root_bank_pk)

    def find_spot_market_index(self, spot_market_pk: bytes) -> int | None:
        return self._position(
            self.spot_markets, lambda info: info.spot_market == spot_market_pk
        )

    def find_perp_market_index(self, perp_market_pk: bytes) -> int | None:
        return self._position(
            self.perp_markets, lambda info: info.perp_market == perp_market_pk
        )

    def get_token_asset_weight(self, token_index: int, health_type: HealthType) -> I80F48:
        if token_index == QUOTE_INDEX:
            return ONE
        info = self.spot_markets[token_index]
        if health_type == HealthType.MAINT:
            return info.maint_asset_weight
        return info.init_asset_weight