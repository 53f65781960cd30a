"""
Deployment configuration.

Built once at startup from the process environment (plus an optional .env
file) and passed by reference into the orchestrator and the relay submitter.
Everything here is immutable.

Environment Variables:
    RPC_URL: Ledger JSON-RPC endpoint (required)
    RELAYER_URL: Relay endpoint accepting signed payloads (required)
    RELAYER_PUBKEY: Relay fee-payer address (required)
    TREASURY_PUBKEY: Address receiving the supply (required)
    DAO_PUBKEY: Governance address for AUTHORITY_MODE=dao
    AUTHORITY_MODE: null, dao, treasury - default: null
    DRY_RUN: true/false - default: false
    RELAYER_API_KEY: Bearer credential for the relay
    OWNER_ADDRESS: When set, TREASURY_PUBKEY must equal it
    CACHE_DIR: Local state directory - default: .cache
    DEPLOYMENT_KEY: Checkpoint record name - default: default
    EXPLORER_CLUSTER: Cluster query for explorer links - default: mainnet-beta
    TOKEN_NAME, TOKEN_SYMBOL, TOKEN_DESCRIPTION, TOKEN_IMAGE, TOKEN_EXTERNAL_URL
    TOKEN_DECIMALS: default: 9
    TOKEN_SUPPLY: Whole tokens minted to the treasury - default: 1000000000
    RELAY_MAX_ATTEMPTS: default: 3
    RELAY_RETRY_DELAY_SECONDS: default: 1.0
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values

from .errors import ConfigInvalid
from .ids import is_valid_address

REQUIRED_KEYS = ("RPC_URL", "RELAYER_URL", "RELAYER_PUBKEY", "TREASURY_PUBKEY")

ENV_SAMPLE = """\
RPC_URL=https://api.mainnet-beta.solana.com
RELAYER_URL=https://<your-relayer-domain>/relay/sendRawTransaction
RELAYER_PUBKEY=<RELAYER_FEE_PAYER_PUBKEY>
TREASURY_PUBKEY=<TREASURY_PUBKEY>
DAO_PUBKEY=<YOUR_DAO_MULTISIG_PUBKEY> # Optional
AUTHORITY_MODE=null # Options: null, dao, treasury
DRY_RUN=false
RELAYER_API_KEY=<YOUR_API_KEY> # Optional
"""


class AuthorityKind(str, Enum):
    NONE = "none"
    DELEGATE = "delegate"
    SELF = "self"


@dataclass(frozen=True)
class AuthorityPolicy:
    """
    Target for the authority slots once supply is final.

    NONE revokes the authority permanently. DELEGATE hands it to a
    governance address. SELF keeps it at the treasury address.
    """
    kind: AuthorityKind
    address: Optional[str] = None

    @property
    def target(self) -> Optional[str]:
        return None if self.kind is AuthorityKind.NONE else self.address

    @property
    def irreversible(self) -> bool:
        return self.kind is AuthorityKind.NONE

    def describe(self) -> str:
        if self.kind is AuthorityKind.NONE:
            return "none (revoked, irreversible)"
        return f"{self.kind.value} ({self.address})"

    @staticmethod
    def resolve(mode: str, treasury: str, dao: Optional[str]) -> "AuthorityPolicy":
        """
        Resolve AUTHORITY_MODE into a policy.

        Raises:
            ConfigInvalid: Unknown mode, or dao mode without DAO_PUBKEY
        """
        mode = (mode or "null").strip().lower()
        if mode == "null":
            return AuthorityPolicy(AuthorityKind.NONE)
        if mode == "treasury":
            return AuthorityPolicy(AuthorityKind.SELF, treasury)
        if mode == "dao":
            if not dao:
                raise ConfigInvalid("AUTHORITY_MODE=dao requires DAO_PUBKEY")
            return AuthorityPolicy(AuthorityKind.DELEGATE, dao)
        raise ConfigInvalid(f"Invalid AUTHORITY_MODE {mode!r}. Use: null, dao, or treasury")


@dataclass(frozen=True)
class TokenSpec:
    """Token parameters: precision, supply and metadata document."""
    name: str = "Omega Prime Token"
    symbol: str = "OMEGA"
    description: str = "Agent guild utility token."
    image: str = ""
    external_url: str = ""
    decimals: int = 9
    supply: int = 1_000_000_000

    @property
    def base_units(self) -> int:
        """Total supply at the asset's declared precision."""
        return self.supply * 10 ** self.decimals

    def document(self) -> dict:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "description": self.description,
            "image": self.image,
            "external_url": self.external_url,
        }


@dataclass(frozen=True)
class DeployConfig:
    rpc_url: str
    relayer_url: str
    relayer_pubkey: str
    treasury_pubkey: str
    authority_policy: AuthorityPolicy
    token: TokenSpec
    dao_pubkey: Optional[str] = None
    relayer_api_key: Optional[str] = None
    dry_run: bool = False
    cache_dir: Path = Path(".cache")
    deployment_key: str = "default"
    explorer_cluster: str = "mainnet-beta"
    relay_max_attempts: int = 3
    relay_retry_delay: float = 1.0

    @property
    def identity_path(self) -> Path:
        return self.cache_dir / "user_auth.json"

    @property
    def checkpoint_dir(self) -> Path:
        return self.cache_dir / "deployments"

    def explorer_url(self, kind: str, value: str) -> str:
        """Explorer link for an address or tx signature."""
        url = f"https://explorer.solana.com/{kind}/{value}"
        if self.explorer_cluster and self.explorer_cluster != "mainnet-beta":
            url += f"?cluster={self.explorer_cluster}"
        return url

    @staticmethod
    def from_env(
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
    ) -> "DeployConfig":
        """
        Build and validate configuration.

        Args:
            env: Variables to read (default: os.environ)
            dotenv_path: Optional .env file; process values win over it

        Raises:
            ConfigInvalid: Missing or malformed settings
        """
        values = {}
        if dotenv_path is not None and Path(dotenv_path).exists():
            values.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
        values.update(os.environ if env is None else env)

        def get(key: str, default: Optional[str] = None) -> Optional[str]:
            val = values.get(key)
            if val is None:
                return default
            val = val.split(" #", 1)[0].strip()
            return val or default

        missing = [key for key in REQUIRED_KEYS if not get(key)]
        if missing:
            raise ConfigInvalid(f"Missing {', '.join(missing)} in environment/.env")

        for key in ("RELAYER_PUBKEY", "TREASURY_PUBKEY", "DAO_PUBKEY"):
            val = get(key)
            if val and not is_valid_address(val):
                raise ConfigInvalid(f"Invalid public key in {key}: {val!r}")

        treasury = get("TREASURY_PUBKEY")
        owner = get("OWNER_ADDRESS")
        if owner and treasury != owner:
            raise ConfigInvalid(f"TREASURY_PUBKEY must be {owner}")

        dao = get("DAO_PUBKEY")
        policy = AuthorityPolicy.resolve(get("AUTHORITY_MODE", "null"), treasury, dao)

        defaults = TokenSpec()
        token = TokenSpec(
            name=get("TOKEN_NAME", defaults.name),
            symbol=get("TOKEN_SYMBOL", defaults.symbol),
            description=get("TOKEN_DESCRIPTION", defaults.description),
            image=get("TOKEN_IMAGE", defaults.image),
            external_url=get("TOKEN_EXTERNAL_URL", defaults.external_url),
            decimals=_int(get("TOKEN_DECIMALS"), defaults.decimals, "TOKEN_DECIMALS"),
            supply=_int(get("TOKEN_SUPPLY"), defaults.supply, "TOKEN_SUPPLY"),
        )
        if not 0 <= token.decimals <= 18:
            raise ConfigInvalid(f"TOKEN_DECIMALS out of range: {token.decimals}")
        if token.supply <= 0:
            raise ConfigInvalid(f"TOKEN_SUPPLY must be positive: {token.supply}")

        max_attempts = _int(get("RELAY_MAX_ATTEMPTS"), 3, "RELAY_MAX_ATTEMPTS")
        if max_attempts < 1:
            raise ConfigInvalid("RELAY_MAX_ATTEMPTS must be at least 1")
        try:
            retry_delay = float(get("RELAY_RETRY_DELAY_SECONDS", "1.0"))
        except ValueError:
            raise ConfigInvalid("RELAY_RETRY_DELAY_SECONDS must be a number")

        return DeployConfig(
            rpc_url=get("RPC_URL"),
            relayer_url=get("RELAYER_URL"),
            relayer_pubkey=get("RELAYER_PUBKEY"),
            treasury_pubkey=treasury,
            authority_policy=policy,
            token=token,
            dao_pubkey=dao,
            relayer_api_key=get("RELAYER_API_KEY"),
            dry_run=get("DRY_RUN", "false").lower() == "true",
            cache_dir=Path(get("CACHE_DIR", ".cache")),
            deployment_key=get("DEPLOYMENT_KEY", "default"),
            explorer_cluster=get("EXPLORER_CLUSTER", "mainnet-beta"),
            relay_max_attempts=max_attempts,
            relay_retry_delay=retry_delay,
        )


def _int(val: Optional[str], default: int, key: str) -> int:
    if val is None:
        return default
    try:
        return int(val.replace("_", ""))
    except ValueError:
        raise ConfigInvalid(f"{key} must be an integer, got {val!r}")
