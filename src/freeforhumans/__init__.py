from .clients import ClientPool, SigningClient
from .config import (
    CHAINS,
    ChainDescriptor,
    ChainId,
    ChainRegistry,
    CircuitBreakerConfig,
    RelayerConfig,
    parse_chain_id,
)
from .constants import (
    CAMPAIGN_CACHE_TTL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
    DEVICE_GROUP_ID,
    ORB_GROUP_ID,
    PROOF_BYTE_LENGTH,
    PROVIDER_TIMEOUT_SECONDS,
    ZERO_ADDRESS,
)
from .contract import CampaignContract, ClaimCall
from .errors import (
    CampaignExpiredError,
    CampaignInactiveError,
    CampaignNotFoundError,
    ClaimRejectedError,
    ConfigurationError,
    ConfirmationTimeoutError,
    ContractRevertError,
    InfrastructureError,
    MalformedProofError,
    RelayerError,
    ResolutionError,
    ResolutionFailedError,
    RpcError,
    RpcTimeoutError,
    UnknownVerificationLevelError,
    UnresolvableIdentifierError,
    UnsupportedChainError,
    ValidationError,
    VerificationLevelUnsupportedError,
)
from .models import (
    Campaign,
    CampaignSnapshot,
    CampaignView,
    ClaimCommand,
    ClaimRequest,
    ClaimResult,
    ClaimState,
    TokenMetadata,
)
from .proof import decode_proof, encode_proof, group_id_for, parse_field_element
from .relayer import Relayer, parse_campaign_reference
from .resolver import EnsNameLookup, NameLookup, RecipientResolver
from .revert import FailureCategory, classify_revert, describe_revert
from .store import CampaignStore
from .submitter import ClaimSubmitter

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Facade
    "Relayer",
    "parse_campaign_reference",
    # Config
    "ChainId",
    "ChainDescriptor",
    "ChainRegistry",
    "CHAINS",
    "CircuitBreakerConfig",
    "RelayerConfig",
    "parse_chain_id",
    # Components
    "ClientPool",
    "SigningClient",
    "CampaignContract",
    "ClaimCall",
    "CampaignStore",
    "ClaimSubmitter",
    "RecipientResolver",
    "NameLookup",
    "EnsNameLookup",
    # Models
    "Campaign",
    "TokenMetadata",
    "CampaignView",
    "CampaignSnapshot",
    "ClaimCommand",
    "ClaimState",
    "ClaimResult",
    "ClaimRequest",
    # Proof
    "decode_proof",
    "encode_proof",
    "group_id_for",
    "parse_field_element",
    # Classification
    "FailureCategory",
    "classify_revert",
    "describe_revert",
    # Errors
    "RelayerError",
    "ConfigurationError",
    "ValidationError",
    "UnsupportedChainError",
    "MalformedProofError",
    "UnknownVerificationLevelError",
    "ClaimRejectedError",
    "CampaignNotFoundError",
    "CampaignInactiveError",
    "CampaignExpiredError",
    "VerificationLevelUnsupportedError",
    "ContractRevertError",
    "InfrastructureError",
    "RpcError",
    "RpcTimeoutError",
    "ConfirmationTimeoutError",
    "ResolutionError",
    "UnresolvableIdentifierError",
    "ResolutionFailedError",
    # Constants
    "CAMPAIGN_CACHE_TTL_SECONDS",
    "CONFIRMATION_TIMEOUT_SECONDS",
    "DEVICE_GROUP_ID",
    "ORB_GROUP_ID",
    "PROOF_BYTE_LENGTH",
    "PROVIDER_TIMEOUT_SECONDS",
    "ZERO_ADDRESS",
]
