"""Input models for the Asetta MCP tools; their JSON schemas are published via list_tools."""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Address = Annotated[str, Field(pattern=r"^0x[0-9a-fA-F]{40}$", description="EVM address")]
Network = Literal["avalancheFuji", "ethereumSepolia", "arbitrumSepolia"]
ProjectStatus = Literal["PREPARE", "ACTIVE", "LAUNCHING_SOON", "COMPLETED", "PAUSED", "CANCELLED"]
ProjectCategory = Literal[
    "COMMERCIAL",
    "RESIDENTIAL",
    "MIXED_USE",
    "INDUSTRIAL",
    "RETAIL",
    "TREASURY",
    "CORPORATE_BOND",
    "MUNICIPAL_BOND",
    "GOVERNMENT_BOND",
    "PRECIOUS_METALS",
    "ENERGY",
    "AGRICULTURE",
    "INDUSTRIAL_METALS",
]
KycLevel = Literal["BASIC", "ENHANCED", "INSTITUTIONAL"]

_NETWORK_HELP = "Network to use (optional, defaults to configured network)"
_ACCESS_KEY_HELP = "Access key for API authentication (optional, uses the --access_key default)"


class ToolInput(BaseModel):
    model_config = ConfigDict(extra="ignore")


class NetworkInput(ToolInput):
    network: Optional[Network] = Field(None, description=_NETWORK_HELP)


# ---------------------------------------------------------------------------
# REST API
# ---------------------------------------------------------------------------


class GetProfileInput(ToolInput):
    access_key: Optional[str] = Field(None, description=_ACCESS_KEY_HELP)


class CreateRwaProjectInput(ToolInput):
    access_key: Optional[str] = Field(None, description=_ACCESS_KEY_HELP)
    name: str = Field(..., min_length=1, description="Project name")
    type: str = Field(..., min_length=1, description="Asset type, e.g. 'Office Building'")
    location: str = Field(..., min_length=1, description="Asset location")
    value: str = Field(..., description="Total asset value in USD")
    tokenPrice: str = Field(..., description="Price per token in USD")
    category: ProjectCategory
    status: Optional[ProjectStatus] = None
    yieldRate: Optional[str] = None
    occupancy: Optional[str] = None
    totalTokens: Optional[str] = None
    previewImage: Optional[str] = None
    images: Optional[List[str]] = None
    yearBuilt: Optional[int] = None
    squareFootage: Optional[str] = None
    maturityDate: Optional[str] = None
    couponRate: Optional[float] = None
    creditRating: Optional[str] = None
    commodityGrade: Optional[str] = None
    storageLocation: Optional[str] = None
    assetMetadata: Optional[dict[str, Any]] = None
    requiredKycLevel: Optional[KycLevel] = None
    kycRequirements: Optional[str] = None
    jurisdiction: Optional[str] = None
    regulatoryFramework: Optional[str] = None
    minimumInvestment: Optional[str] = None
    maximumInvestment: Optional[str] = None
    investorRestrictions: Optional[List[str]] = None


class GetRwaProjectsInput(ToolInput):
    access_key: Optional[str] = Field(None, description=_ACCESS_KEY_HELP)
    project_id: Optional[str] = Field(None, description="Project id; omit to list all projects")


class UpdateProjectStatusInput(ToolInput):
    access_key: Optional[str] = Field(None, description=_ACCESS_KEY_HELP)
    project_id: str = Field(..., min_length=1, description="Project id to update")
    status: ProjectStatus
    smart_contract_id: Optional[str] = Field(None, description="On-chain project id")
    token_address: Optional[str] = None
    primary_sales_address: Optional[str] = None
    vault_address: Optional[str] = None
    rfq_address: Optional[str] = None
    coordinator_address: Optional[str] = None
    network: Optional[str] = Field(None, description="Blockchain network label stored on the project")
    blockchain_tx_hash: Optional[str] = None
    block_number: Optional[str] = None
    deployed_at: Optional[str] = Field(None, description="ISO datetime of deployment")


# ---------------------------------------------------------------------------
# Wallet / ERC20
# ---------------------------------------------------------------------------


class GetWalletInfoInput(NetworkInput):
    pass


class GetAccountBalancesInput(NetworkInput):
    account_address: Optional[Address] = Field(None, description="Defaults to the wallet address")


class GetTransactionHistoryInput(NetworkInput):
    account_address: Optional[Address] = Field(None, description="Defaults to the wallet address")
    limit: int = Field(20, ge=1, le=100, description="Number of transactions to return")


class SendNativeInput(NetworkInput):
    destination: Address
    amount: float = Field(..., gt=0, description="Amount of native currency to send")
    memo: Optional[str] = None


class SendTokenInput(NetworkInput):
    token_address: Address
    destination: Address
    amount: float = Field(..., gt=0, description="Amount of tokens to send")
    memo: Optional[str] = None


class ApproveTokenInput(NetworkInput):
    token_address: Address
    spender: Address
    amount: Optional[float] = Field(None, gt=0, description="Exact amount (requires unlimited=false)")
    unlimited: bool = Field(True, description="Grant an unlimited allowance")


class CheckAllowanceInput(NetworkInput):
    token_address: Address
    spender: Address
    owner: Optional[Address] = Field(None, description="Defaults to the wallet address")


class GetTokenInfoInput(NetworkInput):
    token_address: Address
    account_address: Optional[Address] = Field(None, description="Holder to report; defaults to the wallet")


class MintUsdcInput(NetworkInput):
    amount: float = Field(..., gt=0, description="USDC to mint, e.g. 1000")
    recipient: Optional[Address] = Field(None, description="Defaults to the wallet address")


class GetUsdcBalanceInput(NetworkInput):
    account_address: Optional[Address] = Field(None, description="Defaults to the wallet address")


# ---------------------------------------------------------------------------
# RWA manager
# ---------------------------------------------------------------------------


class CreateRwaTokenInput(ToolInput):
    name: str = Field(..., min_length=1, description="Token name")
    symbol: str = Field(..., min_length=1, description="Token symbol")
    assetType: str = Field(..., description="Asset type, e.g. 'real-estate'")
    description: str
    totalValue: str = Field(..., description="Total asset value in USD, e.g. '12500000'")
    url: str = Field("", description="URL to asset documentation")
    projectWallet: Address = Field(..., description="Project wallet address")
    projectAllocationPercent: int = Field(..., ge=0, le=100, description="Percentage allocated to the project")
    pricePerTokenAVAX: str = Field(..., description="Price per token in AVAX, e.g. '0.01'")


class GetRwaProjectInput(ToolInput):
    projectId: str = Field(..., pattern=r"^\d+$", description="On-chain project id")


class MarkCcipConfiguredInput(NetworkInput):
    project_id: str = Field(..., pattern=r"^\d+$")
    total_supply: str = Field(..., description="Total supply across all chains, e.g. '1000000'")


class RegisterPrimarySalesInput(NetworkInput):
    project_id: str = Field(..., pattern=r"^\d+$")
    project_wallet: Address
    project_allocation_percent: int = Field(..., ge=0, le=100)
    price_per_token_usdc: str
    min_purchase_usdc: str
    max_purchase_usdc: str


class ActivatePrimarySalesInput(NetworkInput):
    project_id: str = Field(..., pattern=r"^\d+$")


# ---------------------------------------------------------------------------
# CCIP
# ---------------------------------------------------------------------------


class ConfigureCcipInput(NetworkInput):
    project_id: Optional[str] = None
    source_chain: Optional[Network] = None
    destination_chains: Optional[List[Network]] = None


class DeployCcipPoolInput(ToolInput):
    rwaTokenAddress: Address
    network: Network
    allowlist: List[Address] = Field(default_factory=list, description="Empty for public access")


class ConfigureCcipRolesInput(ToolInput):
    rwaTokenAddress: Address
    poolAddress: Address
    network: Network


class RateLimitInput(ToolInput):
    capacity: int = Field(..., gt=0)
    rate: int = Field(..., gt=0)


class ConnectCcipChainsInput(ToolInput):
    sourceChain: Network
    targetChains: List[Network] = Field(..., min_length=1)
    poolAddresses: dict[str, Address] = Field(..., description="network -> pool address")
    tokenAddresses: dict[str, Address] = Field(..., description="network -> token address")
    rateLimitConfig: Optional[RateLimitInput] = None


class ValidateCcipSetupInput(ToolInput):
    rwaTokenAddress: Address
    poolAddress: Address
    network: Network
    expectedRemoteChains: Optional[List[Network]] = None


class GetChainSelectorsInput(ToolInput):
    pass


class _CrossChainBase(NetworkInput):
    token_address: Address
    amount: float = Field(..., gt=0)
    destination_chain_selector: str = Field(..., pattern=r"^\d+$")
    use_native_fee: bool = Field(True, description="Pay the fee in native currency instead of LINK")
    fee_token_address: Optional[Address] = Field(None, description="Overrides use_native_fee")
    gas_limit: int = Field(0, ge=0, description="Destination gas limit; 0 uses the router default")


class GetCrossChainFeeInput(_CrossChainBase):
    destination_account: Address


class TransferRwaCrossChainInput(_CrossChainBase):
    to: Address


class ApproveCcipRouterInput(NetworkInput):
    token_address: Address
    amount: float = Field(..., gt=0)
    approve_link_for_fees: bool = False
    link_fee_amount: float = Field(100, gt=0)


class MintRwaTokenInput(NetworkInput):
    token_address: Address
    to: Address
    amount: float = Field(..., gt=0)
