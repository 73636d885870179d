"""
Step and stage templates for the supported bridging flows.

Templates are plain pending Steps; ``create_progress`` copies them into a
fresh Progress.
"""
from typing import Dict, Tuple

from ..core.types import Direction, Step, StageTemplate


def _step(id: str, title: str, description: str, stage: str,
          estimated_duration: float, retryable: bool = True) -> Step:
    return Step(
        id=id,
        title=title,
        description=description,
        stage=stage,
        estimated_duration=estimated_duration,
        retryable=retryable,
    )


EVM_TO_IC_STEPS: Tuple[Step, ...] = (
    # Setup & connection
    _step("connect-ic-wallet", "Connect IC Wallet",
          "Connect your Internet Computer wallet (Internet Identity, NFID, Plug, etc.)", "setup", 15),
    _step("connect-evm-wallet", "Connect EVM Wallet",
          "Connect your Ethereum wallet and switch to the correct network", "setup", 20),
    _step("input-nft-details", "Specify NFT Details",
          "Enter the contract address, token ID, and select source chain", "setup", 30, retryable=False),
    _step("verify-ownership", "Verify EVM Ownership",
          "Confirming you own the NFT on the source EVM chain", "setup", 15),
    # Canister management
    _step("check-cknft-canister", "Check ckNFT Canister",
          "Checking if a ckNFT canister exists for this contract", "canister", 10),
    _step("estimate-canister-cost", "Calculate Canister Cost",
          "Estimating cycles needed to create a new ckNFT canister (if needed)", "canister", 5),
    _step("check-balances", "Check Balances",
          "Verifying ICP and cycles balances for canister creation and minting", "canister", 10),
    _step("approve-cycles-orchestrator", "Approve Cycles (Orchestrator)",
          "Approve cycles ledger to spend cycles for orchestrator operations", "canister", 30),
    _step("create-cknft-canister", "Create ckNFT Canister",
          "Deploying new ckNFT canister on Internet Computer (if needed)", "canister", 90),
    # Preparation
    _step("estimate-mint-cost", "Calculate Mint Cost",
          "Estimating cycles needed for minting process", "preparation", 5),
    _step("approve-cycles-mint", "Approve Cycles (Mint)",
          "Approve cycles for the minting operation", "preparation", 30),
    _step("get-approval-address", "Get Approval Address",
          "Getting the bridge contract address for NFT approval", "preparation", 10),
    _step("approve-nft-transfer", "Approve NFT Transfer",
          "Approve the bridge to transfer your NFT (EVM transaction)", "preparation", 60),
    # Bridge execution
    _step("initiate-mint", "Initiate Mint",
          "Starting the cross-chain minting process", "execution", 30),
    _step("verify-ownership-remotely", "Verify Remote Ownership",
          "Bridge verifying NFT ownership on source chain", "execution", 45),
    _step("fetch-metadata", "Retrieve Metadata",
          "Fetching NFT metadata from source chain", "execution", 30),
    _step("transfer-nft-to-bridge", "Transfer to Bridge",
          "Bridge contract receiving NFT from source chain", "execution", 120, retryable=False),
    _step("mint-cknft", "Mint ckNFT",
          "Minting your NFT on the Internet Computer", "execution", 60),
    _step("verify-mint-complete", "Verify Completion",
          "Confirming your ckNFT was minted and is in your wallet", "execution", 15),
)

IC_TO_EVM_STEPS: Tuple[Step, ...] = (
    # Setup & connection
    _step("connect-ic-wallet", "Connect IC Wallet",
          "Connect your Internet Computer wallet containing the ckNFT", "setup", 15),
    _step("select-cknft", "Select ckNFT",
          "Choose which ckNFT you want to bridge to EVM", "setup", 20, retryable=False),
    _step("select-target-network", "Select Target Network",
          "Choose which EVM network to deploy your NFT contract to", "setup", 15, retryable=False),
    _step("connect-evm-wallet", "Connect EVM Wallet",
          "Connect your target EVM wallet for receiving NFTs", "setup", 20),
    # Contract management
    _step("check-remote-contract", "Check Remote Contract",
          "Checking if NFT contract already exists on target EVM chain", "contract", 10),
    _step("estimate-gas-costs", "Calculate Gas Costs",
          "Estimating gas fees for contract deployment and minting", "contract", 15),
    _step("get-funding-address", "Get Funding Address",
          "Getting the bridge funding address for gas payments", "contract", 10),
    _step("fund-gas-account", "Fund Gas Account",
          "Send ETH to bridge funding address for gas fees", "contract", 90),
    _step("approve-cycles-remote", "Approve Cycles (Remote)",
          "Approve cycles for remote contract deployment", "contract", 30),
    _step("deploy-evm-contract", "Deploy EVM Contract",
          "Deploying NFT contract on target EVM network", "contract", 180),
    _step("verify-contract-deployment", "Verify Contract",
          "Confirming contract was successfully deployed", "contract", 30),
    # Preparation
    _step("estimate-cast-costs", "Calculate Cast Costs",
          "Estimating cycles and gas needed for casting operation", "preparation", 10),
    _step("approve-cycles-cast", "Approve Cycles (Cast)",
          "Approve cycles for the casting operation", "preparation", 30),
    _step("approve-cknft-transfer", "Approve ckNFT Transfer",
          "Approve the bridge to transfer your ckNFT", "preparation", 30),
    # Cast execution
    _step("initiate-cast", "Initiate Cast",
          "Starting the cross-chain casting process", "execution", 45),
    _step("burn-cknft", "Burn ckNFT",
          "Burning ckNFT on Internet Computer to release for EVM minting", "execution", 60,
          retryable=False),
    _step("wait-for-consensus", "Wait for Consensus",
          "Waiting for cross-chain consensus and verification", "execution", 300, retryable=False),
    _step("mint-on-evm", "Mint on EVM",
          "Minting your NFT on the target EVM chain", "execution", 120),
    _step("verify-evm-ownership", "Verify EVM Ownership",
          "Confirming NFT was minted to your EVM wallet", "execution", 30),
    _step("cast-complete", "Cast Complete",
          "Bridge operation completed successfully", "execution", 5, retryable=False),
)

EVM_TO_IC_STAGES: Tuple[StageTemplate, ...] = (
    StageTemplate("setup", "Setup & Connection", "Connect wallets and verify NFT ownership"),
    StageTemplate("canister", "Canister Management", "Create or check ckNFT canister on IC"),
    StageTemplate("preparation", "Preparation", "Approve cycles and NFT transfers"),
    StageTemplate("execution", "Bridge Execution", "Execute cross-chain bridging"),
)

IC_TO_EVM_STAGES: Tuple[StageTemplate, ...] = (
    StageTemplate("setup", "Setup & Connection", "Connect wallets and select ckNFT"),
    StageTemplate("contract", "Contract Management", "Deploy or check remote contract"),
    StageTemplate("preparation", "Preparation", "Approve cycles and ckNFT transfers"),
    StageTemplate("execution", "Cast Execution", "Execute cross-chain casting"),
)

STEP_TEMPLATES: Dict[Direction, Tuple[Step, ...]] = {
    Direction.EVM_TO_IC: EVM_TO_IC_STEPS,
    Direction.IC_TO_EVM: IC_TO_EVM_STEPS,
}

STAGE_TEMPLATES: Dict[Direction, Tuple[StageTemplate, ...]] = {
    Direction.EVM_TO_IC: EVM_TO_IC_STAGES,
    Direction.IC_TO_EVM: IC_TO_EVM_STAGES,
}


def solana_export_steps(needs_deployment: bool) -> Tuple[Step, ...]:
    """Steps for casting ckNFTs out to Solana (used with Direction.IC_TO_EVM stages)."""
    steps = []
    if needs_deployment:
        steps.append(_step("deploy-solana-collection", "Deploy Solana Collection",
                           "Creating Metaplex NFT collection on Solana", "contract", 120))
    steps.extend([
        _step("approve-cycles-cast", "Approve Cycles",
              "Approving cycles for cast operations", "preparation", 30),
        _step("cast-nfts", "Cast NFTs to Solana",
              "Exporting ckNFTs to Solana blockchain", "execution", 120),
        _step("wait-solana-confirmation", "Confirm Cast Completion",
              "Polling cast status until NFTs are transferred and finalized on Solana",
              "execution", 180, retryable=False),
    ])
    return tuple(steps)


def return_cast_steps() -> Tuple[Step, ...]:
    """Steps for returning a ckNFT to its remote chain through a single cast."""
    return (
        _step("verify-connection", "Verify Connection",
              "Checking wallet and IC authentication", "setup", 10),
        _step("prepare-cast", "Prepare Cast Request",
              "Preparing cast operation parameters", "setup", 10),
        _step("execute-cast", "Execute Cast",
              "Submitting the cast to the ckNFT canister", "execution", 45),
        _step("monitor-status", "Monitor Cast Status",
              "Waiting for the cast to complete on the remote chain", "execution", 300),
    )
