"""
Ledger Reader Constants.

Minimal ABIs for the NFT contract and the quest manager contract.
"""

from eth_utils import encode_hex, event_abi_to_log_topic

# Minimal ERC721 ABI: Transfer event plus the read calls we need
NFT_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": True, "name": "tokenId", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "ownerOf",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "tokenURI",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# QuestCompleted(user, questId, fee, timestamp, day)
QUEST_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "user", "type": "address"},
            {"indexed": True, "name": "questId", "type": "uint256"},
            {"indexed": False, "name": "fee", "type": "uint256"},
            {"indexed": False, "name": "timestamp", "type": "uint256"},
            {"indexed": False, "name": "day", "type": "uint256"},
        ],
        "name": "QuestCompleted",
        "type": "event",
    },
]

TRANSFER_TOPIC = encode_hex(event_abi_to_log_topic(NFT_ABI[0]))
QUEST_COMPLETED_TOPIC = encode_hex(event_abi_to_log_topic(QUEST_ABI[0]))
