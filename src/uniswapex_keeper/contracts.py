from __future__ import annotations

from typing import Any

_ORDER_INPUTS: list[dict[str, Any]] = [
    {"internalType": "contract IERC20", "name": "_inputToken", "type": "address"},
    {"internalType": "contract IERC20", "name": "_outputToken", "type": "address"},
    {"internalType": "uint256", "name": "_minReturn", "type": "uint256"},
    {"internalType": "uint256", "name": "_fee", "type": "uint256"},
    {"internalType": "address payable", "name": "_owner", "type": "address"},
    {"internalType": "address", "name": "_witness", "type": "address"},
]

ERC20_ABI: list[dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "from", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "to", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
]

UNISWAP_FACTORY_ABI: list[dict[str, Any]] = [
    {
        "inputs": [],
        "name": "tokenCount",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "token_id", "type": "uint256"}],
        "name": "getTokenWithId",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

UNISWAPEX_ABI: list[dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "bytes32", "name": "_key", "type": "bytes32"},
            {"indexed": True, "internalType": "address", "name": "_caller", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "_amount", "type": "uint256"},
            {"indexed": False, "internalType": "bytes", "name": "_data", "type": "bytes"},
        ],
        "name": "DepositETH",
        "type": "event",
    },
    {
        "inputs": list(_ORDER_INPUTS),
        "name": "existOrder",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            *_ORDER_INPUTS,
            {"internalType": "bytes", "name": "_auxData", "type": "bytes"},
        ],
        "name": "canExecuteOrder",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "contract IERC20", "name": "_inputToken", "type": "address"},
            {"internalType": "contract IERC20", "name": "_outputToken", "type": "address"},
            {"internalType": "uint256", "name": "_minReturn", "type": "uint256"},
            {"internalType": "uint256", "name": "_fee", "type": "uint256"},
            {"internalType": "address payable", "name": "_owner", "type": "address"},
            {"internalType": "bytes", "name": "_witnesses", "type": "bytes"},
            {"internalType": "bytes", "name": "_auxData", "type": "bytes"},
        ],
        "name": "executeOrder",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]
