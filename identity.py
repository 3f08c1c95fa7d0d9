#!/usr/bin/env python3
"""
Identity resolution against the on-chain consumer registry.

The registry contract exposes a read-only getConsumerByAadhaar view. Only
the name and mobile fields of the returned record are used here.
"""

from typing import Callable, Optional, Tuple

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

import settings
from errors import ConfigurationError, ConsumerNotFoundError, UpstreamError
from logging_config import get_logger
from utils import normalize_mobile, validate_aadhaar

logger = get_logger(__name__)

ConsumerLookup = Callable[[str], Tuple[str, str]]

CONSUMER_REGISTRY_ABI = [
    {
        "name": "getConsumerByAadhaar",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "aadhaar", "type": "uint256"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "aadhaar", "type": "uint256"},
                    {"name": "name", "type": "string"},
                    {"name": "mobile", "type": "string"},
                ],
            }
        ],
    }
]


def build_ledger_lookup(rpc_url: Optional[str], contract_address: Optional[str],
                        timeout: int = 15) -> ConsumerLookup:
    """
    Bind a consumer lookup to the registry contract.

    Raises:
        ConfigurationError: RPC endpoint or contract address missing or invalid
    """
    if not rpc_url or not contract_address:
        raise ConfigurationError('Blockchain provider not initialized')
    try:
        address = Web3.to_checksum_address(contract_address)
    except (ValueError, TypeError) as e:
        raise ConfigurationError('Invalid registry contract address', str(e)) from e

    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': timeout}))
    contract = w3.eth.contract(address=address, abi=CONSUMER_REGISTRY_ABI)

    def lookup(aadhaar: str) -> Tuple[str, str]:
        try:
            consumer = contract.functions.getConsumerByAadhaar(int(aadhaar)).call()
        except ContractLogicError as e:
            if 'not found' in str(e).lower():
                raise ConsumerNotFoundError('Consumer not found with this Aadhaar number') from e
            raise UpstreamError('Ledger lookup failed', str(e)) from e
        except (Web3Exception, requests.RequestException) as e:
            raise UpstreamError('Ledger lookup failed', str(e)) from e
        _, name, mobile = consumer
        return name, mobile

    logger.info(f"Consumer registry bound at {address}")
    return lookup


class IdentityResolver:
    """Maps a citizen identifier to (name, dialable phone number)."""

    def __init__(self, lookup: ConsumerLookup):
        self._lookup = lookup

    def resolve(self, aadhaar: str) -> Tuple[str, str]:
        """
        Raises:
            ValidationError: malformed identifier
            ConsumerNotFoundError: no registered contact
            InvalidPhoneError: contact has no usable phone number
            UpstreamError: the ledger call failed
        """
        aadhaar = validate_aadhaar(aadhaar)
        name, mobile = self._lookup(aadhaar)
        if not name:
            raise ConsumerNotFoundError('Consumer not found with this Aadhaar number')
        return name, normalize_mobile(mobile)


def create_identity_resolver(rpc_url: Optional[str] = settings.POLYGON_AMOY_RPC,
                             contract_address: Optional[str] = settings.DIAMOND_CONTRACT_ADDRESS
                             ) -> IdentityResolver:
    return IdentityResolver(build_ledger_lookup(rpc_url, contract_address))
