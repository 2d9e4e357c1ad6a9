"""
BSC withdrawal gateway.

Sends USDT (BEP-20) from the platform payout wallet. The only contract the
ledger relies on is ``transfer(address, amount) -> tx_hash``; every failure,
including RPC and receipt timeouts, surfaces as ``GatewayFailure``.
"""

import logging
from decimal import Decimal
import requests
from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.middleware import ExtraDataToPOAMiddleware
from eth_account import Account

from config import CHAIN_SETTINGS
from exceptions import ConfigurationError, GatewayFailure

logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
]

DEFAULT_GAS_LIMIT = 100_000


def is_valid_address(address):
    """Hex address check; mixed-case input must carry a valid EIP-55 checksum."""
    if not isinstance(address, str) or not Web3.is_address(address):
        return False
    digits = address[2:] if address[:2].lower() == '0x' else address
    if digits in (digits.lower(), digits.upper()):
        return True
    return Web3.is_checksum_address(address)


def check_chain_settings(config):
    """Raise ConfigurationError naming every missing or malformed chain setting."""
    missing = [key for key in CHAIN_SETTINGS if not config.get(key)]
    if missing:
        raise ConfigurationError(f"Missing chain settings: {', '.join(missing)}")

    bad = [key for key in ('PAYMENT_CONTRACT_ADDRESS', 'USDT_CONTRACT_ADDRESS',
                           'ADMIN_FEE_WALLET', 'GLOBAL_ADMIN_WALLET')
           if not is_valid_address(config[key])]
    if bad:
        raise ConfigurationError(f"Invalid chain addresses: {', '.join(bad)}")


class BSCGateway:
    """Flask extension holding the payout wallet and token contract."""

    def __init__(self, app=None):
        self._config = None
        self._w3 = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self._config = app.config
        if app.config.get('REQUIRE_CHAIN_SETTINGS'):
            check_chain_settings(app.config)
        app.extensions['transfer_gateway'] = self

    def _connect(self):
        if self._w3 is None:
            check_chain_settings(self._config)
            w3 = Web3(Web3.HTTPProvider(
                self._config['BSC_RPC_URL'],
                request_kwargs={"timeout": self._config['BSC_TX_TIMEOUT']}
            ))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._w3 = w3
        return self._w3

    def transfer(self, address, amount):
        """Send ``amount`` USDT to ``address`` and wait for a successful receipt."""
        if not is_valid_address(address):
            raise GatewayFailure(f"Invalid destination address: {address!r}")

        w3 = self._connect()
        cfg = self._config
        timeout = cfg['BSC_TX_TIMEOUT']
        try:
            account = Account.from_key(cfg['BSC_PRIVATE_KEY'])
            token = w3.eth.contract(Web3.to_checksum_address(cfg['USDT_CONTRACT_ADDRESS']), abi=ERC20_ABI)
            amount_units = int(Decimal(amount) * (10 ** cfg['USDT_DECIMALS']))
            fn = token.functions.transfer(Web3.to_checksum_address(address), amount_units)

            try:
                gas_limit = int(fn.estimate_gas({"from": account.address}) * 1.2)
            except Exception as e:
                logger.warning(f"Gas estimate failed, using {DEFAULT_GAS_LIMIT}: {e}")
                gas_limit = DEFAULT_GAS_LIMIT

            tx = fn.build_transaction({
                "from": account.address,
                "nonce": w3.eth.get_transaction_count(account.address),
                "chainId": cfg['BSC_CHAIN_ID'],
                "gas": gas_limit,
                "gasPrice": w3.eth.gas_price,
            })
            signed = account.sign_transaction(tx)
            tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted:
            raise GatewayFailure(f"Transfer not confirmed within {timeout}s")
        except requests.exceptions.Timeout:
            raise GatewayFailure(f"BSC RPC timed out after {timeout}s")
        except Exception as e:
            logger.error(f"BSC transfer of {amount} to {address} failed: {e}")
            raise GatewayFailure(str(e))

        if receipt.get('status') != 1:
            raise GatewayFailure(f"Transfer reverted: {tx_hash.hex()}")

        tx_hex = tx_hash.hex()
        if not tx_hex.startswith('0x'):
            tx_hex = '0x' + tx_hex
        logger.info(f"Sent {amount} USDT to {address}: {tx_hex}")
        return tx_hex
