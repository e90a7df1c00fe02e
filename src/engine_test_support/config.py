"""Engine test-support configuration constants.

Keep `CONV_RATE` aligned with the rate the execution engine charges with;
the transfer checks in `test_context` convert gas with the same constant.
"""

# Numeric bounds
U512_MAX = (1 << 512) - 1

# Gas -> motes conversion: motes = gas * CONV_RATE
CONV_RATE = 10

# Protocol
DEFAULT_PROTOCOL_VERSION = (1, 0, 0)

# Genesis
DEFAULT_CHAIN_NAME = "test-chain"
DEFAULT_GENESIS_TIMESTAMP = 0
DEFAULT_ACCOUNT_INITIAL_BALANCE = 100_000_000_000_000_000
DEFAULT_BLOCK_TIME = 0

# Payment
DEFAULT_PAYMENT = 100_000_000  # motes escrowed per deploy

# Gas schedule
EXEC_BASE_COST = 1_000
HOST_FUNCTION_COSTS = {
    "caller": 10,
    "main_purse": 10,
    "get_named_arg": 20,
    "create_purse": 2_500,
    "get_balance": 100,
    "transfer_to_account": 2_500,
    "transfer_from_purse_to_account": 2_500,
    "transfer_from_purse_to_purse": 2_000,
    "put_key": 100,
    "get_key": 50,
    "has_key": 50,
    "remove_key": 100,
    "new_uref": 200,
    "read": 50,
    "write": 150,
    "store_contract": 5_000,
    "call_contract": 500,
    "revert": 0,
    "burn": 1,
}

# Limits
MAX_NAMED_KEY_LENGTH = 256
MAX_PATH_SEGMENTS = 32
