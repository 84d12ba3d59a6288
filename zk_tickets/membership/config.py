"""
Protocol configuration for group membership and one-time access.

These values must agree with the external prover and verifier: the field
modulus, the fixed-width encoding, the tree depth the circuit was compiled
for and the scope tag are all baked into proving keys.
"""

# ============================================================================
# FIELD PARAMETERS
# ============================================================================

# BN254 scalar field (the field Groth16/Semaphore circuits operate over)
FIELD_NAME = "bn254"
FIELD_MODULUS = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
FIELD_ELEMENT_BYTES = 32
FIELD_BYTE_ORDER = "big"

# ============================================================================
# HASH PARAMETERS
# ============================================================================

# Field hash domain separation (stand-in for Poseidon, see field.py)
DOMAIN_SEPARATOR_PREFIX = b"ZK_TICKETS_V1_"

DOMAIN_SEPARATORS = {
    "field_hash": DOMAIN_SEPARATOR_PREFIX + b"FIELD_HASH",
    "hash_to_field": DOMAIN_SEPARATOR_PREFIX + b"TO_FIELD",
}

MIN_HASH_ARITY = 1
MAX_HASH_ARITY = 16

# Bits dropped when mapping a 256-bit digest into the field
HASH_TO_FIELD_SHIFT = 8

# ============================================================================
# TREE PARAMETERS
# ============================================================================

# Circuits are compiled for a fixed number of levels; proofs are padded to it
DEFAULT_TREE_DEPTH = 20
MAX_TREE_DEPTH = 32

# ============================================================================
# SCOPE (EXTERNAL NULLIFIER)
# ============================================================================

SCOPE_PROTOCOL_TAG = b"ZK_CTX"

# ============================================================================
# SERIALIZATION
# ============================================================================

SERIALIZATION_FORMAT = "CBOR"
REQUEST_VERSION = 1
TRANSPARENT_PROOF_VERSION = 1
STATE_VERSION = 1

MAX_PROOF_BYTES = 16 * 1024
MAX_REQUEST_BYTES = MAX_PROOF_BYTES + 1024

# ============================================================================
# VALIDATION
# ============================================================================


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    assert FIELD_MODULUS.bit_length() == 254, "Unexpected field modulus size"
    assert FIELD_MODULUS < 2 ** (8 * FIELD_ELEMENT_BYTES), "Encoding too narrow"
    assert FIELD_BYTE_ORDER in ("big", "little"), "Invalid byte order"
    assert 256 - HASH_TO_FIELD_SHIFT < FIELD_MODULUS.bit_length(), (
        "hash_to_field output may exceed the field"
    )
    assert 1 <= MIN_HASH_ARITY <= MAX_HASH_ARITY < 256, "Invalid hash arity"
    assert 0 < DEFAULT_TREE_DEPTH <= MAX_TREE_DEPTH, "Invalid tree depth"
    assert len(SCOPE_PROTOCOL_TAG) > 0, "Scope tag must not be empty"
    assert SERIALIZATION_FORMAT == "CBOR", "Only CBOR is supported"

    return True


# Auto-validate on import
validate_config()
