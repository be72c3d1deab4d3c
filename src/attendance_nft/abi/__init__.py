"""Contract ABI utilities.

ABIs are stored as JSON files in this directory and loaded at runtime.
"""

import json
from functools import lru_cache
from pathlib import Path


@lru_cache
def get_contract_abi(contract_name: str = "AttendanceNFT") -> list[dict]:
    """Load contract ABI from package resources.

    Args:
        contract_name: Name of the contract (default: "AttendanceNFT")

    Returns:
        ABI as list of function/event descriptors

    Raises:
        FileNotFoundError: If ABI file doesn't exist for the specified contract
    """
    abi_path = Path(__file__).parent / f"{contract_name}.json"

    if not abi_path.exists():
        raise FileNotFoundError(
            f"ABI file not found: {abi_path}\n"
            f"Export the contract ABI from the contract build output into this directory."
        )

    with open(abi_path) as f:
        return json.load(f)
