"""CLI entry point for attendance_nft.cli module.

Enables execution via: python -m attendance_nft.cli
"""

from attendance_nft.cli.check_in import main

if __name__ == "__main__":
    main()
