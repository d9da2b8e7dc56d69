# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Main entry point for running asset_transfer as a module.

Allows running:
    python -m asset_transfer
"""

from .app import main

if __name__ == "__main__":
    main()
