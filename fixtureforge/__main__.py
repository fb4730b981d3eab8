# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/__main__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Allow ``python -m fixtureforge``.
"""

# First-Party
from fixtureforge.cli import main

if __name__ == "__main__":
    main()
