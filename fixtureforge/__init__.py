# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

fixtureforge - load YAML test fixtures into a live REST API, resolving
cross-entity and circular references along the way.
"""

__copyright__ = "Copyright 2025"
__license__ = "Apache 2.0"
__version__ = "1.0.0"
__description__ = "Declarative YAML fixtures materialized through a REST entity API"
__packages__ = ["fixtureforge"]
