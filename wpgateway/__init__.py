# -*- coding: utf-8 -*-
"""Location: ./wpgateway/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

WordPress MCP Gateway.

A multi-tenant JSON-RPC gateway that exposes a WordPress REST API as MCP
tools behind API-key authentication, an encrypted credential vault and
per-plan rate and quota enforcement.
"""

__author__ = "WordPress MCP Gateway contributors"
__version__ = "0.4.0"
__license__ = "Apache-2.0"
__description__ = "Multi-tenant MCP gateway for WordPress sites"
__url__ = "https://github.com/wpgateway/wpgateway"
