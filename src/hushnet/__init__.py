# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Hushnet registry - a directory of nodes that prove key ownership.

Nodes register by signing a server-issued, single-use challenge with their
Ed25519 key. The registry binds each host to exactly one key, lists every
registered node, and keeps status, latency, uptime and location current
with a background health monitor.

Architecture:
  hushnet.core      canonical JSON, config, logging, database pool, errors
  hushnet.registry  challenges, signature checks, node store, directory
  hushnet.monitor   health loop, HTTP probes, IP location lookup
  hushnet.server    Starlette API and the ``hushnet-registry`` CLI
"""

__version__ = "0.1.0"
