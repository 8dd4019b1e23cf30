# SPDX-License-Identifier: Apache-2.0

"""
Rescue Roots API - street-dog rescue and adoption lifecycle service.
"""

__version__ = "1.0.0"
