# SPDX-License-Identifier: Apache-2.0

"""
Route blueprints for the rescue platform API.
"""
