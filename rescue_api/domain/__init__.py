# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the rescue and adoption lifecycle.

This package contains pure business logic functions with no side effects.
Transitions return the updated entity, the write predicate and the events
to dispatch after commit; persistence and delivery live in services.
"""
