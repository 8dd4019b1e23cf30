# SPDX-License-Identifier: Apache-2.0

"""
OpenTelemetry tracing and structured logging setup.
"""
